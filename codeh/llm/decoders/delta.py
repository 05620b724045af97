"""
Decoder for the flat indexed-delta dialect (OpenAI Chat Completions).

Each SSE payload is a ``chat.completion.chunk``::

    {"choices": [{"index": 0,
                  "delta": {"content": "...",
                            "tool_calls": [{"index": 0, "id": "call_1",
                                            "function": {"name": "...",
                                                         "arguments": "..."}}]},
                  "finish_reason": null}],
     "usage": null}

The same tool-call index recurs across many chunks, each carrying another
fragment of the name or arguments.  ``finish_reason`` and ``usage`` (the
latter only with ``stream_options.include_usage``) arrive in the final
chunks, and ``[DONE]`` terminates the stream.
"""

from __future__ import annotations

from codeh.errors import ProtocolError
from codeh.llm.decoders.base import StreamDecoder
from codeh.llm.types import (
    ContentDelta,
    StreamEvent,
    ToolCallArgumentDelta,
    ToolCallStarted,
    UsageUpdate,
    normalize_finish_reason,
)

DONE_SENTINEL = "[DONE]"


class DeltaStreamDecoder(StreamDecoder):
    dialect = "openai"

    def __init__(self) -> None:
        super().__init__()
        self.finish_reason: str | None = None

    def _fallback_reason(self) -> str:
        return normalize_finish_reason(self.finish_reason)

    def _decode(self, payload: str) -> list[StreamEvent]:
        if payload.strip() == DONE_SENTINEL:
            events = self._complete_open_tools()
            events.append(self._finish(normalize_finish_reason(self.finish_reason)))
            return events

        data = self._load(payload)
        events: list[StreamEvent] = []

        if isinstance(data.get("model"), str) and data["model"]:
            self.model = data["model"]

        choice = self._choice(data)
        if choice is not None:
            delta = self._delta(choice)

            text = self._text(delta.get("content"), "delta content")
            if text:
                events.append(ContentDelta(text=text))

            for position, raw_tc in enumerate(self._tool_deltas(delta)):
                events.extend(self._tool_events(raw_tc, position))

            finish_reason = choice.get("finish_reason")
            if isinstance(finish_reason, str) and finish_reason:
                self.finish_reason = finish_reason
                events.extend(self._complete_open_tools())

        usage = data.get("usage")
        if isinstance(usage, dict):
            events.append(
                UsageUpdate(
                    prompt_tokens=usage.get("prompt_tokens"),
                    completion_tokens=usage.get("completion_tokens"),
                    total_tokens=usage.get("total_tokens"),
                )
            )

        return events

    # ------------------------------------------------------------------
    # Shape accessors (overridden by the tolerant generic decoder)
    # ------------------------------------------------------------------

    def _choice(self, data: dict) -> dict | None:
        choices = self._array(data.get("choices"), "choices")
        if not choices:
            # The usage-only chunk has an empty choices list.
            return None
        return self._object(choices[0], "choice")

    def _delta(self, choice: dict) -> dict:
        return self._object(choice.get("delta"), "delta")

    def _tool_deltas(self, delta: dict) -> list[dict]:
        return [
            self._object(raw_tc, "tool call delta")
            for raw_tc in self._array(delta.get("tool_calls"), "tool_calls")
        ]

    def _function(self, raw_tc: dict) -> dict:
        return self._object(raw_tc.get("function"), "tool call function")

    def _tool_index(self, raw_tc: dict, position: int) -> int:
        index = raw_tc.get("index")
        if not isinstance(index, int):
            raise ProtocolError("tool call delta without index")
        return index

    def _arguments_text(self, raw: object) -> str:
        if raw is None:
            return ""
        if not isinstance(raw, str):
            raise ProtocolError(f"tool call arguments are not a string: {type(raw).__name__}")
        return raw

    # ------------------------------------------------------------------
    # Tool calls
    # ------------------------------------------------------------------

    def _tool_events(self, raw_tc: dict, position: int) -> list[StreamEvent]:
        index = self._tool_index(raw_tc, position)
        func = self._function(raw_tc)
        name_delta = self._text(func.get("name"), "tool call name")
        args_delta = self._arguments_text(func.get("arguments"))
        call_id = raw_tc.get("id") if isinstance(raw_tc.get("id"), str) else None

        events: list[StreamEvent] = []
        first_seen = self._open_tool(index)
        if first_seen or call_id or name_delta:
            events.append(ToolCallStarted(index=index, id=call_id, name=name_delta))
        if args_delta:
            events.append(ToolCallArgumentDelta(index=index, fragment=args_delta))
        return events
