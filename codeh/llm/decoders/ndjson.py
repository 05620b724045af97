"""
Decoder for the line-delimited cumulative dialect (Ollama ``/api/chat``).

Every line is a complete JSON object::

    {"model": "llama3.1", "message": {"role": "assistant", "content": "He"},
     "done": false}

Tool calls arrive whole inside ``message.tool_calls`` with their arguments as
an object.  They are re-serialized into one argument fragment so the
assembler sees the same string-buffer shape as every other dialect.  Usage
counters (``prompt_eval_count`` / ``eval_count``) and ``done_reason`` are
populated only on the line where ``done`` is ``true``.
"""

from __future__ import annotations

import json
import uuid

from codeh.llm.decoders.base import StreamDecoder
from codeh.llm.types import (
    ContentDelta,
    FinishReason,
    StreamEvent,
    ToolCallArgumentDelta,
    ToolCallStarted,
    UsageUpdate,
    normalize_finish_reason,
)


class CumulativeLineDecoder(StreamDecoder):
    dialect = "ollama"

    def __init__(self) -> None:
        super().__init__()
        self._next_tool_index = 0

    def _fallback_reason(self) -> str:
        return FinishReason.TOOL_CALLS if self._next_tool_index else FinishReason.STOP

    def _decode(self, payload: str) -> list[StreamEvent]:
        data = self._load(payload)
        events: list[StreamEvent] = []

        if isinstance(data.get("model"), str) and data["model"]:
            self.model = data["model"]

        message = self._object(data.get("message"), "message")
        content = self._text(message.get("content"), "message content")
        calls = [
            self._object(tc, "tool call")
            for tc in self._array(message.get("tool_calls"), "tool_calls")
        ]
        functions = [self._object(tc.get("function"), "tool call function") for tc in calls]

        if content:
            events.append(ContentDelta(text=content))

        for tc, func in zip(calls, functions):
            events.extend(self._tool_events(tc, func))

        if data.get("done"):
            events.append(
                UsageUpdate(
                    prompt_tokens=data.get("prompt_eval_count"),
                    completion_tokens=data.get("eval_count"),
                )
            )
            reason = normalize_finish_reason(data.get("done_reason"))
            if self._next_tool_index and reason == FinishReason.STOP:
                reason = FinishReason.TOOL_CALLS
            events.append(self._finish(reason))

        return events

    def _tool_events(self, tc: dict, func: dict) -> list[StreamEvent]:
        index = self._next_tool_index
        self._next_tool_index += 1
        self._open_tool(index)

        arguments = func.get("arguments")
        if isinstance(arguments, str):
            fragment = arguments
        else:
            fragment = json.dumps(arguments or {})

        events: list[StreamEvent] = [
            ToolCallStarted(
                index=index,
                id=_string(tc.get("id")) or f"ollama_call_{uuid.uuid4().hex[:12]}",
                name=_string(func.get("name")),
            ),
            ToolCallArgumentDelta(index=index, fragment=fragment),
        ]
        events.extend(self._complete_tool(index))
        return events


def _string(value: object) -> str:
    return value if isinstance(value, str) else ""
