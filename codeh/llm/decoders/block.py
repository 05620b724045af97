"""
Decoder for the block-oriented stream dialect (Anthropic Messages API).

Event lifecycle::

    message_start -> (content_block_start -> content_block_delta*
                      -> content_block_stop)* -> message_delta -> message_stop

Text blocks produce ``ContentDelta``.  ``tool_use`` blocks produce
``ToolCallStarted`` / ``ToolCallArgumentDelta`` / ``ToolCallCompleted`` keyed
by the content-block index.
"""

from __future__ import annotations

from codeh.errors import ProtocolError, ProviderError
from codeh.llm.decoders.base import StreamDecoder
from codeh.llm.types import (
    ContentDelta,
    StreamEvent,
    ToolCallArgumentDelta,
    ToolCallStarted,
    UsageUpdate,
    normalize_finish_reason,
)


class BlockStreamDecoder(StreamDecoder):
    dialect = "anthropic"

    def __init__(self, provider: str = "anthropic") -> None:
        super().__init__()
        self.provider = provider
        self.stop_reason: str | None = None

    def _fallback_reason(self) -> str:
        return normalize_finish_reason(self.stop_reason)

    def _decode(self, payload: str) -> list[StreamEvent]:
        data = self._load(payload)
        event_type = data.get("type")

        if event_type == "message_start":
            message = self._object(data.get("message"), "message")
            if isinstance(message.get("model"), str) and message["model"]:
                self.model = message["model"]
            usage = self._object(message.get("usage"), "usage")
            return [
                UsageUpdate(
                    prompt_tokens=usage.get("input_tokens"),
                    completion_tokens=usage.get("output_tokens"),
                )
            ]

        if event_type == "content_block_start":
            index = self._index(data)
            block = self._object(data.get("content_block"), "content_block")
            if block.get("type") == "tool_use":
                name = self._text(block.get("name"), "tool name")
                block_id = block.get("id") if isinstance(block.get("id"), str) else None
                self._open_tool(index)
                return [ToolCallStarted(index=index, id=block_id, name=name)]
            if block.get("type") == "text":
                text = self._text(block.get("text"), "text block")
                return [ContentDelta(text=text)] if text else []
            return []

        if event_type == "content_block_delta":
            index = self._index(data)
            delta = self._object(data.get("delta"), "delta")
            delta_type = delta.get("type")
            if delta_type == "text_delta":
                text = self._text(delta.get("text"), "text delta")
                return [ContentDelta(text=text)] if text else []
            if delta_type == "input_json_delta":
                fragment = self._text(delta.get("partial_json"), "partial_json")
                if fragment and index in self._open_tools:
                    return [ToolCallArgumentDelta(index=index, fragment=fragment)]
            return []

        if event_type == "content_block_stop":
            return self._complete_tool(self._index(data))

        if event_type == "message_delta":
            delta = self._object(data.get("delta"), "delta")
            if isinstance(delta.get("stop_reason"), str) and delta["stop_reason"]:
                self.stop_reason = delta["stop_reason"]
            usage = self._object(data.get("usage"), "usage")
            if usage:
                return [
                    UsageUpdate(
                        prompt_tokens=usage.get("input_tokens"),
                        completion_tokens=usage.get("output_tokens"),
                    )
                ]
            return []

        if event_type == "message_stop":
            events = self._complete_open_tools()
            events.append(self._finish(normalize_finish_reason(self.stop_reason)))
            return events

        if event_type == "error":
            error = data.get("error") if isinstance(data.get("error"), dict) else {}
            raise ProviderError(
                self.provider,
                None,
                error.get("message") or error.get("type") or "unknown error",
            )

        # ping and unknown event types carry nothing we need.
        return []

    @staticmethod
    def _index(data: dict) -> int:
        index = data.get("index")
        if not isinstance(index, int):
            raise ProtocolError(f"content block event without index: {data.get('type')}")
        return index
