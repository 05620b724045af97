"""
Translate non-streaming response bodies into ``StreamEvent`` sequences.

Each function returns ``(events, model)``.  The events always end with one
``Finished`` and feed the same ``ResponseAggregator`` the streaming path uses.
"""

from __future__ import annotations

import json
import uuid
from typing import Any

from codeh.errors import ProtocolError
from codeh.llm.types import (
    ContentDelta,
    Finished,
    FinishReason,
    StreamEvent,
    ToolCallArgumentDelta,
    ToolCallCompleted,
    ToolCallStarted,
    UsageUpdate,
    normalize_finish_reason,
)


def _mapping(value: Any, what: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ProtocolError(f"{what} is not an object: {type(value).__name__}")
    return value


def _string(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _arguments_text(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, str):
        return raw
    return json.dumps(raw)


def _whole_tool_call(index: int, call_id: Any, name: Any, arguments: Any) -> list[StreamEvent]:
    return [
        ToolCallStarted(index=index, id=_string(call_id) or None, name=_string(name)),
        ToolCallArgumentDelta(index=index, fragment=_arguments_text(arguments)),
        ToolCallCompleted(index=index),
    ]


def block_response_events(data: dict) -> tuple[list[StreamEvent], str | None]:
    """Anthropic ``message`` object with a ``content`` block array."""
    blocks = data.get("content")
    if not isinstance(blocks, list):
        raise ProtocolError("response has no content block array")

    events: list[StreamEvent] = []
    for index, block in enumerate(blocks):
        if not isinstance(block, dict):
            continue
        if block.get("type") == "text" and _string(block.get("text")):
            events.append(ContentDelta(text=block["text"]))
        elif block.get("type") == "tool_use":
            events.extend(
                _whole_tool_call(index, block.get("id"), block.get("name", ""), block.get("input", {}))
            )

    usage = _mapping(data.get("usage"), "usage")
    events.append(
        UsageUpdate(
            prompt_tokens=usage.get("input_tokens"),
            completion_tokens=usage.get("output_tokens"),
        )
    )
    events.append(Finished(reason=normalize_finish_reason(data.get("stop_reason"))))
    return events, _string(data.get("model")) or None


def delta_response_events(data: dict) -> tuple[list[StreamEvent], str | None]:
    """OpenAI ``chat.completion`` object with ``choices[0].message``."""
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        raise ProtocolError("response has no choices")
    choice = choices[0]
    message = choice.get("message")
    if not isinstance(message, dict):
        raise ProtocolError("choice has no message")

    events: list[StreamEvent] = []
    if _string(message.get("content")):
        events.append(ContentDelta(text=message["content"]))

    for position, raw_tc in enumerate(_list(message.get("tool_calls"))):
        if not isinstance(raw_tc, dict):
            continue
        func = _mapping(raw_tc.get("function"), "tool call function")
        index = raw_tc.get("index")
        events.extend(
            _whole_tool_call(
                index if isinstance(index, int) else position,
                raw_tc.get("id"),
                func.get("name", ""),
                func.get("arguments"),
            )
        )

    usage = data.get("usage")
    if isinstance(usage, dict):
        events.append(
            UsageUpdate(
                prompt_tokens=usage.get("prompt_tokens"),
                completion_tokens=usage.get("completion_tokens"),
                total_tokens=usage.get("total_tokens"),
            )
        )
    events.append(Finished(reason=normalize_finish_reason(choice.get("finish_reason"))))
    return events, _string(data.get("model")) or None


def cumulative_response_events(data: dict) -> tuple[list[StreamEvent], str | None]:
    """Ollama ``/api/chat`` body with ``stream: false``."""
    message = _mapping(data.get("message"), "message")
    events: list[StreamEvent] = []
    if _string(message.get("content")):
        events.append(ContentDelta(text=message["content"]))

    tool_calls = [tc for tc in _list(message.get("tool_calls")) if isinstance(tc, dict)]
    for index, tc in enumerate(tool_calls):
        func = _mapping(tc.get("function"), "tool call function")
        events.extend(
            _whole_tool_call(
                index,
                _string(tc.get("id")) or f"ollama_call_{uuid.uuid4().hex[:12]}",
                func.get("name", ""),
                func.get("arguments", {}),
            )
        )

    events.append(
        UsageUpdate(
            prompt_tokens=data.get("prompt_eval_count"),
            completion_tokens=data.get("eval_count"),
        )
    )
    reason = normalize_finish_reason(data.get("done_reason"))
    if tool_calls and reason == FinishReason.STOP:
        reason = FinishReason.TOOL_CALLS
    events.append(Finished(reason=reason))
    return events, _string(data.get("model")) or None


def raw_response_events(data: Any) -> tuple[list[StreamEvent], str | None]:
    """Last resort: surface the whole body as the assistant's text."""
    text = data if isinstance(data, str) else json.dumps(data)
    return [ContentDelta(text=text), Finished(reason=FinishReason.STOP)], None


def generic_response_events(data: Any) -> tuple[list[StreamEvent], str | None]:
    """
    Try the known response shapes in order and use the first that matches:
    flat choices with ``message``, block ``content`` array, raw JSON.
    """
    if isinstance(data, dict):
        for parse in (delta_response_events, block_response_events):
            try:
                return parse(data)
            except ProtocolError:
                continue
    return raw_response_events(data)
