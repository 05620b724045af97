"""Core types for the LLM subsystem."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Union


@dataclass(frozen=True)
class ToolCall:
    """A resolved tool call with parsed arguments."""

    id: str
    name: str
    arguments: dict


@dataclass(frozen=True)
class ChatMessage:
    """A single message in a conversation."""

    role: str  # "user", "assistant", "system", "tool"
    content: str
    tool_calls: tuple[ToolCall, ...] | None = None
    tool_call_id: str | None = None

    @classmethod
    def user(cls, content: str) -> ChatMessage:
        return cls(role="user", content=content)

    @classmethod
    def system(cls, content: str) -> ChatMessage:
        return cls(role="system", content=content)

    @classmethod
    def assistant(
        cls, content: str, tool_calls: list[ToolCall] | None = None
    ) -> ChatMessage:
        return cls(
            role="assistant",
            content=content,
            tool_calls=tuple(tool_calls) if tool_calls else None,
        )

    @classmethod
    def tool_result(cls, tool_call_id: str, content: str) -> ChatMessage:
        return cls(role="tool", content=content, tool_call_id=tool_call_id)


@dataclass(frozen=True)
class ToolSpec:
    """Declares a tool the model may call."""

    name: str
    description: str
    parameters: dict = field(default_factory=lambda: {"type": "object", "properties": {}})


class FinishReason:
    STOP = "stop"
    LENGTH = "length"
    TOOL_CALLS = "tool_calls"


_FINISH_REASONS: dict[str, str] = {
    "end_turn": FinishReason.STOP,
    "stop": FinishReason.STOP,
    "stop_sequence": FinishReason.STOP,
    "max_tokens": FinishReason.LENGTH,
    "length": FinishReason.LENGTH,
    "tool_use": FinishReason.TOOL_CALLS,
    "tool_calls": FinishReason.TOOL_CALLS,
    "function_call": FinishReason.TOOL_CALLS,
}


def normalize_finish_reason(raw: object) -> str:
    """Map a vendor stop/finish reason onto ``stop``, ``length`` or ``tool_calls``."""
    if not raw or not isinstance(raw, str):
        return FinishReason.STOP
    return _FINISH_REASONS.get(raw, FinishReason.STOP)


def token_count(value: object) -> int | None:
    """A backend token counter as a non-negative int, or ``None`` if unusable."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return max(0, int(value))


@dataclass(frozen=True)
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def of(
        cls,
        prompt_tokens: int | None = None,
        completion_tokens: int | None = None,
        total_tokens: int | None = None,
    ) -> Usage:
        """
        Build a ``Usage`` from possibly-missing backend counters.

        Missing, non-numeric or negative values become 0.  When the backend
        does not report a usable total, it is the sum of prompt and
        completion tokens.
        """
        prompt = token_count(prompt_tokens) or 0
        completion = token_count(completion_tokens) or 0
        total = token_count(total_tokens)
        if total is None:
            total = prompt + completion
        return cls(prompt, completion, total)


@dataclass(frozen=True)
class ChatRequest:
    messages: tuple[ChatMessage, ...]
    model: str | None = None
    system_prompt: str | None = None
    tools: tuple[ToolSpec, ...] | None = None
    max_tokens: int | None = None
    temperature: float | None = None


@dataclass(frozen=True)
class ChatResponse:
    content: str
    tool_calls: tuple[ToolCall, ...] = ()
    usage: Usage = field(default_factory=Usage)
    finish_reason: str = FinishReason.STOP
    model: str = ""


# ---------------------------------------------------------------------------
# Stream events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ContentDelta:
    text: str


@dataclass(frozen=True)
class ToolCallStarted:
    """
    Announces a tool call at *index*.

    Flat delta dialects stream the function name in fragments; a repeated
    ``ToolCallStarted`` for an open index extends the name and fills a
    missing id.
    """

    index: int
    id: str | None = None
    name: str = ""


@dataclass(frozen=True)
class ToolCallArgumentDelta:
    index: int
    fragment: str


@dataclass(frozen=True)
class ToolCallCompleted:
    index: int


@dataclass(frozen=True)
class UsageUpdate:
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None


@dataclass(frozen=True)
class Finished:
    reason: str = FinishReason.STOP


StreamEvent = Union[
    ContentDelta,
    ToolCallStarted,
    ToolCallArgumentDelta,
    ToolCallCompleted,
    UsageUpdate,
    Finished,
]
