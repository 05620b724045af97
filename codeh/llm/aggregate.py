"""
Folds a ``StreamEvent`` sequence into one ``ChatResponse``.

Streaming and non-streaming calls both end here: non-streaming bodies are
first translated into the same events (see ``codeh.llm.responses``), so both
paths share one notion of content, tool-call ordering and usage.
"""

from __future__ import annotations

from codeh.llm.tool_call_assembler import ToolCallAssembler
from codeh.llm.types import (
    ChatResponse,
    ContentDelta,
    Finished,
    FinishReason,
    StreamEvent,
    Usage,
    UsageUpdate,
    token_count,
)


class ResponseAggregator:
    """Accumulates content, tool calls, usage and the finish reason."""

    def __init__(self, model: str = "") -> None:
        self.model = model
        self.assembler = ToolCallAssembler()
        self._parts: list[str] = []
        self._prompt: int | None = None
        self._completion: int | None = None
        self._total: int | None = None
        self.finish_reason: str | None = None

    @property
    def content(self) -> str:
        return "".join(self._parts)

    def apply(self, event: StreamEvent) -> None:
        if isinstance(event, ContentDelta):
            self._parts.append(event.text)
        elif isinstance(event, UsageUpdate):
            # Later counters replace earlier ones; backends report them
            # cumulatively.  Unusable counters are ignored.
            prompt = token_count(event.prompt_tokens)
            completion = token_count(event.completion_tokens)
            total = token_count(event.total_tokens)
            if prompt is not None:
                self._prompt = prompt
            if completion is not None:
                self._completion = completion
            if total is not None:
                self._total = total
        elif isinstance(event, Finished):
            self.finish_reason = event.reason
        else:
            self.assembler.feed(event)

    def extend(self, events: list[StreamEvent]) -> None:
        for event in events:
            self.apply(event)

    def build(self, model: str | None = None) -> ChatResponse:
        self.assembler.flush()
        return ChatResponse(
            content=self.content,
            tool_calls=tuple(self.assembler.tool_calls),
            usage=Usage.of(self._prompt, self._completion, self._total),
            finish_reason=self.finish_reason or FinishReason.STOP,
            model=model or self.model,
        )
