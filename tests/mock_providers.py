"""
Mock LLM providers for testing.

Provides scripted ``StreamEvent`` sequences so tests can exercise the client
and orchestrator without hitting real APIs.
"""

from __future__ import annotations

import json

from codeh.llm.aggregate import ResponseAggregator
from codeh.llm.providers.base import ChatProvider, EventSink
from codeh.llm.types import (
    ChatRequest,
    ChatResponse,
    ContentDelta,
    Finished,
    StreamEvent,
    ToolCallArgumentDelta,
    ToolCallCompleted,
    ToolCallStarted,
    UsageUpdate,
)


class MockProvider(ChatProvider):
    """
    A provider that replays pre-configured event scripts, one per call.

    Usage::

        provider = MockProvider(scripts=[
            text_events("Hello world!"),
            tool_call_events("echo", {"message": "hi"}),
        ])

    The last script is repeated once the list is exhausted.  An exception
    instance in place of a script is raised on that call instead.

    Parameters
    ----------
    scripts:
        Event sequences (or exceptions), consumed one per call.
    model_name:
        Model reported on every response.
    """

    def __init__(
        self,
        scripts: list[list[StreamEvent] | Exception] | None = None,
        model_name: str = "mock-model",
        models: list[str] | None = None,
        healthy: bool = True,
    ) -> None:
        self._scripts = scripts or [text_events("")]
        self._model_name = model_name
        self._models = models or []
        self._healthy = healthy
        self.call_count = 0
        self.requests: list[ChatRequest] = []

    @property
    def name(self) -> str:
        return "mock"

    @property
    def last_request(self) -> ChatRequest | None:
        return self.requests[-1] if self.requests else None

    def _next_script(self, request: ChatRequest) -> list[StreamEvent]:
        self.requests.append(request)
        script = self._scripts[min(self.call_count, len(self._scripts) - 1)]
        self.call_count += 1
        if isinstance(script, Exception):
            raise script
        return script

    async def chat(self, request: ChatRequest) -> ChatResponse:
        aggregator = ResponseAggregator(model=self._model_name)
        aggregator.extend(self._next_script(request))
        return aggregator.build()

    async def stream_chat(
        self,
        request: ChatRequest,
        on_event: EventSink | None = None,
    ) -> ChatResponse:
        aggregator = ResponseAggregator(model=self._model_name)
        for event in self._next_script(request):
            aggregator.apply(event)
            if on_event is not None:
                on_event(event)
        return aggregator.build()

    async def health_check(self) -> bool:
        return self._healthy

    async def available_models(self) -> list[str]:
        return list(self._models)


# ---------------------------------------------------------------------------
# Script builders
# ---------------------------------------------------------------------------


def text_events(
    text: str,
    prompt_tokens: int | None = None,
    completion_tokens: int | None = None,
) -> list[StreamEvent]:
    """Stream *text* one word at a time, then finish with ``stop``."""
    events: list[StreamEvent] = []
    words = text.split(" ") if text else []
    for i, word in enumerate(words):
        suffix = " " if i < len(words) - 1 else ""
        events.append(ContentDelta(text=word + suffix))
    if prompt_tokens is not None or completion_tokens is not None:
        events.append(
            UsageUpdate(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens)
        )
    events.append(Finished(reason="stop"))
    return events


def tool_call_events(
    tool_name: str,
    tool_args: dict,
    call_id: str = "call_abc123",
    index: int = 0,
    content_prefix: str = "",
    finish: bool = True,
) -> list[StreamEvent]:
    """
    One tool call with its name split in two and its arguments in thirds,
    to exercise the assembler.
    """
    events: list[StreamEvent] = []
    if content_prefix:
        events.append(ContentDelta(text=content_prefix))

    half = len(tool_name) // 2
    events.append(ToolCallStarted(index=index, id=call_id, name=tool_name[:half]))
    events.append(ToolCallStarted(index=index, name=tool_name[half:]))

    args_json = json.dumps(tool_args)
    third = max(1, len(args_json) // 3)
    for part in (args_json[:third], args_json[third : 2 * third], args_json[2 * third :]):
        if part:
            events.append(ToolCallArgumentDelta(index=index, fragment=part))
    events.append(ToolCallCompleted(index=index))

    if finish:
        events.append(Finished(reason="tool_calls"))
    return events


def multi_tool_call_events(calls: list[tuple[str, dict, str]]) -> list[StreamEvent]:
    """
    Several tool calls whose names are announced first and whose arguments
    follow; *calls* is a list of ``(tool_name, tool_args, call_id)``.
    """
    events: list[StreamEvent] = []
    for idx, (tool_name, _, call_id) in enumerate(calls):
        events.append(ToolCallStarted(index=idx, id=call_id, name=tool_name))
    for idx, (_, tool_args, _) in enumerate(calls):
        events.append(ToolCallArgumentDelta(index=idx, fragment=json.dumps(tool_args)))
    for idx in range(len(calls)):
        events.append(ToolCallCompleted(index=idx))
    events.append(Finished(reason="tool_calls"))
    return events


def make_text_provider(text: str, model_name: str = "mock-text") -> MockProvider:
    return MockProvider(scripts=[text_events(text)], model_name=model_name)


def make_tool_loop_provider(
    tool_name: str = "echo",
    tool_args: dict | None = None,
) -> MockProvider:
    """A provider whose model asks for the same tool on every call."""
    return MockProvider(
        scripts=[tool_call_events(tool_name, tool_args or {"message": "again"})],
        model_name="mock-loop",
    )
