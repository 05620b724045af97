"""
Orchestrator core -- the tool loop that ties the chat client to tool execution.

The orchestrator is an explicit state machine::

    AWAITING_MODEL -> EXECUTING_TOOLS -> AWAITING_MODEL -> ... -> DONE

Each iteration:
1. Streams a model response for the accumulated history
2. Finishes when the response carries no tool calls
3. Stops with ``truncated`` when the iteration limit is reached
4. Otherwise executes every tool call in order, appending one tool turn each
5. Loops

Every step is reported to an optional progress sink.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass, field

from codeh.errors import ToolExecutionError
from codeh.llm.client import ChatClient
from codeh.llm.types import (
    ChatMessage,
    ChatRequest,
    ChatResponse,
    ContentDelta,
    StreamEvent,
    ToolCall,
    ToolSpec,
)
from codeh.orchestrator.events import (
    CompletionReason,
    OrchestrationEvent,
    ProgressSink,
    content_delta_event,
    iteration_start_event,
    orchestration_complete_event,
    tool_completed_event,
    tool_executing_event,
    tool_failed_event,
    tools_detected_event,
)
from codeh.tools.base import ToolExecutionResult, ToolExecutor

logger = logging.getLogger(__name__)

CANCELLED_TOOL_OUTPUT = "Tool execution cancelled before it started."
TRUNCATED_TOOL_OUTPUT = "Tool not executed: iteration limit reached."


class OrchestratorState(str, enum.Enum):
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"


@dataclass
class OrchestrationResult:
    """Outcome of one ``Orchestrator.run`` call."""

    response: ChatResponse | None
    history: list[ChatMessage]
    iterations: int
    reason: str
    tool_executions: int = 0
    failed_tools: list[str] = field(default_factory=list)

    @property
    def content(self) -> str:
        return self.response.content if self.response else ""


class Orchestrator:
    """
    Main orchestrator loop.

    Parameters
    ----------
    client : ChatClient
        Chat client used for every model call (anything with a compatible
        ``stream_chat`` works).
    executor : ToolExecutor
        Runs the tools the model asks for.
    tools : list[ToolSpec]
        Tool declarations sent with every request.
    system_prompt : str
        System prompt for model calls.
    max_iterations : int
        Maximum number of model calls per ``run``.
    on_progress : callable
        Progress sink, called synchronously for every ``OrchestrationEvent``.
    history : list[ChatMessage]
        Conversation carried over from earlier runs.
    """

    def __init__(
        self,
        client: ChatClient,
        executor: ToolExecutor,
        tools: list[ToolSpec] | None = None,
        system_prompt: str = "",
        max_iterations: int = 5,
        on_progress: ProgressSink | None = None,
        history: list[ChatMessage] | None = None,
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.client = client
        self.executor = executor
        self.tools = list(tools or [])
        self.system_prompt = system_prompt
        self.max_iterations = max_iterations
        self.on_progress = on_progress
        self.history: list[ChatMessage] = list(history or [])
        self.state = OrchestratorState.DONE
        self._cancel = asyncio.Event()

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """
        Request cancellation.  Takes effect at the next iteration or tool
        boundary; a model call or tool already running is not interrupted.
        """
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    async def run(self, user_input: str | None = None) -> OrchestrationResult:
        """
        Process *user_input* (appended to ``history`` as a user turn) through
        the tool loop.

        Errors from the chat client stop the loop and propagate after an
        ``orchestration_complete`` event with reason ``error``; ``history``
        keeps every turn accumulated until then.
        """
        self._cancel.clear()
        if user_input is not None:
            self.history.append(ChatMessage.user(user_input))

        iteration = 1
        model_calls = 0
        tool_executions = 0
        failed_tools: list[str] = []
        response: ChatResponse | None = None
        start = time.monotonic()

        def finish(reason: str) -> OrchestrationResult:
            self.state = OrchestratorState.DONE
            self._emit(orchestration_complete_event(iteration, reason))
            logger.info(
                "Orchestration complete: reason=%s iterations=%d tool_executions=%d "
                "duration_ms=%d",
                reason,
                model_calls,
                tool_executions,
                (time.monotonic() - start) * 1000,
            )
            return OrchestrationResult(
                response=response,
                history=list(self.history),
                iterations=model_calls,
                reason=reason,
                tool_executions=tool_executions,
                failed_tools=failed_tools,
            )

        while True:
            if self.cancelled:
                return finish(CompletionReason.CANCELLED)

            # --- AWAITING_MODEL ---
            self.state = OrchestratorState.AWAITING_MODEL
            self._emit(iteration_start_event(iteration, self.max_iterations))
            try:
                response = await self._ask_model(iteration)
            except Exception as exc:
                self.state = OrchestratorState.DONE
                logger.error("Chat call failed in iteration %d: %s", iteration, exc)
                self._emit(
                    orchestration_complete_event(
                        iteration, CompletionReason.ERROR, error=str(exc)
                    )
                )
                raise

            model_calls += 1
            self.history.append(
                ChatMessage.assistant(response.content, list(response.tool_calls))
            )

            if not response.tool_calls:
                return finish(CompletionReason.FINISHED)

            if iteration >= self.max_iterations:
                logger.warning(
                    "Reached maximum of %d iterations with %d tool call(s) pending",
                    self.max_iterations,
                    len(response.tool_calls),
                )
                self._close_pending(response.tool_calls, TRUNCATED_TOOL_OUTPUT)
                return finish(CompletionReason.TRUNCATED)

            # --- EXECUTING_TOOLS ---
            self.state = OrchestratorState.EXECUTING_TOOLS
            calls = list(response.tool_calls)
            self._emit(tools_detected_event(iteration, [tc.name for tc in calls]))

            for position, tc in enumerate(calls):
                if self.cancelled:
                    self._close_pending(calls[position:], CANCELLED_TOOL_OUTPUT)
                    return finish(CompletionReason.CANCELLED)

                result = await self._execute_tool(iteration, tc, position + 1, len(calls))
                tool_executions += 1
                if not result.success:
                    failed_tools.append(tc.name)
                self.history.append(
                    ChatMessage.tool_result(tc.id, _tool_turn_content(result))
                )

            iteration += 1

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _ask_model(self, iteration: int) -> ChatResponse:
        request = ChatRequest(
            messages=tuple(self.history),
            system_prompt=self.system_prompt or None,
            tools=tuple(self.tools) or None,
        )

        def forward(event: StreamEvent) -> None:
            if isinstance(event, ContentDelta):
                self._emit(content_delta_event(iteration, event.text))

        return await self.client.stream_chat(request, forward)

    async def _execute_tool(
        self, iteration: int, tool_call: ToolCall, index: int, total: int
    ) -> ToolExecutionResult:
        self._emit(
            tool_executing_event(
                iteration, tool_call.name, tool_call.arguments, index, total
            )
        )

        start = time.monotonic()
        try:
            result = await self.executor.execute(tool_call.name, tool_call.arguments)
        except Exception as e:
            err = ToolExecutionError(tool_call.name, e)
            logger.error("%s", err.message, exc_info=True)
            result = ToolExecutionResult.failure(err.message)

        duration_ms = int((time.monotonic() - start) * 1000)
        if result.success:
            logger.info(
                "Tool %s completed (%d/%d) in %dms", tool_call.name, index, total, duration_ms
            )
            self._emit(
                tool_completed_event(iteration, tool_call.name, result.output, index, total)
            )
        else:
            error = result.error_message or result.output or "Tool failed"
            logger.warning(
                "Tool %s failed (%d/%d) in %dms: %s",
                tool_call.name,
                index,
                total,
                duration_ms,
                error,
            )
            self._emit(tool_failed_event(iteration, tool_call.name, error, index, total))
        return result

    def _close_pending(self, calls, output: str) -> None:
        """Answer calls that will not run so the history stays well-formed."""
        for tc in calls:
            self.history.append(ChatMessage.tool_result(tc.id, output))

    def _emit(self, event: OrchestrationEvent) -> None:
        if self.on_progress is not None:
            self.on_progress(event)


def _tool_turn_content(result: ToolExecutionResult) -> str:
    if result.success:
        return result.output
    return f"Error: {result.error_message or result.output or 'Tool failed'}"
