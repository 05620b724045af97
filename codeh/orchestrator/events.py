"""
Orchestration progress events.

Every step of the tool loop is reported to the progress sink as an
``OrchestrationEvent``.  Events are created by the factory helpers below and
can be serialized to plain dicts for rendering or trace logging.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable


# ---------------------------------------------------------------------------
# Base event
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OrchestrationEvent:
    """
    A single progress event emitted by the orchestrator.

    Attributes
    ----------
    event_type:
        One of the ``EVENT_*`` constants below.
    payload:
        Event-specific data as a JSON-compatible dict.
    iteration:
        1-based iteration the event belongs to.
    timestamp:
        UTC timestamp of event creation.
    """

    event_type: str
    payload: dict[str, Any]
    iteration: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["timestamp"] = self.timestamp.isoformat()
        return d


ProgressSink = Callable[[OrchestrationEvent], None]


# ---------------------------------------------------------------------------
# Event types
# ---------------------------------------------------------------------------

EVENT_ITERATION_START = "iteration_start"
EVENT_CONTENT_DELTA = "content_delta"
EVENT_TOOLS_DETECTED = "tools_detected"
EVENT_TOOL_EXECUTING = "tool_executing"
EVENT_TOOL_COMPLETED = "tool_completed"
EVENT_TOOL_FAILED = "tool_failed"
EVENT_ORCHESTRATION_COMPLETE = "orchestration_complete"


class CompletionReason:
    FINISHED = "finished"
    TRUNCATED = "truncated"
    CANCELLED = "cancelled"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Factory helpers
# ---------------------------------------------------------------------------


def iteration_start_event(iteration: int, max_iterations: int) -> OrchestrationEvent:
    return OrchestrationEvent(
        event_type=EVENT_ITERATION_START,
        payload={"max_iterations": max_iterations},
        iteration=iteration,
    )


def content_delta_event(iteration: int, text: str) -> OrchestrationEvent:
    return OrchestrationEvent(
        event_type=EVENT_CONTENT_DELTA,
        payload={"text": text},
        iteration=iteration,
    )


def tools_detected_event(iteration: int, names: list[str]) -> OrchestrationEvent:
    return OrchestrationEvent(
        event_type=EVENT_TOOLS_DETECTED,
        payload={"count": len(names), "names": list(names)},
        iteration=iteration,
    )


def tool_executing_event(
    iteration: int,
    name: str,
    args: dict[str, Any],
    index: int,
    total: int,
) -> OrchestrationEvent:
    """Create a ``tool_executing`` event.  *index* is 1-based."""
    return OrchestrationEvent(
        event_type=EVENT_TOOL_EXECUTING,
        payload={"name": name, "args": args, "index": index, "total": total},
        iteration=iteration,
    )


def tool_completed_event(
    iteration: int,
    name: str,
    output: str,
    index: int,
    total: int,
) -> OrchestrationEvent:
    return OrchestrationEvent(
        event_type=EVENT_TOOL_COMPLETED,
        payload={"name": name, "output": output, "index": index, "total": total},
        iteration=iteration,
    )


def tool_failed_event(
    iteration: int,
    name: str,
    error: str,
    index: int,
    total: int,
) -> OrchestrationEvent:
    return OrchestrationEvent(
        event_type=EVENT_TOOL_FAILED,
        payload={"name": name, "error": error, "index": index, "total": total},
        iteration=iteration,
    )


def orchestration_complete_event(
    iteration: int,
    reason: str,
    error: str | None = None,
) -> OrchestrationEvent:
    """Create the terminal ``orchestration_complete`` event."""
    payload: dict[str, Any] = {"reason": reason}
    if error is not None:
        payload["error"] = error
    return OrchestrationEvent(
        event_type=EVENT_ORCHESTRATION_COMPLETE,
        payload=payload,
        iteration=iteration,
    )
