"""
Assembles streaming tool-call events into complete ToolCall objects.

Design goals:
  - Accumulate argument fragments keyed by call index, as one string buffer
    per call that is parsed exactly once.
  - On ``ToolCallCompleted`` (or an explicit ``flush()``), JSON-parse the
    accumulated argument string.
  - If parsing fails the call is *kept* with ``arguments = {}`` and an error
    is recorded -- the caller can inspect ``self.errors`` and log it.
  - Finished calls are reported in the order their index was first seen,
    never in completion order.
"""

from __future__ import annotations

import json
import logging

from codeh.llm.types import (
    StreamEvent,
    ToolCall,
    ToolCallArgumentDelta,
    ToolCallCompleted,
    ToolCallStarted,
)

logger = logging.getLogger(__name__)


class ToolCallAssembler:
    """Buffers tool-call stream events and emits finished ``ToolCall`` objects."""

    def __init__(self) -> None:
        # Insertion order of _buf is first-seen index order.  Buffers are
        # kept after finalization so that order survives.
        self._buf: dict[int, dict] = {}
        self._finished: dict[int, ToolCall] = {}
        self.errors: list[str] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def feed(self, event: StreamEvent) -> ToolCall | None:
        """
        Feed a single stream event into the assembler.

        Non tool-call events are ignored.  Returns the finished ``ToolCall``
        when *event* completes one, otherwise ``None``.
        """
        if isinstance(event, ToolCallStarted):
            buf = self._slot(event.index)
            if event.id and not buf["id"]:
                buf["id"] = event.id
            if event.name:
                buf["name"] += event.name
            return None

        if isinstance(event, ToolCallArgumentDelta):
            self._slot(event.index)["args"] += event.fragment
            return None

        if isinstance(event, ToolCallCompleted):
            return self._finalize(event.index)

        return None

    def flush(self) -> list[ToolCall]:
        """
        Finalize *all* remaining buffers, regardless of whether a completion
        event was received.  Useful at stream end.
        """
        flushed: list[ToolCall] = []
        for idx in list(self._buf):
            call = self._finalize(idx)
            if call is not None:
                flushed.append(call)
        return flushed

    @property
    def tool_calls(self) -> list[ToolCall]:
        """Finished calls in first-seen index order."""
        return [self._finished[idx] for idx in self._buf if idx in self._finished]

    @property
    def pending_indices(self) -> list[int]:
        """Indices that were announced but not finalized, in first-seen order."""
        return [idx for idx in self._buf if idx not in self._finished]

    def reset(self) -> None:
        """Discard all accumulated state."""
        self._buf.clear()
        self._finished.clear()
        self.errors.clear()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _slot(self, idx: int) -> dict:
        if idx not in self._buf:
            self._buf[idx] = {"id": None, "name": "", "args": ""}
        return self._buf[idx]

    def _finalize(self, idx: int) -> ToolCall | None:
        buf = self._buf.get(idx)
        if buf is None or idx in self._finished:
            return None

        raw_args = buf["args"].strip() or "{}"
        try:
            args = json.loads(raw_args)
        except (json.JSONDecodeError, ValueError) as exc:
            self.errors.append(f"tool_call_json_parse_failed idx={idx} err={exc}")
            logger.warning(
                "Failed to parse tool call arguments, using empty object: "
                "name=%s raw=%s",
                buf["name"],
                raw_args[:200],
            )
            args = {}
        if not isinstance(args, dict):
            self.errors.append(
                f"tool_call_arguments_not_object idx={idx} type={type(args).__name__}"
            )
            args = {}

        call = ToolCall(
            id=buf["id"] or f"call_{idx}",
            name=buf["name"].strip(),
            arguments=args,
        )
        self._finished[idx] = call
        return call
