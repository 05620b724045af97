"""Abstract base class for stream decoders."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod

from codeh.errors import ProtocolError
from codeh.llm.types import Finished, StreamEvent, ToolCallCompleted

logger = logging.getLogger(__name__)


class StreamDecoder(ABC):
    """
    Turns the payloads of one backend stream into normalized ``StreamEvent``s.

    A decoder is created per stream and consumes payloads strictly in order:

      - ``decode`` handles one framed payload (an SSE ``data`` field or an
        NDJSON line) and returns the events it produced.  A malformed payload,
        including valid JSON with the wrong nesting, is logged and skipped.
        Only a backend-reported error (``ProviderError``) escapes.
      - ``close`` is called once the byte stream ends.  It completes any
        open tool calls and emits the terminal ``Finished`` if the backend
        never sent its own termination marker.

    Exactly one ``Finished`` is produced per decoder.  Once it has been
    emitted, ``finished`` is ``True`` and further payloads are ignored.
    """

    #: Provider label used in log lines.
    dialect = "base"

    def __init__(self) -> None:
        self.finished = False
        self.model: str | None = None
        self._open_tools: dict[int, None] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def decode(self, payload: str) -> list[StreamEvent]:
        if self.finished:
            return []
        try:
            return self._decode(payload)
        except ProtocolError as exc:
            logger.warning("%s: skipping malformed chunk: %s", self.dialect, exc)
            return []
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            # Valid JSON whose nesting none of the shape checks anticipated.
            logger.warning(
                "%s: skipping malformed chunk: %s: %s",
                self.dialect, type(exc).__name__, exc,
            )
            return []

    def close(self) -> list[StreamEvent]:
        if self.finished:
            return []
        events: list[StreamEvent] = self._complete_open_tools()
        events.append(self._finish(self._fallback_reason()))
        return events

    # ------------------------------------------------------------------
    # Hooks for subclasses
    # ------------------------------------------------------------------

    @abstractmethod
    def _decode(self, payload: str) -> list[StreamEvent]:
        """Decode one payload.  Raise ``ProtocolError`` to skip it."""
        ...

    def _fallback_reason(self) -> str:
        """Finish reason to report when the stream ends without a marker."""
        return "stop"

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _load(payload: str) -> dict:
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise ProtocolError(f"invalid JSON: {payload[:200]!r}") from exc
        if not isinstance(data, dict):
            raise ProtocolError(f"expected a JSON object, got {type(data).__name__}")
        return data

    @staticmethod
    def _object(value: object, what: str) -> dict:
        """*value* as a JSON object; ``None`` reads as empty."""
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ProtocolError(f"{what} is not an object: {type(value).__name__}")
        return value

    @staticmethod
    def _array(value: object, what: str) -> list:
        """*value* as a JSON array; ``None`` reads as empty."""
        if value is None:
            return []
        if not isinstance(value, list):
            raise ProtocolError(f"{what} is not an array: {type(value).__name__}")
        return value

    @staticmethod
    def _text(value: object, what: str) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ProtocolError(f"{what} is not a string: {type(value).__name__}")
        return value

    def _open_tool(self, index: int) -> bool:
        """Track *index* as open.  Returns ``True`` the first time it is seen."""
        if index in self._open_tools:
            return False
        self._open_tools[index] = None
        return True

    def _complete_tool(self, index: int) -> list[StreamEvent]:
        if index not in self._open_tools:
            return []
        del self._open_tools[index]
        return [ToolCallCompleted(index=index)]

    def _complete_open_tools(self) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        for index in list(self._open_tools):
            events.extend(self._complete_tool(index))
        return events

    def _finish(self, reason: str) -> Finished:
        self.finished = True
        return Finished(reason=reason)
