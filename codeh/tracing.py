"""
Trace logging bound to one process session.

A process owns exactly one ``TraceSession``.  The session id may be bound
once; later binds are ignored.  The trace file path is sealed the first time
it is needed, so every record written during the process lands in a single
JSON-lines artifact::

    <log_dir>/logs_<session>.json                  (session bound in time)
    <log_dir>/logs_session_<YYYYMMDD_HHMMSS>.json  (nothing bound yet)

Each line is ``{timestamp, level, component, function, message, context}``.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any, Callable

from rich.logging import RichHandler

from codeh.config import LoggingConfig

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")
_NOISY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore", "asyncio")


def sanitize_session_id(session_id: str) -> str:
    return _UNSAFE_CHARS.sub("_", session_id.strip()) or "unnamed"


class TraceSession:
    """
    Session-to-artifact binding for one process.

    Parameters
    ----------
    log_dir:
        Directory that receives the trace file.
    clock:
        Returns the current local time; used for the fallback file name.
    """

    def __init__(
        self,
        log_dir: str | Path = "~/.codeh/logs",
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.log_dir = Path(log_dir).expanduser()
        self._clock = clock
        self._session_id: str | None = None
        self._path: Path | None = None
        self._lock = threading.Lock()

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def sealed(self) -> bool:
        return self._path is not None

    def bind(self, session_id: str) -> bool:
        """
        Bind *session_id* to this process.  Returns ``False`` (and changes
        nothing) when a session is already bound or the artifact is sealed.
        """
        with self._lock:
            if self._session_id is not None or self._path is not None:
                return False
            self._session_id = session_id
            return True

    def artifact_path(self) -> Path:
        """The trace file path.  Sealed on first call."""
        with self._lock:
            if self._path is None:
                if self._session_id is not None:
                    name = f"logs_{sanitize_session_id(self._session_id)}.json"
                else:
                    stamp = self._clock().strftime("%Y%m%d_%H%M%S")
                    name = f"logs_session_{stamp}.json"
                self._path = self.log_dir / name
            return self._path


class TraceFileHandler(logging.Handler):
    """
    ``logging.Handler`` writing JSON lines to the session's trace artifact.

    The file is opened on the first record, which seals the session's path.
    Structured data passed as ``extra={"context": {...}}`` is written to the
    ``context`` field.
    """

    def __init__(self, session: TraceSession, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.session = session
        self._stream: IO[str] | None = None

    def _open(self) -> IO[str]:
        path = self.session.artifact_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        return path.open("a", encoding="utf-8")

    def to_record(self, record: logging.LogRecord) -> dict[str, Any]:
        context = getattr(record, "context", None)
        if record.exc_info and record.exc_info[1] is not None:
            context = dict(context or {})
            context["exception"] = {
                "name": type(record.exc_info[1]).__name__,
                "message": str(record.exc_info[1]),
            }
        return {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "function": record.funcName,
            "message": record.getMessage(),
            "context": context,
        }

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = json.dumps(self.to_record(record), default=str)
            self.acquire()
            try:
                if self._stream is None:
                    self._stream = self._open()
                self._stream.write(line + "\n")
                self._stream.flush()
            finally:
                self.release()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        self.acquire()
        try:
            if self._stream is not None:
                self._stream.close()
                self._stream = None
        finally:
            self.release()
        super().close()


def configure_logging(
    config: LoggingConfig,
    session: TraceSession | None = None,
    *,
    verbose: bool = False,
) -> TraceFileHandler | None:
    """
    Attach codeh's handlers to the ``codeh`` logger.

    The trace file handler is added only when ``config.enabled`` is set.
    *verbose* adds a rich console handler.  Returns the trace handler, if any.
    """
    level = logging.getLevelName(config.level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger("codeh")
    root.setLevel(level)
    for handler in list(root.handlers):
        if isinstance(handler, (TraceFileHandler, RichHandler)):
            root.removeHandler(handler)
            handler.close()

    if verbose:
        root.addHandler(RichHandler(level=level, show_path=False, rich_tracebacks=True))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    if not config.enabled:
        return None

    trace = TraceFileHandler(session or TraceSession(config.log_dir), level=level)
    root.addHandler(trace)
    return trace
