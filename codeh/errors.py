"""
Error taxonomy shared by the chat protocol layer and the orchestrator.

Every error carries a stable ``code`` and a JSON-compatible ``context`` dict so
the CLI (or a trace file) can render it without knowing the concrete class.
"""

from __future__ import annotations

from typing import Any


class CodehError(Exception):
    """Base class for all codeh errors."""

    code = "CODEH_ERROR"

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": type(self).__name__,
            "message": self.message,
            "code": self.code,
            "context": self.context,
        }


class ConfigurationError(CodehError):
    """Invalid or incomplete settings.  Raised before any network call."""

    code = "CONFIGURATION_ERROR"


class TransportError(CodehError):
    """The request never produced an HTTP response (network failure, timeout)."""

    code = "TRANSPORT_ERROR"

    def __init__(self, provider: str, message: str, elapsed: float) -> None:
        super().__init__(
            f"{provider}: {message} (after {elapsed:.2f}s)",
            {"provider": provider, "elapsed": elapsed},
        )
        self.provider = provider
        self.elapsed = elapsed


class ProtocolError(CodehError):
    """A single stream chunk could not be decoded.  Always recoverable."""

    code = "PROTOCOL_ERROR"


class ProviderError(CodehError):
    """The backend answered with a non-success status or an error event."""

    code = "PROVIDER_ERROR"

    def __init__(self, provider: str, status: int | None, message: str) -> None:
        label = f"HTTP {status}" if status is not None else "stream error"
        super().__init__(
            f"{provider} API error ({label}): {message}",
            {"provider": provider, "status": status},
        )
        self.provider = provider
        self.status = status
        self.detail = message


class ToolExecutionError(CodehError):
    """A tool raised while executing.  Caught per call by the orchestrator."""

    code = "TOOL_EXECUTION_FAILED"

    def __init__(self, tool_name: str, original: BaseException) -> None:
        super().__init__(
            f"Tool execution failed: {tool_name}: {original}",
            {
                "tool_name": tool_name,
                "original_error": {
                    "name": type(original).__name__,
                    "message": str(original),
                },
            },
        )
        self.tool_name = tool_name
        self.original = original
