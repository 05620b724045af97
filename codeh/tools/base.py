from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from codeh.llm.types import ToolSpec


@dataclass
class ToolExecutionResult:
    success: bool
    output: str
    error_message: str | None = None

    @classmethod
    def ok(cls, output: str) -> ToolExecutionResult:
        return cls(success=True, output=output)

    @classmethod
    def failure(cls, error_message: str, output: str = "") -> ToolExecutionResult:
        return cls(success=False, output=output, error_message=error_message)


class ToolExecutor(ABC):
    """
    Runs a named tool for the orchestrator.

    Ordinary tool failures are reported with ``success=False``; raising is
    reserved for unexpected faults (the orchestrator records those as failed
    tool turns too).
    """

    @abstractmethod
    async def execute(self, name: str, arguments: dict) -> ToolExecutionResult: ...


def normalize_schema(schema: dict) -> dict:
    s = dict(schema or {})
    s.setdefault("type", "object")
    s.setdefault("additionalProperties", False)
    return s


class Tool(ABC):
    @property
    @abstractmethod
    def name(self) -> str: ...

    @property
    @abstractmethod
    def description(self) -> str: ...

    @property
    @abstractmethod
    def parameters(self) -> dict: ...

    @abstractmethod
    async def execute(self, **kwargs) -> ToolExecutionResult: ...

    def to_spec(self) -> ToolSpec:
        return ToolSpec(
            name=self.name,
            description=self.description,
            parameters=normalize_schema(self.parameters),
        )
