"""Mock tool implementations for testing."""

from codeh.tools.base import Tool, ToolExecutionResult, ToolExecutor


class EchoTool(Tool):
    @property
    def name(self) -> str:
        return "echo"

    @property
    def description(self) -> str:
        return "Echoes the input message back."

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "message": {"type": "string", "description": "Message to echo"},
            },
            "required": ["message"],
        }

    async def execute(self, **kwargs) -> ToolExecutionResult:
        return ToolExecutionResult.ok(kwargs.get("message", ""))


class WriteTool(Tool):
    @property
    def name(self) -> str:
        return "write_file"

    @property
    def description(self) -> str:
        return "Writes content to a file path."

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "File path to write"},
                "content": {"type": "string", "description": "Content to write"},
            },
            "required": ["path", "content"],
        }

    async def execute(self, **kwargs) -> ToolExecutionResult:
        return ToolExecutionResult.ok(f"Wrote to {kwargs.get('path', '')}")


class ExplodingTool(Tool):
    """A tool whose execution always raises."""

    @property
    def name(self) -> str:
        return "explode"

    @property
    def description(self) -> str:
        return "Raises RuntimeError."

    @property
    def parameters(self) -> dict:
        return {"type": "object", "properties": {}}

    async def execute(self, **kwargs) -> ToolExecutionResult:
        raise RuntimeError("kaboom")


class ExtraKeysTool(Tool):
    """A tool that explicitly allows additionalProperties in its schema."""

    @property
    def name(self) -> str:
        return "flexible"

    @property
    def description(self) -> str:
        return "Accepts arbitrary extra keys."

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "base_param": {"type": "string", "description": "A base parameter"},
            },
            "required": ["base_param"],
            "additionalProperties": True,
        }

    async def execute(self, **kwargs) -> ToolExecutionResult:
        return ToolExecutionResult.ok(str(kwargs))


class RecordingExecutor(ToolExecutor):
    """
    Executor that records every call and answers from a script.

    *behaviour* maps a tool name to a ``ToolExecutionResult`` or to an
    exception instance to raise.  Unlisted tools succeed with ``"ok:<name>"``.
    """

    def __init__(self, behaviour: dict | None = None, on_execute=None) -> None:
        self.behaviour = behaviour or {}
        self.on_execute = on_execute
        self.calls: list[tuple[str, dict]] = []

    async def execute(self, name: str, arguments: dict) -> ToolExecutionResult:
        self.calls.append((name, arguments))
        if self.on_execute is not None:
            self.on_execute(name, arguments)
        outcome = self.behaviour.get(name)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome is not None:
            return outcome
        return ToolExecutionResult.ok(f"ok:{name}")
