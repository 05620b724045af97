from __future__ import annotations

import logging
import time
from importlib.metadata import entry_points

from codeh.llm.types import ToolSpec
from codeh.tools.base import Tool, ToolExecutionResult, ToolExecutor
from codeh.tools.validation import ToolValidator

logger = logging.getLogger(__name__)

PLUGIN_GROUP = "codeh.tools"


class ToolRegistry:
    def __init__(self):
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool, *, overwrite: bool = False) -> None:
        if tool.name in self._tools and not overwrite:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def require(self, name: str) -> Tool:
        t = self.get(name)
        if not t:
            raise KeyError(name)
        return t

    def list(self) -> list[Tool]:
        return sorted(self._tools.values(), key=lambda t: t.name)

    def to_specs(self) -> list[ToolSpec]:
        return [t.to_spec() for t in self.list()]

    def load_plugins(
        self,
        *,
        group: str = PLUGIN_GROUP,
        disabled: set[str] | None = None,
    ) -> int:
        """Register every tool class exposed under the *group* entry point.

        Entry points whose name is in *disabled* are skipped.  Each class is
        constructed with no arguments.
        """
        loaded = 0
        for ep in entry_points(group=group):
            if disabled and ep.name in disabled:
                logger.info("Skipping disabled tool plugin %s", ep.name)
                continue
            tool_cls = ep.load()
            self.register(tool_cls())
            loaded += 1
        logger.info("Loaded %d tool plugin(s) from %s", loaded, group)
        return loaded


class RegistryToolExecutor(ToolExecutor):
    """
    ``ToolExecutor`` backed by a ``ToolRegistry``.

    Unknown tools, schema violations and exceptions raised by the tool all
    come back as ``success=False`` results.
    """

    def __init__(self, registry: ToolRegistry) -> None:
        self.registry = registry

    async def execute(self, name: str, arguments: dict) -> ToolExecutionResult:
        tool = self.registry.get(name)
        if tool is None:
            logger.warning("Unknown tool requested: %s", name)
            return ToolExecutionResult.failure(f"Unknown tool: {name}")

        valid, error_msg = ToolValidator.validate(tool, arguments)
        if not valid:
            logger.warning("Invalid arguments for %s: %s", name, error_msg)
            return ToolExecutionResult.failure(f"Validation error: {error_msg}")

        start = time.monotonic()
        try:
            result = await tool.execute(**arguments)
        except Exception as e:
            logger.exception("Tool %s raised", name)
            return ToolExecutionResult.failure(f"Tool exception: {e}")

        logger.info(
            "Tool %s finished: success=%s duration_ms=%d",
            name,
            result.success,
            (time.monotonic() - start) * 1000,
        )
        return result
