"""Output formatting utilities for the CLI."""

from __future__ import annotations

import json

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from codeh.errors import CodehError
from codeh.orchestrator.events import (
    EVENT_CONTENT_DELTA,
    EVENT_ORCHESTRATION_COMPLETE,
    EVENT_TOOL_COMPLETED,
    EVENT_TOOL_EXECUTING,
    EVENT_TOOL_FAILED,
    CompletionReason,
    OrchestrationEvent,
)
from codeh.tools.base import Tool


class OutputFormatter:
    """Rich-based output formatting for the codeh CLI."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def format_tool_list(self, tools: list[Tool]) -> None:
        if not tools:
            self.console.print("[dim]No tools registered.[/dim]")
            return

        table = Table(title="Registered Tools", show_lines=True)
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Description")
        for t in tools:
            table.add_row(t.name, t.description)
        self.console.print(table)

    def format_models(self, provider: str, models: list[str]) -> None:
        if not models:
            self.console.print(f"[dim]{provider} reported no models.[/dim]")
            return

        table = Table(title=f"Models ({provider})")
        table.add_column("Model", style="cyan", no_wrap=True)
        for m in models:
            table.add_row(m)
        self.console.print(table)

    def format_health(self, provider: str, healthy: bool) -> None:
        status = "[green]OK[/green]" if healthy else "[red]UNREACHABLE[/red]"
        self.console.print(f"  {provider}: {status}")

    def format_config(self, config: dict) -> None:
        config_json = json.dumps(config, indent=2, default=str)
        self.console.print(Syntax(config_json, "json", theme="monokai"))

    def format_error(self, error: Exception) -> None:
        if isinstance(error, CodehError):
            body = f"[bold]{error.code}[/bold]\n{escape(error.message)}"
            if error.context:
                body += f"\n[dim]{escape(json.dumps(error.context, default=str))}[/dim]"
            self.console.print(Panel(body, title="Error", border_style="red"))
        else:
            self.console.print(f"[red]Error:[/red] {escape(str(error))}")


class ProgressRenderer:
    """
    Progress sink that renders orchestration events to the console.

    Stream text is printed as it arrives; tool activity is shown on its own
    dimmed lines.
    """

    def __init__(self, console: Console | None = None, show_tool_output: bool = False) -> None:
        self.console = console or Console()
        self.show_tool_output = show_tool_output
        self._mid_line = False

    def __call__(self, event: OrchestrationEvent) -> None:
        p = event.payload
        if event.event_type == EVENT_CONTENT_DELTA:
            self.console.print(p["text"], end="", markup=False, highlight=False)
            self._mid_line = not p["text"].endswith("\n")
            return

        if event.event_type == EVENT_TOOL_EXECUTING:
            self._break_line()
            args = json.dumps(p["args"], default=str)
            self.console.print(
                f"  [yellow]>[/yellow] [{p['index']}/{p['total']}] "
                f"[bold]{escape(p['name'])}[/bold] [dim]{escape(args[:120])}[/dim]"
            )
        elif event.event_type == EVENT_TOOL_COMPLETED:
            self.console.print(f"    [green]done[/green] {escape(p['name'])}")
            if self.show_tool_output and p["output"]:
                self.console.print(p["output"][:500], markup=False, style="dim")
        elif event.event_type == EVENT_TOOL_FAILED:
            self.console.print(
                f"    [red]failed[/red] {escape(p['name'])}: {escape(p['error'][:200])}"
            )
        elif event.event_type == EVENT_ORCHESTRATION_COMPLETE:
            self._break_line()
            reason = p["reason"]
            if reason == CompletionReason.TRUNCATED:
                self.console.print(
                    "[yellow]Stopped: iteration limit reached. "
                    "Ask again with more specific guidance.[/yellow]"
                )
            elif reason == CompletionReason.CANCELLED:
                self.console.print("[yellow]Cancelled.[/yellow]")

    def _break_line(self) -> None:
        if self._mid_line:
            self.console.print()
            self._mid_line = False
