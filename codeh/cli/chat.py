"""Interactive chat session handler."""

from __future__ import annotations

import asyncio

from rich.console import Console

from codeh.cli.output import OutputFormatter
from codeh.llm.client import ChatClient
from codeh.orchestrator.core import Orchestrator


class ChatHandler:
    """
    Manages the interactive chat loop.

    Handles streaming output and inline commands.  Output is rendered by the
    orchestrator's progress sink; this class only drives input.
    """

    def __init__(
        self,
        orchestrator: Orchestrator,
        client: ChatClient,
        console: Console | None = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.client = client
        self.console = console or Console()
        self.formatter = OutputFormatter(self.console)
        self._running = True

    async def handle_command(self, command: str) -> bool:
        """
        Handle inline commands. Returns True if the command was handled.
        """
        parts = command.strip().split(None, 1)
        cmd = parts[0].lower()

        if cmd in ("/quit", "/exit"):
            self._running = False
            self.console.print("[dim]Goodbye.[/dim]")
            return True

        if cmd == "/models":
            models = await self.client.available_models()
            self.formatter.format_models(self.client.provider_name, models)
            return True

        if cmd == "/clear":
            self.orchestrator.history.clear()
            self.console.print("  [dim]Conversation cleared.[/dim]")
            return True

        if cmd == "/help":
            self.console.print(
                "  [bold]Commands:[/bold]\n"
                "  /models   - List models offered by the provider\n"
                "  /clear    - Forget the conversation so far\n"
                "  /quit     - Exit the chat\n"
                "  /help     - Show this help\n"
            )
            return True

        return False

    async def handle_input(self, user_input: str) -> bool:
        """Run *user_input* through the orchestrator.  Returns False on error."""
        try:
            await self.orchestrator.run(user_input)
        except Exception as e:
            self.console.print()
            self.formatter.format_error(e)
            return False
        self.console.print()
        return True

    async def run_loop(self) -> None:
        """Main interactive loop."""
        self.console.print(
            f"[bold]codeh[/bold] - {self.client.provider_name}\n"
            "[dim]Type /help for commands, /quit to exit.[/dim]\n"
        )

        loop = asyncio.get_running_loop()
        while self._running:
            try:
                user_input = await loop.run_in_executor(
                    None, lambda: input("you> ").strip()
                )
            except (EOFError, KeyboardInterrupt):
                self.console.print("\n[dim]Goodbye.[/dim]")
                break

            if not user_input:
                continue

            if user_input.startswith("/"):
                handled = await self.handle_command(user_input)
                if handled:
                    continue

            self.console.print("[dim]assistant>[/dim] ", end="")
            await self.handle_input(user_input)
