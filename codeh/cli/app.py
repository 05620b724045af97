"""
Main CLI application for codeh.

Usage:
    codeh chat [PROMPT] [--provider NAME] [--model NAME] [--profile NAME]
    codeh models
    codeh health
    codeh tools list
    codeh config show|validate
    codeh version
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console

from codeh.config import DEFAULT_CONFIG_PATH, CodehConfig, load_config
from codeh.errors import CodehError
from codeh.tracing import TraceSession, configure_logging

app = typer.Typer(name="codeh", help="codeh - AI coding assistant")
tools_app = typer.Typer(help="Tool management")
config_app = typer.Typer(help="Configuration management")

app.add_typer(tools_app, name="tools")
app.add_typer(config_app, name="config")

console = Console()

__version__ = "0.1.0"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _get_config_path() -> Path | None:
    """Find config file in standard locations."""
    candidates = [
        Path.cwd() / "codeh.yaml",
        Path.cwd() / "codeh.yml",
        Path.home() / ".config" / "codeh" / "config.yaml",
        Path(DEFAULT_CONFIG_PATH).expanduser(),
    ]
    for p in candidates:
        if p.is_file():
            return p
    return None


def _load(
    provider: str | None = None,
    model: str | None = None,
    base_url: str | None = None,
    profile: str | None = None,
    extra: dict[str, Any] | None = None,
) -> CodehConfig:
    overrides: dict[str, Any] = {
        "llm.provider": provider,
        "llm.model": model,
        "llm.base_url": base_url,
    }
    overrides.update(extra or {})
    try:
        return load_config(_get_config_path(), profile=profile, cli_overrides=overrides)
    except CodehError as e:
        _fail(e)


def _setup_logging(cfg: CodehConfig, session_id: str | None, verbose: bool) -> TraceSession:
    """Create the process trace session, bind it, then attach handlers."""
    trace = TraceSession(cfg.logging.log_dir)
    if session_id:
        trace.bind(session_id)
    configure_logging(cfg.logging, trace, verbose=verbose)
    return trace


def _fail(error: Exception) -> None:
    from codeh.cli.output import OutputFormatter

    OutputFormatter(console).format_error(error)
    raise typer.Exit(1)


def _build_registry(cfg: CodehConfig):
    from codeh.tools.registry import ToolRegistry

    registry = ToolRegistry()
    registry.load_plugins(disabled=set(cfg.tools.disabled))
    return registry


def _build_client(cfg: CodehConfig):
    from codeh.llm.client import ChatClient

    try:
        return ChatClient(cfg.llm)
    except CodehError as e:
        _fail(e)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

ProviderOpt = typer.Option(None, "--provider", "-p", help="anthropic, openai, ollama or generic")
ModelOpt = typer.Option(None, "--model", "-m", help="Model identifier")
BaseUrlOpt = typer.Option(None, "--base-url", help="API base URL")
ProfileOpt = typer.Option(None, "--profile", help="Config profile name")
VerboseOpt = typer.Option(False, "--verbose", "-v", help="Log to the console")


@app.command()
def chat(
    prompt: Optional[str] = typer.Argument(None, help="One-shot prompt; omit for a REPL"),
    provider: Optional[str] = ProviderOpt,
    model: Optional[str] = ModelOpt,
    base_url: Optional[str] = BaseUrlOpt,
    profile: Optional[str] = ProfileOpt,
    session: Optional[str] = typer.Option(None, "--session", help="Session ID for the trace file"),
    max_iterations: Optional[int] = typer.Option(None, "--max-iterations", help="Tool loop limit"),
    verbose: bool = VerboseOpt,
):
    """Chat with the model; tools contributed by plugins are available."""
    from codeh.cli.chat import ChatHandler
    from codeh.cli.output import ProgressRenderer
    from codeh.orchestrator.core import Orchestrator
    from codeh.tools.registry import RegistryToolExecutor

    cfg = _load(provider, model, base_url, profile, {"agent.max_iterations": max_iterations})
    _setup_logging(cfg, session, verbose)

    client = _build_client(cfg)
    registry = _build_registry(cfg)
    orchestrator = Orchestrator(
        client=client,
        executor=RegistryToolExecutor(registry),
        tools=registry.to_specs(),
        system_prompt=cfg.agent.system_prompt,
        max_iterations=cfg.agent.max_iterations,
        on_progress=ProgressRenderer(console),
    )
    handler = ChatHandler(orchestrator, client, console)

    if prompt:
        ok = asyncio.run(handler.handle_input(prompt))
        if not ok:
            raise typer.Exit(1)
        return

    asyncio.run(handler.run_loop())


@app.command()
def models(
    provider: Optional[str] = ProviderOpt,
    base_url: Optional[str] = BaseUrlOpt,
    profile: Optional[str] = ProfileOpt,
    verbose: bool = VerboseOpt,
):
    """List models offered by the provider."""
    from codeh.cli.output import OutputFormatter

    cfg = _load(provider, None, base_url, profile)
    _setup_logging(cfg, None, verbose)
    client = _build_client(cfg)
    found = asyncio.run(client.available_models())
    OutputFormatter(console).format_models(client.provider_name, found)


@app.command()
def health(
    provider: Optional[str] = ProviderOpt,
    model: Optional[str] = ModelOpt,
    base_url: Optional[str] = BaseUrlOpt,
    profile: Optional[str] = ProfileOpt,
    verbose: bool = VerboseOpt,
):
    """Check that the provider answers."""
    from codeh.cli.output import OutputFormatter

    cfg = _load(provider, model, base_url, profile)
    _setup_logging(cfg, None, verbose)
    client = _build_client(cfg)
    healthy = asyncio.run(client.health_check())
    OutputFormatter(console).format_health(client.provider_name, healthy)
    if not healthy:
        raise typer.Exit(1)


@tools_app.command("list")
def tools_list(profile: Optional[str] = ProfileOpt):
    """List tools contributed by installed plugins."""
    from codeh.cli.output import OutputFormatter

    cfg = _load(profile=profile)
    OutputFormatter(console).format_tool_list(_build_registry(cfg).list())


@config_app.command("show")
def config_show(profile: Optional[str] = ProfileOpt):
    """Show effective config (API keys redacted)."""
    from codeh.cli.output import OutputFormatter

    cfg = _load(profile=profile)
    OutputFormatter(console).format_config(cfg.to_dict())


@config_app.command("validate")
def config_validate(profile: Optional[str] = ProfileOpt):
    """Validate config and check that the provider can be constructed."""
    from codeh.llm.client import create_provider

    config_path = _get_config_path()
    cfg = _load(profile=profile)
    try:
        create_provider(cfg.llm)
    except CodehError as e:
        _fail(e)

    console.print("[green]Config is valid.[/green]")
    if config_path:
        console.print(f"  Loaded from: {config_path}")
    else:
        console.print("  [dim]No config file found, using defaults.[/dim]")
    console.print(f"  LLM provider: {cfg.llm.provider} ({cfg.llm.model or 'default model'})")
    console.print(f"  Max iterations: {cfg.agent.max_iterations}")
    console.print(f"  Trace logging: {cfg.logging.enabled}")


@app.command()
def version():
    """Show version."""
    console.print(f"codeh-core v{__version__}")


def main():
    app()


if __name__ == "__main__":
    main()
