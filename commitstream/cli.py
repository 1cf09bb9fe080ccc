"""commitstream CLI — Typer + Rich terminal interface.

Commands: generate, models, serve, config.
"""

from __future__ import annotations

import asyncio
import logging
import os
import subprocess
import sys
from pathlib import Path

import httpx
import typer
from rich.console import Console
from rich.live import Live
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from commitstream import __version__
from commitstream.display import (
    build_cost_breakdown,
    build_metadata_table,
    build_models_table,
    render_stream_state,
)
from commitstream.keys import load_keys_env
from commitstream.providers.registry import load_config
from commitstream.schemas.generation import ModelInfo
from commitstream.schemas.streaming import ClientStreamState
from commitstream.streaming.consumer import DEFAULT_SERVER_URL, StreamConsumer

# Load API keys from ~/.commitstream/keys.env and .env on startup
load_keys_env()

console = Console()

_DEFAULT_PORT = 8421

app = typer.Typer(
    name="commitstream",
    help="Generate conventional commit messages from diffs, streamed live.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Callbacks ────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"commitstream {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Enable debug logging.",
    ),
) -> None:
    """commitstream — streamed conventional-commit generation."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


# ── Helpers ──────────────────────────────────────────────────────


def _server_url(server: str | None) -> str:
    return server or os.environ.get("COMMITSTREAM_SERVER_URL", DEFAULT_SERVER_URL)


def _load_config():
    """Load settings, exit on error."""
    try:
        return load_config()
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1) from None


def _read_diff(diff_file: str | None, staged: bool) -> str:
    """Read the diff from git, stdin, or a file."""
    if staged:
        try:
            completed = subprocess.run(
                ["git", "diff", "--cached"],
                capture_output=True, text=True, check=True,
            )
        except (OSError, subprocess.CalledProcessError) as e:
            console.print(f"[red]Error:[/red] could not read staged changes: {e}")
            raise typer.Exit(1) from None
        return completed.stdout

    if diff_file is None:
        console.print("[red]Error:[/red] pass a diff file, '-' for stdin, or --staged.")
        raise typer.Exit(1)

    if diff_file == "-":
        return sys.stdin.read()

    path = Path(diff_file)
    if not path.is_file():
        console.print(f"[red]Error:[/red] diff file not found: {path}")
        raise typer.Exit(1)
    return path.read_text(encoding="utf-8", errors="replace")


async def _run_generation(
    consumer: StreamConsumer, diff: str, model: str, stream: bool
) -> ClientStreamState:
    if not stream:
        with console.status("Generating commit message..."):
            return await consumer.generate(diff, model)

    with Live(
        render_stream_state(ClientStreamState.started()),
        console=console,
        refresh_per_second=12,
        transient=True,
    ) as live:
        async for state in consumer.request(diff, model):
            live.update(render_stream_state(state))
    return consumer.state


def _display_result(state: ClientStreamState) -> None:
    result = state.result
    if result is None:
        return

    step = result.step
    if step.reasoning_text:
        console.print(Panel(
            step.reasoning_text,
            title="[bold]Reasoning[/bold]",
            border_style="dim",
        ))
    console.print(Panel(
        result.commit_message,
        title="[bold green]Commit Message[/bold green]",
        border_style="green",
    ))
    console.print(build_metadata_table(step))
    if step.pricing is not None:
        console.print(build_cost_breakdown(step))


# ── commitstream generate ────────────────────────────────────────


@app.command()
def generate(
    diff_file: str = typer.Argument(
        None, help="Diff file to describe, or '-' to read stdin",
    ),
    model: str = typer.Option(
        None, "--model", "-m",
        help="Gateway model id (default from config)",
    ),
    server: str = typer.Option(
        None, "--server", "-s",
        help="commitstream server URL (default $COMMITSTREAM_SERVER_URL)",
    ),
    staged: bool = typer.Option(
        False, "--staged",
        help="Describe the staged changes (git diff --cached)",
    ),
    no_stream: bool = typer.Option(
        False, "--no-stream",
        help="Only show the final result",
    ),
) -> None:
    """Generate a commit message for a diff."""
    diff = _read_diff(diff_file, staged)
    if not diff.strip():
        console.print("[yellow]Nothing to describe:[/yellow] the diff is empty.")
        raise typer.Exit(1)

    model = model or _load_config().generation.default_model
    consumer = StreamConsumer(_server_url(server))

    try:
        state = asyncio.run(_run_generation(consumer, diff, model, stream=not no_stream))
    except KeyboardInterrupt:
        console.print("[yellow]Cancelled.[/yellow]")
        raise typer.Exit(130) from None

    if state.error:
        console.print(f"[red]Error:[/red] {state.error}")
        raise typer.Exit(1)
    _display_result(state)


# ── commitstream models ──────────────────────────────────────────


@app.command()
def models(
    server: str = typer.Option(
        None, "--server", "-s",
        help="commitstream server URL (default $COMMITSTREAM_SERVER_URL)",
    ),
) -> None:
    """List models available through the server's gateway."""
    url = f"{_server_url(server).rstrip('/')}/api/models"
    try:
        response = httpx.get(url, timeout=15.0)
        response.raise_for_status()
    except httpx.HTTPError as e:
        console.print(f"[red]Error:[/red] could not list models: {e}")
        raise typer.Exit(1) from None

    entries = [ModelInfo.model_validate(item) for item in response.json()]
    if not entries:
        console.print("[yellow]No models available.[/yellow]")
        return
    console.print(build_models_table(entries))


# ── commitstream config ──────────────────────────────────────────


@app.command()
def config() -> None:
    """Show the loaded generation configuration."""
    cfg = _load_config()

    table = Table(title="Configuration")
    table.add_column("Setting", style="bold")
    table.add_column("Value")

    gen = cfg.generation
    table.add_row("Default model", gen.default_model)
    table.add_row("Fallback models", ", ".join(gen.fallback_models) or "—")
    table.add_row("Anthropic thinking budget", f"{gen.anthropic_thinking_budget:,} tokens")
    table.add_row("OpenAI reasoning effort", str(gen.openai_reasoning_effort))
    table.add_row("Timeout", f"{gen.timeout}s")
    table.add_row("Model prefix", gen.model_prefix or "—")
    table.add_row("Gateway", cfg.gateway.base_url)
    table.add_row("Gateway key", cfg.gateway.api_key_env)
    table.add_row("Pricing", "enabled" if cfg.gateway.pricing_enabled else "disabled")

    console.print(table)


# ── commitstream serve ───────────────────────────────────────────


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind"),
    port: int = typer.Option(_DEFAULT_PORT, "--port", "-p", help="Port to listen on"),
) -> None:
    """Run the generation server."""
    import uvicorn

    from commitstream.server import create_app

    app_instance = create_app(_load_config())

    console.print(Panel(
        f"[bold]URL:[/bold] http://{host}:{port}\n"
        f"[bold]Generate:[/bold] POST /api/generate\n"
        f"[bold]Models:[/bold] GET /api/models",
        title="[bold blue]commitstream server[/bold blue]",
        border_style="blue",
    ))
    uvicorn.run(app_instance, host=host, port=port, log_level="warning")


# ── Entry point ──────────────────────────────────────────────────

if __name__ == "__main__":
    app()
