"""Rich rendering for the terminal client.

Builds the live streaming view (reasoning + commit message panels) from
a ClientStreamState, and the usage/cost tables shown once a result lands.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from commitstream.schemas.generation import ModelInfo, Pricing, StepResult
from commitstream.schemas.streaming import ClientStreamState

_NO_VALUE = "—"

# Keep the live reasoning panel to a readable tail
_REASONING_TAIL_LINES = 12


def short_model_name(model: str) -> str:
    """Drop the provider prefix: 'openai/gpt-4.1-mini' -> 'gpt-4.1-mini'."""
    return model.split("/", 1)[1] if "/" in model else model


def format_cost(cost: float | Decimal | None) -> str:
    if cost is None:
        return _NO_VALUE
    return f"${float(cost):.6f}"


def format_cache(step: StepResult) -> str:
    """'read / write' cache tokens, or a dash when the provider reported neither."""
    usage = step.usage
    if usage.cache_read_tokens is None and usage.cache_write_tokens is None:
        return _NO_VALUE
    return f"{usage.cache_read_tokens or 0:,} / {usage.cache_write_tokens or 0:,}"


def _rate(value: str) -> Decimal | None:
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError):
        return None


def split_cost(step: StepResult) -> tuple[Decimal | None, Decimal | None]:
    """Input and output cost derived from the step's per-token pricing."""
    if step.pricing is None:
        return None, None
    input_rate = _rate(step.pricing.input)
    output_rate = _rate(step.pricing.output)
    input_cost = input_rate * step.usage.prompt_tokens if input_rate is not None else None
    output_cost = output_rate * step.usage.completion_tokens if output_rate is not None else None
    return input_cost, output_cost


def per_million(pricing: Pricing | None) -> tuple[str, str]:
    """Format per-token rates as USD per 1M tokens."""
    if pricing is None:
        return _NO_VALUE, _NO_VALUE

    def _fmt(value: str) -> str:
        rate = _rate(value)
        return f"${rate * 1_000_000:.2f}" if rate is not None else _NO_VALUE

    return _fmt(pricing.input), _fmt(pricing.output)


def _tail(text: str, lines: int) -> str:
    parts = text.splitlines()
    return "\n".join(parts[-lines:])


def render_stream_state(state: ClientStreamState) -> RenderableType:
    """Live view of an in-flight request."""
    panels: list[RenderableType] = []

    if state.streaming_reasoning:
        panels.append(Panel(
            Text(_tail(state.streaming_reasoning, _REASONING_TAIL_LINES), style="dim"),
            title="[bold]Reasoning[/bold]",
            border_style="dim",
        ))

    if state.streaming_text:
        panels.append(Panel(
            Text(state.streaming_text),
            title="[bold]Commit Message[/bold]",
            border_style="green",
        ))

    if not panels:
        label = "Waiting for model..." if state.loading else ""
        panels.append(Text(label, style="dim"))

    return Group(*panels)


def build_metadata_table(step: StepResult) -> Table:
    """One-row grid: model, tokens, cache, total cost."""
    table = Table(title="Usage", show_lines=False)
    table.add_column("Model", style="bold")
    table.add_column("Input", justify="right")
    table.add_column("Output", justify="right")
    table.add_column("Cache R/W", justify="right")
    table.add_column("Cost", justify="right")

    table.add_row(
        short_model_name(step.model),
        f"{step.usage.prompt_tokens:,}",
        f"{step.usage.completion_tokens:,}",
        format_cache(step),
        format_cost(step.cost),
    )
    return table


def build_cost_breakdown(step: StepResult) -> Table:
    """Per-direction cost derived from pricing, with the provider total."""
    input_cost, output_cost = split_cost(step)

    table = Table(title="Cost breakdown")
    table.add_column("Model", style="bold")
    table.add_column("Tokens", justify="right")
    table.add_column("Cost", justify="right")

    table.add_row(
        short_model_name(step.model),
        f"{step.usage.prompt_tokens:,} in",
        format_cost(input_cost),
    )
    table.add_row("", f"{step.usage.completion_tokens:,} out", format_cost(output_cost))
    table.add_row(
        "",
        f"[bold]{step.usage.total_tokens:,} total[/bold]",
        f"[bold]{format_cost(step.cost)}[/bold]",
    )
    return table


def build_models_table(models: list[ModelInfo]) -> Table:
    table = Table(title="Available Models")
    table.add_column("ID", style="bold")
    table.add_column("Name")
    table.add_column("Input $/1M", justify="right")
    table.add_column("Output $/1M", justify="right")

    for info in models:
        input_rate, output_rate = per_million(info.pricing)
        table.add_row(info.id, info.name, input_rate, output_rate)
    return table
