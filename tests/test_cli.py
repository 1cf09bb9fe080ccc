"""Tests for the commitstream CLI.

Covers version/config output, diff input handling, the generate flow
with a stubbed server exchange, and the models listing.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, patch

import httpx
from typer.testing import CliRunner

from commitstream import __version__
from commitstream.cli import app
from commitstream.schemas.generation import (
    GenerateResult,
    Pricing,
    StepResult,
    UsageStats,
)
from commitstream.schemas.streaming import ClientStreamState

# NO_COLOR=1 prevents Rich from injecting ANSI codes inside option names,
# which breaks substring matching in CI (headless, no TTY).
# COLUMNS=200 prevents wrapping that could split a flag across lines.
runner = CliRunner(env={"NO_COLOR": "1", "COLUMNS": "200"})

_RUN = "commitstream.cli._run_generation"


# ── Factories ──────────────────────────────────────────────────────


def _make_result(**step_overrides) -> GenerateResult:
    step = {
        "model": "openai/gpt-4.1-mini",
        "output": "feat(cli): add generate command",
        "reasoning_text": "The diff adds a CLI entry point.",
        "usage": UsageStats(prompt_tokens=321, completion_tokens=12, total_tokens=333),
        "cost": 0.000148,
        "pricing": Pricing(input="0.0000004", output="0.0000016"),
    }
    step.update(step_overrides)
    return GenerateResult(
        commit_message="feat(cli): add generate command",
        step=StepResult(**step),
    )


def _diff_file(tmp_path: Path, text: str = "diff --git a/x.py b/x.py\n+print()\n") -> Path:
    path = tmp_path / "change.diff"
    path.write_text(text, encoding="utf-8")
    return path


class _FakeConsumer:
    """Stands in for StreamConsumer; replays a fixed list of states."""

    def __init__(self, base_url: str, states: list[ClientStreamState]) -> None:
        self.base_url = base_url
        self._states = states
        self.calls: list[tuple[str, str]] = []

    @property
    def state(self) -> ClientStreamState:
        return self._states[-1]

    async def request(self, diff: str, model: str):
        self.calls.append((diff, model))
        for state in self._states:
            yield state

    async def generate(self, diff: str, model: str) -> ClientStreamState:
        self.calls.append((diff, model))
        return self._states[-1]


# ── Global options ─────────────────────────────────────────────────


class TestGlobalOptions:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("generate", "models", "serve", "config"):
            assert command in result.output


# ── config ─────────────────────────────────────────────────────────


class TestConfigCommand:
    def test_shows_defaults(self):
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "openai/gpt-4.1-mini" in result.output
        assert "5,000 tokens" in result.output
        assert "AI_GATEWAY_API_KEY" in result.output

    def test_config_error_exits(self):
        with patch(
            "commitstream.cli.load_config",
            side_effect=ValueError("[generation] must be a table"),
        ):
            result = runner.invoke(app, ["config"])
        assert result.exit_code == 1
        assert "Error loading config" in result.output


# ── generate ───────────────────────────────────────────────────────


class TestGenerateCommand:
    def test_requires_input(self):
        result = runner.invoke(app, ["generate"])
        assert result.exit_code == 1
        assert "--staged" in result.output

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["generate", str(tmp_path / "nope.diff")])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_empty_diff(self, tmp_path):
        path = _diff_file(tmp_path, text="  \n")
        result = runner.invoke(app, ["generate", str(path)])
        assert result.exit_code == 1
        assert "empty" in result.output

    def test_success_prints_result(self, tmp_path):
        state = ClientStreamState(result=_make_result())
        with patch(_RUN, new_callable=AsyncMock, return_value=state) as mock_run:
            result = runner.invoke(
                app, ["generate", str(_diff_file(tmp_path)), "--model", "xai/grok-3"],
            )

        assert result.exit_code == 0, result.output
        assert "feat(cli): add generate command" in result.output
        assert "The diff adds a CLI entry point." in result.output
        assert "gpt-4.1-mini" in result.output
        assert "Cost breakdown" in result.output

        _, diff, model = mock_run.call_args.args
        assert diff.startswith("diff --git")
        assert model == "xai/grok-3"
        assert mock_run.call_args.kwargs == {"stream": True}

    def test_no_pricing_skips_breakdown(self, tmp_path):
        state = ClientStreamState(result=_make_result(pricing=None, reasoning_text=None))
        with patch(_RUN, new_callable=AsyncMock, return_value=state):
            result = runner.invoke(app, ["generate", str(_diff_file(tmp_path)), "-m", "m"])

        assert result.exit_code == 0
        assert "Cost breakdown" not in result.output
        assert "Reasoning" not in result.output

    def test_default_model_from_config(self, tmp_path):
        state = ClientStreamState(result=_make_result())
        with patch(_RUN, new_callable=AsyncMock, return_value=state) as mock_run:
            runner.invoke(app, ["generate", str(_diff_file(tmp_path))])
        assert mock_run.call_args.args[2] == "openai/gpt-4.1-mini"

    def test_error_state_exits(self, tmp_path):
        state = ClientStreamState(error="No diff provided")
        with patch(_RUN, new_callable=AsyncMock, return_value=state):
            result = runner.invoke(app, ["generate", str(_diff_file(tmp_path)), "-m", "m"])

        assert result.exit_code == 1
        assert "No diff provided" in result.output

    def test_stdin(self):
        state = ClientStreamState(result=_make_result())
        with patch(_RUN, new_callable=AsyncMock, return_value=state) as mock_run:
            result = runner.invoke(app, ["generate", "-", "-m", "m"], input="diff from stdin\n")

        assert result.exit_code == 0
        assert mock_run.call_args.args[1] == "diff from stdin\n"

    def test_server_from_environment(self, tmp_path):
        state = ClientStreamState(result=_make_result())
        with (
            patch(_RUN, new_callable=AsyncMock, return_value=state) as mock_run,
            patch.dict("os.environ", {"COMMITSTREAM_SERVER_URL": "http://remote:9000"}),
        ):
            runner.invoke(app, ["generate", str(_diff_file(tmp_path)), "-m", "m"])

        consumer = mock_run.call_args.args[0]
        assert consumer._url == "http://remote:9000/api/generate"

    def test_streamed_states_reach_final_display(self, tmp_path):
        states = [
            ClientStreamState.started(),
            ClientStreamState(loading=True, streaming_text="feat(cli): "),
            ClientStreamState(loading=False, result=_make_result()),
        ]
        created: list[_FakeConsumer] = []

        def factory(base_url: str) -> _FakeConsumer:
            consumer = _FakeConsumer(base_url, states)
            created.append(consumer)
            return consumer

        with patch("commitstream.cli.StreamConsumer", side_effect=factory):
            result = runner.invoke(
                app, ["generate", str(_diff_file(tmp_path)), "-m", "m", "-s", "http://s"],
            )

        assert result.exit_code == 0, result.output
        assert "Commit Message" in result.output
        assert created[0].base_url == "http://s"
        assert created[0].calls[0][1] == "m"

    def test_no_stream_uses_single_result(self, tmp_path):
        states = [ClientStreamState(result=_make_result())]
        with patch(
            "commitstream.cli.StreamConsumer",
            side_effect=lambda url: _FakeConsumer(url, states),
        ):
            result = runner.invoke(
                app, ["generate", str(_diff_file(tmp_path)), "-m", "m", "--no-stream"],
            )

        assert result.exit_code == 0, result.output
        assert "feat(cli): add generate command" in result.output


# ── models ─────────────────────────────────────────────────────────


class TestModelsCommand:
    def _response(self, status: int, payload) -> httpx.Response:
        return httpx.Response(
            status, json=payload,
            request=httpx.Request("GET", "http://localhost:8421/api/models"),
        )

    def test_lists_models(self):
        payload = [
            {"id": "openai/gpt-4.1-mini", "name": "GPT-4.1 mini",
             "pricing": {"input": "0.0000004", "output": "0.0000016"}},
            {"id": "xai/grok-3", "name": "Grok 3"},
        ]
        with patch("commitstream.cli.httpx.get", return_value=self._response(200, payload)) as get:
            result = runner.invoke(app, ["models"])

        assert result.exit_code == 0, result.output
        assert "openai/gpt-4.1-mini" in result.output
        assert "$0.40" in result.output
        assert get.call_args.args[0].endswith("/api/models")

    def test_empty_catalog(self):
        with patch("commitstream.cli.httpx.get", return_value=self._response(200, [])):
            result = runner.invoke(app, ["models"])
        assert result.exit_code == 0
        assert "No models available" in result.output

    def test_server_error(self):
        with patch(
            "commitstream.cli.httpx.get",
            return_value=self._response(502, {"detail": "Model catalog unavailable"}),
        ):
            result = runner.invoke(app, ["models"])
        assert result.exit_code == 1
        assert "could not list models" in result.output

    def test_server_unreachable(self):
        with patch("commitstream.cli.httpx.get", side_effect=httpx.ConnectError("refused")):
            result = runner.invoke(app, ["models", "--server", "http://nowhere"])
        assert result.exit_code == 1
        assert "refused" in result.output
