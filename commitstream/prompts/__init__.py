"""Prompt template loader.

Loads Markdown prompt templates from the prompts/ directory and renders
them with Jinja2 variable substitution.
"""

from __future__ import annotations

from pathlib import Path

from jinja2 import BaseLoader, Environment

# Directory containing the .md prompt template files
_PROMPTS_DIR = Path(__file__).parent

COMMIT_TYPES = (
    "feat", "fix", "refactor", "docs", "style",
    "test", "chore", "perf", "ci", "build",
)


def render_prompt(template_name: str, **variables: object) -> str:
    """Load a prompt template and render it with Jinja2 variables.

    Args:
        template_name: Name of the template file (without .md extension).
        **variables: Template variables to inject.

    Returns:
        The fully rendered prompt string.

    Raises:
        FileNotFoundError: If the template file does not exist.
    """
    path = _PROMPTS_DIR / f"{template_name}.md"
    if not path.exists():
        raise FileNotFoundError(f"Prompt template not found: {path}")

    template_text = path.read_text(encoding="utf-8")
    env = Environment(loader=BaseLoader(), keep_trailing_newline=False)
    return env.from_string(template_text).render(**variables)


def commit_system_prompt() -> str:
    """System prompt for conventional-commit generation."""
    return render_prompt(
        "commit_message",
        types=COMMIT_TYPES,
        max_subject_length=72,
    )
