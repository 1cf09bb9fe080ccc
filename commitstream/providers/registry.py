"""TOML configuration loader.

Loads generation and gateway settings from defaults.toml into the
pydantic config models.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

from pydantic import ValidationError

from commitstream.schemas.config import AppConfig, GatewayConfig, GenerationConfig

# Default config directory relative to the commitstream package
_CONFIG_DIR = Path(__file__).parent.parent / "config"


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load application settings from a TOML file.

    Args:
        config_path: Path to a TOML file. Defaults to commitstream/config/defaults.toml.

    Returns:
        AppConfig with values from the file; missing keys keep their defaults.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If a section is malformed or a value is invalid.
    """
    path = config_path or _CONFIG_DIR / "defaults.toml"
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    with open(path, "rb") as f:
        raw = tomllib.load(f)

    generation_section = raw.get("generation", {})
    gateway_section = raw.get("gateway", {})
    for name, section in (("generation", generation_section), ("gateway", gateway_section)):
        if not isinstance(section, dict):
            raise ValueError(f"[{name}] in {path} must be a table")

    try:
        return AppConfig(
            generation=GenerationConfig(**generation_section),
            gateway=GatewayConfig(**gateway_section),
        )
    except ValidationError as e:
        raise ValueError(f"Invalid configuration in {path}: {e}") from e
