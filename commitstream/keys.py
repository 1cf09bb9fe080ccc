"""API key loading for commitstream.

Keys are loaded with this priority:
  1. Environment variables (highest — already set in shell)
  2. ~/.commitstream/keys.env (user-level keys)
  3. .env in current directory (project-level)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

# Directory for user-level configuration
COMMITSTREAM_HOME = Path.home() / ".commitstream"
KEYS_FILE = COMMITSTREAM_HOME / "keys.env"


def load_keys_env(files: list[Path] | None = None) -> None:
    """Load API keys from env files into os.environ.

    Existing env vars are NOT overwritten, and earlier files win over
    later ones.
    """
    for env_file in files or [KEYS_FILE, Path.cwd() / ".env"]:
        if env_file.is_file():
            _load_env_file(env_file)


def _load_env_file(path: Path) -> None:
    """Parse a simple KEY=VALUE .env file and set vars that aren't already set."""
    try:
        for line in path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip().strip("'\"")
            if key and not os.environ.get(key):
                os.environ[key] = value
                logger.debug("Loaded %s from %s", key, path)
    except OSError:
        logger.debug("Could not read %s", path)


def get_api_key(env_var: str) -> str:
    """Return the key stored in ``env_var`` after loading env files, or ''."""
    load_keys_env()
    return os.environ.get(env_var, "")
