"""commitstream — streamed conventional-commit generation."""

__version__ = "0.1.0"
