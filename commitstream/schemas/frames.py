"""Protocol frames exchanged between the stream producer and consumer.

Every frame is a JSON object tagged by ``type``. Delta frames carry
incremental text for one of the two channels; ``done`` and ``error`` are
terminal and always the last frame of a response.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Literal

from pydantic import Field, TypeAdapter

from commitstream.schemas.generation import StepResult, WireModel


class FrameType(StrEnum):
    """Frame tags used on the wire."""

    REASONING_DELTA = "reasoning-delta"
    TEXT_DELTA = "text-delta"
    DONE = "done"
    ERROR = "error"


class ReasoningDelta(WireModel):
    """Incremental reasoning text."""

    type: Literal["reasoning-delta"] = "reasoning-delta"
    text: str


class TextDelta(WireModel):
    """Incremental answer text."""

    type: Literal["text-delta"] = "text-delta"
    text: str


class DoneFrame(WireModel):
    """Terminal success: the full commit message and its step summary."""

    type: Literal["done"] = "done"
    commit_message: str
    step: StepResult


class ErrorFrame(WireModel):
    """Terminal failure."""

    type: Literal["error"] = "error"
    message: str


ProtocolFrame = Annotated[
    ReasoningDelta | TextDelta | DoneFrame | ErrorFrame,
    Field(discriminator="type"),
]

_FRAME_ADAPTER: TypeAdapter[ProtocolFrame] = TypeAdapter(ProtocolFrame)

TERMINAL_TYPES = frozenset({FrameType.DONE, FrameType.ERROR})


def frame_from_record(record: dict) -> ProtocolFrame:
    """Validate a decoded JSON record into its typed frame.

    Raises:
        pydantic.ValidationError: If the tag is unknown or fields are invalid.
    """
    return _FRAME_ADAPTER.validate_python(record)


def is_terminal(frame_type: str | None) -> bool:
    """Whether a frame with this ``type`` tag ends the stream."""
    return frame_type in TERMINAL_TYPES
