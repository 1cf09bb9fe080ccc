"""Client-side streaming state.

Defines the ClientStreamState snapshot the consumer yields after every
frame it applies. Snapshots are immutable; the reducer returns a new one.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from commitstream.schemas.generation import GenerateResult


class ClientStreamState(BaseModel):
    """Observable state of one request/stream cycle."""

    model_config = ConfigDict(frozen=True)

    loading: bool = Field(default=False, description="True while a request is in flight")
    error: str = Field(default="", description="Last error message, empty if none")
    result: GenerateResult | None = Field(
        default=None, description="Final result once a done frame arrives"
    )
    streaming_reasoning: str = Field(
        default="", description="Reasoning text accumulated so far"
    )
    streaming_text: str = Field(default="", description="Answer text accumulated so far")

    @classmethod
    def started(cls) -> ClientStreamState:
        """State at the very start of a request."""
        return cls(loading=True)
