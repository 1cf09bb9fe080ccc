"""Generation request and result schemas.

Defines the request envelope sent by the client, the token usage record
reported by the provider, and the StepResult assembled once the model
stream has finished. Wire names are camelCase; attributes are snake_case.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for every record that travels over the wire.

    Serializes with camelCase aliases and accepts either spelling on input.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_wire(self) -> dict:
        """Dump to a JSON-ready dict, dropping absent optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class GenerationRequest(WireModel):
    """A single commit-message generation request."""

    diff: str = Field(default="", description="Source-code diff to describe")
    model: str = Field(default="", description="Gateway model identifier")


class UsageStats(WireModel):
    """Token accounting for one generation.

    Cache counters stay None when the provider did not report them;
    they are never coerced to zero.
    """

    prompt_tokens: int = Field(default=0, ge=0, description="Input tokens consumed")
    completion_tokens: int = Field(default=0, ge=0, description="Output tokens generated")
    total_tokens: int = Field(default=0, ge=0, description="Input plus output tokens")
    cache_read_tokens: int | None = Field(
        default=None, ge=0, description="Tokens served from the prompt cache"
    )
    cache_write_tokens: int | None = Field(
        default=None, ge=0, description="Tokens written to the prompt cache"
    )


class Pricing(WireModel):
    """Per-token USD rates as reported by the gateway (decimal strings)."""

    input: str = Field(description="USD per input token")
    output: str = Field(description="USD per output token")


class StepResult(WireModel):
    """Summary of a finished generation step."""

    model: str = Field(description="Model the provider actually served")
    output: str = Field(description="Full answer text")
    reasoning_text: str | None = Field(
        default=None, description="Full reasoning text, when the model produced any"
    )
    usage: UsageStats = Field(default_factory=UsageStats)
    cost: float | None = Field(default=None, ge=0.0, description="Provider-computed USD cost")
    pricing: Pricing | None = Field(default=None, description="Rates used for the cost breakdown")


class GenerateResult(WireModel):
    """Client-side record built from a terminal ``done`` frame."""

    commit_message: str
    step: StepResult


class ModelInfo(WireModel):
    """One entry of the gateway model catalog."""

    id: str
    name: str
    pricing: Pricing | None = None
