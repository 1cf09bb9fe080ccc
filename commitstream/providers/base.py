"""Abstract contracts for the external collaborators of the stream bridge.

The producer talks to the model backend exclusively through
InferenceService / InferenceStream, and to pricing metadata through
PricingLookup. It never imports a provider SDK directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from commitstream.schemas.generation import Pricing


class InferenceEventKind(StrEnum):
    """Kinds of incremental events an inference stream can produce.

    Only the two delta kinds are forwarded to clients. Anything else is
    tolerated and dropped by the producer.
    """

    REASONING_DELTA = "reasoning-delta"
    TEXT_DELTA = "text-delta"
    TOOL_CALL_DELTA = "tool-call-delta"
    FINISH = "finish"


@dataclass(frozen=True)
class InferenceEvent:
    """One incremental event from the backend."""

    type: str
    text: str = ""


@dataclass(frozen=True)
class InferenceRequest:
    """Everything the backend needs to start a generation."""

    model: str
    system_prompt: str
    user_prompt: str
    provider_options: dict[str, Any] = field(default_factory=dict)


class InferenceUsage(BaseModel):
    """Raw usage counters as the backend reports them; any may be missing."""

    input_tokens: int | None = Field(default=None, ge=0)
    output_tokens: int | None = Field(default=None, ge=0)
    total_tokens: int | None = Field(default=None, ge=0)
    cache_read_tokens: int | None = Field(default=None, ge=0)
    cache_write_tokens: int | None = Field(default=None, ge=0)


class ProviderMetadata(BaseModel):
    """Provider-reported facts about the finished generation."""

    resolved_model: str | None = Field(
        default=None, description="Model the provider actually served"
    )
    cost: float | None = Field(default=None, ge=0.0, description="Computed USD cost")


class InferenceStream(ABC):
    """An in-flight generation.

    Iterate it to receive InferenceEvents in order. The finalize
    accessors are valid once iteration has finished; they are
    independent and may be awaited concurrently.
    """

    @abstractmethod
    def __aiter__(self) -> AsyncIterator[InferenceEvent]:
        """Yield incremental events until the generation ends."""

    @abstractmethod
    async def text(self) -> str:
        """Full answer text."""

    @abstractmethod
    async def reasoning_text(self) -> str | None:
        """Full reasoning text, or None if the model produced none."""

    @abstractmethod
    async def usage(self) -> InferenceUsage:
        """Token usage for the whole generation."""

    @abstractmethod
    async def provider_metadata(self) -> ProviderMetadata:
        """Resolved model id and cost."""

    async def aclose(self) -> None:
        """Release the underlying connection. Safe to call more than once."""


class InferenceService(ABC):
    """A backend that can stream a generation."""

    @abstractmethod
    async def open_stream(self, request: InferenceRequest) -> InferenceStream:
        """Start a generation and return its stream.

        Raises:
            TimeoutError: If the backend does not answer in time.
            RuntimeError: If the request fails after all retries.
        """


class PricingUnavailable(Exception):
    """Raised when pricing for a model cannot be determined."""


class PricingLookup(ABC):
    """Source of per-token rates keyed by resolved model id."""

    @abstractmethod
    async def get_pricing(self, model_id: str) -> Pricing:
        """Return the rates for a model.

        Raises:
            PricingUnavailable: On any lookup failure.
        """
