"""Pydantic schemas shared by the server, the client and the CLI."""

from commitstream.schemas.config import AppConfig, GatewayConfig, GenerationConfig
from commitstream.schemas.frames import (
    DoneFrame,
    ErrorFrame,
    FrameType,
    ProtocolFrame,
    ReasoningDelta,
    TextDelta,
)
from commitstream.schemas.generation import (
    GenerateResult,
    GenerationRequest,
    ModelInfo,
    Pricing,
    StepResult,
    UsageStats,
)
from commitstream.schemas.streaming import ClientStreamState

__all__ = [
    "AppConfig",
    "ClientStreamState",
    "DoneFrame",
    "ErrorFrame",
    "FrameType",
    "GatewayConfig",
    "GenerateResult",
    "GenerationConfig",
    "GenerationRequest",
    "ModelInfo",
    "Pricing",
    "ProtocolFrame",
    "ReasoningDelta",
    "StepResult",
    "TextDelta",
    "UsageStats",
]
