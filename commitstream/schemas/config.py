"""Configuration schemas for generation and the model gateway.

Loaded from defaults.toml by the registry. Values here are forwarded to
the provider as policy hints and are not interpreted by the bridge.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field


class ReasoningEffort(StrEnum):
    """Qualitative reasoning levels accepted by OpenAI reasoning models."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class GenerationConfig(BaseModel):
    """Inference settings applied to every generation request."""

    default_model: str = Field(
        default="openai/gpt-4.1-mini", description="Model used when the client sends none"
    )
    fallback_models: list[str] = Field(
        default_factory=lambda: ["openai/gpt-4.1-mini", "anthropic/claude-haiku-4.5"],
        description="Models tried in order if the requested model is unavailable",
    )
    anthropic_thinking_budget: int = Field(
        default=5000, ge=1024, description="Extended-thinking token budget for Anthropic models"
    )
    openai_reasoning_effort: ReasoningEffort = Field(
        default=ReasoningEffort.HIGH, description="Reasoning effort for OpenAI models"
    )
    timeout: int = Field(default=120, gt=0, description="Per-call timeout in seconds")
    model_prefix: str = Field(
        default="vercel_ai_gateway/",
        description="LiteLLM routing prefix prepended to gateway model ids",
    )


class GatewayConfig(BaseModel):
    """Where the model catalog and pricing metadata live."""

    base_url: str = Field(
        default="https://ai-gateway.vercel.sh/v1", description="Gateway REST base URL"
    )
    api_key_env: str = Field(
        default="AI_GATEWAY_API_KEY", description="Environment variable holding the gateway key"
    )
    pricing_enabled: bool = Field(
        default=True, description="Enrich results with per-token pricing"
    )
    timeout: float = Field(default=10.0, gt=0.0, description="HTTP timeout in seconds")


class AppConfig(BaseModel):
    """Top-level configuration: one section per concern."""

    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
