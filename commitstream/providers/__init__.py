"""Provider layer.

All model calls go through an InferenceService; the LiteLLM adapter is
the only implementation that talks to a real backend.
"""

from commitstream.providers.base import (
    InferenceService,
    InferenceStream,
    PricingLookup,
    PricingUnavailable,
)
from commitstream.providers.gateway import GatewayClient
from commitstream.providers.litellm_provider import LiteLLMInferenceService
from commitstream.providers.registry import load_config

__all__ = [
    "GatewayClient",
    "InferenceService",
    "InferenceStream",
    "LiteLLMInferenceService",
    "PricingLookup",
    "PricingUnavailable",
    "load_config",
]
