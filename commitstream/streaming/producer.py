"""Server half of the stream bridge.

StreamProducer opens an inference stream, forwards its reasoning and
answer deltas as protocol frames, then assembles the StepResult and ends
with a single terminal frame. Every failure becomes an ``error`` frame;
nothing raises past run().
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing

from pydantic import ValidationError

from commitstream.prompts import commit_system_prompt
from commitstream.providers.base import (
    InferenceEventKind,
    InferenceRequest,
    InferenceService,
    InferenceUsage,
    PricingLookup,
    PricingUnavailable,
    ProviderMetadata,
)
from commitstream.providers.litellm_provider import build_provider_options
from commitstream.schemas.config import GenerationConfig
from commitstream.schemas.frames import DoneFrame, ErrorFrame, ReasoningDelta, TextDelta
from commitstream.schemas.generation import GenerationRequest, Pricing, StepResult, UsageStats
from commitstream.streaming.sink import FrameSink

logger = logging.getLogger(__name__)

NO_DIFF_MESSAGE = "No diff provided"
INVALID_BODY_MESSAGE = "Invalid request body"
UNKNOWN_ERROR_MESSAGE = "Unknown error"


def map_usage(usage: InferenceUsage) -> UsageStats:
    """Map backend usage onto UsageStats.

    Missing core counters become 0. Missing cache counters stay None.
    """
    return UsageStats(
        prompt_tokens=usage.input_tokens or 0,
        completion_tokens=usage.output_tokens or 0,
        total_tokens=usage.total_tokens or 0,
        cache_read_tokens=usage.cache_read_tokens,
        cache_write_tokens=usage.cache_write_tokens,
    )


def build_step_result(
    requested_model: str,
    text: str,
    reasoning_text: str | None,
    usage: InferenceUsage,
    metadata: ProviderMetadata,
    pricing: Pricing | None = None,
) -> StepResult:
    """Assemble the summary of a finished generation."""
    return StepResult(
        model=metadata.resolved_model or requested_model,
        output=text,
        reasoning_text=reasoning_text or None,
        usage=map_usage(usage),
        cost=metadata.cost,
        pricing=pricing,
    )


class StreamProducer:
    """Turns one GenerationRequest into a sequence of protocol frames.

    Args:
        service: Backend that streams the generation.
        config: Generation settings (default model, provider options).
        pricing: Optional rate lookup. When None, results carry no pricing.
        system_prompt: Override for the rendered commit-message prompt.
    """

    def __init__(
        self,
        service: InferenceService,
        config: GenerationConfig | None = None,
        pricing: PricingLookup | None = None,
        system_prompt: str | None = None,
    ) -> None:
        self._service = service
        self._config = config or GenerationConfig()
        self._pricing = pricing
        self._system_prompt = system_prompt or commit_system_prompt()

    async def run_payload(self, payload: bytes, sink: FrameSink) -> None:
        """Parse a raw JSON request body, then run it.

        A body that does not validate as a GenerationRequest produces an
        error frame rather than an exception.
        """
        try:
            request = GenerationRequest.model_validate_json(payload or b"{}")
        except ValidationError:
            logger.debug("Rejected request body: %.80r", payload)
            try:
                await sink.emit(ErrorFrame(message=INVALID_BODY_MESSAGE))
            finally:
                await sink.close()
            return
        await self.run(request, sink)

    async def run(self, request: GenerationRequest, sink: FrameSink) -> None:
        """Stream one generation into ``sink`` and close it."""
        try:
            if not request.diff:
                await sink.emit(ErrorFrame(message=NO_DIFF_MESSAGE))
                return

            model = request.model or self._config.default_model
            stream = await self._service.open_stream(
                InferenceRequest(
                    model=model,
                    system_prompt=self._system_prompt,
                    user_prompt=request.diff,
                    provider_options=build_provider_options(self._config),
                )
            )

            # Closes the backend response on every exit, including cancellation
            async with aclosing(stream):
                async for event in stream:
                    if event.type == InferenceEventKind.REASONING_DELTA:
                        await sink.emit(ReasoningDelta(text=event.text))
                    elif event.type == InferenceEventKind.TEXT_DELTA:
                        await sink.emit(TextDelta(text=event.text))

            text, reasoning_text, usage, metadata = await asyncio.gather(
                stream.text(),
                stream.reasoning_text(),
                stream.usage(),
                stream.provider_metadata(),
            )

            resolved_model = metadata.resolved_model or model
            step = build_step_result(
                model,
                text,
                reasoning_text,
                usage,
                metadata,
                pricing=await self._lookup_pricing(resolved_model),
            )
            await sink.emit(DoneFrame(commit_message=text, step=step))
        except Exception as e:
            logger.exception("Generate error for model %s", request.model)
            await sink.emit(ErrorFrame(message=str(e) or UNKNOWN_ERROR_MESSAGE))
        finally:
            await sink.close()

    async def _lookup_pricing(self, model_id: str) -> Pricing | None:
        """Best-effort rate lookup; any failure means no pricing."""
        if self._pricing is None:
            return None
        try:
            return await self._pricing.get_pricing(model_id)
        except PricingUnavailable as e:
            logger.debug("Pricing unavailable for %s: %s", model_id, e)
        except Exception:
            logger.debug("Pricing lookup crashed for %s", model_id, exc_info=True)
        return None
