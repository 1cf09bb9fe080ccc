"""LiteLLM-backed inference service.

Opens streaming completions through litellm.acompletion(), translates
chunk deltas into InferenceEvents, and keeps enough of the stream to
answer the finalize accessors (text, reasoning, usage, metadata) once
iteration ends. Opening the stream retries transient failures with
exponential backoff.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

import litellm

# Suppress LiteLLM's "Give Feedback / Get Help" and "Provider List" banners
litellm.suppress_debug_info = True

from commitstream.providers.base import (
    InferenceEvent,
    InferenceEventKind,
    InferenceRequest,
    InferenceService,
    InferenceStream,
    InferenceUsage,
    ProviderMetadata,
)
from commitstream.schemas.config import GenerationConfig

logger = logging.getLogger(__name__)

# Max retries for transient failures
_MAX_RETRIES = 3
_BASE_BACKOFF = 1.0  # seconds


def _short_error_reason(error: Exception) -> str:
    """Extract a short, user-friendly reason from a LiteLLM error."""
    error_str = str(error).lower()
    if "rate" in error_str or "429" in error_str:
        return "rate limit"
    if "overloaded" in error_str or "529" in error_str:
        return "overloaded"
    if "timeout" in error_str or isinstance(error, TimeoutError):
        return "timeout"
    if "503" in error_str or "unavailable" in error_str:
        return "service unavailable"
    if "500" in error_str or "internal" in error_str:
        return "server error"
    if "connection" in error_str:
        return "connection error"
    return str(error)[:80]


def build_provider_options(config: GenerationConfig) -> dict[str, Any]:
    """Policy hints sent with every request, keyed by the party that reads them.

    ``gateway`` carries the fallback chain; ``anthropic`` and ``openai``
    carry each family's reasoning controls.
    """
    return {
        "gateway": {"models": list(config.fallback_models)},
        "anthropic": {
            "thinking": {
                "type": "enabled",
                "budget_tokens": config.anthropic_thinking_budget,
            },
        },
        "openai": {"reasoning_effort": str(config.openai_reasoning_effort)},
    }


class LiteLLMInferenceStream(InferenceStream):
    """Wraps a LiteLLM streaming response.

    Must be iterated exactly once; the accessors raise RuntimeError if
    called before iteration has finished.
    """

    def __init__(self, response: AsyncIterator[Any], requested_model: str) -> None:
        self._response = response
        self._requested_model = requested_model
        self._text_parts: list[str] = []
        self._reasoning_parts: list[str] = []
        self._usage: Any = None
        self._resolved_model: str | None = None
        self._finished = False

    async def __aiter__(self) -> AsyncIterator[InferenceEvent]:
        async for chunk in self._response:
            usage = getattr(chunk, "usage", None)
            if usage:
                self._usage = usage
            resolved = getattr(chunk, "model", None)
            if isinstance(resolved, str) and resolved:
                self._resolved_model = resolved

            for event in self._events_from_chunk(chunk):
                yield event

        self._finished = True

    def _events_from_chunk(self, chunk: Any) -> list[InferenceEvent]:
        events: list[InferenceEvent] = []
        if not getattr(chunk, "choices", None):
            return events

        choice = chunk.choices[0]
        delta = getattr(choice, "delta", None)
        if delta is not None:
            reasoning = getattr(delta, "reasoning_content", None)
            if isinstance(reasoning, str) and reasoning:
                self._reasoning_parts.append(reasoning)
                events.append(InferenceEvent(InferenceEventKind.REASONING_DELTA, reasoning))

            content = getattr(delta, "content", None)
            if isinstance(content, str) and content:
                self._text_parts.append(content)
                events.append(InferenceEvent(InferenceEventKind.TEXT_DELTA, content))

            if getattr(delta, "tool_calls", None):
                events.append(InferenceEvent(InferenceEventKind.TOOL_CALL_DELTA))

        if getattr(choice, "finish_reason", None):
            events.append(InferenceEvent(InferenceEventKind.FINISH))
        return events

    async def aclose(self) -> None:
        close = getattr(self._response, "aclose", None)
        if close is not None:
            await close()

    def _require_finished(self) -> None:
        if not self._finished:
            raise RuntimeError("Inference stream has not finished yet")

    async def text(self) -> str:
        self._require_finished()
        return "".join(self._text_parts)

    async def reasoning_text(self) -> str | None:
        self._require_finished()
        if not self._reasoning_parts:
            return None
        return "".join(self._reasoning_parts)

    async def usage(self) -> InferenceUsage:
        self._require_finished()
        usage = self._usage
        if usage is None:
            return InferenceUsage()

        prompt_details = getattr(usage, "prompt_tokens_details", None)
        cache_read = getattr(usage, "cache_read_input_tokens", None)
        if cache_read is None and prompt_details is not None:
            cache_read = getattr(prompt_details, "cached_tokens", None)

        return InferenceUsage(
            input_tokens=getattr(usage, "prompt_tokens", None),
            output_tokens=getattr(usage, "completion_tokens", None),
            total_tokens=getattr(usage, "total_tokens", None),
            cache_read_tokens=cache_read,
            cache_write_tokens=getattr(usage, "cache_creation_input_tokens", None),
        )

    async def provider_metadata(self) -> ProviderMetadata:
        self._require_finished()
        return ProviderMetadata(
            resolved_model=self._resolved_model,
            cost=self._compute_cost(),
        )

    def _compute_cost(self) -> float | None:
        """USD cost from LiteLLM's price map, or None if the model is unmapped."""
        usage = self._usage
        if usage is None:
            return None

        model = self._resolved_model or self._requested_model
        try:
            prompt_cost, completion_cost = litellm.cost_per_token(
                model=model,
                prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
            )
        except Exception as e:
            logger.debug("No cost data for %s: %s", model, _short_error_reason(e))
            return None
        return prompt_cost + completion_cost


class LiteLLMInferenceService(InferenceService):
    """Inference service that routes every call through LiteLLM."""

    def __init__(self, config: GenerationConfig, api_key: str = "") -> None:
        self._config = config
        self._api_key = api_key

    async def open_stream(self, request: InferenceRequest) -> InferenceStream:
        kwargs = self._build_completion_kwargs(request)
        response = await self._call_streaming_with_retry(kwargs)
        return LiteLLMInferenceStream(response, requested_model=kwargs["model"])

    def _route(self, model: str) -> str:
        prefix = self._config.model_prefix
        if prefix and not model.startswith(prefix):
            return f"{prefix}{model}"
        return model

    def _build_completion_kwargs(self, request: InferenceRequest) -> dict:
        """Build the kwargs dict for litellm.acompletion.

        Provider options are forwarded unconditionally; drop_params lets
        LiteLLM discard the ones the target model does not accept.
        """
        kwargs: dict = {
            "model": self._route(request.model),
            "messages": [
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": request.user_prompt},
            ],
            "stream": True,
            "stream_options": {"include_usage": True},
            "timeout": float(self._config.timeout),
            "drop_params": True,
        }

        if self._api_key:
            kwargs["api_key"] = self._api_key

        options = request.provider_options
        fallbacks = options.get("gateway", {}).get("models", [])
        if fallbacks:
            kwargs["fallbacks"] = [self._route(m) for m in fallbacks]

        thinking = options.get("anthropic", {}).get("thinking")
        if thinking:
            kwargs["thinking"] = thinking

        effort = options.get("openai", {}).get("reasoning_effort")
        if effort:
            kwargs["reasoning_effort"] = effort

        return kwargs

    async def _call_streaming_with_retry(self, kwargs: dict) -> Any:
        """Call litellm.acompletion with stream=True and retry on failure.

        Retries on transient errors (rate limits, server errors, timeouts).
        Non-retryable errors (auth, invalid request) are raised immediately.

        Raises:
            TimeoutError: If all retries time out.
            RuntimeError: If all retries fail with non-timeout errors.
        """
        last_error: Exception | None = None

        for attempt in range(_MAX_RETRIES):
            try:
                return await litellm.acompletion(**kwargs)
            except TimeoutError:
                last_error = TimeoutError(
                    f"Streaming call timed out after {kwargs.get('timeout')}s "
                    f"(attempt {attempt + 1}/{_MAX_RETRIES})"
                )
            except litellm.AuthenticationError:
                raise RuntimeError(
                    f"Authentication failed for {kwargs['model']}. "
                    "Check that the gateway API key is set correctly."
                ) from None
            except litellm.BadRequestError as e:
                raise RuntimeError(f"Bad request to {kwargs['model']}: {e}") from e
            except (
                litellm.RateLimitError,
                litellm.ServiceUnavailableError,
                litellm.InternalServerError,
                litellm.APIConnectionError,
            ) as e:
                last_error = e

            if attempt < _MAX_RETRIES - 1:
                backoff = _BASE_BACKOFF * (2**attempt)
                logger.warning(
                    "Streaming retry %d/%d for %s (%s, backoff: %.1fs)",
                    attempt + 1, _MAX_RETRIES, kwargs["model"],
                    _short_error_reason(last_error), backoff,
                )
                await asyncio.sleep(backoff)

        if isinstance(last_error, TimeoutError):
            raise last_error
        raise RuntimeError(
            f"Streaming call to {kwargs['model']} failed after "
            f"{_MAX_RETRIES} retries: {last_error}"
        ) from last_error
