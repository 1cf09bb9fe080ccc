"""AI gateway REST client: model catalog and per-model pricing.

The gateway exposes an OpenAI-compatible ``/models`` listing whose
entries carry ``type`` and ``pricing`` fields. Pricing is used to enrich
results and is strictly best-effort.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from commitstream.providers.base import PricingLookup, PricingUnavailable
from commitstream.schemas.config import GatewayConfig
from commitstream.schemas.generation import ModelInfo, Pricing

logger = logging.getLogger(__name__)


def _pricing_from_entry(entry: dict[str, Any]) -> Pricing | None:
    raw = entry.get("pricing")
    if not isinstance(raw, dict):
        return None
    if raw.get("input") is None or raw.get("output") is None:
        return None
    return Pricing(input=str(raw["input"]), output=str(raw["output"]))


class GatewayClient(PricingLookup):
    """Thin async client over the gateway's model endpoints.

    Pass ``client`` to reuse a connection pool or to inject a mock
    transport; otherwise a short-lived client is opened per call.
    """

    def __init__(
        self,
        config: GatewayConfig,
        api_key: str = "",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._api_key = api_key
        self._client = client

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            return {}
        return {"Authorization": f"Bearer {self._api_key}"}

    async def _get(self, path: str) -> httpx.Response:
        url = f"{self._config.base_url.rstrip('/')}/{path.lstrip('/')}"
        if self._client is not None:
            return await self._client.get(url, headers=self._headers())
        async with httpx.AsyncClient(timeout=self._config.timeout) as client:
            return await client.get(url, headers=self._headers())

    async def list_models(self) -> list[ModelInfo]:
        """Return language models from the gateway catalog.

        Entries without an ``id`` are skipped.

        Raises:
            httpx.HTTPError: On transport failure, non-success status, or a
                body that is not a JSON model list (httpx.DecodingError).
        """
        response = await self._get("models")
        response.raise_for_status()
        try:
            payload = response.json()
        except ValueError as e:
            raise httpx.DecodingError(
                "Model catalog is not JSON", request=response.request
            ) from e

        entries = payload.get("data", []) if isinstance(payload, dict) else payload
        if not isinstance(entries, list):
            raise httpx.DecodingError(
                "Model catalog has no model list", request=response.request
            )

        models: list[ModelInfo] = []
        for entry in entries:
            if not isinstance(entry, dict) or entry.get("type") != "language":
                continue
            if not isinstance(entry.get("id"), str) or not entry["id"]:
                logger.debug("Skipping catalog entry without id: %.80r", entry)
                continue
            models.append(
                ModelInfo(
                    id=entry["id"],
                    name=entry.get("name") or entry["id"],
                    pricing=_pricing_from_entry(entry),
                )
            )
        return models

    async def get_pricing(self, model_id: str) -> Pricing:
        try:
            response = await self._get(f"models/{model_id}")
        except httpx.HTTPError as e:
            raise PricingUnavailable(f"Pricing request for {model_id} failed: {e}") from e

        if not response.is_success:
            raise PricingUnavailable(
                f"Pricing request for {model_id} returned {response.status_code}"
            )

        try:
            entry = response.json()
        except ValueError as e:
            raise PricingUnavailable(f"Pricing for {model_id} is not JSON") from e

        pricing = _pricing_from_entry(entry) if isinstance(entry, dict) else None
        if pricing is None:
            raise PricingUnavailable(f"No pricing published for {model_id}")
        return pricing
