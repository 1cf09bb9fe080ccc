"""FastAPI server for commit-message generation.

POST /api/generate streams protocol frames for one diff; GET /api/models
lists the language models available through the gateway.

Start it with ``commitstream serve`` or any ASGI server:
    uvicorn --factory commitstream.server:create_app
"""

from __future__ import annotations

import asyncio
import logging

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from commitstream import __version__
from commitstream.keys import get_api_key
from commitstream.providers.base import InferenceService
from commitstream.providers.gateway import GatewayClient
from commitstream.providers.litellm_provider import LiteLLMInferenceService
from commitstream.providers.registry import load_config
from commitstream.schemas.config import AppConfig
from commitstream.schemas.generation import ModelInfo
from commitstream.streaming.producer import StreamProducer
from commitstream.streaming.protocol import SSE_HEADERS
from commitstream.streaming.sink import QueueFrameSink

logger = logging.getLogger(__name__)


def create_app(
    config: AppConfig | None = None,
    service: InferenceService | None = None,
    gateway: GatewayClient | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Settings; loaded from defaults.toml when omitted.
        service: Inference backend; LiteLLM when omitted.
        gateway: Catalog and pricing client; built from config when omitted.
    """
    config = config or load_config()
    api_key = get_api_key(config.gateway.api_key_env)
    service = service or LiteLLMInferenceService(config.generation, api_key=api_key)
    gateway = gateway or GatewayClient(config.gateway, api_key=api_key)

    producer = StreamProducer(
        service,
        config.generation,
        pricing=gateway if config.gateway.pricing_enabled else None,
    )

    app = FastAPI(
        title="commitstream",
        description="Streamed conventional-commit generation",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Generation ───────────────────────────────────────────────

    @app.post("/api/generate")
    async def generate(request: Request) -> StreamingResponse:
        """Stream frames for one generation request.

        The body is parsed inside the producer so a malformed body still
        yields a well-formed error frame.
        """
        payload = await request.body()
        sink = QueueFrameSink()
        task = asyncio.create_task(producer.run_payload(payload, sink))

        async def _frames():
            try:
                async for data in sink:
                    yield data
            finally:
                if not task.done():
                    logger.info("Client disconnected, cancelling generation")
                    task.cancel()

        return StreamingResponse(_frames(), headers=SSE_HEADERS)

    # ── Catalog ──────────────────────────────────────────────────

    @app.get("/api/models", response_model=list[ModelInfo], response_model_exclude_none=True)
    async def list_models() -> list[ModelInfo]:
        """List language models offered by the gateway."""
        try:
            return await gateway.list_models()
        except httpx.HTTPError as e:
            logger.exception("Failed to list models")
            raise HTTPException(status_code=502, detail=f"Model catalog unavailable: {e}") from e

    # ── Health ───────────────────────────────────────────────────

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
