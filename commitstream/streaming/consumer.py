"""Client half of the stream bridge.

reduce_state folds decoded frame records into ClientStreamState.
StreamConsumer drives one POST /api/generate exchange over httpx and
yields a state snapshot after every change.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing, asynccontextmanager
from typing import Any

import httpx
from pydantic import ValidationError

from commitstream.schemas.frames import (
    DoneFrame,
    ErrorFrame,
    FrameType,
    ReasoningDelta,
    TextDelta,
    frame_from_record,
    is_terminal,
)
from commitstream.schemas.generation import GenerateResult, GenerationRequest
from commitstream.schemas.streaming import ClientStreamState
from commitstream.streaming.decoder import iter_records

logger = logging.getLogger(__name__)

DEFAULT_SERVER_URL = "http://localhost:8421"
GENERATE_PATH = "/api/generate"

REQUEST_FAILED_MESSAGE = "Request failed"
NETWORK_ERROR_MESSAGE = "Network error"

_KNOWN_TYPES = {str(t) for t in FrameType}

StateListener = Callable[[ClientStreamState], Any]


def reduce_state(state: ClientStreamState, record: dict[str, Any]) -> ClientStreamState:
    """Apply one frame record to the state and return the new state.

    Unknown frame types and records that fail validation leave the state
    unchanged. Once a result is set, later frames are ignored.
    """
    if state.result is not None:
        return state

    if record.get("type") not in _KNOWN_TYPES:
        return state

    try:
        frame = frame_from_record(record)
    except ValidationError:
        logger.debug("Ignoring invalid %s frame", record.get("type"))
        return state

    match frame:
        case ReasoningDelta(text=text):
            return state.model_copy(
                update={"streaming_reasoning": state.streaming_reasoning + text}
            )
        case TextDelta(text=text):
            return state.model_copy(update={"streaming_text": state.streaming_text + text})
        case DoneFrame(commit_message=commit_message, step=step):
            return state.model_copy(
                update={
                    "result": GenerateResult(commit_message=commit_message, step=step),
                    "streaming_reasoning": "",
                    "streaming_text": "",
                }
            )
        case ErrorFrame(message=message):
            return state.model_copy(update={"error": message})
    return state


class StreamConsumer:
    """Runs request/stream cycles against a commitstream server.

    Args:
        base_url: Server root, e.g. ``http://localhost:8421``.
        client: Optional shared httpx.AsyncClient (not closed by the consumer).
        on_state: Optional callback invoked with every state snapshot.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_SERVER_URL,
        client: httpx.AsyncClient | None = None,
        on_state: StateListener | None = None,
    ) -> None:
        self._url = f"{base_url.rstrip('/')}{GENERATE_PATH}"
        self._client = client
        self._on_state = on_state
        self._state = ClientStreamState()

    @property
    def state(self) -> ClientStreamState:
        """Most recent snapshot."""
        return self._state

    def _publish(self, state: ClientStreamState) -> ClientStreamState:
        self._state = state
        if self._on_state is not None:
            self._on_state(state)
        return state

    @asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=httpx.Timeout(10.0, read=None)) as client:
            yield client

    async def request(self, diff: str, model: str) -> AsyncIterator[ClientStreamState]:
        """Send one generation request and yield every state transition.

        The first snapshot is the reset/loading state and the last one
        always has ``loading=False``. Transport failures end up in
        ``error``; nothing propagates to the caller.
        """
        state = self._publish(ClientStreamState.started())
        yield state

        try:
            async with aclosing(self._exchange(state, diff, model)) as updates:
                async for state in updates:
                    yield self._publish(state)
        except Exception as e:
            logger.debug("Generate request failed", exc_info=True)
            state = state.model_copy(update={"error": str(e) or NETWORK_ERROR_MESSAGE})

        yield self._publish(state.model_copy(update={"loading": False}))

    async def generate(self, diff: str, model: str) -> ClientStreamState:
        """Run a request to completion and return the final state."""
        async with aclosing(self.request(diff, model)) as states:
            async for _ in states:
                pass
        return self._state

    async def _exchange(
        self, state: ClientStreamState, diff: str, model: str
    ) -> AsyncIterator[ClientStreamState]:
        body = GenerationRequest(diff=diff, model=model).to_wire()

        async with self._http() as client:
            async with client.stream("POST", self._url, json=body) as response:
                if not response.is_success:
                    await response.aread()
                    yield state.model_copy(
                        update={"error": response.text or REQUEST_FAILED_MESSAGE}
                    )
                    return

                async with aclosing(iter_records(response.aiter_bytes())) as records:
                    async for record in records:
                        new_state = reduce_state(state, record)
                        if new_state is state:
                            continue
                        state = new_state
                        yield state
                        if is_terminal(record.get("type")):
                            return
