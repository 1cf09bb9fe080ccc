"""Frame sinks: where the producer pushes its output.

The producer only sees the FrameSink interface, so it runs the same
against an HTTP response, a test collector, or anything else that can
accept frames.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from commitstream.schemas.frames import ProtocolFrame
from commitstream.streaming.protocol import encode_frame


class FrameSink(ABC):
    """Per-request emission context handed to the producer."""

    @abstractmethod
    async def emit(self, frame: ProtocolFrame) -> None:
        """Push one frame downstream."""

    @abstractmethod
    async def close(self) -> None:
        """Signal that no more frames will follow."""


class QueueFrameSink(FrameSink):
    """Sink backed by an asyncio.Queue, drained as an async byte iterator.

    The server hands the iterator to a StreamingResponse while the
    producer task fills the queue.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[bytes | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def emit(self, frame: ProtocolFrame) -> None:
        if self._closed:
            raise RuntimeError("Cannot emit on a closed sink")
        await self._queue.put(encode_frame(frame))

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            await self._queue.put(None)

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            data = await self._queue.get()
            if data is None:
                return
            yield data
