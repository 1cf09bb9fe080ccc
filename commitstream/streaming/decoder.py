"""Incremental byte-to-line decoding for the frame stream.

Network reads do not respect frame or character boundaries. LineDecoder
buffers partial lines and partial UTF-8 sequences between reads, and
iter_records turns an async byte source into parsed frame records.
"""

from __future__ import annotations

import codecs
from collections.abc import AsyncIterator
from typing import Any

from commitstream.streaming.protocol import parse_frame_line


class LineDecoder:
    """Stateful ``(buffer, new_bytes) -> (complete_lines, buffer)`` splitter."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""

    @property
    def buffer(self) -> str:
        """Text received after the last newline."""
        return self._buffer

    def feed(self, data: bytes) -> list[str]:
        """Decode a chunk and return every line it completed.

        The trailing segment (possibly incomplete) is held back until the
        next newline arrives.
        """
        self._buffer += self._decoder.decode(data)
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return [line.removesuffix("\r") for line in lines]


async def iter_records(
    chunks: AsyncIterator[bytes],
) -> AsyncIterator[dict[str, Any]]:
    """Yield parsed frame records from an async byte stream, in order.

    Malformed lines are skipped. Any segment still unterminated when the
    source ends is discarded. The byte source is closed on every exit
    path, including early exit by the caller.
    """
    decoder = LineDecoder()
    try:
        async for chunk in chunks:
            for line in decoder.feed(chunk):
                record = parse_frame_line(line)
                if record is not None:
                    yield record
    finally:
        aclose = getattr(chunks, "aclose", None)
        if aclose is not None:
            await aclose()
