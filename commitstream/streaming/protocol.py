"""Frame wire format shared by the producer and the consumer.

A frame is ``data: <json-object>\\n\\n``. Lines that do not start with the
``data: `` prefix are not part of the protocol and are ignored on read.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from commitstream.schemas.frames import ProtocolFrame

logger = logging.getLogger(__name__)

FRAME_PREFIX = "data: "

SSE_HEADERS: dict[str, str] = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def encode_record(record: dict[str, Any]) -> str:
    """Serialize a raw record as one frame."""
    payload = json.dumps(record, ensure_ascii=False, separators=(",", ":"))
    return f"{FRAME_PREFIX}{payload}\n\n"


def encode_frame(frame: ProtocolFrame) -> bytes:
    """Serialize a typed frame to its UTF-8 wire form."""
    return encode_record(frame.to_wire()).encode("utf-8")


def parse_frame_line(line: str) -> dict[str, Any] | None:
    """Parse one complete line into a record.

    Returns None for lines outside the protocol, empty payloads, and
    payloads that are not a JSON object.
    """
    if not line.startswith(FRAME_PREFIX):
        return None

    payload = line[len(FRAME_PREFIX):]
    if not payload:
        return None

    try:
        record = json.loads(payload)
    except json.JSONDecodeError:
        logger.debug("Skipping malformed frame: %.80s", payload)
        return None

    if not isinstance(record, dict):
        logger.debug("Skipping non-object frame: %.80s", payload)
        return None
    return record
