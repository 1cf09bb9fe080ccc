"""Stream bridge: frame protocol, producer and consumer.

The producer turns a model stream into protocol frames on the server;
the consumer turns the byte stream back into client state.
"""

from commitstream.streaming.consumer import StreamConsumer, reduce_state
from commitstream.streaming.decoder import LineDecoder, iter_records
from commitstream.streaming.producer import StreamProducer
from commitstream.streaming.protocol import SSE_HEADERS, encode_frame, parse_frame_line
from commitstream.streaming.sink import FrameSink, QueueFrameSink

__all__ = [
    "FrameSink",
    "LineDecoder",
    "QueueFrameSink",
    "SSE_HEADERS",
    "StreamConsumer",
    "StreamProducer",
    "encode_frame",
    "iter_records",
    "parse_frame_line",
    "reduce_state",
]
