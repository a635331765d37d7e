"""
llmbridge - Wire Adapters

Re-serialize canonical stream events for HTTP clients.
"""

from .base import DONE_SENTINEL, StreamAdapter, encode_json
from .data_protocol import DataProtocolAdapter, to_protocol_payload
from .sse import SSEAdapter

__all__ = [
    "DONE_SENTINEL",
    "StreamAdapter",
    "encode_json",
    "DataProtocolAdapter",
    "to_protocol_payload",
    "SSEAdapter",
]
