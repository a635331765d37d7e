"""
llmbridge - Server-Sent Events Adapter

Writes every canonical event as

    event: <type>
    data: <json>

using the event's own discriminator and snake_case payload, then ends the
stream with ``data: [DONE]``.
"""

from typing import List

from ..events import StreamEvent
from .base import StreamAdapter, encode_json


class SSEAdapter(StreamAdapter):
    """Raw canonical events over text/event-stream."""

    name = "sse"
    headers = {
        "Content-Type": "text/event-stream",
        "Cache-Control": "no-cache",
        "X-Accel-Buffering": "no",
        "Connection": "keep-alive",
    }

    def encode(self, event: StreamEvent) -> List[str]:
        return [f"event: {event.type.value}\ndata: {encode_json(event.to_dict())}\n\n"]
