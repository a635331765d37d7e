"""
llmbridge - Streaming Module

Canonical stream events and the pipeline around them:
- Typed stream events and the per-request StreamState
- StreamCollector rebuilding messages and the final Response
- Wire adapters (SSE, data protocol)
- Multi-step tool-calling streams
"""

from .events import (
    ArtifactEvent,
    ErrorEvent,
    ProviderToolEvent,
    StreamEndEvent,
    StreamEvent,
    StreamEventType,
    StreamStartEvent,
    TextCompleteEvent,
    TextDeltaEvent,
    TextStartEvent,
    ThinkingCompleteEvent,
    ThinkingEvent,
    ThinkingStartEvent,
    ToolCallDeltaEvent,
    ToolCallEvent,
    ToolResultEvent,
)
from .state import StreamState
from .collector import StreamCollector
from .errors import (
    encoding_error_event,
    error_event_from_exception,
    is_recoverable,
)
from .adapters import DataProtocolAdapter, SSEAdapter, StreamAdapter
from .turns import execute_tool, run_stream

__all__ = [
    # Events
    "StreamEvent",
    "StreamEventType",
    "StreamStartEvent",
    "TextStartEvent",
    "TextDeltaEvent",
    "TextCompleteEvent",
    "ThinkingStartEvent",
    "ThinkingEvent",
    "ThinkingCompleteEvent",
    "ToolCallEvent",
    "ToolCallDeltaEvent",
    "ToolResultEvent",
    "ProviderToolEvent",
    "ArtifactEvent",
    "ErrorEvent",
    "StreamEndEvent",
    # State / collection
    "StreamState",
    "StreamCollector",
    # Errors
    "encoding_error_event",
    "error_event_from_exception",
    "is_recoverable",
    # Adapters
    "StreamAdapter",
    "SSEAdapter",
    "DataProtocolAdapter",
    # Tool turns
    "execute_tool",
    "run_stream",
]
