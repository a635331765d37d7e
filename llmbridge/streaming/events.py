"""
llmbridge - Stream Events

Canonical, provider-independent events emitted while a model streams.

Every provider decoder translates its wire format into this closed set of
immutable events. Consumers (collector, wire adapters) dispatch on the
``type`` discriminator, which is also the SSE ``event:`` name.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional

from ..core.models import (
    Artifact,
    FinishReason,
    MessagePartWithCitations,
    ToolCall,
    ToolResult,
    Usage,
)


class StreamEventType(str, Enum):
    """Discriminator of every stream event variant."""
    STREAM_START = "stream-start"
    TEXT_START = "text-start"
    TEXT_DELTA = "text-delta"
    TEXT_COMPLETE = "text-complete"
    THINKING_START = "thinking-start"
    THINKING_DELTA = "thinking-delta"
    THINKING_COMPLETE = "thinking-complete"
    TOOL_CALL = "tool-call"
    TOOL_CALL_DELTA = "tool-call-delta"
    TOOL_RESULT = "tool-result"
    PROVIDER_TOOL_EVENT = "provider-tool-event"
    ARTIFACT = "artifact"
    ERROR = "error"
    STREAM_END = "stream-end"


def new_event_id() -> str:
    """Generate an opaque event id."""
    return f"evt_{uuid.uuid4().hex[:24]}"


def now() -> int:
    """Current time as integer epoch seconds."""
    return int(time.time())


@dataclass(frozen=True)
class StreamEvent:
    """Base of all stream events."""
    id: str
    timestamp: int

    type: ClassVar[StreamEventType]

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "timestamp": self.timestamp}


@dataclass(frozen=True)
class StreamStartEvent(StreamEvent):
    model: str
    provider: str
    metadata: Optional[Dict[str, Any]] = None

    type: ClassVar[StreamEventType] = StreamEventType.STREAM_START

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["model"] = self.model
        result["provider"] = self.provider
        if self.metadata:
            result["metadata"] = self.metadata
        return result


# ============================================================
# Text
# ============================================================

@dataclass(frozen=True)
class TextStartEvent(StreamEvent):
    message_id: str

    type: ClassVar[StreamEventType] = StreamEventType.TEXT_START

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "message_id": self.message_id}


@dataclass(frozen=True)
class TextDeltaEvent(StreamEvent):
    delta: str
    message_id: str

    type: ClassVar[StreamEventType] = StreamEventType.TEXT_DELTA

    def to_dict(self) -> Dict[str, Any]:
        return {
            **super().to_dict(),
            "delta": self.delta,
            "message_id": self.message_id,
        }


@dataclass(frozen=True)
class TextCompleteEvent(StreamEvent):
    message_id: str

    type: ClassVar[StreamEventType] = StreamEventType.TEXT_COMPLETE

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "message_id": self.message_id}


# ============================================================
# Thinking
# ============================================================

@dataclass(frozen=True)
class ThinkingStartEvent(StreamEvent):
    reasoning_id: str

    type: ClassVar[StreamEventType] = StreamEventType.THINKING_START

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "reasoning_id": self.reasoning_id}


@dataclass(frozen=True)
class ThinkingEvent(StreamEvent):
    delta: str
    reasoning_id: str

    type: ClassVar[StreamEventType] = StreamEventType.THINKING_DELTA

    def to_dict(self) -> Dict[str, Any]:
        return {
            **super().to_dict(),
            "delta": self.delta,
            "reasoning_id": self.reasoning_id,
        }


@dataclass(frozen=True)
class ThinkingCompleteEvent(StreamEvent):
    reasoning_id: str

    type: ClassVar[StreamEventType] = StreamEventType.THINKING_COMPLETE

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "reasoning_id": self.reasoning_id}


# ============================================================
# Tools
# ============================================================

@dataclass(frozen=True)
class ToolCallEvent(StreamEvent):
    tool_call: ToolCall
    message_id: str

    type: ClassVar[StreamEventType] = StreamEventType.TOOL_CALL

    def to_dict(self) -> Dict[str, Any]:
        return {
            **super().to_dict(),
            "tool_id": self.tool_call.id,
            "tool_name": self.tool_call.name,
            "arguments": self.tool_call.arguments,
            "message_id": self.message_id,
            "reasoning_id": self.tool_call.reasoning_id,
        }


@dataclass(frozen=True)
class ToolCallDeltaEvent(StreamEvent):
    """Raw fragment of a tool call's JSON arguments."""
    tool_id: str
    tool_name: str
    delta: str
    message_id: str

    type: ClassVar[StreamEventType] = StreamEventType.TOOL_CALL_DELTA

    def to_dict(self) -> Dict[str, Any]:
        return {
            **super().to_dict(),
            "tool_id": self.tool_id,
            "tool_name": self.tool_name,
            "delta": self.delta,
            "message_id": self.message_id,
        }


@dataclass(frozen=True)
class ToolResultEvent(StreamEvent):
    tool_result: ToolResult
    message_id: str
    success: bool = True
    error: Optional[str] = None

    type: ClassVar[StreamEventType] = StreamEventType.TOOL_RESULT

    def to_dict(self) -> Dict[str, Any]:
        result = {
            **super().to_dict(),
            "tool_id": self.tool_result.tool_call_id,
            "tool_name": self.tool_result.tool_name,
            "args": self.tool_result.args,
            "result": self.tool_result.result,
            "message_id": self.message_id,
            "success": self.success,
        }
        if self.error is not None:
            result["error"] = self.error
        if self.tool_result.artifacts:
            result["artifacts"] = [a.to_dict() for a in self.tool_result.artifacts]
        return result


@dataclass(frozen=True)
class ProviderToolEvent(StreamEvent):
    """Provider-native tool activity (web search, code execution, ...)."""
    item_id: str
    tool_type: str
    status: str
    data: Dict[str, Any] = field(default_factory=dict)

    type: ClassVar[StreamEventType] = StreamEventType.PROVIDER_TOOL_EVENT

    def to_dict(self) -> Dict[str, Any]:
        return {
            **super().to_dict(),
            "item_id": self.item_id,
            "tool_type": self.tool_type,
            "status": self.status,
            "data": self.data,
        }


@dataclass(frozen=True)
class ArtifactEvent(StreamEvent):
    artifact: Artifact
    tool_call_id: str
    tool_name: str
    message_id: str

    type: ClassVar[StreamEventType] = StreamEventType.ARTIFACT

    def to_dict(self) -> Dict[str, Any]:
        return {
            **super().to_dict(),
            "tool_call_id": self.tool_call_id,
            "tool_name": self.tool_name,
            "message_id": self.message_id,
            "artifact": self.artifact.to_dict(),
        }


# ============================================================
# Terminal / errors
# ============================================================

@dataclass(frozen=True)
class ErrorEvent(StreamEvent):
    error_type: str
    message: str
    recoverable: bool
    metadata: Dict[str, Any] = field(default_factory=dict)

    type: ClassVar[StreamEventType] = StreamEventType.ERROR

    def to_dict(self) -> Dict[str, Any]:
        return {
            **super().to_dict(),
            "error_type": self.error_type,
            "message": self.message,
            "recoverable": self.recoverable,
            "metadata": self.metadata,
        }


@dataclass(frozen=True)
class StreamEndEvent(StreamEvent):
    finish_reason: FinishReason
    usage: Optional[Usage] = None
    citations: List[MessagePartWithCitations] = field(default_factory=list)
    additional_content: Dict[str, Any] = field(default_factory=dict)

    type: ClassVar[StreamEventType] = StreamEventType.STREAM_END

    def to_dict(self) -> Dict[str, Any]:
        result = {
            **super().to_dict(),
            "finish_reason": self.finish_reason.value,
        }
        if self.usage is not None:
            result["usage"] = self.usage.to_dict()
        if self.citations:
            result["citations"] = [c.to_dict() for c in self.citations]
        if self.additional_content:
            result["additional_content"] = self.additional_content
        return result
