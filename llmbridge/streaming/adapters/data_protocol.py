"""
llmbridge - Data Protocol Adapter

Translates canonical events to the UI message stream protocol
(``x-vercel-ai-ui-message-stream: v1``): one ``data: <json>`` frame per
event, ``type`` first, terminated by ``data: [DONE]``.

Vocabulary:
    stream-start      -> start                 {messageId}
    text-start        -> text-start            {id}
    text-delta        -> text-delta            {id, delta}
    text-complete     -> text-end              {id}
    thinking-start    -> reasoning-start       {id}
    thinking-delta    -> reasoning-delta       {id, delta}
    thinking-complete -> reasoning-end         {id}
    tool-call         -> tool-input-available  {toolCallId, toolName, input}
    tool-result       -> tool-output-available {toolCallId, output}
    stream-end        -> finish                {messageMetadata}
    error             -> error                 {errorText}

Tool-call deltas, provider tool events and artifacts have no counterpart
and are not written.
"""

from typing import Any, Dict, List, Optional

from ...core.models import FinishReason
from ..events import (
    ErrorEvent,
    StreamEndEvent,
    StreamEvent,
    StreamStartEvent,
    TextCompleteEvent,
    TextDeltaEvent,
    TextStartEvent,
    ThinkingCompleteEvent,
    ThinkingEvent,
    ThinkingStartEvent,
    ToolCallEvent,
    ToolResultEvent,
)
from .base import StreamAdapter, encode_json

# Internal finish reasons -> protocol finish reasons
FINISH_REASON_MAP = {
    FinishReason.STOP: "stop",
    FinishReason.LENGTH: "length",
    FinishReason.TOOL_CALLS: "tool-calls",
    FinishReason.CONTENT_FILTER: "content-filter",
    FinishReason.ERROR: "error",
    FinishReason.OTHER: "other",
    FinishReason.UNKNOWN: "unknown",
}


def to_protocol_payload(event: StreamEvent) -> Optional[Dict[str, Any]]:
    """Protocol payload for ``event``, or None when it is not written."""
    if isinstance(event, StreamStartEvent):
        return {"type": "start", "messageId": event.id}

    if isinstance(event, TextStartEvent):
        return {"type": "text-start", "id": event.message_id}

    if isinstance(event, TextDeltaEvent):
        return {"type": "text-delta", "id": event.message_id, "delta": event.delta}

    if isinstance(event, TextCompleteEvent):
        return {"type": "text-end", "id": event.message_id}

    if isinstance(event, ThinkingStartEvent):
        return {"type": "reasoning-start", "id": event.reasoning_id}

    if isinstance(event, ThinkingEvent):
        return {"type": "reasoning-delta", "id": event.reasoning_id, "delta": event.delta}

    if isinstance(event, ThinkingCompleteEvent):
        return {"type": "reasoning-end", "id": event.reasoning_id}

    if isinstance(event, ToolCallEvent):
        return {
            "type": "tool-input-available",
            "toolCallId": event.tool_call.id,
            "toolName": event.tool_call.name,
            "input": event.tool_call.arguments,
        }

    if isinstance(event, ToolResultEvent):
        return {
            "type": "tool-output-available",
            "toolCallId": event.tool_result.tool_call_id,
            "output": event.tool_result.result,
        }

    if isinstance(event, StreamEndEvent):
        metadata: Dict[str, Any] = {
            "finishReason": FINISH_REASON_MAP.get(event.finish_reason, "unknown"),
        }
        if event.usage is not None:
            metadata["usage"] = {
                "promptTokens": event.usage.prompt_tokens,
                "completionTokens": event.usage.completion_tokens,
            }
        return {"type": "finish", "messageMetadata": metadata}

    if isinstance(event, ErrorEvent):
        return {"type": "error", "errorText": event.message}

    return None


class DataProtocolAdapter(StreamAdapter):
    """Canonical events translated to the UI message stream protocol."""

    name = "data_protocol"
    headers = {
        "Content-Type": "text/plain; charset=utf-8",
        "Cache-Control": "no-cache, no-transform",
        "X-Accel-Buffering": "no",
        "x-vercel-ai-ui-message-stream": "v1",
    }

    def encode(self, event: StreamEvent) -> List[str]:
        payload = to_protocol_payload(event)
        if payload is None:
            return []
        return [f"data: {encode_json(payload)}\n\n"]
