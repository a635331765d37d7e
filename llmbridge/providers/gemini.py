"""
llmbridge - Gemini Stream Decoder

Decodes ``streamGenerateContent?alt=sse`` chunks. Each chunk is a full
GenerateContentResponse holding the new parts only; function calls arrive
whole, never as fragments.
"""

from typing import Any, Dict, List

from ..core.models import FinishReason, ToolCall, Usage
from ..streaming.events import StreamEvent, ToolCallEvent, new_event_id, now
from .base import Payload, StreamDecoder, new_tool_call_id

CONTENT_FILTER_REASONS = {
    "SAFETY",
    "RECITATION",
    "BLOCKLIST",
    "PROHIBITED_CONTENT",
    "SPII",
    "IMAGE_SAFETY",
}


def map_finish_reason(reason: str, has_tool_calls: bool) -> FinishReason:
    if reason == "STOP":
        return FinishReason.TOOL_CALLS if has_tool_calls else FinishReason.STOP
    if reason == "MAX_TOKENS":
        return FinishReason.LENGTH
    if reason in CONTENT_FILTER_REASONS:
        return FinishReason.CONTENT_FILTER
    return FinishReason.OTHER


class GeminiStreamDecoder(StreamDecoder):
    """GenerateContentResponse chunks -> canonical events."""

    provider = "gemini"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._turn_tool_calls = 0

    def _begin_turn(self):
        super()._begin_turn()
        self._turn_tool_calls = 0

    def handle_payload(self, payload: Payload) -> List[StreamEvent]:
        if "error" in payload:
            error = payload["error"] if isinstance(payload["error"], dict) else {"message": str(payload["error"])}
            status = str(error.get("status") or "provider_error")
            return self.error(
                error_type=status.lower(),
                message=str(error.get("message") or "Unknown streaming error"),
                recoverable=status in {"UNAVAILABLE", "RESOURCE_EXHAUSTED"},
                metadata={"code": error["code"]} if error.get("code") else None,
            )

        self.adopt_message_id(payload.get("responseId"))
        events = self.start_stream(payload.get("modelVersion", ""))

        if payload.get("usageMetadata"):
            self.set_turn_usage(self._usage(payload["usageMetadata"]))

        for candidate in payload.get("candidates") or []:
            for part in (candidate.get("content") or {}).get("parts") or []:
                events.extend(self._part(part))

            finish_reason = candidate.get("finishReason")
            if finish_reason:
                self.state.with_finish_reason(map_finish_reason(finish_reason, self._turn_tool_calls > 0))

        block_reason = (payload.get("promptFeedback") or {}).get("blockReason")
        if block_reason:
            self.state.with_finish_reason(FinishReason.CONTENT_FILTER)

        return events

    def _part(self, part: Dict[str, Any]) -> List[StreamEvent]:
        if "functionCall" in part:
            return self._function_call(part["functionCall"])

        text = part.get("text")
        if not text:
            return []

        if part.get("thought"):
            return self.thinking_delta(text)
        return self.text_delta(text)

    def _function_call(self, call: Dict[str, Any]) -> List[StreamEvent]:
        events = self.close_thinking()
        index = len(self.state.tool_calls)
        tool_call = ToolCall.from_raw_arguments(
            id=call.get("id") or new_tool_call_id(),
            name=call.get("name", ""),
            raw_arguments=call.get("args") or {},
            reasoning_id=self.state.reasoning_id or None,
        )
        self.state.add_tool_call(index, {"id": tool_call.id, "name": tool_call.name, "input": tool_call.arguments})
        self._turn_tool_calls += 1
        events.append(
            ToolCallEvent(
                id=new_event_id(),
                timestamp=now(),
                tool_call=tool_call,
                message_id=self.state.message_id,
            )
        )
        return events

    @staticmethod
    def _usage(metadata: Dict[str, Any]) -> Usage:
        return Usage(
            prompt_tokens=int(metadata.get("promptTokenCount") or 0),
            completion_tokens=int(metadata.get("candidatesTokenCount") or 0),
            cache_read_input_tokens=metadata.get("cachedContentTokenCount"),
            thought_tokens=metadata.get("thoughtsTokenCount"),
        )
