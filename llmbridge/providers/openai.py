"""
llmbridge - OpenAI Stream Decoder

Decodes Chat Completions streaming chunks (``chat.completion.chunk``).

Tool call arguments arrive as raw JSON fragments keyed by ``index``; the
first fragment for an index carries ``id`` and ``function.name``. They are
buffered in the state and finalized into ToolCallEvents when the turn ends.
"""

from typing import Any, Dict, List

from ..core.models import FinishReason, ToolCall, Usage
from ..streaming.events import StreamEvent, ToolCallDeltaEvent, ToolCallEvent, new_event_id, now
from .base import Payload, StreamDecoder, new_tool_call_id

FINISH_REASON_MAP = {
    "stop": FinishReason.STOP,
    "length": FinishReason.LENGTH,
    "tool_calls": FinishReason.TOOL_CALLS,
    "function_call": FinishReason.TOOL_CALLS,
    "content_filter": FinishReason.CONTENT_FILTER,
}


def usage_from_openai(data: Dict[str, Any]) -> Usage:
    prompt_details = data.get("prompt_tokens_details") or {}
    completion_details = data.get("completion_tokens_details") or {}
    return Usage(
        prompt_tokens=int(data.get("prompt_tokens") or 0),
        completion_tokens=int(data.get("completion_tokens") or 0),
        cache_read_input_tokens=prompt_details.get("cached_tokens"),
        thought_tokens=completion_details.get("reasoning_tokens"),
    )


class OpenAIStreamDecoder(StreamDecoder):
    """Chat Completions chunks -> canonical events."""

    provider = "openai"

    def handle_payload(self, payload: Payload) -> List[StreamEvent]:
        if "error" in payload:
            error = payload["error"] if isinstance(payload["error"], dict) else {"message": str(payload["error"])}
            return self.error(
                error_type=str(error.get("type") or "provider_error"),
                message=str(error.get("message") or "Unknown streaming error"),
                recoverable=error.get("type") in {"server_error", "rate_limit_exceeded"},
                metadata={"code": error["code"]} if error.get("code") else None,
            )

        self.adopt_message_id(payload.get("id"))
        events = self.start_stream(payload.get("model", ""))

        if payload.get("usage"):
            self.set_turn_usage(usage_from_openai(payload["usage"]))

        for choice in payload.get("choices") or []:
            delta = choice.get("delta") or {}

            reasoning = delta.get("reasoning_content") or delta.get("reasoning")
            if reasoning:
                events.extend(self.thinking_delta(reasoning))

            content = delta.get("content")
            if content:
                events.extend(self.text_delta(content))

            for tool_delta in delta.get("tool_calls") or []:
                events.extend(self._tool_call_delta(tool_delta))

            finish_reason = choice.get("finish_reason")
            if finish_reason:
                self.state.with_finish_reason(FINISH_REASON_MAP.get(finish_reason, FinishReason.OTHER))

        return events

    def _tool_call_delta(self, tool_delta: Dict[str, Any]) -> List[StreamEvent]:
        index = int(tool_delta.get("index", 0))
        function = tool_delta.get("function") or {}

        patch = {}
        if tool_delta.get("id"):
            patch["id"] = tool_delta["id"]
        if function.get("name"):
            patch["name"] = function["name"]
        if patch:
            self.state.update_tool_call(index, patch)

        fragment = function.get("arguments")
        if not fragment:
            return []

        self.state.append_tool_call_input(index, fragment)
        current = self.state.tool_calls[index]
        return [
            ToolCallDeltaEvent(
                id=new_event_id(),
                timestamp=now(),
                tool_id=current.get("id", ""),
                tool_name=current.get("name", ""),
                delta=fragment,
                message_id=self.state.message_id,
            )
        ]

    def flush_tool_calls(self) -> List[StreamEvent]:
        events: List[StreamEvent] = []
        for partial in self.state.tool_calls.values():
            tool_call = ToolCall.from_raw_arguments(
                id=partial.get("id") or new_tool_call_id(),
                name=partial.get("name", ""),
                raw_arguments=partial.get("input"),
                reasoning_id=self.state.reasoning_id or None,
            )
            events.append(
                ToolCallEvent(
                    id=new_event_id(),
                    timestamp=now(),
                    tool_call=tool_call,
                    message_id=self.state.message_id,
                )
            )
        return events
