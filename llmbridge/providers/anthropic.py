"""
llmbridge - Anthropic Stream Decoder

Decodes Messages API stream events:
message_start -> content_block_start/delta/stop* -> message_delta -> message_stop

Client tool calls (``tool_use`` blocks) are emitted as a ToolCallEvent as
soon as their block stops. Server tools (``server_tool_use`` and the
``*_tool_result`` blocks) become ProviderToolEvents.
"""

from typing import Any, Dict, List, Optional

from ..core.models import FinishReason, MessagePartWithCitations, ToolCall, Usage
from ..streaming.events import (
    ProviderToolEvent,
    StreamEvent,
    TextStartEvent,
    ToolCallDeltaEvent,
    ToolCallEvent,
    new_event_id,
    now,
)
from .base import Payload, StreamDecoder, new_tool_call_id

STOP_REASON_MAP = {
    "end_turn": FinishReason.STOP,
    "stop_sequence": FinishReason.STOP,
    "pause_turn": FinishReason.STOP,
    "max_tokens": FinishReason.LENGTH,
    "tool_use": FinishReason.TOOL_CALLS,
    "refusal": FinishReason.CONTENT_FILTER,
}

RECOVERABLE_ERRORS = {"overloaded_error", "rate_limit_error", "api_error"}


class AnthropicStreamDecoder(StreamDecoder):
    """Messages API stream events -> canonical events."""

    provider = "anthropic"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._turn_usage = Usage()
        self._block_text = ""
        self._block_citations: List[Dict[str, Any]] = []

    def _begin_turn(self):
        super()._begin_turn()
        self._turn_usage = Usage()
        self._block_text = ""
        self._block_citations = []

    def handle_payload(self, payload: Payload) -> List[StreamEvent]:
        kind = payload.get("type")

        if kind == "message_start":
            return self._message_start(payload.get("message") or {})
        if kind == "content_block_start":
            return self._block_start(int(payload.get("index", 0)), payload.get("content_block") or {})
        if kind == "content_block_delta":
            return self._block_delta(int(payload.get("index", 0)), payload.get("delta") or {})
        if kind == "content_block_stop":
            return self._block_stop(int(payload.get("index", 0)))
        if kind == "message_delta":
            return self._message_delta(payload)
        if kind == "error":
            error = payload.get("error") or {}
            error_type = str(error.get("type") or "provider_error")
            return self.error(
                error_type=error_type,
                message=str(error.get("message") or "Unknown streaming error"),
                recoverable=error_type in RECOVERABLE_ERRORS,
            )

        # message_stop, ping
        return []

    # ============================================================
    # Message level
    # ============================================================

    def _message_start(self, message: Dict[str, Any]) -> List[StreamEvent]:
        self.adopt_message_id(message.get("id"))
        events = self.start_stream(message.get("model", ""))

        usage = message.get("usage") or {}
        self._turn_usage = Usage(
            prompt_tokens=int(usage.get("input_tokens") or 0),
            completion_tokens=int(usage.get("output_tokens") or 0),
            cache_write_input_tokens=usage.get("cache_creation_input_tokens"),
            cache_read_input_tokens=usage.get("cache_read_input_tokens"),
        )
        self.set_turn_usage(self._turn_usage)
        return events

    def _message_delta(self, payload: Payload) -> List[StreamEvent]:
        stop_reason = (payload.get("delta") or {}).get("stop_reason")
        if stop_reason:
            self.state.with_finish_reason(STOP_REASON_MAP.get(stop_reason, FinishReason.OTHER))

        usage = payload.get("usage") or {}
        if "output_tokens" in usage:
            # output_tokens on message_delta is cumulative for the message
            self._turn_usage = Usage(
                prompt_tokens=self._turn_usage.prompt_tokens,
                completion_tokens=int(usage.get("output_tokens") or 0),
                cache_write_input_tokens=self._turn_usage.cache_write_input_tokens,
                cache_read_input_tokens=self._turn_usage.cache_read_input_tokens,
            )
            self.set_turn_usage(self._turn_usage)
        return []

    # ============================================================
    # Content blocks
    # ============================================================

    def _block_start(self, index: int, block: Dict[str, Any]) -> List[StreamEvent]:
        block_type = str(block.get("type", ""))
        self.state.with_block_context(index, block_type)

        if block_type == "text":
            self._block_text = ""
            self._block_citations = []
            events = self.close_thinking()
            if self.state.should_emit_text_start():
                self.state.mark_text_started()
                events.append(
                    TextStartEvent(id=new_event_id(), timestamp=now(), message_id=self.state.message_id)
                )
            if block.get("text"):
                self._block_text += block["text"]
                events.extend(self.text_delta(block["text"]))
            return events

        if block_type in ("thinking", "redacted_thinking"):
            return self.start_thinking()

        if block_type == "tool_use":
            self.state.add_tool_call(
                index,
                {"id": block.get("id") or new_tool_call_id(), "name": block.get("name", ""), "input": ""},
            )
            return []

        if block_type == "server_tool_use":
            return [self._provider_tool(block.get("id", ""), block.get("name", block_type), "started", block)]

        if block_type.endswith("_tool_result"):
            return [self._provider_tool(block.get("tool_use_id", ""), block_type, "completed", block)]

        return []

    def _block_delta(self, index: int, delta: Dict[str, Any]) -> List[StreamEvent]:
        delta_type = delta.get("type")

        if delta_type == "text_delta":
            text = delta.get("text", "")
            if not text:
                return []
            self._block_text += text
            return self.text_delta(text)

        if delta_type == "thinking_delta":
            thinking = delta.get("thinking", "")
            return self.thinking_delta(thinking) if thinking else []

        if delta_type == "input_json_delta":
            fragment = delta.get("partial_json", "")
            if not fragment or index not in self.state.tool_calls:
                return []
            self.state.append_tool_call_input(index, fragment)
            current = self.state.tool_calls[index]
            return [
                ToolCallDeltaEvent(
                    id=new_event_id(),
                    timestamp=now(),
                    tool_id=current["id"],
                    tool_name=current["name"],
                    delta=fragment,
                    message_id=self.state.message_id,
                )
            ]

        if delta_type == "citations_delta" and delta.get("citation"):
            self._block_citations.append(delta["citation"])

        # signature_delta carries nothing to forward
        return []

    def _block_stop(self, index: int) -> List[StreamEvent]:
        block_type = self.state.current_block_type
        events: List[StreamEvent] = []

        if block_type in ("thinking", "redacted_thinking"):
            events.extend(self.close_thinking())
        elif block_type == "text" and self._block_citations:
            self.state.add_citation(
                MessagePartWithCitations(output_text=self._block_text, citations=list(self._block_citations))
            )
            self._block_citations = []
        elif block_type == "tool_use" and index in self.state.tool_calls:
            events.extend(self._emit_tool_call(index))

        self.state.reset_block()
        return events

    def flush_tool_calls(self) -> List[StreamEvent]:
        """Tool calls whose block never stopped (truncated streams)."""
        events: List[StreamEvent] = []
        for index, partial in list(self.state.tool_calls.items()):
            if not partial.get("emitted"):
                events.extend(self._emit_tool_call(index))
        return events

    # ============================================================
    # Helpers
    # ============================================================

    def _emit_tool_call(self, index: int) -> List[StreamEvent]:
        partial = self.state.tool_calls[index]
        if partial.get("emitted"):
            return []
        self.state.update_tool_call(index, {"emitted": True})
        tool_call = ToolCall.from_raw_arguments(
            id=partial.get("id") or new_tool_call_id(),
            name=partial.get("name", ""),
            raw_arguments=partial.get("input"),
            reasoning_id=self.state.reasoning_id or None,
        )
        return [
            ToolCallEvent(
                id=new_event_id(),
                timestamp=now(),
                tool_call=tool_call,
                message_id=self.state.message_id,
            )
        ]

    def _provider_tool(
        self,
        item_id: str,
        tool_type: str,
        status: str,
        data: Optional[Dict[str, Any]],
    ) -> ProviderToolEvent:
        return ProviderToolEvent(
            id=new_event_id(),
            timestamp=now(),
            item_id=item_id,
            tool_type=tool_type,
            status=status,
            data=dict(data or {}),
        )
