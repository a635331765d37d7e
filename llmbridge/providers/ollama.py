"""
llmbridge - Ollama Stream Decoder

Decodes ``/api/chat`` NDJSON chunks. Token counts are only reported on the
final ``done`` chunk of each turn, so they are accumulated on the state
itself and survive turn resets.
"""

from __future__ import annotations

from typing import Any, Dict, List

from ..core.models import FinishReason, ToolCall, Usage
from ..streaming.events import StreamEvent, ToolCallEvent, new_event_id, now
from ..streaming.state import StreamState
from .base import Payload, StreamDecoder, new_tool_call_id


class OllamaStreamState(StreamState):
    """StreamState with running token counters that ``reset()`` keeps."""

    def __init__(self):
        super().__init__()
        self._prompt_tokens = 0
        self._completion_tokens = 0

    @property
    def prompt_tokens(self) -> int:
        return self._prompt_tokens

    @property
    def completion_tokens(self) -> int:
        return self._completion_tokens

    def add_prompt_tokens(self, tokens: int) -> OllamaStreamState:
        self._prompt_tokens += tokens
        return self

    def add_completion_tokens(self, tokens: int) -> OllamaStreamState:
        self._completion_tokens += tokens
        return self


class OllamaStreamDecoder(StreamDecoder):
    """Ollama chat chunks -> canonical events."""

    provider = "ollama"

    state: OllamaStreamState

    def create_state(self) -> OllamaStreamState:
        return OllamaStreamState()

    def handle_payload(self, payload: Payload) -> List[StreamEvent]:
        if "error" in payload:
            return self.error(
                error_type="provider_error",
                message=str(payload["error"]),
                recoverable=False,
            )

        events = self.start_stream(payload.get("model", ""))
        message = payload.get("message") or {}

        if message.get("thinking"):
            events.extend(self.thinking_delta(message["thinking"]))

        if message.get("content"):
            events.extend(self.text_delta(message["content"]))

        for call in message.get("tool_calls") or []:
            events.extend(self._tool_call(call))

        if payload.get("done"):
            self._finish(payload)

        return events

    def _tool_call(self, call: Dict[str, Any]) -> List[StreamEvent]:
        events = self.close_thinking()
        function = call.get("function") or {}
        index = len(self.state.tool_calls)
        tool_call = ToolCall.from_raw_arguments(
            id=call.get("id") or new_tool_call_id(),
            name=function.get("name", ""),
            raw_arguments=function.get("arguments") or {},
            reasoning_id=self.state.reasoning_id or None,
        )
        self.state.add_tool_call(index, {"id": tool_call.id, "name": tool_call.name, "input": tool_call.arguments})
        events.append(
            ToolCallEvent(
                id=new_event_id(),
                timestamp=now(),
                tool_call=tool_call,
                message_id=self.state.message_id,
            )
        )
        return events

    def _finish(self, payload: Payload):
        self.state.add_prompt_tokens(int(payload.get("prompt_eval_count") or 0))
        self.state.add_completion_tokens(int(payload.get("eval_count") or 0))
        self.state.with_usage(
            Usage(
                prompt_tokens=self.state.prompt_tokens,
                completion_tokens=self.state.completion_tokens,
            )
        )

        if self.state.has_tool_calls():
            self.state.with_finish_reason(FinishReason.TOOL_CALLS)
        elif payload.get("done_reason") == "length":
            self.state.with_finish_reason(FinishReason.LENGTH)
        else:
            self.state.with_finish_reason(FinishReason.STOP)
