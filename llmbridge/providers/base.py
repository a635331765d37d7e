"""
llmbridge - Provider Stream Decoder Base

A decoder owns one StreamState for one logical request and translates
provider payloads into canonical stream events.

Contract:
- ``decode_turn(payloads)`` consumes the payloads of one provider response
  (one model turn) and yields the events for it
- ``end_event()`` builds the single terminal StreamEndEvent
- ``decode(payloads)`` is a one-turn stream: ``decode_turn`` then ``end_event``
- provider-reported errors become an ErrorEvent and finish reason ``error``;
  nothing raised by the provider payload escapes the decoder

Usage is accumulated across turns: the usage reported for a turn is added
to the total of the previous turns.
"""

import uuid
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, ClassVar, Dict, List, Optional

from ..core.models import FinishReason, TextRequest, Usage
from ..streaming.events import (
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
    new_event_id,
    now,
)
from ..streaming.sources import Source, aiterate
from ..streaming.state import StreamState

Payload = Dict[str, Any]


def new_message_id() -> str:
    return f"msg_{uuid.uuid4().hex[:24]}"


def new_reasoning_id() -> str:
    return f"rs_{uuid.uuid4().hex[:24]}"


def new_tool_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:24]}"


class StreamDecoder(ABC):
    """Base class for provider stream decoders."""

    provider: ClassVar[str] = ""

    def __init__(self, request: Optional[TextRequest] = None, state: Optional[StreamState] = None):
        self.request = request
        self.state = state if state is not None else self.create_state()
        self._previous_usage: Optional[Usage] = None

    def create_state(self) -> StreamState:
        return StreamState()

    # ============================================================
    # Public API
    # ============================================================

    async def decode(self, payloads: Source[Payload]) -> AsyncIterator[StreamEvent]:
        """Decode a single-turn stream, terminated by its StreamEndEvent."""
        async for event in self.decode_turn(payloads):
            yield event
        yield self.end_event()

    async def decode_turn(self, payloads: Source[Payload]) -> AsyncIterator[StreamEvent]:
        """Decode the payloads of one provider response."""
        self._begin_turn()
        async for payload in aiterate(payloads):
            for event in self.handle_payload(payload):
                yield event
            if self.state.finish_reason == FinishReason.ERROR:
                return
        for event in self.finish_turn():
            yield event

    def end_event(self) -> StreamEndEvent:
        return StreamEndEvent(
            id=new_event_id(),
            timestamp=now(),
            finish_reason=self.state.finish_reason or FinishReason.UNKNOWN,
            usage=self.state.usage,
            citations=list(self.state.citations),
        )

    # ============================================================
    # Provider hooks
    # ============================================================

    @abstractmethod
    def handle_payload(self, payload: Payload) -> List[StreamEvent]:
        """Events for one provider payload."""

    def flush_tool_calls(self) -> List[StreamEvent]:
        """ToolCallEvents for tool calls still buffered in the state."""
        return []

    def finish_turn(self) -> List[StreamEvent]:
        """Events closing the turn after the last payload."""
        events = self.close_thinking()
        events.extend(self.flush_tool_calls())
        events.extend(self.close_text())
        return events

    # ============================================================
    # Shared helpers
    # ============================================================

    def _begin_turn(self):
        self._previous_usage = self.state.usage
        self.state.mark_thinking_completed()
        self.state.with_finish_reason(None)
        if not self.state.message_id:
            self.state.with_message_id(new_message_id())

    def adopt_message_id(self, message_id: Optional[str]):
        """Use the provider's message id while nothing has referenced ours yet."""
        if message_id and not self.state.has_text_started() and not self.state.has_tool_calls():
            self.state.with_message_id(message_id)

    def set_turn_usage(self, usage: Usage):
        """Record the (cumulative) usage reported for the current turn."""
        if self._previous_usage is None:
            self.state.with_usage(usage)
        else:
            self.state.with_usage(self._previous_usage + usage)

    def start_stream(self, model: str, metadata: Optional[Dict[str, Any]] = None) -> List[StreamEvent]:
        """StreamStartEvent the first time a stream reports its model."""
        if model:
            self.state.with_model(model)
        self.state.with_provider(self.provider)
        if metadata:
            self.state.with_metadata(metadata)

        if not self.state.should_emit_stream_start():
            return []

        self.state.mark_stream_started()
        return [
            StreamStartEvent(
                id=new_event_id(),
                timestamp=now(),
                model=self.state.model,
                provider=self.provider,
                metadata=self.state.metadata,
            )
        ]

    def text_delta(self, delta: str) -> List[StreamEvent]:
        events = self.close_thinking()
        if self.state.should_emit_text_start():
            self.state.mark_text_started()
            events.append(TextStartEvent(id=new_event_id(), timestamp=now(), message_id=self.state.message_id))

        self.state.append_text(delta)
        events.append(
            TextDeltaEvent(
                id=new_event_id(),
                timestamp=now(),
                delta=delta,
                message_id=self.state.message_id,
            )
        )
        return events

    def close_text(self) -> List[StreamEvent]:
        if not self.state.has_text_started():
            return []
        events: List[StreamEvent] = [
            TextCompleteEvent(id=new_event_id(), timestamp=now(), message_id=self.state.message_id)
        ]
        self.state.reset_text_state()
        return events

    def thinking_delta(self, delta: str) -> List[StreamEvent]:
        events = self.start_thinking()
        self.state.append_thinking(delta)
        events.append(
            ThinkingEvent(
                id=new_event_id(),
                timestamp=now(),
                delta=delta,
                reasoning_id=self.state.reasoning_id,
            )
        )
        return events

    def start_thinking(self) -> List[StreamEvent]:
        if not self.state.should_emit_thinking_start():
            return []
        if not self.state.reasoning_id:
            self.state.with_reasoning_id(new_reasoning_id())
        self.state.mark_thinking_started()
        return [ThinkingStartEvent(id=new_event_id(), timestamp=now(), reasoning_id=self.state.reasoning_id)]

    def close_thinking(self) -> List[StreamEvent]:
        if not self.state.has_thinking_started():
            return []
        self.state.mark_thinking_completed()
        return [
            ThinkingCompleteEvent(id=new_event_id(), timestamp=now(), reasoning_id=self.state.reasoning_id)
        ]

    def error(
        self,
        error_type: str,
        message: str,
        recoverable: bool = False,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> List[StreamEvent]:
        """In-band provider error; ends the turn with finish reason ``error``."""
        self.state.with_finish_reason(FinishReason.ERROR)
        return [
            ErrorEvent(
                id=new_event_id(),
                timestamp=now(),
                error_type=error_type,
                message=message,
                recoverable=recoverable,
                metadata=metadata or {},
            )
        ]
