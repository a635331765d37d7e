"""
llmbridge - Stream State

Mutable accumulator owned by exactly one provider decoder for the
lifetime of one logical request. Holds in-progress text, thinking,
per-index tool call fragments, citations, usage and finish reason.

Every mutator returns the state itself so decoder call sites can chain:

    state.with_message_id(msg_id).mark_text_started().append_text(delta)

Nothing in here performs I/O or raises.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..core.models import FinishReason, MessagePartWithCitations, Usage


class StreamState:
    """Accumulated state of one in-flight stream."""

    def __init__(self):
        self._message_id = ""
        self._reasoning_id = ""
        self._model = ""
        self._provider = ""
        self._metadata: Optional[Dict[str, Any]] = None

        self._stream_started = False
        self._text_started = False
        self._thinking_started = False

        self._current_text = ""
        self._current_thinking = ""

        self._current_block_index: Optional[int] = None
        self._current_block_type: Optional[str] = None

        # Keyed by provider tool-call index; dict keeps insertion order
        self._tool_calls: Dict[int, Dict[str, Any]] = {}
        self._citations: List[MessagePartWithCitations] = []

        self._usage: Optional[Usage] = None
        self._finish_reason: Optional[FinishReason] = None

    # ============================================================
    # Read access
    # ============================================================

    @property
    def message_id(self) -> str:
        return self._message_id

    @property
    def reasoning_id(self) -> str:
        return self._reasoning_id

    @property
    def model(self) -> str:
        return self._model

    @property
    def provider(self) -> str:
        return self._provider

    @property
    def metadata(self) -> Optional[Dict[str, Any]]:
        return self._metadata

    @property
    def current_text(self) -> str:
        return self._current_text

    @property
    def current_thinking(self) -> str:
        return self._current_thinking

    @property
    def current_block_index(self) -> Optional[int]:
        return self._current_block_index

    @property
    def current_block_type(self) -> Optional[str]:
        return self._current_block_type

    @property
    def tool_calls(self) -> Dict[int, Dict[str, Any]]:
        return self._tool_calls

    @property
    def citations(self) -> List[MessagePartWithCitations]:
        return self._citations

    @property
    def usage(self) -> Optional[Usage]:
        return self._usage

    @property
    def finish_reason(self) -> Optional[FinishReason]:
        return self._finish_reason

    def has_stream_started(self) -> bool:
        return self._stream_started

    def has_text_started(self) -> bool:
        return self._text_started

    def has_thinking_started(self) -> bool:
        return self._thinking_started

    def has_tool_calls(self) -> bool:
        return len(self._tool_calls) > 0

    def should_emit_stream_start(self) -> bool:
        return not self._stream_started

    def should_emit_text_start(self) -> bool:
        return not self._text_started

    def should_emit_thinking_start(self) -> bool:
        return not self._thinking_started

    # ============================================================
    # Identity
    # ============================================================

    def with_message_id(self, message_id: str) -> StreamState:
        self._message_id = message_id
        return self

    def with_reasoning_id(self, reasoning_id: str) -> StreamState:
        self._reasoning_id = reasoning_id
        return self

    def with_model(self, model: str) -> StreamState:
        self._model = model
        return self

    def with_provider(self, provider: str) -> StreamState:
        self._provider = provider
        return self

    def with_metadata(self, metadata: Optional[Dict[str, Any]]) -> StreamState:
        self._metadata = metadata
        return self

    # ============================================================
    # Flags
    # ============================================================

    def mark_stream_started(self) -> StreamState:
        self._stream_started = True
        return self

    def mark_text_started(self) -> StreamState:
        self._text_started = True
        return self

    def mark_thinking_started(self) -> StreamState:
        self._thinking_started = True
        return self

    def mark_thinking_completed(self) -> StreamState:
        """Thinking block closed; the next thinking delta opens a new one."""
        self._thinking_started = False
        return self

    # ============================================================
    # Text / thinking buffers
    # ============================================================

    def append_text(self, text: str) -> StreamState:
        self._current_text += text
        return self

    def with_text(self, text: str) -> StreamState:
        self._current_text = text
        return self

    def append_thinking(self, thinking: str) -> StreamState:
        self._current_thinking += thinking
        return self

    def with_thinking(self, thinking: str) -> StreamState:
        self._current_thinking = thinking
        return self

    # ============================================================
    # Block context
    # ============================================================

    def with_block_context(self, index: int, block_type: str) -> StreamState:
        self._current_block_index = index
        self._current_block_type = block_type
        return self

    def reset_block_context(self) -> StreamState:
        self._current_block_index = None
        self._current_block_type = None
        return self

    # ============================================================
    # Tool calls
    # ============================================================

    def add_tool_call(self, index: int, tool_call: Dict[str, Any]) -> StreamState:
        """Replace the tool call stored at ``index``."""
        self._tool_calls[index] = tool_call
        return self

    def append_tool_call_input(self, index: int, fragment: str) -> StreamState:
        """
        Append a raw argument fragment to the tool call at ``index``.

        Creates ``{"input": fragment}`` when nothing is stored there yet.
        """
        if index not in self._tool_calls:
            self._tool_calls[index] = {"input": fragment}
            return self

        existing = self._tool_calls[index]
        existing["input"] = str(existing.get("input") or "") + fragment
        return self

    def update_tool_call(self, index: int, patch: Dict[str, Any]) -> StreamState:
        """Shallow-merge ``patch`` into the tool call at ``index``."""
        self._tool_calls[index] = {**self._tool_calls.get(index, {}), **patch}
        return self

    # ============================================================
    # Citations / accounting
    # ============================================================

    def add_citation(self, citation: MessagePartWithCitations) -> StreamState:
        self._citations.append(citation)
        return self

    def with_usage(self, usage: Optional[Usage]) -> StreamState:
        self._usage = usage
        return self

    def with_finish_reason(self, finish_reason: Optional[FinishReason]) -> StreamState:
        self._finish_reason = finish_reason
        return self

    # ============================================================
    # Resets
    # ============================================================

    def reset(self) -> StreamState:
        """
        Turn boundary.

        Clears everything except the stream-started flag, usage and
        finish reason, which carry over into the next tool-calling turn.
        """
        self._message_id = ""
        self._reasoning_id = ""
        self._model = ""
        self._provider = ""
        self._metadata = None
        self._text_started = False
        self._thinking_started = False
        self._current_text = ""
        self._current_thinking = ""
        self._current_block_index = None
        self._current_block_type = None
        self._tool_calls = {}
        self._citations = []
        return self

    def reset_text_state(self) -> StreamState:
        """Message boundary: clears message, text and thinking fields only."""
        self._message_id = ""
        self._reasoning_id = ""
        self._text_started = False
        self._thinking_started = False
        self._current_text = ""
        self._current_thinking = ""
        return self

    def reset_block(self) -> StreamState:
        """Content-block boundary: clears block context only."""
        return self.reset_block_context()
