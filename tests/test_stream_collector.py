"""
llmbridge - Stream Collector Tests

Verifies:
- Events pass through unchanged and in order (sync and async sources)
- Message reconstruction and flush boundaries
- Response / Step assembly
- on_complete semantics (once, sync or async, failures contained)
"""

import pytest

from llmbridge.core.models import (
    AssistantMessage,
    FinishReason,
    TextRequest,
    ToolCall,
    ToolResult,
    ToolResultMessage,
    Usage,
)
from llmbridge.streaming.collector import StreamCollector
from llmbridge.streaming.events import (
    ErrorEvent,
    ProviderToolEvent,
    StreamEndEvent,
    TextDeltaEvent,
    TextStartEvent,
    ToolCallEvent,
    ToolResultEvent,
)

from conftest import agen, drain


def _end(**kwargs):
    return StreamEndEvent(id="end", timestamp=1, finish_reason=kwargs.pop("finish_reason", FinishReason.STOP), **kwargs)


# ============================================================
# Pass-through
# ============================================================

class TestPassThrough:
    """The collector never alters the stream."""

    def test_sync_iteration_preserves_order(self, tool_stream):
        collector = StreamCollector(tool_stream)
        assert list(collector) == tool_stream

    @pytest.mark.asyncio
    async def test_async_iteration_preserves_order(self, tool_stream):
        collector = StreamCollector(agen(tool_stream))
        assert await drain(collector) == tool_stream

    @pytest.mark.asyncio
    async def test_async_iteration_over_sync_source(self, text_stream):
        collector = StreamCollector(text_stream)
        assert await drain(collector) == text_stream
        assert collector.completed is True

    @pytest.mark.asyncio
    async def test_async_iteration_over_sync_source_awaits_callback(self, text_stream):
        calls = []

        async def on_complete(request, messages, response):
            calls.append(response.text)

        collector = StreamCollector(text_stream, on_complete=on_complete)

        assert await drain(collector) == text_stream
        assert calls == ["Hello world"]

    def test_error_events_pass_through_untouched(self):
        error = ErrorEvent(id="err", timestamp=1, error_type="x", message="m", recoverable=False)
        events = [error, _end()]

        collector = StreamCollector(events)

        assert list(collector) == events
        assert collector.messages == []


# ============================================================
# Message Reconstruction
# ============================================================

class TestMessageReconstruction:
    """Finalization rules."""

    def test_text_only_stream(self, text_stream):
        collector = StreamCollector(text_stream)
        list(collector)

        assert collector.messages == [AssistantMessage(content="Hello world")]

    def test_text_tool_result_text(self, tool_stream):
        collector = StreamCollector(tool_stream)
        list(collector)

        messages = collector.messages
        assert len(messages) == 3
        assert isinstance(messages[0], AssistantMessage)
        assert messages[0].content == "Let me check."
        assert messages[0].tool_calls[0].name == "get_weather"
        assert isinstance(messages[1], ToolResultMessage)
        assert messages[1].tool_results[0].result == "Sunny, 22C"
        assert messages[2] == AssistantMessage(content="It is sunny.")

    def test_text_then_tool_call_is_one_message(self):
        tool_call = ToolCall(id="call_x", name="lookup", arguments={"q": "x"})
        events = [
            TextStartEvent(id="s1", timestamp=1, message_id="m1"),
            TextDeltaEvent(id="d1", timestamp=1, delta="A", message_id="m1"),
            TextDeltaEvent(id="d2", timestamp=1, delta="B", message_id="m1"),
            ToolCallEvent(id="t1", timestamp=1, tool_call=tool_call, message_id="m1"),
            _end(),
        ]
        collector = StreamCollector(events)
        list(collector)

        assert collector.messages == [AssistantMessage(content="AB", tool_calls=[tool_call])]

    def test_tool_result_splits_text_messages(self):
        tool_result = ToolResult(tool_call_id="call_r", tool_name="lookup", args={}, result="42")
        events = [
            TextDeltaEvent(id="d1", timestamp=1, delta="hi", message_id="m1"),
            ToolResultEvent(id="r1", timestamp=1, tool_result=tool_result, message_id="m1"),
            TextStartEvent(id="s1", timestamp=1, message_id="m2"),
            TextDeltaEvent(id="d2", timestamp=1, delta="bye", message_id="m2"),
            _end(),
        ]
        collector = StreamCollector(events)
        list(collector)

        assert collector.messages == [
            AssistantMessage(content="hi"),
            ToolResultMessage(tool_results=[tool_result]),
            AssistantMessage(content="bye"),
        ]

    def test_delta_without_start_accumulates(self):
        events = [
            TextDeltaEvent(id="d1", timestamp=1, delta="orphan", message_id="m1"),
            _end(),
        ]
        collector = StreamCollector(events)
        list(collector)

        assert collector.messages == [AssistantMessage(content="orphan")]

    def test_text_start_flushes_pending_text(self):
        events = [
            TextStartEvent(id="s1", timestamp=1, message_id="m1"),
            TextDeltaEvent(id="d1", timestamp=1, delta="first", message_id="m1"),
            TextStartEvent(id="s2", timestamp=1, message_id="m2"),
            TextDeltaEvent(id="d2", timestamp=1, delta="second", message_id="m2"),
            _end(),
        ]
        collector = StreamCollector(events)
        list(collector)

        assert [m.content for m in collector.messages] == ["first", "second"]

    def test_assistant_message_precedes_tool_results(self):
        tool_call = ToolCall(id="c1", name="t")
        tool_result = ToolResult(tool_call_id="c1", tool_name="t", args={}, result="r")
        events = [
            ToolResultEvent(id="r1", timestamp=1, tool_result=tool_result, message_id="m1"),
            ToolCallEvent(id="t1", timestamp=1, tool_call=tool_call, message_id="m1"),
            _end(),
        ]
        collector = StreamCollector(events)
        list(collector)

        assert isinstance(collector.messages[0], AssistantMessage)
        assert isinstance(collector.messages[1], ToolResultMessage)

    def test_first_provider_tool_flushes_pending_text(self):
        events = [
            TextStartEvent(id="s1", timestamp=1, message_id="m1"),
            TextDeltaEvent(id="d1", timestamp=1, delta="Searching", message_id="m1"),
            ProviderToolEvent(id="p1", timestamp=1, item_id="ws_1", tool_type="web_search", status="started"),
            TextDeltaEvent(id="d2", timestamp=1, delta="Found it", message_id="m1"),
            ProviderToolEvent(id="p2", timestamp=1, item_id="ws_1", tool_type="web_search", status="completed"),
            TextDeltaEvent(id="d3", timestamp=1, delta=".", message_id="m1"),
            _end(),
        ]
        collector = StreamCollector(events)
        list(collector)

        # Only the first provider tool call flushes
        assert [m.content for m in collector.messages] == ["Searching", "Found it."]
        assert len(collector.response.steps[0].provider_tool_calls) == 2

    def test_provider_tool_calls_never_become_messages(self):
        events = [
            ProviderToolEvent(id="p1", timestamp=1, item_id="ws_1", tool_type="web_search", status="completed"),
            _end(),
        ]
        collector = StreamCollector(events)
        list(collector)

        assert collector.messages == []
        assert collector.response.steps[0].provider_tool_calls[0].id == "ws_1"


# ============================================================
# Response Assembly
# ============================================================

class TestResponseAssembly:
    """Final Response and Step."""

    def test_response_fields(self, tool_stream):
        collector = StreamCollector(tool_stream)
        list(collector)
        response = collector.response

        assert response.text == "Let me check.It is sunny."
        assert response.finish_reason == FinishReason.STOP
        assert [tc.id for tc in response.tool_calls] == ["call_1"]
        assert [tr.tool_call_id for tr in response.tool_results] == ["call_1"]
        assert response.usage == Usage(prompt_tokens=30, completion_tokens=12)
        assert response.meta.id == ""
        assert response.meta.model == ""
        assert response.messages == collector.messages

    def test_single_step_when_content_present(self, text_stream):
        collector = StreamCollector(text_stream)
        list(collector)

        assert len(collector.response.steps) == 1
        step = collector.response.steps[0]
        assert step.text == "Hello world"
        assert step.usage == Usage(prompt_tokens=10, completion_tokens=5)

    def test_no_step_for_empty_stream(self):
        collector = StreamCollector([_end(finish_reason=FinishReason.LENGTH)])
        list(collector)

        response = collector.response
        assert response.steps == []
        assert response.text == ""
        assert response.finish_reason == FinishReason.LENGTH

    def test_usage_defaults_to_zero(self):
        collector = StreamCollector([_end()])
        list(collector)

        assert collector.response.usage == Usage(0, 0)

    def test_no_response_before_stream_end(self):
        collector = StreamCollector([TextDeltaEvent(id="d1", timestamp=1, delta="x", message_id="m")])
        list(collector)

        assert collector.response is None
        assert collector.completed is False


# ============================================================
# Completion Callback
# ============================================================

class TestOnComplete:
    """on_complete(request, messages, response)."""

    def test_called_once_with_request_messages_response(self, text_stream):
        request = TextRequest(model="openai/gpt-4o")
        calls = []

        collector = StreamCollector(
            text_stream,
            request=request,
            on_complete=lambda req, messages, response: calls.append((req, messages, response)),
        )
        list(collector)

        assert len(calls) == 1
        req, messages, response = calls[0]
        assert req is request
        assert messages == [AssistantMessage(content="Hello world")]
        assert response.text == "Hello world"

    def test_called_with_none_request(self, text_stream):
        calls = []
        list(StreamCollector(text_stream, on_complete=lambda *args: calls.append(args)))

        assert calls[0][0] is None

    def test_second_stream_end_does_not_call_again(self, text_stream):
        calls = []
        events = text_stream + [_end()]

        collector = StreamCollector(events, on_complete=lambda *args: calls.append(args))
        out = list(collector)

        assert len(out) == len(events)
        assert len(calls) == 1

    def test_callback_exception_is_contained(self, text_stream):
        def broken(*args):
            raise RuntimeError("storage down")

        collector = StreamCollector(text_stream, on_complete=broken)

        assert list(collector) == text_stream
        assert collector.response.text == "Hello world"

    @pytest.mark.asyncio
    async def test_async_callback_awaited(self, text_stream):
        calls = []

        async def on_complete(request, messages, response):
            calls.append(response.text)

        await drain(StreamCollector(agen(text_stream), on_complete=on_complete))

        assert calls == ["Hello world"]

    @pytest.mark.asyncio
    async def test_async_callback_failure_contained(self, text_stream):
        async def on_complete(request, messages, response):
            raise RuntimeError("boom")

        out = await drain(StreamCollector(agen(text_stream), on_complete=on_complete))

        assert out == text_stream

    def test_callback_not_called_without_stream_end(self):
        calls = []
        events = [TextDeltaEvent(id="d1", timestamp=1, delta="x", message_id="m")]

        list(StreamCollector(events, on_complete=lambda *args: calls.append(args)))

        assert calls == []
