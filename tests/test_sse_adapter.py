"""
llmbridge - SSE Adapter Tests

Verifies:
- Headers and frame format over HTTP (TestClient)
- One frame per event, in order, followed by the [DONE] sentinel
- Encoding failures and source exceptions become error frames
- Callback receives every collected event
- Client disconnect stops the stream without a sentinel
- Metrics and spans are recorded
"""

import json
import logging

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from llmbridge.config import StreamSettings
from llmbridge.core.errors import RateLimitedError
from llmbridge.core.models import FinishReason, TextRequest, ToolResult
from llmbridge.streaming.adapters import DONE_SENTINEL, SSEAdapter
from llmbridge.streaming.collector import StreamCollector
from llmbridge.streaming.events import (
    ErrorEvent,
    StreamEndEvent,
    TextDeltaEvent,
    ToolResultEvent,
)

from conftest import FakeConnection, agen, drain


def parse_frame(frame: str):
    """Split an SSE frame into (event name, decoded data)."""
    assert frame.endswith("\n\n")
    event_line, data_line = frame[:-2].split("\n")
    assert event_line.startswith("event: ")
    assert data_line.startswith("data: ")
    return event_line[len("event: "):], json.loads(data_line[len("data: "):])


# ============================================================
# HTTP Level
# ============================================================

class TestSSEOverHTTP:
    """The adapter as a FastAPI response."""

    @pytest.fixture
    def client(self, adapter_kwargs, text_stream):
        app = FastAPI()
        adapter = SSEAdapter(**adapter_kwargs)

        @app.get("/stream")
        async def stream():
            return adapter(agen(text_stream))

        return TestClient(app)

    def test_headers(self, client):
        response = client.get("/stream")

        assert response.status_code == 200
        assert response.headers["content-type"] == "text/event-stream"
        assert response.headers["cache-control"] == "no-cache"
        assert response.headers["x-accel-buffering"] == "no"

    def test_body_frames(self, client, text_stream):
        body = client.get("/stream").text

        assert body.endswith(DONE_SENTINEL)
        assert body.count(DONE_SENTINEL) == 1

        frames = [f + "\n\n" for f in body[:-len(DONE_SENTINEL)].split("\n\n") if f]
        assert len(frames) == len(text_stream)

        names = [parse_frame(f)[0] for f in frames]
        assert names == [e.type.value for e in text_stream]


# ============================================================
# Frame Generation
# ============================================================

class TestSSEFrames:
    """Driving stream() directly."""

    @pytest.mark.asyncio
    async def test_frame_format(self, adapter_kwargs):
        event = TextDeltaEvent(id="e1", timestamp=1700000000, delta="Hello", message_id="m1")

        frames = await drain(SSEAdapter(**adapter_kwargs).stream([event]))

        assert frames[0] == (
            'event: text-delta\n'
            'data: {"id":"e1","timestamp":1700000000,"delta":"Hello","message_id":"m1"}\n\n'
        )
        assert frames[-1] == DONE_SENTINEL

    @pytest.mark.asyncio
    async def test_non_ascii_kept_verbatim(self, adapter_kwargs):
        event = TextDeltaEvent(id="e1", timestamp=1, delta="héllo 🌍", message_id="m1")

        frames = await drain(SSEAdapter(**adapter_kwargs).stream([event]))

        assert "héllo 🌍" in frames[0]

    @pytest.mark.asyncio
    async def test_empty_stream_still_ends_with_sentinel(self, adapter_kwargs):
        frames = await drain(SSEAdapter(**adapter_kwargs).stream([]))
        assert frames == [DONE_SENTINEL]

    @pytest.mark.asyncio
    async def test_sync_and_async_sources_match(self, adapter_kwargs, text_stream):
        adapter = SSEAdapter(**adapter_kwargs)

        from_sync = await drain(adapter.stream(text_stream))
        from_async = await drain(adapter.stream(agen(text_stream)))

        assert from_sync == from_async


# ============================================================
# Failure Handling
# ============================================================

class TestSSEFailures:
    """Encoding failures and source exceptions."""

    @pytest.mark.asyncio
    async def test_unencodable_payload_becomes_error_frame(self, adapter_kwargs, stream_metrics, fresh_registry):
        bad = ToolResultEvent(
            id="bad",
            timestamp=1,
            tool_result=ToolResult(tool_call_id="c1", tool_name="t", args={}, result=b"\x00raw"),
            message_id="m1",
        )
        good = TextDeltaEvent(id="ok", timestamp=1, delta="after", message_id="m1")

        frames = await drain(SSEAdapter(**adapter_kwargs).stream([bad, good]))

        assert len(frames) == 3
        name, data = parse_frame(frames[0])
        assert name == "error"
        assert data["message"].startswith("Failed to encode event data as JSON")
        assert data["metadata"] == {"event_id": "bad", "event_type": "tool-result"}
        assert parse_frame(frames[1])[1]["delta"] == "after"
        assert frames[2] == DONE_SENTINEL
        assert fresh_registry.get_sample_value(
            "llmbridge_stream_encoding_failures_total", {"adapter": "sse"}
        ) == 1.0

    @pytest.mark.asyncio
    async def test_invalid_utf8_becomes_error_frame(self, adapter_kwargs):
        event = TextDeltaEvent(id="e1", timestamp=1, delta="bad \ud800 surrogate", message_id="m1")

        frames = await drain(SSEAdapter(**adapter_kwargs).stream([event]))

        name, data = parse_frame(frames[0])
        assert name == "error"
        assert data["message"].startswith("Failed to encode event data as JSON")
        assert frames[-1] == DONE_SENTINEL

    @pytest.mark.asyncio
    async def test_source_exception_becomes_one_error_frame(self, adapter_kwargs):
        collected = []

        async def failing():
            yield TextDeltaEvent(id="e1", timestamp=1, delta="partial", message_id="m1")
            raise RuntimeError("upstream went away")

        frames = await drain(
            SSEAdapter(**adapter_kwargs).stream(failing(), callback=lambda req, events: collected.extend(events))
        )

        assert len(frames) == 3
        name, data = parse_frame(frames[1])
        assert name == "error"
        assert data["error_type"] == "RuntimeError"
        assert data["message"] == "upstream went away"
        assert data["recoverable"] is False
        assert frames[2] == DONE_SENTINEL

        assert isinstance(collected[-1], ErrorEvent)
        assert collected[-1].message == "upstream went away"

    @pytest.mark.asyncio
    async def test_domain_error_carries_code_and_recoverable(self, adapter_kwargs):
        async def failing():
            raise RateLimitedError("openai", retry_after=12)
            yield  # pragma: no cover

        frames = await drain(SSEAdapter(**adapter_kwargs).stream(failing()))

        _, data = parse_frame(frames[0])
        assert data["error_type"] == "RateLimitedError"
        assert data["recoverable"] is True
        assert data["metadata"]["code"] == 429
        assert data["metadata"]["retry_after"] == 12

    @pytest.mark.asyncio
    async def test_error_details_hidden_when_disabled(self, stream_metrics, tracing):
        collected = []
        adapter = SSEAdapter(
            settings=StreamSettings(expose_error_details=False),
            metrics=stream_metrics,
            tracing=tracing,
        )

        async def failing():
            raise RuntimeError("db password is hunter2")
            yield  # pragma: no cover

        frames = await drain(adapter.stream(failing(), callback=lambda req, events: collected.extend(events)))

        _, data = parse_frame(frames[0])
        assert "hunter2" not in data["message"]
        assert collected[0].message == "db password is hunter2"


# ============================================================
# Callback and Disconnect
# ============================================================

class TestSSECallback:
    """Completion callback and disconnect handling."""

    @pytest.mark.asyncio
    async def test_callback_receives_request_and_events(self, adapter_kwargs, text_stream):
        request = TextRequest(model="openai/gpt-4o")
        calls = []

        await drain(
            SSEAdapter(**adapter_kwargs).stream(
                text_stream,
                request=request,
                callback=lambda req, events: calls.append((req, events)),
            )
        )

        assert len(calls) == 1
        assert calls[0][0] is request
        assert calls[0][1] == text_stream

    @pytest.mark.asyncio
    async def test_async_callback_without_request(self, adapter_kwargs, text_stream):
        calls = []

        async def callback(request, events):
            calls.append((request, len(events)))

        await drain(SSEAdapter(**adapter_kwargs).stream(text_stream, callback=callback))

        assert calls == [(None, len(text_stream))]

    @pytest.mark.asyncio
    async def test_callback_failure_does_not_break_stream(self, adapter_kwargs, text_stream):
        def callback(request, events):
            raise RuntimeError("persist failed")

        frames = await drain(SSEAdapter(**adapter_kwargs).stream(text_stream, callback=callback))

        assert frames[-1] == DONE_SENTINEL

    @pytest.mark.asyncio
    async def test_disconnect_stops_without_sentinel(self, adapter_kwargs, fresh_registry, text_stream):
        collected = []

        frames = await drain(
            SSEAdapter(**adapter_kwargs).stream(
                agen(text_stream),
                callback=lambda req, events: collected.extend(events),
                connection=FakeConnection(after=2),
            )
        )

        assert len(frames) == 2
        assert DONE_SENTINEL not in frames
        # The event pulled when the disconnect was noticed is still collected
        assert collected == text_stream[:3]
        assert fresh_registry.get_sample_value(
            "llmbridge_stream_disconnects_total", {"adapter": "sse"}
        ) == 1.0

    @pytest.mark.asyncio
    async def test_collector_wraps_source_for_single_pass(self, adapter_kwargs, text_stream):
        completed = []
        collector = StreamCollector(
            agen(text_stream),
            on_complete=lambda req, messages, response: completed.append(response.text),
        )

        frames = await drain(SSEAdapter(**adapter_kwargs).stream(collector))

        assert len(frames) == len(text_stream) + 1
        assert completed == ["Hello world"]


# ============================================================
# Observability
# ============================================================

class TestSSEObservability:
    """Metrics and spans recorded per stream."""

    @pytest.mark.asyncio
    async def test_event_and_token_metrics(self, adapter_kwargs, fresh_registry, text_stream):
        await drain(SSEAdapter(**adapter_kwargs).stream(text_stream))

        assert fresh_registry.get_sample_value(
            "llmbridge_stream_events_total", {"adapter": "sse", "type": "text-delta"}
        ) == 2.0
        assert fresh_registry.get_sample_value(
            "llmbridge_stream_tokens_total", {"provider": "openai", "model": "gpt-4o", "type": "prompt"}
        ) == 10.0
        assert fresh_registry.get_sample_value(
            "llmbridge_stream_duration_seconds_count", {"adapter": "sse"}
        ) == 1.0

    @pytest.mark.asyncio
    async def test_error_metric(self, adapter_kwargs, fresh_registry):
        error = ErrorEvent(id="e1", timestamp=1, error_type="overloaded_error", message="busy", recoverable=True)

        await drain(SSEAdapter(**adapter_kwargs).stream([error]))

        assert fresh_registry.get_sample_value(
            "llmbridge_stream_errors_total", {"adapter": "sse", "error_type": "overloaded_error"}
        ) == 1.0

    @pytest.mark.asyncio
    async def test_metrics_disabled(self, stream_metrics, tracing, fresh_registry, text_stream):
        adapter = SSEAdapter(settings=StreamSettings(stream_metrics=False), metrics=stream_metrics, tracing=tracing)

        await drain(adapter.stream(text_stream))

        assert fresh_registry.get_sample_value(
            "llmbridge_stream_events_total", {"adapter": "sse", "type": "text-delta"}
        ) is None

    @pytest.mark.asyncio
    async def test_span_per_stream(self, adapter_kwargs, span_exporter, text_stream):
        await drain(SSEAdapter(**adapter_kwargs).stream(text_stream, request=TextRequest(model="openai/gpt-4o")))

        spans = span_exporter.get_finished_spans()
        assert len(spans) == 1
        assert spans[0].name == "llmbridge.stream.sse"
        assert spans[0].attributes["llmbridge.stream.event_count"] == len(text_stream)
        assert spans[0].attributes["llmbridge.provider"] == "openai"
        assert spans[0].attributes["llmbridge.stream.disconnected"] is False

    @pytest.mark.asyncio
    async def test_log_lines_carry_trace_id(self, adapter_kwargs, span_exporter, text_stream, caplog):
        caplog.set_level(logging.INFO, logger="llmbridge")

        await drain(SSEAdapter(**adapter_kwargs).stream(text_stream))

        span = span_exporter.get_finished_spans()[0]
        started = [r for r in caplog.records if r.getMessage() == "Stream started"]
        assert started[0].trace_id == format(span.context.trace_id, "032x")

    @pytest.mark.asyncio
    async def test_stream_end_finish_reason_on_wire(self, adapter_kwargs):
        end = StreamEndEvent(id="end", timestamp=1, finish_reason=FinishReason.CONTENT_FILTER)

        frames = await drain(SSEAdapter(**adapter_kwargs).stream([end]))

        name, data = parse_frame(frames[0])
        assert name == "stream-end"
        assert data["finish_reason"] == "content_filter"
