"""
llmbridge - Pytest Configuration

Configures:
- Isolated metrics / tracing for adapter tests
- Event and payload factories shared by the streaming tests
"""

import json
import pytest
import logging
from typing import Any, Dict, List

from prometheus_client import CollectorRegistry
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from llmbridge.config import StreamSettings
from llmbridge.core.models import FinishReason, ToolCall, ToolResult, Usage
from llmbridge.observability.metrics import StreamMetrics
from llmbridge.observability.tracing import TracingManager
from llmbridge.streaming.events import (
    StreamEndEvent,
    StreamStartEvent,
    TextCompleteEvent,
    TextDeltaEvent,
    TextStartEvent,
    ToolCallEvent,
    ToolResultEvent,
)


# ============================================================
# Observability Fixtures
# ============================================================

@pytest.fixture
def fresh_registry():
    """Create a fresh registry for each test."""
    return CollectorRegistry()


@pytest.fixture
def stream_metrics(fresh_registry):
    return StreamMetrics(registry=fresh_registry)


@pytest.fixture
def span_exporter():
    return InMemorySpanExporter()


@pytest.fixture
def tracing(span_exporter):
    """Tracing manager exporting to memory, never installed globally."""
    manager = TracingManager(
        service_name="llmbridge-test",
        span_processor=SimpleSpanProcessor(span_exporter),
        set_global=False,
    )
    yield manager
    manager.shutdown()


@pytest.fixture
def settings():
    return StreamSettings()


@pytest.fixture
def adapter_kwargs(settings, stream_metrics, tracing):
    """Constructor arguments for an adapter with isolated observability."""
    return {"settings": settings, "metrics": stream_metrics, "tracing": tracing}


# ============================================================
# Event Factories
# ============================================================

@pytest.fixture
def text_stream():
    """
    A minimal text-only stream.

    start -> text-start -> "Hello" -> " world" -> text-complete -> end
    """
    return [
        StreamStartEvent(id="e0", timestamp=1700000000, model="gpt-4o", provider="openai"),
        TextStartEvent(id="e1", timestamp=1700000000, message_id="m1"),
        TextDeltaEvent(id="e2", timestamp=1700000000, delta="Hello", message_id="m1"),
        TextDeltaEvent(id="e3", timestamp=1700000000, delta=" world", message_id="m1"),
        TextCompleteEvent(id="e4", timestamp=1700000000, message_id="m1"),
        StreamEndEvent(
            id="e5",
            timestamp=1700000000,
            finish_reason=FinishReason.STOP,
            usage=Usage(prompt_tokens=10, completion_tokens=5),
        ),
    ]


@pytest.fixture
def tool_stream():
    """Text, one tool call and its result, then follow-up text."""
    tool_call = ToolCall(id="call_1", name="get_weather", arguments={"city": "Paris"})
    tool_result = ToolResult(
        tool_call_id="call_1",
        tool_name="get_weather",
        args={"city": "Paris"},
        result="Sunny, 22C",
    )
    return [
        StreamStartEvent(id="e0", timestamp=1700000000, model="claude-3-5-sonnet", provider="anthropic"),
        TextStartEvent(id="e1", timestamp=1700000000, message_id="m1"),
        TextDeltaEvent(id="e2", timestamp=1700000000, delta="Let me check.", message_id="m1"),
        ToolCallEvent(id="e3", timestamp=1700000000, tool_call=tool_call, message_id="m1"),
        TextCompleteEvent(id="e4", timestamp=1700000000, message_id="m1"),
        ToolResultEvent(id="e5", timestamp=1700000000, tool_result=tool_result, message_id="m1"),
        TextStartEvent(id="e6", timestamp=1700000000, message_id="m2"),
        TextDeltaEvent(id="e7", timestamp=1700000000, delta="It is sunny.", message_id="m2"),
        TextCompleteEvent(id="e8", timestamp=1700000000, message_id="m2"),
        StreamEndEvent(
            id="e9",
            timestamp=1700000000,
            finish_reason=FinishReason.STOP,
            usage=Usage(prompt_tokens=30, completion_tokens=12),
        ),
    ]


# ============================================================
# Helpers
# ============================================================

async def drain(async_iterable) -> List[Any]:
    """Consume an async iterable into a list."""
    return [item async for item in async_iterable]


async def agen(items):
    """Async generator over ``items``."""
    for item in items:
        yield item


class FakeConnection:
    """Stand-in for a Starlette Request; disconnects after ``after`` checks."""

    def __init__(self, after: int):
        self.after = after
        self.checks = 0

    async def is_disconnected(self) -> bool:
        self.checks += 1
        return self.checks > self.after


def sse_lines(payloads: List[Dict[str, Any]], event_names: bool = False) -> str:
    """Render payloads as an SSE body as a provider would send it."""
    chunks = []
    for payload in payloads:
        if event_names and "type" in payload:
            chunks.append(f"event: {payload['type']}\n")
        chunks.append(f"data: {json.dumps(payload)}\n\n")
    return "".join(chunks)


# ============================================================
# Logging Configuration
# ============================================================

@pytest.fixture(autouse=True)
def configure_test_logging():
    """Configure logging for tests."""
    logging.basicConfig(
        level=logging.DEBUG,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    yield
