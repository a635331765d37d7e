"""
llmbridge - OpenTelemetry Tracing

One span per adapter stream, named ``llmbridge.stream.<adapter>``.

Streams are async generators that may be suspended and resumed across
tasks, so stream spans are started detached (never made current) and
ended explicitly when the stream finishes.

Usage:
    from llmbridge.observability.tracing import setup_tracing, get_tracing_manager

    # Setup at startup
    setup_tracing(service_name="llmbridge", console_export=True)

    tracing = get_tracing_manager()
    span = tracing.start_stream_span("sse", {"llmbridge.stream_id": "strm_1"})
    ...
    tracing.end_stream_span(span, event_count=12)
"""

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    ConsoleSpanExporter,
    SimpleSpanProcessor,
    SpanProcessor,
)
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION
from opentelemetry.trace import Span, SpanKind, Status, StatusCode


@dataclass
class TraceContext:
    """Trace identifiers of a span, formatted for logs."""
    trace_id: str
    span_id: str
    trace_flags: int = 1

    @classmethod
    def from_span(cls, span: Span) -> Optional["TraceContext"]:
        """None for a non-recording span without valid ids."""
        ctx = span.get_span_context()
        if not ctx.is_valid:
            return None
        return cls(
            trace_id=format(ctx.trace_id, "032x"),
            span_id=format(ctx.span_id, "016x"),
            trace_flags=ctx.trace_flags,
        )


class TracingManager:
    """
    Owns the tracer provider used for stream spans.

    Singleton pattern for global access.
    """

    _instance: Optional["TracingManager"] = None

    def __init__(
        self,
        service_name: str = "llmbridge",
        service_version: str = "1.0.0",
        console_export: bool = False,
        span_processor: Optional[SpanProcessor] = None,
        set_global: bool = True,
    ):
        """
        Initialize tracing.

        Args:
            service_name: Name of the service
            service_version: Version of the service
            console_export: Whether to export spans to console (for debugging)
            span_processor: Extra processor (e.g. an in-memory exporter in tests)
            set_global: Install the provider as the global tracer provider
        """
        self.service_name = service_name
        self.service_version = service_version

        resource = Resource.create({
            SERVICE_NAME: service_name,
            SERVICE_VERSION: service_version,
        })

        self.provider = TracerProvider(resource=resource)

        if console_export:
            self.provider.add_span_processor(
                SimpleSpanProcessor(ConsoleSpanExporter())
            )

        if span_processor is not None:
            self.provider.add_span_processor(span_processor)

        if set_global:
            trace.set_tracer_provider(self.provider)

        self.tracer = self.provider.get_tracer(service_name, service_version)

    @classmethod
    def get_instance(cls) -> "TracingManager":
        """Get singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls):
        """Reset singleton (for testing)."""
        cls._instance = None

    def get_tracer(self) -> trace.Tracer:
        return self.tracer

    def start_stream_span(
        self,
        adapter: str,
        attributes: Optional[Dict[str, Any]] = None,
    ) -> Span:
        """Start a detached span covering one adapter stream."""
        return self.tracer.start_span(
            f"llmbridge.stream.{adapter}",
            kind=SpanKind.SERVER,
            attributes={
                key: value
                for key, value in (attributes or {}).items()
                if value is not None
            },
        )

    def end_stream_span(
        self,
        span: Span,
        event_count: int,
        error: Optional[BaseException] = None,
        disconnected: bool = False,
    ):
        """Record outcome attributes and end a stream span."""
        span.set_attribute("llmbridge.stream.event_count", event_count)
        span.set_attribute("llmbridge.stream.disconnected", disconnected)

        if error is not None:
            span.record_exception(error)
            span.set_status(Status(StatusCode.ERROR, str(error)))
        else:
            span.set_status(Status(StatusCode.OK))

        span.end()

    def shutdown(self):
        """Shutdown the tracer provider."""
        self.provider.shutdown()


# Module-level functions for convenience
_tracing_instance: Optional[TracingManager] = None


def setup_tracing(
    service_name: str = "llmbridge",
    service_version: str = "1.0.0",
    console_export: bool = False,
    span_processor: Optional[SpanProcessor] = None,
    set_global: bool = True,
) -> TracingManager:
    """
    Setup tracing.

    Call once at application startup.
    """
    global _tracing_instance

    if os.getenv("OTEL_CONSOLE_EXPORT", "").lower() == "true":
        console_export = True

    _tracing_instance = TracingManager(
        service_name=service_name,
        service_version=service_version,
        console_export=console_export,
        span_processor=span_processor,
        set_global=set_global,
    )
    TracingManager._instance = _tracing_instance
    return _tracing_instance


def get_tracing_manager() -> TracingManager:
    """Get the tracing manager instance, creating a default one if needed."""
    global _tracing_instance
    if _tracing_instance is None:
        _tracing_instance = TracingManager.get_instance()
    return _tracing_instance


def get_tracer() -> trace.Tracer:
    return get_tracing_manager().get_tracer()
