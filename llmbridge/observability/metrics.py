"""
llmbridge - Prometheus Metrics

Stream metrics collected with the Prometheus client library.

Metrics exposed:
- llmbridge_stream_events_total: Counter of events written, by adapter and event type
- llmbridge_stream_errors_total: Counter of error events, by adapter and error type
- llmbridge_stream_encoding_failures_total: Counter of events that could not be encoded
- llmbridge_stream_disconnects_total: Counter of streams cut by a peer disconnect
- llmbridge_stream_duration_seconds: Histogram of stream wall time
- llmbridge_stream_tokens_total: Counter of tokens reported at stream end

Usage:
    from llmbridge.observability.metrics import get_metrics, setup_metrics, metrics_endpoint

    # Setup at startup
    setup_metrics()

    # Record metrics
    metrics = get_metrics()
    metrics.record_event(adapter="sse", event_type="text-delta")

    # Expose /metrics endpoint
    @app.get("/metrics")
    async def metrics():
        return metrics_endpoint()
"""

from typing import Optional

from prometheus_client import (
    Counter,
    Histogram,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY,
)
from fastapi import Response


class StreamMetrics:
    """
    Stream metrics collector using Prometheus client.

    Registers its collectors on construction, so build one per registry;
    ``setup_metrics`` / ``get_metrics`` keep the shared instance.
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        """Initialize metrics collectors."""
        self.registry = registry

        self.events_total = Counter(
            "llmbridge_stream_events_total",
            "Total stream events written to the wire",
            labelnames=["adapter", "type"],
            registry=registry,
        )

        self.errors_total = Counter(
            "llmbridge_stream_errors_total",
            "Total error events written to the wire",
            labelnames=["adapter", "error_type"],
            registry=registry,
        )

        self.encoding_failures_total = Counter(
            "llmbridge_stream_encoding_failures_total",
            "Events that could not be encoded to the wire format",
            labelnames=["adapter"],
            registry=registry,
        )

        self.disconnects_total = Counter(
            "llmbridge_stream_disconnects_total",
            "Streams stopped because the peer disconnected",
            labelnames=["adapter"],
            registry=registry,
        )

        # Streams range from sub-second completions to multi-minute tool loops
        self.stream_duration = Histogram(
            "llmbridge_stream_duration_seconds",
            "Stream duration in seconds",
            labelnames=["adapter"],
            buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 25.0, 50.0, 100.0, 300.0, float("inf")),
            registry=registry,
        )

        self.tokens_total = Counter(
            "llmbridge_stream_tokens_total",
            "Tokens reported by providers at stream end",
            labelnames=["provider", "model", "type"],  # type = prompt/completion
            registry=registry,
        )

    def record_event(self, adapter: str, event_type: str):
        """Record one event written to the wire."""
        self.events_total.labels(adapter=adapter, type=event_type).inc()

    def record_error(self, adapter: str, error_type: str):
        """Record one error event written to the wire."""
        self.errors_total.labels(adapter=adapter, error_type=error_type).inc()

    def record_encoding_failure(self, adapter: str):
        self.encoding_failures_total.labels(adapter=adapter).inc()

    def record_disconnect(self, adapter: str):
        self.disconnects_total.labels(adapter=adapter).inc()

    def record_duration(self, adapter: str, duration_seconds: float):
        self.stream_duration.labels(adapter=adapter).observe(duration_seconds)

    def record_tokens(
        self,
        provider: str,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
    ):
        """Record token usage reported by a stream end event."""
        provider = provider or "unknown"
        model = model or "unknown"

        if prompt_tokens:
            self.tokens_total.labels(
                provider=provider,
                model=model,
                type="prompt",
            ).inc(prompt_tokens)

        if completion_tokens:
            self.tokens_total.labels(
                provider=provider,
                model=model,
                type="completion",
            ).inc(completion_tokens)


# Module-level functions for convenience
_metrics_instance: Optional[StreamMetrics] = None


def setup_metrics(registry: CollectorRegistry = REGISTRY) -> StreamMetrics:
    """
    Setup metrics collection.

    Call once at application startup.
    Safe to call multiple times - returns existing instance.
    """
    global _metrics_instance

    # Return existing instance if already setup with same registry
    if _metrics_instance is not None and _metrics_instance.registry is registry:
        return _metrics_instance

    _metrics_instance = StreamMetrics(registry)
    return _metrics_instance


def get_metrics() -> StreamMetrics:
    """
    Get the metrics collector instance.

    Auto-initializes against the default registry.
    """
    global _metrics_instance
    if _metrics_instance is None:
        _metrics_instance = StreamMetrics(REGISTRY)
    return _metrics_instance


def metrics_endpoint() -> Response:
    """
    Generate Prometheus metrics endpoint response.

    Usage:
        @app.get("/metrics")
        async def metrics():
            return metrics_endpoint()
    """
    content = generate_latest(get_metrics().registry)
    return Response(
        content=content,
        media_type=CONTENT_TYPE_LATEST,
    )
