"""
llmbridge - Observability Module

Observability for streams:
- Prometheus stream metrics (Counter, Histogram)
- OpenTelemetry stream spans
- Structured JSON logging with context injection

Usage:
    from llmbridge.observability import (
        setup_logging,
        setup_metrics,
        setup_tracing,
        get_logger,
    )

    # Initialize at startup
    setup_logging(level="INFO")
    setup_metrics()
    setup_tracing(service_name="llmbridge")

    # Use throughout code
    logger = get_logger(__name__)
"""

from .metrics import (
    StreamMetrics,
    get_metrics,
    setup_metrics,
    metrics_endpoint,
)
from .tracing import (
    TraceContext,
    TracingManager,
    get_tracer,
    get_tracing_manager,
    setup_tracing,
)
from .logging import (
    JSONFormatter,
    StructuredLogger,
    get_logger,
    setup_logging,
    log_context,
    LogContext,
)

__all__ = [
    # Metrics
    "StreamMetrics",
    "get_metrics",
    "setup_metrics",
    "metrics_endpoint",
    # Tracing
    "TraceContext",
    "TracingManager",
    "get_tracer",
    "get_tracing_manager",
    "setup_tracing",
    # Logging
    "JSONFormatter",
    "StructuredLogger",
    "get_logger",
    "setup_logging",
    "log_context",
    "LogContext",
]
