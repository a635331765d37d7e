"""
llmbridge - Wire Adapter Base

Shared driver for re-serializing a StreamEvent sequence to a wire format.

The driver guarantees, for every stream not cut by a peer disconnect:
- every event is encoded and handed to the transport as soon as it arrives
- an event that cannot be encoded is replaced by one error frame
- an exception raised by the source becomes one error frame
- the output ends with exactly one ``data: [DONE]`` sentinel
- the completion callback runs once, after the sentinel

Subclasses only decide headers and how one event becomes frames.
"""

import dataclasses
import inspect
import json
import time
import uuid
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    ClassVar,
    Dict,
    List,
    Optional,
    Union,
)

from starlette.requests import Request
from starlette.responses import StreamingResponse

from ...config import StreamSettings, get_settings
from ...core.models import TextRequest
from ...observability.logging import get_logger, log_context
from ...observability.metrics import StreamMetrics, get_metrics
from ...observability.tracing import TraceContext, TracingManager, get_tracing_manager
from ..errors import (
    GENERIC_ERROR_MESSAGE,
    encoding_error_event,
    error_event_from_exception,
)
from ..events import ErrorEvent, StreamEndEvent, StreamEvent, StreamStartEvent
from ..sources import Source, aiterate

logger = get_logger(__name__)

DONE_SENTINEL = "data: [DONE]\n\n"

EventSource = Source[StreamEvent]
AdapterCallback = Callable[
    [Optional[TextRequest], List[StreamEvent]],
    Union[None, Awaitable[None]],
]


def encode_json(payload: Any) -> str:
    """
    Compact JSON with non-ASCII kept as-is.

    Raises TypeError for values JSON cannot represent and ValueError
    (UnicodeEncodeError) for text that is not valid UTF-8.
    """
    text = json.dumps(
        payload,
        ensure_ascii=False,
        separators=(",", ":"),
        allow_nan=False,
    )
    text.encode("utf-8")
    return text


class StreamAdapter:
    """
    Base class for wire adapters.

    Calling an adapter returns a StreamingResponse; ``stream()`` is the
    underlying async generator of wire frames.
    """

    name: ClassVar[str] = "base"
    headers: ClassVar[Dict[str, str]] = {}

    def __init__(
        self,
        settings: Optional[StreamSettings] = None,
        metrics: Optional[StreamMetrics] = None,
        tracing: Optional[TracingManager] = None,
    ):
        self.settings = settings or get_settings()
        self._metrics = metrics
        self._tracing = tracing

    @property
    def metrics(self) -> Optional[StreamMetrics]:
        if not self.settings.stream_metrics:
            return None
        if self._metrics is None:
            self._metrics = get_metrics()
        return self._metrics

    @property
    def tracing(self) -> TracingManager:
        if self._tracing is None:
            self._tracing = get_tracing_manager()
        return self._tracing

    def __call__(
        self,
        events: EventSource,
        request: Optional[TextRequest] = None,
        callback: Optional[AdapterCallback] = None,
        connection: Optional[Request] = None,
    ) -> StreamingResponse:
        return StreamingResponse(
            self.stream(events, request, callback, connection),
            status_code=200,
            headers=dict(self.headers),
        )

    # ============================================================
    # Encoding (subclass hooks)
    # ============================================================

    def encode(self, event: StreamEvent) -> List[str]:
        """Wire frames for one event; may raise TypeError or ValueError."""
        raise NotImplementedError

    def _encode_safely(self, event: StreamEvent, fields: Dict[str, Any]) -> List[str]:
        try:
            return self.encode(event)
        except (TypeError, ValueError) as exc:
            logger.warning(
                "Failed to encode stream event",
                event_id=event.id,
                event_type=event.type.value,
                error=str(exc),
                **fields,
            )
            if self.metrics:
                self.metrics.record_encoding_failure(self.name)
            return self.encode(encoding_error_event(event, exc))

    # ============================================================
    # Driver
    # ============================================================

    async def stream(
        self,
        events: EventSource,
        request: Optional[TextRequest] = None,
        callback: Optional[AdapterCallback] = None,
        connection: Optional[Request] = None,
    ) -> AsyncIterator[str]:
        """Async generator of wire frames for ``events``."""
        collected: List[StreamEvent] = []
        fields = {
            "stream_id": f"strm_{uuid.uuid4().hex[:24]}",
            "adapter": self.name,
        }
        if request is not None:
            if request.provider:
                fields["provider"] = request.provider
            fields["model"] = request.model_name

        span = self.tracing.start_stream_span(
            self.name,
            {
                "llmbridge.stream_id": fields["stream_id"],
                "llmbridge.provider": fields.get("provider"),
                "llmbridge.model": fields.get("model"),
            },
        )
        trace_ctx = TraceContext.from_span(span)
        if trace_ctx is not None:
            fields["trace_id"] = trace_ctx.trace_id
        started = time.perf_counter()
        failure: Optional[BaseException] = None
        disconnected = False

        logger.info("Stream started", **fields)

        try:
            try:
                async for event in aiterate(events):
                    collected.append(event)

                    if connection is not None and await connection.is_disconnected():
                        disconnected = True
                        break

                    for frame in self._encode_safely(event, fields):
                        yield frame
                    self._record_event(event, fields)
            except Exception as exc:
                failure = exc
                logger.exception(
                    "Stream source raised",
                    error_type=type(exc).__name__,
                    **fields,
                )
                error_event = error_event_from_exception(exc)
                collected.append(error_event)

                wire_event = error_event
                if not self.settings.expose_error_details:
                    wire_event = dataclasses.replace(error_event, message=GENERIC_ERROR_MESSAGE)

                for frame in self._encode_safely(wire_event, fields):
                    yield frame
                self._record_event(wire_event, fields)

            if disconnected:
                logger.info("Client disconnected", event_count=len(collected), **fields)
                if self.metrics:
                    self.metrics.record_disconnect(self.name)
            else:
                yield DONE_SENTINEL
                logger.info("Stream completed", event_count=len(collected), **fields)

            if callback is not None:
                with log_context(**fields):
                    await self._run_callback(callback, request, collected)
        finally:
            if self.metrics:
                self.metrics.record_duration(self.name, time.perf_counter() - started)
            self.tracing.end_stream_span(
                span,
                event_count=len(collected),
                error=failure,
                disconnected=disconnected,
            )

    async def _run_callback(
        self,
        callback: AdapterCallback,
        request: Optional[TextRequest],
        collected: List[StreamEvent],
    ):
        try:
            result = callback(request, list(collected))
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Stream callback failed")

    def _record_event(self, event: StreamEvent, fields: Dict[str, Any]):
        if isinstance(event, StreamStartEvent):
            fields.setdefault("provider", event.provider)
            fields.setdefault("model", event.model)

        metrics = self.metrics
        if metrics is None:
            return

        metrics.record_event(self.name, event.type.value)

        if isinstance(event, ErrorEvent):
            metrics.record_error(self.name, event.error_type)
        elif isinstance(event, StreamEndEvent) and event.usage is not None:
            metrics.record_tokens(
                provider=fields.get("provider", ""),
                model=fields.get("model", ""),
                prompt_tokens=event.usage.prompt_tokens,
                completion_tokens=event.usage.completion_tokens,
            )
