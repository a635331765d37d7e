"""
llmbridge - Stream Collector

Passes a stream through unchanged while rebuilding the message history
and the final Response from it.

Flush rules:
- TextStartEvent: finalize whatever is pending before new text starts
- ProviderToolEvent: finalize pending text if it is the first provider
  tool call of the stream, so text stays ordered before tool activity
- StreamEndEvent: finalize, build the Response and call ``on_complete``

Finalizing appends one AssistantMessage (pending text and tool calls) and
then one ToolResultMessage (pending tool results), skipping empty ones.

The collector tolerates any ordering: a delta without a start simply
accumulates, and a repeated StreamEndEvent re-finalizes without calling
``on_complete`` a second time. ErrorEvents are passed through untouched.
"""

import inspect
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    Iterator,
    List,
    Optional,
    Union,
)

from ..core.models import (
    AssistantMessage,
    FinishReason,
    Message,
    Meta,
    ProviderToolCall,
    Response,
    Step,
    TextRequest,
    ToolCall,
    ToolResult,
    ToolResultMessage,
    Usage,
)
from ..observability.logging import get_logger
from .events import (
    ProviderToolEvent,
    StreamEndEvent,
    StreamEvent,
    TextDeltaEvent,
    TextStartEvent,
    ToolCallEvent,
    ToolResultEvent,
)
from .sources import Source, is_async_source

logger = get_logger(__name__)

OnComplete = Callable[
    [Optional[TextRequest], List[Message], Response],
    Union[None, Awaitable[None]],
]


class StreamCollector:
    """
    Decorates an event stream with message/response reconstruction.

    Works over sync iterables (``for event in collector``) and async
    iterables (``async for event in collector``).

    Example:
        collector = StreamCollector(decoder_events, request, on_complete=save)
        async for event in collector:
            ...
        collector.response.text
    """

    def __init__(
        self,
        stream: Source[StreamEvent],
        request: Optional[TextRequest] = None,
        on_complete: Optional[OnComplete] = None,
    ):
        self._stream = stream
        self._request = request
        self._on_complete = on_complete

        self._text = ""
        self._tool_calls: List[ToolCall] = []
        self._tool_results: List[ToolResult] = []
        self._provider_tool_calls: List[ProviderToolCall] = []
        self._messages: List[Message] = []

        self._finish_reason = FinishReason.STOP
        self._usage: Optional[Usage] = None
        self._additional_content: Dict[str, Any] = {}

        self._response: Optional[Response] = None
        self._completed = False

    # ============================================================
    # Inspection
    # ============================================================

    @property
    def request(self) -> Optional[TextRequest]:
        return self._request

    @property
    def messages(self) -> List[Message]:
        return list(self._messages)

    @property
    def response(self) -> Optional[Response]:
        """The final response, once a StreamEndEvent has been seen."""
        return self._response

    @property
    def completed(self) -> bool:
        return self._completed

    # ============================================================
    # Iteration
    # ============================================================

    def collect(self) -> Iterator[StreamEvent]:
        """Iterate a sync source."""
        for event in self._stream:
            yield event
            pending = self._observe(event)
            if pending is not None and inspect.isawaitable(pending):
                # A sync source cannot drive an async callback
                if inspect.iscoroutine(pending):
                    pending.close()
                logger.warning(
                    "Async on_complete callback ignored for sync stream",
                    callback=getattr(self._on_complete, "__name__", repr(self._on_complete)),
                )

    async def acollect(self) -> AsyncIterator[StreamEvent]:
        """Iterate an async (or sync) source."""
        if not is_async_source(self._stream):
            for event in self._stream:
                yield event
                pending = self._observe(event)
                if pending is not None and inspect.isawaitable(pending):
                    await self._await_callback(pending)
            return

        async for event in self._stream:
            yield event
            pending = self._observe(event)
            if pending is not None and inspect.isawaitable(pending):
                await self._await_callback(pending)

    def __iter__(self) -> Iterator[StreamEvent]:
        return self.collect()

    def __aiter__(self) -> AsyncIterator[StreamEvent]:
        return self.acollect()

    # ============================================================
    # Accumulation
    # ============================================================

    def _observe(self, event: StreamEvent) -> Any:
        """Update accumulators; returns the callback's result at stream end."""
        if isinstance(event, TextStartEvent):
            self._finalize_current_message()
        elif isinstance(event, TextDeltaEvent):
            self._text += event.delta
        elif isinstance(event, ToolCallEvent):
            self._tool_calls.append(event.tool_call)
        elif isinstance(event, ToolResultEvent):
            self._tool_results.append(event.tool_result)
        elif isinstance(event, ProviderToolEvent):
            if self._text and not self._provider_tool_calls:
                self._finalize_current_message()
            self._provider_tool_calls.append(
                ProviderToolCall(
                    id=event.item_id,
                    type=event.tool_type,
                    status=event.status,
                    data=event.data,
                )
            )
        elif isinstance(event, StreamEndEvent):
            return self._handle_stream_end(event)
        return None

    def _finalize_current_message(self):
        if self._text or self._tool_calls:
            self._messages.append(
                AssistantMessage(content=self._text, tool_calls=list(self._tool_calls))
            )
            self._text = ""
            self._tool_calls = []

        if self._tool_results:
            self._messages.append(ToolResultMessage(tool_results=list(self._tool_results)))
            self._tool_results = []

        # Provider tool calls never become messages; they land on the step

    def _handle_stream_end(self, event: StreamEndEvent) -> Any:
        self._finish_reason = event.finish_reason
        self._usage = event.usage
        self._additional_content = dict(event.additional_content)

        self._finalize_current_message()

        if self._completed:
            logger.debug("Ignoring repeated stream end", event_id=event.id)
            return None

        self._completed = True
        self._response = self._build_response()

        if self._on_complete is None:
            return None

        try:
            return self._on_complete(self._request, self.messages, self._response)
        except Exception:
            logger.exception("Stream completion callback failed")
            return None

    async def _await_callback(self, pending: Awaitable[None]):
        try:
            await pending
        except Exception:
            logger.exception("Stream completion callback failed")

    def _build_response(self) -> Response:
        messages = self.messages
        assistant = [m for m in messages if isinstance(m, AssistantMessage)]
        results = [m for m in messages if isinstance(m, ToolResultMessage)]

        text = "".join(m.content for m in assistant)
        tool_calls = [tc for m in assistant for tc in m.tool_calls]
        tool_results = [tr for m in results for tr in m.tool_results]
        usage = self._usage if self._usage is not None else Usage(0, 0)
        meta = Meta(id="", model="")

        steps: List[Step] = []
        if text or tool_calls or tool_results or self._provider_tool_calls:
            steps.append(
                Step(
                    text=text,
                    finish_reason=self._finish_reason,
                    tool_calls=tool_calls,
                    tool_results=tool_results,
                    provider_tool_calls=list(self._provider_tool_calls),
                    usage=usage,
                    meta=meta,
                    messages=messages,
                    additional_content=self._additional_content,
                )
            )

        return Response(
            steps=steps,
            text=text,
            finish_reason=self._finish_reason,
            tool_calls=tool_calls,
            tool_results=tool_results,
            usage=usage,
            meta=meta,
            messages=messages,
            additional_content=self._additional_content,
        )
