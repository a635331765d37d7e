"""
llmbridge - Streaming Error Handling

Turns failures that happen at the wire-adapter boundary into ErrorEvents.

Two kinds of failure reach the adapters:
- the event source raises mid-iteration (transport failure, provider error
  raised by a decoder, bug in a tool) -> one synthesized ErrorEvent
- a single event cannot be encoded to the wire format -> one substitute
  ErrorEvent for that event, and the stream continues
"""

from typing import Any, Dict, Optional

import httpx

from ..core.errors import LLMBridgeException
from .events import ErrorEvent, StreamEvent, new_event_id, now

ENCODING_ERROR_TYPE = "encoding_error"
ENCODING_ERROR_PREFIX = "Failed to encode event data as JSON"
GENERIC_ERROR_MESSAGE = "An error occurred while streaming the response"


def _status_code_of(exception: BaseException) -> Optional[int]:
    """Best-effort status code for an exception, if it carries one."""
    if isinstance(exception, LLMBridgeException):
        return exception.status_code
    if isinstance(exception, httpx.HTTPStatusError):
        return exception.response.status_code
    status = getattr(exception, "status_code", None)
    if isinstance(status, int) and not isinstance(status, bool):
        return status
    return None


def is_recoverable(exception: BaseException) -> bool:
    """
    Classify whether a caller may retry after this failure.

    Domain errors carry their own retryable flag; transport timeouts and
    connection failures are recoverable; anything else is not.
    """
    if isinstance(exception, LLMBridgeException):
        return exception.error.retryable
    if isinstance(exception, (httpx.TimeoutException, httpx.NetworkError)):
        return True
    return False


def error_event_from_exception(
    exception: BaseException,
    message: Optional[str] = None,
) -> ErrorEvent:
    """
    Synthesize the ErrorEvent for an exception raised by the event source.

    Args:
        exception: The exception caught at the adapter boundary
        message: Override for the exception message (used when error
            details must not be exposed to the client)
    """
    metadata: Dict[str, Any] = {}

    status_code = _status_code_of(exception)
    if status_code is not None:
        metadata["code"] = status_code

    if isinstance(exception, LLMBridgeException):
        metadata["error_code"] = exception.error.code
        if exception.error.provider:
            metadata["provider"] = exception.error.provider
        if exception.error.retry_after is not None:
            metadata["retry_after"] = exception.error.retry_after

    return ErrorEvent(
        id=new_event_id(),
        timestamp=now(),
        error_type=type(exception).__name__,
        message=str(exception) if message is None else message,
        recoverable=is_recoverable(exception),
        metadata=metadata,
    )


def encoding_error_event(event: StreamEvent, exception: BaseException) -> ErrorEvent:
    """Substitute ErrorEvent for an event whose payload could not be encoded."""
    return ErrorEvent(
        id=new_event_id(),
        timestamp=now(),
        error_type=ENCODING_ERROR_TYPE,
        message=f"{ENCODING_ERROR_PREFIX}: {exception}",
        recoverable=True,
        metadata={
            "event_id": event.id,
            "event_type": event.type.value,
        },
    )
