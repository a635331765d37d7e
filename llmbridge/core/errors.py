"""
llmbridge - Error Definitions

Error taxonomy with infra vs semantic classification.

- Infra errors: transport and provider-side failures. Retryable unless
  output has already been produced.
- Semantic errors: the request itself is wrong (bad model, filtered
  content, context overflow). Never retryable.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorType(str, Enum):
    """Error classification."""
    INFRA = "infra_error"
    SEMANTIC = "semantic_error"


@dataclass
class ErrorDetails:
    """Full error information."""
    # Core fields (always present)
    code: str
    message: str
    type: ErrorType

    # Context fields
    provider: Optional[str] = None
    request_id: str = ""

    # Recovery fields
    retryable: bool = False
    retry_after: Optional[int] = None

    # Debug fields
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "code": self.code,
            "message": self.message,
            "type": self.type.value,
            "retryable": self.retryable,
        }

        if self.provider:
            result["provider"] = self.provider
        if self.request_id:
            result["request_id"] = self.request_id
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        if self.details:
            result["details"] = self.details

        return {"error": result}


class LLMBridgeException(Exception):
    """Base exception for all llmbridge errors."""

    def __init__(self, error: ErrorDetails, status_code: int = 500):
        self.error = error
        self.status_code = status_code
        super().__init__(error.message)


# ============================================================
# Infra Errors (Retryable)
# ============================================================

class InfraError(LLMBridgeException):
    """Base class for infrastructure errors."""
    pass


class ConnectionTimeoutError(InfraError):
    """Failed to connect to provider."""

    def __init__(self, provider: str, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="connection_timeout",
                message=f"Failed to connect to {provider} API within timeout",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                retryable=True,
                retry_after=5
            ),
            status_code=504
        )


class ReadTimeoutError(InfraError):
    """Provider stopped sending data in time."""

    def __init__(self, provider: str, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="read_timeout",
                message=f"{provider} did not respond within timeout",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                retryable=True,
                retry_after=10
            ),
            status_code=504
        )


class UpstreamError(InfraError):
    """Provider returned server error."""

    def __init__(
        self,
        provider: str,
        status_code: int,
        message: str = "",
        request_id: str = ""
    ):
        code_map = {
            500: "upstream_500",
            502: "upstream_502",
            503: "upstream_503",
            504: "upstream_504",
        }
        super().__init__(
            ErrorDetails(
                code=code_map.get(status_code, "upstream_error"),
                message=message or f"{provider} returned error {status_code}",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                retryable=True,
                retry_after=30,
                details={"upstream_status": status_code}
            ),
            status_code=502 if status_code == 500 else status_code
        )


class ProviderOverloadedError(InfraError):
    """Provider reported it is overloaded (Anthropic 529 / overloaded_error)."""

    def __init__(self, provider: str, message: str = "", request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="provider_overloaded",
                message=message or f"{provider} is overloaded",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                retryable=True,
                retry_after=30
            ),
            status_code=529
        )


class RateLimitedError(InfraError):
    """Rate limit exceeded."""

    def __init__(
        self,
        provider: str,
        retry_after: int = 60,
        request_id: str = ""
    ):
        super().__init__(
            ErrorDetails(
                code="rate_limited",
                message=f"{provider} rate limit exceeded. Retry after {retry_after} seconds.",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                retryable=True,
                retry_after=retry_after
            ),
            status_code=429
        )


class StreamInterruptedError(InfraError):
    """
    The provider connection broke while the body was being read.

    Retryable only when no payload had been received yet.
    """

    def __init__(
        self,
        provider: str,
        message: str = "",
        request_id: str = "",
        content_started: bool = True,
    ):
        super().__init__(
            ErrorDetails(
                code="stream_interrupted",
                message=message or (
                    "Connection lost after receiving partial content"
                    if content_started
                    else f"Connection to {provider} lost before any content was received"
                ),
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                retryable=not content_started,
            ),
            status_code=502
        )


# ============================================================
# Semantic Errors (Not Retryable)
# ============================================================

class SemanticError(LLMBridgeException):
    """Base class for semantic errors (client must fix request)."""
    pass


class ProviderAuthenticationError(SemanticError):
    """Provider rejected the configured credentials."""

    def __init__(self, provider: str, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="provider_auth_error",
                message=f"{provider} authentication failed",
                type=ErrorType.SEMANTIC,
                provider=provider,
                request_id=request_id,
                retryable=False
            ),
            status_code=502
        )


class InvalidRequestError(SemanticError):
    """Request validation failed."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        request_id: str = ""
    ):
        super().__init__(
            ErrorDetails(
                code="invalid_request",
                message=message,
                type=ErrorType.SEMANTIC,
                provider=provider,
                request_id=request_id,
                retryable=False
            ),
            status_code=400
        )


class ModelNotFoundError(SemanticError):
    """Requested model does not exist."""

    def __init__(self, model: str, provider: Optional[str] = None, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="model_not_found",
                message=f"Model '{model}' not found",
                type=ErrorType.SEMANTIC,
                provider=provider,
                request_id=request_id,
                retryable=False,
                details={"requested_model": model}
            ),
            status_code=404
        )


class ContentFilteredError(SemanticError):
    """Content was filtered by safety systems."""

    def __init__(
        self,
        provider: str,
        reason: str = "",
        request_id: str = ""
    ):
        super().__init__(
            ErrorDetails(
                code="content_filtered",
                message="Your request was flagged by content moderation",
                type=ErrorType.SEMANTIC,
                provider=provider,
                request_id=request_id,
                retryable=False,
                details={"filter_reason": reason} if reason else {}
            ),
            status_code=400
        )


class ContextLengthExceededError(SemanticError):
    """Input exceeds the model's context window."""

    def __init__(self, provider: str, message: str, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="context_length_exceeded",
                message=message,
                type=ErrorType.SEMANTIC,
                provider=provider,
                request_id=request_id,
                retryable=False
            ),
            status_code=400
        )


# ============================================================
# Error Factory
# ============================================================

def create_error_from_provider(
    provider: str,
    status_code: int,
    error_body: Dict[str, Any],
    request_id: str = ""
) -> LLMBridgeException:
    """
    Create the appropriate error from a provider error payload.

    Accepts both the bare error object and the ``{"error": {...}}``
    envelope used by OpenAI, Anthropic and Gemini.
    """
    body = error_body.get("error", error_body) if isinstance(error_body, dict) else {}
    if not isinstance(body, dict):
        body = {"message": str(body)}

    message = str(body.get("message", str(error_body)))
    error_type = str(body.get("type", "") or body.get("status", ""))
    error_code = str(body.get("code", "") or "")

    if status_code == 401 or status_code == 403:
        return ProviderAuthenticationError(provider, request_id=request_id)

    if status_code == 429 or error_type == "rate_limit_error":
        retry_after = 60
        if "retry-after" in error_body:
            retry_after = int(error_body["retry-after"])
        return RateLimitedError(provider, retry_after, request_id=request_id)

    if status_code == 529 or error_type == "overloaded_error":
        return ProviderOverloadedError(provider, message, request_id=request_id)

    if status_code >= 500:
        return UpstreamError(provider, status_code, message, request_id)

    if status_code == 404 and "model" in message.lower():
        return ModelNotFoundError(str(body.get("param") or message), provider, request_id)

    if "content" in error_code.lower() or "safety" in error_type.lower():
        return ContentFilteredError(provider, error_type or error_code, request_id)

    if "context" in message.lower() or "too long" in message.lower():
        return ContextLengthExceededError(provider, message, request_id)

    # Default: treat as semantic error from provider
    return SemanticError(
        ErrorDetails(
            code="provider_error",
            message=message,
            type=ErrorType.SEMANTIC,
            provider=provider,
            request_id=request_id,
            retryable=False,
            details={"provider_type": error_type} if error_type else {}
        ),
        status_code=status_code if 0 < status_code < 500 else 400
    )


def handle_transport_error(
    error: Exception,
    provider: str,
    request_id: str = "",
    content_started: bool = False,
) -> LLMBridgeException:
    """
    Convert an httpx transport failure into an llmbridge error.

    Once a payload has been received any failure is an interruption;
    before that, timeouts and connect failures keep their own classes.
    """
    import httpx

    if content_started:
        return StreamInterruptedError(provider, request_id=request_id)

    if isinstance(error, (httpx.ConnectTimeout, httpx.ConnectError)):
        return ConnectionTimeoutError(provider, request_id)

    if isinstance(error, httpx.TimeoutException):
        return ReadTimeoutError(provider, request_id)

    return StreamInterruptedError(provider, request_id=request_id, content_started=False)
