"""
llmbridge Core Module

Contains the unified value objects and the error taxonomy shared by all
providers.
"""

from .models import (
    # Enums
    Role,
    FinishReason,

    # Accounting
    Usage,
    Meta,

    # Tool calling
    Artifact,
    ToolCall,
    ToolOutput,
    ToolResult,
    ProviderToolCall,
    MessagePartWithCitations,

    # Messages
    Message,
    SystemMessage,
    UserMessage,
    AssistantMessage,
    ToolResultMessage,

    # Requests / responses
    TextRequest,
    Step,
    Response,

    # Moderation
    ModerationResult,
    ModerationResponse,

    # Serialization
    message_to_dict,
)

from .errors import (
    # Error types
    ErrorType,
    ErrorDetails,
    LLMBridgeException,

    # Infra errors
    InfraError,
    ConnectionTimeoutError,
    ReadTimeoutError,
    UpstreamError,
    ProviderOverloadedError,
    RateLimitedError,
    StreamInterruptedError,

    # Semantic errors
    SemanticError,
    ProviderAuthenticationError,
    InvalidRequestError,
    ModelNotFoundError,
    ContentFilteredError,
    ContextLengthExceededError,

    # Factory
    create_error_from_provider,
    handle_transport_error,
)

__all__ = [
    # Enums
    "Role",
    "FinishReason",

    # Accounting
    "Usage",
    "Meta",

    # Tool calling
    "Artifact",
    "ToolCall",
    "ToolOutput",
    "ToolResult",
    "ProviderToolCall",
    "MessagePartWithCitations",

    # Messages
    "Message",
    "SystemMessage",
    "UserMessage",
    "AssistantMessage",
    "ToolResultMessage",

    # Requests / responses
    "TextRequest",
    "Step",
    "Response",

    # Moderation
    "ModerationResult",
    "ModerationResponse",

    # Serialization
    "message_to_dict",

    # Errors
    "ErrorType",
    "ErrorDetails",
    "LLMBridgeException",
    "InfraError",
    "ConnectionTimeoutError",
    "ReadTimeoutError",
    "UpstreamError",
    "ProviderOverloadedError",
    "RateLimitedError",
    "StreamInterruptedError",
    "SemanticError",
    "ProviderAuthenticationError",
    "InvalidRequestError",
    "ModelNotFoundError",
    "ContentFilteredError",
    "ContextLengthExceededError",
    "create_error_from_provider",
    "handle_transport_error",
]
