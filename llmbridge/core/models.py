"""
llmbridge - Core Data Models

Unified value objects shared by every provider: requests, messages,
tool calls and their results, artifacts, usage accounting, and the
finalized Step/Response containers assembled at the end of a stream.
"""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


# ============================================================
# Enums
# ============================================================

class Role(str, Enum):
    """Message roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class FinishReason(str, Enum):
    """Why a model stopped generating."""
    STOP = "stop"
    LENGTH = "length"
    TOOL_CALLS = "tool_calls"
    CONTENT_FILTER = "content_filter"
    ERROR = "error"
    OTHER = "other"
    UNKNOWN = "unknown"


# ============================================================
# Usage / Meta
# ============================================================

@dataclass(frozen=True)
class Usage:
    """
    Token usage information.

    Adding two Usage values sums prompt, completion and thought tokens.
    Cache counters are last-write: the right operand wins when it has one.
    """
    prompt_tokens: int = 0
    completion_tokens: int = 0
    cache_write_input_tokens: Optional[int] = None
    cache_read_input_tokens: Optional[int] = None
    thought_tokens: Optional[int] = None

    def __add__(self, other: Usage) -> Usage:
        if not isinstance(other, Usage):
            return NotImplemented

        thought = None
        if self.thought_tokens is not None or other.thought_tokens is not None:
            thought = (self.thought_tokens or 0) + (other.thought_tokens or 0)

        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            cache_write_input_tokens=(
                other.cache_write_input_tokens
                if other.cache_write_input_tokens is not None
                else self.cache_write_input_tokens
            ),
            cache_read_input_tokens=(
                other.cache_read_input_tokens
                if other.cache_read_input_tokens is not None
                else self.cache_read_input_tokens
            ),
            thought_tokens=thought,
        )

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
        }
        if self.cache_write_input_tokens is not None:
            result["cache_write_input_tokens"] = self.cache_write_input_tokens
        if self.cache_read_input_tokens is not None:
            result["cache_read_input_tokens"] = self.cache_read_input_tokens
        if self.thought_tokens is not None:
            result["thought_tokens"] = self.thought_tokens
        return result


@dataclass(frozen=True)
class Meta:
    """Provider response metadata."""
    id: str
    model: str
    rate_limits: List[Dict[str, Any]] = field(default_factory=list)


# ============================================================
# Artifacts and tool calling
# ============================================================

@dataclass(frozen=True)
class Artifact:
    """
    A generated payload (image, audio, file) attached to a tool result.

    ``data`` always holds base64 text; use ``raw_content()`` for the bytes.
    """
    data: str
    mime_type: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None

    def raw_content(self) -> bytes:
        """Decode the base64 payload."""
        return base64.b64decode(self.data)

    @classmethod
    def from_raw_content(
        cls,
        content: Union[bytes, str],
        mime_type: str,
        metadata: Optional[Dict[str, Any]] = None,
        id: Optional[str] = None,
    ) -> Artifact:
        """Build an artifact from raw bytes (str is encoded as UTF-8)."""
        if isinstance(content, str):
            content = content.encode("utf-8")
        return cls(
            data=base64.b64encode(content).decode("ascii"),
            mime_type=mime_type,
            metadata=dict(metadata or {}),
            id=id,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "data": self.data,
            "mime_type": self.mime_type,
            "metadata": self.metadata,
        }


@dataclass(frozen=True)
class ToolCall:
    """A finalized tool invocation requested by the model."""
    id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    reasoning_id: Optional[str] = None

    @classmethod
    def from_raw_arguments(
        cls,
        id: str,
        name: str,
        raw_arguments: Union[str, Dict[str, Any], None],
        reasoning_id: Optional[str] = None,
    ) -> ToolCall:
        """
        Build a tool call from streamed argument text.

        Providers stream arguments as partial JSON; an empty or invalid
        buffer yields an empty argument mapping.
        """
        arguments: Dict[str, Any] = {}
        if isinstance(raw_arguments, dict):
            arguments = raw_arguments
        elif raw_arguments:
            try:
                decoded = json.loads(raw_arguments)
            except json.JSONDecodeError:
                decoded = {}
            if isinstance(decoded, dict):
                arguments = decoded

        return cls(id=id, name=name, arguments=arguments, reasoning_id=reasoning_id)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "arguments": self.arguments,
        }
        if self.reasoning_id:
            result["reasoning_id"] = self.reasoning_id
        return result


@dataclass(frozen=True)
class ToolOutput:
    """Return value of a tool implementation."""
    result: str
    artifacts: List[Artifact] = field(default_factory=list)

    def has_artifacts(self) -> bool:
        return len(self.artifacts) > 0


ToolResultValue = Union[int, float, str, Dict[str, Any], List[Any], None]


@dataclass(frozen=True)
class ToolResult:
    """Binds a tool invocation to its output."""
    tool_call_id: str
    tool_name: str
    args: Dict[str, Any]
    result: ToolResultValue
    tool_call_result_id: Optional[str] = None
    artifacts: List[Artifact] = field(default_factory=list)

    def has_artifacts(self) -> bool:
        return len(self.artifacts) > 0

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "tool_call_id": self.tool_call_id,
            "tool_name": self.tool_name,
            "args": self.args,
            "result": self.result,
        }
        if self.tool_call_result_id:
            result["tool_call_result_id"] = self.tool_call_result_id
        if self.artifacts:
            result["artifacts"] = [a.to_dict() for a in self.artifacts]
        return result


@dataclass(frozen=True)
class ProviderToolCall:
    """A provider-native tool invocation (web search, code interpreter, ...)."""
    id: str
    type: str
    status: str
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MessagePartWithCitations:
    """A span of output text together with the sources it cites."""
    output_text: str
    citations: List[Dict[str, Any]] = field(default_factory=list)
    additional_content: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "output_text": self.output_text,
            "citations": self.citations,
            "additional_content": self.additional_content,
        }


# ============================================================
# Messages
# ============================================================

@dataclass(frozen=True)
class SystemMessage:
    content: str
    role: Role = field(default=Role.SYSTEM, init=False)


@dataclass(frozen=True)
class UserMessage:
    content: str
    role: Role = field(default=Role.USER, init=False)


@dataclass(frozen=True)
class AssistantMessage:
    """An assistant turn: text and/or the tool calls it requested."""
    content: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
    additional_content: Dict[str, Any] = field(default_factory=dict)
    role: Role = field(default=Role.ASSISTANT, init=False)


@dataclass(frozen=True)
class ToolResultMessage:
    """Results of the tool calls from the preceding assistant turn."""
    tool_results: List[ToolResult] = field(default_factory=list)
    role: Role = field(default=Role.TOOL, init=False)


Message = Union[SystemMessage, UserMessage, AssistantMessage, ToolResultMessage]


def message_to_dict(msg: Message) -> Dict[str, Any]:
    """Convert a message to a dictionary for JSON serialization."""
    result: Dict[str, Any] = {"role": msg.role.value}

    if isinstance(msg, ToolResultMessage):
        result["tool_results"] = [r.to_dict() for r in msg.tool_results]
        return result

    result["content"] = msg.content

    if isinstance(msg, AssistantMessage):
        if msg.tool_calls:
            result["tool_calls"] = [tc.to_dict() for tc in msg.tool_calls]
        if msg.additional_content:
            result["additional_content"] = msg.additional_content

    return result


# ============================================================
# Request
# ============================================================

@dataclass
class TextRequest:
    """
    The originating text-generation request.

    Example:
        request = TextRequest(
            model="anthropic/claude-sonnet-4-5",
            messages=[UserMessage("Hello!")],
        )
    """
    model: str
    messages: List[Message] = field(default_factory=list)
    system_prompts: List[SystemMessage] = field(default_factory=list)
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    metadata: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if "/" in self.model:
            self._provider, self._model_name = self.model.split("/", 1)
        else:
            self._provider = None
            self._model_name = self.model

    @property
    def provider(self) -> Optional[str]:
        return self._provider

    @property
    def model_name(self) -> str:
        return self._model_name


# ============================================================
# Responses
# ============================================================

@dataclass(frozen=True)
class Step:
    """One model turn (e.g. before or after a tool call)."""
    text: str
    finish_reason: FinishReason
    tool_calls: List[ToolCall] = field(default_factory=list)
    tool_results: List[ToolResult] = field(default_factory=list)
    provider_tool_calls: List[ProviderToolCall] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    meta: Meta = field(default_factory=lambda: Meta(id="", model=""))
    messages: List[Message] = field(default_factory=list)
    additional_content: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Response:
    """
    Finalized text-generation result.

    ``usage`` is the last-known usage reported by the provider;
    ``total_usage()`` sums it over steps for callers that aggregate.
    """
    steps: List[Step]
    text: str
    finish_reason: FinishReason
    tool_calls: List[ToolCall] = field(default_factory=list)
    tool_results: List[ToolResult] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    meta: Meta = field(default_factory=lambda: Meta(id="", model=""))
    messages: List[Message] = field(default_factory=list)
    additional_content: Dict[str, Any] = field(default_factory=dict)

    def total_usage(self) -> Usage:
        total = Usage()
        for step in self.steps:
            total = total + step.usage
        return total


# ============================================================
# Moderation
# ============================================================

@dataclass(frozen=True)
class ModerationResult:
    """Moderation verdict for one input."""
    flagged: bool
    categories: Dict[str, bool] = field(default_factory=dict)
    category_scores: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ModerationResult:
        return cls(
            flagged=bool(data.get("flagged", False)),
            categories=data.get("categories") or {},
            category_scores=data.get("category_scores") or {},
        )


@dataclass(frozen=True)
class ModerationResponse:
    """Moderation results for every input of one request."""
    results: List[ModerationResult]
    meta: Meta

    def is_flagged(self) -> bool:
        """Check if any of the results are flagged."""
        return any(result.flagged for result in self.results)

    def first_flagged(self) -> Optional[ModerationResult]:
        """Get the first flagged result, if any."""
        for result in self.results:
            if result.flagged:
                return result
        return None

    def flagged(self) -> List[ModerationResult]:
        """Get all flagged results in original order."""
        return [result for result in self.results if result.flagged]
