"""
llmbridge - Provider Stream Decoders

Translate provider streaming payloads into canonical stream events.
"""

from typing import Dict, Optional, Type

from ..core.errors import InvalidRequestError
from ..core.models import TextRequest
from .anthropic import AnthropicStreamDecoder
from .base import StreamDecoder
from .gemini import GeminiStreamDecoder
from .ollama import OllamaStreamDecoder, OllamaStreamState
from .openai import OpenAIStreamDecoder
from .sse import iter_ndjson_payloads, iter_sse_payloads, raise_for_provider_status

DECODERS: Dict[str, Type[StreamDecoder]] = {
    OpenAIStreamDecoder.provider: OpenAIStreamDecoder,
    AnthropicStreamDecoder.provider: AnthropicStreamDecoder,
    GeminiStreamDecoder.provider: GeminiStreamDecoder,
    OllamaStreamDecoder.provider: OllamaStreamDecoder,
}


def get_decoder(provider: str, request: Optional[TextRequest] = None) -> StreamDecoder:
    """Create the decoder for ``provider``."""
    decoder_cls = DECODERS.get(provider)
    if decoder_cls is None:
        raise InvalidRequestError(f"No stream decoder for provider '{provider}'")
    return decoder_cls(request=request)


__all__ = [
    "DECODERS",
    "get_decoder",
    "StreamDecoder",
    "OpenAIStreamDecoder",
    "AnthropicStreamDecoder",
    "GeminiStreamDecoder",
    "OllamaStreamDecoder",
    "OllamaStreamState",
    "iter_sse_payloads",
    "iter_ndjson_payloads",
    "raise_for_provider_status",
]
