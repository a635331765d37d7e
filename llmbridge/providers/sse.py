"""
llmbridge - Provider Stream Readers

Turns an httpx streaming response into decoded JSON payloads.

- ``iter_sse_payloads``: ``text/event-stream`` bodies (OpenAI, Anthropic, Gemini)
- ``iter_ndjson_payloads``: newline-delimited JSON bodies (Ollama)

Both raise the matching llmbridge error for HTTP status >= 400 before
reading any payload, and turn httpx transport failures while reading into
ReadTimeoutError / StreamInterruptedError.
"""

import json
from typing import Any, AsyncIterator, Dict

import httpx

from ..core.errors import create_error_from_provider, handle_transport_error
from ..observability.logging import get_logger

logger = get_logger(__name__)


async def raise_for_provider_status(
    response: httpx.Response,
    provider: str,
    request_id: str = "",
) -> None:
    """Raise the llmbridge error for a failed provider response."""
    if response.status_code < 400:
        return

    try:
        raw = await response.aread()
    except httpx.TransportError as e:
        raise handle_transport_error(e, provider, request_id) from e

    try:
        error_body = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        error_body = {"message": raw.decode("utf-8", errors="replace")}

    if not isinstance(error_body, dict):
        error_body = {"message": str(error_body)}

    retry_after = response.headers.get("retry-after", "")
    if retry_after.isdigit():
        error_body = {**error_body, "retry-after": int(retry_after)}

    raise create_error_from_provider(provider, response.status_code, error_body, request_id)


async def iter_sse_payloads(
    response: httpx.Response,
    provider: str,
    request_id: str = "",
) -> AsyncIterator[Dict[str, Any]]:
    """
    Yield the JSON object of every ``data:`` line.

    Blank lines, comments and the ``[DONE]`` marker are skipped. When an
    ``event:`` line names the event and the payload has no ``type`` of its
    own, the name is copied into ``type``.
    """
    await raise_for_provider_status(response, provider, request_id)

    event_name = ""
    received = False
    try:
        async for line in response.aiter_lines():
            line = line.rstrip("\r")

            if not line:
                event_name = ""
                continue

            if line.startswith(":"):
                continue

            if line.startswith("event:"):
                event_name = line[6:].strip()
                continue

            if not line.startswith("data:"):
                continue

            data_str = line[5:].strip()
            if not data_str or data_str == "[DONE]":
                continue

            try:
                data = json.loads(data_str)
            except json.JSONDecodeError:
                logger.debug("Skipping unparseable SSE payload", provider=provider, payload=data_str[:200])
                continue

            if not isinstance(data, dict):
                continue

            if event_name and "type" not in data:
                data["type"] = event_name

            received = True
            yield data
    except httpx.TransportError as e:
        logger.warning("Provider stream read failed", provider=provider, error=str(e), content_started=received)
        raise handle_transport_error(e, provider, request_id, content_started=received) from e


async def iter_ndjson_payloads(
    response: httpx.Response,
    provider: str,
    request_id: str = "",
) -> AsyncIterator[Dict[str, Any]]:
    """Yield one JSON object per non-empty line."""
    await raise_for_provider_status(response, provider, request_id)

    received = False
    try:
        async for line in response.aiter_lines():
            line = line.strip()
            if not line:
                continue

            try:
                data = json.loads(line)
            except json.JSONDecodeError:
                logger.debug("Skipping unparseable NDJSON line", provider=provider, payload=line[:200])
                continue

            if isinstance(data, dict):
                received = True
                yield data
    except httpx.TransportError as e:
        logger.warning("Provider stream read failed", provider=provider, error=str(e), content_started=received)
        raise handle_transport_error(e, provider, request_id, content_started=received) from e
