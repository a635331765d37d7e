"""
llmbridge - Structured JSON Logging

Every log line of a stream carries the stream's correlation fields
(request_id, stream_id, provider, model, adapter) without the call site
passing them: adapters bind them once with ``log_context`` and the
formatter and logger read them back from a context variable.

``setup_logging()`` without arguments takes LOG_LEVEL and LOG_FORMAT from
StreamSettings and rejects invalid values; the implicit setup done by the
first ``get_logger`` call tolerates them.

Usage:
    from llmbridge.observability.logging import get_logger, log_context

    logger = get_logger(__name__)

    with log_context(stream_id="strm_abc", adapter="sse"):
        logger.info("Stream completed", event_count=12)

Output:
    {"timestamp": "2024-01-15T10:30:00+00:00", "level": "INFO",
     "logger": "llmbridge.streaming.adapters.base", "message": "Stream completed",
     "stream_id": "strm_abc", "adapter": "sse", "event_count": 12}
"""

import os
import sys
import json
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional, Union

from ..config import get_settings

_current_context: ContextVar[Optional["LogContext"]] = ContextVar("llmbridge_log_context", default=None)

# Attributes every LogRecord has; anything else on a record came from ``extra``
_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "taskName"}

# Keyword arguments the stdlib logger consumes itself
_LOGGER_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel"})

REDACTED = "[REDACTED]"


@dataclass
class LogContext:
    """Correlation fields bound to the running task."""
    request_id: str = ""
    trace_id: str = ""
    stream_id: str = ""
    provider: str = ""
    model: str = ""
    adapter: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def get_current(cls) -> Optional["LogContext"]:
        return _current_context.get()

    @classmethod
    def set_current(cls, ctx: "LogContext"):
        _current_context.set(ctx)

    @classmethod
    def clear(cls):
        _current_context.set(None)

    @classmethod
    def field_names(cls):
        return [f.name for f in fields(cls) if f.name != "extra"]

    def update(self, **kwargs):
        """Set named fields; unknown keys land in ``extra``."""
        names = self.field_names()
        for key, value in kwargs.items():
            if key in names:
                setattr(self, key, value)
            else:
                self.extra[key] = value

    def to_dict(self) -> Dict[str, Any]:
        """Non-empty fields, then extras."""
        result = {name: getattr(self, name) for name in self.field_names() if getattr(self, name)}
        result.update(self.extra)
        return result


@contextmanager
def log_context(**values) -> Iterator[LogContext]:
    """
    Bind context fields for every log line emitted inside the block.

    The enclosing context (if any) is copied, so nested blocks never leak
    their fields outward.
    """
    parent = LogContext.get_current()
    ctx = replace(parent, extra=dict(parent.extra)) if parent else LogContext()
    ctx.update(**values)
    token = _current_context.set(ctx)
    try:
        yield ctx
    finally:
        _current_context.reset(token)


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record.

    Core fields first, then the bound LogContext, then the record's own
    extra fields. Values under sensitive keys are replaced, including keys
    nested in dict values (provider error bodies, request headers).
    """

    SENSITIVE_FIELDS = {
        "password", "secret", "token", "api_key", "apikey",
        "authorization", "auth", "credential", "private_key",
    }

    # Counters that merely contain "token" in their name
    NON_SENSITIVE_FIELDS = {
        "prompt_tokens", "completion_tokens", "total_tokens", "thought_tokens",
        "cache_read_input_tokens", "cache_write_input_tokens",
    }

    def __init__(
        self,
        include_timestamp: bool = True,
        include_level: bool = True,
        include_logger: bool = True,
        include_location: bool = False,
        redact_sensitive: bool = True,
    ):
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_level = include_level
        self.include_logger = include_logger
        self.include_location = include_location
        self.redact_sensitive = redact_sensitive

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {}

        if self.include_timestamp:
            entry["timestamp"] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        if self.include_level:
            entry["level"] = record.levelname
        if self.include_logger:
            entry["logger"] = record.name

        entry["message"] = record.getMessage()

        if self.include_location:
            entry["location"] = f"{record.filename}:{record.lineno}"
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        ctx = LogContext.get_current()
        if ctx is not None:
            entry.update(ctx.to_dict())

        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS:
                entry[key] = value

        if self.redact_sensitive:
            entry = self._redact(entry)

        return json.dumps(entry, default=str, ensure_ascii=False)

    def _redact(self, data: Dict[str, Any]) -> Dict[str, Any]:
        redacted = {}
        for key, value in data.items():
            if self._is_sensitive(key):
                redacted[key] = REDACTED
            elif isinstance(value, dict):
                redacted[key] = self._redact(value)
            else:
                redacted[key] = value
        return redacted

    def _is_sensitive(self, field_name: str) -> bool:
        name = str(field_name).lower()
        if name in self.NON_SENSITIVE_FIELDS:
            return False
        return any(sensitive in name for sensitive in self.SENSITIVE_FIELDS)


class StructuredLogger:
    """
    Wraps a stdlib logger; keyword arguments become record fields.

        logger.info("Stream started", adapter="sse", provider="openai")
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def is_enabled_for(self, level: int) -> bool:
        return self._logger.isEnabledFor(level)

    def _log(self, level: int, msg: str, *args, **kwargs):
        if not self._logger.isEnabledFor(level):
            return

        extra = dict(kwargs.pop("extra", None) or {})
        ctx = LogContext.get_current()
        if ctx is not None:
            extra.update(ctx.to_dict())

        passthrough = {key: kwargs.pop(key) for key in list(kwargs) if key in _LOGGER_KWARGS}
        extra.update(kwargs)

        self._logger.log(level, msg, *args, extra=extra, **passthrough)

    def debug(self, msg: str, *args, **kwargs):
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self._log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        """Error with the active exception's traceback."""
        kwargs["exc_info"] = True
        self._log(logging.ERROR, msg, *args, **kwargs)


_logging_configured = False


def setup_logging(
    level: Union[str, int, None] = None,
    json_output: Optional[bool] = None,
    include_location: bool = False,
    redact_sensitive: bool = True,
) -> None:
    """
    Install one stdout handler on the root logger.

    Args:
        level: Log level name or number (default: LOG_LEVEL)
        json_output: JSON lines (True) or plain text (False) (default: LOG_FORMAT)
        include_location: Include filename:lineno in JSON lines
        redact_sensitive: Redact sensitive fields in JSON lines
    """
    global _logging_configured

    if level is None or json_output is None:
        settings = get_settings()
        level = settings.log_level if level is None else level
        json_output = settings.log_json if json_output is None else json_output

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)
    for existing in root.handlers[:]:
        root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    if json_output:
        handler.setFormatter(JSONFormatter(include_location=include_location, redact_sensitive=redact_sensitive))
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    root.addHandler(handler)

    # Transport libraries log every request at DEBUG/INFO
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    _logging_configured = True


def get_logger(name: str) -> StructuredLogger:
    """
    StructuredLogger for ``name``; configures logging on first use.

    Auto-configuration reads LOG_LEVEL / LOG_FORMAT leniently: an unknown
    level falls back to INFO and any format other than "text" means JSON.
    Only an explicit ``setup_logging()`` call validates them strictly.
    """
    if not _logging_configured:
        setup_logging(
            level=os.getenv("LOG_LEVEL", "INFO").strip() or "INFO",
            json_output=os.getenv("LOG_FORMAT", "json").lower().strip() != "text",
        )
    return StructuredLogger(logging.getLogger(name))
