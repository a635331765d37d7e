"""
llmbridge - Stream Configuration

Environment-driven settings for the streaming pipeline.
"""

import os
from dataclasses import dataclass

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_LOG_FORMATS = {"json", "text"}


@dataclass(frozen=True)
class StreamSettings:
    """Resolved streaming settings."""

    log_level: str = "INFO"
    log_format: str = "json"

    # Model turns allowed in one tool-calling stream
    max_tool_steps: int = 5

    # Record Prometheus metrics from the wire adapters
    stream_metrics: bool = True

    # When off, source-exception frames carry a generic message
    expose_error_details: bool = True

    @property
    def log_json(self) -> bool:
        return self.log_format == "json"


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.lower().strip()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid {name}. Use one of: true, false, 1, 0, yes, no, on, off")


def get_settings() -> StreamSettings:
    """
    Read settings from the environment.

    LOG_LEVEL must be a standard level name, LOG_FORMAT one of json/text,
    LLMBRIDGE_MAX_TOOL_STEPS a positive integer.
    """
    log_level = os.getenv("LOG_LEVEL", "INFO").upper().strip()
    if log_level not in _LOG_LEVELS:
        raise ValueError("Invalid LOG_LEVEL. Use one of: DEBUG, INFO, WARNING, ERROR, CRITICAL")

    log_format = os.getenv("LOG_FORMAT", "json").lower().strip()
    if log_format not in _LOG_FORMATS:
        raise ValueError("Invalid LOG_FORMAT. Use one of: json, text")

    raw_steps = os.getenv("LLMBRIDGE_MAX_TOOL_STEPS", "5").strip()
    try:
        max_tool_steps = int(raw_steps)
    except ValueError:
        raise ValueError("LLMBRIDGE_MAX_TOOL_STEPS must be an integer") from None
    if max_tool_steps < 1:
        raise ValueError("LLMBRIDGE_MAX_TOOL_STEPS must be >= 1")

    return StreamSettings(
        log_level=log_level,
        log_format=log_format,
        max_tool_steps=max_tool_steps,
        stream_metrics=_get_bool("LLMBRIDGE_STREAM_METRICS", True),
        expose_error_details=_get_bool("LLMBRIDGE_EXPOSE_ERROR_DETAILS", True),
    )
