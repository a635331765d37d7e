"""
llmbridge - Configuration Tests

Verifies environment parsing for the streaming settings.
"""

import pytest

from llmbridge.config import StreamSettings, get_settings

ENV_VARS = [
    "LOG_LEVEL",
    "LOG_FORMAT",
    "LLMBRIDGE_MAX_TOOL_STEPS",
    "LLMBRIDGE_STREAM_METRICS",
    "LLMBRIDGE_EXPOSE_ERROR_DETAILS",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    """No environment set."""

    def test_defaults(self):
        settings = get_settings()

        assert settings == StreamSettings()
        assert settings.log_level == "INFO"
        assert settings.log_json is True
        assert settings.max_tool_steps == 5
        assert settings.stream_metrics is True
        assert settings.expose_error_details is True

    def test_settings_are_frozen(self):
        settings = StreamSettings()
        with pytest.raises(AttributeError):
            settings.max_tool_steps = 9


class TestEnvironment:
    """Values read from the environment."""

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("LOG_FORMAT", "TEXT")
        monkeypatch.setenv("LLMBRIDGE_MAX_TOOL_STEPS", " 3 ")
        monkeypatch.setenv("LLMBRIDGE_STREAM_METRICS", "off")
        monkeypatch.setenv("LLMBRIDGE_EXPOSE_ERROR_DETAILS", "No")

        settings = get_settings()

        assert settings.log_level == "DEBUG"
        assert settings.log_format == "text"
        assert settings.log_json is False
        assert settings.max_tool_steps == 3
        assert settings.stream_metrics is False
        assert settings.expose_error_details is False

    @pytest.mark.parametrize("value,expected", [
        ("1", True), ("true", True), ("YES", True), ("on", True),
        ("0", False), ("false", False), ("no", False), ("Off", False),
        ("", True), ("   ", True),
    ])
    def test_bool_values(self, monkeypatch, value, expected):
        monkeypatch.setenv("LLMBRIDGE_STREAM_METRICS", value)
        assert get_settings().stream_metrics is expected


class TestValidation:
    """Invalid values fail loudly."""

    def test_invalid_log_level(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "VERBOSE")
        with pytest.raises(ValueError, match="LOG_LEVEL"):
            get_settings()

    def test_invalid_log_format(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "xml")
        with pytest.raises(ValueError, match="LOG_FORMAT"):
            get_settings()

    @pytest.mark.parametrize("value", ["five", "2.5"])
    def test_non_integer_steps(self, monkeypatch, value):
        monkeypatch.setenv("LLMBRIDGE_MAX_TOOL_STEPS", value)
        with pytest.raises(ValueError, match="must be an integer"):
            get_settings()

    @pytest.mark.parametrize("value", ["0", "-1"])
    def test_steps_below_one(self, monkeypatch, value):
        monkeypatch.setenv("LLMBRIDGE_MAX_TOOL_STEPS", value)
        with pytest.raises(ValueError, match=">= 1"):
            get_settings()

    def test_invalid_bool(self, monkeypatch):
        monkeypatch.setenv("LLMBRIDGE_EXPOSE_ERROR_DETAILS", "maybe")
        with pytest.raises(ValueError, match="LLMBRIDGE_EXPOSE_ERROR_DETAILS"):
            get_settings()
