"""
Tests for error classification and user-friendly formatting
"""

import asyncio

import pytest

from snatch_core.error_handler import (
    classify_error,
    create_error_response,
    format_error_for_logging,
    format_user_friendly_error,
    get_error_category,
    should_retry_error,
)
from snatch_core.errors import (
    ConfigError,
    ElementNotFoundError,
    LLMError,
    LLMNotAvailableError,
    LLMTimeoutError,
    NavigationError,
    OutputError,
    PickerCancelledError,
    PickerTimeoutError,
    SnatchError,
    UnclassifiedError,
    ValidationError,
    format_error,
    is_snatch_error,
)
from snatch_core.orchestrator import PipelineStage


class TestClassifyError:
    """Stage-aware mapping onto the error taxonomy"""

    def test_typed_error_passes_through(self):
        error = ElementNotFoundError(".missing")

        assert classify_error(error, "transform") is error

    @pytest.mark.parametrize("message", [
        "Request timed out",
        "ETIMEDOUT while calling model",
        "LLM request TIMEOUT",
    ])
    def test_timeout_patterns(self, message):
        result = classify_error(RuntimeError(message), "transform")

        assert isinstance(result, LLMTimeoutError)
        assert result.message == message

    def test_timeout_exception_type(self):
        result = classify_error(asyncio.TimeoutError(), "locate")

        assert isinstance(result, LLMTimeoutError)

    @pytest.mark.parametrize("message", [
        "CLI_NOT_FOUND",
        "invalid x-api-key",
        "401 Unauthorized",
        "Connection refused by host",
        "Cannot connect to host localhost:11434",
    ])
    def test_unavailable_patterns(self, message):
        result = classify_error(RuntimeError(message), "locate")

        assert isinstance(result, LLMNotAvailableError)

    def test_other_llm_stage_error(self):
        cause = ValueError("unexpected token")

        result = classify_error(cause, PipelineStage.TRANSFORM)

        assert type(result) is LLMError
        assert result.cause is cause

    @pytest.mark.parametrize("stage", ["browse", "extract", "write", None])
    def test_non_llm_stage_is_unclassified(self, stage):
        result = classify_error(RuntimeError("timed out"), stage)

        assert isinstance(result, UnclassifiedError)
        assert result.code == "UNCLASSIFIED_ERROR"

    def test_empty_message_uses_class_name(self):
        result = classify_error(KeyError(), "extract")

        assert result.message == "KeyError"


class TestUserFriendlyError:
    def test_known_code(self):
        result = format_user_friendly_error(NavigationError("https://x", "net::ERR_NAME_NOT_RESOLVED"))

        assert result["message"] == "The page could not be loaded"
        assert result["can_retry"] is True
        assert "ERR_NAME_NOT_RESOLVED" in result["technical"]

    def test_unknown_error(self):
        result = format_user_friendly_error(ZeroDivisionError("division by zero"))

        assert result["message"] == "An unexpected error occurred"
        assert result["technical"] == "division by zero"

    def test_technical_override(self):
        result = format_user_friendly_error(LLMError("boom"), technical_details="HTTP 500")

        assert result["technical"] == "HTTP 500"


class TestErrorCategory:
    @pytest.mark.parametrize("error, category", [
        (ValidationError("url", "URL is required"), "input"),
        (ConfigError("bad"), "input"),
        (NavigationError("x"), "browser"),
        (PickerCancelledError(), "browser"),
        (PickerTimeoutError(30), "browser"),
        (LLMTimeoutError(120), "llm"),
        (LLMNotAvailableError(), "llm"),
        (OutputError("/tmp/x"), "output"),
        (RuntimeError("?"), "unknown"),
    ])
    def test_categories(self, error, category):
        assert get_error_category(error) == category


def test_should_retry():
    """Retry hint follows the mapping"""
    assert should_retry_error(LLMTimeoutError(30)) is True
    assert should_retry_error(ValidationError("locate", "no mode")) is False


def test_format_for_logging_with_context():
    text = format_error_for_logging(PickerCancelledError(), context="extract https://example.com")

    lines = text.splitlines()
    assert lines[0] == "📍 Context: extract https://example.com"
    assert lines[1].startswith("❌ ")
    assert lines[2].startswith("💡 ")
    assert "Element selection cancelled" in lines[3]


def test_create_error_response():
    response = create_error_response(ElementNotFoundError(".hero"), context="job Hero")

    assert response["success"] is False
    error = response["error"]
    assert error["code"] == "ELEMENT_NOT_FOUND"
    assert error["category"] == "browser"
    assert error["context"] == "job Hero"
    assert error["can_retry"] is False


def test_create_error_response_untyped():
    response = create_error_response(RuntimeError("x"))

    assert response["error"]["code"] == "UNCLASSIFIED_ERROR"
    assert response["error"]["category"] == "unknown"


class TestErrors:
    def test_format_error(self):
        assert format_error(ValidationError("url", "URL is required")) == "[VALIDATION_ERROR] URL is required"
        assert format_error(RuntimeError("plain")) == "plain"

    def test_is_snatch_error(self):
        assert is_snatch_error(OutputError("x"))
        assert not is_snatch_error(ValueError())

    def test_llm_timeout_message(self):
        error = LLMTimeoutError(45)

        assert error.code == "LLM_TIMEOUT"
        assert "45" in error.message
        assert isinstance(error, LLMError)
        assert isinstance(error, SnatchError)

    def test_cancelled_defaults(self):
        error = PickerCancelledError()

        assert error.message == "Element selection cancelled"
        assert error.code == "PICKER_CANCELLED"
