"""Tests for the ai-cache error hierarchy."""

from __future__ import annotations

import logging

import pytest

from ai_cache.errors import (
    AICacheError,
    BackendUnavailableError,
    CacheError,
    ConfigurationError,
    KeyDerivationError,
    SerializationError,
    log_exception,
)
from ai_cache.logging import get_logger

# =============================================================================
# log_exception Tests
# =============================================================================


class TestLogException:
    """Tests for log_exception helper."""

    def test_log_exception_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test logging with warning level."""
        logger = logging.getLogger("test")
        exc = ValueError("test error")

        with caplog.at_level(logging.WARNING):
            log_exception(logger, "Operation failed", exc, level="warning")

        assert "Operation failed" in caplog.text
        assert "ValueError" in caplog.text

    def test_log_exception_error(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test logging with error level."""
        logger = logging.getLogger("test")

        with caplog.at_level(logging.ERROR):
            log_exception(logger, "Critical failure", RuntimeError("boom"), level="error")

        assert caplog.records[-1].levelno == logging.ERROR
        assert "Critical failure" in caplog.text

    def test_log_exception_without_traceback(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test logging without traceback."""
        logger = logging.getLogger("test")

        with caplog.at_level(logging.WARNING):
            log_exception(logger, "Simple failure", ValueError("simple"), include_traceback=False)

        assert caplog.records[-1].exc_info is None

    def test_log_exception_structured_logger(self, caplog: pytest.LogCaptureFixture) -> None:
        """Works with the package's StructuredLogger too."""
        logger = get_logger("errors-test")

        with caplog.at_level(logging.WARNING, logger="ai_cache"):
            log_exception(logger, "Store failed", BackendUnavailableError("down"))

        assert "Store failed: BackendUnavailableError: down" in caplog.text


# =============================================================================
# AICacheError Tests
# =============================================================================


class TestAICacheError:
    """Tests for the base error."""

    def test_message_only(self) -> None:
        err = AICacheError("Something broke")
        assert str(err) == "Something broke"
        assert err.message == "Something broke"
        assert err.details == {}
        assert err.hint is None

    def test_hint_in_str(self) -> None:
        err = AICacheError("Redis unreachable", hint="Check REDIS_URL")
        assert "Redis unreachable" in str(err)
        assert "Hint: Check REDIS_URL" in str(err)

    def test_repr(self) -> None:
        assert repr(AICacheError("oops")) == "AICacheError('oops')"

    def test_details_kept(self) -> None:
        err = AICacheError("x", details={"key": "ai-cache:1"})
        assert err.details["key"] == "ai-cache:1"


# =============================================================================
# Hierarchy Tests
# =============================================================================


class TestHierarchy:
    """Subclass relationships and extra attributes."""

    @pytest.mark.parametrize(
        "cls",
        [KeyDerivationError, BackendUnavailableError, SerializationError],
    )
    def test_cache_errors(self, cls) -> None:
        err = cls("failed")
        assert isinstance(err, CacheError)
        assert isinstance(err, AICacheError)

    def test_configuration_error_setting(self) -> None:
        err = ConfigurationError("bad ttl", setting="cache_ttl")
        assert err.setting == "cache_ttl"
        assert err.details["setting"] == "cache_ttl"
        assert not isinstance(err, CacheError)

    def test_backend_unavailable_details(self) -> None:
        err = BackendUnavailableError("timeout", backend="redis", operation="get")
        assert err.backend == "redis"
        assert err.operation == "get"
        assert err.details == {"backend": "redis", "operation": "get"}

    def test_catch_as_base(self) -> None:
        with pytest.raises(AICacheError):
            raise SerializationError("bad json")
