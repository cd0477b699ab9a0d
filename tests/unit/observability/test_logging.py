"""Tests for structured logging."""

import json

import pytest
import structlog

from stratus.observability.logging import (
    SensitiveDataRedactor,
    get_logger,
    setup_logging,
)


def _last_event(err: str) -> dict:
    return json.loads(err.strip().splitlines()[-1])


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_json_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        """JSON format emits one object per event with level and timestamp."""
        setup_logging(level="INFO", format="json", redact_pii=False)
        get_logger("test").info("session_created", session_id="abc")

        event = _last_event(capsys.readouterr().err)
        assert event["event"] == "session_created"
        assert event["session_id"] == "abc"
        assert event["level"] == "info"
        assert "timestamp" in event

    def test_level_filters_lower_events(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Events below the configured level are dropped."""
        setup_logging(level="WARNING", format="json", redact_pii=False)
        logger = get_logger("test")
        logger.info("dropped")
        logger.warning("kept")

        err = capsys.readouterr().err
        assert "dropped" not in err
        assert _last_event(err)["event"] == "kept"

    def test_console_format(self) -> None:
        """Console format configures without error."""
        setup_logging(level="DEBUG", format="console", redact_pii=False)
        get_logger("test").debug("test_message")

    def test_contextvars_merged(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Bound context appears in every event."""
        setup_logging(level="INFO", format="json", redact_pii=False)
        structlog.contextvars.bind_contextvars(request_id="req-1")
        try:
            get_logger("test").info("request_started")
        finally:
            structlog.contextvars.clear_contextvars()

        assert _last_event(capsys.readouterr().err)["request_id"] == "req-1"

    def test_redaction_applied_when_enabled(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Sensitive keys are masked in rendered output."""
        setup_logging(level="INFO", format="json", redact_pii=True)
        get_logger("test").info("auth", token="abc123")

        assert _last_event(capsys.readouterr().err)["token"] == "[REDACTED]"


class TestSensitiveDataRedactor:
    """Tests for the redaction processor."""

    @pytest.fixture
    def redactor(self) -> SensitiveDataRedactor:
        return SensitiveDataRedactor()

    def test_redacts_sensitive_keys(self, redactor: SensitiveDataRedactor) -> None:
        """Should replace values of sensitive keys."""
        result = redactor(None, "info", {"password": "hunter2", "api_key": "k", "ok": 1})
        assert result["password"] == "[REDACTED]"
        assert result["api_key"] == "[REDACTED]"
        assert result["ok"] == 1

    def test_key_match_is_case_insensitive(self, redactor: SensitiveDataRedactor) -> None:
        result = redactor(None, "info", {"Authorization": "Bearer xyz"})
        assert result["Authorization"] == "[REDACTED]"

    def test_masks_emails_and_bearer_tokens_in_strings(
        self, redactor: SensitiveDataRedactor
    ) -> None:
        """Should scrub patterns embedded in free text."""
        result = redactor(
            None, "info", {"error": "user a.b@example.com sent Bearer abc.def-123"}
        )
        assert result["error"] == "user [EMAIL] sent [TOKEN]"

    def test_recurses_into_nested_values(self, redactor: SensitiveDataRedactor) -> None:
        """Should redact inside dicts and lists."""
        result = redactor(
            None,
            "info",
            {"params": {"secret": "s", "items": ["x@y.org", 3]}},
        )
        assert result["params"] == {"secret": "[REDACTED]", "items": ["[EMAIL]", 3]}
