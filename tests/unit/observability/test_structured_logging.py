"""Tests for structured logging."""

import json

import pytest
import structlog

from flowchat.observability.logging import (
    PIIRedactor,
    get_logger,
    setup_logging,
)


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_setup_json_format(self) -> None:
        """Should configure JSON format for production."""
        setup_logging(level="INFO", format="json", redact_pii=False)
        logger = get_logger("test")
        logger.info("test_message")

    def test_setup_console_format(self) -> None:
        """Should configure console format for development."""
        setup_logging(level="DEBUG", format="console", redact_pii=False)
        logger = get_logger("test")
        logger.debug("test_message")

    def test_json_output_contains_context(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Bound context appears in the JSON line."""
        structlog.reset_defaults()
        setup_logging(level="INFO", format="json", redact_pii=True)
        structlog.contextvars.bind_contextvars(chatflow_id="flow-1")
        try:
            structlog.get_logger("test").info("submission_sent", transport="push")
        finally:
            structlog.contextvars.clear_contextvars()

        line = capsys.readouterr().err.strip().splitlines()[-1]
        structlog.reset_defaults()
        event = json.loads(line)
        assert event["event"] == "submission_sent"
        assert event["chatflow_id"] == "flow-1"
        assert event["transport"] == "push"
        assert event["level"] == "info"


class TestPIIRedactor:
    """Tests for PIIRedactor processor."""

    @pytest.fixture
    def redactor(self) -> PIIRedactor:
        return PIIRedactor()

    def test_redacts_sensitive_keys(self, redactor: PIIRedactor) -> None:
        result = redactor(None, "info", {"event": "lead_saved", "email": "a@b.co"})
        assert result["email"] == "[REDACTED]"
        assert result["event"] == "lead_saved"

    def test_redacts_attachment_data(self, redactor: PIIRedactor) -> None:
        result = redactor(None, "info", {"upload": {"data": "data:image/png;base64,AAA"}})
        assert result["upload"]["data"] == "[REDACTED]"

    def test_redacts_email_in_values(self, redactor: PIIRedactor) -> None:
        result = redactor(None, "info", {"error": "unknown user bob@example.com"})
        assert result["error"] == "unknown user [EMAIL]"

    def test_redacts_inside_lists(self, redactor: PIIRedactor) -> None:
        result = redactor(None, "info", {"items": ["bob@example.com", {"token": "x"}]})
        assert result["items"] == ["[EMAIL]", {"token": "[REDACTED]"}]

    def test_leaves_other_values(self, redactor: PIIRedactor) -> None:
        result = redactor(None, "info", {"size": 3, "transport": "push"})
        assert result == {"size": 3, "transport": "push"}
