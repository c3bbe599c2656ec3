"""
Unit Tests for Structured Logging

Tests operation ID correlation, stage logging and secret redaction.
"""

from unittest.mock import MagicMock

import pytest

from feedgate.core.config.constants import Stage
from feedgate.core.logging.logger import (
    add_log_level_name,
    add_operation_id,
    clear_operation_id,
    get_logger,
    get_operation_id,
    log_stage,
    redact_secrets,
    set_operation_id,
    setup_logging,
)


@pytest.mark.unit
class TestOperationId:
    """Test operation ID context handling."""

    def test_set_and_get(self):
        """Test that the operation ID round-trips through the context."""
        set_operation_id("op-123")
        try:
            assert get_operation_id() == "op-123"
        finally:
            clear_operation_id()

        assert get_operation_id() is None

    def test_processor_adds_operation_id(self):
        """Test that the processor injects the current operation ID."""
        set_operation_id("op-9")
        try:
            event = add_operation_id(None, "info", {"event": "hello"})
        finally:
            clear_operation_id()

        assert event["operation_id"] == "op-9"

    def test_processor_skips_missing_operation_id(self):
        """Test that no field is added outside an operation."""
        event = add_operation_id(None, "info", {"event": "hello"})
        assert "operation_id" not in event


@pytest.mark.unit
class TestRedactSecrets:
    """Test suite for redact_secrets."""

    def test_bearer_token_redacted(self):
        """Test that bearer tokens in messages are masked."""
        event = redact_secrets(None, "info", {"event": "sent Authorization: Bearer abc.DEF-123"})
        assert event["event"] == "sent Authorization: Bearer [REDACTED]"

    def test_token_fields_in_message_redacted(self):
        """Test that token=value pairs in messages are masked."""
        event = redact_secrets(
            None, "info", {"event": "body access_token=abc123&refresh_token: xyz"}
        )
        assert "abc123" not in event["event"]
        assert "xyz" not in event["event"]
        assert "access_token=[REDACTED]" in event["event"]

    def test_secret_keys_redacted(self):
        """Test that fields named after secrets are masked."""
        event = redact_secrets(
            None,
            "info",
            {"event": "refreshed", "refresh_token": "r-1", "client_secret": "s", "identity": "bot"},
        )

        assert event["refresh_token"] == "[REDACTED]"
        assert event["client_secret"] == "[REDACTED]"
        assert event["identity"] == "bot"

    def test_empty_secret_left_alone(self):
        """Test that empty secret fields are not replaced."""
        event = redact_secrets(None, "info", {"event": "x", "access_token": None})
        assert event["access_token"] is None


@pytest.mark.unit
class TestLogStage:
    """Test stage-tagged logging helpers."""

    def test_log_stage_passes_stage_value(self):
        """Test that the Stage enum is logged by value."""
        logger = MagicMock()
        log_stage(logger, Stage.QUEUE_BACKOFF, "backing off", level="warning", delay=4.0)

        logger.warning.assert_called_once_with("backing off", stage="Q.3_QUEUE_BACKOFF", delay=4.0)

    def test_log_stage_accepts_plain_string(self):
        """Test that a raw stage string is passed through."""
        logger = MagicMock()
        log_stage(logger, "CUSTOM", "message")

        logger.info.assert_called_once_with("message", stage="CUSTOM")

    def test_level_name_uppercased(self):
        """Test that the level processor upper-cases the level."""
        assert add_log_level_name(None, "info", {"level": "warning"})["level"] == "WARNING"

    def test_setup_logging_accepts_both_formats(self):
        """Test that logging can be configured for JSON and console output."""
        setup_logging("DEBUG", "console")
        setup_logging("INFO", "json")
        get_logger(__name__).info("configured", stage="L.0")
