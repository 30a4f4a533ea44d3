"""Tests for logging helpers."""

import logging
import sys

from pm_bridge.utils.logging import RedactingFilter, StructuredLogger


def make_record(msg, args=None):
    return logging.LogRecord("test", logging.INFO, __file__, 1, msg, args, None)


class TestRedactingFilter:
    """Test cases for RedactingFilter."""

    def test_masks_secret_in_formatted_message(self):
        record = make_record("token=%s", ("ghp_secret123",))

        assert RedactingFilter(["ghp_secret123"]).filter(record) is True
        assert record.getMessage() == "token=***"

    def test_leaves_clean_records_untouched(self):
        record = make_record("fetching %s", ("acme/widget",))

        RedactingFilter(["ghp_secret123", ""]).filter(record)

        assert record.args == ("acme/widget",)

    def test_masks_secret_in_traceback(self):
        try:
            raise RuntimeError("auth failed for token ghp_secret123")
        except RuntimeError:
            record = logging.LogRecord(
                "test", logging.ERROR, __file__, 1, "Tool failed", None, sys.exc_info()
            )

        RedactingFilter(["ghp_secret123"]).filter(record)
        rendered = logging.Formatter("%(message)s").format(record)

        assert "ghp_secret123" not in rendered
        assert "auth failed for token ***" in rendered


class TestStructuredLogger:
    """Test cases for StructuredLogger."""

    def test_event_line(self, caplog):
        caplog.set_level(logging.INFO, logger="pm_bridge.test")

        StructuredLogger("pm_bridge.test").log_tool_call("jira_search", "ok", duration_ms=12)

        assert "EVENT=TOOL_CALL tool=jira_search outcome=ok duration_ms=12" in caplog.text

    def test_audit_is_emitted_above_info_threshold(self, caplog):
        caplog.set_level(logging.ERROR, logger="pm_bridge.audit")

        StructuredLogger("pm_bridge.audit").log_audit("client_skipped", provider="gitlab")

        assert "EVENT=AUDIT action=client_skipped provider=gitlab" in caplog.text
