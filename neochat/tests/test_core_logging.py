"""Tests for metrics logging and log sanitization."""

import logging
from unittest.mock import MagicMock, patch

from neochat.core.log_sanitizer import sanitize_for_logging, summarize_text_for_logging
from neochat.core.metrics_logger import log_metric


def _patch_config(enabled: bool):
    mock_cm = MagicMock()
    mock_cm.app_settings.feature_metrics_logging_enabled = enabled
    return patch("neochat.modules.config.config_manager", mock_cm)


class TestLogMetric:
    def test_logs_when_enabled(self, caplog):
        with _patch_config(True):
            with caplog.at_level(logging.INFO, logger="neochat.core.metrics_logger"):
                log_metric("tool_call", "user@example.com", tool_name="web_search", source="builtin")
        assert "[METRIC] [user@example.com] tool_call" in caplog.text
        assert "tool_name=web_search source=builtin" in caplog.text

    def test_suppressed_when_disabled(self, caplog):
        with _patch_config(False):
            with caplog.at_level(logging.INFO, logger="neochat.core.metrics_logger"):
                log_metric("llm_call", "user@example.com", model="gpt-5")
        assert "[METRIC]" not in caplog.text

    def test_missing_user_and_injected_newlines(self, caplog):
        with _patch_config(True):
            with caplog.at_level(logging.INFO, logger="neochat.core.metrics_logger"):
                log_metric("error", None, error_type="llm\nstream")
        assert "[unknown]" in caplog.text
        assert "error_type=llmstream" in caplog.text


def test_sanitize_for_logging():
    assert sanitize_for_logging("a\r\nb\u2028c\x1b[31m") == "abc[31m"
    assert sanitize_for_logging(None) == ""
    assert sanitize_for_logging(7) == "7"


def test_summarize_text_for_logging():
    assert summarize_text_for_logging("short") == "len=5 text='short'"
    summary = summarize_text_for_logging("y" * 100, limit=10)
    assert summary == f"len=100 text={'y' * 10!r}..."
