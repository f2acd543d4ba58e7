"""Unit tests for logging helpers."""

from __future__ import annotations

import logging

from medscan_analyzer.core.config import Settings
from medscan_analyzer.core.logging import LoggerMixin, SecretRedactor, configure_logging
from tests.conftest import GEMINI_TEST_KEY, OPENAI_TEST_KEY


class TestSecretRedactor:
    """Credential values never reach a log sink."""

    def test_masks_configured_keys(self, test_settings: Settings) -> None:
        redactor = SecretRedactor(test_settings.secret_values())
        event = {
            "event": "provider_call_failed",
            "error": f"bad key {OPENAI_TEST_KEY}",
            "detail": f"x-goog-api-key: {GEMINI_TEST_KEY}",
            "attempt": 2,
        }

        redacted = redactor(None, "error", event)

        assert redacted["error"] == "bad key ***"
        assert redacted["detail"] == "x-goog-api-key: ***"
        assert redacted["attempt"] == 2

    def test_no_keys_configured(self) -> None:
        event = {"event": "file_encoded", "file_name": "scan.png"}

        assert SecretRedactor([""])(None, "info", dict(event)) == event


class TestConfigureLogging:
    def test_json_format(self, test_settings: Settings) -> None:
        json_settings = test_settings.model_copy(update={"log_format": "json", "log_level": "WARNING"})

        configure_logging(json_settings)

        assert logging.getLogger().level == logging.WARNING
        assert logging.getLogger("openai").level == logging.WARNING
        configure_logging(test_settings)


class TestLoggerMixin:
    def test_logger_is_cached(self) -> None:
        class Worker(LoggerMixin):
            pass

        worker = Worker()

        assert worker.logger is worker.logger
