# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for the structured JSON logger.

We verify:
  - output is valid JSON with the mandatory fields (ts, level, module, msg)
  - log levels filter correctly
  - extra context fields get merged into the JSON
  - repeated get_logger calls don't stack handlers
"""

import json
import logging
from pathlib import Path

import pytest

from dnprelease.logging.logger import configure_package_logging, get_logger


@pytest.fixture(autouse=True)
def _reset_loggers() -> None:
    """
    Clear handlers of test loggers so get_logger's handler-stacking guard
    doesn't leak between tests.
    """
    yield  # type: ignore[misc]
    for name in list(logging.Logger.manager.loggerDict):
        if name.startswith("dnprelease.test"):
            logger = logging.getLogger(name)
            for handler in logger.handlers:
                handler.close()
            logger.handlers.clear()


class TestJsonOutput:
    def test_mandatory_fields_are_present(self, capsys: pytest.CaptureFixture[str]) -> None:
        logger = get_logger("dnprelease.test.fields", log_level="INFO")
        logger.info("test message")

        parsed = json.loads(capsys.readouterr().out.strip())
        assert parsed["level"] == "INFO"
        assert parsed["module"] == "dnprelease.test.fields"
        assert parsed["msg"] == "test message"
        assert "ts" in parsed

    def test_extra_fields_are_included(self, capsys: pytest.CaptureFixture[str]) -> None:
        logger = get_logger("dnprelease.test.extra", log_level="DEBUG")
        logger.info("archived", extra={"architecture": "linux/arm64", "bytes": 42})

        parsed = json.loads(capsys.readouterr().out.strip())
        assert parsed["architecture"] == "linux/arm64"
        assert parsed["bytes"] == 42

    def test_exceptions_are_serialized(self, capsys: pytest.CaptureFixture[str]) -> None:
        logger = get_logger("dnprelease.test.exc", log_level="INFO")
        try:
            raise RuntimeError("kaboom")
        except RuntimeError:
            logger.error("failed", exc_info=True)

        parsed = json.loads(capsys.readouterr().out.strip())
        assert "kaboom" in parsed["exc"]


class TestLogLevelFiltering:
    def test_debug_messages_hidden_at_info_level(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        logger = get_logger("dnprelease.test.level_filter", log_level="INFO")
        logger.debug("this should not appear")
        assert capsys.readouterr().out.strip() == ""

    def test_second_call_updates_level_without_stacking(self) -> None:
        first = get_logger("dnprelease.test.restack", log_level="INFO")
        second = get_logger("dnprelease.test.restack", log_level="DEBUG")

        assert first is second
        assert len(second.handlers) == 1
        assert second.level == logging.DEBUG

    def test_configure_package_logging_updates_existing_loggers(self) -> None:
        logger = get_logger("dnprelease.test.package_level", log_level="INFO")
        configure_package_logging("WARNING")

        assert logger.level == logging.WARNING
        configure_package_logging("INFO")


class TestFileOutput:
    def test_logs_are_written_to_file(self, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "dnprelease.log"
        logger = get_logger("dnprelease.test.file_output", log_level="INFO", log_file=log_file)
        logger.info("file log test")

        parsed = json.loads(log_file.read_text(encoding="utf-8").strip())
        assert parsed["msg"] == "file log test"


class TestInvalidLogLevel:
    def test_invalid_level_raises_value_error(self) -> None:
        with pytest.raises(ValueError, match="Invalid log level"):
            get_logger("dnprelease.test.invalid", log_level="INVALID")
