"""Unit tests for structured JSON logging"""

import json
import logging
import pytest
from salary_advance.infrastructure.observability.logging import CustomJsonFormatter, setup_logging


def _record(message: str) -> logging.LogRecord:
    return logging.LogRecord("salary_advance.test", logging.INFO, __file__, 1, message, None, None)


@pytest.fixture
def root_logger():
    """Restore root handlers and level after setup_logging replaces them"""
    logger = logging.getLogger()
    handlers, level = list(logger.handlers), logger.level
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)


def test_formatter_stamps_configured_service_name():
    formatter = CustomJsonFormatter("%(message)s", service_name="ledger-worker")

    payload = json.loads(formatter.format(_record("Import completed")))

    assert payload["service"] == "ledger-worker"
    assert payload["level"] == "INFO"
    assert payload["message"] == "Import completed"
    assert "timestamp" in payload


def test_setup_logging_uses_service_name(root_logger):
    setup_logging("WARNING", service_name="ledger-worker")

    [handler] = root_logger.handlers
    assert root_logger.level == logging.WARNING
    assert handler.formatter.service_name == "ledger-worker"
