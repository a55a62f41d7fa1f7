"""Unit tests for structured logging setup."""
import json
import logging

import pytest
import structlog

from dpofast.config.logging_config import REDACTED, configure_logging, redact_sensitive


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


def test_redacts_credentials_and_personal_data():
    event = redact_sensitive(
        None,
        "info",
        {"event": "login", "password": "Senha@Forte123", "cpf": "123.456.789-00", "user_id": "u1"},
    )
    assert event["password"] == REDACTED
    assert event["cpf"] == REDACTED
    assert event["user_id"] == "u1"
    assert event["event"] == "login"


def test_json_lines_carry_context_and_hide_secrets(capsys, restore_logging):
    configure_logging(log_level="INFO", json_logs=True)
    structlog.contextvars.bind_contextvars(correlation_id="abc-123")
    structlog.get_logger("dpofast.test").info("token_issued", refresh_token="secret-value")

    line = capsys.readouterr().out.strip().splitlines()[-1]
    record = json.loads(line)
    assert record["event"] == "token_issued"
    assert record["correlation_id"] == "abc-123"
    assert record["refresh_token"] == REDACTED
    assert record["level"] == "info"


def test_noisy_loggers_are_quieted(restore_logging):
    configure_logging(log_level="DEBUG", json_logs=False)
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
    assert logging.getLogger().level == logging.DEBUG
