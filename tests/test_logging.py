from __future__ import annotations

import logging

import pytest
import structlog

from wabot.logging import QUIET_LOGGERS, setup_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


def test_setup_logging_sets_level_and_quiets_libraries(restore_logging) -> None:
    setup_logging(level="debug", fmt="json")

    assert logging.getLogger().level == logging.DEBUG
    assert "playwright" in QUIET_LOGGERS
    for name in QUIET_LOGGERS:
        assert logging.getLogger(name).level == logging.WARNING


def test_setup_logging_binds_bot_name(restore_logging) -> None:
    setup_logging(level="INFO", fmt="console", bot_name="Test Bot")

    assert structlog.contextvars.get_contextvars() == {"bot": "Test Bot"}


def test_unknown_level_falls_back_to_info(restore_logging) -> None:
    setup_logging(level="loud")

    assert logging.getLogger().level == logging.INFO
