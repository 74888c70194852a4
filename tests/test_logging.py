from __future__ import annotations

import logging

from rubrica.logging import LOGGER_NAME, configure_logging, get_logger


def test_logger_available() -> None:
    log = get_logger()
    assert log.name == LOGGER_NAME == "rubrica"


def test_child_loggers() -> None:
    assert get_logger("pipeline.grading").name == "rubrica.pipeline.grading"
    assert get_logger("rubrica.state").name == "rubrica.state"


def test_configure_once() -> None:
    configure_logging("DEBUG", force=True)
    log = logging.getLogger(LOGGER_NAME)
    handlers = list(log.handlers)

    configure_logging("WARNING")

    assert log.handlers == handlers
    assert log.level == logging.WARNING
    assert log.propagate is False
