"""Tests for logging configuration."""

import logging

from nutrition_estimator.app_logging import configure_logging


def test_configure_logging_idempotent() -> None:
    logger = logging.getLogger("nutrition_estimator")
    logger.handlers.clear()

    configure_logging()
    first_count = len(logger.handlers)

    configure_logging()
    second_count = len(logger.handlers)

    assert first_count == 1
    assert second_count == 1
    assert logger.propagate is False


def test_module_loggers_inherit_package_level() -> None:
    logger = logging.getLogger("nutrition_estimator")
    logger.handlers.clear()

    configure_logging(logging.WARNING)

    child = logging.getLogger("nutrition_estimator.services.outliers")
    assert child.getEffectiveLevel() == logging.WARNING
    configure_logging(logging.INFO)
