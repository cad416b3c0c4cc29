"""Fixtures that undo process-wide logging changes made by tests."""

import logging

import pytest

from splitrole.logging_config import AWS_SDK_LOGGERS


@pytest.fixture
def restore_loggers():
    """Restore level, handlers and propagation of the splitrole and AWS SDK loggers."""
    names = ["splitrole"] + AWS_SDK_LOGGERS
    saved = {
        name: (
            logging.getLogger(name).level,
            list(logging.getLogger(name).handlers),
            logging.getLogger(name).propagate,
        )
        for name in names
    }
    yield
    for name, (level, handlers, propagate) in saved.items():
        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.handlers[:] = handlers
        logger.propagate = propagate
