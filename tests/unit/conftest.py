"""Shared fixtures for unit tests."""

import logging

import pytest

from restserver.domain.request_context import clear_request_context
from restserver.lifecycle.context import ApplicationContextSlot


@pytest.fixture(autouse=True)
def enable_log_propagation():
    """Ensure logs propagate to root so caplog can catch them."""
    logger = logging.getLogger("rest_server")
    old_propagate = logger.propagate
    logger.propagate = True
    yield
    logger.propagate = old_propagate


@pytest.fixture(autouse=True)
def reset_request_context():
    """Keep request-scoped context from leaking between tests."""
    clear_request_context()
    yield
    clear_request_context()


@pytest.fixture(name="slot")
def slot_fixture() -> ApplicationContextSlot:
    """A private application context slot so tests never touch the process one."""
    return ApplicationContextSlot()
