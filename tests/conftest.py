"""Shared fixtures."""

from __future__ import annotations

import pytest

from vpnattach.client.base import AttachmentClient
from vpnattach.config import PollingConfig, TimeoutConfig
from vpnattach.lifecycle import AttachmentLifecycle
from vpnattach.utils.logging import configure_logging


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo logging configuration done by CLI invocations."""
    yield
    configure_logging()


@pytest.fixture
def fast_polling():
    """Polling cadence fast enough for unit tests."""
    return PollingConfig(min_interval=0.01, max_interval=0.02, not_found_checks=3)


@pytest.fixture
def make_lifecycle(fast_polling):
    """Build a lifecycle around a fake client with short timeouts."""

    def factory(client: AttachmentClient, timeout: int = 5) -> AttachmentLifecycle:
        return AttachmentLifecycle(
            client,
            timeouts=TimeoutConfig(create=timeout, delete=timeout),
            polling=fast_polling,
        )

    return factory
