"""Root pytest configuration for all tests.

Async code under test is driven with asyncio.run() from plain test
functions; helpers shared across contexts live in tests/conftest_utils.py.
"""

from __future__ import annotations

import logging

import pytest

from tests.conftest_utils import FakeClock


@pytest.fixture
def fake_clock() -> FakeClock:
    """Monotonic clock whose async sleep advances time instantly."""
    return FakeClock()


@pytest.fixture(autouse=True)
def _project_log_level(caplog: pytest.LogCaptureFixture) -> None:
    # Keep DEBUG records from the project loggers visible to caplog
    for name in ("domain", "infrastructure", "application"):
        caplog.set_level(logging.DEBUG, logger=name)
