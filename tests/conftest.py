"""Pytest configuration and fixtures for specops tests.

Logging is routed into a buffer per test and reset afterwards, so tests
can assert on log output without leaking handlers between modules.
"""

from __future__ import annotations

import io
import logging
from collections.abc import Iterator

import pytest

from specops.observability import configure_logging, reset_logging
from tests.helpers import FakeRunner, RecordingSleep


@pytest.fixture
def log_stream() -> Iterator[io.StringIO]:
    """Route specops logs at DEBUG into a StringIO for the test.

    Yields:
        The buffer receiving formatted log lines.
    """
    buffer = io.StringIO()
    configure_logging(level=logging.DEBUG, stream=buffer, force=True)
    yield buffer
    reset_logging()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()
