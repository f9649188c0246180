"""Tests for the observability module (logging and progress tracking)."""

from __future__ import annotations

import asyncio
import io
import json
import logging
import sys
from datetime import datetime

import pytest

from specops.observability.logging import (
    ROOT_LOGGER_NAME,
    JSONFormatter,
    LogContext,
    StructuredFormatter,
    StructuredLogger,
    StructuredLogRecord,
    _format_value,
    _log_context,
    configure_logging,
    get_logger,
    reset_logging,
)
from specops.observability.progress import (
    ProgressSnapshot,
    ProgressTracker,
    _percentile,
)


def make_record(structured_data=None, **overrides) -> logging.LogRecord:
    record = logging.LogRecord(
        name=overrides.get("name", "specops.test"),
        level=overrides.get("level", logging.INFO),
        pathname="test.py",
        lineno=1,
        msg=overrides.get("msg", "Created label"),
        args=(),
        exc_info=overrides.get("exc_info"),
    )
    if structured_data is not None:
        record.structured_data = structured_data
    return record


# =============================================================================
# Structured Logging Tests
# =============================================================================


class TestStructuredLogRecord:
    def test_basic_creation(self):
        """Verifies StructuredLogRecord stores structured data dict.

        Assertion Strategy:
        - structured_data equals the dict passed in.
        - Standard LogRecord fields preserved (name, level).
        """
        record = StructuredLogRecord(
            name="specops",
            level=logging.INFO,
            pathname="test.py",
            lineno=10,
            msg="message",
            args=(),
            exc_info=None,
            structured_data={"label": "OpenAPI"},
        )
        assert record.structured_data == {"label": "OpenAPI"}
        assert record.name == "specops"
        assert record.levelno == logging.INFO

    def test_without_structured_data(self):
        record = StructuredLogRecord(
            name="specops",
            level=logging.INFO,
            pathname="test.py",
            lineno=10,
            msg="message",
            args=(),
            exc_info=None,
        )
        assert record.structured_data == {}


class TestStructuredFormatter:
    def test_format_with_structured_data(self):
        formatter = StructuredFormatter(fmt="%(levelname)s - %(message)s")
        record = make_record({"label": "Method: GET", "count": 3})

        assert formatter.format(record) == (
            'INFO - Created label | label="Method: GET" count=3'
        )

    def test_format_without_structured_data(self):
        formatter = StructuredFormatter(fmt="%(message)s")
        assert formatter.format(make_record()) == "Created label"

    def test_include_structured_false(self):
        formatter = StructuredFormatter(fmt="%(message)s", include_structured=False)
        assert formatter.format(make_record({"a": 1})) == "Created label"

    def test_default_format_has_logger_name(self):
        output = StructuredFormatter().format(make_record())
        assert " - specops.test - INFO - Created label" in output


class TestJSONFormatter:
    def test_structured_data_at_top_level(self):
        data = json.loads(JSONFormatter().format(make_record({"number": 42})))

        assert data["level"] == "INFO"
        assert data["logger"] == "specops.test"
        assert data["message"] == "Created label"
        assert data["number"] == 42
        datetime.fromisoformat(data["timestamp"])

    def test_exception_included(self):
        try:
            raise ValueError("bad json")
        except ValueError:
            record = make_record(exc_info=sys.exc_info())

        data = json.loads(JSONFormatter().format(record))
        assert "ValueError: bad json" in data["exception"]

    def test_unserialisable_values_fall_back_to_str(self):
        data = json.loads(JSONFormatter().format(make_record({"obj": object()})))
        assert data["obj"].startswith("<object object")


class TestFormatValue:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, "null"),
            ("OpenAPI", "OpenAPI"),
            ("Quality Check", '"Quality Check"'),
            (3, "3"),
            (0.5, "0.5"),
            ({"a": 1}, '{"a": 1}'),
            (["x", "y"], '["x", "y"]'),
            (("x",), '["x"]'),
            ("GET /v3/apps\r\nforged", '"GET /v3/apps\\r\\nforged"'),
            ("✓ Created", '"✓ Created"'),
        ],
    )
    def test_values(self, value, expected):
        assert _format_value(value) == expected


class TestLogContext:
    def test_context_sets_and_restores(self):
        assert _log_context.get() == {}
        with LogContext(repo="o/r"):
            assert _log_context.get() == {"repo": "o/r"}
        assert _log_context.get() == {}

    def test_nested_contexts_merge(self):
        with LogContext(repo="o/r", task="a"):
            with LogContext(task="b"):
                assert _log_context.get() == {"repo": "o/r", "task": "b"}
            assert _log_context.get() == {"repo": "o/r", "task": "a"}

    def test_exit_without_enter(self):
        LogContext(x=1).__exit__(None, None, None)
        assert _log_context.get() == {}

    @pytest.mark.asyncio
    async def test_isolated_between_asyncio_tasks(self):
        """Concurrent tasks each see only their own context."""
        seen: dict[str, dict] = {}

        async def worker(name: str) -> None:
            with LogContext(task=name):
                await asyncio.sleep(0.001)
                seen[name] = dict(_log_context.get())

        await asyncio.gather(worker("a"), worker("b"), worker("c"))

        assert seen == {n: {"task": n} for n in "abc"}


class TestStructuredLogger:
    @pytest.fixture
    def logger_and_stream(self):
        stream = io.StringIO()
        configure_logging(
            level=logging.DEBUG, stream=stream, force=True
        )
        yield get_logger("specops.tests.logger"), stream
        reset_logging()

    def test_get_logger_type(self, logger_and_stream):
        logger, _ = logger_and_stream
        assert isinstance(logger, StructuredLogger)

    def test_structured_kwargs(self, logger_and_stream):
        logger, stream = logger_and_stream
        logger.info("Created issue", number=7)
        assert "Created issue | number=7" in stream.getvalue()

    def test_emits_structured_records(self, logger_and_stream):
        logger, _ = logger_and_stream
        records: list[logging.LogRecord] = []
        handler = logging.Handler()
        handler.emit = records.append  # type: ignore[method-assign]
        logger.addHandler(handler)
        try:
            logger.info("Fetched labels", count=4, extra={"phase": "labels"})
        finally:
            logger.removeHandler(handler)

        assert isinstance(records[0], StructuredLogRecord)
        assert records[0].structured_data == {"count": 4}
        assert records[0].phase == "labels"

    def test_context_included_and_overridden(self, logger_and_stream):
        logger, stream = logger_and_stream
        with LogContext(task="GET /v3/apps - Path", number=1):
            logger.warning("Retrying", number=2)
        line = stream.getvalue().strip()
        assert 'task="GET /v3/apps - Path"' in line
        assert "number=2" in line
        assert "number=1" not in line

    def test_args_formatting(self, logger_and_stream):
        logger, stream = logger_and_stream
        logger.debug("%d labels", 5)
        assert "5 labels" in stream.getvalue()

    def test_exc_info(self, logger_and_stream):
        logger, stream = logger_and_stream
        try:
            raise RuntimeError("gh crashed")
        except RuntimeError:
            logger.error("Failed", exc_info=True)
        assert "RuntimeError: gh crashed" in stream.getvalue()


class TestConfigureLogging:
    def teardown_method(self):
        reset_logging()

    def test_idempotent_without_force(self):
        first, second = io.StringIO(), io.StringIO()
        configure_logging(stream=first, force=True)
        configure_logging(stream=second)

        get_logger("specops.tests.idem").info("hello")

        assert "hello" in first.getvalue()
        assert second.getvalue() == ""
        assert len(logging.getLogger(ROOT_LOGGER_NAME).handlers) == 1

    def test_json_mode(self):
        stream = io.StringIO()
        configure_logging(json_format=True, stream=stream, force=True)

        get_logger("specops.tests.json").info("Fetched", count=3)

        assert json.loads(stream.getvalue())["count"] == 3

    def test_level_filters(self):
        stream = io.StringIO()
        configure_logging(level="WARNING", stream=stream, force=True)

        logger = get_logger("specops.tests.level")
        logger.info("quiet")
        logger.warning("loud")

        assert "quiet" not in stream.getvalue()
        assert "loud" in stream.getvalue()

    def test_reset_removes_handlers(self):
        configure_logging(stream=io.StringIO(), force=True)
        reset_logging()
        assert logging.getLogger(ROOT_LOGGER_NAME).handlers == []


# =============================================================================
# Progress Tracking Tests
# =============================================================================


class TestPercentile:
    def test_empty(self):
        assert _percentile([], 95) == 0.0

    def test_single(self):
        assert _percentile([4.0], 95) == 4.0

    def test_interpolates(self):
        assert _percentile([1.0, 2.0, 3.0, 4.0], 50) == 2.5


class TestProgressSnapshot:
    def test_to_dict(self):
        snapshot = ProgressSnapshot(label="issues", total=5, completed=2)
        data = snapshot.to_dict()
        assert data["remaining"] == 3
        assert data["last_completion_time"] is None
        assert data["label"] == "issues"


class TestProgressTracker:
    def test_initial_state(self):
        snapshot = ProgressTracker(total=3).snapshot()
        assert (snapshot.completed, snapshot.succeeded, snapshot.failed) == (0, 0, 0)
        assert snapshot.avg_duration_ms == 0.0
        assert snapshot.remaining == 3

    def test_records_outcomes(self):
        tracker = ProgressTracker(total=4, label="issues")
        tracker.record(100.0, success=True)
        tracker.record(300.0, success=False, error_type="CommandError")
        tracker.record(200.0, success=False, error_type="CommandError")

        snapshot = tracker.snapshot()

        assert tracker.completed == 3
        assert snapshot.succeeded == 1
        assert snapshot.failed == 2
        assert snapshot.error_counts == {"CommandError": 2}
        assert snapshot.min_duration_ms == 100.0
        assert snapshot.max_duration_ms == 300.0
        assert snapshot.avg_duration_ms == 200.0
        assert snapshot.last_completion_time is not None

    def test_progress_line_every_n(self, log_stream):
        tracker = ProgressTracker(total=25, label="tasks", report_every=10)
        for _ in range(25):
            tracker.record(1.0, success=True)

        lines = [
            line for line in log_stream.getvalue().splitlines() if "Progress:" in line
        ]
        assert len(lines) == 2
        assert "Progress: 10/25 tasks completed" in lines[0]
        assert "Progress: 20/25 tasks completed" in lines[1]

    def test_progress_lines_disabled(self, log_stream):
        tracker = ProgressTracker(total=3, report_every=0)
        for _ in range(3):
            tracker.record(1.0, success=True)
        assert "Progress:" not in log_stream.getvalue()
