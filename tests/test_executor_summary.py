"""Tests for batch result aggregation."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from specops.executor import (
    BatchSummary,
    Fulfilled,
    Rejected,
    reports_success,
    summarize,
)


@dataclass
class Report:
    success: bool


class TestReportsSuccess:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ({"success": True}, True),
            ({"success": False}, False),
            ({"created": True}, False),
            (Report(success=True), True),
            (Report(success=False), False),
            (None, False),
            ("ok", False),
        ],
    )
    def test_success_flag(self, value: object, expected: bool) -> None:
        assert reports_success(value) is expected


class TestSummarize:
    def test_mixed_batch(self) -> None:
        """One success, one logical failure, one rejection."""
        summary = summarize(
            [
                Fulfilled({"success": True}),
                Fulfilled({"success": False}),
                Rejected(RuntimeError("boom")),
            ]
        )

        assert summary.total == 3
        assert summary.successful == 1
        assert summary.logically_failed == 1
        assert summary.rejected == 1
        assert summary.failed == 2
        assert summary.success_rate == 33.3
        assert summary.format_rate() == "33.3%"

    def test_empty_batch(self) -> None:
        summary = summarize([])
        assert summary == BatchSummary(0, 0, 0, 0)
        assert summary.success_rate == 0.0
        assert summary.format_rate() == "0.0%"

    def test_all_successful(self) -> None:
        summary = summarize([Fulfilled(Report(True)) for _ in range(4)])
        assert summary.failed == 0
        assert summary.success_rate == 100.0

    def test_fulfilled_without_flag_counts_as_failed(self) -> None:
        summary = summarize([Fulfilled(None), Fulfilled({"success": True})])
        assert summary.successful == 1
        assert summary.logically_failed == 1

    def test_rate_rounding(self) -> None:
        outcomes = [Fulfilled({"success": True})] * 2 + [Rejected(ValueError())]
        assert summarize(outcomes).success_rate == 66.7

    def test_to_dict(self) -> None:
        summary = summarize([Fulfilled({"success": True}), Rejected(KeyError())])
        assert summary.to_dict() == {
            "total": 2,
            "successful": 1,
            "failed": 1,
            "logically_failed": 0,
            "rejected": 1,
            "success_rate": 50.0,
        }
