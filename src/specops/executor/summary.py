"""Reduce a batch of task outcomes to success/failure counts.

A task only counts as successful when it completed without raising *and*
its value reports success. A task that completed but returned
``{"success": False}`` (or an object whose ``success`` is false) counts
as failed, exactly like a rejected task.

Example:
    summary = summarize(outcomes)
    logger.info("Done", **summary.to_dict())
    if summary.failed:
        return 1
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from specops.executor.bounded import Fulfilled, Rejected, TaskOutcome


def reports_success(value: Any) -> bool:
    """Whether a fulfilled value signals success.

    Mappings are read via their ``"success"`` key, other objects via a
    ``success`` attribute. Values carrying neither count as failures.

    Example:
        >>> reports_success({"success": True})
        True
        >>> reports_success(None)
        False
    """
    if isinstance(value, Mapping):
        return bool(value.get("success", False))
    return bool(getattr(value, "success", False))


@dataclass(frozen=True)
class BatchSummary:
    """Counts for one settled batch.

    Attributes:
        total: Outcomes in the batch.
        successful: Fulfilled and reporting success.
        logically_failed: Fulfilled but reporting failure.
        rejected: Raised an error.
    """

    total: int
    successful: int
    logically_failed: int
    rejected: int

    @property
    def failed(self) -> int:
        return self.logically_failed + self.rejected

    @property
    def success_rate(self) -> float:
        """Percentage of successful tasks, one decimal place."""
        if self.total == 0:
            return 0.0
        return round(self.successful / self.total * 100, 1)

    def format_rate(self) -> str:
        return f"{self.success_rate:.1f}%"

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "logically_failed": self.logically_failed,
            "rejected": self.rejected,
            "success_rate": self.success_rate,
        }


def summarize(outcomes: Sequence[TaskOutcome]) -> BatchSummary:
    """Classify ``outcomes`` into a ``BatchSummary``.

    Example:
        >>> summarize([Fulfilled({"success": True}),
        ...            Fulfilled({"success": False}),
        ...            Rejected(RuntimeError("boom"))]).format_rate()
        '33.3%'
    """
    successful = logically_failed = rejected = 0
    for outcome in outcomes:
        if isinstance(outcome, Rejected):
            rejected += 1
        elif isinstance(outcome, Fulfilled) and reports_success(outcome.value):
            successful += 1
        else:
            logically_failed += 1

    return BatchSummary(
        total=len(outcomes),
        successful=successful,
        logically_failed=logically_failed,
        rejected=rejected,
    )
