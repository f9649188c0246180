"""Progress tracking for bulk task runs.

Counts completed tasks as they settle and logs a progress line every
``report_every`` completions, plus timing figures for the final report:
- Completed/succeeded/failed counters (monotonically increasing)
- Failure counts by error type
- Min, max, average and p95 task durations

Not thread-safe. All updates happen on the single asyncio event loop that
runs the batch, where task bodies only interleave at ``await`` points.

Example:
    tracker = ProgressTracker(total=len(tasks), label="issues")

    tracker.record(duration_ms=820.0, success=True)
    tracker.record(duration_ms=15.0, success=False, error_type="CommandError")

    print(tracker.snapshot().to_dict())
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from specops.observability.logging import get_logger

logger = get_logger(__name__)

#: Completions between two progress log lines.
DEFAULT_REPORT_EVERY: int = 10


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _percentile(sorted_data: list[float], percentile: float) -> float:
    """Linear-interpolated percentile of pre-sorted data.

    Args:
        sorted_data: Ascending values.
        percentile: 0-100.

    Returns:
        Interpolated value, 0.0 for empty input.

    Example:
        >>> _percentile([1.0, 2.0, 3.0, 4.0], 50)
        2.5
    """
    if not sorted_data:
        return 0.0
    if len(sorted_data) == 1:
        return sorted_data[0]

    k = (len(sorted_data) - 1) * (percentile / 100)
    lower = int(k)
    upper = min(lower + 1, len(sorted_data) - 1)
    weight = k - lower
    return sorted_data[lower] * (1 - weight) + sorted_data[upper] * weight


@dataclass
class ProgressSnapshot:
    """Point-in-time view of a ``ProgressTracker``.

    Attributes:
        label: What is being counted, e.g. ``"issues"``.
        total: Tasks in the batch.
        completed: Tasks settled so far.
        succeeded: Completed tasks that reported success.
        failed: Completed tasks that did not.
        min_duration_ms: Fastest task.
        max_duration_ms: Slowest task.
        avg_duration_ms: Mean task duration.
        p95_duration_ms: 95th percentile task duration.
        error_counts: Failures by error type.
        last_completion_time: UTC time of the latest completion.
        elapsed_seconds: Time since the tracker was created.
    """

    label: str
    total: int
    completed: int = 0
    succeeded: int = 0
    failed: int = 0
    min_duration_ms: float = 0.0
    max_duration_ms: float = 0.0
    avg_duration_ms: float = 0.0
    p95_duration_ms: float = 0.0
    error_counts: dict[str, int] = field(default_factory=dict)
    last_completion_time: datetime | None = None
    elapsed_seconds: float = 0.0

    @property
    def remaining(self) -> int:
        return max(self.total - self.completed, 0)

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly dict of every field plus ``remaining``."""
        return {
            "label": self.label,
            "total": self.total,
            "completed": self.completed,
            "remaining": self.remaining,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "min_duration_ms": self.min_duration_ms,
            "max_duration_ms": self.max_duration_ms,
            "avg_duration_ms": self.avg_duration_ms,
            "p95_duration_ms": self.p95_duration_ms,
            "error_counts": self.error_counts.copy(),
            "last_completion_time": (
                self.last_completion_time.isoformat()
                if self.last_completion_time
                else None
            ),
            "elapsed_seconds": self.elapsed_seconds,
        }


class ProgressTracker:
    """Counts settled tasks of one batch and logs periodic progress."""

    def __init__(
        self,
        total: int,
        label: str = "tasks",
        report_every: int = DEFAULT_REPORT_EVERY,
    ) -> None:
        """Create a tracker for a batch of ``total`` tasks.

        Args:
            total: Number of tasks submitted.
            label: Noun used in progress lines.
            report_every: Log a progress line every N completions. Values
                below 1 disable progress lines.
        """
        self.total = total
        self.label = label
        self._report_every = report_every
        self._durations: list[float] = []
        self._error_counts: dict[str, int] = {}
        self._completed = 0
        self._succeeded = 0
        self._start_time = time.monotonic()
        self._last_completion_time: datetime | None = None

    @property
    def completed(self) -> int:
        return self._completed

    def record(
        self,
        duration_ms: float,
        success: bool,
        error_type: str | None = None,
    ) -> None:
        """Record one settled task.

        Args:
            duration_ms: Wall time the task took.
            success: Whether the task reported success.
            error_type: Failure category, usually the exception class name.
        """
        self._completed += 1
        self._durations.append(duration_ms)
        if success:
            self._succeeded += 1
        elif error_type:
            self._error_counts[error_type] = self._error_counts.get(error_type, 0) + 1
        self._last_completion_time = _utc_now()

        if self._report_every > 0 and self._completed % self._report_every == 0:
            logger.info(
                f"Progress: {self._completed}/{self.total} {self.label} completed",
                completed=self._completed,
                total=self.total,
            )

    def snapshot(self) -> ProgressSnapshot:
        """Compute counters and duration statistics as of now."""
        durations = sorted(self._durations)
        if durations:
            min_dur = durations[0]
            max_dur = durations[-1]
            avg_dur = sum(durations) / len(durations)
            p95_dur = _percentile(durations, 95)
        else:
            min_dur = max_dur = avg_dur = p95_dur = 0.0

        return ProgressSnapshot(
            label=self.label,
            total=self.total,
            completed=self._completed,
            succeeded=self._succeeded,
            failed=self._completed - self._succeeded,
            min_duration_ms=min_dur,
            max_duration_ms=max_dur,
            avg_duration_ms=avg_dur,
            p95_duration_ms=p95_dur,
            error_counts=self._error_counts.copy(),
            last_completion_time=self._last_completion_time,
            elapsed_seconds=time.monotonic() - self._start_time,
        )
