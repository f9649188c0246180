"""Bulk synchronisation of audit issues and labels.

Phases, each run through the bounded executor with ``config.workers``
tasks in flight:

1. Prerequisites: gh is installed and the repository is reachable.
2. Optional recolouring of existing labels.
3. Every label the audit tasks need is created if missing.
4. One task per endpoint/aspect: update the open issue carrying the
   task's marker, skip it if closed, or create it.

A failing task never stops the batch. The final ``BatchSummary`` decides
the exit status; side effects already made (labels, issues) stay.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal

from specops.config import SyncConfig
from specops.errors import SpecOpsError
from specops.executor import BatchSummary, Rejected, run_bounded, summarize
from specops.github.audit import (
    AuditTask,
    build_tasks,
    diff_labels,
    parse_endpoints,
    random_label_color,
)
from specops.github.client import GitHubCLI
from specops.observability import LogContext, ProgressTracker, get_logger
from specops.process import CommandError

logger = get_logger(__name__)

Action = Literal["created", "updated", "skipped", "failed"]


class SyncError(SpecOpsError):
    """A prerequisite for synchronisation is not met."""


@dataclass(frozen=True)
class TaskReport:
    """Outcome of one audit task as reported by the task itself.

    Attributes:
        name: ``METHOD /path - Aspect``.
        success: False when any gh call for the task failed.
        action: What happened to the issue.
        error: Failure message when ``success`` is False.
    """

    name: str
    success: bool
    action: Action
    error: str | None = None


class IssueSynchronizer:
    """Create or update one issue per audit task in a repository."""

    def __init__(
        self,
        config: SyncConfig,
        client: GitHubCLI,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self.client = client
        self._sleep = sleep
        self._existing_labels: set[str] = set()

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def check_prerequisites(self) -> None:
        """Raise ``SyncError`` if gh is unusable or the repo is inaccessible."""
        try:
            version = await self.client.check_available()
        except CommandError as e:
            raise SyncError(
                "GitHub CLI (gh) is not installed or not in PATH. "
                "Install it from https://cli.github.com/"
            ) from e
        logger.info("GitHub CLI ready", version=version)

        try:
            await self.client.verify_repository()
        except CommandError as e:
            raise SyncError(
                f"Cannot access repository {self.config.repo}. Check that it "
                "exists and you have access to it."
            ) from e

    async def fetch_existing_labels(self) -> set[str]:
        """Load existing label names; failure is logged and treated as none."""
        try:
            labels = await self.client.list_labels()
        except Exception as e:
            logger.error("Failed to fetch labels", repo=self.config.repo, error=str(e))
            labels = []
        self._existing_labels = set(labels)
        logger.info("Fetched existing labels", count=len(self._existing_labels))
        return self._existing_labels

    async def recolor_labels(self) -> BatchSummary:
        """Give every existing label a new random colour."""

        async def recolor(label: str) -> dict[str, bool]:
            try:
                await self.client.recolor_label(label, random_label_color())
            except Exception as e:
                logger.error("Failed to recolor label", label=label, error=str(e))
                return {"success": False}
            logger.info("Recolored label", label=label)
            await self._pause(self.config.label_delay_ms)
            return {"success": True}

        outcomes = await run_bounded(
            sorted(self._existing_labels), recolor, self.config.workers
        )
        return summarize(outcomes)

    async def ensure_labels(self, labels: list[str]) -> int:
        """Create every label in ``labels`` that does not exist yet.

        Returns:
            Number of label operations that failed.
        """

        async def ensure(label: str) -> None:
            if label in self._existing_labels:
                return
            created = await self.client.create_label(label, random_label_color())
            self._existing_labels.add(label)
            if created:
                logger.info("Created label", label=label)
                await self._pause(self.config.label_delay_ms)

        outcomes = await run_bounded(labels, ensure, self.config.workers)
        failures = 0
        for label, outcome in zip(labels, outcomes, strict=True):
            if isinstance(outcome, Rejected):
                failures += 1
                logger.error(
                    "Failed to create label", label=label, error=str(outcome.error)
                )
        if failures:
            logger.warning(f"{failures} label operations failed", failed=failures)
        return failures

    async def sync_issue(self, task: AuditTask) -> TaskReport:
        """Create, update or skip the issue for ``task``."""
        issue = await self.client.find_issue(task.marker)

        if issue is None:
            await self.client.create_issue(task.title, task.body, task.labels)
            logger.info("✓ Created issue", task=task.name)
            await self._pause(self.config.issue_delay_ms)
            return TaskReport(name=task.name, success=True, action="created")

        if not issue.is_open:
            logger.info("⊝ Skipping closed issue", task=task.name, number=issue.number)
            return TaskReport(name=task.name, success=True, action="skipped")

        await self.client.edit_issue(issue.number, task.title, task.body)
        to_add, to_remove = diff_labels(issue.labels, task.labels)
        await self.client.add_labels(issue.number, to_add)
        await self.client.remove_labels(issue.number, to_remove)
        logger.info(
            "✓ Updated issue",
            task=task.name,
            number=issue.number,
            added=to_add,
            removed=to_remove,
        )
        return TaskReport(name=task.name, success=True, action="updated")

    async def process_tasks(self, tasks: list[AuditTask]) -> BatchSummary:
        """Run ``sync_issue`` over all tasks and summarise the results."""
        tracker = ProgressTracker(total=len(tasks), label="tasks")

        async def process(task: AuditTask) -> TaskReport:
            started = time.monotonic()
            error_type = None
            with LogContext(task=task.name):
                try:
                    report = await self.sync_issue(task)
                except Exception as e:
                    error_type = type(e).__name__
                    logger.error("✗ Failed to process issue", error=str(e))
                    report = TaskReport(
                        name=task.name, success=False, action="failed", error=str(e)
                    )
            tracker.record(
                duration_ms=(time.monotonic() - started) * 1000,
                success=report.success,
                error_type=error_type,
            )
            return report

        logger.info(
            f"Processing {len(tasks)} issue tasks with {self.config.workers} workers"
        )
        outcomes = await run_bounded(tasks, process, self.config.workers)
        logger.info("Task timings", **tracker.snapshot().to_dict())
        return summarize(outcomes)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self) -> BatchSummary:
        """Run every phase and log the summary.

        Raises:
            SyncError: Prerequisites failed; nothing was changed.
        """
        config = self.config
        logger.info("Starting issue management", repo=config.repo)
        logger.info(
            "Rate limiting",
            workers=config.workers,
            base_delay_ms=config.base_delay_ms,
            max_retries=config.max_retries,
        )

        await self.check_prerequisites()

        endpoints = parse_endpoints(config.endpoints_file.read_text(encoding="utf-8"))
        labels, tasks = build_tasks(endpoints)
        logger.info(f"Found {len(tasks)} tasks to process", endpoints=len(endpoints))

        await self.fetch_existing_labels()

        if config.recolor:
            logger.info("Recoloring existing labels")
            await self.recolor_labels()

        logger.info("Ensuring all required labels exist", count=len(labels))
        await self.ensure_labels(labels)

        summary = await self.process_tasks(tasks)
        log_summary(summary)
        return summary

    async def _pause(self, delay_ms: int) -> None:
        if delay_ms > 0:
            await self._sleep(delay_ms / 1000)


def log_summary(summary: BatchSummary) -> None:
    logger.info("=== Summary ===")
    logger.info(f"Total tasks: {summary.total}")
    logger.info(f"Successfully processed: {summary.successful}")
    logger.info(f"Errors: {summary.failed}")
    logger.info(f"Success rate: {summary.format_rate()}")
    if summary.failed:
        logger.warning(
            f"{summary.failed} tasks failed. Check the error messages above.",
            **summary.to_dict(),
        )
    else:
        logger.info("✓ All tasks completed successfully!")
