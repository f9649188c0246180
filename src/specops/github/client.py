"""GitHub operations via the ``gh`` CLI.

Every call is an argument list run through ``run_command`` (no shell).
Failures are classified once, here: a ``CommandError`` whose output looks
like rate limiting becomes ``RateLimitedError`` and an attempt that outlives
its time limit becomes ``TimedOutError``. Both are retried with exponential
backoff; anything else propagates unchanged.

Issue bodies are written to a temporary file and passed with
``--body-file`` so multi-line markdown never travels on the command line.

Example:
    client = GitHubCLI("cloudfoundry/capi-openapi-spec", RetryPolicy())
    await client.check_available()
    labels = await client.list_labels()
    issue = await client.find_issue("<!-- ID: GET /v3/apps-path -->")
"""

from __future__ import annotations

import json
import tempfile
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from specops.errors import RateLimitedError, TimedOutError
from specops.executor import RetryPolicy, with_retry
from specops.observability import get_logger
from specops.process import (
    CommandError,
    CommandResult,
    CommandTimeoutError,
    ProcessRegistry,
    run_command,
)

logger = get_logger(__name__)

#: Upper bound for ``gh label list``; the CLI defaults to 30.
MAX_LABEL_LIMIT = 1000

#: Seconds one gh attempt may run before it is stopped and retried.
DEFAULT_TIMEOUT_S = 120.0

# Compatibility shim for the gh CLI's error text. The wording is not a
# stable contract; keep this list narrow and only used by is_rate_limited().
RATE_LIMIT_PATTERNS: tuple[str, ...] = (
    "was submitted too quickly",
    "rate limit",
    "api rate limit",
    "secondary rate limit",
)

Runner = Callable[..., Awaitable[CommandResult]]


def is_rate_limited(error: CommandError) -> bool:
    """Whether a failed ``gh`` call reported rate limiting.

    Example:
        >>> err = CommandError(CommandResult("gh issue create", 1,
        ...     stderr="was submitted too quickly"))
        >>> is_rate_limited(err)
        True
    """
    output = f"{error.stderr}\n{error.stdout}".lower()
    return any(pattern in output for pattern in RATE_LIMIT_PATTERNS)


@dataclass(frozen=True)
class IssueRef:
    """The fields of an existing issue that synchronisation reads.

    Attributes:
        number: Issue number.
        state: ``OPEN`` or ``CLOSED``.
        labels: Names of the labels currently applied.
    """

    number: int
    state: str
    labels: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_open(self) -> bool:
        return self.state.upper() == "OPEN"

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> IssueRef:
        return cls(
            number=int(data["number"]),
            state=str(data.get("state", "")),
            labels=tuple(label["name"] for label in data.get("labels", [])),
        )


class GitHubCLI:
    """Repository-scoped wrapper around ``gh`` with rate-limit retry."""

    def __init__(
        self,
        repo: str,
        policy: RetryPolicy,
        registry: ProcessRegistry | None = None,
        runner: Runner = run_command,
        timeout: float | None = DEFAULT_TIMEOUT_S,
    ) -> None:
        """Create a client for ``repo``.

        Args:
            repo: ``owner/repo``.
            policy: Retry policy applied to every call.
            registry: Tracks spawned ``gh`` processes.
            runner: Command runner; tests pass a fake.
            timeout: Seconds per gh attempt; None disables the limit.
        """
        self.repo = repo
        self.policy = policy
        self.registry = registry
        self.timeout = timeout
        self._runner = runner

    async def _call(self, argv: list[str]) -> CommandResult:
        return await self._runner(argv, registry=self.registry, timeout=self.timeout)

    async def _run_once(self, argv: list[str]) -> CommandResult:
        try:
            return await self._call(argv)
        except CommandTimeoutError as e:
            raise TimedOutError(str(e), cause=e) from e
        except CommandError as e:
            if is_rate_limited(e):
                raise RateLimitedError(str(e), cause=e) from e
            raise

    async def _gh(self, *args: str, description: str) -> CommandResult:
        argv = ["gh", *args, "--repo", self.repo]
        logger.debug("gh call", command=" ".join(argv))
        return await with_retry(
            lambda: self._run_once(argv), self.policy, description=description
        )

    async def _gh_with_body(
        self, *args: str, body: str, description: str
    ) -> CommandResult:
        with tempfile.NamedTemporaryFile(
            mode="w", prefix="issue-body-", suffix=".md", delete=False, encoding="utf-8"
        ) as f:
            f.write(body)
            body_file = f.name
        try:
            return await self._gh(*args, "--body-file", body_file, description=description)
        finally:
            Path(body_file).unlink(missing_ok=True)

    # ------------------------------------------------------------------
    # Prerequisites
    # ------------------------------------------------------------------

    async def check_available(self) -> str:
        """Return the ``gh --version`` banner; raises if gh is missing."""
        result = await self._call(["gh", "--version"])
        return result.stdout.strip().split("\n")[0]

    async def verify_repository(self) -> None:
        """Raise ``CommandError`` when the repository is not accessible."""
        await self._call(["gh", "repo", "view", self.repo, "--json", "name"])

    # ------------------------------------------------------------------
    # Labels
    # ------------------------------------------------------------------

    async def list_labels(self) -> list[str]:
        result = await self._gh(
            "label",
            "list",
            "--json",
            "name",
            "--limit",
            str(MAX_LABEL_LIMIT),
            description="Fetch labels",
        )
        text = result.stdout.strip()
        if not text:
            return []
        return [label["name"] for label in json.loads(text)]

    async def create_label(
        self, name: str, color: str, description: str = "Auto-generated label"
    ) -> bool:
        """Create a label.

        Returns:
            True if created, False if it already existed.
        """
        try:
            await self._gh(
                "label",
                "create",
                name,
                "--color",
                color,
                "--description",
                description,
                description=f"Create label '{name}'",
            )
        except CommandError as e:
            if "already exists" in f"{e.stderr}{e.stdout}".lower():
                return False
            raise
        return True

    async def recolor_label(self, name: str, color: str) -> None:
        await self._gh(
            "label", "edit", name, "--color", color,
            description=f"Recolor label '{name}'",
        )

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    async def find_issue(self, marker: str) -> IssueRef | None:
        """First issue whose body contains ``marker``, open or closed.

        GitHub's ``in:body`` search is fuzzy and can return issues of
        neighbouring endpoints, so hits are filtered on the exact marker.
        """
        result = await self._gh(
            "issue",
            "list",
            "--state",
            "all",
            "--search",
            f"in:body '{marker}'",
            "--json",
            "number,state,labels,body",
            description="Search issue",
        )
        text = result.stdout.strip()
        for issue in json.loads(text) if text else []:
            if marker in (issue.get("body") or ""):
                return IssueRef.from_json(issue)
        return None

    async def create_issue(self, title: str, body: str, labels: Sequence[str]) -> str:
        """Create an issue and return the URL printed by gh."""
        result = await self._gh_with_body(
            "issue",
            "create",
            "--title",
            title,
            "--label",
            ",".join(labels),
            body=body,
            description="Create issue",
        )
        return result.stdout.strip()

    async def edit_issue(self, number: int, title: str, body: str) -> None:
        await self._gh_with_body(
            "issue",
            "edit",
            str(number),
            "--title",
            title,
            body=body,
            description=f"Edit issue #{number}",
        )

    async def add_labels(self, number: int, labels: Sequence[str]) -> None:
        if not labels:
            return
        await self._gh(
            "issue", "edit", str(number), "--add-label", ",".join(labels),
            description=f"Add labels to #{number}",
        )

    async def remove_labels(self, number: int, labels: Sequence[str]) -> None:
        if not labels:
            return
        await self._gh(
            "issue", "edit", str(number), "--remove-label", ",".join(labels),
            description=f"Remove labels from #{number}",
        )
