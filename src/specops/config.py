"""Configuration for specops commands.

Values come from three layers, later ones winning: code defaults, the
process environment (``SPECOPS_*``), then command-line flags. Validation
runs before any task is started; problems raise ``ConfigError``.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from specops.errors import ConfigError
from specops.executor import DEFAULT_BASE_DELAY_MS, DEFAULT_MAX_RETRIES, RetryPolicy

# =============================================================================
# Constants
# =============================================================================

#: Parallel gh workers. Kept low because GitHub throttles issue creation.
DEFAULT_WORKERS = 3

#: Pause after creating a label, in milliseconds.
DEFAULT_LABEL_DELAY_MS = 200

#: Pause after creating an issue, in milliseconds.
DEFAULT_ISSUE_DELAY_MS = 500

DEFAULT_ENDPOINTS_FILE = Path("endpoints.txt")

ENV_WORKERS = "SPECOPS_WORKERS"
ENV_RETRY_DELAY_MS = "SPECOPS_RETRY_DELAY_MS"
ENV_MAX_RETRIES = "SPECOPS_MAX_RETRIES"

REPO_PATTERN = re.compile(r"^[\w.-]+/[\w.-]+$")


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e


@dataclass
class SyncConfig:
    """Settings for the issue/label synchronisation run.

    Attributes:
        repo: Target repository, ``owner/repo``.
        endpoints_file: File of ``METHOD /path`` lines.
        workers: Maximum concurrent tasks.
        base_delay_ms: First retry delay after a rate limit.
        max_retries: Total attempts per gh call.
        verbose: Log every gh command.
        recolor: Assign new random colours to existing labels first.
        label_delay_ms: Pause after each created label.
        issue_delay_ms: Pause after each created issue.
    """

    repo: str
    endpoints_file: Path = field(default_factory=lambda: DEFAULT_ENDPOINTS_FILE)
    workers: int = DEFAULT_WORKERS
    base_delay_ms: int = int(DEFAULT_BASE_DELAY_MS)
    max_retries: int = DEFAULT_MAX_RETRIES
    verbose: bool = False
    recolor: bool = False
    label_delay_ms: int = DEFAULT_LABEL_DELAY_MS
    issue_delay_ms: int = DEFAULT_ISSUE_DELAY_MS

    @classmethod
    def from_sources(
        cls,
        repo: str,
        *,
        env: Mapping[str, str] | None = None,
        endpoints_file: Path | str | None = None,
        workers: int | None = None,
        base_delay_ms: int | None = None,
        max_retries: int | None = None,
        verbose: bool = False,
        recolor: bool = False,
    ) -> SyncConfig:
        """Merge defaults, environment and explicit values, then validate.

        Args:
            repo: ``owner/repo``.
            env: Environment mapping; defaults to ``os.environ``.
            endpoints_file: Overrides the default ``endpoints.txt``.
            workers: Overrides ``SPECOPS_WORKERS``.
            base_delay_ms: Overrides ``SPECOPS_RETRY_DELAY_MS``.
            max_retries: Overrides ``SPECOPS_MAX_RETRIES``.
            verbose: Log gh commands.
            recolor: Recolor existing labels.

        Raises:
            ConfigError: Any value is missing or invalid.
        """
        env = os.environ if env is None else env
        config = cls(
            repo=repo,
            endpoints_file=(
                Path(endpoints_file) if endpoints_file else DEFAULT_ENDPOINTS_FILE
            ),
            workers=(
                workers
                if workers is not None
                else _env_int(env, ENV_WORKERS, DEFAULT_WORKERS)
            ),
            base_delay_ms=(
                base_delay_ms
                if base_delay_ms is not None
                else _env_int(env, ENV_RETRY_DELAY_MS, int(DEFAULT_BASE_DELAY_MS))
            ),
            max_retries=(
                max_retries
                if max_retries is not None
                else _env_int(env, ENV_MAX_RETRIES, DEFAULT_MAX_RETRIES)
            ),
            verbose=verbose,
            recolor=recolor,
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Raise ``ConfigError`` on the first invalid setting."""
        if not self.repo or not REPO_PATTERN.match(self.repo):
            raise ConfigError(
                f"Repository must be in format 'owner/repo', got {self.repo!r}"
            )
        for name in ("workers", "base_delay_ms", "max_retries"):
            value = getattr(self, name)
            if value < 1:
                raise ConfigError(f"{name} must be a positive integer, got {value}")
        for name in ("label_delay_ms", "issue_delay_ms"):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must not be negative")
        if not self.endpoints_file.is_file():
            raise ConfigError(f"Endpoints file not found: {self.endpoints_file}")

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(max_retries=self.max_retries, base_delay_ms=self.base_delay_ms)


@dataclass(frozen=True)
class ProjectPaths:
    """Well-known locations inside the specification repository."""

    root: Path = field(default_factory=Path.cwd)

    @property
    def apis_dir(self) -> Path:
        return self.root / "apis" / "cf"

    @property
    def latest_dir(self) -> Path:
        return self.apis_dir / "latest"

    @property
    def dist_dir(self) -> Path:
        return self.root / "dist"

    @property
    def redocly_config(self) -> Path:
        return self.root / "redocly.yaml"

    @property
    def out_dir(self) -> Path:
        return self.root / "out"

    @property
    def reports_dir(self) -> Path:
        return self.out_dir / "reports"
