"""Retry with exponential backoff for transient failures.

``with_retry`` repeats an async operation while its failures are
classified as retryable, sleeping ``base_delay_ms * 2**(attempt-1)``
between attempts. ``max_retries`` bounds the total number of attempts.

Classification is a pure predicate supplied by the ``RetryPolicy``. The
default, ``specops.errors.is_retryable``, retries only ``RetryableError``
instances; errors from external commands are converted into that type at
the point where the command result is received.

Example:
    policy = RetryPolicy(max_retries=5, base_delay_ms=1000)
    labels = await with_retry(lambda: client.list_labels(), policy,
                              description="Fetch labels")
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from specops.errors import is_retryable
from specops.observability import get_logger

logger = get_logger(__name__)

R = TypeVar("R")

#: Total attempts allowed per operation by default.
DEFAULT_MAX_RETRIES: int = 10

#: Delay before the first retry. Doubles after every further failure.
DEFAULT_BASE_DELAY_MS: float = 10_000

Sleeper = Callable[[float], Awaitable[object]]


@dataclass(frozen=True)
class RetryPolicy:
    """Immutable retry configuration.

    Attributes:
        max_retries: Total attempts allowed, >= 1.
        base_delay_ms: Wait before the first retry, > 0.
        is_retryable: Pure predicate deciding whether an error may be retried.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay_ms: float = DEFAULT_BASE_DELAY_MS
    is_retryable: Callable[[BaseException], bool] = field(
        default=is_retryable, compare=False
    )

    def __post_init__(self) -> None:
        if isinstance(self.max_retries, bool) or not isinstance(self.max_retries, int):
            raise ValueError(f"max_retries must be an integer, got {self.max_retries!r}")
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}")
        if self.base_delay_ms <= 0:
            raise ValueError(f"base_delay_ms must be > 0, got {self.base_delay_ms}")

    def delay_ms(self, attempt: int) -> float:
        """Backoff after failed ``attempt`` (1-based).

        Example:
            >>> RetryPolicy(base_delay_ms=100).delay_ms(3)
            400
        """
        return self.base_delay_ms * 2 ** (attempt - 1)


async def with_retry(
    operation: Callable[[], Awaitable[R]],
    policy: RetryPolicy,
    *,
    description: str = "Operation",
    sleep: Sleeper = asyncio.sleep,
) -> R:
    """Await ``operation()`` until it succeeds or retrying stops.

    Args:
        operation: Zero-argument factory returning a fresh awaitable per
            attempt. Repeating it must be safe; no deduplication happens here.
        policy: Attempt limit, backoff base and classifier.
        description: Human-readable name used in log records.
        sleep: Awaitable sleep taking seconds. Injected by tests.

    Returns:
        The first successful result.

    Raises:
        Exception: The last error, unchanged, when it is not retryable or
            ``policy.max_retries`` attempts have been made.
    """
    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as error:
            if not policy.is_retryable(error):
                raise
            if attempt >= policy.max_retries:
                logger.error(
                    f"{description}: giving up after {attempt} attempts",
                    attempt=attempt,
                    max_retries=policy.max_retries,
                )
                raise

            delay_ms = policy.delay_ms(attempt)
            logger.warning(
                f"{description}: rate limited, retrying in {delay_ms:.0f}ms",
                attempt=attempt,
                max_retries=policy.max_retries,
                delay_ms=delay_ms,
            )
            await sleep(delay_ms / 1000)
            attempt += 1
