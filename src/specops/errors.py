"""Exception hierarchy shared across specops.

Failures of external calls are classified once, where the command result
is received, into either a ``RetryableError`` (safe to repeat after a
backoff) or left as the original fatal error. The retry runner consults
``is_retryable`` and never inspects message text itself.
"""

from __future__ import annotations


class SpecOpsError(Exception):
    """Base class for errors raised by specops."""


class ConfigError(SpecOpsError):
    """Missing or invalid configuration, detected before any task runs."""


class RetryableError(SpecOpsError):
    """Transient failure; the operation may be repeated after a delay.

    Attributes:
        cause: The error observed at the boundary (usually a
            ``CommandError``), kept for diagnostics and final reporting.
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class RateLimitedError(RetryableError):
    """The remote API signalled rate limiting or throttling."""


class TimedOutError(RetryableError):
    """An external call exceeded its time limit and was stopped."""


def is_retryable(error: BaseException) -> bool:
    """Default retry classifier: only ``RetryableError`` instances retry.

    Example:
        >>> is_retryable(RateLimitedError("slow down"))
        True
        >>> is_retryable(ValueError("bad argument"))
        False
    """
    return isinstance(error, RetryableError)
