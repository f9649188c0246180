"""Observability module for specops.

Structured logging plus progress tracking for bulk task runs.

Example:
    from specops.observability import LogContext, ProgressTracker, get_logger

    logger = get_logger(__name__)
    tracker = ProgressTracker(total=110, label="issues")

    with LogContext(task="GET /v3/apps - Path"):
        logger.info("Created issue", labels=["OpenAPI", "Quality Check"])
        tracker.record(duration_ms=640.0, success=True)
"""

from specops.observability.logging import (
    LogContext,
    StructuredLogger,
    configure_logging,
    get_logger,
    reset_logging,
)
from specops.observability.progress import (
    ProgressSnapshot,
    ProgressTracker,
)

__all__ = [
    # Logging
    "LogContext",
    "StructuredLogger",
    "configure_logging",
    "get_logger",
    "reset_logging",
    # Progress
    "ProgressSnapshot",
    "ProgressTracker",
]
