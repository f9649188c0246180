"""Bounded concurrent task execution with rate-limit-aware retry.

Example:
    from specops.executor import RetryPolicy, run_bounded, summarize, with_retry

    policy = RetryPolicy(max_retries=10, base_delay_ms=10_000)

    async def process(task):
        return await with_retry(lambda: do_remote_call(task), policy)

    outcomes = await run_bounded(tasks, process, concurrency=3)
    print(summarize(outcomes).format_rate())
"""

from specops.executor.bounded import (
    BatchResult,
    Fulfilled,
    Rejected,
    TaskOutcome,
    run_bounded,
)
from specops.executor.retry import (
    DEFAULT_BASE_DELAY_MS,
    DEFAULT_MAX_RETRIES,
    RetryPolicy,
    with_retry,
)
from specops.executor.summary import BatchSummary, reports_success, summarize

__all__ = [
    # Dispatch
    "BatchResult",
    "Fulfilled",
    "Rejected",
    "TaskOutcome",
    "run_bounded",
    # Retry
    "DEFAULT_BASE_DELAY_MS",
    "DEFAULT_MAX_RETRIES",
    "RetryPolicy",
    "with_retry",
    # Aggregation
    "BatchSummary",
    "reports_success",
    "summarize",
]
