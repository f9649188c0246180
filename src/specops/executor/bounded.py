"""Bounded concurrent task executor with settle-all semantics.

``run_bounded`` drives a list of independent work items through an async
processing function while keeping at most ``concurrency`` invocations in
flight. Admission uses a sliding window: as soon as one in-flight task
settles, exactly one more is admitted, so the window stays saturated at
``min(concurrency, remaining)``.

Every task runs to completion. A failure is recorded as that task's
``Rejected`` outcome and never cancels siblings. The returned list is in
submission order regardless of completion order.

Example:
    async def bundle(version: str) -> CommandResult:
        return await run_command(["redocly", "bundle", ...])

    outcomes = await run_bounded(["3.195.0", "latest"], bundle, concurrency=3)
    for version, outcome in zip(versions, outcomes):
        if isinstance(outcome, Rejected):
            print(version, outcome.error)
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from specops.observability import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


# =============================================================================
# Outcomes
# =============================================================================


@dataclass(frozen=True)
class Fulfilled(Generic[R]):
    """Task completed and produced ``value``."""

    value: R

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Rejected:
    """Task raised ``error``."""

    error: BaseException

    @property
    def ok(self) -> bool:
        return False


#: Settled result of one task.
TaskOutcome = Fulfilled[Any] | Rejected

#: One outcome per input task, in input order.
BatchResult = list[TaskOutcome]


def _settle(handle: asyncio.Task[Any]) -> TaskOutcome:
    """Convert a finished asyncio task into an outcome."""
    if handle.cancelled():
        return Rejected(asyncio.CancelledError())
    error = handle.exception()
    if error is not None:
        return Rejected(error)
    return Fulfilled(handle.result())


# =============================================================================
# Executor
# =============================================================================


async def run_bounded(
    tasks: Sequence[T],
    process: Callable[[T], Awaitable[R]],
    concurrency: int,
) -> BatchResult:
    """Run ``process`` over ``tasks`` with at most ``concurrency`` in flight.

    Args:
        tasks: Work items, consumed in order. May be empty.
        process: Async callable invoked exactly once per item. It must
            settle on its own; no timeout is imposed here.
        concurrency: Window size, >= 1. ``1`` runs strictly sequentially;
            a value >= ``len(tasks)`` dispatches everything at once.

    Returns:
        One ``Fulfilled``/``Rejected`` per item, index-aligned with ``tasks``.

    Raises:
        ValueError: If ``concurrency`` < 1.
        asyncio.CancelledError: If the caller is cancelled. In-flight tasks
            are cancelled before it propagates.

    Example:
        >>> async def double(x: int) -> int:
        ...     return x * 2
        >>> asyncio.run(run_bounded([1, 2, 3], double, concurrency=2))
        [Fulfilled(value=2), Fulfilled(value=4), Fulfilled(value=6)]
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be >= 1, got {concurrency}")

    total = len(tasks)
    if total == 0:
        return []

    async def invoke(item: T) -> R:
        # Awaiting inside a coroutine turns a synchronous raise from
        # ``process`` into a rejection of this task only.
        return await process(item)

    outcomes: list[TaskOutcome | None] = [None] * total
    in_flight: dict[asyncio.Task[R], int] = {}
    next_index = 0

    def admit() -> None:
        nonlocal next_index
        handle = asyncio.ensure_future(invoke(tasks[next_index]))
        in_flight[handle] = next_index
        next_index += 1

    logger.debug("Starting bounded batch", total=total, concurrency=concurrency)

    try:
        while next_index < total and len(in_flight) < concurrency:
            admit()

        while in_flight:
            done, _ = await asyncio.wait(
                in_flight.keys(), return_when=asyncio.FIRST_COMPLETED
            )
            for handle in done:
                index = in_flight.pop(handle)
                outcomes[index] = _settle(handle)
                if next_index < total:
                    admit()
    except asyncio.CancelledError:
        for handle in in_flight:
            handle.cancel()
        raise

    return [outcome for outcome in outcomes if outcome is not None]
