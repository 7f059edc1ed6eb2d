"""
Cancellable backoff for long-poll loops.

Usage:
    schedule = BackoffSchedule.from_config(config)
    async for attempt in backoff_attempts(schedule, deadline=deadline, cancel=event):
        status = await check()
        if status.done:
            break

The iterator yields immediately for the first attempt and sleeps between
attempts. It raises PublishTimeoutError when the deadline passes and
PublishCancelledError when the cancel event is set, including while asleep.
Running out of attempts simply ends the iteration; the caller decides what
that means.

bounded() applies the same deadline and cancel event to a single awaitable,
such as one status request.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from shopforge.core.errors import PublishCancelledError, PublishError, PublishTimeoutError

from .config import ProviderConfig

Sleep = Callable[[float], Awaitable[None]]
T = TypeVar("T")


@dataclass(frozen=True)
class BackoffSchedule:
    """Short fixed interval for the first attempts, then a longer one."""

    max_attempts: int = 30
    fast_attempts: int = 5
    fast_interval: float = 5.0
    slow_interval: float = 10.0

    @classmethod
    def from_config(cls, config: ProviderConfig) -> BackoffSchedule:
        return cls(
            max_attempts=config.poll_max_attempts,
            fast_attempts=config.poll_fast_attempts,
            fast_interval=config.poll_fast_interval,
            slow_interval=config.poll_slow_interval,
        )

    def delay_after(self, attempt: int) -> float:
        """Proposed wait after the given 1-based attempt."""
        return self.fast_interval if attempt <= self.fast_attempts else self.slow_interval

    @property
    def max_total_wait(self) -> float:
        return sum(self.delay_after(n) for n in range(1, self.max_attempts))


class Deadline:
    """An absolute point in time on a monotonic clock."""

    def __init__(self, seconds: float | None, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._expires_at = None if seconds is None else clock() + seconds

    @classmethod
    def never(cls) -> Deadline:
        return cls(None)

    def remaining(self) -> float | None:
        """Seconds left, or None for an unbounded deadline."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self, stage: str | None = None) -> None:
        """Raise PublishTimeoutError when the deadline has passed."""
        if self.expired:
            raise PublishTimeoutError("publish deadline expired", stage=stage)

    def clamp(self, seconds: float) -> float:
        remaining = self.remaining()
        return seconds if remaining is None else min(seconds, remaining)


@dataclass
class Attempt:
    """
    One iteration of a backoff loop.

    ``delay`` is the proposed wait before the next attempt. The loop body may
    overwrite it (for example from a Retry-After header).
    """

    number: int
    delay: float
    is_last: bool


async def _cancellable_wait(delay: float, cancel: asyncio.Event | None) -> None:
    if cancel is None:
        await asyncio.sleep(delay)
        return
    try:
        await asyncio.wait_for(cancel.wait(), timeout=delay)
    except TimeoutError:
        return


def _check(deadline: Deadline | None, cancel: asyncio.Event | None, stage: str | None) -> None:
    if cancel is not None and cancel.is_set():
        raise PublishCancelledError("publish was cancelled", stage=stage)
    if deadline is not None:
        deadline.check(stage)


async def bounded(
    awaitable: Awaitable[T],
    *,
    deadline: Deadline | None = None,
    cancel: asyncio.Event | None = None,
    stage: str | None = None,
) -> T:
    """
    Await ``awaitable`` but give up when the deadline passes or ``cancel`` is set.

    The abandoned operation is cancelled before the error is raised.

    Raises:
        PublishTimeoutError: the deadline passed first
        PublishCancelledError: ``cancel`` was set first
    """
    try:
        _check(deadline, cancel, stage)
    except PublishError:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise
    task = asyncio.ensure_future(awaitable)
    waiters: set[asyncio.Future[Any]] = {task}
    cancel_waiter = None
    if cancel is not None:
        cancel_waiter = asyncio.ensure_future(cancel.wait())
        waiters.add(cancel_waiter)

    try:
        done, _ = await asyncio.wait(
            waiters,
            timeout=deadline.remaining() if deadline is not None else None,
            return_when=asyncio.FIRST_COMPLETED,
        )
    finally:
        if cancel_waiter is not None:
            cancel_waiter.cancel()
        if not task.done():
            task.cancel()

    if task not in done:
        with contextlib.suppress(asyncio.CancelledError):
            await task
    elif cancel is None or not cancel.is_set():
        return task.result()

    if cancel is not None and cancel.is_set():
        raise PublishCancelledError("publish was cancelled", stage=stage)
    raise PublishTimeoutError("publish deadline expired", stage=stage)


async def backoff_attempts(
    schedule: BackoffSchedule,
    *,
    deadline: Deadline | None = None,
    cancel: asyncio.Event | None = None,
    sleep: Sleep | None = None,
    stage: str | None = None,
) -> AsyncIterator[Attempt]:
    """
    Yield up to ``schedule.max_attempts`` attempts with waits in between.

    Args:
        schedule: Attempt count and intervals
        deadline: Overall deadline; waits are clamped to what remains
        cancel: Event that aborts the loop when set
        sleep: Replacement for the wait (tests); cancellation is then only
            observed between attempts
        stage: Pipeline stage recorded on raised errors
    """
    for number in range(1, schedule.max_attempts + 1):
        _check(deadline, cancel, stage)
        attempt = Attempt(
            number=number,
            delay=schedule.delay_after(number),
            is_last=number == schedule.max_attempts,
        )
        yield attempt
        if attempt.is_last:
            return

        delay = max(0.0, attempt.delay)
        if deadline is not None:
            delay = deadline.clamp(delay)
        if sleep is not None:
            await sleep(delay)
        else:
            await _cancellable_wait(delay, cancel)
