"""Countdown that auto-submits when the assessment window closes."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime
from enum import Enum
import logging
import math

from smarteval.constants.assessment_constants import (
    TIMER_TICK_INTERVAL_SECONDS,
    TIMER_WARNING_MARKS_SECONDS,
)
from smarteval.utils.datetime_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)


class TimerState(str, Enum):
    RUNNING = "RUNNING"
    EXPIRED = "EXPIRED"
    STOPPED = "STOPPED"


class CountdownTimer:
    """RUNNING until the deadline passes (EXPIRED) or it is stopped (STOPPED).

    Both terminal states are final. ``on_expire`` is awaited exactly once, on
    the tick that observes no remaining time. ``on_warning`` receives each
    warning mark at most once, on the tick where the remaining time drops
    to or below it.
    """

    def __init__(
        self,
        end_time: datetime,
        on_expire: Callable[[], Awaitable[None]],
        on_warning: Callable[[int], None] | None = None,
        warning_marks: Iterable[int] = TIMER_WARNING_MARKS_SECONDS,
        tick_interval: float = TIMER_TICK_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._end_time = ensure_utc(end_time)
        self._on_expire = on_expire
        self._on_warning = on_warning
        self._tick_interval = tick_interval
        self._clock = clock
        self._state = TimerState.RUNNING
        self._task: asyncio.Task[None] | None = None
        self._pending_marks = sorted(set(warning_marks), reverse=True)
        self._last_remaining = self.remaining_seconds()
        # Marks already behind us when the session opens are never announced.
        self._pending_marks = [mark for mark in self._pending_marks if mark <= self._last_remaining]

    @property
    def state(self) -> TimerState:
        return self._state

    def remaining_seconds(self) -> int:
        remaining = (self._end_time - ensure_utc(self._clock())).total_seconds()
        return max(0, math.floor(remaining))

    async def tick(self) -> int:
        """Re-evaluate the deadline against a fresh clock reading."""
        if self._state is not TimerState.RUNNING:
            return 0
        remaining = self.remaining_seconds()
        self._fire_warnings(remaining)
        self._last_remaining = remaining
        if remaining <= 0:
            self._state = TimerState.EXPIRED
            logger.info("Countdown expired; auto-submitting")
            await self._on_expire()
        return remaining

    def stop(self) -> bool:
        """Stop a running timer. Returns False when it already reached a terminal state."""
        if self._state is not TimerState.RUNNING:
            return False
        self._state = TimerState.STOPPED
        self._cancel_task()
        return True

    def start(self) -> None:
        if self._task is None and self._state is TimerState.RUNNING:
            self._task = asyncio.get_running_loop().create_task(self.run(), name="CountdownTimer")

    async def run(self) -> None:
        while self._state is TimerState.RUNNING:
            await self.tick()
            if self._state is TimerState.RUNNING:
                await asyncio.sleep(self._tick_interval)

    async def wait(self) -> None:
        """Block until the background countdown has finished."""
        if self._task is not None and self._task is not asyncio.current_task():
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def __aenter__(self) -> "CountdownTimer":
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        # An expired timer may still be inside on_expire; let that submit finish.
        self.stop()
        task, self._task = self._task, None
        if task is None or task is asyncio.current_task():
            return
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    def _fire_warnings(self, remaining: int) -> None:
        while self._pending_marks and remaining <= self._pending_marks[0]:
            mark = self._pending_marks.pop(0)
            if remaining <= 0:
                continue
            logger.info("%s seconds remaining", mark)
            if self._on_warning is not None:
                self._on_warning(mark)

    def _cancel_task(self) -> None:
        if self._task is not None and self._task is not asyncio.current_task() and not self._task.done():
            self._task.cancel()
