"""Detect wall-clock jumps and timezone changes.

The detector compares elapsed wall-clock time against elapsed monotonic time
between two checks, and the local UTC offset against the last one seen.
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta
from typing import Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from workday_checkin.logging import format_log_context

CLOCK_JOB_ID = "clock_change_check"

CLOCK_JUMP = "clock_jump"
TIMEZONE_CHANGED = "timezone_changed"


def _local_utc_offset() -> timedelta | None:
    # The TZ database may have changed under a long-running process
    if hasattr(time, "tzset"):
        time.tzset()
    return datetime.now().astimezone().utcoffset()


class ClockChangeDetector:
    """Calls ``on_change`` when the wall clock or the local timezone moves."""

    def __init__(
        self,
        on_change: Callable[[], Awaitable[object]],
        *,
        threshold_seconds: float = 120.0,
        wall_clock: Callable[[], float] = time.time,
        monotonic: Callable[[], float] = time.monotonic,
        offset_provider: Callable[[], timedelta | None] = _local_utc_offset,
    ) -> None:
        self.on_change = on_change
        self.threshold_seconds = threshold_seconds
        self._wall_clock = wall_clock
        self._monotonic = monotonic
        self._offset_provider = offset_provider
        self._rebase()

    def _rebase(self) -> None:
        self._last_wall = self._wall_clock()
        self._last_mono = self._monotonic()
        self._last_offset = self._offset_provider()

    def detect(self) -> str | None:
        """Return the kind of change since the last call, or None."""
        wall = self._wall_clock()
        mono = self._monotonic()
        offset = self._offset_provider()

        drift = (wall - self._last_wall) - (mono - self._last_mono)
        offset_changed = offset != self._last_offset

        self._last_wall = wall
        self._last_mono = mono
        self._last_offset = offset

        if offset_changed:
            return TIMEZONE_CHANGED
        if abs(drift) > self.threshold_seconds:
            return CLOCK_JUMP
        return None

    async def check(self) -> str | None:
        change = self.detect()
        if change is None:
            return None

        logger.info(format_log_context(change, component="clock", reason=change))
        try:
            await self.on_change()
        except Exception as e:
            logger.error(
                format_log_context("clock_change_handler_failed", component="clock") + f" {e}"
            )
        return change

    def start(self, scheduler: AsyncIOScheduler, interval_seconds: float = 60) -> None:
        """Run :meth:`check` as an interval job on ``scheduler``."""
        self._rebase()
        scheduler.add_job(
            self.check,
            IntervalTrigger(seconds=interval_seconds),
            id=CLOCK_JOB_ID,
            replace_existing=True,
            coalesce=True,
        )
