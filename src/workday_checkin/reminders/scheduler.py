"""Reminder scheduler: keeps exactly one wake-up timer armed.

The scheduler is re-armed on boot, after a clock or timezone change, after a
settings change and after every wake-up. Each re-arm cancels the previous
timer first, so at most one wake-up is ever pending.

Timer registration goes through APScheduler's ``AsyncIOScheduler`` using a
single fixed job id.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Awaitable, Callable, Protocol

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from workday_checkin.errors import SchedulingFailure
from workday_checkin.logging import format_log_context
from workday_checkin.models import ReminderKind
from workday_checkin.reminders.settings import ReminderSettings
from workday_checkin.reminders.window import (
    ReminderDecision,
    evaluate_window,
    next_wakeup_delay,
)
from workday_checkin.storage.reminder_flags import ReminderFlagStore
from workday_checkin.storage.settings_store import ReminderSettingsStore
from workday_checkin.storage.work_entries import WorkEntryStore

logger = logging.getLogger(__name__)

WAKEUP_JOB_ID = "reminder_window_check"

# Global scheduler instance
_scheduler: AsyncIOScheduler | None = None


class SchedulerState(Enum):
    UNARMED = "unarmed"
    ARMED = "armed"
    DEGRADED = "degraded"


class NotificationSink(Protocol):
    async def notify(self, kind: ReminderKind, day: date) -> None: ...


class LoggingNotificationSink:
    """Notification sink for headless runs: reminders go to the log."""

    async def notify(self, kind: ReminderKind, day: date) -> None:
        ctx = format_log_context("system", component="notify", date=day, kind=kind.value)
        logger.info(f"{ctx} check-in reminder")


class WakeupTimer(Protocol):
    """Host timer facility holding at most one pending wake-up."""

    def schedule(self, delay: timedelta, callback: Callable[[], Awaitable[None]]) -> None: ...

    def cancel(self) -> None: ...

    @property
    def active(self) -> bool: ...


class APSchedulerTimer:
    """WakeupTimer backed by a one-shot APScheduler job with a fixed id."""

    def __init__(self, scheduler: AsyncIOScheduler, job_id: str = WAKEUP_JOB_ID) -> None:
        self.scheduler = scheduler
        self.job_id = job_id

    def schedule(self, delay: timedelta, callback: Callable[[], Awaitable[None]]) -> None:
        """Replace any pending wake-up with one firing after ``delay``.

        Raises:
            SchedulingFailure: If APScheduler refuses the job.
        """
        self.cancel()
        run_date = datetime.now(timezone.utc) + delay
        try:
            self.scheduler.add_job(
                callback,
                DateTrigger(run_date=run_date),
                id=self.job_id,
                replace_existing=True,
                misfire_grace_time=None,
                coalesce=True,
            )
        except Exception as e:
            raise SchedulingFailure(f"Could not register wake-up: {e}") from e

    def cancel(self) -> None:
        try:
            self.scheduler.remove_job(self.job_id)
        except JobLookupError:
            pass

    @property
    def active(self) -> bool:
        return self.scheduler.get_job(self.job_id) is not None


def _local_now() -> datetime:
    return datetime.now().astimezone()


def _still_enabled(settings: ReminderSettings, kind: ReminderKind) -> bool:
    if kind.half is None:
        return settings.fallback_enabled
    return settings.window_for(kind.half).enabled


class ReminderScheduler:
    """
    Decides when to remind and keeps the next wake-up armed.

    Args:
        settings_store: Owner of the current ReminderSettings.
        work_entries: Store used to read today's entry at wake-up.
        flags: Persisted ledger of reminders already delivered per day.
        sink: Where reminders are delivered.
        timer: Host timer facility.
        clock: Returns the current local datetime.
        max_attempts: Timer registration attempts before going DEGRADED.
        backoff_seconds: Base delay between attempts, doubled each retry.
        sleep: Awaitable sleep used between attempts.
    """

    def __init__(
        self,
        settings_store: ReminderSettingsStore,
        work_entries: WorkEntryStore,
        flags: ReminderFlagStore,
        sink: NotificationSink,
        timer: WakeupTimer,
        *,
        clock: Callable[[], datetime] | None = None,
        max_attempts: int = 5,
        backoff_seconds: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings_store = settings_store
        self.work_entries = work_entries
        self.flags = flags
        self.sink = sink
        self.timer = timer
        self.clock = clock or _local_now
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

        self._arm_lock = asyncio.Lock()
        self._wake_lock = asyncio.Lock()
        self._state = SchedulerState.UNARMED
        self._next_wakeup: datetime | None = None
        self.last_error: Exception | None = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def degraded(self) -> bool:
        return self._state is SchedulerState.DEGRADED

    @property
    def next_wakeup(self) -> datetime | None:
        return self._next_wakeup

    def notified_today(self, day: date) -> frozenset[ReminderKind]:
        return self.flags.notified_on(day)

    # ========================================================================
    # Arming
    # ========================================================================

    async def arm(self, reason: str) -> SchedulerState:
        """
        Cancel any pending wake-up and install the next one.

        Outside a wake-up (boot, clock change, settings change) a time inside
        an open window is evaluated immediately rather than after the interval.
        Registration failures are retried with exponential backoff; when all
        attempts fail the scheduler goes DEGRADED instead of raising.
        """
        async with self._arm_lock:
            self.timer.cancel()
            immediate = reason != "wakeup"

            for attempt in range(1, self.max_attempts + 1):
                settings = self.settings_store.load()
                now = self.clock()
                delay = next_wakeup_delay(now, settings, immediate=immediate)

                if delay is None:
                    self._state = SchedulerState.UNARMED
                    self._next_wakeup = None
                    self.last_error = None
                    ctx = format_log_context("system", component="scheduler", reason=reason)
                    logger.info(f"{ctx} no reminder enabled, unarmed")
                    return self._state

                try:
                    self.timer.schedule(delay, self._on_timer)
                except SchedulingFailure as e:
                    self.last_error = e
                    ctx = format_log_context(
                        "system", component="scheduler", reason=reason, attempt=attempt
                    )
                    logger.warning(f"{ctx} timer registration failed: {e}")
                    if attempt < self.max_attempts:
                        await self._sleep(self.backoff_seconds * 2 ** (attempt - 1))
                    continue

                self._state = SchedulerState.ARMED
                self._next_wakeup = now + delay
                self.last_error = None
                ctx = format_log_context("system", component="scheduler", reason=reason)
                logger.debug(f"{ctx} armed next={self._next_wakeup.isoformat()}")
                return self._state

            self._state = SchedulerState.DEGRADED
            self._next_wakeup = None
            ctx = format_log_context("system", component="scheduler", reason=reason)
            logger.error(
                f"{ctx} degraded after {self.max_attempts} attempts: {self.last_error}"
            )
            return self._state

    async def disarm(self) -> None:
        async with self._arm_lock:
            self.timer.cancel()
            self._state = SchedulerState.UNARMED
            self._next_wakeup = None

    async def on_boot(self) -> SchedulerState:
        return await self.arm("boot")

    async def on_clock_changed(self) -> SchedulerState:
        return await self.arm("clock_changed")

    async def update_settings(self, new: ReminderSettings) -> SchedulerState:
        """Persist new settings, then re-arm against them."""
        self.settings_store.save(new)
        return await self.arm("settings_changed")

    # ========================================================================
    # Wake-up
    # ========================================================================

    async def wake_up(self, now: datetime | None = None) -> ReminderDecision:
        """Evaluate the windows and deliver at most one reminder."""
        async with self._wake_lock:
            now = now or self.clock()
            today = now.date()

            # Flags from previous days are never read again
            self.flags.prune_before(today)
            notified = self.flags.notified_on(today)

            settings = self.settings_store.load()
            entry = self.work_entries.get_by_date(today)
            decision = evaluate_window(now, settings, entry, notified)
            kind = decision.kind
            if kind is None:
                return ReminderDecision.NONE

            # Settings may have changed while the entry was read
            if not _still_enabled(self.settings_store.load(), kind):
                return ReminderDecision.NONE

            ctx = format_log_context(
                "system", component="scheduler", date=today, kind=kind.value
            )
            try:
                await self.sink.notify(kind, today)
            except Exception as e:
                logger.error(f"{ctx} notification failed: {e}")
                return ReminderDecision.NONE

            self.flags.mark_notified(today, kind, now)
            logger.info(f"{ctx} reminder sent")
            return decision

    async def _on_timer(self) -> None:
        try:
            await self.wake_up()
        except Exception as e:
            ctx = format_log_context("system", component="scheduler")
            logger.error(f"{ctx} wake-up failed: {e}", exc_info=True)
        if self._state is not SchedulerState.UNARMED:
            await self.arm("wakeup")


# ============================================================================
# Scheduler lifecycle
# ============================================================================


async def start_scheduler() -> AsyncIOScheduler:
    """Start the process-wide AsyncIOScheduler (must run inside the event loop)."""
    global _scheduler

    if _scheduler is not None and _scheduler.running:
        logger.warning("Scheduler already running")
        return _scheduler

    _scheduler = AsyncIOScheduler()
    _scheduler.start()
    ctx = format_log_context("system", component="scheduler")
    logger.info(f"{ctx} started")
    return _scheduler


async def stop_scheduler() -> None:
    global _scheduler

    if _scheduler is None or not _scheduler.running:
        return

    _scheduler.shutdown(wait=False)
    _scheduler = None
    ctx = format_log_context("system", component="scheduler")
    logger.info(f"{ctx} stopped")


def get_scheduler() -> AsyncIOScheduler | None:
    """Get the global scheduler instance."""
    return _scheduler
