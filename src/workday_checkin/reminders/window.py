"""Reminder window evaluation and next wake-up computation.

Both functions are pure: settings, the current entry and the notified
ledger are passed in, nothing is read from storage.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import AbstractSet

from workday_checkin.models import DayType, Half, ReminderKind, WorkEntry
from workday_checkin.reminders.settings import ReminderSettings


class ReminderDecision(Enum):
    FIRE_MORNING = "fire_morning"
    FIRE_EVENING = "fire_evening"
    FIRE_FALLBACK = "fire_fallback"
    NONE = "none"

    @property
    def kind(self) -> ReminderKind | None:
        if self is ReminderDecision.NONE:
            return None
        return ReminderKind[self.name.removeprefix("FIRE_")]

    @property
    def half(self) -> Half | None:
        kind = self.kind
        return kind.half if kind is not None else None

    @classmethod
    def fire(cls, kind: ReminderKind | Half) -> "ReminderDecision":
        return cls[f"FIRE_{kind.name}"]


def is_non_working_day(day: date, settings: ReminderSettings, entry: WorkEntry | None) -> bool:
    """
    Whether reminders are suppressed for ``day``.

    An existing entry decides on its own: a WORK entry is always a working
    day, even on a weekend or holiday, and an OFF entry is a day off when
    ``skip_off_days`` is set. Without an entry the weekend and holiday rules
    apply.
    """
    if entry is not None:
        return settings.skip_off_days and entry.day_type is DayType.OFF
    return settings.is_auto_off(day)


def _day_incomplete(entry: WorkEntry | None) -> bool:
    if entry is None:
        return True
    return not (entry.morning.attempted and entry.evening.attempted)


def evaluate_window(
    now: datetime,
    settings: ReminderSettings,
    todays_entry: WorkEntry | None,
    notified: AbstractSet[ReminderKind] = frozenset(),
) -> ReminderDecision:
    """
    Decide whether a reminder should fire at ``now``.

    A half is a candidate when its window is enabled, contains the local time
    of ``now`` and today's entry has no check-in for it. The first candidate
    (morning before evening) not yet in ``notified`` wins. When no window
    reminder is due, the fallback fires once from ``fallback_time`` until
    midnight if either half is still missing.

    Args:
        now: Current local datetime.
        settings: Current reminder settings.
        todays_entry: Entry for ``now.date()``, or None.
        notified: Reminders already delivered today.

    Returns:
        FIRE_MORNING, FIRE_EVENING, FIRE_FALLBACK or NONE.
    """
    if is_non_working_day(now.date(), settings, todays_entry):
        return ReminderDecision.NONE

    moment = now.time()
    for half in Half:
        window = settings.window_for(half)
        if not window.enabled or not window.contains(moment):
            continue
        if todays_entry is not None and todays_entry.half(half).attempted:
            continue
        if ReminderKind.for_half(half) in notified:
            continue
        return ReminderDecision.fire(half)

    if (
        settings.fallback_enabled
        and moment >= settings.fallback_time
        and ReminderKind.FALLBACK not in notified
        and _day_incomplete(todays_entry)
    ):
        return ReminderDecision.FIRE_FALLBACK

    return ReminderDecision.NONE


def _delay_for_span(
    now: datetime,
    start: time,
    end: time | None,
    interval: timedelta,
    immediate: bool,
) -> timedelta:
    """Delay for a daily span ``[start, end)``; ``end=None`` runs to midnight."""
    start_at = datetime.combine(now.date(), start, tzinfo=now.tzinfo)
    if end is None:
        end_at = datetime.combine(now.date() + timedelta(days=1), time(0), tzinfo=now.tzinfo)
    else:
        end_at = datetime.combine(now.date(), end, tzinfo=now.tzinfo)
    if now < start_at:
        return start_at - now
    if now < end_at:
        return timedelta(0) if immediate else interval
    return start_at + timedelta(days=1) - now


def next_wakeup_delay(
    now: datetime,
    settings: ReminderSettings,
    interval: timedelta | None = None,
    immediate: bool = False,
) -> timedelta | None:
    """Time until the scheduler should next evaluate, or None if nothing is enabled.

    Inside a window, or past the fallback time, the delay is ``interval``
    (or zero when ``immediate``); otherwise it is the time until the next
    window start or fallback time.
    """
    if interval is None:
        interval = timedelta(minutes=settings.check_interval_minutes)

    delays = [
        _delay_for_span(now, window.start, window.end, interval, immediate)
        for window in (settings.window_for(half) for half in Half)
        if window.enabled
    ]
    if settings.fallback_enabled:
        delays.append(_delay_for_span(now, settings.fallback_time, None, interval, immediate))
    if not delays:
        return None
    return min(delays)
