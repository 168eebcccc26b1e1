"""Tests for reminder window evaluation and wake-up delay computation."""

from __future__ import annotations

from dataclasses import replace
from datetime import time, timedelta

import pytest

from conftest import DAY, at

from workday_checkin.models import CheckInSnapshot, DayType, Half, ReminderKind, WorkEntry
from workday_checkin.reminders.window import (
    ReminderDecision,
    evaluate_window,
    is_non_working_day,
    next_wakeup_delay,
)


def _entry(**kwargs) -> WorkEntry:
    return replace(WorkEntry(date=DAY, created_at=at(0), updated_at=at(0)), **kwargs)


def _checked_in(hour: int) -> CheckInSnapshot:
    return CheckInSnapshot(captured_at=at(hour))


class TestEvaluateWindow:
    def test_fires_in_morning_window_without_entry(self, reminder_settings) -> None:
        assert evaluate_window(at(7), reminder_settings, None) is ReminderDecision.FIRE_MORNING

    def test_fires_in_evening_window(self, reminder_settings) -> None:
        entry = _entry(morning=_checked_in(7))
        assert evaluate_window(at(17), reminder_settings, entry) is ReminderDecision.FIRE_EVENING

    def test_window_start_is_inclusive(self, reminder_settings) -> None:
        assert evaluate_window(at(6), reminder_settings, None) is ReminderDecision.FIRE_MORNING

    def test_window_end_is_exclusive(self, reminder_settings) -> None:
        assert evaluate_window(at(9), reminder_settings, None) is ReminderDecision.NONE

    def test_outside_windows(self, reminder_settings) -> None:
        assert evaluate_window(at(12), reminder_settings, None) is ReminderDecision.NONE
        assert evaluate_window(at(23), reminder_settings, None) is ReminderDecision.NONE

    def test_no_fire_after_check_in(self, reminder_settings) -> None:
        entry = _entry(morning=_checked_in(6))
        assert evaluate_window(at(7), reminder_settings, entry) is ReminderDecision.NONE

    def test_disabled_window_never_fires(self, reminder_settings) -> None:
        settings = reminder_settings.with_window(Half.MORNING, enabled=False)
        assert evaluate_window(at(7), settings, None) is ReminderDecision.NONE

    def test_already_notified_half_is_skipped(self, reminder_settings) -> None:
        decision = evaluate_window(at(7), reminder_settings, None, frozenset({ReminderKind.MORNING}))
        assert decision is ReminderDecision.NONE

    def test_overlapping_windows_prefer_morning(self, reminder_settings) -> None:
        settings = reminder_settings.with_window(Half.EVENING, start=time(8, 0))
        assert evaluate_window(at(8, 30), settings, None) is ReminderDecision.FIRE_MORNING

    def test_overlap_falls_through_to_unnotified_half(self, reminder_settings) -> None:
        settings = reminder_settings.with_window(Half.EVENING, start=time(8, 0))
        decision = evaluate_window(at(8, 30), settings, None, {ReminderKind.MORNING})
        assert decision is ReminderDecision.FIRE_EVENING

    def test_off_day_fires_by_default(self, reminder_settings) -> None:
        entry = _entry(day_type=DayType.OFF)
        assert evaluate_window(at(7), reminder_settings, entry) is ReminderDecision.FIRE_MORNING

    def test_off_day_suppressed_when_configured(self, reminder_settings) -> None:
        settings = reminder_settings.updated(skip_off_days=True)
        entry = _entry(day_type=DayType.OFF)
        assert evaluate_window(at(7), settings, entry) is ReminderDecision.NONE
        assert evaluate_window(at(7), settings, _entry()) is ReminderDecision.FIRE_MORNING

    def test_decision_half(self) -> None:
        assert ReminderDecision.FIRE_MORNING.half is Half.MORNING
        assert ReminderDecision.FIRE_EVENING.half is Half.EVENING
        assert ReminderDecision.NONE.half is None
        assert ReminderDecision.FIRE_FALLBACK.half is None

    def test_decision_kind(self) -> None:
        assert ReminderDecision.FIRE_FALLBACK.kind is ReminderKind.FALLBACK
        assert ReminderDecision.fire(Half.EVENING) is ReminderDecision.FIRE_EVENING
        assert ReminderDecision.NONE.kind is None


class TestNextWakeupDelay:
    @pytest.mark.parametrize(
        "now, expected",
        [
            (at(5), timedelta(hours=1)),
            (at(9), timedelta(hours=7)),
            (at(12, 30), timedelta(hours=3, minutes=30)),
            (at(20), timedelta(hours=10)),
            (at(23, 30), timedelta(hours=6, minutes=30)),
        ],
    )
    def test_delay_outside_windows(self, reminder_settings, now, expected) -> None:
        assert next_wakeup_delay(now, reminder_settings) == expected

    def test_inside_window_uses_interval(self, reminder_settings) -> None:
        assert next_wakeup_delay(at(7), reminder_settings) == timedelta(minutes=30)

    def test_inside_window_immediate(self, reminder_settings) -> None:
        assert next_wakeup_delay(at(7), reminder_settings, immediate=True) == timedelta(0)

    def test_explicit_interval(self, reminder_settings) -> None:
        delay = next_wakeup_delay(at(17), reminder_settings, timedelta(minutes=20))
        assert delay == timedelta(minutes=20)

    def test_interval_never_overshoots_next_window(self, reminder_settings) -> None:
        # 05:50 -> morning starts in 10 minutes regardless of interval
        assert next_wakeup_delay(at(5, 50), reminder_settings) == timedelta(minutes=10)

    def test_only_enabled_windows_count(self, reminder_settings) -> None:
        settings = reminder_settings.with_window(Half.MORNING, enabled=False)
        assert next_wakeup_delay(at(5), settings) == timedelta(hours=11)

    def test_no_enabled_window(self, reminder_settings) -> None:
        settings = reminder_settings.with_window(Half.MORNING, enabled=False).with_window(
            Half.EVENING, enabled=False
        )
        assert next_wakeup_delay(at(7), settings) is None


SATURDAY = DAY + timedelta(days=4)
HOLIDAY = DAY + timedelta(days=1)


class TestFallback:
    @pytest.fixture
    def settings(self, reminder_settings):
        return reminder_settings.updated(fallback_enabled=True, fallback_time=time(22, 30))

    def test_fires_after_fallback_time_without_entry(self, settings) -> None:
        assert evaluate_window(at(22, 30), settings, None) is ReminderDecision.FIRE_FALLBACK
        assert evaluate_window(at(23, 59), settings, None) is ReminderDecision.FIRE_FALLBACK

    def test_not_before_fallback_time(self, settings) -> None:
        assert evaluate_window(at(22, 29), settings, None) is ReminderDecision.NONE

    def test_fires_while_one_half_is_missing(self, settings) -> None:
        entry = _entry(morning=_checked_in(7))
        assert evaluate_window(at(23), settings, entry) is ReminderDecision.FIRE_FALLBACK

    def test_complete_day_needs_no_fallback(self, settings) -> None:
        entry = _entry(morning=_checked_in(7), evening=_checked_in(17))
        assert evaluate_window(at(23), settings, entry) is ReminderDecision.NONE

    def test_fallback_fires_once(self, settings) -> None:
        decision = evaluate_window(at(23), settings, None, {ReminderKind.FALLBACK})
        assert decision is ReminderDecision.NONE

    def test_disabled_by_default(self, reminder_settings) -> None:
        assert evaluate_window(at(23), reminder_settings, None) is ReminderDecision.NONE

    def test_open_window_takes_precedence(self, settings) -> None:
        late = settings.with_window(Half.EVENING, end=time(23, 30))
        assert evaluate_window(at(23), late, None) is ReminderDecision.FIRE_EVENING
        decision = evaluate_window(at(23), late, None, {ReminderKind.EVENING})
        assert decision is ReminderDecision.FIRE_FALLBACK

    def test_wakeup_delay_includes_fallback(self, settings) -> None:
        # 20:00 -> fallback at 22:30 comes before tomorrow's morning window
        assert next_wakeup_delay(at(20), settings) == timedelta(hours=2, minutes=30)
        assert next_wakeup_delay(at(22, 45), settings) == timedelta(minutes=30)
        assert next_wakeup_delay(at(22, 45), settings, immediate=True) == timedelta(0)

    def test_fallback_alone_keeps_scheduler_armed(self, settings) -> None:
        only_fallback = settings.with_window(Half.MORNING, enabled=False).with_window(
            Half.EVENING, enabled=False
        )
        assert next_wakeup_delay(at(12), only_fallback) == timedelta(hours=10, minutes=30)


class TestNonWorkingDays:
    def test_weekend_without_entry_is_off(self, reminder_settings) -> None:
        settings = reminder_settings.updated(auto_off_weekends=True)
        assert is_non_working_day(SATURDAY, settings, None)
        assert evaluate_window(at(7, day=SATURDAY), settings, None) is ReminderDecision.NONE

    def test_weekend_counts_as_workday_when_rule_disabled(self, reminder_settings) -> None:
        decision = evaluate_window(at(7, day=SATURDAY), reminder_settings, None)
        assert decision is ReminderDecision.FIRE_MORNING

    def test_work_entry_overrides_weekend_rule(self, reminder_settings) -> None:
        settings = reminder_settings.updated(auto_off_weekends=True)
        entry = replace(_entry(), date=SATURDAY)
        assert not is_non_working_day(SATURDAY, settings, entry)
        assert evaluate_window(at(7, day=SATURDAY), settings, entry) is ReminderDecision.FIRE_MORNING

    def test_listed_holiday_is_off(self, reminder_settings) -> None:
        settings = reminder_settings.updated(auto_off_holidays=True, holiday_dates={HOLIDAY})
        assert evaluate_window(at(7, day=HOLIDAY), settings, None) is ReminderDecision.NONE
        assert evaluate_window(at(7), settings, None) is ReminderDecision.FIRE_MORNING

    def test_holiday_list_ignored_when_rule_disabled(self, reminder_settings) -> None:
        settings = reminder_settings.updated(holiday_dates={HOLIDAY})
        assert not is_non_working_day(HOLIDAY, settings, None)

    def test_off_day_suppresses_fallback(self, reminder_settings) -> None:
        settings = reminder_settings.updated(
            fallback_enabled=True, auto_off_weekends=True
        )
        assert evaluate_window(at(23, day=SATURDAY), settings, None) is ReminderDecision.NONE
