"""Tests for ReminderSettings validation and its SQLite store."""

from __future__ import annotations

import threading
from datetime import date, time

import pytest
from pydantic import ValidationError

from workday_checkin.models import Half
from workday_checkin.reminders.settings import (
    MIN_CHECK_INTERVAL_MINUTES,
    ReferenceArea,
    ReminderSettings,
    ReminderWindow,
)
from workday_checkin.storage.settings_store import ReminderSettingsStore


class TestReminderSettings:
    def test_window_requires_start_before_end(self) -> None:
        with pytest.raises(ValidationError):
            ReminderWindow(start=time(9, 0), end=time(9, 0))
        with pytest.raises(ValidationError):
            ReminderWindow(start=time(10, 0), end=time(9, 0))

    def test_window_is_half_open(self) -> None:
        window = ReminderWindow(start=time(6, 0), end=time(9, 0))
        assert window.contains(time(6, 0))
        assert window.contains(time(8, 59, 59))
        assert not window.contains(time(9, 0))
        assert not window.contains(time(5, 59))

    def test_window_accepts_strings(self) -> None:
        window = ReminderWindow(start="06:30", end="08:00")
        assert window.start == time(6, 30)

    def test_reference_area_validation(self) -> None:
        with pytest.raises(ValidationError):
            ReferenceArea(center_lat=91, center_lon=0, radius_meters=10)
        with pytest.raises(ValidationError):
            ReferenceArea(center_lat=0, center_lon=0, radius_meters=0)

    def test_min_accuracy_must_be_positive(self, reminder_settings) -> None:
        with pytest.raises(ValidationError):
            reminder_settings.updated(min_accuracy_meters=0)

    def test_interval_is_clamped(self, reminder_settings) -> None:
        assert reminder_settings.updated(check_interval_minutes=1).check_interval_minutes == (
            MIN_CHECK_INTERVAL_MINUTES
        )

    def test_settings_are_immutable(self, reminder_settings) -> None:
        with pytest.raises(ValidationError):
            reminder_settings.skip_off_days = True

    def test_updated_returns_new_instance(self, reminder_settings) -> None:
        changed = reminder_settings.updated(skip_off_days=True)
        assert changed.skip_off_days is True
        assert reminder_settings.skip_off_days is False

    def test_with_window(self, reminder_settings) -> None:
        changed = reminder_settings.with_window(Half.EVENING, enabled=False)
        assert changed.evening.enabled is False
        assert changed.window_for(Half.MORNING) == reminder_settings.morning

    def test_with_window_validates(self, reminder_settings) -> None:
        with pytest.raises(ValidationError):
            reminder_settings.with_window(Half.MORNING, end=time(5, 0))

    def test_auto_off_rules(self, reminder_settings) -> None:
        christmas = date(2025, 12, 25)
        settings = reminder_settings.updated(
            auto_off_weekends=True, auto_off_holidays=True, holiday_dates=[christmas]
        )
        assert settings.is_auto_off(date(2025, 3, 8))
        assert settings.is_auto_off(christmas)
        assert not settings.is_auto_off(date(2025, 3, 4))
        assert not reminder_settings.is_auto_off(date(2025, 3, 8))


class TestReminderSettingsStore:
    def test_load_returns_defaults_when_empty(self, settings_store, reminder_settings) -> None:
        assert settings_store.load() == reminder_settings

    def test_save_persists_across_instances(self, db_path, reminder_settings) -> None:
        store = ReminderSettingsStore(db_path, reminder_settings)
        changed = reminder_settings.with_window(Half.MORNING, start=time(5, 0))
        store.save(changed)

        fresh = ReminderSettingsStore(db_path, reminder_settings)
        assert fresh.load() == changed

    def test_persist_default_writes_row(self, db_path, reminder_settings) -> None:
        ReminderSettingsStore(db_path, reminder_settings).load(persist_default=True)

        other_defaults = reminder_settings.updated(skip_off_days=True)
        fresh = ReminderSettingsStore(db_path, other_defaults)
        assert fresh.load() == reminder_settings

    def test_save_swaps_snapshot(self, settings_store, reminder_settings) -> None:
        before = settings_store.load()
        settings_store.save(reminder_settings.updated(check_interval_minutes=45))

        assert settings_store.load().check_interval_minutes == 45
        assert before.check_interval_minutes == 30

    def test_store_is_callable_provider(self, settings_store, reminder_settings) -> None:
        assert settings_store() == reminder_settings

    def test_new_fields_survive_round_trip(self, db_path, reminder_settings) -> None:
        changed = reminder_settings.updated(
            fallback_enabled=True,
            fallback_time=time(21, 45),
            auto_off_holidays=True,
            holiday_dates={date(2025, 12, 25), date(2025, 12, 26)},
        )
        ReminderSettingsStore(db_path, reminder_settings).save(changed)

        loaded = ReminderSettingsStore(db_path, reminder_settings).load()
        assert loaded == changed
        assert loaded.holiday_dates == frozenset({date(2025, 12, 25), date(2025, 12, 26)})

    def test_concurrent_saves_leave_row_and_snapshot_equal(
        self, settings_store, db_path, reminder_settings
    ) -> None:
        candidates = [reminder_settings.updated(check_interval_minutes=15 + i) for i in range(8)]
        barrier = threading.Barrier(len(candidates))

        def save(value) -> None:
            barrier.wait()
            settings_store.save(value)

        threads = [threading.Thread(target=save, args=(c,)) for c in candidates]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        stored = ReminderSettingsStore(db_path, reminder_settings).load()
        assert stored == settings_store.load()
