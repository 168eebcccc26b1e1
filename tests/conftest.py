"""Shared fixtures and configuration for pytest."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path

import pytest

from workday_checkin.checkin.recorder import CheckInRecorder
from workday_checkin.models import ReminderKind
from workday_checkin.reminders.settings import ReferenceArea, ReminderSettings, ReminderWindow
from workday_checkin.storage.reminder_flags import ReminderFlagStore
from workday_checkin.storage.settings_store import ReminderSettingsStore
from workday_checkin.storage.work_entries import SqliteWorkEntryStore

# Fixed offset keeps wall-clock arithmetic independent of the host timezone
TZ = timezone(timedelta(hours=1))

DAY = date(2025, 3, 4)


def at(hour: int, minute: int = 0, day: date = DAY) -> datetime:
    """Local datetime on ``day`` in the test timezone."""
    return datetime.combine(day, time(hour, minute), tzinfo=TZ)


# =============================================================================
# Settings Fixtures
# =============================================================================

@pytest.fixture
def reminder_settings() -> ReminderSettings:
    return ReminderSettings(
        morning=ReminderWindow(start=time(6, 0), end=time(9, 0)),
        evening=ReminderWindow(start=time(16, 0), end=time(20, 0)),
        reference_area=ReferenceArea(center_lat=51.3397, center_lon=12.3731, radius_meters=5000),
        min_accuracy_meters=100,
    )


# =============================================================================
# Storage Fixtures
# =============================================================================

@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "workday.db"


@pytest.fixture
def entry_store(db_path: Path) -> SqliteWorkEntryStore:
    return SqliteWorkEntryStore(db_path)


@pytest.fixture
def settings_store(db_path: Path, reminder_settings: ReminderSettings) -> ReminderSettingsStore:
    return ReminderSettingsStore(db_path, reminder_settings)


@pytest.fixture
def flag_store(db_path: Path) -> ReminderFlagStore:
    return ReminderFlagStore(db_path)


@pytest.fixture
def recorder(entry_store: SqliteWorkEntryStore, settings_store: ReminderSettingsStore) -> CheckInRecorder:
    return CheckInRecorder(
        entry_store,
        settings_store.load,
        work_start_default=time(8, 0),
        work_end_default=time(19, 0),
        clock=lambda: at(12),
    )


# =============================================================================
# Scheduler Fakes
# =============================================================================

class FakeTimer:
    """WakeupTimer that records schedule/cancel calls instead of running them."""

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.scheduled: list[timedelta] = []
        self.cancel_count = 0
        self.callback = None

    def schedule(self, delay, callback) -> None:
        from workday_checkin.errors import SchedulingFailure

        if self.failures > 0:
            self.failures -= 1
            raise SchedulingFailure("host refused timer")
        self.scheduled.append(delay)
        self.callback = callback

    def cancel(self) -> None:
        self.cancel_count += 1
        self.callback = None

    @property
    def active(self) -> bool:
        return self.callback is not None

    @property
    def last_delay(self) -> timedelta | None:
        return self.scheduled[-1] if self.scheduled else None


class RecordingSink:
    """NotificationSink that remembers what it was asked to deliver."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[tuple[ReminderKind, date]] = []

    async def notify(self, kind: ReminderKind, day: date) -> None:
        if self.fail:
            raise RuntimeError("push service down")
        self.sent.append((kind, day))


@pytest.fixture
def fake_timer() -> FakeTimer:
    return FakeTimer()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
