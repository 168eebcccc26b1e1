"""Reminder windows, reference area and accuracy threshold.

``ReminderSettings`` is an immutable value. Edits build a new instance via
:meth:`ReminderSettings.updated`, so a reader never sees a half-applied change.
"""

from __future__ import annotations

from datetime import date, time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from workday_checkin.models import Half

# Wake-ups closer together than this are not honoured by most hosts.
MIN_CHECK_INTERVAL_MINUTES = 15


class ReminderWindow(BaseModel):
    """Local-time interval ``[start, end)`` in which a reminder may fire."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    start: time
    end: time

    @model_validator(mode="after")
    def check_order(self) -> "ReminderWindow":
        if not self.start < self.end:
            raise ValueError(f"window start {self.start} must be before end {self.end}")
        return self

    def contains(self, moment: time) -> bool:
        return self.start <= moment < self.end


class ReferenceArea(BaseModel):
    """Geofence used to flag check-ins away from the expected location."""

    model_config = ConfigDict(frozen=True)

    center_lat: float = Field(ge=-90.0, le=90.0)
    center_lon: float = Field(ge=-180.0, le=180.0)
    radius_meters: float = Field(gt=0)


class ReminderSettings(BaseModel):
    """Process-wide reminder and location configuration."""

    model_config = ConfigDict(frozen=True)

    morning: ReminderWindow
    evening: ReminderWindow
    reference_area: ReferenceArea
    min_accuracy_meters: float = Field(gt=0)
    check_interval_minutes: int = 30
    skip_off_days: bool = False

    # One late reminder when the day is still incomplete
    fallback_enabled: bool = False
    fallback_time: time = time(22, 30)

    # Days without an entry that count as days off
    auto_off_weekends: bool = False
    auto_off_holidays: bool = False
    holiday_dates: frozenset[date] = frozenset()

    @field_validator("check_interval_minutes")
    @classmethod
    def clamp_interval(cls, v: int) -> int:
        return max(v, MIN_CHECK_INTERVAL_MINUTES)

    def window_for(self, half: Half) -> ReminderWindow:
        return self.morning if half is Half.MORNING else self.evening

    def is_auto_off(self, day: date) -> bool:
        """Whether ``day`` is a weekend or listed holiday that is off by default."""
        if self.auto_off_weekends and day.weekday() >= 5:
            return True
        return self.auto_off_holidays and day in self.holiday_dates

    def updated(self, **changes: Any) -> "ReminderSettings":
        """Return a validated copy with ``changes`` applied."""
        data = self.model_dump()
        for key, value in changes.items():
            data[key] = value.model_dump() if isinstance(value, BaseModel) else value
        return type(self).model_validate(data)

    def with_window(self, half: Half, **changes: Any) -> "ReminderSettings":
        """Return a copy with one window's fields changed."""
        window = self.window_for(half).model_dump() | changes
        return self.updated(**{half.value: window})
