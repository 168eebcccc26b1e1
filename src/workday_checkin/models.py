"""Work entry records and their closed enumerations."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time
from enum import Enum

from workday_checkin.errors import UnknownEnumValue


class _WireEnum(Enum):
    """Enum persisted by member name; unknown names are rejected."""

    @classmethod
    def from_wire(cls, value: str):
        try:
            return cls[value]
        except (KeyError, TypeError):
            raise UnknownEnumValue(f"Unknown {cls.__name__} value: {value!r}") from None

    def to_wire(self) -> str:
        return self.name


class DayType(_WireEnum):
    WORK = "work"
    OFF = "off"


class LocationStatus(_WireEnum):
    OK = "ok"
    UNAVAILABLE = "unavailable"
    LOW_ACCURACY = "low_accuracy"


class Half(_WireEnum):
    """Morning or evening portion of a day's check-in data."""

    MORNING = "morning"
    EVENING = "evening"


class ReminderKind(_WireEnum):
    """Reminder delivered to the worker: one per window, plus the late fallback."""

    MORNING = "morning"
    EVENING = "evening"
    FALLBACK = "fallback"

    @classmethod
    def for_half(cls, half: Half) -> ReminderKind:
        return cls[half.name]

    @property
    def half(self) -> Half | None:
        if self is ReminderKind.FALLBACK:
            return None
        return Half[self.name]


class ReviewScope(_WireEnum):
    """Halves a manual review resolution applies to."""

    MORNING = "morning"
    EVENING = "evening"
    BOTH = "both"

    @property
    def halves(self) -> tuple[Half, ...]:
        if self is ReviewScope.BOTH:
            return (Half.MORNING, Half.EVENING)
        return (Half[self.name],)


@dataclass(frozen=True)
class LocationReading:
    """A single fix returned by a location provider."""

    lat: float
    lon: float
    accuracy_meters: float


@dataclass(frozen=True)
class CheckInSnapshot:
    """One half of a work entry."""

    captured_at: datetime | None = None
    location_label: str | None = None
    lat: float | None = None
    lon: float | None = None
    accuracy_meters: float | None = None
    outside_reference_area: bool | None = None
    location_status: LocationStatus = LocationStatus.OK

    @property
    def attempted(self) -> bool:
        """Whether a check-in was recorded for this half."""
        return self.captured_at is not None

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lon is not None


@dataclass(frozen=True)
class WorkEntry:
    """A work record. Exactly one exists per calendar date."""

    date: date
    created_at: datetime
    updated_at: datetime
    work_start: time | None = None
    work_end: time | None = None
    break_minutes: int = 60
    day_type: DayType = DayType.WORK
    morning: CheckInSnapshot = field(default_factory=CheckInSnapshot)
    evening: CheckInSnapshot = field(default_factory=CheckInSnapshot)
    travel_start_at: datetime | None = None
    travel_arrive_at: datetime | None = None
    travel_label_start: str | None = None
    travel_label_end: str | None = None
    needs_review: bool = False
    note: str | None = None

    def half(self, which: Half) -> CheckInSnapshot:
        return self.morning if which is Half.MORNING else self.evening

    def with_half(self, which: Half, snapshot: CheckInSnapshot) -> WorkEntry:
        if which is Half.MORNING:
            return replace(self, morning=snapshot)
        return replace(self, evening=snapshot)
