"""Check-in recording and manual corrections for work entries.

Every write goes through :meth:`CheckInRecorder._commit`, which recomputes
``needs_review`` and stamps ``updated_at`` before the upsert.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime, time
from typing import Any, Callable, Iterator

from loguru import logger

from workday_checkin.checkin.location import assess
from workday_checkin.checkin.review import compute_needs_review, review_reasons
from workday_checkin.errors import InvalidEntryField, InvalidTimeRange, RecordNotFound
from workday_checkin.logging import format_log_context
from workday_checkin.models import (
    CheckInSnapshot,
    DayType,
    Half,
    LocationReading,
    ReviewScope,
    WorkEntry,
)
from workday_checkin.reminders.settings import ReminderSettings
from workday_checkin.storage.work_entries import WorkEntryStore

SettingsProvider = Callable[[], ReminderSettings]

_TRAVEL_FIELDS = (
    "travel_start_at",
    "travel_arrive_at",
    "travel_label_start",
    "travel_label_end",
)

EDITABLE_FIELDS = frozenset(
    {
        "work_start",
        "work_end",
        "break_minutes",
        "day_type",
        "note",
        *_TRAVEL_FIELDS,
        "morning_location_label",
        "evening_location_label",
    }
)

DERIVED_FIELDS = frozenset({"needs_review", "created_at", "updated_at"})

_TIME_FIELDS = ("work_start", "work_end")

# Dates share a fixed pool of locks; a date always maps to the same one
LOCK_STRIPES = 64


def _local_now() -> datetime:
    return datetime.now().astimezone()


def _parse_time_field(name: str, value: Any) -> time | None:
    if value is None or isinstance(value, time):
        return value
    if isinstance(value, str):
        try:
            return time.fromisoformat(value.strip())
        except ValueError:
            pass
    raise InvalidEntryField(f"{name} must be a time of day, got {value!r}")


def _check_travel_range(start: datetime | None, arrive: datetime | None) -> None:
    if start is not None and arrive is not None and arrive < start:
        raise InvalidTimeRange(f"Travel arrival {arrive} precedes departure {start}")


class CheckInRecorder:
    """Creates and mutates work entries; writes for one date are serialized."""

    def __init__(
        self,
        store: WorkEntryStore,
        settings_provider: SettingsProvider,
        *,
        work_start_default: time | None = None,
        work_end_default: time | None = None,
        break_minutes_default: int = 60,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.settings_provider = settings_provider
        self.work_start_default = work_start_default
        self.work_end_default = work_end_default
        self.break_minutes_default = break_minutes_default
        self.clock = clock or _local_now

        self._locks = tuple(threading.Lock() for _ in range(LOCK_STRIPES))

    @contextmanager
    def _date_lock(self, day: date) -> Iterator[None]:
        with self._locks[day.toordinal() % LOCK_STRIPES]:
            yield

    def _new_entry(self, day: date, now: datetime) -> WorkEntry:
        return WorkEntry(
            date=day,
            created_at=now,
            updated_at=now,
            work_start=self.work_start_default,
            work_end=self.work_end_default,
            break_minutes=self.break_minutes_default,
        )

    def _get_or_create(self, day: date, now: datetime) -> WorkEntry:
        existing = self.store.get_by_date(day)
        return existing if existing is not None else self._new_entry(day, now)

    def _require(self, day: date) -> WorkEntry:
        existing = self.store.get_by_date(day)
        if existing is None:
            raise RecordNotFound(day)
        return existing

    def _commit(self, entry: WorkEntry, now: datetime) -> WorkEntry:
        entry = replace(entry, needs_review=compute_needs_review(entry), updated_at=now)
        self.store.upsert(entry)
        if entry.needs_review:
            logger.debug(
                format_log_context(
                    "needs_review",
                    component="recorder",
                    date=entry.date,
                    reason=",".join(r.value for r in review_reasons(entry)),
                )
            )
        return entry

    # ========================================================================
    # Check-ins
    # ========================================================================

    def record_check_in(
        self,
        half: Half,
        day: date,
        now: datetime,
        reading: LocationReading | None,
        label: str | None = None,
    ) -> WorkEntry:
        """
        Record a morning or evening check-in.

        A missing or imprecise reading never blocks the check-in: it is
        stored with the matching status and the entry is flagged for review.
        A repeat check-in for the same half replaces the earlier one.

        Raises:
            InvalidCoordinate: If the reading itself is malformed.
        """
        assessment = assess(reading, self.settings_provider())

        snapshot = CheckInSnapshot(
            captured_at=now,
            location_label=label,
            lat=reading.lat if reading else None,
            lon=reading.lon if reading else None,
            accuracy_meters=reading.accuracy_meters if reading else None,
            outside_reference_area=assessment.outside_reference_area,
            location_status=assessment.location_status,
        )

        with self._date_lock(day):
            entry = self._get_or_create(day, now).with_half(half, snapshot)
            entry = self._commit(entry, now)

        logger.info(
            format_log_context(
                "check_in_recorded",
                component="recorder",
                date=day,
                half=half.value,
                status=assessment.location_status.name,
            )
        )
        return entry

    def record_morning_check_in(
        self,
        day: date,
        now: datetime,
        reading: LocationReading | None,
        label: str | None = None,
    ) -> WorkEntry:
        return self.record_check_in(Half.MORNING, day, now, reading, label)

    def record_evening_check_in(
        self,
        day: date,
        now: datetime,
        reading: LocationReading | None,
        label: str | None = None,
    ) -> WorkEntry:
        return self.record_check_in(Half.EVENING, day, now, reading, label)

    # ========================================================================
    # Day type / travel
    # ========================================================================

    def set_day_type(self, day: date, day_type: DayType, now: datetime | None = None) -> WorkEntry:
        now = now or self.clock()
        with self._date_lock(day):
            entry = replace(self._get_or_create(day, now), day_type=day_type)
            return self._commit(entry, now)

    def set_travel_event(
        self,
        day: date,
        travel_start_at: datetime | None,
        travel_arrive_at: datetime | None,
        travel_label_start: str | None = None,
        travel_label_end: str | None = None,
        now: datetime | None = None,
    ) -> WorkEntry:
        """Create or update the travel fields of an entry; nothing else changes.

        Raises:
            InvalidTimeRange: If arrival is before departure.
        """
        _check_travel_range(travel_start_at, travel_arrive_at)
        now = now or self.clock()
        with self._date_lock(day):
            entry = replace(
                self._get_or_create(day, now),
                travel_start_at=travel_start_at,
                travel_arrive_at=travel_arrive_at,
                travel_label_start=travel_label_start,
                travel_label_end=travel_label_end,
            )
            return self._commit(entry, now)

    def clear_travel_event(self, day: date, now: datetime | None = None) -> WorkEntry:
        now = now or self.clock()
        with self._date_lock(day):
            entry = replace(self._require(day), **{f: None for f in _TRAVEL_FIELDS})
            return self._commit(entry, now)

    # ========================================================================
    # Manual corrections
    # ========================================================================

    def resolve_review(
        self,
        day: date,
        scope: ReviewScope,
        label: str,
        inside: bool,
        now: datetime | None = None,
    ) -> WorkEntry:
        """
        Record the worker's confirmation of where a day's check-ins happened.

        Each half in ``scope`` gets ``label``. Halves that carry coordinates
        also take the confirmed inside/outside verdict, which replaces the
        computed one. The review flag is then recomputed, so reasons the
        confirmation does not address (a missing fix, bad ordering) remain.

        Raises:
            RecordNotFound: If no entry exists for ``day``.
        """
        now = now or self.clock()
        with self._date_lock(day):
            entry = self._require(day)
            for half in scope.halves:
                snapshot = entry.half(half)
                outside = (not inside) if snapshot.has_coordinates else None
                entry = entry.with_half(
                    half,
                    replace(snapshot, location_label=label, outside_reference_area=outside),
                )
            entry = self._commit(entry, now)

        logger.info(
            format_log_context(
                "review_resolved",
                component="recorder",
                date=day,
                scope=scope.value,
                needs_review=entry.needs_review,
            )
        )
        return entry

    def update_entry(self, day: date, *, now: datetime | None = None, **fields: Any) -> WorkEntry:
        """
        Apply a field-level correction to an existing entry.

        Args:
            day: Date of the entry to edit.
            now: Timestamp for ``updated_at`` (defaults to the recorder clock).
            **fields: Any of EDITABLE_FIELDS. ``day_type`` accepts a DayType
                or its wire name; ``work_start`` and ``work_end`` accept a
                time or an "HH:MM" string.

        Raises:
            RecordNotFound: If no entry exists for ``day``.
            InvalidEntryField: For derived, unknown or immutable fields, or a
                negative break, or a work time that is not a time of day.
            InvalidTimeRange: If the merged work end is not after work start,
                or travel arrival precedes departure.
        """
        if "date" in fields and fields["date"] != day:
            raise InvalidEntryField("The date of an entry cannot be changed")
        fields.pop("date", None)

        derived = DERIVED_FIELDS.intersection(fields)
        if derived:
            raise InvalidEntryField(f"Derived fields cannot be set: {sorted(derived)}")
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise InvalidEntryField(f"Unknown fields: {sorted(unknown)}")

        if "break_minutes" in fields:
            break_minutes = fields["break_minutes"]
            if not isinstance(break_minutes, int) or break_minutes < 0:
                raise InvalidEntryField(f"break_minutes must be >= 0, got {break_minutes!r}")
        if isinstance(fields.get("day_type"), str):
            fields["day_type"] = DayType.from_wire(fields["day_type"])
        for name in _TIME_FIELDS:
            if name in fields:
                fields[name] = _parse_time_field(name, fields[name])

        now = now or self.clock()
        with self._date_lock(day):
            entry = self._require(day)

            morning_label = fields.pop("morning_location_label", entry.morning.location_label)
            evening_label = fields.pop("evening_location_label", entry.evening.location_label)
            entry = replace(
                entry,
                morning=replace(entry.morning, location_label=morning_label),
                evening=replace(entry.evening, location_label=evening_label),
                **fields,
            )

            if entry.work_start is not None and entry.work_end is not None:
                if entry.work_end <= entry.work_start:
                    raise InvalidTimeRange(
                        f"Work end {entry.work_end} must be after start {entry.work_start}"
                    )
            _check_travel_range(entry.travel_start_at, entry.travel_arrive_at)

            return self._commit(entry, now)

    def delete_entry(self, day: date) -> WorkEntry | None:
        """Delete the entry for ``day`` and return it so the caller can undo."""
        with self._date_lock(day):
            existing = self.store.get_by_date(day)
            if existing is None:
                return None
            self.store.delete_by_date(day)
        logger.info(format_log_context("entry_deleted", component="recorder", date=day))
        return existing

    # ========================================================================
    # Reads
    # ========================================================================

    def get_entry(self, day: date) -> WorkEntry | None:
        return self.store.get_by_date(day)

    def list_entries(self, start: date, end: date) -> list[WorkEntry]:
        return self.store.get_by_date_range(start, end)
