"""CSV export of work entries (semicolon separated)."""

from __future__ import annotations

import csv
import io
from datetime import date
from typing import Iterable

from workday_checkin.models import WorkEntry
from workday_checkin.storage.work_entries import WorkEntryStore

CSV_COLUMNS = (
    "date",
    "dayType",
    "workStart",
    "workEnd",
    "breakMinutes",
    "morningCapturedAt",
    "morningLocationLabel",
    "morningOutside",
    "eveningCapturedAt",
    "eveningLocationLabel",
    "eveningOutside",
    "travelStartAt",
    "travelArriveAt",
    "travelLabelStart",
    "travelLabelEnd",
    "note",
    "needsReview",
    "createdAt",
    "updatedAt",
)


def _fmt(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def _row(entry: WorkEntry) -> list[str]:
    values = (
        entry.date,
        entry.day_type.to_wire(),
        entry.work_start,
        entry.work_end,
        entry.break_minutes,
        entry.morning.captured_at,
        entry.morning.location_label,
        entry.morning.outside_reference_area,
        entry.evening.captured_at,
        entry.evening.location_label,
        entry.evening.outside_reference_area,
        entry.travel_start_at,
        entry.travel_arrive_at,
        entry.travel_label_start,
        entry.travel_label_end,
        entry.note,
        entry.needs_review,
        entry.created_at,
        entry.updated_at,
    )
    return [_fmt(v) for v in values]


def export_csv(entries: Iterable[WorkEntry]) -> str:
    """Render entries as CSV with a header row, in the order given."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=";", lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for entry in entries:
        writer.writerow(_row(entry))
    return buffer.getvalue()


def export_range_csv(store: WorkEntryStore, start: date, end: date) -> str:
    return export_csv(store.get_by_date_range(start, end))
