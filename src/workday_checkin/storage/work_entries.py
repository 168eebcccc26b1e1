"""SQLite persistence for work entries (one row per calendar date)."""

from __future__ import annotations

import sqlite3
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Protocol

from workday_checkin.models import (
    CheckInSnapshot,
    DayType,
    Half,
    LocationStatus,
    WorkEntry,
)


class WorkEntryStore(Protocol):
    """Record store keyed by date."""

    def get_by_date(self, day: date) -> WorkEntry | None: ...

    def upsert(self, entry: WorkEntry) -> None: ...

    def delete_by_date(self, day: date) -> bool: ...

    def get_by_date_range(self, start: date, end: date) -> list[WorkEntry]: ...


_HALF_COLUMNS = (
    "captured_at",
    "location_label",
    "lat",
    "lon",
    "accuracy_meters",
    "outside",
    "location_status",
)

_COLUMNS = (
    "date",
    "work_start",
    "work_end",
    "break_minutes",
    "day_type",
    *(f"morning_{c}" for c in _HALF_COLUMNS),
    *(f"evening_{c}" for c in _HALF_COLUMNS),
    "travel_start_at",
    "travel_arrive_at",
    "travel_label_start",
    "travel_label_end",
    "needs_review",
    "note",
    "created_at",
    "updated_at",
)

# Immutable once the row exists
_KEEP_ON_CONFLICT = {"date", "created_at"}


def _iso(value: date | datetime | time | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _parse_time(value: str | None) -> time | None:
    return time.fromisoformat(value) if value else None


def _to_flag(value: bool | None) -> int | None:
    if value is None:
        return None
    return 1 if value else 0


def _from_flag(value: int | None) -> bool | None:
    if value is None:
        return None
    return bool(value)


def _entry_to_row(entry: WorkEntry) -> dict[str, Any]:
    row: dict[str, Any] = {
        "date": entry.date.isoformat(),
        "work_start": _iso(entry.work_start),
        "work_end": _iso(entry.work_end),
        "break_minutes": entry.break_minutes,
        "day_type": entry.day_type.to_wire(),
        "travel_start_at": _iso(entry.travel_start_at),
        "travel_arrive_at": _iso(entry.travel_arrive_at),
        "travel_label_start": entry.travel_label_start,
        "travel_label_end": entry.travel_label_end,
        "needs_review": 1 if entry.needs_review else 0,
        "note": entry.note,
        "created_at": entry.created_at.isoformat(),
        "updated_at": entry.updated_at.isoformat(),
    }
    for half in Half:
        snapshot = entry.half(half)
        prefix = half.value
        row[f"{prefix}_captured_at"] = _iso(snapshot.captured_at)
        row[f"{prefix}_location_label"] = snapshot.location_label
        row[f"{prefix}_lat"] = snapshot.lat
        row[f"{prefix}_lon"] = snapshot.lon
        row[f"{prefix}_accuracy_meters"] = snapshot.accuracy_meters
        row[f"{prefix}_outside"] = _to_flag(snapshot.outside_reference_area)
        row[f"{prefix}_location_status"] = snapshot.location_status.to_wire()
    return row


def _row_to_snapshot(row: sqlite3.Row, prefix: str) -> CheckInSnapshot:
    return CheckInSnapshot(
        captured_at=_parse_datetime(row[f"{prefix}_captured_at"]),
        location_label=row[f"{prefix}_location_label"],
        lat=row[f"{prefix}_lat"],
        lon=row[f"{prefix}_lon"],
        accuracy_meters=row[f"{prefix}_accuracy_meters"],
        outside_reference_area=_from_flag(row[f"{prefix}_outside"]),
        location_status=LocationStatus.from_wire(row[f"{prefix}_location_status"]),
    )


def _row_to_entry(row: sqlite3.Row) -> WorkEntry:
    return WorkEntry(
        date=date.fromisoformat(row["date"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
        work_start=_parse_time(row["work_start"]),
        work_end=_parse_time(row["work_end"]),
        break_minutes=row["break_minutes"],
        day_type=DayType.from_wire(row["day_type"]),
        morning=_row_to_snapshot(row, "morning"),
        evening=_row_to_snapshot(row, "evening"),
        travel_start_at=_parse_datetime(row["travel_start_at"]),
        travel_arrive_at=_parse_datetime(row["travel_arrive_at"]),
        travel_label_start=row["travel_label_start"],
        travel_label_end=row["travel_label_end"],
        needs_review=bool(row["needs_review"]),
        note=row["note"],
    )


class SqliteWorkEntryStore:
    """WorkEntryStore backed by a single SQLite file.

    A connection is opened per call, so the store can be shared between
    the recorder and the scheduler without a connection pool.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)

    def get_connection(self) -> sqlite3.Connection:
        """Get a SQLite connection with the schema in place."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        self._ensure_schema(conn)
        return conn

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        """Create work entry table and indexes."""
        conn.execute("""
            CREATE TABLE IF NOT EXISTS work_entries (
                date TEXT PRIMARY KEY,
                work_start TEXT,
                work_end TEXT,
                break_minutes INTEGER NOT NULL DEFAULT 60,
                day_type TEXT NOT NULL DEFAULT 'WORK',
                morning_captured_at TEXT,
                morning_location_label TEXT,
                morning_lat REAL,
                morning_lon REAL,
                morning_accuracy_meters REAL,
                morning_outside INTEGER,
                morning_location_status TEXT NOT NULL DEFAULT 'OK',
                evening_captured_at TEXT,
                evening_location_label TEXT,
                evening_lat REAL,
                evening_lon REAL,
                evening_accuracy_meters REAL,
                evening_outside INTEGER,
                evening_location_status TEXT NOT NULL DEFAULT 'OK',
                travel_start_at TEXT,
                travel_arrive_at TEXT,
                travel_label_start TEXT,
                travel_label_end TEXT,
                needs_review INTEGER NOT NULL DEFAULT 0,
                note TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_work_entries_review ON work_entries(needs_review)"
        )
        conn.commit()

    def get_by_date(self, day: date) -> WorkEntry | None:
        conn = self.get_connection()
        try:
            row = conn.execute(
                "SELECT * FROM work_entries WHERE date = ?",
                (day.isoformat(),),
            ).fetchone()
            return _row_to_entry(row) if row else None
        finally:
            conn.close()

    def upsert(self, entry: WorkEntry) -> None:
        """Insert the entry or replace every mutable column of the existing row."""
        row = _entry_to_row(entry)
        placeholders = ", ".join(f":{c}" for c in _COLUMNS)
        updates = ", ".join(
            f"{c} = excluded.{c}" for c in _COLUMNS if c not in _KEEP_ON_CONFLICT
        )
        sql = (
            f"INSERT INTO work_entries ({', '.join(_COLUMNS)}) VALUES ({placeholders}) "
            f"ON CONFLICT(date) DO UPDATE SET {updates}"
        )

        conn = self.get_connection()
        try:
            with conn:
                conn.execute(sql, row)
        finally:
            conn.close()

    def delete_by_date(self, day: date) -> bool:
        conn = self.get_connection()
        try:
            with conn:
                cursor = conn.execute(
                    "DELETE FROM work_entries WHERE date = ?",
                    (day.isoformat(),),
                )
            return cursor.rowcount > 0
        finally:
            conn.close()

    def get_by_date_range(self, start: date, end: date) -> list[WorkEntry]:
        """Entries with start <= date <= end, newest first."""
        conn = self.get_connection()
        try:
            rows = conn.execute(
                """
                SELECT * FROM work_entries
                WHERE date >= ? AND date <= ?
                ORDER BY date DESC
                """,
                (start.isoformat(), end.isoformat()),
            ).fetchall()
            return [_row_to_entry(row) for row in rows]
        finally:
            conn.close()

    def get_needing_review(self) -> list[WorkEntry]:
        conn = self.get_connection()
        try:
            rows = conn.execute(
                "SELECT * FROM work_entries WHERE needs_review = 1 ORDER BY date DESC"
            ).fetchall()
            return [_row_to_entry(row) for row in rows]
        finally:
            conn.close()
