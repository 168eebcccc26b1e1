"""Per-day record of reminders already delivered.

Kept on disk so a restart inside a window does not repeat a reminder.
"""

from __future__ import annotations

import sqlite3
from datetime import date, datetime
from pathlib import Path

from workday_checkin.models import ReminderKind


class ReminderFlagStore:
    """Reminder ledger keyed by ``(date, kind)`` in the shared SQLite file."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)

    def get_connection(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        self._ensure_schema(conn)
        return conn

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS reminder_flags (
                date TEXT NOT NULL,
                kind TEXT NOT NULL,
                notified_at TEXT NOT NULL,
                PRIMARY KEY (date, kind)
            )
        """)
        conn.commit()

    def notified_on(self, day: date) -> frozenset[ReminderKind]:
        conn = self.get_connection()
        try:
            rows = conn.execute(
                "SELECT kind FROM reminder_flags WHERE date = ?",
                (day.isoformat(),),
            ).fetchall()
            return frozenset(ReminderKind.from_wire(row["kind"]) for row in rows)
        finally:
            conn.close()

    def mark_notified(self, day: date, kind: ReminderKind, at: datetime) -> None:
        """Record a delivered reminder; a second mark for the same day is ignored."""
        conn = self.get_connection()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO reminder_flags (date, kind, notified_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(date, kind) DO NOTHING
                    """,
                    (day.isoformat(), kind.to_wire(), at.isoformat()),
                )
        finally:
            conn.close()

    def prune_before(self, day: date) -> int:
        """Delete flags for days before ``day``; returns the number removed."""
        conn = self.get_connection()
        try:
            with conn:
                cursor = conn.execute(
                    "DELETE FROM reminder_flags WHERE date < ?",
                    (day.isoformat(),),
                )
            return cursor.rowcount
        finally:
            conn.close()
