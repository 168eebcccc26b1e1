"""Persisted reminder settings.

A single row holds the JSON of the current ``ReminderSettings``. Writes go
through one transaction and the in-memory snapshot is swapped under a lock,
so readers always see either the old or the new settings in full.
"""

from __future__ import annotations

import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger

from workday_checkin.logging import format_log_context
from workday_checkin.reminders.settings import ReminderSettings


def _utc_now() -> str:
    """Get current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


class ReminderSettingsStore:
    """Owns the current ReminderSettings snapshot and its persisted copy."""

    def __init__(self, db_path: str | Path, defaults: ReminderSettings) -> None:
        self.db_path = Path(db_path)
        self.defaults = defaults
        self._lock = threading.Lock()
        # Serializes database writes with the snapshot swap
        self._write_lock = threading.Lock()
        self._current: ReminderSettings | None = None

    def get_connection(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        self._ensure_schema(conn)
        return conn

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS reminder_settings (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                payload TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        conn.commit()

    def load(self, *, persist_default: bool = False) -> ReminderSettings:
        """Return the current settings, reading the database on first use.

        Args:
            persist_default: Write the defaults when nothing is stored yet.
        """
        with self._lock:
            if self._current is not None:
                return self._current

        conn = self.get_connection()
        try:
            row = conn.execute(
                "SELECT payload FROM reminder_settings WHERE id = 1"
            ).fetchone()
        finally:
            conn.close()

        if row is not None:
            loaded = ReminderSettings.model_validate_json(row["payload"])
            with self._lock:
                if self._current is None:
                    self._current = loaded
                return self._current

        with self._write_lock:
            with self._lock:
                if self._current is not None:
                    return self._current
            if persist_default:
                self._write(self.defaults)
            with self._lock:
                self._current = self.defaults
                return self._current

    def save(self, new: ReminderSettings) -> ReminderSettings:
        """Persist ``new`` and make it the current snapshot.

        Concurrent saves are applied one at a time, so the stored row and the
        snapshot always hold the same settings.
        """
        with self._write_lock:
            self._write(new)
            with self._lock:
                self._current = new
        logger.info(format_log_context("settings_saved", component="settings"))
        return new

    def _write(self, value: ReminderSettings) -> None:
        conn = self.get_connection()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO reminder_settings (id, payload, updated_at)
                    VALUES (1, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        payload = excluded.payload,
                        updated_at = excluded.updated_at
                    """,
                    (value.model_dump_json(), _utc_now()),
                )
        finally:
            conn.close()

    def __call__(self) -> ReminderSettings:
        return self.load()
