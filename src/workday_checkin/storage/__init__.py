"""SQLite persistence for work entries, reminder settings and reminder flags."""

from workday_checkin.storage.reminder_flags import ReminderFlagStore
from workday_checkin.storage.settings_store import ReminderSettingsStore
from workday_checkin.storage.work_entries import SqliteWorkEntryStore, WorkEntryStore

__all__ = ["ReminderFlagStore", "ReminderSettingsStore", "SqliteWorkEntryStore", "WorkEntryStore"]
