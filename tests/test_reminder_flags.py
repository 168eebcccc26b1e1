"""Tests for the persisted reminder ledger."""

from __future__ import annotations

from datetime import timedelta

from conftest import DAY, at

from workday_checkin.models import ReminderKind
from workday_checkin.storage.reminder_flags import ReminderFlagStore


def test_empty_day(flag_store) -> None:
    assert flag_store.notified_on(DAY) == frozenset()


def test_mark_and_read_back(flag_store) -> None:
    flag_store.mark_notified(DAY, ReminderKind.MORNING, at(7))
    flag_store.mark_notified(DAY, ReminderKind.FALLBACK, at(22, 30))

    assert flag_store.notified_on(DAY) == {ReminderKind.MORNING, ReminderKind.FALLBACK}
    assert flag_store.notified_on(DAY + timedelta(days=1)) == frozenset()


def test_second_mark_is_ignored(flag_store) -> None:
    flag_store.mark_notified(DAY, ReminderKind.EVENING, at(17))
    flag_store.mark_notified(DAY, ReminderKind.EVENING, at(18))

    conn = flag_store.get_connection()
    try:
        rows = conn.execute("SELECT notified_at FROM reminder_flags").fetchall()
    finally:
        conn.close()
    assert [row["notified_at"] for row in rows] == [at(17).isoformat()]


def test_flags_survive_a_new_store(db_path, flag_store) -> None:
    flag_store.mark_notified(DAY, ReminderKind.MORNING, at(7))

    assert ReminderFlagStore(db_path).notified_on(DAY) == {ReminderKind.MORNING}


def test_prune_before_keeps_today(flag_store) -> None:
    yesterday = DAY - timedelta(days=1)
    flag_store.mark_notified(yesterday, ReminderKind.EVENING, at(17, day=yesterday))
    flag_store.mark_notified(DAY, ReminderKind.MORNING, at(7))

    assert flag_store.prune_before(DAY) == 1
    assert flag_store.notified_on(yesterday) == frozenset()
    assert flag_store.notified_on(DAY) == {ReminderKind.MORNING}
