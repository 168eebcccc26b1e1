"""Async check-in flow: fetch a location fix with a timeout, then record."""

from __future__ import annotations

import asyncio
from datetime import date, datetime
from typing import Protocol

from loguru import logger

from workday_checkin.checkin.recorder import CheckInRecorder
from workday_checkin.config import settings
from workday_checkin.logging import format_log_context
from workday_checkin.models import Half, LocationReading, WorkEntry


class LocationProvider(Protocol):
    async def request_fix(self, timeout: float) -> LocationReading | None: ...


async def acquire_reading(provider: LocationProvider, timeout: float) -> LocationReading | None:
    """Ask the provider for a fix. Timeouts and provider errors yield None."""
    try:
        return await asyncio.wait_for(provider.request_fix(timeout), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(
            format_log_context("location_timeout", component="location", timeout=timeout)
        )
        return None
    except Exception as e:
        logger.warning(
            format_log_context("location_failed", component="location", error=type(e).__name__)
            + f" {e}"
        )
        return None


async def run_check_in(
    recorder: CheckInRecorder,
    provider: LocationProvider | None,
    half: Half,
    day: date | None = None,
    *,
    timeout: float | None = None,
    label: str | None = None,
    now: datetime | None = None,
) -> WorkEntry:
    """
    Perform a full check-in for ``half``.

    Args:
        recorder: Recorder that persists the entry.
        provider: Location source. None records the check-in without a fix.
        half: Morning or evening.
        day: Entry date; defaults to the date of ``now``.
        timeout: Seconds to wait for a fix (defaults to LOCATION_TIMEOUT_SECONDS).
        label: Optional free-text location label.
        now: Check-in timestamp; defaults to the recorder clock.

    Returns:
        The stored WorkEntry.
    """
    reading = None
    if provider is not None:
        wait = timeout if timeout is not None else settings.LOCATION_TIMEOUT_SECONDS
        reading = await acquire_reading(provider, wait)

    # Timestamp after the fix so the check-in reflects when it completed
    now = now or recorder.clock()
    day = day or now.date()
    return recorder.record_check_in(half, day, now, reading, label)
