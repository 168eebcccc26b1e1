"""Exceptions raised by the check-in recorder, assessor and scheduler.

A missing location is not an error: it is recorded as
``LocationStatus.UNAVAILABLE`` and flagged for review.
"""


class CheckinError(Exception):
    """Base class for workday-checkin errors."""


class InvalidCoordinate(CheckinError, ValueError):
    """Latitude/longitude out of range or not a finite number."""


class InvalidTimeRange(CheckinError, ValueError):
    """An explicit edit would put an end time at or before its start time."""


class InvalidEntryField(CheckinError, ValueError):
    """An edit names an unknown, derived or immutable field, or a bad value."""


class RecordNotFound(CheckinError, LookupError):
    """No work entry exists for the date and the operation cannot create one."""

    def __init__(self, day) -> None:
        super().__init__(f"No work entry for {day}")
        self.day = day


class SchedulingFailure(CheckinError):
    """The host refused to register a wake-up timer."""


class UnknownEnumValue(CheckinError, ValueError):
    """A persisted enum string does not match any known member."""
