"""Review flag derivation for work entries."""

from __future__ import annotations

from enum import Enum

from workday_checkin.models import Half, LocationStatus, WorkEntry

_BAD_LOCATION = (LocationStatus.UNAVAILABLE, LocationStatus.LOW_ACCURACY)


class ReviewReason(Enum):
    MORNING_LOCATION = "morning_location"
    EVENING_LOCATION = "evening_location"
    MORNING_OUTSIDE_AREA = "morning_outside_area"
    EVENING_OUTSIDE_AREA = "evening_outside_area"
    CHECK_IN_ORDER = "check_in_order"
    WORK_TIME_RANGE = "work_time_range"


_LOCATION_REASON = {
    Half.MORNING: ReviewReason.MORNING_LOCATION,
    Half.EVENING: ReviewReason.EVENING_LOCATION,
}
_OUTSIDE_REASON = {
    Half.MORNING: ReviewReason.MORNING_OUTSIDE_AREA,
    Half.EVENING: ReviewReason.EVENING_OUTSIDE_AREA,
}


def review_reasons(entry: WorkEntry) -> list[ReviewReason]:
    """List every condition that makes this entry need manual review.

    OFF days are checked like any other day.
    """
    reasons: list[ReviewReason] = []

    for half in Half:
        snapshot = entry.half(half)
        if snapshot.attempted and snapshot.location_status in _BAD_LOCATION:
            reasons.append(_LOCATION_REASON[half])
        if snapshot.outside_reference_area is True:
            reasons.append(_OUTSIDE_REASON[half])

    morning_at = entry.morning.captured_at
    evening_at = entry.evening.captured_at
    if morning_at is not None and evening_at is not None and evening_at <= morning_at:
        reasons.append(ReviewReason.CHECK_IN_ORDER)

    if entry.work_start is not None and entry.work_end is not None:
        if entry.work_end <= entry.work_start:
            reasons.append(ReviewReason.WORK_TIME_RANGE)

    return reasons


def compute_needs_review(entry: WorkEntry) -> bool:
    return bool(review_reasons(entry))
