"""Check-in recording, location assessment and review flagging."""

from workday_checkin.checkin.location import LocationAssessment, assess, haversine_distance_m
from workday_checkin.checkin.recorder import CheckInRecorder
from workday_checkin.checkin.review import ReviewReason, compute_needs_review, review_reasons

__all__ = [
    "CheckInRecorder",
    "LocationAssessment",
    "ReviewReason",
    "assess",
    "compute_needs_review",
    "haversine_distance_m",
    "review_reasons",
]
