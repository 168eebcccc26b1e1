"""Location assessment: accuracy check and reference-area geofence."""

from __future__ import annotations

import math
from dataclasses import dataclass

from workday_checkin.errors import InvalidCoordinate
from workday_checkin.models import LocationReading, LocationStatus
from workday_checkin.reminders.settings import ReminderSettings

EARTH_RADIUS_METERS = 6_371_000.0


@dataclass(frozen=True)
class LocationAssessment:
    location_status: LocationStatus
    outside_reference_area: bool | None
    distance_meters: float | None = None


def validate_coordinate(lat: float, lon: float) -> None:
    """Raise InvalidCoordinate unless lat/lon are finite and in range."""
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise InvalidCoordinate(f"Non-finite coordinate: ({lat}, {lon})")
    if not -90.0 <= lat <= 90.0:
        raise InvalidCoordinate(f"Latitude out of range: {lat}")
    if not -180.0 <= lon <= 180.0:
        raise InvalidCoordinate(f"Longitude out of range: {lon}")


def haversine_distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters between two points."""
    validate_coordinate(lat1, lon1)
    validate_coordinate(lat2, lon2)

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # Rounding can push a past 1.0 for near-antipodal points
    c = 2 * math.asin(math.sqrt(min(1.0, a)))
    return EARTH_RADIUS_METERS * c


def assess(reading: LocationReading | None, settings: ReminderSettings) -> LocationAssessment:
    """
    Classify a location reading against the configured reference area.

    Args:
        reading: Fix from the location provider, or None when none was obtained.
        settings: Current reminder settings (reference area and accuracy threshold).

    Returns:
        LocationAssessment. A missing reading is UNAVAILABLE with no verdict;
        an imprecise one is LOW_ACCURACY but still gets an outside verdict.

    Raises:
        InvalidCoordinate: If the reading has out-of-range or non-finite values.
    """
    if reading is None:
        return LocationAssessment(LocationStatus.UNAVAILABLE, None, None)

    accuracy = reading.accuracy_meters
    if not math.isfinite(accuracy) or accuracy < 0:
        raise InvalidCoordinate(f"Invalid accuracy: {accuracy}")

    area = settings.reference_area
    distance = haversine_distance_m(reading.lat, reading.lon, area.center_lat, area.center_lon)
    outside = distance > area.radius_meters

    if accuracy > settings.min_accuracy_meters:
        return LocationAssessment(LocationStatus.LOW_ACCURACY, outside, distance)
    return LocationAssessment(LocationStatus.OK, outside, distance)
