"""
Geofence utilities.

Distances use the haversine formula on a spherical Earth. Everything in this
module is pure and safe to call from any number of handlers concurrently.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime

from ..core.errors import InvalidCoordinate

EARTH_RADIUS_METERS = 6371000


@dataclass(frozen=True)
class GeofenceResult:
    distance_meters: float
    within_radius: bool
    accuracy_ok: bool

    @property
    def accepted(self) -> bool:
        return self.within_radius and self.accuracy_ok


def validate_coordinate(lat: float, lon: float) -> None:
    """
    Reject coordinates that cannot exist on Earth.

    Raises:
        InvalidCoordinate: non-finite values, latitude outside [-90, 90] or
            longitude outside [-180, 180].
    """
    try:
        lat = float(lat)
        lon = float(lon)
    except (TypeError, ValueError) as exc:
        raise InvalidCoordinate("Coordinates must be numbers.", latitude=str(lat), longitude=str(lon)) from exc
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise InvalidCoordinate("Coordinates must be finite numbers.")
    if not -90.0 <= lat <= 90.0:
        raise InvalidCoordinate("Latitude must be between -90 and 90 degrees.", latitude=lat)
    if not -180.0 <= lon <= 180.0:
        raise InvalidCoordinate("Longitude must be between -180 and 180 degrees.", longitude=lon)


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points.

    Args:
        lat1: latitude of the first point
        lon1: longitude of the first point
        lat2: latitude of the second point
        lon2: longitude of the second point

    Returns:
        distance in meters
    """
    validate_coordinate(lat1, lon1)
    validate_coordinate(lat2, lon2)

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_METERS * c


def is_within_radius(
    user_lat: float, user_lon: float, place_lat: float, place_lon: float, radius_meters: float = 100
) -> bool:
    distance = calculate_distance(user_lat, user_lon, place_lat, place_lon)
    return distance <= radius_meters


def check_geofence(
    claimed_lat: float,
    claimed_lon: float,
    target_lat: float,
    target_lon: float,
    radius_meters: float,
    accuracy_meters: float,
    max_accuracy_meters: float = 50,
) -> GeofenceResult:
    """
    Decide whether a claimed position counts as being at the target.

    A claim is accepted only when it lies within the radius and the device
    reported an accuracy no worse than ``max_accuracy_meters``. A poor
    accuracy fails the check no matter how close the point is.
    """
    if accuracy_meters is None or not math.isfinite(accuracy_meters) or accuracy_meters < 0:
        raise InvalidCoordinate("GPS accuracy must be a non-negative number.", accuracy=str(accuracy_meters))

    distance = calculate_distance(claimed_lat, claimed_lon, target_lat, target_lon)
    return GeofenceResult(
        distance_meters=distance,
        within_radius=distance <= radius_meters,
        accuracy_ok=accuracy_meters <= max_accuracy_meters,
    )


def implied_speed_kmh(
    from_lat: float,
    from_lon: float,
    from_time: datetime,
    to_lat: float,
    to_lon: float,
    to_time: datetime,
) -> float:
    """Travel speed needed to get between two timestamped fixes, in km/h."""
    distance = calculate_distance(from_lat, from_lon, to_lat, to_lon)
    elapsed = abs((to_time - from_time).total_seconds())
    if elapsed == 0:
        return 0.0 if distance == 0 else math.inf
    return (distance / 1000) / (elapsed / 3600)
