from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from backend.spothunt.core.config import settings
from backend.spothunt.services.geolocation import EARTH_RADIUS_METERS

DETROIT = (42.3314, -83.0458)
METERS_PER_DEGREE_LAT = EARTH_RADIUS_METERS * math.pi / 180


def north_of(lat: float, lon: float, meters: float) -> tuple[float, float]:
    """Point ``meters`` due north; haversine distance back to the origin is exactly ``meters``."""
    return lat + meters / METERS_PER_DEGREE_LAT, lon


class FakeClock:
    """
    Manually advanced clock.

    Starts at the real current time: Redis expiries are absolute timestamps
    and the in-memory Redis drops keys whose expiry is already in the past.
    """

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def make_token(user_id: str, **claims: Any) -> str:
    payload = {"sub": user_id, "type": "access", **claims}
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
