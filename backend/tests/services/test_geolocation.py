import math
from datetime import datetime, timedelta, timezone

import pytest

from backend.spothunt.core.errors import InvalidCoordinate
from backend.spothunt.services.geolocation import (
    calculate_distance,
    check_geofence,
    implied_speed_kmh,
    is_within_radius,
    validate_coordinate,
)
from backend.tests.helpers import DETROIT, north_of


def test_distance_to_self_is_zero():
    assert calculate_distance(*DETROIT, *DETROIT) == 0


def test_distance_is_symmetric():
    windsor = (42.3149, -83.0364)
    assert calculate_distance(*DETROIT, *windsor) == pytest.approx(calculate_distance(*windsor, *DETROIT))


def test_distance_detroit_to_chicago():
    chicago = (41.8781, -87.6298)
    assert calculate_distance(*DETROIT, *chicago) == pytest.approx(381_400, rel=0.005)


def test_within_radius_boundary():
    lat, lon = north_of(*DETROIT, 100)
    assert is_within_radius(lat, lon, *DETROIT, radius_meters=100.001)
    assert not is_within_radius(*north_of(*DETROIT, 101), *DETROIT, radius_meters=100)


@pytest.mark.parametrize(
    "lat, lon",
    [(90.5, 0), (-91, 0), (0, 180.01), (0, -181), (math.nan, 0), (0, math.inf)],
)
def test_invalid_coordinates_rejected(lat, lon):
    with pytest.raises(InvalidCoordinate) as exc_info:
        validate_coordinate(lat, lon)
    assert exc_info.value.status_code == 422
    assert exc_info.value.detail["code"] == "invalid_coordinate"


def test_poles_and_antimeridian_are_valid():
    validate_coordinate(90, 180)
    validate_coordinate(-90, -180)


class TestCheckGeofence:
    def test_claim_150m_away_is_outside(self):
        result = check_geofence(*north_of(*DETROIT, 150), *DETROIT, radius_meters=100, accuracy_meters=10)
        assert result.distance_meters == pytest.approx(150, abs=0.01)
        assert not result.within_radius
        assert not result.accepted

    def test_claim_50m_away_with_30m_accuracy_is_accepted(self):
        result = check_geofence(*north_of(*DETROIT, 50), *DETROIT, radius_meters=100, accuracy_meters=30)
        assert result.within_radius
        assert result.accuracy_ok
        assert result.accepted

    def test_poor_accuracy_fails_even_at_the_target(self):
        result = check_geofence(*DETROIT, *DETROIT, radius_meters=100, accuracy_meters=80)
        assert result.within_radius
        assert not result.accuracy_ok
        assert not result.accepted

    def test_is_idempotent(self):
        claim = north_of(*DETROIT, 42)
        first = check_geofence(*claim, *DETROIT, radius_meters=100, accuracy_meters=5)
        second = check_geofence(*claim, *DETROIT, radius_meters=100, accuracy_meters=5)
        assert first == second

    @pytest.mark.parametrize("accuracy", [-1, math.nan])
    def test_bad_accuracy_is_invalid_input(self, accuracy):
        with pytest.raises(InvalidCoordinate):
            check_geofence(*DETROIT, *DETROIT, radius_meters=100, accuracy_meters=accuracy)


def test_implied_speed_500km_in_a_minute():
    t0 = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
    far = north_of(*DETROIT, 500_000)
    speed = implied_speed_kmh(*DETROIT, t0, *far, t0 + timedelta(seconds=60))
    assert speed == pytest.approx(30_000, rel=1e-6)


def test_implied_speed_same_instant():
    t0 = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
    assert implied_speed_kmh(*DETROIT, t0, *DETROIT, t0) == 0
    assert implied_speed_kmh(*DETROIT, t0, *north_of(*DETROIT, 10), t0) == math.inf
