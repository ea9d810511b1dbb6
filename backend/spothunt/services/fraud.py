"""
Submission verdicts.

Checks run in a fixed order and the first failing one decides the outcome:

1. per-user rate limit       -> RateLimitExceeded (rejected)
2. challenge active window   -> ChallengeInactive (rejected)
3. geofence and accuracy     -> OutOfRange (rejected)
4. challenge already claimed -> DuplicateSubmission (rejected)
5. travel speed since the last accepted claim -> flagged
6. otherwise accepted

The rate limit counts every attempt, whatever happens after it. Rejections
are raised as ``SubmissionRejected`` subclasses. Risk signals are collected
separately; they are stored for reviewers and never change the verdict.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..core.clock import ensure_utc
from ..core.errors import ChallengeInactive, DuplicateSubmission, OutOfRange
from ..schemas.challenges import Challenge
from ..schemas.submissions import SubmissionStatus
from .geolocation import check_geofence, implied_speed_kmh
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

VELOCITY_REASON = "implausible_travel_speed"

# Emulator defaults and other coordinates that show up far more often than chance
KNOWN_SPOOF_COORDINATES: tuple[tuple[float, float], ...] = (
    (0.0, 0.0),
    (37.7749, -122.4194),
    (40.7128, -74.0060),
    (51.5074, -0.1278),
)
SPOOF_TOLERANCE_DEGREES = 0.0001
MIN_PLAUSIBLE_ACCURACY_METERS = 1.0

# Near-identical gaps between most consecutive submissions look scripted
REGULAR_INTERVAL_TOLERANCE_SECONDS = 5.0
REGULAR_INTERVAL_SHARE = 0.7
MIN_INTERVALS_FOR_PATTERN = 3


@dataclass(frozen=True)
class Verdict:
    status: SubmissionStatus
    reason: str | None = None
    distance_meters: float | None = None
    implied_speed_kmh: float | None = None


@dataclass(frozen=True)
class Claim:
    user_id: str
    latitude: float
    longitude: float
    accuracy: float
    received_at: datetime
    client_timestamp: datetime | None = None
    completed: frozenset[str] = field(default_factory=frozenset)
    last_location: dict[str, Any] | None = None
    # receipt times of the user's earlier submissions, oldest first
    recent_submissions: tuple[datetime, ...] = ()


def submission_intervals(claim: Claim) -> list[float]:
    times = [ensure_utc(at) for at in claim.recent_submissions] + [ensure_utc(claim.received_at)]
    return [(later - earlier).total_seconds() for earlier, later in zip(times, times[1:])]


def has_regular_pattern(intervals: list[float]) -> bool:
    if len(intervals) < MIN_INTERVALS_FOR_PATTERN:
        return False
    regular = sum(
        1
        for previous, current in zip(intervals, intervals[1:])
        if abs(current - previous) < REGULAR_INTERVAL_TOLERANCE_SECONDS
    )
    return regular > len(intervals) * REGULAR_INTERVAL_SHARE


def risk_signals(
    claim: Claim,
    clock_skew_tolerance_seconds: float,
    min_submission_interval_seconds: float = 60,
) -> list[str]:
    signals: list[str] = []
    for lat, lon in KNOWN_SPOOF_COORDINATES:
        if abs(claim.latitude - lat) < SPOOF_TOLERANCE_DEGREES and abs(claim.longitude - lon) < SPOOF_TOLERANCE_DEGREES:
            signals.append("known_spoof_location")
            break
    if claim.accuracy < MIN_PLAUSIBLE_ACCURACY_METERS:
        signals.append("perfect_accuracy")
    if claim.client_timestamp is not None:
        skew = abs((ensure_utc(claim.client_timestamp) - ensure_utc(claim.received_at)).total_seconds())
        if skew > clock_skew_tolerance_seconds:
            signals.append("clock_skew")

    intervals = submission_intervals(claim)
    if intervals and intervals[-1] < min_submission_interval_seconds:
        signals.append("rapid_submission")
    if has_regular_pattern(intervals):
        signals.append("regular_interval_pattern")
    return signals


class FraudScorer:
    def __init__(
        self,
        rate_limiter: RateLimiter,
        max_accuracy_meters: float = 50,
        max_travel_speed_kmh: float = 200,
        clock_skew_tolerance_seconds: float = 600,
        min_submission_interval_seconds: float = 60,
    ) -> None:
        self.rate_limiter = rate_limiter
        self.max_accuracy_meters = max_accuracy_meters
        self.max_travel_speed_kmh = max_travel_speed_kmh
        self.clock_skew_tolerance_seconds = clock_skew_tolerance_seconds
        self.min_submission_interval_seconds = min_submission_interval_seconds

    def signals(self, claim: Claim) -> list[str]:
        return risk_signals(claim, self.clock_skew_tolerance_seconds, self.min_submission_interval_seconds)

    async def evaluate(self, challenge: Challenge, claim: Claim) -> Verdict:
        """
        Run the check pipeline for one claim.

        Raises:
            RateLimitExceeded: the user's quota for the window is used up.
            ChallengeInactive: outside the challenge's active window.
            OutOfRange: outside the radius or accuracy worse than allowed.
            DuplicateSubmission: the user already completed this challenge.
        """
        # Consumes quota; every later rejection still counts against the user
        await self.rate_limiter.check_and_increment(claim.user_id, claim.received_at)

        if not challenge.is_active(claim.received_at):
            raise ChallengeInactive(challenge_id=challenge.id)

        geofence = check_geofence(
            claim.latitude,
            claim.longitude,
            challenge.latitude,
            challenge.longitude,
            challenge.radius_meters,
            claim.accuracy,
            self.max_accuracy_meters,
        )
        if not geofence.accepted:
            raise OutOfRange(
                "GPS accuracy is too low to verify the location."
                if geofence.within_radius
                else None,
                distance_meters=round(geofence.distance_meters, 1),
                radius_meters=challenge.radius_meters,
                accuracy_ok=geofence.accuracy_ok,
            )

        if challenge.id in claim.completed:
            raise DuplicateSubmission(challenge_id=challenge.id, distance_meters=round(geofence.distance_meters, 1))

        speed = self._speed_since_last(claim)
        if speed is not None and speed > self.max_travel_speed_kmh:
            logger.warning(
                "user=%s implied speed %.0f km/h exceeds %.0f km/h",
                claim.user_id,
                speed,
                self.max_travel_speed_kmh,
            )
            return Verdict(
                status=SubmissionStatus.flagged,
                reason=VELOCITY_REASON,
                distance_meters=geofence.distance_meters,
                implied_speed_kmh=speed,
            )

        return Verdict(
            status=SubmissionStatus.accepted,
            distance_meters=geofence.distance_meters,
            implied_speed_kmh=speed,
        )

    @staticmethod
    def _speed_since_last(claim: Claim) -> float | None:
        last = claim.last_location
        if not last:
            return None
        return implied_speed_kmh(
            last["latitude"],
            last["longitude"],
            ensure_utc(last["at"]),
            claim.latitude,
            claim.longitude,
            ensure_utc(claim.received_at),
        )


def storable_speed(speed: float | None) -> float | None:
    """Infinite speeds (same instant, different place) are stored as None plus the flag reason."""
    if speed is None or math.isinf(speed):
        return None
    return speed
