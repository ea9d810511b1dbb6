"""
Submission engine.

``SubmissionEngine`` owns the rate limiter, fraud scorer and leaderboard for
the process and is the single entry point for proof intake and standings.
It keeps no state of its own between calls: everything shared lives in
MongoDB (records) or Redis (counters, rankings) and changes only through
those stores' atomic operations.
"""

from __future__ import annotations

import logging
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from redis.asyncio import Redis

from ..core.clock import Clock, utcnow
from ..core.config import Settings, settings
from ..core.errors import (
    ChallengeNotFound,
    DuplicateSubmission,
    InvalidChallenge,
    InvalidCoordinate,
    SubmissionNotFound,
    SubmissionRejected,
)
from ..db.guard import guarded
from ..schemas.challenges import Challenge, ChallengeIn, Difficulty
from ..schemas.leaderboard import LeaderboardOut
from ..schemas.submissions import SubmissionCreate, SubmissionOut, SubmissionResult, SubmissionStatus
from ..schemas.user import BadgeAward, MilestoneProgress, UserStanding
from . import challenges as challenge_service
from . import users as profile_service
from .badges import milestone_progress
from .fraud import Claim, FraudScorer, Verdict, storable_speed
from .geolocation import calculate_distance, validate_coordinate
from .leaderboard import GLOBAL_SCOPE, Leaderboard, category_scope, is_live, period_scopes, resolve_scope
from .rate_limiter import RateLimiter
from .rewards import award_badges, grant_rewards

logger = logging.getLogger(__name__)

SUBMISSIONS_COL = "submissions"
# history window for the timing risk signals
RECENT_SUBMISSIONS = 10


class SubmissionEngine:
    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        redis: Redis,
        config: Settings = settings,
        clock: Clock = utcnow,
    ) -> None:
        self.db = db
        self.redis = redis
        self.clock = clock
        self.rate_limiter = RateLimiter(
            redis,
            daily_cap=config.daily_submission_cap,
            hourly_cap=config.hourly_submission_cap,
        )
        self.scorer = FraudScorer(
            self.rate_limiter,
            max_accuracy_meters=config.max_accuracy_meters,
            max_travel_speed_kmh=config.max_travel_speed_kmh,
            clock_skew_tolerance_seconds=config.clock_skew_tolerance_seconds,
            min_submission_interval_seconds=config.min_submission_interval_seconds,
        )
        self.leaderboard = Leaderboard(redis)

    # -- intake -------------------------------------------------------------

    async def submit_proof(self, user_id: str, payload: SubmissionCreate) -> SubmissionResult:
        """
        Verify one proof and apply its consequences.

        Malformed coordinates, unknown challenges and challenges with a broken
        target raise before anything is stored. Every other outcome is
        recorded as a submission whose status leaves ``pending`` exactly once;
        rejections are returned as a ``rejected`` result rather than raised.
        """
        validate_coordinate(payload.latitude, payload.longitude)
        if payload.accuracy < 0:
            raise InvalidCoordinate("GPS accuracy must be a non-negative number.", accuracy=payload.accuracy)

        challenge = await challenge_service.get_challenge(self.db, payload.challenge_id)
        if challenge is None:
            raise ChallengeNotFound(challenge_id=payload.challenge_id)
        try:
            validate_coordinate(challenge.latitude, challenge.longitude)
        except InvalidCoordinate as exc:
            logger.error("challenge %s has an invalid target: %s", challenge.id, exc.message)
            raise InvalidChallenge("Challenge target is misconfigured.", challenge_id=challenge.id) from exc

        received_at = self.clock()
        profile = await profile_service.ensure_profile(self.db, self.redis, user_id, received_at)
        claim = Claim(
            user_id=user_id,
            latitude=payload.latitude,
            longitude=payload.longitude,
            accuracy=payload.accuracy,
            received_at=received_at,
            client_timestamp=payload.client_timestamp,
            completed=frozenset((profile.get("completed") or {}).keys()),
            last_location=profile.get("last_location"),
            recent_submissions=await self._recent_submission_times(user_id),
        )
        signals = self.scorer.signals(claim)
        if signals:
            logger.warning("user=%s challenge=%s risk signals: %s", user_id, challenge.id, ", ".join(signals))

        submission_id = await self._insert_pending(user_id, challenge, payload, claim, signals)

        try:
            verdict = await self.scorer.evaluate(challenge, claim)
        except DuplicateSubmission as exc:
            await self._complete_prior_claim(user_id, challenge)
            return await self._reject(submission_id, exc)
        except SubmissionRejected as exc:
            return await self._reject(submission_id, exc)

        if verdict.status is SubmissionStatus.flagged:
            return await self._finalize(submission_id, verdict)
        return await self._accept(submission_id, user_id, challenge, claim, verdict)

    async def _recent_submission_times(self, user_id: str) -> tuple:
        cursor = (
            self.db[SUBMISSIONS_COL]
            .find({"user_id": user_id}, {"received_at": 1})
            .sort("received_at", -1)
            .limit(RECENT_SUBMISSIONS)
        )
        docs = await guarded(cursor.to_list(length=RECENT_SUBMISSIONS), op="submissions.recent")
        return tuple(doc["received_at"] for doc in reversed(docs))

    async def _insert_pending(
        self,
        user_id: str,
        challenge: Challenge,
        payload: SubmissionCreate,
        claim: Claim,
        signals: list[str],
    ) -> ObjectId:
        doc = {
            "challenge_id": challenge.id,
            "user_id": user_id,
            "category": challenge.category,
            "difficulty": challenge.difficulty.value,
            "latitude": payload.latitude,
            "longitude": payload.longitude,
            "accuracy": payload.accuracy,
            "proof_ref": payload.proof_ref,
            "client_timestamp": payload.client_timestamp,
            "received_at": claim.received_at,
            "status": SubmissionStatus.pending.value,
            "risk_signals": signals,
            "points_awarded": 0,
            "new_badges": [],
        }
        result = await guarded(self.db[SUBMISSIONS_COL].insert_one(doc), op="submissions.insert")
        return result.inserted_id

    async def _transition(self, submission_id: ObjectId, fields: dict[str, Any]) -> dict | None:
        """Move a pending submission to its terminal status. ``None`` if it already left pending."""
        return await guarded(
            self.db[SUBMISSIONS_COL].find_one_and_update(
                {"_id": submission_id, "status": SubmissionStatus.pending.value},
                {"$set": {**fields, "decided_at": self.clock()}},
                return_document=ReturnDocument.AFTER,
            ),
            op="submissions.transition",
        )

    async def _stored_outcome(self, submission_id: ObjectId) -> SubmissionResult:
        doc = await guarded(self.db[SUBMISSIONS_COL].find_one({"_id": submission_id}), op="submissions.get")
        logger.warning("submission %s was already processed (status=%s)", submission_id, doc and doc["status"])
        return _result_from_doc(doc)

    async def _reject(self, submission_id: ObjectId, exc: SubmissionRejected) -> SubmissionResult:
        fields: dict[str, Any] = {"status": SubmissionStatus.rejected.value, "reason": exc.code}
        if "distance_meters" in exc.context:
            fields["distance_meters"] = exc.context["distance_meters"]
        doc = await self._transition(submission_id, fields)
        if doc is None:
            return await self._stored_outcome(submission_id)
        logger.info("submission %s rejected: %s", submission_id, exc.code)
        return _result_from_doc(doc)

    async def _finalize(self, submission_id: ObjectId, verdict: Verdict) -> SubmissionResult:
        doc = await self._transition(
            submission_id,
            {
                "status": verdict.status.value,
                "reason": verdict.reason,
                "distance_meters": verdict.distance_meters,
                "implied_speed_kmh": storable_speed(verdict.implied_speed_kmh),
            },
        )
        if doc is None:
            return await self._stored_outcome(submission_id)
        logger.info("submission %s %s (reason=%s)", submission_id, verdict.status.value, verdict.reason)
        return _result_from_doc(doc)

    async def _accept(
        self,
        submission_id: ObjectId,
        user_id: str,
        challenge: Challenge,
        claim: Claim,
        verdict: Verdict,
    ) -> SubmissionResult:
        scopes = [category_scope(challenge.category), *period_scopes(claim.received_at)]
        # The conditional profile credit is what makes acceptance exactly-once per user and challenge
        outcome = await grant_rewards(
            self.db,
            user_id,
            str(submission_id),
            challenge,
            scopes,
            claim.latitude,
            claim.longitude,
            claim.received_at,
        )
        if outcome is None:
            logger.warning("user=%s lost a race for challenge=%s", user_id, challenge.id)
            await self._complete_prior_claim(user_id, challenge)
            return await self._reject(submission_id, DuplicateSubmission(challenge_id=challenge.id))

        doc = await self._transition(
            submission_id,
            {
                "status": SubmissionStatus.accepted.value,
                "reason": None,
                "distance_meters": verdict.distance_meters,
                "implied_speed_kmh": storable_speed(verdict.implied_speed_kmh),
                "points_awarded": outcome.points_awarded,
                "new_badges": outcome.new_badges,
            },
        )
        if doc is None and outcome.new_badges:
            # a concurrent duplicate already completed this acceptance from the profile credit
            await guarded(
                self.db[SUBMISSIONS_COL].update_one(
                    {"_id": submission_id, "status": SubmissionStatus.accepted.value},
                    {"$set": {"new_badges": outcome.new_badges}},
                ),
                op="submissions.badges",
            )
        await self._publish_scores(user_id, outcome.profile, scopes)
        logger.info("submission %s accepted (+%d points)", submission_id, outcome.points_awarded)
        return SubmissionResult(
            submission_id=str(submission_id),
            status=SubmissionStatus.accepted,
            points_awarded=outcome.points_awarded,
            new_badges=outcome.new_badges,
        )

    async def _publish_scores(self, user_id: str, profile: dict, scopes: list[str]) -> None:
        """Raise the user's leaderboard entries to the totals held on the profile."""
        now = self.clock()
        scope_points = profile.get("scope_points") or {}
        totals = {GLOBAL_SCOPE: int(profile.get("points", 0))}
        for scope in scopes:
            if is_live(scope, now):
                totals[scope] = int(scope_points.get(scope, 0))
        await self.leaderboard.record(user_id, int(profile["join_seq"]), totals)

    async def _complete_prior_claim(self, user_id: str, challenge: Challenge) -> None:
        """
        Finish an acceptance that was cut short after the profile credit.

        The profile's ``completed`` entry names the submission that earned the
        points. If that submission is still pending it is accepted now; the
        leaderboard is raised to the profile totals either way, so retrying a
        request that failed part-way leaves neither the record nor the
        rankings behind the profile.
        """
        profile = await profile_service.get_profile(self.db, user_id)
        prior_id = ((profile or {}).get("completed") or {}).get(challenge.id)
        if not prior_id or not ObjectId.is_valid(prior_id):
            return
        prior = await guarded(self.db[SUBMISSIONS_COL].find_one({"_id": ObjectId(prior_id)}), op="submissions.get")
        if prior is None:
            return

        if prior["status"] == SubmissionStatus.pending.value:
            new_badges = await award_badges(self.db, user_id, profile, self.clock())
            done = await self._transition(
                prior["_id"],
                {
                    "status": SubmissionStatus.accepted.value,
                    "reason": None,
                    "distance_meters": calculate_distance(
                        prior["latitude"], prior["longitude"], challenge.latitude, challenge.longitude
                    ),
                    "points_awarded": Difficulty(prior["difficulty"]).points,
                    "new_badges": new_badges,
                },
            )
            if done is not None:
                logger.warning("completed interrupted acceptance of submission %s", prior_id)

        scopes = [category_scope(prior["category"]), *period_scopes(prior["received_at"])]
        await self._publish_scores(user_id, profile, scopes)

    # -- reads --------------------------------------------------------------

    async def get_leaderboard(self, scope: str = GLOBAL_SCOPE, limit: int = 10) -> LeaderboardOut:
        """Top ``limit`` rows; ``weekly``/``monthly`` select the current period. Unknown scopes raise ValueError."""
        resolved = resolve_scope(scope, self.clock())
        return LeaderboardOut(scope=resolved, items=await self.leaderboard.top(resolved, limit))

    async def get_user_standing(self, user_id: str) -> UserStanding:
        profile = await profile_service.get_profile(self.db, user_id) or {}
        points = int(profile.get("points", 0))
        usage = await self.rate_limiter.usage(user_id, self.clock())
        return UserStanding(
            user_id=user_id,
            score=points,
            rank=await self.leaderboard.rank_of(user_id),
            badges=[BadgeAward(**badge) for badge in profile.get("badges", [])],
            accepted_count=int(profile.get("accepted_count", 0)),
            remaining_submissions_today=usage.remaining_today,
            milestone=MilestoneProgress(**milestone_progress(points)),
        )

    async def get_submission(self, submission_id: str) -> SubmissionOut:
        try:
            object_id = ObjectId(submission_id)
        except (InvalidId, TypeError) as exc:
            raise SubmissionNotFound(submission_id=submission_id) from exc
        doc = await guarded(self.db[SUBMISSIONS_COL].find_one({"_id": object_id}), op="submissions.get")
        if not doc:
            raise SubmissionNotFound(submission_id=submission_id)
        return SubmissionOut.from_mongo(doc)

    # -- admin --------------------------------------------------------------

    async def publish_challenge(self, challenge_id: str, payload: ChallengeIn) -> Challenge:
        return await challenge_service.publish_challenge(self.db, challenge_id, payload, self.clock())

    async def list_flagged(self, limit: int = 50) -> list[SubmissionOut]:
        cursor = (
            self.db[SUBMISSIONS_COL]
            .find({"status": SubmissionStatus.flagged.value})
            .sort("received_at", 1)
            .limit(limit)
        )
        docs = await guarded(cursor.to_list(length=limit), op="submissions.flagged")
        return [SubmissionOut.from_mongo(doc) for doc in docs]

    async def reconcile_user(self, user_id: str) -> UserStanding:
        """
        Rebuild a user's profile totals and leaderboard entries from their
        accepted submissions.

        Profile counters only move up; the leaderboard is overwritten with
        the reconciled values so a lost or partial update cannot persist.
        """
        profile = await profile_service.get_profile(self.db, user_id)
        if profile is None:
            return await self.get_user_standing(user_id)

        now = self.clock()
        totals = await profile_service.accepted_totals(self.db, user_id)
        profile = await profile_service.apply_totals(self.db, user_id, totals, now) or profile
        await award_badges(self.db, user_id, profile, now)

        scores = {
            scope: int(pts) for scope, pts in (profile.get("scope_points") or {}).items() if is_live(scope, now)
        }
        scores[GLOBAL_SCOPE] = int(profile.get("points", 0))
        await self.leaderboard.set_points(user_id, int(profile["join_seq"]), scores)
        logger.info("reconciled user=%s points=%d", user_id, scores[GLOBAL_SCOPE])
        return await self.get_user_standing(user_id)


def _result_from_doc(doc: dict) -> SubmissionResult:
    return SubmissionResult(
        submission_id=str(doc["_id"]),
        status=doc["status"],
        reason=doc.get("reason"),
        points_awarded=int(doc.get("points_awarded", 0)),
        new_badges=list(doc.get("new_badges", [])),
    )
