"""
Ranked leaderboards backed by Redis sorted sets.

Each member's sorted-set score packs two numbers into one exact double:

    points * 2**28 + (2**28 - 1 - join_seq)

so Redis' own ordering is (points desc, account creation asc) with no ties.
``join_seq`` is the monotonically increasing account sequence assigned when a
profile is created. Doubles hold integers exactly up to 2**53, which leaves
2**25 - 1 points per user.

Scopes:

    global               all-time points
    category:<name>      all-time points earned in one category
    weekly:<YYYY>-W<ww>  points earned in one ISO week (UTC)
    monthly:<YYYY>-<mm>  points earned in one calendar month (UTC)

Period boards expire a while after their period ends.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone

from redis.asyncio import Redis

from ..core.clock import ensure_utc
from ..db.guard import guarded
from ..schemas.challenges import CATEGORY_PATTERN
from ..schemas.leaderboard import LeaderboardRow

logger = logging.getLogger(__name__)

TIE_BITS = 28
TIE_FACTOR = 1 << TIE_BITS
MAX_JOIN_SEQ = TIE_FACTOR - 1
MAX_POINTS = (1 << (53 - TIE_BITS)) - 1

GLOBAL_SCOPE = "global"
CATEGORY_SCOPE_PREFIX = "category:"
WEEKLY_SCOPE_PREFIX = "weekly:"
MONTHLY_SCOPE_PREFIX = "monthly:"
KEY_PREFIX = "leaderboard:"

PERIOD_RETENTION = timedelta(days=31)

_WEEKLY_RE = re.compile(r"^weekly:(\d{4})-W(0[1-9]|[1-4][0-9]|5[0-3])$")
_MONTHLY_RE = re.compile(r"^monthly:(\d{4})-(0[1-9]|1[0-2])$")


def category_scope(category: str) -> str:
    return f"{CATEGORY_SCOPE_PREFIX}{category}"


def weekly_scope(now: datetime) -> str:
    year, week, _ = ensure_utc(now).isocalendar()
    return f"{WEEKLY_SCOPE_PREFIX}{year}-W{week:02d}"


def monthly_scope(now: datetime) -> str:
    now = ensure_utc(now)
    return f"{MONTHLY_SCOPE_PREFIX}{now.year}-{now.month:02d}"


def period_scopes(now: datetime) -> list[str]:
    return [weekly_scope(now), monthly_scope(now)]


def period_end(scope: str) -> datetime | None:
    """End of the period a weekly/monthly scope covers; ``None`` for all-time scopes."""
    match = _WEEKLY_RE.match(scope)
    if match:
        start = datetime.strptime(f"{match.group(1)}-W{match.group(2)}-1", "%G-W%V-%u")
        return start.replace(tzinfo=timezone.utc) + timedelta(days=7)
    match = _MONTHLY_RE.match(scope)
    if match:
        year, month = int(match.group(1)), int(match.group(2))
        if month == 12:
            return datetime(year + 1, 1, 1, tzinfo=timezone.utc)
        return datetime(year, month + 1, 1, tzinfo=timezone.utc)
    return None


def scope_expiry(scope: str) -> datetime | None:
    end = period_end(scope)
    return None if end is None else end + PERIOD_RETENTION


def is_live(scope: str, now: datetime) -> bool:
    """False once a period board is past its retention; writing to it would resurrect it."""
    expiry = scope_expiry(scope)
    return expiry is None or expiry > ensure_utc(now)


def validate_scope(scope: str) -> str:
    if scope == GLOBAL_SCOPE:
        return scope
    if scope.startswith(CATEGORY_SCOPE_PREFIX) and re.match(CATEGORY_PATTERN, scope[len(CATEGORY_SCOPE_PREFIX):]):
        return scope
    if _WEEKLY_RE.match(scope) or _MONTHLY_RE.match(scope):
        return scope
    raise ValueError(f"unknown leaderboard scope: {scope!r}")


def resolve_scope(scope: str, now: datetime) -> str:
    """Accept ``weekly``/``monthly`` as shorthand for the current period."""
    if scope == "weekly":
        return weekly_scope(now)
    if scope == "monthly":
        return monthly_scope(now)
    return validate_scope(scope)


def tie_component(join_seq: int) -> int:
    if not 0 <= join_seq <= MAX_JOIN_SEQ:
        raise ValueError(f"join_seq out of range: {join_seq}")
    return MAX_JOIN_SEQ - join_seq


def encode_score(points: int, join_seq: int) -> int:
    if not 0 <= points <= MAX_POINTS:
        raise ValueError(f"points out of range: {points}")
    return points * TIE_FACTOR + tie_component(join_seq)


def decode_points(raw_score: float) -> int:
    return int(raw_score) // TIE_FACTOR


class Leaderboard:
    """Global, category and period rankings.

    Holds nothing but the Redis client: every read is a fresh snapshot from
    the store and there is no local copy to drift out of sync.
    """

    def __init__(self, redis: Redis, key_prefix: str = KEY_PREFIX) -> None:
        self.redis = redis
        self.key_prefix = key_prefix

    def _key(self, scope: str) -> str:
        return f"{self.key_prefix}{validate_scope(scope)}"

    def _expire(self, pipe, key: str, scope: str) -> None:
        expiry = scope_expiry(scope)
        if expiry is not None:
            pipe.expireat(key, int(expiry.timestamp()))

    async def record(self, user_id: str, join_seq: int, points_by_scope: dict[str, int]) -> None:
        """Raise the user's score in each scope to the given totals, as one MULTI/EXEC block.

        ZADD GT never lowers a score, and the encoded score grows with points,
        so writing the same totals twice, or an older total after a newer
        one, changes nothing. Readers see all scopes move together.
        """
        scores = {scope: points for scope, points in points_by_scope.items() if points > 0}
        if not scores:
            return
        async with self.redis.pipeline(transaction=True) as pipe:
            for scope, points in scores.items():
                key = self._key(scope)
                pipe.zadd(key, {user_id: encode_score(points, join_seq)}, gt=True)
                self._expire(pipe, key, scope)
            await guarded(pipe.execute(), op="leaderboard.record")
        logger.debug("leaderboard totals for user=%s: %s", user_id, scores)

    async def set_points(self, user_id: str, join_seq: int, points_by_scope: dict[str, int]) -> None:
        """Overwrite the user's score in each given scope (used when reconciling)."""
        async with self.redis.pipeline(transaction=True) as pipe:
            for scope, points in points_by_scope.items():
                key = self._key(scope)
                if points > 0:
                    pipe.zadd(key, {user_id: encode_score(points, join_seq)})
                    self._expire(pipe, key, scope)
                else:
                    pipe.zrem(key, user_id)
            await guarded(pipe.execute(), op="leaderboard.set_points")

    async def top(self, scope: str = GLOBAL_SCOPE, limit: int = 10) -> list[LeaderboardRow]:
        if limit <= 0:
            return []
        rows = await guarded(
            self.redis.zrevrange(self._key(scope), 0, limit - 1, withscores=True),
            op="leaderboard.top",
        )
        return [
            LeaderboardRow(user_id=member, score=decode_points(score), rank=index)
            for index, (member, score) in enumerate(rows, start=1)
        ]

    async def rank_of(self, user_id: str, scope: str = GLOBAL_SCOPE) -> int | None:
        rank = await guarded(self.redis.zrevrank(self._key(scope), user_id), op="leaderboard.rank_of")
        return None if rank is None else int(rank) + 1

    async def entry(self, user_id: str, scope: str = GLOBAL_SCOPE) -> LeaderboardRow | None:
        """Rank and score read in one transaction so both come from the same state."""
        key = self._key(scope)
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.zrevrank(key, user_id)
            pipe.zscore(key, user_id)
            rank, score = await guarded(pipe.execute(), op="leaderboard.entry")
        if rank is None or score is None:
            return None
        return LeaderboardRow(user_id=user_id, score=decode_points(score), rank=int(rank) + 1)

    async def size(self, scope: str = GLOBAL_SCOPE) -> int:
        return int(await guarded(self.redis.zcard(self._key(scope)), op="leaderboard.size"))
