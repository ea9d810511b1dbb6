from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from redis.asyncio import Redis

from ..core.clock import ensure_utc
from ..core.errors import RateLimitExceeded
from ..db.guard import guarded

logger = logging.getLogger(__name__)

DAY_KEY_PREFIX = "ratelimit:day:"
HOUR_KEY_PREFIX = "ratelimit:hour:"

# KEYS: day counter, hour counter
# ARGV: daily cap, hourly cap (0 = off), day expiry (unix ts), hour expiry (unix ts)
# Returns {0, day, hour} on success, {1, day, hour} if the day cap is hit,
# {2, day, hour} if the hour cap is hit. Nothing is written on failure.
CHECK_AND_INCREMENT_LUA = """
local day = tonumber(redis.call('GET', KEYS[1]) or '0')
local hour = tonumber(redis.call('GET', KEYS[2]) or '0')
if day >= tonumber(ARGV[1]) then
    return {1, day, hour}
end
local hourly_cap = tonumber(ARGV[2])
if hourly_cap > 0 and hour >= hourly_cap then
    return {2, day, hour}
end
day = redis.call('INCR', KEYS[1])
redis.call('EXPIREAT', KEYS[1], ARGV[3])
hour = redis.call('INCR', KEYS[2])
redis.call('EXPIREAT', KEYS[2], ARGV[4])
return {0, day, hour}
"""


@dataclass(frozen=True)
class RateLimitUsage:
    day_count: int
    hour_count: int
    daily_cap: int
    day_resets_at: datetime

    @property
    def remaining_today(self) -> int:
        return max(self.daily_cap - self.day_count, 0)


def day_window_end(now: datetime) -> datetime:
    now = ensure_utc(now)
    return datetime(now.year, now.month, now.day, tzinfo=timezone.utc) + timedelta(days=1)


def hour_window_end(now: datetime) -> datetime:
    now = ensure_utc(now)
    return datetime(now.year, now.month, now.day, now.hour, tzinfo=timezone.utc) + timedelta(hours=1)


def _day_key(user_id: str, now: datetime) -> str:
    return f"{DAY_KEY_PREFIX}{user_id}:{ensure_utc(now):%Y%m%d}"


def _hour_key(user_id: str, now: datetime) -> str:
    return f"{HOUR_KEY_PREFIX}{user_id}:{ensure_utc(now):%Y%m%d%H}"


class RateLimiter:
    """Per-user submission counters over calendar-day and hour windows (UTC).

    Counters live only in Redis and expire at their window boundary, so a
    new day or hour starts from zero without any cleanup job.
    """

    def __init__(self, redis: Redis, daily_cap: int = 10, hourly_cap: int = 0) -> None:
        self.redis = redis
        self.daily_cap = daily_cap
        self.hourly_cap = hourly_cap
        self._script = redis.register_script(CHECK_AND_INCREMENT_LUA)

    async def check_and_increment(self, user_id: str, now: datetime) -> RateLimitUsage:
        day_end = day_window_end(now)
        hour_end = hour_window_end(now)
        outcome, day_count, hour_count = await guarded(
            self._script(
                keys=[_day_key(user_id, now), _hour_key(user_id, now)],
                args=[self.daily_cap, self.hourly_cap, int(day_end.timestamp()), int(hour_end.timestamp())],
            ),
            op="ratelimit.check_and_increment",
        )
        outcome, day_count, hour_count = int(outcome), int(day_count), int(hour_count)

        if outcome == 1:
            logger.info("daily cap reached for user=%s (%d/%d)", user_id, day_count, self.daily_cap)
            raise RateLimitExceeded(window="day", limit=self.daily_cap, resets_at=day_end.isoformat())
        if outcome == 2:
            logger.info("hourly cap reached for user=%s (%d/%d)", user_id, hour_count, self.hourly_cap)
            raise RateLimitExceeded(window="hour", limit=self.hourly_cap, resets_at=hour_end.isoformat())

        return RateLimitUsage(
            day_count=day_count,
            hour_count=hour_count,
            daily_cap=self.daily_cap,
            day_resets_at=day_end,
        )

    async def usage(self, user_id: str, now: datetime) -> RateLimitUsage:
        day_raw, hour_raw = await guarded(
            self.redis.mget(_day_key(user_id, now), _hour_key(user_id, now)),
            op="ratelimit.usage",
        )
        return RateLimitUsage(
            day_count=int(day_raw or 0),
            hour_count=int(hour_raw or 0),
            daily_cap=self.daily_cap,
            day_resets_at=day_window_end(now),
        )
