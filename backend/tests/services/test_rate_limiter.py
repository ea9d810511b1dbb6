import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from backend.spothunt.core.errors import RateLimitExceeded
from backend.spothunt.services.rate_limiter import RateLimiter, day_window_end, hour_window_end


def test_window_ends_are_utc_boundaries():
    now = datetime(2026, 3, 14, 15, 9, 26, tzinfo=timezone.utc)
    assert day_window_end(now) == datetime(2026, 3, 15, tzinfo=timezone.utc)
    assert hour_window_end(now) == datetime(2026, 3, 14, 16, tzinfo=timezone.utc)


def test_window_end_converts_other_timezones():
    # 20:00 in UTC-5 is already the next day in UTC
    eastern = timezone(timedelta(hours=-5))
    now = datetime(2026, 3, 14, 20, 0, tzinfo=eastern)
    assert day_window_end(now) == datetime(2026, 3, 16, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_eleventh_submission_in_a_day_is_refused(fake_redis, clock):
    limiter = RateLimiter(fake_redis, daily_cap=10)
    for expected in range(1, 11):
        usage = await limiter.check_and_increment("u1", clock())
        assert usage.day_count == expected

    with pytest.raises(RateLimitExceeded) as exc_info:
        await limiter.check_and_increment("u1", clock())
    assert exc_info.value.status_code == 429
    assert exc_info.value.detail["window"] == "day"
    assert exc_info.value.detail["limit"] == 10

    # a refused attempt is not counted
    usage = await limiter.usage("u1", clock())
    assert usage.day_count == 10
    assert usage.remaining_today == 0


@pytest.mark.asyncio
async def test_counter_resets_on_the_next_day(fake_redis, clock):
    limiter = RateLimiter(fake_redis, daily_cap=2)
    await limiter.check_and_increment("u1", clock())
    await limiter.check_and_increment("u1", clock())
    with pytest.raises(RateLimitExceeded):
        await limiter.check_and_increment("u1", clock())

    tomorrow = clock.advance(days=1)
    usage = await limiter.check_and_increment("u1", tomorrow)
    assert usage.day_count == 1


@pytest.mark.asyncio
async def test_users_are_counted_separately(fake_redis, clock):
    limiter = RateLimiter(fake_redis, daily_cap=1)
    await limiter.check_and_increment("u1", clock())
    usage = await limiter.check_and_increment("u2", clock())
    assert usage.day_count == 1


@pytest.mark.asyncio
async def test_hourly_cap(fake_redis, clock):
    limiter = RateLimiter(fake_redis, daily_cap=10, hourly_cap=2)
    await limiter.check_and_increment("u1", clock())
    await limiter.check_and_increment("u1", clock())
    with pytest.raises(RateLimitExceeded) as exc_info:
        await limiter.check_and_increment("u1", clock())
    assert exc_info.value.detail["window"] == "hour"

    usage = await limiter.check_and_increment("u1", clock.advance(hours=1))
    assert usage.hour_count == 1


@pytest.mark.asyncio
async def test_counters_expire_at_window_end(fake_redis, clock):
    limiter = RateLimiter(fake_redis, daily_cap=10)
    await limiter.check_and_increment("u1", clock())
    keys = await fake_redis.keys("ratelimit:day:u1:*")
    assert len(keys) == 1
    expires_in = await fake_redis.ttl(keys[0])
    assert 0 < expires_in <= 24 * 3600


@pytest.mark.asyncio
async def test_concurrent_requests_never_exceed_the_cap(fake_redis, clock):
    limiter = RateLimiter(fake_redis, daily_cap=10)
    results = await asyncio.gather(
        *(limiter.check_and_increment("u1", clock()) for _ in range(12)),
        return_exceptions=True,
    )

    allowed = [result for result in results if not isinstance(result, BaseException)]
    refused = [result for result in results if isinstance(result, RateLimitExceeded)]
    assert len(allowed) == 10
    assert len(refused) == 2
    assert sorted(usage.day_count for usage in allowed) == list(range(1, 11))
    assert (await limiter.usage("u1", clock())).day_count == 10
