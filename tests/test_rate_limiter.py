"""Tests for the Redis-backed sliding window rate limiter."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest
from redis.exceptions import ResponseError

from authguard.errors import CounterStoreError
from authguard.security.redis_rate_limiter import RedisSlidingWindowRateLimiter

pytestmark = pytest.mark.anyio

WINDOW_MS = 60_000


@pytest.fixture()
def limiter(redis_client, clock) -> RedisSlidingWindowRateLimiter:
    return RedisSlidingWindowRateLimiter(redis_client, key_prefix="test", clock=clock)


async def test_redis_rate_limiter_allows_within_threshold(limiter):
    results = [await limiter.check("login:ip:1.2.3.4", WINDOW_MS, 3) for _ in range(3)]

    assert [r.allowed for r in results] == [True, True, True]
    assert [r.total_hits for r in results] == [1, 2, 3]
    assert [r.remaining_attempts for r in results] == [2, 1, 0]


async def test_redis_rate_limiter_blocks_excess(limiter):
    key = "login:ip:1.2.3.4"
    assert (await limiter.check(key, WINDOW_MS, 2)).allowed
    assert (await limiter.check(key, WINDOW_MS, 2)).allowed

    denied = await limiter.check(key, WINDOW_MS, 2)
    assert not denied.allowed
    assert denied.remaining_attempts == 0
    assert denied.total_hits == 3


async def test_redis_rate_limiter_expires_entries(limiter, clock):
    key = "login:ip:1.2.3.4"
    assert (await limiter.check(key, WINDOW_MS, 1)).allowed
    assert not (await limiter.check(key, WINDOW_MS, 1)).allowed

    clock.advance(WINDOW_MS / 1000)
    fresh = await limiter.check(key, WINDOW_MS, 1)
    assert fresh.allowed
    assert fresh.total_hits == 1


async def test_oldest_hit_ageing_out_frees_a_slot(limiter, clock):
    key = "login:email:a@example.com"
    start = clock.now
    await limiter.check(key, 10_000, 2)
    clock.advance(6)
    second = await limiter.check(key, 10_000, 2)
    assert second.reset_time == datetime.fromtimestamp(start + 10, tz=timezone.utc)
    assert second.retry_after_seconds == 4

    clock.advance(4)
    third = await limiter.check(key, 10_000, 2)
    assert third.allowed
    assert third.total_hits == 2


async def test_retry_after_rounds_partial_seconds_up(limiter, clock):
    key = "login:ip:3.3.3.3"
    await limiter.check(key, 10_000, 1)
    clock.advance(2.5)

    denied = await limiter.check(key, 10_000, 1)

    assert not denied.allowed
    assert denied.retry_after_seconds == 8


async def test_denied_hits_keep_the_window_saturated(limiter, clock):
    key = "login:ip:9.9.9.9"
    await limiter.check(key, 10_000, 1)
    clock.advance(5)
    assert not (await limiter.check(key, 10_000, 1)).allowed
    clock.advance(5)
    # the first hit has aged out but the denied one is still inside the window
    assert not (await limiter.check(key, 10_000, 1)).allowed


async def test_hit_log_is_trimmed_to_limit_plus_one(limiter, redis_client):
    key = "login:ip:5.5.5.5"
    for _ in range(10):
        await limiter.check(key, WINDOW_MS, 2)

    assert await redis_client.zcard(f"test:{key}") == 3
    ttl = await redis_client.pttl(f"test:{key}")
    assert 0 < ttl <= WINDOW_MS


async def test_keys_are_isolated(limiter):
    assert (await limiter.check("login:ip:1.1.1.1", WINDOW_MS, 1)).allowed
    assert (await limiter.check("login:ip:2.2.2.2", WINDOW_MS, 1)).allowed


async def test_identity_ending_in_seq_does_not_collide_with_counters(limiter):
    assert (await limiter.check("login:ip:a", WINDOW_MS, 5)).allowed

    result = await limiter.check("login:ip:a:seq", WINDOW_MS, 5)

    assert result.allowed
    assert result.total_hits == 1



async def test_concurrent_hits_on_same_key_have_one_winner(limiter):
    results = await asyncio.gather(
        limiter.check("registration:email:x@example.com", WINDOW_MS, 1),
        limiter.check("registration:email:x@example.com", WINDOW_MS, 1),
    )

    assert sorted(r.allowed for r in results) == [False, True]


async def test_transaction_fallback_when_scripting_unavailable(limiter):
    async def no_scripting(*args, **kwargs):
        raise ResponseError("unknown command 'evalsha', with args beginning with: ")

    limiter._script = no_scripting
    key = "login:ip:7.7.7.7"

    first = await limiter.check(key, WINDOW_MS, 1)
    second = await limiter.check(key, WINDOW_MS, 1)

    assert first.allowed and first.total_hits == 1
    assert not second.allowed and second.remaining_attempts == 0


async def test_other_response_errors_surface_as_store_errors(limiter):
    async def wrong_type(*args, **kwargs):
        raise ResponseError("WRONGTYPE Operation against a key holding the wrong kind of value")

    limiter._script = wrong_type
    with pytest.raises(CounterStoreError):
        await limiter.check("login:ip:7.7.7.7", WINDOW_MS, 1)


async def test_store_outage_raises_counter_store_error(broken_redis_client, clock):
    limiter = RedisSlidingWindowRateLimiter(broken_redis_client, clock=clock)
    with pytest.raises(CounterStoreError):
        await limiter.check("login:ip:1.2.3.4", WINDOW_MS, 5)
