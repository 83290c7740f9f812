"""Redis-backed sliding window rate limiter."""

from __future__ import annotations

import math
import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Final

from redis.asyncio import Redis
from redis.exceptions import ResponseError

from ..domain.decision import RateLimitResult
from ..store import store_errors


class RedisSlidingWindowRateLimiter:
    """Distributed sliding window limiter implemented with Redis sorted sets.

    Every check records a hit and evaluates the budget in one atomic server
    round trip. The hit log is trimmed to the newest ``max_hits + 1`` entries,
    which is enough to tell whether the window is over budget, so memory per
    key stays bounded while a client keeps hammering a denied key.
    """

    _LUA_SCRIPT: Final[str] = """
    local key = KEYS[1]
    local counter_key = KEYS[2]
    local window_ms = tonumber(ARGV[1])
    local max_hits = tonumber(ARGV[2])
    local now_ms = tonumber(ARGV[3])

    redis.call('ZREMRANGEBYSCORE', key, '-inf', now_ms - window_ms)
    local seq = redis.call('INCR', counter_key)
    redis.call('PEXPIRE', counter_key, window_ms)
    local member = tostring(now_ms) .. ':' .. tostring(seq)
    redis.call('ZADD', key, now_ms, member)
    redis.call('ZREMRANGEBYRANK', key, 0, -(max_hits + 2))
    redis.call('PEXPIRE', key, window_ms)
    local total = redis.call('ZCARD', key)
    local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
    return {total, oldest[2]}
    """

    def __init__(
        self,
        client: Redis,
        *,
        key_prefix: str = "rate",
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Store the shared Redis client, key namespace, clock and Lua script handle."""
        self._client = client
        self._key_prefix = key_prefix
        self._clock = clock
        self._script = client.register_script(self._LUA_SCRIPT)

    async def check(self, key: str, window_millis: int, max_hits: int) -> RateLimitResult:
        """Record a hit for ``key`` and report the window state after it."""
        now_ms = int(self._clock() * 1000)
        redis_key = f"{self._key_prefix}:{key}"
        # outside the namespace of window keys, whose suffix is a client-supplied identity
        seq_key = f"{self._key_prefix}-seq:{key}"
        with store_errors("sliding window check", redis_key):
            try:
                total, oldest_ms = await self._script(
                    keys=[redis_key, seq_key], args=[window_millis, max_hits, now_ms]
                )
            except ResponseError as exc:
                message = str(exc).lower()
                if "unknown command" in message and "eval" in message:
                    total, oldest_ms = await self._check_fallback(
                        redis_key, window_millis, max_hits, now_ms
                    )
                else:
                    raise
        return self._result(int(total), int(float(oldest_ms)), window_millis, max_hits, now_ms)

    async def _check_fallback(
        self, redis_key: str, window_millis: int, max_hits: int, now_ms: int
    ) -> tuple[int, float]:
        """MULTI/EXEC equivalent of the Lua script for servers without scripting."""
        member = f"{now_ms}:{uuid.uuid4().hex}"
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(redis_key, "-inf", now_ms - window_millis)
            pipe.zadd(redis_key, {member: now_ms})
            pipe.zremrangebyrank(redis_key, 0, -(max_hits + 2))
            pipe.pexpire(redis_key, window_millis)
            pipe.zcard(redis_key)
            pipe.zrange(redis_key, 0, 0, withscores=True)
            results = await pipe.execute()
        total = results[4]
        oldest = results[5]
        return total, oldest[0][1] if oldest else now_ms

    def _result(
        self, total: int, oldest_ms: int, window_millis: int, max_hits: int, now_ms: int
    ) -> RateLimitResult:
        reset_ms = oldest_ms + window_millis
        return RateLimitResult(
            allowed=total <= max_hits,
            remaining_attempts=max(0, max_hits - total),
            reset_time=datetime.fromtimestamp(reset_ms / 1000, tz=timezone.utc),
            total_hits=total,
            retry_after_seconds=max(0, math.ceil((reset_ms - now_ms) / 1000)),
        )
