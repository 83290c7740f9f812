"""Explicit, TTL-bound block markers kept beside the sliding window counters."""

from __future__ import annotations

import logging

from redis.asyncio import Redis

from ..store import store_errors

logger = logging.getLogger(__name__)


class RedisBlockRegistry:
    """Hard blocks stored as ``{prefix}:{key}`` marker keys with an expiry.

    Presence of the marker is the whole signal. Blocks are independent of the
    window counters, so an identity stays blocked after its ordinary window
    has drained.
    """

    def __init__(self, client: Redis, *, key_prefix: str = "block") -> None:
        self._client = client
        self._key_prefix = key_prefix

    def _key(self, key: str) -> str:
        return f"{self._key_prefix}:{key}"

    async def is_blocked(self, key: str) -> bool:
        redis_key = self._key(key)
        with store_errors("block lookup", redis_key):
            return await self._client.exists(redis_key) == 1

    async def block(self, key: str, duration_seconds: int) -> None:
        """Block ``key`` for ``duration_seconds``; repeating the call restarts the TTL."""
        redis_key = self._key(key)
        with store_errors("block", redis_key):
            await self._client.set(redis_key, "1", ex=duration_seconds)
        logger.warning("blocked %s for %ss", key, duration_seconds)

    async def unblock(self, key: str) -> bool:
        """Remove the block marker; returns whether one was present."""
        redis_key = self._key(key)
        with store_errors("unblock", redis_key):
            removed = await self._client.delete(redis_key)
        return removed == 1
