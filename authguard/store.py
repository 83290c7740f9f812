"""Shared counter store client construction and error translation."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from redis.asyncio import Redis
from redis.exceptions import RedisError

from .config import Settings
from .errors import CounterStoreError

logger = logging.getLogger(__name__)


def build_redis_client(settings: Settings) -> Redis:
    """Create the process-wide Redis client used by every limiter and registry.

    The settings are validated first so a missing endpoint or credential stops
    the process at startup instead of surfacing as a runtime outage.
    """
    settings.validate()
    client = Redis.from_url(
        settings.redis_url,
        password=settings.redis_token,
        socket_timeout=settings.redis_socket_timeout_seconds,
        socket_connect_timeout=settings.redis_socket_timeout_seconds,
    )
    logger.info("counter store client configured for %s", _redacted(settings.redis_url))
    return client


async def ping(client: Redis) -> bool:
    """Return ``True`` when the store answers; failures are logged, not raised."""
    try:
        return bool(await client.ping())
    except (RedisError, OSError) as exc:
        logger.warning("counter store unreachable at startup, guards will fail open: %s", exc)
        return False


@contextmanager
def store_errors(operation: str, key: str | None = None) -> Iterator[None]:
    """Re-raise Redis and socket failures inside the block as ``CounterStoreError``."""
    try:
        yield
    except (RedisError, OSError) as exc:
        raise CounterStoreError(operation, key) from exc


def _redacted(url: str) -> str:
    scheme, sep, rest = url.partition("://")
    if not sep or "@" not in rest:
        return url
    return f"{scheme}://***@{rest.rsplit('@', 1)[1]}"
