from __future__ import annotations

import fakeredis
import pytest

from authguard.config import Settings
from authguard.domain.guard import LoginGuard, RegistrationGuard
from authguard.domain.policy import login_policy, registration_policy
from authguard.security.block_registry import RedisBlockRegistry
from authguard.security.redis_rate_limiter import RedisSlidingWindowRateLimiter


class FakeClock:
    """Controllable replacement for ``time.time``."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def redis_client() -> fakeredis.FakeAsyncRedis:
    return fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer())


@pytest.fixture()
def broken_redis_client() -> fakeredis.FakeAsyncRedis:
    """Client whose every command fails as if the store were unreachable."""
    server = fakeredis.FakeServer()
    server.connected = False
    return fakeredis.FakeAsyncRedis(server=server)


@pytest.fixture()
def settings() -> Settings:
    return Settings(redis_url="redis://localhost:6379/0", redis_token="test-token")


def _guards(client, clock, settings):
    limiter = RedisSlidingWindowRateLimiter(client, key_prefix="test", clock=clock)
    registry = RedisBlockRegistry(client)
    return (
        LoginGuard(limiter, registry, login_policy(settings), clock=clock),
        RegistrationGuard(limiter, registry, registration_policy(settings), clock=clock),
    )


@pytest.fixture()
def guards(redis_client, clock, settings) -> tuple[LoginGuard, RegistrationGuard]:
    return _guards(redis_client, clock, settings)


@pytest.fixture()
def broken_guards(broken_redis_client, clock, settings) -> tuple[LoginGuard, RegistrationGuard]:
    return _guards(broken_redis_client, clock, settings)
