"""FastAPI application wiring for the guard service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from redis.asyncio import Redis

from .api.routes import router as v1_router
from .config import Settings, get_settings
from .domain.guard import LoginGuard, RegistrationGuard
from .domain.policy import login_policy, registration_policy
from .security.block_registry import RedisBlockRegistry
from .security.redis_rate_limiter import RedisSlidingWindowRateLimiter
from .store import build_redis_client, ping

settings = get_settings()
logging.basicConfig(level=settings.log_level)


def build_guards(client: Redis, settings: Settings) -> tuple[LoginGuard, RegistrationGuard]:
    """Create both guards over one limiter and one block registry sharing ``client``."""
    limiter = RedisSlidingWindowRateLimiter(client, key_prefix=settings.rate_limit_key_prefix)
    registry = RedisBlockRegistry(client)
    return (
        LoginGuard(limiter, registry, login_policy(settings)),
        RegistrationGuard(limiter, registry, registration_policy(settings)),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise the shared counter store client and the guards for the app lifecycle."""
    client = build_redis_client(settings)
    await ping(client)
    app.state.redis = client
    app.state.login_guard, app.state.registration_guard = build_guards(client, settings)
    try:
        yield
    finally:
        await client.aclose()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


app.include_router(v1_router)


@app.get("/metrics")
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
