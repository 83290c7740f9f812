"""Login and registration guards composing window checks and the block registry."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from datetime import datetime, timedelta, timezone
from typing import Callable

from ..errors import CounterStoreError
from ..metrics import BLOCKS, DECISIONS, FAIL_OPEN
from ..security.block_registry import RedisBlockRegistry
from ..security.redis_rate_limiter import RedisSlidingWindowRateLimiter
from .decision import FailureReason, FailureRecord, GuardDecision, RateLimitResult
from .policy import ActionPolicy, Scope, rate_limit_key

logger = logging.getLogger(__name__)


def combine(limits: list[RateLimitResult | None], blocked: bool) -> bool:
    """AND every supplied dimension; a missing dimension does not vote."""
    return not blocked and all(limit.allowed for limit in limits if limit is not None)


class AbuseGuard:
    """Allow/deny decisions for one action across IP, email and block dimensions.

    The guard owns no state of its own. Counters live in the shared store and
    atomicity for concurrent callers on the same key is the store's job.
    """

    def __init__(
        self,
        limiter: RedisSlidingWindowRateLimiter,
        registry: RedisBlockRegistry,
        policy: ActionPolicy,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._limiter = limiter
        self._registry = registry
        self._policy = policy
        self._clock = clock

    @property
    def policy(self) -> ActionPolicy:
        return self._policy

    async def _check(self, scope: Scope, identifier: str) -> RateLimitResult:
        window = self._policy.window(scope)
        key = rate_limit_key(self._policy.action, scope, identifier)
        return await self._limiter.check(key, window.window_millis, window.max_hits)

    async def evaluate(self, client_identity: str, email: str | None = None) -> GuardDecision:
        """Record an attempt and decide whether it may proceed.

        The IP window, the email window (when an email is given) and the block
        lookup are issued concurrently. Any exhausted dimension denies. When the
        counter store fails the attempt is allowed and the decision is marked
        ``degraded``.
        """
        action = self._policy.action.value
        checks = [
            self._check(Scope.ip, client_identity),
            self._registry.is_blocked(client_identity),
        ]
        if email:
            checks.append(self._check(Scope.email, email))

        try:
            results = await asyncio.gather(*checks)
        except CounterStoreError:
            logger.exception("%s rate limit check failed for %s, failing open", action, client_identity)
            FAIL_OPEN.labels(action=action, operation="evaluate").inc()
            return self._fail_open(client_identity)

        ip_limit, blocked = results[0], results[1]
        email_limit = results[2] if email else None
        allowed = combine([ip_limit, email_limit], blocked)

        DECISIONS.labels(action=action, outcome="allowed" if allowed else "denied").inc()
        if not allowed:
            logger.info(
                "%s denied for %s (ip remaining=%s, email remaining=%s, blocked=%s)",
                action,
                client_identity,
                ip_limit.remaining_attempts,
                email_limit.remaining_attempts if email_limit else None,
                blocked,
            )
        return GuardDecision(
            allowed=allowed,
            ip_limit=ip_limit,
            email_limit=email_limit,
            is_strictly_blocked=blocked,
            client_identity=client_identity,
        )

    def _fail_open(self, client_identity: str) -> GuardDecision:
        """Permissive decision used while the counter store is unavailable."""
        window = self._policy.ip
        now = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
        DECISIONS.labels(action=self._policy.action.value, outcome="fail_open").inc()
        return GuardDecision(
            allowed=True,
            ip_limit=RateLimitResult(
                allowed=True,
                remaining_attempts=window.max_hits,
                reset_time=now + timedelta(milliseconds=window.window_millis),
                total_hits=0,
                retry_after_seconds=math.ceil(window.window_millis / 1000),
            ),
            email_limit=None,
            is_strictly_blocked=False,
            client_identity=client_identity,
            degraded=True,
        )

    async def record_failure(
        self,
        client_identity: str,
        email: str | None = None,
        *,
        reason: FailureReason | None = None,
    ) -> FailureRecord:
        """Feed a confirmed failed attempt into the escalation tiers.

        Only once the ordinary IP window is exhausted does the strict window
        count the failure, and only an exhausted strict window promotes the
        identity into the block registry for the cooldown. Store failures are
        logged and reported through ``FailureRecord.recorded``.
        """
        action = self._policy.action.value
        record = FailureRecord(client_identity=client_identity, reason=reason)
        try:
            record.ip_limit = await self._check(Scope.ip, client_identity)
            if not record.ip_limit.allowed:
                record.strict_limit = await self._check(Scope.strict, client_identity)
                if not record.strict_limit.allowed:
                    await self._registry.block(client_identity, self._policy.block_cooldown_seconds)
                    record.blocked = True
                    BLOCKS.labels(action=action).inc()
                    logger.warning(
                        "%s escalation blocked %s for %ss (reason=%s)",
                        action,
                        client_identity,
                        self._policy.block_cooldown_seconds,
                        reason.value if reason else None,
                    )
            if email:
                record.email_limit = await self._check(Scope.email, email)
        except CounterStoreError:
            logger.exception("failed to record %s failure for %s", action, client_identity)
            FAIL_OPEN.labels(action=action, operation="record_failure").inc()
            record.recorded = False
        return record

    async def is_blocked(self, client_identity: str) -> bool:
        return await self._registry.is_blocked(client_identity)

    async def reset(self, client_identity: str) -> bool:
        """Clear a block ahead of its cooldown. Store errors propagate."""
        removed = await self._registry.unblock(client_identity)
        logger.info("block reset for %s (was blocked=%s)", client_identity, removed)
        return removed


class LoginGuard(AbuseGuard):
    """Guard tuned for credential guessing on the login endpoint."""


class RegistrationGuard(AbuseGuard):
    """Guard tuned for mass account creation."""

    async def record_failure(
        self,
        client_identity: str,
        email: str | None = None,
        *,
        reason: FailureReason | None = FailureReason.validation_error,
    ) -> FailureRecord:
        logger.info(
            "registration failure from %s (reason=%s)",
            client_identity,
            reason.value if reason else None,
        )
        return await super().record_failure(client_identity, email, reason=reason)
