"""Value objects returned by the limiter and the guards."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


@dataclass(frozen=True, slots=True)
class RateLimitResult:
    """Outcome of one sliding-window check, taken after the hit was recorded.

    ``retry_after_seconds`` is measured on the limiter clock and rounded up.
    """

    allowed: bool
    remaining_attempts: int
    reset_time: datetime
    total_hits: int
    retry_after_seconds: int


class FailureReason(str, Enum):
    duplicate_email = "duplicate_email"
    validation_error = "validation_error"
    server_error = "server_error"


@dataclass(slots=True)
class GuardDecision:
    """Combined allow/deny verdict for one login or registration attempt."""

    allowed: bool
    ip_limit: RateLimitResult
    email_limit: RateLimitResult | None
    is_strictly_blocked: bool
    client_identity: str
    degraded: bool = False


@dataclass(slots=True)
class FailureRecord:
    """What the escalation path did with a confirmed failed attempt."""

    client_identity: str
    ip_limit: RateLimitResult | None = None
    strict_limit: RateLimitResult | None = None
    email_limit: RateLimitResult | None = None
    blocked: bool = False
    recorded: bool = True
    reason: FailureReason | None = None
