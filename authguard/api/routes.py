"""HTTP route definitions for the guard service."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import jwt
from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response, status
from pydantic import BaseModel, EmailStr

from ..domain.decision import FailureReason, FailureRecord, GuardDecision, RateLimitResult
from ..domain.guard import LoginGuard, RegistrationGuard
from ..errors import CounterStoreError
from ..security.client_identity import resolve_client_identity
from ..security.tokens import ADMIN_SCOPE, decode_access_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1")


class RateLimitResponse(BaseModel):
    """Serialised representation of a `RateLimitResult`."""

    allowed: bool
    remaining_attempts: int
    reset_time: datetime
    total_hits: int
    retry_after_seconds: int

    @classmethod
    def from_domain(cls, result: RateLimitResult | None) -> "RateLimitResponse | None":
        if result is None:
            return None
        return cls(
            allowed=result.allowed,
            remaining_attempts=result.remaining_attempts,
            reset_time=result.reset_time,
            total_hits=result.total_hits,
            retry_after_seconds=result.retry_after_seconds,
        )


class GuardDecisionResponse(BaseModel):
    """Combined decision returned to the calling authentication endpoint."""

    allowed: bool
    ip_limit: RateLimitResponse
    email_limit: RateLimitResponse | None = None
    is_strictly_blocked: bool
    client_identity: str
    degraded: bool = False

    @classmethod
    def from_domain(cls, decision: GuardDecision) -> "GuardDecisionResponse":
        return cls(
            allowed=decision.allowed,
            ip_limit=RateLimitResponse.from_domain(decision.ip_limit),
            email_limit=RateLimitResponse.from_domain(decision.email_limit),
            is_strictly_blocked=decision.is_strictly_blocked,
            client_identity=decision.client_identity,
            degraded=decision.degraded,
        )


class FailureRecordResponse(BaseModel):
    """Diagnostic view of what the escalation path recorded."""

    client_identity: str
    recorded: bool
    blocked: bool
    reason: FailureReason | None = None
    ip_limit: RateLimitResponse | None = None
    strict_limit: RateLimitResponse | None = None
    email_limit: RateLimitResponse | None = None

    @classmethod
    def from_domain(cls, record: FailureRecord) -> "FailureRecordResponse":
        return cls(
            client_identity=record.client_identity,
            recorded=record.recorded,
            blocked=record.blocked,
            reason=record.reason,
            ip_limit=RateLimitResponse.from_domain(record.ip_limit),
            strict_limit=RateLimitResponse.from_domain(record.strict_limit),
            email_limit=RateLimitResponse.from_domain(record.email_limit),
        )


class AttemptRequest(BaseModel):
    """Account identifier supplied with a login or registration attempt."""

    email: EmailStr | None = None


class RegistrationFailureRequest(AttemptRequest):
    reason: FailureReason = FailureReason.validation_error


class BlockStatusResponse(BaseModel):
    client_identity: str
    blocked: bool


def get_login_guard(request: Request) -> LoginGuard:
    """Resolve the `LoginGuard` stored on the FastAPI application state."""
    guard: LoginGuard = request.app.state.login_guard
    return guard


def get_registration_guard(request: Request) -> RegistrationGuard:
    """Resolve the `RegistrationGuard` stored on the FastAPI application state."""
    guard: RegistrationGuard = request.app.state.registration_guard
    return guard


def get_client_identity(request: Request) -> str:
    return resolve_client_identity(request.headers)


def require_admin(authorization: str | None = Header(default=None)) -> dict[str, Any]:
    """Accept only bearer tokens carrying the block-management scope."""
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="missing bearer token")
    try:
        claims = decode_access_token(token.strip())
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid token") from exc
    if ADMIN_SCOPE not in claims.get("scopes", []):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="insufficient scope")
    return claims


@router.post("/login/check", response_model=GuardDecisionResponse)
async def check_login(
    payload: AttemptRequest,
    client_identity: str = Depends(get_client_identity),
    guard: LoginGuard = Depends(get_login_guard),
) -> GuardDecisionResponse:
    """Record a login attempt and return the combined decision."""
    decision = await guard.evaluate(client_identity, payload.email)
    return GuardDecisionResponse.from_domain(decision)


@router.post("/login/failures", response_model=FailureRecordResponse)
async def record_login_failure(
    payload: AttemptRequest,
    client_identity: str = Depends(get_client_identity),
    guard: LoginGuard = Depends(get_login_guard),
) -> FailureRecordResponse:
    """Feed a failed credential check into the escalation tiers."""
    record = await guard.record_failure(client_identity, payload.email)
    return FailureRecordResponse.from_domain(record)


@router.post("/registration/check", response_model=GuardDecisionResponse)
async def check_registration(
    payload: AttemptRequest,
    client_identity: str = Depends(get_client_identity),
    guard: RegistrationGuard = Depends(get_registration_guard),
) -> GuardDecisionResponse:
    """Record a registration attempt and return the combined decision."""
    decision = await guard.evaluate(client_identity, payload.email)
    return GuardDecisionResponse.from_domain(decision)


@router.post("/registration/failures", response_model=FailureRecordResponse)
async def record_registration_failure(
    payload: RegistrationFailureRequest,
    client_identity: str = Depends(get_client_identity),
    guard: RegistrationGuard = Depends(get_registration_guard),
) -> FailureRecordResponse:
    """Feed a failed registration into the escalation tiers, tagged with its reason."""
    record = await guard.record_failure(client_identity, payload.email, reason=payload.reason)
    return FailureRecordResponse.from_domain(record)


@router.get("/blocks/{client_identity}", response_model=BlockStatusResponse)
async def get_block(
    client_identity: str,
    claims: dict[str, Any] = Depends(require_admin),
    guard: LoginGuard = Depends(get_login_guard),
) -> BlockStatusResponse:
    """Report whether the identity is currently hard-blocked."""
    try:
        blocked = await guard.is_blocked(client_identity)
    except CounterStoreError as exc:
        raise _unavailable(exc) from exc
    return BlockStatusResponse(client_identity=client_identity, blocked=blocked)


@router.delete("/blocks/{client_identity}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_block(
    client_identity: str,
    claims: dict[str, Any] = Depends(require_admin),
    guard: LoginGuard = Depends(get_login_guard),
) -> Response:
    """Lift a block before its cooldown expires."""
    try:
        await guard.reset(client_identity)
    except CounterStoreError as exc:
        raise _unavailable(exc) from exc
    logger.info("block on %s lifted by %s", client_identity, claims.get("sub"))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _unavailable(exc: CounterStoreError) -> HTTPException:
    logger.error("block registry unavailable: %s", exc)
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="counter store unavailable")
