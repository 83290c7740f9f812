"""Rate limit policy tables for the guarded actions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..config import Settings


class Action(str, Enum):
    login = "login"
    registration = "registration"


class Scope(str, Enum):
    ip = "ip"
    email = "email"
    strict = "strict"


@dataclass(frozen=True, slots=True)
class WindowConfig:
    """Budget of ``max_hits`` within a trailing window of ``window_millis``."""

    window_millis: int
    max_hits: int

    @classmethod
    def from_seconds(cls, window_seconds: int, max_hits: int) -> "WindowConfig":
        return cls(window_millis=window_seconds * 1000, max_hits=max_hits)


@dataclass(frozen=True, slots=True)
class ActionPolicy:
    """Window budgets per scope for one action, plus the block cooldown."""

    action: Action
    ip: WindowConfig
    email: WindowConfig
    strict: WindowConfig
    block_cooldown_seconds: int

    def window(self, scope: Scope) -> WindowConfig:
        return getattr(self, scope.value)


def rate_limit_key(action: Action, scope: Scope, identifier: str) -> str:
    """Build the composite ``{action}:{scope}:{identifier}`` counter key.

    Email identifiers are case-normalised so ``Alice@x.io`` and ``alice@x.io``
    share one budget.
    """
    if scope is Scope.email:
        identifier = normalize_email(identifier)
    return f"{action.value}:{scope.value}:{identifier}"


def normalize_email(email: str) -> str:
    return email.strip().lower()


def login_policy(settings: Settings) -> ActionPolicy:
    return ActionPolicy(
        action=Action.login,
        ip=WindowConfig.from_seconds(settings.login_ip_window_seconds, settings.login_ip_max_hits),
        email=WindowConfig.from_seconds(
            settings.login_email_window_seconds, settings.login_email_max_hits
        ),
        strict=WindowConfig.from_seconds(
            settings.login_strict_window_seconds, settings.login_strict_max_hits
        ),
        block_cooldown_seconds=settings.block_cooldown_seconds,
    )


def registration_policy(settings: Settings) -> ActionPolicy:
    return ActionPolicy(
        action=Action.registration,
        ip=WindowConfig.from_seconds(
            settings.registration_ip_window_seconds, settings.registration_ip_max_hits
        ),
        email=WindowConfig.from_seconds(
            settings.registration_email_window_seconds, settings.registration_email_max_hits
        ),
        strict=WindowConfig.from_seconds(
            settings.registration_strict_window_seconds, settings.registration_strict_max_hits
        ),
        block_cooldown_seconds=settings.block_cooldown_seconds,
    )
