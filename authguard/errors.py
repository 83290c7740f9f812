"""Exception hierarchy shared by the guard layers."""

from __future__ import annotations


class AuthGuardError(Exception):
    """Base class for errors raised by the abuse-prevention core."""


class ConfigurationError(AuthGuardError):
    """Required settings are missing or invalid; the process cannot start."""


class CounterStoreError(AuthGuardError):
    """The shared counter store could not complete an operation.

    Wraps connection failures, timeouts and server-side errors so callers only
    need to handle one type when deciding between failing open and surfacing
    the outage.
    """

    def __init__(self, operation: str, key: str | None = None) -> None:
        message = f"counter store {operation} failed"
        if key is not None:
            message = f"{message} for {key}"
        super().__init__(message)
        self.operation = operation
        self.key = key
