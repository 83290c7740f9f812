"""Client network identity extraction from proxy headers."""

from __future__ import annotations

from typing import Mapping

UNKNOWN_IDENTITY = "unknown"

# Checked in order; the first non-empty value wins.
_FORWARDED_FOR = "x-forwarded-for"
_REAL_IP = "x-real-ip"
_CDN_CONNECTING_IP = "cf-connecting-ip"


def resolve_client_identity(headers: Mapping[str, str]) -> str:
    """Return the originating client IP as reported by the trusted proxy chain.

    Clients without any proxy header are pooled under ``"unknown"`` and share
    one budget; they are limited, never exempted.
    """
    lowered = {name.lower(): value for name, value in headers.items()}

    forwarded = lowered.get(_FORWARDED_FOR, "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop

    for header in (_REAL_IP, _CDN_CONNECTING_IP):
        value = lowered.get(header, "").strip()
        if value:
            return value
    return UNKNOWN_IDENTITY
