"""Prometheus counters for guard decisions and degradations."""

from __future__ import annotations

from prometheus_client import Counter

DECISIONS = Counter(
    "authguard_decisions_total",
    "Guard decisions by action and outcome.",
    ["action", "outcome"],
)

FAIL_OPEN = Counter(
    "authguard_fail_open_total",
    "Operations that degraded because the counter store failed.",
    ["action", "operation"],
)

BLOCKS = Counter(
    "authguard_blocks_total",
    "Identities promoted into the block registry.",
    ["action"],
)
