"""Command line helper that mints operator tokens for the block admin routes.

Usage::

    authguard-admin-token --subject oncall@example.com --ttl-seconds 600

The token is signed with ``JWT_SECRET`` and ``JWT_ISSUER`` from the environment,
so it must run with the same values as the service.
"""

from __future__ import annotations

import argparse
from typing import Sequence

from .security.tokens import ADMIN_SCOPE, issue_admin_token


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Issue a bearer token for the block admin routes.")
    parser.add_argument("--subject", required=True, help="operator recorded in the sub claim")
    parser.add_argument(
        "--scope",
        action="append",
        dest="scopes",
        help=f"scope to grant, repeatable (default: {ADMIN_SCOPE})",
    )
    parser.add_argument("--ttl-seconds", type=int, default=900)
    args = parser.parse_args(argv)
    if args.ttl_seconds <= 0:
        parser.error("--ttl-seconds must be positive")

    print(issue_admin_token(subject=args.subject, scopes=args.scopes, ttl_seconds=args.ttl_seconds))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
