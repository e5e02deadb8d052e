#!/usr/bin/env python3
"""
Lockout administration from the command line.

Usage:
    lockout status email|user@example.com
    lockout lock email|user@example.com --reason fraud_review
    lockout unlock email|user@example.com [--keep-attempts]
    lockout reset email|user@example.com

Reads the same environment configuration as the service (LOCKOUT_BACKEND,
DATABASE_URL, REDIS_URL, ...). Prints the resulting record as JSON.
"""

import argparse
import asyncio
import json
import sys

from lockout.core.config import Settings
from lockout.core.exceptions import StoreUnavailableError
from lockout.core.redis import close_redis
from lockout.db import session as db_session
from lockout.main import build_service
from lockout.schemas.lockout import LockoutRecordResponse, LockStatusResponse
from lockout.services.lockout import LockoutService, LockStatus


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lockout", description="Inspect and manage login lockouts")
    sub = parser.add_subparsers(dest="command", required=True)

    status = sub.add_parser("status", help="Show lock status for an identifier")
    status.add_argument("identifier")

    lock = sub.add_parser("lock", help="Lock an identifier now")
    lock.add_argument("identifier")
    lock.add_argument("--reason", default="manual")
    lock.add_argument("--user-id", default=None)

    unlock = sub.add_parser("unlock", help="Unlock an identifier")
    unlock.add_argument("identifier")
    unlock.add_argument(
        "--keep-attempts",
        action="store_true",
        help="Preserve the failed attempt counter",
    )

    reset = sub.add_parser("reset", help="Clear attempts and any lock")
    reset.add_argument("identifier")

    return parser


async def run_command(args: argparse.Namespace, service: LockoutService) -> tuple[int, dict]:
    """Execute a parsed command. Returns (exit code, JSON-able result)."""
    now = service.clock()

    if args.command == "status":
        record = await service.store.get(args.identifier)
        status = LockStatus.from_record(record, args.identifier, now)
        return 0, LockStatusResponse.from_status(status).model_dump(mode="json")

    if args.command == "lock":
        record = await service.lock(args.identifier, user_id=args.user_id, reason=args.reason)
        return 0, LockoutRecordResponse.from_record(record, now).model_dump(mode="json")

    if args.command == "unlock":
        record = await service.unlock(args.identifier, reset_attempts=not args.keep_attempts)
    else:
        record = await service.reset_attempts(args.identifier)

    if record is None:
        return 1, {"identifier": args.identifier, "error": "no lockout record"}
    return 0, LockoutRecordResponse.from_record(record, now).model_dump(mode="json")


async def _main(args: argparse.Namespace) -> int:
    service = build_service(Settings())
    try:
        code, result = await run_command(args, service)
    except StoreUnavailableError as e:
        print(f"Lockout store unavailable: {e.reason}", file=sys.stderr)
        return 2
    finally:
        await close_redis()
        await db_session.dispose_engine()

    print(json.dumps(result, indent=2))
    return code


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return asyncio.run(_main(args))


if __name__ == "__main__":
    sys.exit(main())
