"""
Seed the first administrator account

Creates the tables if needed, then an approved administrator. Running it again
for an existing administrator email changes nothing.

Usage:
    tla-seed-admin --email admin@example.com --password 'S3cret!'
    ADMIN_PASSWORD='S3cret!' tla-seed-admin --email admin@example.com
"""

import argparse
import asyncio
import os
import sys
from typing import List, Optional

from tla_portal.core.config import Settings, get_settings
from tla_portal.core.database import Database
from tla_portal.core.exceptions import PortalError
from tla_portal.core.logging_config import setup_logging
from tla_portal.core.security import SessionManager
from tla_portal.services.account_service import AccountService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Create the first TLA portal administrator")
    parser.add_argument("--name", default="Admin User", help="Display name")
    parser.add_argument("--email", default="admin@example.com", help="Login email")
    parser.add_argument(
        "--password",
        default=os.environ.get("ADMIN_PASSWORD"),
        help="Password (defaults to $ADMIN_PASSWORD)",
    )
    return parser


async def seed_admin(settings: Settings, name: str, email: str, password: str) -> int:
    """Create or find the administrator, returns its account id"""
    database = Database(settings)
    try:
        await database.create_all()
        service = AccountService(database, SessionManager(settings))
        account = await service.ensure_admin(name, email, password)
        return account.id
    finally:
        await database.dispose()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if not args.password or len(args.password) < 6:
        print("[SeedAdmin] ERROR: a password of at least 6 characters is required", file=sys.stderr)
        return 2

    settings = get_settings()
    setup_logging(settings)

    print("=" * 50)
    print("Seeding administrator...")
    print("=" * 50)

    try:
        account_id = asyncio.run(seed_admin(settings, args.name, args.email, args.password))
    except PortalError as e:
        print(f"[SeedAdmin] ERROR: {e.message}", file=sys.stderr)
        return 1

    print(f"  Administrator ready: {args.email.lower()} (id {account_id})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
