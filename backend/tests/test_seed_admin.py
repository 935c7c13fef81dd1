"""
Tests for the tla-seed-admin command
"""
import pytest
from sqlalchemy import select

from tla_portal.core.database import Database
from tla_portal.models.account import Account
from tla_portal.scripts.seed_admin import build_parser, main, seed_admin


@pytest.mark.asyncio
async def test_seed_admin_creates_approved_admin(settings):
    account_id = await seed_admin(settings, "Admin User", "Admin@Example.com", "adminpassword")

    database = Database(settings)
    try:
        async with database.session() as session:
            result = await session.execute(select(Account).where(Account.id == account_id))
            admin = result.scalar_one()
    finally:
        await database.dispose()

    assert admin.email == "admin@example.com"
    assert admin.is_admin is True
    assert admin.is_approved is True
    assert admin.membership_number is None


@pytest.mark.asyncio
async def test_seed_admin_is_idempotent(settings):
    first = await seed_admin(settings, "Admin User", "admin@example.com", "adminpassword")
    second = await seed_admin(settings, "Admin User", "admin@example.com", "adminpassword")

    assert first == second


def test_main_requires_password(monkeypatch):
    monkeypatch.delenv("ADMIN_PASSWORD", raising=False)
    assert main(["--email", "admin@example.com"]) == 2


def test_parser_defaults(monkeypatch):
    monkeypatch.setenv("ADMIN_PASSWORD", "from-environment")
    args = build_parser().parse_args([])

    assert args.email == "admin@example.com"
    assert args.password == "from-environment"
