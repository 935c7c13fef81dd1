"""
Session gate on page routes
"""
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_dashboard_without_session_redirects_to_login(client: AsyncClient):
    response = await client.get("/dashboard")

    assert response.status_code == 307
    assert response.headers["location"] == "/auth/login?redirect=%2Fdashboard"


@pytest.mark.asyncio
async def test_invalid_cookie_is_cleared(client: AsyncClient):
    response = await client.get("/dashboard/membership-card", headers={"Cookie": "token=garbage"})

    assert response.status_code == 307
    assert response.headers["location"] == "/auth/login?redirect=%2Fdashboard%2Fmembership-card"
    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith("token=")
    assert "Max-Age=0" in set_cookie


@pytest.mark.asyncio
async def test_expired_cookie_redirects(client: AsyncClient, session_manager, member_account):
    issued = datetime.now(timezone.utc) - timedelta(minutes=61)
    token = session_manager.issue_access_token(member_account.id, member_account.email, False, now=issued)

    response = await client.get("/dashboard", headers={"Cookie": f"token={token}"})

    assert response.status_code == 307
    assert response.headers["location"].startswith("/auth/login")


@pytest.mark.asyncio
async def test_refresh_token_is_not_a_page_session(client: AsyncClient, session_manager, member_account):
    refresh = session_manager.issue_refresh_token(member_account.id, member_account.email, False)

    response = await client.get("/dashboard", headers={"Cookie": f"token={refresh}"})

    assert response.status_code == 307


@pytest.mark.asyncio
async def test_member_reaches_dashboard(client: AsyncClient, auth_for, member_account):
    response = await client.get("/dashboard", headers=auth_for(member_account, cookie=True))

    assert response.status_code == 200
    assert response.json()["user"]["id"] == member_account.id


@pytest.mark.asyncio
async def test_member_is_sent_away_from_admin(client: AsyncClient, auth_for, member_account):
    response = await client.get("/admin", headers=auth_for(member_account, cookie=True))

    assert response.status_code == 307
    assert response.headers["location"] == "/dashboard"


@pytest.mark.asyncio
async def test_admin_reaches_admin_pages(client: AsyncClient, auth_for, admin_account):
    response = await client.get("/admin", headers=auth_for(admin_account, cookie=True))

    assert response.status_code == 200
    assert response.json()["user"]["is_admin"] is True


@pytest.mark.asyncio
async def test_bearer_header_does_not_open_pages(client: AsyncClient, auth_for, member_account):
    """Pages read the session cookie only"""
    response = await client.get("/dashboard", headers=auth_for(member_account))
    assert response.status_code == 307


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/", "/health", "/auth/login", "/auth/pending-approval"])
async def test_public_paths_bypass_gate(client: AsyncClient, path):
    response = await client.get(path)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_api_paths_answer_401_instead_of_redirect(client: AsyncClient):
    response = await client.get("/api/admin/users")

    assert response.status_code == 401
    assert "location" not in response.headers


@pytest.mark.asyncio
async def test_security_headers(client: AsyncClient):
    response = await client.get("/health")

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
