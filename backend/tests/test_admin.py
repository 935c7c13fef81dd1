"""
Admin API tests: listing, approval, direct creation, delete and restore
"""
from datetime import datetime

import pytest
from httpx import AsyncClient

TEST_PASSWORD = 'testpassword123'


def _yy() -> str:
    return datetime.utcnow().strftime("%y")


async def _register(client: AsyncClient, data: dict) -> int:
    response = await client.post("/api/auth/register", json=data)
    assert response.status_code == 201
    return response.json()["user"]["id"]


@pytest.mark.asyncio
async def test_admin_endpoints_require_session(client: AsyncClient):
    response = await client.get("/api/admin/users")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_admin_endpoints_reject_members(client: AsyncClient, auth_headers):
    response = await client.get("/api/admin/users", headers=auth_headers)

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "NOT_AUTHORIZED"

    response = await client.patch("/api/admin/users/1/approve", headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_list_users_by_status(client: AsyncClient, admin_auth_headers, registration_data):
    pending_id = await _register(client, registration_data)

    response = await client.get("/api/admin/users", params={"status": "pending"}, headers=admin_auth_headers)
    assert response.status_code == 200
    assert [u["id"] for u in response.json()] == [pending_id]

    response = await client.get("/api/admin/users", params={"status": "approved"}, headers=admin_auth_headers)
    assert pending_id not in [u["id"] for u in response.json()]

    response = await client.get("/api/admin/users", params={"status": "bogus"}, headers=admin_auth_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_approval_flow(client: AsyncClient, admin_auth_headers, registration_factory):
    """Register, approve, then log in with the bound membership number"""
    data = registration_factory()
    account_id = await _register(client, data)

    response = await client.patch(f"/api/admin/users/{account_id}/approve", headers=admin_auth_headers)

    assert response.status_code == 200
    user = response.json()["user"]
    assert user["is_approved"] is True
    assert user["membership_number"] == f"MEM{_yy()}00001"

    login = await client.post("/api/auth/login", json={"email": data["email"], "password": TEST_PASSWORD})
    assert login.status_code == 200
    assert login.json()["user"]["membership_number"] == user["membership_number"]

    # second approval changes nothing
    response = await client.patch(f"/api/admin/users/{account_id}/approve", headers=admin_auth_headers)
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "ALREADY_APPROVED"

    second_id = await _register(client, registration_factory())
    response = await client.patch(f"/api/admin/users/{second_id}/approve", headers=admin_auth_headers)
    assert response.json()["user"]["membership_number"] == f"MEM{_yy()}00002"


@pytest.mark.asyncio
async def test_approve_unknown_account(client: AsyncClient, admin_auth_headers):
    response = await client.patch("/api/admin/users/999/approve", headers=admin_auth_headers)

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "ACCOUNT_NOT_FOUND"


@pytest.mark.asyncio
async def test_create_user(client: AsyncClient, admin_auth_headers, admin_account, registration_factory):
    data = registration_factory()

    response = await client.post("/api/admin/users", json=data, headers=admin_auth_headers)

    assert response.status_code == 201
    user = response.json()
    assert user["is_approved"] is True
    assert user["is_admin"] is False
    assert user["membership_number"] == f"MEM{_yy()}00001"

    login = await client.post("/api/auth/login", json={"email": data["email"], "password": TEST_PASSWORD})
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_create_admin_user(client: AsyncClient, admin_auth_headers):
    response = await client.post(
        "/api/admin/users",
        json={"name": "Second Admin", "email": "second.admin@example.com",
              "password": TEST_PASSWORD, "is_admin": True},
        headers=admin_auth_headers,
    )

    assert response.status_code == 201
    assert response.json()["is_admin"] is True
    assert response.json()["membership_number"] is None


@pytest.mark.asyncio
async def test_delete_and_restore(client: AsyncClient, admin_auth_headers, member_account):
    response = await client.delete(f"/api/admin/users/{member_account.id}", headers=admin_auth_headers)
    assert response.status_code == 200

    login = await client.post("/api/auth/login", json={"email": member_account.email, "password": TEST_PASSWORD})
    assert login.status_code == 404

    response = await client.get("/api/admin/deleted-users", headers=admin_auth_headers)
    assert response.status_code == 200
    archived = response.json()
    assert len(archived) == 1
    assert archived[0]["account_id"] == member_account.id
    assert archived[0]["original_data"]["membership_number"] == member_account.membership_number

    response = await client.post(
        "/api/admin/users/restore", json={"account_id": member_account.id}, headers=admin_auth_headers
    )
    assert response.status_code == 200
    assert response.json()["membership_number"] == member_account.membership_number

    login = await client.post("/api/auth/login", json={"email": member_account.email, "password": TEST_PASSWORD})
    assert login.status_code == 200

    response = await client.post(
        "/api/admin/users/restore", json={"account_id": member_account.id}, headers=admin_auth_headers
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_deleted_users_hide_password_hash(client: AsyncClient, admin_auth_headers, member_account):
    await client.delete(f"/api/admin/users/{member_account.id}", headers=admin_auth_headers)

    response = await client.get("/api/admin/deleted-users", headers=admin_auth_headers)

    assert response.status_code == 200
    snapshot = response.json()[0]["original_data"]
    assert snapshot["email"] == member_account.email
    assert "hashed_password" not in snapshot
    assert "$2b$" not in response.text

    # the stored archive still restores a working login
    response = await client.post(
        "/api/admin/users/restore", json={"account_id": member_account.id}, headers=admin_auth_headers
    )
    assert response.status_code == 200
    login = await client.post("/api/auth/login", json={"email": member_account.email, "password": TEST_PASSWORD})
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_restore_conflict(client: AsyncClient, admin_auth_headers, member_account, registration_factory):
    await client.delete(f"/api/admin/users/{member_account.id}", headers=admin_auth_headers)
    await _register(client, registration_factory(email=member_account.email))

    response = await client.post(
        "/api/admin/users/restore", json={"account_id": member_account.id}, headers=admin_auth_headers
    )

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "RESTORE_CONFLICT"


@pytest.mark.asyncio
async def test_delete_unknown_and_self(client: AsyncClient, admin_auth_headers, admin_account):
    response = await client.delete("/api/admin/users/999", headers=admin_auth_headers)
    assert response.status_code == 404

    response = await client.delete(f"/api/admin/users/{admin_account.id}", headers=admin_auth_headers)
    assert response.status_code == 400
