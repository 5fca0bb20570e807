"""
Tests for user account endpoints: own profile and the admin user list.
"""

import pytest
from httpx import AsyncClient

from busticket.models.user import UserRole


@pytest.mark.asyncio
async def test_profile_shows_current_balance(client: AsyncClient, rider, rider_headers, trip):
    rider_id, rider_email = rider.id, rider.email
    await client.post(
        "/api/v1/bookings/",
        json={"trip_id": str(trip.id), "seat_numbers": [1, 2]},
        headers=rider_headers,
    )

    response = await client.get("/api/v1/users/me", headers=rider_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["id"] == str(rider_id)
    assert data["email"] == rider_email
    assert data["role"] == "user"
    assert data["company_id"] is None
    assert data["balance"] == 600
    assert "created_at" in data


@pytest.mark.asyncio
async def test_manager_profile_names_company(client: AsyncClient, manager_headers, company):
    company_id = company.id

    response = await client.get("/api/v1/users/me", headers=manager_headers)

    assert response.status_code == 200
    assert response.json()["role"] == "company"
    assert response.json()["company_id"] == str(company_id)


@pytest.mark.asyncio
async def test_profile_requires_token(client: AsyncClient):
    response = await client.get("/api/v1/users/me")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_admin_lists_users_without_admins(
    client: AsyncClient, admin_headers, rider, manager, create_user
):
    second_admin = await create_user(UserRole.ADMIN, balance=0)
    rider_id, manager_id, second_admin_id = rider.id, manager.id, second_admin.id

    response = await client.get("/api/v1/users/", headers=admin_headers)

    assert response.status_code == 200
    users = response.json()
    ids = {u["id"] for u in users}
    assert ids == {str(rider_id), str(manager_id)}
    assert str(second_admin_id) not in ids
    assert all(u["role"] != "admin" for u in users)
    assert all("balance" not in u for u in users)


@pytest.mark.asyncio
async def test_user_list_paginates(client: AsyncClient, admin_headers, create_user):
    for _ in range(3):
        await create_user()

    response = await client.get("/api/v1/users/", params={"limit": 2}, headers=admin_headers)

    assert response.status_code == 200
    assert len(response.json()) == 2


@pytest.mark.asyncio
async def test_user_list_is_admin_only(client: AsyncClient, rider_headers, manager_headers):
    for headers in (rider_headers, manager_headers):
        response = await client.get("/api/v1/users/", headers=headers)
        assert response.status_code == 403
