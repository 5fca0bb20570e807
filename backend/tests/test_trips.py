"""
Tests for trip endpoints: management by company staff, search and detail.
"""

import uuid
from datetime import timedelta

import pytest
from httpx import AsyncClient

from busticket.core.clock import utcnow
from busticket.models.user import UserRole
from busticket.services import ledger


def _trip_payload(**overrides) -> dict:
    departure = utcnow() + timedelta(days=3)
    payload = {
        "departure_city": "Izmir",
        "destination_city": "Bursa",
        "departure_time": departure.isoformat(),
        "arrival_time": (departure + timedelta(hours=5)).isoformat(),
        "price": 250,
        "capacity": 30,
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_manager_creates_trip(client: AsyncClient, manager_headers, company):
    company_id = company.id

    response = await client.post("/api/v1/trips/", json=_trip_payload(), headers=manager_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["company_id"] == str(company_id)
    assert data["company_name"] == "Anatolia Express"
    assert data["available_seats"] == 30
    assert data["booked_seats"] == 0


@pytest.mark.asyncio
async def test_create_trip_rejects_arrival_before_departure(client: AsyncClient, manager_headers):
    departure = utcnow() + timedelta(days=3)
    payload = _trip_payload(
        departure_time=departure.isoformat(),
        arrival_time=(departure - timedelta(hours=1)).isoformat(),
    )

    response = await client.post("/api/v1/trips/", json=payload, headers=manager_headers)

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_riders_cannot_create_trips(client: AsyncClient, rider_headers):
    response = await client.post("/api/v1/trips/", json=_trip_payload(), headers=rider_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_manager_without_company_is_forbidden(client: AsyncClient, create_user, headers_for):
    orphan = await create_user(UserRole.COMPANY, balance=0)

    response = await client.post("/api/v1/trips/", json=_trip_payload(), headers=headers_for(orphan))

    assert response.status_code == 403


# ---------------------------------------------------------------------------
# Search and detail
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_list_trips_filters_and_sorts(client: AsyncClient, company, create_trip):
    await create_trip(company, price=300, departure_city="Istanbul", destination_city="Ankara")
    await create_trip(company, price=120, departure_city="Istanbul", destination_city="Antalya")
    await create_trip(company, price=90, departure_city="Izmir", destination_city="Ankara")

    response = await client.get(
        "/api/v1/trips/", params={"departure_city": "istanbul", "sort_by": "price"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert [t["price"] for t in data["trips"]] == [120, 300]
    assert data["cached"] is False


@pytest.mark.asyncio
async def test_list_trips_hides_departed(client: AsyncClient, company, create_trip):
    await create_trip(company, departs_in=timedelta(hours=-2))
    upcoming = await create_trip(company)
    upcoming_id = upcoming.id

    response = await client.get("/api/v1/trips/")
    assert [t["id"] for t in response.json()["trips"]] == [str(upcoming_id)]

    response = await client.get("/api/v1/trips/", params={"include_past": True})
    assert response.json()["total"] == 2


@pytest.mark.asyncio
async def test_list_trips_paginates(client: AsyncClient, company, create_trip):
    for hours in (10, 20, 30):
        await create_trip(company, departs_in=timedelta(hours=hours))

    response = await client.get("/api/v1/trips/", params={"limit": 2, "offset": 2})

    data = response.json()
    assert data["total"] == 3
    assert len(data["trips"]) == 1
    assert data["limit"] == 2
    assert data["offset"] == 2


@pytest.mark.asyncio
async def test_trip_detail_seat_layout(client: AsyncClient, rider_headers, create_trip, company):
    small = await create_trip(company, capacity=4)
    trip_id = small.id
    await client.post(
        "/api/v1/bookings/",
        json={"trip_id": str(trip_id), "seat_numbers": [2]},
        headers=rider_headers,
    )

    anonymous = await client.get(f"/api/v1/trips/{trip_id}")
    data = anonymous.json()
    assert [s["status"] for s in data["seats"]] == ["available", "booked", "available", "available"]
    assert data["available_seats"] == 3
    assert data["user_has_ticket"] is None

    mine = await client.get(f"/api/v1/trips/{trip_id}", headers=rider_headers)
    assert mine.json()["user_has_ticket"] is True


@pytest.mark.asyncio
async def test_trip_detail_not_found(client: AsyncClient):
    response = await client.get(f"/api/v1/trips/{uuid.uuid4()}")
    assert response.status_code == 404


# ---------------------------------------------------------------------------
# Update and delete
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_capacity_can_grow(client: AsyncClient, manager_headers, trip):
    response = await client.patch(
        f"/api/v1/trips/{trip.id}", json={"capacity": 50, "price": 120}, headers=manager_headers
    )

    assert response.status_code == 200
    assert response.json()["capacity"] == 50
    assert response.json()["price"] == 120


@pytest.mark.asyncio
async def test_capacity_cannot_shrink(client: AsyncClient, manager_headers, trip):
    response = await client.patch(
        f"/api/v1/trips/{trip.id}", json={"capacity": 39}, headers=manager_headers
    )

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "capacity_decrease"


@pytest.mark.asyncio
async def test_other_company_trip_is_invisible(
    client: AsyncClient, create_company, create_user, trip, headers_for
):
    rival = await create_company("Rival Lines")
    rival_manager = await create_user(UserRole.COMPANY, balance=0, company=rival)

    response = await client.patch(
        f"/api/v1/trips/{trip.id}", json={"price": 1}, headers=headers_for(rival_manager)
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_trip_tickets_for_manager(
    client: AsyncClient, rider, rider_headers, manager_headers, trip
):
    rider_email = rider.email
    trip_id = trip.id
    await client.post(
        "/api/v1/bookings/",
        json={"trip_id": str(trip_id), "seat_numbers": [1, 2]},
        headers=rider_headers,
    )

    response = await client.get(f"/api/v1/trips/{trip_id}/tickets", headers=manager_headers)

    assert response.status_code == 200
    tickets = response.json()
    assert len(tickets) == 1
    assert tickets[0]["email"] == rider_email
    assert tickets[0]["seat_numbers"] == [1, 2]


@pytest.mark.asyncio
async def test_delete_trip_refunds_riders(
    client: AsyncClient, db_session, rider, rider_headers, manager_headers, trip
):
    rider_id, trip_id = rider.id, trip.id
    await client.post(
        "/api/v1/bookings/",
        json={"trip_id": str(trip_id), "seat_numbers": [1, 2, 3]},
        headers=rider_headers,
    )
    assert await ledger.get_balance(db_session, rider_id) == 500

    response = await client.delete(f"/api/v1/trips/{trip_id}", headers=manager_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["tickets_refunded"] == 1
    assert data["amount_refunded"] == 300
    assert await ledger.get_balance(db_session, rider_id) == 800

    gone = await client.get(f"/api/v1/trips/{trip_id}")
    assert gone.status_code == 404
