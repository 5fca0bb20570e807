"""
Tests for the seat map: normalization, range checks and occupancy.
"""

import pytest

from busticket.core.exceptions import InvalidSeat
from busticket.services import seat_map
from busticket.services.booking_service import book_seats
from busticket.services.cancellation_service import cancel_ticket


def test_normalize_dedupes_and_sorts():
    assert seat_map.normalize_seats([5, 2, 5, 3]) == [2, 3, 5]


def test_normalize_rejects_empty():
    with pytest.raises(InvalidSeat) as exc:
        seat_map.normalize_seats([])
    assert exc.value.seats == []


def test_validate_seat_range_reports_offenders():
    with pytest.raises(InvalidSeat) as exc:
        seat_map.validate_seat_range([0, 1, 40, 41], capacity=40)
    assert exc.value.seats == [0, 41]
    assert exc.value.capacity == 40

    seat_map.validate_seat_range([1, 40], capacity=40)


@pytest.mark.asyncio
async def test_empty_trip_is_fully_available(db_session, trip):
    assert await seat_map.occupied_seats(db_session, trip.id) == set()
    assert await seat_map.available_count(db_session, trip) == 40
    assert await seat_map.conflicts_for(db_session, trip.id, [1, 2]) == []


@pytest.mark.asyncio
async def test_occupancy_follows_active_tickets(db_session, trip, rider):
    trip_id, rider_id = trip.id, rider.id
    ticket = await book_seats(db_session, rider_id, trip_id, [3, 7])

    assert await seat_map.occupied_seats(db_session, trip_id) == {3, 7}
    assert await seat_map.booked_count(db_session, trip_id) == 2
    assert await seat_map.conflicts_for(db_session, trip_id, [7, 8, 3]) == [3, 7]

    await cancel_ticket(db_session, ticket.id)

    assert await seat_map.occupied_seats(db_session, trip_id) == set()
    assert await seat_map.booked_count(db_session, trip_id) == 0


@pytest.mark.asyncio
async def test_seat_layout_marks_booked_seats(db_session, create_trip, company, rider):
    small = await create_trip(company, capacity=4)
    rider_id = rider.id
    ticket = await book_seats(db_session, rider_id, small.id, [2])

    layout = await seat_map.seat_layout(db_session, small)

    assert [s["seat_number"] for s in layout] == [1, 2, 3, 4]
    assert [s["status"] for s in layout] == ["available", "booked", "available", "available"]
    assert layout[1]["ticket_id"] == ticket.id
    assert layout[1]["user_id"] == rider_id
