"""
Seat map: which seat numbers on a trip are held by active tickets.

Only active tickets own BookedSeat rows (cancellation deletes them), but
queries still join on ticket status so a half-applied state can never make a
seat look free.
"""

import uuid
from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from busticket.core.exceptions import InvalidSeat
from busticket.models.ticket import BookedSeat, Ticket, TicketStatus
from busticket.models.trip import Trip


def _active_seats_query(trip_id: uuid.UUID):
    return (
        select(BookedSeat.seat_number)
        .join(Ticket, Ticket.id == BookedSeat.ticket_id)
        .where(Ticket.trip_id == trip_id, Ticket.status == TicketStatus.ACTIVE.value)
    )


def normalize_seats(seat_numbers: Iterable[int]) -> list[int]:
    """De-duplicate and sort a requested seat list. Empty is a validation failure."""
    seats = sorted(set(int(n) for n in seat_numbers))
    if not seats:
        raise InvalidSeat("At least one seat must be selected", seats=[])
    return seats


def validate_seat_range(seats: Iterable[int], capacity: int) -> None:
    invalid = [n for n in seats if n < 1 or n > capacity]
    if invalid:
        raise InvalidSeat(
            f"Seat number(s) out of range 1-{capacity}: {', '.join(map(str, invalid))}",
            seats=invalid,
            capacity=capacity,
        )


async def occupied_seats(db: AsyncSession, trip_id: uuid.UUID) -> set[int]:
    result = await db.execute(_active_seats_query(trip_id))
    return set(result.scalars().all())


async def booked_count(db: AsyncSession, trip_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(BookedSeat)
        .join(Ticket, Ticket.id == BookedSeat.ticket_id)
        .where(Ticket.trip_id == trip_id, Ticket.status == TicketStatus.ACTIVE.value)
    )
    return result.scalar_one()


async def available_count(db: AsyncSession, trip: Trip) -> int:
    """capacity - active booked seats, floored at 0."""
    return max(0, trip.capacity - await booked_count(db, trip.id))


async def conflicts_for(db: AsyncSession, trip_id: uuid.UUID, seat_numbers: Iterable[int]) -> list[int]:
    """Subset of ``seat_numbers`` already held by an active ticket, sorted."""
    seats = list(seat_numbers)
    if not seats:
        return []
    result = await db.execute(_active_seats_query(trip_id).where(BookedSeat.seat_number.in_(seats)))
    return sorted(set(result.scalars().all()))


async def seat_layout(db: AsyncSession, trip: Trip) -> list[dict]:
    """Per-seat status for 1..capacity, used by the trip detail view."""
    result = await db.execute(
        select(BookedSeat.seat_number, Ticket.id, Ticket.user_id)
        .join(Ticket, Ticket.id == BookedSeat.ticket_id)
        .where(Ticket.trip_id == trip.id, Ticket.status == TicketStatus.ACTIVE.value)
    )
    booked = {seat: (ticket_id, user_id) for seat, ticket_id, user_id in result.all()}

    layout = []
    for number in range(1, trip.capacity + 1):
        if number in booked:
            ticket_id, user_id = booked[number]
            layout.append(
                {"seat_number": number, "status": "booked", "ticket_id": ticket_id, "user_id": user_id}
            )
        else:
            layout.append({"seat_number": number, "status": "available"})
    return layout
