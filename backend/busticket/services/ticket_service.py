"""
Read-side ticket queries.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from busticket.core.clock import as_utc
from busticket.core.exceptions import TicketNotFound
from busticket.models.company import BusCompany
from busticket.models.ticket import Ticket
from busticket.models.trip import Trip


async def get_ticket(db: AsyncSession, ticket_id: uuid.UUID) -> tuple[Ticket, Trip]:
    """Ticket and its trip; used for authorization before cancellation."""
    result = await db.execute(
        select(Ticket, Trip).join(Trip, Trip.id == Ticket.trip_id).where(Ticket.id == ticket_id)
    )
    row = result.first()
    if row is None:
        raise TicketNotFound(ticket_id=str(ticket_id))
    return row[0], row[1]


async def list_user_tickets(db: AsyncSession, user_id: uuid.UUID) -> list[dict]:
    """All of a rider's tickets, newest first, with a trip summary."""
    result = await db.execute(
        select(Ticket, Trip, BusCompany.name)
        .join(Trip, Trip.id == Ticket.trip_id)
        .join(BusCompany, BusCompany.id == Trip.company_id)
        .where(Ticket.user_id == user_id)
        .order_by(Ticket.created_at.desc())
    )

    tickets = []
    for ticket, trip, company_name in result.unique().all():
        tickets.append(
            {
                "id": ticket.id,
                "trip_id": ticket.trip_id,
                "user_id": ticket.user_id,
                "status": ticket.status,
                "total_price": ticket.total_price,
                "coupon_id": ticket.coupon_id,
                "seat_numbers": ticket.seat_numbers,
                "created_at": ticket.created_at,
                "departure_city": trip.departure_city,
                "destination_city": trip.destination_city,
                "departure_time": as_utc(trip.departure_time),
                "arrival_time": as_utc(trip.arrival_time),
                "seat_price": trip.price,
                "company_name": company_name,
            }
        )
    return tickets
