"""
Trip catalogue: create, update, search and inspect trips.

Deletion lives in refund_service because it must refund active tickets.
"""

import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from busticket.core.clock import as_utc, utcnow
from busticket.core.exceptions import CapacityDecrease, TripNotFound, ValidationFailure
from busticket.core.logging import get_logger
from busticket.db.session import atomic
from busticket.models.coupon import Coupon
from busticket.models.ticket import BookedSeat, Ticket, TicketStatus
from busticket.models.trip import Trip
from busticket.models.user import User
from busticket.schemas.trip import TripCreate, TripSearch, TripUpdate
from busticket.services import seat_map

logger = get_logger(__name__)


def trip_to_dict(trip: Trip, booked: int) -> dict:
    return {
        "id": trip.id,
        "company_id": trip.company_id,
        "company_name": trip.company.name if trip.company is not None else None,
        "departure_city": trip.departure_city,
        "destination_city": trip.destination_city,
        "departure_time": as_utc(trip.departure_time),
        "arrival_time": as_utc(trip.arrival_time),
        "price": trip.price,
        "capacity": trip.capacity,
        "booked_seats": booked,
        "available_seats": max(0, trip.capacity - booked),
    }


async def create_trip(db: AsyncSession, company_id: uuid.UUID, trip_data: TripCreate) -> Trip:
    """Create a trip for ``company_id``. Every seat starts available."""
    departure = as_utc(trip_data.departure_time)
    arrival = as_utc(trip_data.arrival_time)
    if arrival <= departure:
        raise ValidationFailure("Arrival time must be after departure time")

    async with atomic(db):
        trip = Trip(
            company_id=company_id,
            departure_city=trip_data.departure_city.strip(),
            destination_city=trip_data.destination_city.strip(),
            departure_time=departure,
            arrival_time=arrival,
            price=trip_data.price,
            capacity=trip_data.capacity,
        )
        db.add(trip)
        await db.flush()
        trip_id = trip.id

    logger.info(
        "trip_created",
        trip_id=str(trip_id),
        company_id=str(company_id),
        route=f"{trip.departure_city}->{trip.destination_city}",
        capacity=trip.capacity,
    )
    return await get_trip_model(db, trip_id)


async def get_trip_model(db: AsyncSession, trip_id: uuid.UUID) -> Trip:
    result = await db.execute(
        select(Trip).where(Trip.id == trip_id).execution_options(populate_existing=True)
    )
    trip = result.scalar_one_or_none()
    if trip is None:
        raise TripNotFound(trip_id=str(trip_id))
    return trip


async def update_trip(db: AsyncSession, trip_id: uuid.UUID, changes: TripUpdate) -> Trip:
    """
    Apply a partial update. Capacity may only grow, which also keeps it at
    or above the number of seats held by active tickets.
    """
    values = changes.model_dump(exclude_unset=True, exclude_none=True)

    async with atomic(db):
        trip = await get_trip_model(db, trip_id)

        if "capacity" in values and values["capacity"] < trip.capacity:
            raise CapacityDecrease(
                trip_id=str(trip_id), capacity=trip.capacity, requested=values["capacity"]
            )

        for key in ("departure_time", "arrival_time"):
            if key in values:
                values[key] = as_utc(values[key])
        departure = values.get("departure_time", as_utc(trip.departure_time))
        arrival = values.get("arrival_time", as_utc(trip.arrival_time))
        if arrival <= departure:
            raise ValidationFailure("Arrival time must be after departure time")

        for key, value in values.items():
            if isinstance(value, str):
                value = value.strip()
            setattr(trip, key, value)
        trip.version = trip.version + 1
        await db.flush()

    logger.info("trip_updated", trip_id=str(trip_id), fields=sorted(values))
    return await get_trip_model(db, trip_id)


async def get_trip(
    db: AsyncSession, trip_id: uuid.UUID, viewer_id: Optional[uuid.UUID] = None
) -> dict:
    """Trip detail with live seat counts and the per-seat layout."""
    trip = await get_trip_model(db, trip_id)
    layout = await seat_map.seat_layout(db, trip)
    booked = sum(1 for seat in layout if seat["status"] == "booked")

    detail = trip_to_dict(trip, booked)
    detail["seats"] = layout
    if viewer_id is not None:
        detail["user_has_ticket"] = any(seat.get("user_id") == viewer_id for seat in layout)
    return detail


def _day_bounds(day: str) -> tuple[datetime, datetime]:
    try:
        parsed = date.fromisoformat(day)
    except ValueError:
        raise ValidationFailure("Invalid date", date=day)
    start = datetime(parsed.year, parsed.month, parsed.day, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


async def list_trips(
    db: AsyncSession,
    search: TripSearch,
    now: Optional[datetime] = None,
) -> tuple[list[dict], int]:
    """
    Search trips. Uses ix_trips_route for city filters and
    ix_trips_departure_time for the date window and default ordering.
    """
    now = now or utcnow()
    query = select(Trip)

    if search.departure_city:
        query = query.where(Trip.departure_city.ilike(f"%{search.departure_city.strip()}%"))
    if search.destination_city:
        query = query.where(Trip.destination_city.ilike(f"%{search.destination_city.strip()}%"))
    if search.company_id:
        query = query.where(Trip.company_id == search.company_id)
    if search.min_price is not None:
        query = query.where(Trip.price >= search.min_price)
    if search.max_price is not None:
        query = query.where(Trip.price <= search.max_price)
    if search.date:
        start, end = _day_bounds(search.date)
        query = query.where(Trip.departure_time >= start, Trip.departure_time < end)
    if not search.include_past:
        query = query.where(Trip.departure_time > now)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    column = Trip.price if search.sort_by == "price" else Trip.departure_time
    ordering = column.desc() if search.sort_dir == "desc" else column.asc()
    result = await db.execute(
        query.order_by(ordering, Trip.id).offset(search.offset).limit(search.limit)
    )
    trips = list(result.scalars().unique().all())

    counts = await _booked_counts(db, [trip.id for trip in trips])
    return [trip_to_dict(trip, counts.get(trip.id, 0)) for trip in trips], total


async def _booked_counts(db: AsyncSession, trip_ids: list[uuid.UUID]) -> dict:
    if not trip_ids:
        return {}
    result = await db.execute(
        select(Ticket.trip_id, func.count(BookedSeat.id))
        .join(BookedSeat, BookedSeat.ticket_id == Ticket.id)
        .where(Ticket.trip_id.in_(trip_ids), Ticket.status == TicketStatus.ACTIVE.value)
        .group_by(Ticket.trip_id)
    )
    return {trip_id: count for trip_id, count in result.all()}


async def list_trip_tickets(db: AsyncSession, trip_id: uuid.UUID) -> list[dict]:
    """Every ticket on a trip, newest first, with the buyer and coupon code."""
    await get_trip_model(db, trip_id)

    result = await db.execute(
        select(Ticket, User.full_name, User.email, Coupon.code)
        .join(User, User.id == Ticket.user_id)
        .outerjoin(Coupon, Coupon.id == Ticket.coupon_id)
        .where(Ticket.trip_id == trip_id)
        .order_by(Ticket.created_at.desc())
    )
    tickets = []
    for ticket, full_name, email, coupon_code in result.all():
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
                "coupon_code": coupon_code,
                "full_name": full_name,
                "email": email,
            }
        )
    return tickets

