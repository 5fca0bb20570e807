"""
Booking engine: seat purchase as one all-or-nothing transaction.

CONCURRENCY STRATEGY: Optimistic Locking with Retry + storage backstop
=====================================================================

Problem:
  Two riders pick seat 7 on the same trip at the same moment.
  Both read "seat 7 is free", both insert a BookedSeat, both pay.
  Result: Double booking.

Solution:
  Every booking claims the trip's `version` between the seat check and the
  seat insert:

  1. Read the trip (and its current version), validate the request and
     check the seat map for conflicts.
  2. UPDATE trips SET version = version + 1
     WHERE id = :trip_id AND version = :seen_version
  3. If rows_affected == 0, another booking/cancellation on this trip
     committed in between -> roll back the unit of work and retry from 1.
     The retry re-reads the seat map and normally ends in SeatConflict.

  On PostgreSQL the UPDATE in step 2 also takes the trip row lock, so two
  overlapping purchases cannot both get past it. The UNIQUE
  (trip_id, seat_number) constraint on booked_seats is the final safety
  net; a violation at flush time is reported as SeatConflict.

  Balance and coupon usage are decremented with conditional UPDATEs
  (see ledger.py, coupon_ledger.py), so they need no extra locking.

Failure semantics:
  Checks run in a fixed order (trip exists, not departed, seat list
  non-empty and in range, seat conflicts, coupon, balance). Any failure
  raises a BookingError and the `atomic` unit of work rolls everything back:
  no ticket, no seats, no balance change, no coupon mutation.
"""

import uuid
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from busticket.core.clock import as_utc, utcnow
from busticket.core.exceptions import (
    BookingContention,
    BookingError,
    SeatConflict,
    StorageFailure,
    TripDeparted,
    TripNotFound,
)
from busticket.core.logging import get_logger
from busticket.core.metrics import booking_latency, booking_retries, record_booking_attempt
from busticket.db.session import atomic
from busticket.models.ticket import BookedSeat, Ticket, TicketStatus
from busticket.models.trip import Trip
from busticket.services import coupon_ledger, ledger, seat_map

logger = get_logger(__name__)

MAX_RETRY_ATTEMPTS = 3


class TripVersionConflict(Exception):
    """The trip changed between the seat check and the version claim."""


async def load_trip(db: AsyncSession, trip_id: uuid.UUID) -> Optional[Trip]:
    result = await db.execute(
        select(Trip).where(Trip.id == trip_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def claim_trip_version(db: AsyncSession, trip: Trip) -> None:
    result = await db.execute(
        update(Trip)
        .where(Trip.id == trip.id, Trip.version == trip.version)
        .values(version=Trip.version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise TripVersionConflict(str(trip.id))


async def bump_trip_version(db: AsyncSession, trip_id: uuid.UUID) -> None:
    """Invalidate in-flight bookings that read this trip's seat map."""
    await db.execute(
        update(Trip)
        .where(Trip.id == trip_id)
        .values(version=Trip.version + 1)
        .execution_options(synchronize_session=False)
    )


async def _reserve(
    db: AsyncSession,
    rider_id: uuid.UUID,
    trip_id: uuid.UUID,
    seat_numbers: list[int],
    coupon_code: Optional[str],
    now: datetime,
) -> Ticket:
    trip = await load_trip(db, trip_id)
    if trip is None:
        raise TripNotFound(trip_id=str(trip_id))

    if as_utc(trip.departure_time) <= now:
        raise TripDeparted(trip_id=str(trip_id), departure_time=as_utc(trip.departure_time).isoformat())

    seats = seat_map.normalize_seats(seat_numbers)
    seat_map.validate_seat_range(seats, trip.capacity)

    conflicting = await seat_map.conflicts_for(db, trip.id, seats)
    if conflicting:
        raise SeatConflict(seats=conflicting)

    await claim_trip_version(db, trip)

    subtotal = trip.price * len(seats)
    discount = 0
    coupon_id = None
    if coupon_code:
        redemption = await coupon_ledger.redeem(
            db, coupon_code, rider_id, trip.company_id, subtotal, now
        )
        discount = redemption.discount_amount
        coupon_id = redemption.coupon_id

    final_price = max(0, subtotal - discount)
    await ledger.debit(db, rider_id, final_price)

    ticket = Ticket(
        trip_id=trip.id,
        user_id=rider_id,
        status=TicketStatus.ACTIVE.value,
        total_price=final_price,
        coupon_id=coupon_id,
        seats=[BookedSeat(trip_id=trip.id, seat_number=n) for n in seats],
    )
    db.add(ticket)
    try:
        await db.flush()
    except IntegrityError as e:
        if "booked_seats" in str(e.orig):
            raise SeatConflict(seats=seats) from e
        raise StorageFailure(error=type(e).__name__) from e

    await db.refresh(ticket, attribute_names=["created_at", "updated_at"])
    return ticket


async def book_seats(
    db: AsyncSession,
    rider_id: uuid.UUID,
    trip_id: uuid.UUID,
    seat_numbers: Iterable[int],
    coupon_code: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Ticket:
    """
    Purchase ``seat_numbers`` on ``trip_id`` for ``rider_id``, optionally
    applying ``coupon_code``. Returns the new active ticket.
    Retries up to MAX_RETRY_ATTEMPTS on trip version conflicts.
    """
    now = now or utcnow()
    coupon_code = coupon_code.strip() if coupon_code else None

    requested = list(seat_numbers)

    with booking_latency.time():
        for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
            try:
                async with atomic(db):
                    ticket = await _reserve(db, rider_id, trip_id, requested, coupon_code, now)
            except TripVersionConflict:
                booking_retries.inc()
                logger.info(
                    "booking_retry",
                    trip_id=str(trip_id),
                    attempt=attempt,
                    reason="version_conflict",
                )
                if attempt == MAX_RETRY_ATTEMPTS:
                    record_booking_attempt("conflict")
                    raise BookingContention(trip_id=str(trip_id))
                continue
            except SeatConflict as e:
                record_booking_attempt("conflict")
                logger.warning(
                    "booking_failed_seat_conflict",
                    trip_id=str(trip_id),
                    requested=requested,
                    conflicting=e.seats,
                )
                raise
            except StorageFailure:
                record_booking_attempt("error")
                raise
            except BookingError as e:
                record_booking_attempt("rejected")
                logger.info(
                    "booking_rejected",
                    trip_id=str(trip_id),
                    rider_id=str(rider_id),
                    code=e.code,
                )
                raise

            record_booking_attempt("success")
            logger.info(
                "booking_created",
                ticket_id=str(ticket.id),
                rider_id=str(rider_id),
                trip_id=str(trip_id),
                seats=ticket.seat_numbers,
                total_price=ticket.total_price,
                coupon_id=str(ticket.coupon_id) if ticket.coupon_id else None,
                attempt=attempt,
            )
            return ticket

    # Should not reach here, but just in case
    raise BookingContention(trip_id=str(trip_id))
