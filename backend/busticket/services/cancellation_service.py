"""
Cancellation engine: reverse one active ticket.

Effects, all inside one unit of work:
  1. flip the ticket from active to canceled with a conditional UPDATE; the
     row is kept for audit. If no active row matched, another transaction
     already released it and nothing below happens.
  2. credit the owner with the ticket's total_price (full refund, no partial)
  3. give the coupon use back if the ticket redeemed one
  4. delete the ticket's BookedSeat rows (seats become free)

Authorization (owner or the trip company's manager) is decided by the caller.
"""

import uuid
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from busticket.core.clock import as_utc, utcnow
from busticket.core.exceptions import (
    BookingError,
    StorageFailure,
    TicketNotCancelable,
    TicketNotFound,
    TooLateToCancel,
    TripNotFound,
)
from busticket.core.logging import get_logger
from busticket.core.metrics import record_cancellation
from busticket.db.session import atomic
from busticket.models.ticket import Ticket, TicketStatus
from busticket.services import coupon_ledger, ledger
from busticket.services.booking_service import bump_trip_version, load_trip

logger = get_logger(__name__)

# Cancellation needs strictly more than this much time before departure
CANCELLATION_CUTOFF = timedelta(hours=1)


async def load_ticket(db: AsyncSession, ticket_id: uuid.UUID) -> Optional[Ticket]:
    result = await db.execute(
        select(Ticket).where(Ticket.id == ticket_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def release_ticket(db: AsyncSession, ticket: Ticket, restore_coupon: bool) -> bool:
    """
    Refund and free an active ticket. Shared by single cancellation
    (restore_coupon=True) and bulk refunds on trip/company deletion, which
    deliberately leave coupon usage consumed.

    Returns False, without touching any balance, when the ticket is no
    longer active in the store.
    """
    result = await db.execute(
        update(Ticket)
        .where(Ticket.id == ticket.id, Ticket.status == TicketStatus.ACTIVE.value)
        .values(status=TicketStatus.CANCELED.value)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return False
    set_committed_value(ticket, "status", TicketStatus.CANCELED.value)

    await ledger.credit(db, ticket.user_id, ticket.total_price)

    if restore_coupon and ticket.coupon_id is not None:
        await coupon_ledger.restore(db, ticket.coupon_id, ticket.user_id)

    ticket.seats.clear()
    await db.flush()
    return True


async def _cancel(db: AsyncSession, ticket_id: uuid.UUID, now: datetime) -> Ticket:
    ticket = await load_ticket(db, ticket_id)
    if ticket is None:
        raise TicketNotFound(ticket_id=str(ticket_id))

    if ticket.status != TicketStatus.ACTIVE.value:
        raise TicketNotCancelable(ticket_id=str(ticket_id), status=ticket.status)

    trip = await load_trip(db, ticket.trip_id)
    if trip is None:
        raise TripNotFound(trip_id=str(ticket.trip_id))

    departure = as_utc(trip.departure_time)
    if departure - now <= CANCELLATION_CUTOFF:
        raise TooLateToCancel(ticket_id=str(ticket_id), departure_time=departure.isoformat())

    if not await release_ticket(db, ticket, restore_coupon=True):
        raise TicketNotCancelable(ticket_id=str(ticket_id), status=TicketStatus.CANCELED.value)
    await bump_trip_version(db, trip.id)
    return ticket


async def cancel_ticket(
    db: AsyncSession,
    ticket_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> Ticket:
    """Cancel ``ticket_id`` with a full refund. Returns the canceled ticket."""
    now = now or utcnow()
    try:
        async with atomic(db):
            ticket = await _cancel(db, ticket_id, now)
    except StorageFailure:
        record_cancellation("error")
        raise
    except BookingError as e:
        record_cancellation("rejected")
        logger.info("cancellation_rejected", ticket_id=str(ticket_id), code=e.code)
        raise

    record_cancellation("success")
    logger.info(
        "ticket_cancelled",
        ticket_id=str(ticket.id),
        user_id=str(ticket.user_id),
        refunded=ticket.total_price,
        coupon_restored=ticket.coupon_id is not None,
    )
    return ticket
