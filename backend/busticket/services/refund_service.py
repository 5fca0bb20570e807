"""
Bulk refund engine: reverse every active ticket of a trip that is being
deleted, directly or because its company is being deleted.

Per active ticket: mark it canceled, credit total_price and delete its
seats, then hard-delete the ticket row with the trip (audit-then-purge). A
ticket that is no longer active by the time it is marked is skipped and not
counted in the summary. Unlike single-ticket
cancellation, coupon usage is NOT given back here; this mirrors the
established behavior and is pending product confirmation.

Each public entry point is a single unit of work: a failure on any ticket or
row rolls back every refund and deletion made so far.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from busticket.core.clock import as_utc, utcnow
from busticket.core.exceptions import CompanyNotFound, TripNotFound
from busticket.core.logging import get_logger
from busticket.core.metrics import record_bulk_refund
from busticket.db.session import atomic
from busticket.models.company import BusCompany
from busticket.models.coupon import Coupon, UserCouponUse
from busticket.models.ticket import BookedSeat, Ticket, TicketStatus
from busticket.models.trip import Trip
from busticket.models.user import User, UserRole
from busticket.services.cancellation_service import release_ticket

logger = get_logger(__name__)


@dataclass
class RefundSummary:
    trips_deleted: int = 0
    tickets_refunded: int = 0
    amount_refunded: int = 0
    refunds: dict = field(default_factory=dict)  # user_id -> amount

    def add(self, ticket: Ticket) -> None:
        self.tickets_refunded += 1
        self.amount_refunded += ticket.total_price
        self.refunds[ticket.user_id] = self.refunds.get(ticket.user_id, 0) + ticket.total_price


async def refund_active_tickets(db: AsyncSession, trip_id: uuid.UUID, summary: RefundSummary) -> None:
    result = await db.execute(
        select(Ticket).where(
            Ticket.trip_id == trip_id,
            Ticket.status == TicketStatus.ACTIVE.value,
        )
    )
    for ticket in result.scalars().all():
        # A concurrent cancellation may have refunded it already
        if await release_ticket(db, ticket, restore_coupon=False):
            summary.add(ticket)
        db.expunge(ticket)


async def _purge_trip_rows(db: AsyncSession, trip_ids: list[uuid.UUID]) -> None:
    """Remove every remaining ticket/seat row of ``trip_ids`` and the trips."""
    if not trip_ids:
        return
    await db.execute(
        delete(BookedSeat)
        .where(BookedSeat.trip_id.in_(trip_ids))
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        delete(Ticket).where(Ticket.trip_id.in_(trip_ids)).execution_options(synchronize_session=False)
    )
    await db.execute(
        delete(Trip).where(Trip.id.in_(trip_ids)).execution_options(synchronize_session=False)
    )


async def delete_trip(db: AsyncSession, trip_id: uuid.UUID) -> RefundSummary:
    """Refund all active tickets of ``trip_id`` and delete the trip."""
    summary = RefundSummary()
    async with atomic(db):
        trip = await db.get(Trip, trip_id)
        if trip is None:
            raise TripNotFound(trip_id=str(trip_id))

        await refund_active_tickets(db, trip.id, summary)
        await _purge_trip_rows(db, [trip.id])
        db.expunge(trip)
        summary.trips_deleted = 1

    record_bulk_refund("trip_deleted", summary.tickets_refunded)
    logger.info(
        "trip_deleted_with_refunds",
        trip_id=str(trip_id),
        tickets_refunded=summary.tickets_refunded,
        amount_refunded=summary.amount_refunded,
    )
    return summary


async def delete_company(
    db: AsyncSession,
    company_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> RefundSummary:
    """
    Delete a company. Riders holding tickets on its upcoming trips are
    refunded; trips that already departed are purged without refund. The
    company's scoped coupons are removed, its managers are demoted to plain
    riders, and finally the company row is deleted.
    """
    now = now or utcnow()
    summary = RefundSummary()
    async with atomic(db):
        company = await db.get(BusCompany, company_id)
        if company is None:
            raise CompanyNotFound(company_id=str(company_id))

        result = await db.execute(select(Trip).where(Trip.company_id == company_id))
        trips = list(result.scalars().all())
        upcoming = [trip for trip in trips if as_utc(trip.departure_time) > now]

        for trip in upcoming:
            await refund_active_tickets(db, trip.id, summary)

        trip_ids = [trip.id for trip in trips]
        for trip in trips:
            db.expunge(trip)
        await _purge_trip_rows(db, trip_ids)
        summary.trips_deleted = len(trip_ids)

        coupon_ids = select(Coupon.id).where(Coupon.company_id == company_id)
        await db.execute(
            update(Ticket)
            .where(Ticket.coupon_id.in_(coupon_ids))
            .values(coupon_id=None)
            .execution_options(synchronize_session=False)
        )
        await db.execute(
            delete(UserCouponUse)
            .where(UserCouponUse.coupon_id.in_(coupon_ids))
            .execution_options(synchronize_session=False)
        )
        await db.execute(
            delete(Coupon).where(Coupon.company_id == company_id).execution_options(synchronize_session=False)
        )

        await db.execute(
            update(User)
            .where(User.company_id == company_id)
            .values(role=UserRole.RIDER.value, company_id=None)
            .execution_options(synchronize_session=False)
        )
        db.expunge(company)
        await db.execute(
            delete(BusCompany).where(BusCompany.id == company_id).execution_options(synchronize_session=False)
        )

    record_bulk_refund("company_deleted", summary.tickets_refunded)
    logger.info(
        "company_deleted_with_refunds",
        company_id=str(company_id),
        trips_deleted=summary.trips_deleted,
        tickets_refunded=summary.tickets_refunded,
        amount_refunded=summary.amount_refunded,
    )
    return summary
