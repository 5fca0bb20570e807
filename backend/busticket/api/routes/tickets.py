"""
Ticket endpoints: the rider's ticket list and cancellation.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from busticket.core.exceptions import Forbidden
from busticket.core.security import Principal, get_current_principal, require_role
from busticket.db.session import get_db
from busticket.models.user import User, UserRole
from busticket.schemas.booking import TicketCancelResponse, TicketSummary
from busticket.services.cache_service import invalidate_trip_cache
from busticket.services.cancellation_service import cancel_ticket
from busticket.services.ticket_service import get_ticket, list_user_tickets

router = APIRouter(prefix="/tickets", tags=["Tickets"])


@router.get("/", response_model=list[TicketSummary])
async def list_my_tickets(
    principal: Principal = Depends(require_role(UserRole.RIDER)),
    db: AsyncSession = Depends(get_db),
):
    """All tickets of the authenticated rider, newest first."""
    return await list_user_tickets(db, principal.user_id)


async def _may_cancel(db: AsyncSession, principal: Principal, owner_id, company_id) -> bool:
    if principal.user_id == owner_id:
        return True
    if principal.role != UserRole.COMPANY.value:
        return False
    result = await db.execute(select(User.company_id).where(User.id == principal.user_id))
    return result.scalar_one_or_none() == company_id


@router.delete("/{ticket_id}", response_model=TicketCancelResponse)
async def cancel_ticket_endpoint(
    ticket_id: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """
    Cancel a ticket with a full refund. Allowed for the ticket owner and for
    managers of the company running the trip, until one hour before departure.
    """
    ticket, trip = await get_ticket(db, ticket_id)
    if not await _may_cancel(db, principal, ticket.user_id, trip.company_id):
        raise Forbidden("You may not cancel this ticket", ticket_id=str(ticket_id))

    ticket = await cancel_ticket(db, ticket_id)
    await invalidate_trip_cache()
    return TicketCancelResponse(
        message="Ticket cancelled successfully",
        ticket_id=ticket.id,
        status=ticket.status,
        refunded=ticket.total_price,
    )
