"""
Booking endpoint with concurrency-safe seat reservation.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from busticket.core.logging import get_logger
from busticket.core.security import Principal, require_role
from busticket.db.session import get_db
from busticket.models.user import UserRole
from busticket.schemas.booking import BookingCreate, TicketResponse
from busticket.services.booking_service import book_seats
from busticket.services.cache_service import invalidate_trip_cache

logger = get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    principal: Principal = Depends(require_role(UserRole.RIDER)),
    db: AsyncSession = Depends(get_db),
):
    """
    Buy one or more seats on a trip, optionally with a coupon.

    The purchase is all-or-nothing: on any failure no seat is held, no
    balance is charged and the coupon is untouched. Concurrent purchases of
    the same seat are serialized per trip; at most one succeeds.
    """
    ticket = await book_seats(
        db,
        principal.user_id,
        booking_data.trip_id,
        booking_data.seat_numbers,
        booking_data.coupon_code,
    )
    # Availability changed
    await invalidate_trip_cache()
    return ticket
