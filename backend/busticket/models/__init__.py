from busticket.models.user import User, UserRole
from busticket.models.company import BusCompany
from busticket.models.trip import Trip
from busticket.models.ticket import Ticket, TicketStatus, BookedSeat
from busticket.models.coupon import Coupon, UserCouponUse, MAX_DISCOUNT_PERCENT

__all__ = [
    "User", "UserRole",
    "BusCompany",
    "Trip",
    "Ticket", "TicketStatus", "BookedSeat",
    "Coupon", "UserCouponUse", "MAX_DISCOUNT_PERCENT",
]
