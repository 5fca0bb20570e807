from busticket.schemas.trip import (
    TripCreate, TripUpdate, TripResponse, TripDetailResponse, TripListResponse, TripSearch,
)
from busticket.schemas.booking import (
    BookingCreate, TicketResponse, TicketCancelResponse, TicketSummary, TripTicket,
)
from busticket.schemas.coupon import (
    CouponCreate, CouponUpdate, CouponResponse, CouponCheckRequest, CouponCheckResponse,
)
from busticket.schemas.company import (
    CompanyCreate, CompanyUpdate, CompanyResponse, CompanyDetailResponse, ManagerAssign, ManagerResponse,
    RefundSummaryResponse,
)
from busticket.schemas.user import UserSummary, UserProfile

__all__ = [
    "TripCreate", "TripUpdate", "TripResponse", "TripDetailResponse", "TripListResponse", "TripSearch",
    "BookingCreate", "TicketResponse", "TicketCancelResponse", "TicketSummary", "TripTicket",
    "CouponCreate", "CouponUpdate", "CouponResponse", "CouponCheckRequest", "CouponCheckResponse",
    "CompanyCreate", "CompanyUpdate", "CompanyResponse", "CompanyDetailResponse", "ManagerAssign", "ManagerResponse",
    "RefundSummaryResponse",
    "UserSummary", "UserProfile",
]
