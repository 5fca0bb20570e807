"""
Domain error taxonomy.

Every failure the booking, cancellation and refund engines can report is a
subclass of ``BookingError``. They extend FastAPI's ``HTTPException`` so the
route layer needs no translation table: each class pins its status code and
a stable ``code`` string, and the response body is

    {"detail": {"code": "...", "message": "...", <extra fields>}}

Extra keyword arguments passed to the constructor become structured fields
both on the instance and in the response (``SeatConflict(seats=[2])``).
Extras may not reuse a reserved name such as ``code`` or ``message``.
"""

from typing import Any, Optional

from fastapi import HTTPException, status

RESERVED_FIELDS = frozenset({"code", "message", "status_code", "detail", "headers"})


class BookingError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "booking_error"
    message = "Request could not be completed"
    headers: Optional[dict] = None

    def __init__(self, message: Optional[str] = None, **extra: Any):
        shadowed = RESERVED_FIELDS.intersection(extra)
        if shadowed:
            raise TypeError(f"{type(self).__name__} extras may not shadow {sorted(shadowed)}")
        self.message = message or self.message
        self.extra = extra
        for key, value in extra.items():
            setattr(self, key, value)
        super().__init__(
            status_code=self.status_code,
            detail={"code": self.code, "message": self.message, **extra},
            headers=self.headers,
        )


# ---------------------------------------------------------------------------
# Booking
# ---------------------------------------------------------------------------
class TripNotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "trip_not_found"
    message = "Trip not found"


class TripDeparted(BookingError):
    status_code = status.HTTP_410_GONE
    code = "trip_departed"
    message = "Trip has already departed; seats can no longer be purchased"


class InvalidSeat(BookingError):
    code = "invalid_seat"
    message = "Invalid seat selection"


class SeatConflict(BookingError):
    status_code = status.HTTP_409_CONFLICT
    code = "seat_conflict"
    message = "Selected seat(s) are already booked"


class InsufficientBalance(BookingError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    code = "insufficient_balance"
    message = "Insufficient balance"


class BookingContention(BookingError):
    status_code = status.HTTP_409_CONFLICT
    code = "booking_contention"
    message = "Booking failed due to high demand. Please try again."


# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------
class CouponNotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "coupon_not_found"
    message = "Coupon not found"


class CouponExpired(BookingError):
    status_code = status.HTTP_410_GONE
    code = "coupon_expired"
    message = "Coupon has expired"


class CouponExhausted(BookingError):
    status_code = status.HTTP_410_GONE
    code = "coupon_exhausted"
    message = "Coupon has no remaining uses"


class CouponScopeMismatch(BookingError):
    code = "coupon_scope_mismatch"
    message = "Coupon is not valid for this trip"


class CouponAlreadyUsed(BookingError):
    status_code = status.HTTP_409_CONFLICT
    code = "coupon_already_used"
    message = "Coupon has already been used"


class CouponCodeTaken(BookingError):
    status_code = status.HTTP_409_CONFLICT
    code = "coupon_code_taken"
    message = "Another coupon with the same code exists"


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------
class TicketNotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "ticket_not_found"
    message = "Ticket not found"


class TicketNotCancelable(BookingError):
    status_code = status.HTTP_409_CONFLICT
    code = "ticket_not_cancelable"
    message = "Ticket cannot be canceled (not active)"


class TooLateToCancel(BookingError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "too_late_to_cancel"
    message = "Tickets cannot be canceled within 1 hour of departure"


# ---------------------------------------------------------------------------
# Catalogue / administration
# ---------------------------------------------------------------------------
class CompanyNotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "company_not_found"
    message = "Company not found"


class CompanyNameTaken(BookingError):
    status_code = status.HTTP_409_CONFLICT
    code = "company_name_taken"
    message = "A company with this name already exists"


class UserNotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "user_not_found"
    message = "User not found"


class CapacityDecrease(BookingError):
    status_code = status.HTTP_409_CONFLICT
    code = "capacity_decrease"
    message = "Trip capacity cannot be decreased"


class ValidationFailure(BookingError):
    code = "validation_failure"
    message = "Invalid request"


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------
class Unauthenticated(BookingError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthenticated"
    message = "Could not validate credentials"
    headers = {"WWW-Authenticate": "Bearer"}


class TokenExpired(Unauthenticated):
    code = "token_expired"
    message = "Token has expired"


class Forbidden(BookingError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    message = "Not enough permissions"


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------
class StorageFailure(BookingError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "storage_failure"
    message = "The transaction could not be committed"
