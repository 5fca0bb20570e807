"""
Pydantic schemas for booking and ticket request/response validation.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class BookingCreate(BaseModel):
    trip_id: uuid.UUID
    seat_numbers: list[int] = Field(
        ...,
        min_length=1,
        max_length=100,
        validation_alias=AliasChoices("seat_numbers", "seats"),
    )
    coupon_code: Optional[str] = Field(None, max_length=64)


class TicketResponse(BaseModel):
    id: uuid.UUID
    trip_id: uuid.UUID
    user_id: uuid.UUID
    status: str
    total_price: int
    coupon_id: Optional[uuid.UUID] = None
    seat_numbers: list[int]
    created_at: datetime

    model_config = {"from_attributes": True}


class TicketCancelResponse(BaseModel):
    message: str
    ticket_id: uuid.UUID
    status: str
    refunded: int


class TicketSummary(TicketResponse):
    """Rider-facing ticket with a trip summary."""

    departure_city: Optional[str] = None
    destination_city: Optional[str] = None
    departure_time: Optional[datetime] = None
    arrival_time: Optional[datetime] = None
    seat_price: Optional[int] = None
    company_name: Optional[str] = None


class TripTicket(TicketResponse):
    """Company-manager view of a ticket on one of their trips."""

    coupon_code: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
