"""
Pydantic schemas for trip-related request/response validation.
"""

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

from busticket.core.config import get_settings

settings = get_settings()


class TripCreate(BaseModel):
    departure_city: str = Field(..., min_length=1, max_length=255)
    destination_city: str = Field(..., min_length=1, max_length=255)
    departure_time: datetime
    arrival_time: datetime
    price: int = Field(..., gt=0)
    capacity: int = Field(..., ge=1, le=1000)

    @model_validator(mode="after")
    def check_times(self):
        if self.arrival_time <= self.departure_time:
            raise ValueError("arrival_time must be after departure_time")
        return self


class TripUpdate(BaseModel):
    departure_city: Optional[str] = Field(None, min_length=1, max_length=255)
    destination_city: Optional[str] = Field(None, min_length=1, max_length=255)
    departure_time: Optional[datetime] = None
    arrival_time: Optional[datetime] = None
    price: Optional[int] = Field(None, gt=0)
    capacity: Optional[int] = Field(None, ge=1, le=1000)


class TripResponse(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    company_name: Optional[str] = None
    departure_city: str
    destination_city: str
    departure_time: datetime
    arrival_time: datetime
    price: int
    capacity: int
    booked_seats: int
    available_seats: int


class SeatStatus(BaseModel):
    seat_number: int
    status: Literal["booked", "available"]
    ticket_id: Optional[uuid.UUID] = None
    user_id: Optional[uuid.UUID] = None


class TripDetailResponse(TripResponse):
    seats: list[SeatStatus]
    user_has_ticket: Optional[bool] = None


class TripListResponse(BaseModel):
    trips: list[TripResponse]
    total: int
    limit: int
    offset: int
    cached: bool = False


class TripSearch(BaseModel):
    departure_city: Optional[str] = None
    destination_city: Optional[str] = None
    date: Optional[str] = Field(None, pattern=r"^\d{4}-\d{2}-\d{2}$")
    company_id: Optional[uuid.UUID] = None
    min_price: Optional[int] = Field(None, ge=0)
    max_price: Optional[int] = Field(None, ge=0)
    include_past: bool = False
    sort_by: Literal["price", "departure_time"] = "departure_time"
    sort_dir: Literal["asc", "desc"] = "asc"
    limit: int = Field(settings.TRIP_PAGE_SIZE_DEFAULT, ge=1, le=settings.TRIP_PAGE_SIZE_MAX)
    offset: int = Field(0, ge=0)

    def cache_key(self) -> str:
        return "&".join(f"{k}={v}" for k, v in sorted(self.model_dump().items()))
