"""
Pydantic schemas for coupon request/response validation.

Discounts are integer percents in 0..50; out-of-range values are rejected
here rather than clamped later.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from busticket.models.coupon import MAX_DISCOUNT_PERCENT


class CouponCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)
    discount_percent: int = Field(..., ge=0, le=MAX_DISCOUNT_PERCENT)
    usage_limit: int = Field(..., ge=0)
    expire_date: datetime


class CouponUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=64)
    discount_percent: Optional[int] = Field(None, ge=0, le=MAX_DISCOUNT_PERCENT)
    usage_limit: Optional[int] = Field(None, ge=0)
    expire_date: Optional[datetime] = None


class CouponResponse(BaseModel):
    id: uuid.UUID
    code: str
    discount_percent: int
    company_id: Optional[uuid.UUID] = None
    usage_limit: int
    expire_date: datetime
    used_count: Optional[int] = None

    model_config = {"from_attributes": True}


class CouponCheckRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)
    trip_id: Optional[uuid.UUID] = None
    seat_count: Optional[int] = Field(None, ge=1)


class CouponCheckResponse(BaseModel):
    coupon: CouponResponse
    subtotal: Optional[int] = None
    discount_amount: Optional[int] = None
    final_price: Optional[int] = None
