"""
Pydantic schemas for bus company administration.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CompanyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    logo_path: Optional[str] = Field(None, max_length=500)


class CompanyUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    logo_path: Optional[str] = Field(None, max_length=500)


class CompanyResponse(BaseModel):
    id: uuid.UUID
    name: str
    logo_path: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ManagerAssign(BaseModel):
    user_id: uuid.UUID


class RefundSummaryResponse(BaseModel):
    message: str
    trips_deleted: int
    tickets_refunded: int
    amount_refunded: int


class ManagerResponse(BaseModel):
    id: uuid.UUID
    email: str
    full_name: Optional[str] = None
    role: str

    model_config = {"from_attributes": True}


class CompanyDetailResponse(CompanyResponse):
    managers: list[ManagerResponse]
