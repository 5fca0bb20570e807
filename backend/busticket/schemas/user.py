"""
Pydantic schemas for user accounts.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class UserSummary(BaseModel):
    """Admin listing row; wallet and timestamps are left out."""

    id: uuid.UUID
    email: str
    full_name: Optional[str] = None
    role: str
    company_id: Optional[uuid.UUID] = None

    model_config = {"from_attributes": True}


class UserProfile(UserSummary):
    balance: int
    created_at: datetime
