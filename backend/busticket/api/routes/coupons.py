"""
Coupon endpoints.

Admins manage the global coupons they created; company managers manage
their company's coupons. Riders preview a code with /coupons/check.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from busticket.core.security import Principal, load_managed_company_id, require_role
from busticket.db.session import get_db
from busticket.models.user import UserRole
from busticket.schemas.coupon import (
    CouponCheckRequest,
    CouponCheckResponse,
    CouponCreate,
    CouponResponse,
    CouponUpdate,
)
from busticket.services import coupon_service

router = APIRouter(prefix="/coupons", tags=["Coupons"])


@dataclass(frozen=True)
class CouponScope:
    owner_id: uuid.UUID
    company_id: Optional[uuid.UUID]


async def get_coupon_scope(
    principal: Principal = Depends(require_role(UserRole.ADMIN, UserRole.COMPANY)),
    db: AsyncSession = Depends(get_db),
) -> CouponScope:
    if principal.is_admin:
        return CouponScope(owner_id=principal.user_id, company_id=None)
    company_id = await load_managed_company_id(db, principal)
    return CouponScope(owner_id=principal.user_id, company_id=company_id)


@router.post("/check", response_model=CouponCheckResponse)
async def check_coupon_endpoint(
    data: CouponCheckRequest,
    principal: Principal = Depends(require_role(UserRole.RIDER)),
    db: AsyncSession = Depends(get_db),
):
    """Preview a coupon without consuming it."""
    return await coupon_service.check_coupon(
        db, data.code, principal.user_id, data.trip_id, data.seat_count
    )


@router.get("/", response_model=list[CouponResponse])
async def list_coupons_endpoint(
    limit: Optional[int] = Query(None, ge=1, le=200),
    offset: int = Query(0, ge=0),
    scope: CouponScope = Depends(get_coupon_scope),
    db: AsyncSession = Depends(get_db),
):
    return await coupon_service.list_coupons(
        db, scope.owner_id, scope.company_id, limit=limit, offset=offset
    )


@router.post("/", response_model=CouponResponse, status_code=status.HTTP_201_CREATED)
async def create_coupon_endpoint(
    data: CouponCreate,
    scope: CouponScope = Depends(get_coupon_scope),
    db: AsyncSession = Depends(get_db),
):
    return await coupon_service.create_coupon(db, data, scope.owner_id, scope.company_id)


@router.get("/{coupon_id}", response_model=CouponResponse)
async def get_coupon_endpoint(
    coupon_id: uuid.UUID,
    scope: CouponScope = Depends(get_coupon_scope),
    db: AsyncSession = Depends(get_db),
):
    return await coupon_service.get_owned_coupon(db, coupon_id, scope.owner_id, scope.company_id)


@router.patch("/{coupon_id}", response_model=CouponResponse)
async def update_coupon_endpoint(
    coupon_id: uuid.UUID,
    changes: CouponUpdate,
    scope: CouponScope = Depends(get_coupon_scope),
    db: AsyncSession = Depends(get_db),
):
    return await coupon_service.update_coupon(
        db, coupon_id, changes, scope.owner_id, scope.company_id
    )


@router.delete("/{coupon_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_coupon_endpoint(
    coupon_id: uuid.UUID,
    scope: CouponScope = Depends(get_coupon_scope),
    db: AsyncSession = Depends(get_db),
):
    await coupon_service.delete_coupon(db, coupon_id, scope.owner_id, scope.company_id)
