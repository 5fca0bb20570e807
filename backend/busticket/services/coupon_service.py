"""
Coupon administration and the rider-facing coupon preview.

Ownership:
  - global coupons (company_id NULL) belong to the admin who created them
  - company coupons belong to the company; any of its managers may edit them

A coupon the caller does not own is reported as CouponNotFound, the same as
a missing one. Codes are unique within their scope (global, or one company).
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from busticket.core.clock import as_utc
from busticket.core.exceptions import CouponCodeTaken, CouponNotFound, ValidationFailure
from busticket.core.logging import get_logger
from busticket.db.session import atomic
from busticket.models.coupon import Coupon, UserCouponUse
from busticket.models.ticket import Ticket
from busticket.schemas.coupon import CouponCreate, CouponUpdate
from busticket.services import coupon_ledger
from busticket.services.trip_service import get_trip_model

logger = get_logger(__name__)


def _owned_by(owner_id: uuid.UUID, company_id: Optional[uuid.UUID]):
    if company_id is None:
        return (Coupon.company_id.is_(None), Coupon.created_by_id == owner_id)
    return (Coupon.company_id == company_id,)


async def _ensure_code_free(
    db: AsyncSession,
    code: str,
    company_id: Optional[uuid.UUID],
    exclude_id: Optional[uuid.UUID] = None,
) -> None:
    query = select(Coupon.id).where(Coupon.code == code)
    if company_id is None:
        query = query.where(Coupon.company_id.is_(None))
    else:
        query = query.where(Coupon.company_id == company_id)
    if exclude_id is not None:
        query = query.where(Coupon.id != exclude_id)

    if (await db.execute(query)).first() is not None:
        raise CouponCodeTaken(coupon_code=code)


async def get_owned_coupon(
    db: AsyncSession,
    coupon_id: uuid.UUID,
    owner_id: uuid.UUID,
    company_id: Optional[uuid.UUID] = None,
) -> Coupon:
    result = await db.execute(
        select(Coupon).where(Coupon.id == coupon_id, *_owned_by(owner_id, company_id))
    )
    coupon = result.scalar_one_or_none()
    if coupon is None:
        raise CouponNotFound(coupon_id=str(coupon_id))
    return coupon


async def create_coupon(
    db: AsyncSession,
    data: CouponCreate,
    owner_id: uuid.UUID,
    company_id: Optional[uuid.UUID] = None,
) -> Coupon:
    """Create a global coupon (admin) or one scoped to ``company_id``."""
    code = data.code.strip()
    if not code:
        raise ValidationFailure("Coupon code must not be blank")

    async with atomic(db):
        await _ensure_code_free(db, code, company_id)
        coupon = Coupon(
            code=code,
            discount_percent=data.discount_percent,
            company_id=company_id,
            usage_limit=data.usage_limit,
            expire_date=as_utc(data.expire_date),
            created_by_id=owner_id,
        )
        db.add(coupon)
        await db.flush()

    logger.info(
        "coupon_created",
        coupon_id=str(coupon.id),
        code=code,
        company_id=str(company_id) if company_id else None,
        discount_percent=coupon.discount_percent,
    )
    return coupon


async def update_coupon(
    db: AsyncSession,
    coupon_id: uuid.UUID,
    changes: CouponUpdate,
    owner_id: uuid.UUID,
    company_id: Optional[uuid.UUID] = None,
) -> Coupon:
    values = changes.model_dump(exclude_unset=True, exclude_none=True)
    if not values:
        raise ValidationFailure("No fields to update")

    async with atomic(db):
        coupon = await get_owned_coupon(db, coupon_id, owner_id, company_id)
        if "code" in values:
            values["code"] = values["code"].strip()
            await _ensure_code_free(db, values["code"], company_id, exclude_id=coupon.id)
        if "expire_date" in values:
            values["expire_date"] = as_utc(values["expire_date"])

        for key, value in values.items():
            setattr(coupon, key, value)
        await db.flush()

    logger.info("coupon_updated", coupon_id=str(coupon_id), fields=sorted(values))
    return coupon


async def delete_coupon(
    db: AsyncSession,
    coupon_id: uuid.UUID,
    owner_id: uuid.UUID,
    company_id: Optional[uuid.UUID] = None,
) -> None:
    """Delete a coupon. Tickets that redeemed it keep their price but lose the link."""
    async with atomic(db):
        coupon = await get_owned_coupon(db, coupon_id, owner_id, company_id)
        await db.execute(
            update(Ticket).where(Ticket.coupon_id == coupon.id).values(coupon_id=None)
        )
        await db.execute(
            delete(UserCouponUse)
            .where(UserCouponUse.coupon_id == coupon.id)
            .execution_options(synchronize_session=False)
        )
        db.expunge(coupon)
        await db.execute(
            delete(Coupon).where(Coupon.id == coupon_id).execution_options(synchronize_session=False)
        )

    logger.info("coupon_deleted", coupon_id=str(coupon_id))


async def list_coupons(
    db: AsyncSession,
    owner_id: uuid.UUID,
    company_id: Optional[uuid.UUID] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> list[dict]:
    """Coupons the caller owns, newest first, each with its ``used_count``."""
    used_count = (
        select(func.count(UserCouponUse.id))
        .where(UserCouponUse.coupon_id == Coupon.id)
        .correlate(Coupon)
        .scalar_subquery()
    )
    query = (
        select(Coupon, used_count.label("used_count"))
        .where(*_owned_by(owner_id, company_id))
        .order_by(Coupon.created_at.desc(), Coupon.code)
        .offset(offset)
    )
    if limit is not None:
        query = query.limit(limit)

    result = await db.execute(query)
    coupons = []
    for coupon, used in result.all():
        coupons.append(
            {
                "id": coupon.id,
                "code": coupon.code,
                "discount_percent": coupon.discount_percent,
                "company_id": coupon.company_id,
                "usage_limit": coupon.usage_limit,
                "expire_date": as_utc(coupon.expire_date),
                "used_count": used,
            }
        )
    return coupons


async def check_coupon(
    db: AsyncSession,
    code: str,
    user_id: uuid.UUID,
    trip_id: Optional[uuid.UUID] = None,
    seat_count: Optional[int] = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    Preview what ``code`` would do for ``user_id`` without consuming it.
    Runs the same checks as redemption. Without a trip the company scope
    check is skipped and no amounts are computed.
    """
    code = code.strip()
    scope_company_id = None
    trip = None
    if trip_id is not None:
        trip = await get_trip_model(db, trip_id)
        scope_company_id = trip.company_id

    coupon = await coupon_ledger.validate(
        db, code, user_id, scope_company_id, now, enforce_scope=trip is not None
    )

    preview = {
        "coupon": {
            "id": coupon.id,
            "code": coupon.code,
            "discount_percent": coupon.discount_percent,
            "company_id": coupon.company_id,
            "usage_limit": coupon.usage_limit,
            "expire_date": as_utc(coupon.expire_date),
        },
    }
    if trip is not None:
        subtotal = trip.price * (seat_count or 1)
        discount = coupon_ledger.discount_for(subtotal, coupon.discount_percent)
        preview.update(
            subtotal=subtotal,
            discount_amount=discount,
            final_price=max(0, subtotal - discount),
        )
    return preview
