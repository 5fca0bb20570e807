"""
Coupon ledger: validation, redemption and restoration of discount coupons.

Redemption checks run in a fixed order and the first failure wins:

  1. code exists                    -> CouponNotFound
  2. expire_date >= now             -> CouponExpired
  3. usage_limit > 0                -> CouponExhausted
  4. global, or scoped to the trip's company -> CouponScopeMismatch
  5. rider has not redeemed it yet  -> CouponAlreadyUsed

The discount percent is clamped to [0, MAX_DISCOUNT_PERCENT] once more at
redemption time even though create/update already reject out-of-range values.
Amounts are integer currency units, rounded half-up:
``(subtotal * percent + 50) // 100``.

The two writes (decrement usage_limit, insert UserCouponUse) are guarded at
the store: the decrement is conditional on ``usage_limit > 0`` and the use
row has a unique (coupon_id, user_id) constraint.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from busticket.core.clock import as_utc, utcnow
from busticket.core.exceptions import (
    CouponAlreadyUsed,
    CouponExhausted,
    CouponExpired,
    CouponNotFound,
    CouponScopeMismatch,
    StorageFailure,
)
from busticket.core.logging import get_logger
from busticket.models.coupon import MAX_DISCOUNT_PERCENT, Coupon, UserCouponUse

logger = get_logger(__name__)


@dataclass(frozen=True)
class Redemption:
    coupon_id: uuid.UUID
    percent: int
    discount_amount: int


def clamp_percent(percent: int) -> int:
    return max(0, min(MAX_DISCOUNT_PERCENT, int(percent)))


def discount_for(subtotal: int, percent: int) -> int:
    """Rounded discount amount for ``subtotal`` at ``percent`` (half-up)."""
    return (subtotal * clamp_percent(percent) + 50) // 100


async def find_by_code(
    db: AsyncSession, code: str, scope_company_id: Optional[uuid.UUID] = None
) -> Optional[Coupon]:
    """
    Look up a coupon by code. Codes are unique per scope, so the same code
    may exist globally and for several companies; prefer the coupon scoped
    to ``scope_company_id``, then the global one.
    """
    result = await db.execute(
        select(Coupon).where(Coupon.code == code.strip()).order_by(Coupon.created_at)
    )
    candidates = list(result.scalars().all())
    if not candidates:
        return None

    for coupon in candidates:
        if scope_company_id is not None and coupon.company_id == scope_company_id:
            return coupon
    for coupon in candidates:
        if coupon.company_id is None:
            return coupon
    return candidates[0]


async def has_used(db: AsyncSession, coupon_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    result = await db.execute(
        select(UserCouponUse.id).where(
            UserCouponUse.coupon_id == coupon_id,
            UserCouponUse.user_id == user_id,
        )
    )
    return result.first() is not None


async def validate(
    db: AsyncSession,
    code: str,
    user_id: uuid.UUID,
    scope_company_id: Optional[uuid.UUID],
    now: Optional[datetime] = None,
    enforce_scope: bool = True,
) -> Coupon:
    """
    Run redemption checks 1-5 without mutating anything. A preview with no
    trip in hand passes ``enforce_scope=False`` to skip check 4.
    """
    now = now or utcnow()

    coupon = await find_by_code(db, code, scope_company_id)
    if coupon is None:
        raise CouponNotFound(coupon_code=code)

    if as_utc(coupon.expire_date) < now:
        raise CouponExpired(coupon_code=code, expire_date=as_utc(coupon.expire_date).isoformat())

    if coupon.usage_limit <= 0:
        raise CouponExhausted(coupon_code=code)

    if enforce_scope and coupon.company_id is not None and coupon.company_id != scope_company_id:
        raise CouponScopeMismatch(coupon_code=code)

    if await has_used(db, coupon.id, user_id):
        raise CouponAlreadyUsed(coupon_code=code)

    return coupon


async def redeem(
    db: AsyncSession,
    code: str,
    user_id: uuid.UUID,
    scope_company_id: Optional[uuid.UUID],
    subtotal: int,
    now: Optional[datetime] = None,
) -> Redemption:
    """
    Validate and consume one use of ``code`` for ``user_id``.
    Must be called inside the booking transaction.
    """
    coupon = await validate(db, code, user_id, scope_company_id, now)

    result = await db.execute(
        update(Coupon)
        .where(Coupon.id == coupon.id, Coupon.usage_limit > 0)
        .values(usage_limit=Coupon.usage_limit - 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        # Another rider took the last use between our read and the write
        raise CouponExhausted(coupon_code=code)

    db.add(UserCouponUse(coupon_id=coupon.id, user_id=user_id))
    try:
        await db.flush()
    except IntegrityError as e:
        # Concurrent redemption by the same rider hit the unique pair
        raise CouponAlreadyUsed(coupon_code=code) from e

    percent = clamp_percent(coupon.discount_percent)
    redemption = Redemption(
        coupon_id=coupon.id,
        percent=percent,
        discount_amount=discount_for(subtotal, percent),
    )
    logger.info(
        "coupon_redeemed",
        coupon_id=str(coupon.id),
        user_id=str(user_id),
        percent=percent,
        discount=redemption.discount_amount,
    )
    return redemption


async def restore(db: AsyncSession, coupon_id: uuid.UUID, user_id: uuid.UUID) -> None:
    """
    Give a redeemed use back: drop the (coupon, user) use row and increment
    usage_limit. Any failure propagates so the enclosing cancellation rolls
    back as a whole.
    """
    await db.execute(
        delete(UserCouponUse)
        .where(UserCouponUse.coupon_id == coupon_id, UserCouponUse.user_id == user_id)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(
        update(Coupon)
        .where(Coupon.id == coupon_id)
        .values(usage_limit=Coupon.usage_limit + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise StorageFailure("Coupon could not be restored", coupon_id=str(coupon_id))

    logger.info("coupon_restored", coupon_id=str(coupon_id), user_id=str(user_id))
