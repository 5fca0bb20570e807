"""
Coupon and UserCouponUse models.

`usage_limit` is a consumable counter: redemption decrements it, ticket
cancellation gives the unit back. A UserCouponUse row records that a rider
has consumed a coupon once; the unique pair makes a second redemption by the
same rider fail at the store even under concurrency.
"""

import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from busticket.db.base import Base, TimestampMixin

MAX_DISCOUNT_PERCENT = 50


class Coupon(Base, TimestampMixin):
    __tablename__ = "coupons"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    code = Column(String(64), nullable=False, index=True)
    discount_percent = Column(Integer, nullable=False)
    # NULL means the coupon is global (any company's trips)
    company_id = Column(
        Uuid, ForeignKey("bus_companies.id", ondelete="CASCADE"), nullable=True, index=True
    )
    usage_limit = Column(Integer, nullable=False)
    expire_date = Column(DateTime(timezone=True), nullable=False)
    created_by_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    uses = relationship("UserCouponUse", back_populates="coupon", lazy="raise")

    __table_args__ = (
        CheckConstraint(
            f"discount_percent >= 0 AND discount_percent <= {MAX_DISCOUNT_PERCENT}",
            name="check_coupon_discount_range",
        ),
        CheckConstraint("usage_limit >= 0", name="check_coupon_usage_limit_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Coupon(id={self.id}, code={self.code}, discount={self.discount_percent}%)>"


class UserCouponUse(Base, TimestampMixin):
    __tablename__ = "user_coupon_uses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    coupon_id = Column(Uuid, ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    coupon = relationship("Coupon", back_populates="uses")

    __table_args__ = (
        UniqueConstraint("coupon_id", "user_id", name="uq_user_coupon_uses_coupon_user"),
    )
