"""
User model. The balance column is the rider's prepaid wallet; it is only
ever changed by the ledger service.
"""

import enum
import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import relationship

from busticket.core.config import get_settings
from busticket.db.base import Base, TimestampMixin


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    COMPANY = "company"
    RIDER = "user"


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.RIDER.value)
    company_id = Column(
        Uuid, ForeignKey("bus_companies.id", ondelete="SET NULL"), nullable=True, index=True
    )
    # New accounts start with the configured wallet
    balance = Column(
        Integer,
        nullable=False,
        default=lambda: get_settings().DEFAULT_USER_BALANCE,
        server_default="0",
    )
    is_active = Column(Boolean, default=True, nullable=False)

    company = relationship("BusCompany", back_populates="managers")
    tickets = relationship("Ticket", back_populates="user", lazy="raise")

    __table_args__ = (
        CheckConstraint("balance >= 0", name="check_user_balance_non_negative"),
        CheckConstraint("role IN ('admin', 'company', 'user')", name="check_user_role"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
