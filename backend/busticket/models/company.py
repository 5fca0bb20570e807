"""
Bus company. Owns its trips and (optionally) company-scoped coupons.
"""

import uuid

from sqlalchemy import Column, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from busticket.db.base import Base, TimestampMixin


class BusCompany(Base, TimestampMixin):
    __tablename__ = "bus_companies"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    logo_path = Column(String(500), nullable=True)

    managers = relationship("User", back_populates="company", lazy="raise")
    trips = relationship("Trip", back_populates="company", lazy="raise")

    __table_args__ = (UniqueConstraint("name", name="uq_bus_companies_name"),)

    def __repr__(self) -> str:
        return f"<BusCompany(id={self.id}, name={self.name})>"
