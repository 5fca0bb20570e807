"""
Trip model with seat capacity.

Key design decisions:
- Occupancy is not denormalized: it is derived from booked_seats of active
  tickets (see services/seat_map.py).
- `version` column serializes check-and-reserve per trip (optimistic locking).
- Index on departure_time for the search listing and company cascade queries.
"""

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import relationship

from busticket.db.base import Base, TimestampMixin


class Trip(Base, TimestampMixin):
    __tablename__ = "trips"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    company_id = Column(
        Uuid, ForeignKey("bus_companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    departure_city = Column(String(255), nullable=False)
    destination_city = Column(String(255), nullable=False)
    departure_time = Column(DateTime(timezone=True), nullable=False)
    arrival_time = Column(DateTime(timezone=True), nullable=False)
    price = Column(Integer, nullable=False)
    capacity = Column(Integer, nullable=False)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    company = relationship("BusCompany", back_populates="trips", lazy="joined")
    tickets = relationship("Ticket", back_populates="trip", lazy="raise")

    __table_args__ = (
        CheckConstraint("price >= 0", name="check_trip_price_non_negative"),
        CheckConstraint("capacity >= 1", name="check_trip_capacity_positive"),
        Index("ix_trips_departure_time", "departure_time"),
        Index("ix_trips_route", "departure_city", "destination_city"),
    )

    def __repr__(self) -> str:
        return (
            f"<Trip(id={self.id}, {self.departure_city}->{self.destination_city}, "
            f"capacity={self.capacity})>"
        )
