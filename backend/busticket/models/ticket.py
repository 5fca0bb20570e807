"""
Ticket and BookedSeat models.

A ticket groups one or more seats on one trip for one rider. Seats carry a
denormalized trip_id so the store can enforce the core invariant directly:
UNIQUE (trip_id, seat_number). Canceling a ticket deletes its seat rows, so
the constraint only ever covers seats held by active tickets.
"""

import enum
import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from busticket.db.base import Base, TimestampMixin


class TicketStatus(str, enum.Enum):
    ACTIVE = "active"
    CANCELED = "canceled"


class Ticket(Base, TimestampMixin):
    __tablename__ = "tickets"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    trip_id = Column(Uuid, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=TicketStatus.ACTIVE.value)
    total_price = Column(Integer, nullable=False)
    coupon_id = Column(Uuid, ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True)

    trip = relationship("Trip", back_populates="tickets", lazy="raise")
    user = relationship("User", back_populates="tickets", lazy="raise")
    coupon = relationship("Coupon", lazy="raise")
    seats = relationship(
        "BookedSeat",
        back_populates="ticket",
        cascade="all, delete-orphan",
        order_by="BookedSeat.seat_number",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("total_price >= 0", name="check_ticket_total_price_non_negative"),
        CheckConstraint("status IN ('active', 'canceled')", name="check_ticket_status"),
    )

    @property
    def seat_numbers(self) -> list[int]:
        return [seat.seat_number for seat in self.seats]

    def __repr__(self) -> str:
        return f"<Ticket(id={self.id}, trip={self.trip_id}, user={self.user_id}, status={self.status})>"


class BookedSeat(Base, TimestampMixin):
    __tablename__ = "booked_seats"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    ticket_id = Column(Uuid, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    trip_id = Column(Uuid, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False)
    seat_number = Column(Integer, nullable=False)

    ticket = relationship("Ticket", back_populates="seats")

    __table_args__ = (
        # Last line of defense against double booking
        UniqueConstraint("trip_id", "seat_number", name="uq_booked_seats_trip_seat"),
        CheckConstraint("seat_number >= 1", name="check_booked_seat_number_positive"),
    )

    def __repr__(self) -> str:
        return f"<BookedSeat(trip={self.trip_id}, seat={self.seat_number}, ticket={self.ticket_id})>"
