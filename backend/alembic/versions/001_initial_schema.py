"""Initial schema: companies, users, trips, tickets, booked seats and coupons.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Bus companies
    op.create_table(
        "bus_companies",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("logo_path", sa.String(500), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("name", name="uq_bus_companies_name"),
    )

    # Users: riders, company managers and admins
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'user'")),
        sa.Column(
            "company_id",
            sa.Uuid(),
            sa.ForeignKey("bus_companies.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("balance", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("balance >= 0", name="check_user_balance_non_negative"),
        sa.CheckConstraint("role IN ('admin', 'company', 'user')", name="check_user_role"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_company_id", "users", ["company_id"])

    # Trips
    op.create_table(
        "trips",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "company_id",
            sa.Uuid(),
            sa.ForeignKey("bus_companies.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("departure_city", sa.String(255), nullable=False),
        sa.Column("destination_city", sa.String(255), nullable=False),
        sa.Column("departure_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("arrival_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        # Optimistic locking: every booking/cancellation bumps it
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.CheckConstraint("price >= 0", name="check_trip_price_non_negative"),
        sa.CheckConstraint("capacity >= 1", name="check_trip_capacity_positive"),
    )
    op.create_index("ix_trips_company_id", "trips", ["company_id"])
    # Search lists upcoming trips ordered by departure
    op.create_index("ix_trips_departure_time", "trips", ["departure_time"])
    op.create_index("ix_trips_route", "trips", ["departure_city", "destination_city"])

    # Coupons
    op.create_table(
        "coupons",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("discount_percent", sa.Integer(), nullable=False),
        sa.Column(
            "company_id",
            sa.Uuid(),
            sa.ForeignKey("bus_companies.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("usage_limit", sa.Integer(), nullable=False),
        sa.Column("expire_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_by_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
        sa.CheckConstraint(
            "discount_percent >= 0 AND discount_percent <= 50",
            name="check_coupon_discount_range",
        ),
        sa.CheckConstraint("usage_limit >= 0", name="check_coupon_usage_limit_non_negative"),
    )
    op.create_index("ix_coupons_code", "coupons", ["code"])
    op.create_index("ix_coupons_company_id", "coupons", ["company_id"])

    op.create_table(
        "user_coupon_uses",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("coupon_id", sa.Uuid(), sa.ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("coupon_id", "user_id", name="uq_user_coupon_uses_coupon_user"),
    )
    op.create_index("ix_user_coupon_uses_user_id", "user_coupon_uses", ["user_id"])

    # Tickets
    op.create_table(
        "tickets",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("trip_id", sa.Uuid(), sa.ForeignKey("trips.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'active'")),
        sa.Column("total_price", sa.Integer(), nullable=False),
        sa.Column("coupon_id", sa.Uuid(), sa.ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("total_price >= 0", name="check_ticket_total_price_non_negative"),
        sa.CheckConstraint("status IN ('active', 'canceled')", name="check_ticket_status"),
    )
    op.create_index("ix_tickets_trip_id", "tickets", ["trip_id"])
    op.create_index("ix_tickets_user_id", "tickets", ["user_id"])

    # Booked seats
    op.create_table(
        "booked_seats",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("ticket_id", sa.Uuid(), sa.ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False),
        sa.Column("trip_id", sa.Uuid(), sa.ForeignKey("trips.id", ondelete="CASCADE"), nullable=False),
        sa.Column("seat_number", sa.Integer(), nullable=False),
        *_timestamps(),
        # UNIQUE SEAT PER TRIP: the store-level guarantee against double
        # booking. Canceled tickets lose their rows, so only active seats count.
        sa.UniqueConstraint("trip_id", "seat_number", name="uq_booked_seats_trip_seat"),
        sa.CheckConstraint("seat_number >= 1", name="check_booked_seat_number_positive"),
    )
    op.create_index("ix_booked_seats_ticket_id", "booked_seats", ["ticket_id"])


def downgrade() -> None:
    op.drop_table("booked_seats")
    op.drop_table("tickets")
    op.drop_table("user_coupon_uses")
    op.drop_table("coupons")
    op.drop_table("trips")
    op.drop_table("users")
    op.drop_table("bus_companies")
