"""
Tests for refunds triggered by trip and company deletion.
"""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from busticket.core.clock import as_utc
from busticket.core.exceptions import CompanyNotFound, StorageFailure, TripNotFound
from busticket.models.company import BusCompany
from busticket.models.coupon import Coupon, UserCouponUse
from busticket.models.ticket import BookedSeat, Ticket
from busticket.models.trip import Trip
from busticket.models.user import User, UserRole
from busticket.services import ledger, refund_service
from busticket.services.booking_service import book_seats
from busticket.services.cancellation_service import cancel_ticket
from busticket.services.refund_service import delete_company, delete_trip


async def _count(db, model, *where) -> int:
    result = await db.execute(select(func.count()).select_from(model).where(*where))
    return result.scalar_one()


@pytest.mark.asyncio
async def test_delete_trip_refunds_every_active_ticket(db_session, trip, create_user):
    first = await create_user()
    second = await create_user()
    trip_id, first_id, second_id = trip.id, first.id, second.id
    await book_seats(db_session, first_id, trip_id, [1, 2])
    await book_seats(db_session, second_id, trip_id, [3])

    summary = await delete_trip(db_session, trip_id)

    assert summary.trips_deleted == 1
    assert summary.tickets_refunded == 2
    assert summary.amount_refunded == 300
    assert summary.refunds == {first_id: 200, second_id: 100}
    assert await ledger.get_balance(db_session, first_id) == 800
    assert await ledger.get_balance(db_session, second_id) == 800
    assert await _count(db_session, Trip, Trip.id == trip_id) == 0
    assert await _count(db_session, Ticket, Ticket.trip_id == trip_id) == 0
    assert await _count(db_session, BookedSeat, BookedSeat.trip_id == trip_id) == 0


@pytest.mark.asyncio
async def test_delete_trip_does_not_refund_canceled_tickets(db_session, trip, rider):
    trip_id, rider_id = trip.id, rider.id
    ticket = await book_seats(db_session, rider_id, trip_id, [1])
    await cancel_ticket(db_session, ticket.id)

    summary = await delete_trip(db_session, trip_id)

    assert summary.tickets_refunded == 0
    assert await ledger.get_balance(db_session, rider_id) == 800
    assert await _count(db_session, Ticket, Ticket.trip_id == trip_id) == 0


@pytest.mark.asyncio
async def test_delete_trip_keeps_coupon_consumed(db_session, trip, rider, create_coupon):
    coupon = await create_coupon("SAVE10", discount_percent=10, usage_limit=5)
    trip_id, rider_id, coupon_id = trip.id, rider.id, coupon.id
    await book_seats(db_session, rider_id, trip_id, [1], coupon_code="SAVE10")

    await delete_trip(db_session, trip_id)

    assert await ledger.get_balance(db_session, rider_id) == 800
    limit = await db_session.execute(select(Coupon.usage_limit).where(Coupon.id == coupon_id))
    assert limit.scalar_one() == 4
    assert await _count(db_session, UserCouponUse, UserCouponUse.coupon_id == coupon_id) == 1


@pytest.mark.asyncio
async def test_delete_missing_trip(db_session):
    with pytest.raises(TripNotFound):
        await delete_trip(db_session, uuid.uuid4())


@pytest.mark.asyncio
async def test_delete_company_refunds_future_trip(
    db_session, create_company, create_trip, create_user, create_coupon
):
    doomed = await create_company("Doomed Lines")
    future = await create_trip(doomed, price=150)
    rider = await create_user(balance=800)
    manager = await create_user(UserRole.COMPANY, balance=0, company=doomed)
    global_coupon = await create_coupon("GLOBAL10", discount_percent=10, usage_limit=5)
    company_id, trip_id, rider_id = doomed.id, future.id, rider.id
    manager_id, coupon_id = manager.id, global_coupon.id

    ticket = await book_seats(db_session, rider_id, trip_id, [1, 2], coupon_code="GLOBAL10")
    assert ticket.total_price == 270
    assert await ledger.get_balance(db_session, rider_id) == 530

    summary = await delete_company(db_session, company_id)

    assert summary.tickets_refunded == 1
    assert summary.amount_refunded == 270
    assert await ledger.get_balance(db_session, rider_id) == 800
    assert await _count(db_session, Ticket) == 0
    assert await _count(db_session, BookedSeat) == 0
    assert await _count(db_session, Trip) == 0
    assert await _count(db_session, BusCompany, BusCompany.id == company_id) == 0
    # Coupon usage is not given back on bulk refunds
    limit = await db_session.execute(select(Coupon.usage_limit).where(Coupon.id == coupon_id))
    assert limit.scalar_one() == 4

    demoted = await db_session.execute(
        select(User.role, User.company_id).where(User.id == manager_id)
    )
    assert tuple(demoted.one()) == ("user", None)


@pytest.mark.asyncio
async def test_delete_company_purges_past_trips_without_refund(
    db_session, create_company, create_trip, create_user
):
    doomed = await create_company("Old Lines")
    past = await create_trip(doomed, price=100)
    rider = await create_user(balance=800)
    company_id, trip_id, rider_id = doomed.id, past.id, rider.id
    await book_seats(db_session, rider_id, trip_id, [1])
    departure = as_utc(past.departure_time)

    # Clock moved past departure: the trip is history now
    summary = await delete_company(db_session, company_id, now=departure + timedelta(days=1))

    assert summary.tickets_refunded == 0
    assert summary.trips_deleted == 1
    assert await ledger.get_balance(db_session, rider_id) == 700
    assert await _count(db_session, Trip, Trip.id == trip_id) == 0
    assert await _count(db_session, Ticket, Ticket.trip_id == trip_id) == 0


@pytest.mark.asyncio
async def test_delete_company_removes_its_coupons(
    db_session, create_company, create_trip, create_user, create_coupon
):
    doomed = await create_company("Coupon Lines")
    future = await create_trip(doomed)
    rider = await create_user()
    scoped = await create_coupon("OWN20", discount_percent=20, company=doomed)
    company_id, trip_id, rider_id, coupon_id = doomed.id, future.id, rider.id, scoped.id
    await book_seats(db_session, rider_id, trip_id, [1], coupon_code="OWN20")

    await delete_company(db_session, company_id)

    assert await _count(db_session, Coupon, Coupon.id == coupon_id) == 0
    assert await _count(db_session, UserCouponUse, UserCouponUse.coupon_id == coupon_id) == 0
    assert await ledger.get_balance(db_session, rider_id) == 800


@pytest.mark.asyncio
async def test_delete_company_leaves_other_companies_alone(
    db_session, create_company, create_trip, create_user
):
    doomed = await create_company("Doomed Lines")
    survivor = await create_company("Survivor Lines")
    doomed_trip = await create_trip(doomed)
    kept_trip = await create_trip(survivor)
    rider = await create_user()
    doomed_id, kept_id, rider_id = doomed.id, kept_trip.id, rider.id
    await book_seats(db_session, rider_id, doomed_trip.id, [1])
    await book_seats(db_session, rider_id, kept_id, [1])

    await delete_company(db_session, doomed_id)

    assert await _count(db_session, Trip, Trip.id == kept_id) == 1
    assert await _count(db_session, Ticket, Ticket.trip_id == kept_id) == 1
    assert await ledger.get_balance(db_session, rider_id) == 700


@pytest.mark.asyncio
async def test_delete_missing_company(db_session):
    with pytest.raises(CompanyNotFound):
        await delete_company(db_session, uuid.uuid4())


@pytest.mark.asyncio
async def test_failure_mid_refund_rolls_everything_back(
    db_session, create_company, create_trip, create_user, monkeypatch
):
    doomed = await create_company("Fragile Lines")
    first_trip = await create_trip(doomed)
    second_trip = await create_trip(doomed, departs_in=timedelta(days=3))
    rider = await create_user()
    company_id, rider_id = doomed.id, rider.id
    await book_seats(db_session, rider_id, first_trip.id, [1])
    await book_seats(db_session, rider_id, second_trip.id, [1])

    calls = {"n": 0}
    original = refund_service.release_ticket

    async def flaky_release(db, ticket, restore_coupon):
        calls["n"] += 1
        if calls["n"] == 2:
            raise StorageFailure("simulated")
        return await original(db, ticket, restore_coupon)

    monkeypatch.setattr(refund_service, "release_ticket", flaky_release)

    with pytest.raises(StorageFailure):
        await delete_company(db_session, company_id)

    assert await ledger.get_balance(db_session, rider_id) == 600
    assert await _count(db_session, BusCompany, BusCompany.id == company_id) == 1
    assert await _count(db_session, Trip) == 2
    assert await _count(db_session, Ticket, Ticket.status == "active") == 2
