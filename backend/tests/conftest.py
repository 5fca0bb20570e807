"""
Pytest fixtures for test database, client, domain objects and authentication.

Tables are created and dropped around every test for isolation. The store is
TEST_DATABASE_URL: a local SQLite file by default, any PostgreSQL asyncpg URL
works unchanged.

Note: a failed engine call rolls the session back, which expires every ORM
object it holds. Tests capture ids up front and re-read state afterwards.
"""

import os

os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import timedelta
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from busticket.core.clock import utcnow
from busticket.core.security import create_access_token
from busticket.db.base import Base
from busticket.db.session import get_db
from busticket.main import app
from busticket.models.company import BusCompany
from busticket.models.coupon import Coupon
from busticket.models.trip import Trip
from busticket.models.user import User, UserRole

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///./test_busticket.db")

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def session_factory(db_session: AsyncSession):
    """Extra independent sessions on the same test database."""
    return TestSessionLocal


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test session."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def create_company(db_session: AsyncSession):
    counter = {"n": 0}

    async def factory(name: Optional[str] = None) -> BusCompany:
        counter["n"] += 1
        company = BusCompany(name=name or f"Company {counter['n']}")
        db_session.add(company)
        await db_session.commit()
        await db_session.refresh(company)
        return company

    return factory


@pytest_asyncio.fixture
async def create_user(db_session: AsyncSession):
    counter = {"n": 0}

    async def factory(
        role: UserRole = UserRole.RIDER,
        balance: int = 800,
        company: Optional[BusCompany] = None,
    ) -> User:
        counter["n"] += 1
        user = User(
            email=f"{role.value}{counter['n']}@example.com",
            full_name=f"Test {role.value.title()} {counter['n']}",
            role=role.value,
            balance=balance,
            company_id=company.id if company else None,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return factory


@pytest_asyncio.fixture
async def create_trip(db_session: AsyncSession):
    async def factory(
        company: BusCompany,
        departs_in: timedelta = timedelta(days=2),
        price: int = 100,
        capacity: int = 40,
        departure_city: str = "Istanbul",
        destination_city: str = "Ankara",
    ) -> Trip:
        departure = utcnow() + departs_in
        trip = Trip(
            company_id=company.id,
            departure_city=departure_city,
            destination_city=destination_city,
            departure_time=departure,
            arrival_time=departure + timedelta(hours=6),
            price=price,
            capacity=capacity,
        )
        db_session.add(trip)
        await db_session.commit()
        await db_session.refresh(trip)
        return trip

    return factory


@pytest_asyncio.fixture
async def create_coupon(db_session: AsyncSession):
    async def factory(
        code: str = "SAVE10",
        discount_percent: int = 10,
        usage_limit: int = 5,
        company: Optional[BusCompany] = None,
        expires_in: timedelta = timedelta(days=30),
        created_by: Optional[User] = None,
    ) -> Coupon:
        coupon = Coupon(
            code=code,
            discount_percent=discount_percent,
            usage_limit=usage_limit,
            company_id=company.id if company else None,
            expire_date=utcnow() + expires_in,
            created_by_id=created_by.id if created_by else None,
        )
        db_session.add(coupon)
        await db_session.commit()
        await db_session.refresh(coupon)
        return coupon

    return factory


# ---------------------------------------------------------------------------
# Common objects
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def company(create_company) -> BusCompany:
    return await create_company("Anatolia Express")


@pytest_asyncio.fixture
async def rider(create_user) -> User:
    """Rider with the default 800 balance."""
    return await create_user(UserRole.RIDER, balance=800)


@pytest_asyncio.fixture
async def manager(create_user, company) -> User:
    return await create_user(UserRole.COMPANY, balance=0, company=company)


@pytest_asyncio.fixture
async def admin(create_user) -> User:
    return await create_user(UserRole.ADMIN, balance=0)


@pytest_asyncio.fixture
async def trip(create_trip, company) -> Trip:
    """Trip departing in two days: price 100, capacity 40."""
    return await create_trip(company)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------
def auth_headers_for(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for():
    """Bearer headers for any user the test creates."""
    return auth_headers_for


@pytest_asyncio.fixture
async def rider_headers(rider: User) -> dict:
    return auth_headers_for(rider)


@pytest_asyncio.fixture
async def manager_headers(manager: User) -> dict:
    return auth_headers_for(manager)


@pytest_asyncio.fixture
async def admin_headers(admin: User) -> dict:
    return auth_headers_for(admin)
