"""
Bus company administration. Deletion with refunds is in refund_service.
"""

import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from busticket.core.exceptions import CompanyNameTaken, CompanyNotFound, UserNotFound, ValidationFailure
from busticket.core.logging import get_logger
from busticket.db.session import atomic
from busticket.models.company import BusCompany
from busticket.models.user import User, UserRole
from busticket.schemas.company import CompanyCreate, CompanyUpdate

logger = get_logger(__name__)


async def _ensure_name_free(
    db: AsyncSession, name: str, exclude_id: Optional[uuid.UUID] = None
) -> None:
    """Company names are unique ignoring case."""
    query = select(BusCompany.id).where(func.lower(BusCompany.name) == name.lower())
    if exclude_id is not None:
        query = query.where(BusCompany.id != exclude_id)
    existing = await db.execute(query)
    if existing.first() is not None:
        raise CompanyNameTaken(name=name)


async def create_company(db: AsyncSession, data: CompanyCreate) -> BusCompany:
    name = data.name.strip()
    if not name:
        raise ValidationFailure("Company name must not be blank")

    async with atomic(db):
        await _ensure_name_free(db, name)

        company = BusCompany(name=name, logo_path=data.logo_path)
        db.add(company)
        await db.flush()
        await db.refresh(company)

    logger.info("company_created", company_id=str(company.id), name=company.name)
    return company


async def update_company(db: AsyncSession, company_id: uuid.UUID, changes: CompanyUpdate) -> BusCompany:
    """Rename a company or change its logo."""
    values = changes.model_dump(exclude_unset=True, exclude_none=True)
    if not values:
        raise ValidationFailure("No fields to update")

    async with atomic(db):
        company = await get_company(db, company_id)
        if "name" in values:
            values["name"] = values["name"].strip()
            if not values["name"]:
                raise ValidationFailure("Company name must not be blank")
            await _ensure_name_free(db, values["name"], exclude_id=company.id)

        for key, value in values.items():
            setattr(company, key, value)
        await db.flush()
        await db.refresh(company)

    logger.info("company_updated", company_id=str(company_id), fields=sorted(values))
    return company


async def get_company(db: AsyncSession, company_id: uuid.UUID) -> BusCompany:
    company = await db.get(BusCompany, company_id)
    if company is None:
        raise CompanyNotFound(company_id=str(company_id))
    return company


async def list_companies(db: AsyncSession) -> list[BusCompany]:
    result = await db.execute(select(BusCompany).order_by(BusCompany.created_at.desc()))
    return list(result.scalars().all())


async def assign_manager(db: AsyncSession, company_id: uuid.UUID, user_id: uuid.UUID) -> User:
    """Make ``user_id`` a manager of ``company_id``. Admins cannot be reassigned."""
    async with atomic(db):
        await get_company(db, company_id)

        user = await db.get(User, user_id)
        if user is None:
            raise UserNotFound(user_id=str(user_id))
        if user.role == UserRole.ADMIN.value:
            raise ValidationFailure("Admins cannot manage a company", user_id=str(user_id))

        user.role = UserRole.COMPANY.value
        user.company_id = company_id
        await db.flush()

    logger.info("company_manager_assigned", company_id=str(company_id), user_id=str(user_id))
    return user


async def remove_manager(db: AsyncSession, company_id: uuid.UUID, user_id: uuid.UUID) -> User:
    """Detach a manager from ``company_id``; they go back to being a rider."""
    async with atomic(db):
        await get_company(db, company_id)

        user = await db.get(User, user_id)
        if user is None:
            raise UserNotFound(user_id=str(user_id))
        if user.company_id != company_id:
            raise ValidationFailure("User does not manage this company", user_id=str(user_id))

        if user.role != UserRole.ADMIN.value:
            user.role = UserRole.RIDER.value
        user.company_id = None
        await db.flush()

    logger.info("company_manager_removed", company_id=str(company_id), user_id=str(user_id))
    return user


async def list_managers(db: AsyncSession, company_id: uuid.UUID) -> list[User]:
    result = await db.execute(
        select(User).where(User.company_id == company_id).order_by(User.email)
    )
    return list(result.scalars().all())
