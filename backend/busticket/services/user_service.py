"""
Read-only user account queries. Balances are written by the ledger only.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from busticket.core.exceptions import UserNotFound
from busticket.models.user import User, UserRole


async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    result = await db.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise UserNotFound(user_id=str(user_id))
    return user


async def list_users(db: AsyncSession, limit: int = 100, offset: int = 0) -> list[User]:
    """Riders and company staff, ordered by email. Admin accounts are never listed."""
    result = await db.execute(
        select(User)
        .where(User.role != UserRole.ADMIN.value)
        .order_by(User.email)
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all())
