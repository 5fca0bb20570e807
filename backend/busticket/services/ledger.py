"""
Ledger: the only code path that writes User.balance.

Both operations are single conditional UPDATE statements so the balance
check and the write happen atomically inside the caller's transaction. There
is no read-modify-write window for two concurrent purchases by the same
rider to slip through.
"""

import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from busticket.core.exceptions import InsufficientBalance, UserNotFound
from busticket.core.logging import get_logger
from busticket.models.user import User

logger = get_logger(__name__)


async def credit(db: AsyncSession, user_id: uuid.UUID, amount: int) -> None:
    """Add ``amount`` to the user's balance. Zero is a no-op."""
    if amount < 0:
        raise ValueError(f"credit amount must be non-negative, got {amount}")
    if amount == 0:
        return

    result = await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(balance=User.balance + amount)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise UserNotFound(user_id=str(user_id))

    logger.debug("ledger_credit", user_id=str(user_id), amount=amount)


async def debit(db: AsyncSession, user_id: uuid.UUID, amount: int) -> None:
    """
    Subtract ``amount`` from the user's balance.
    Raises InsufficientBalance (and writes nothing) if it would go negative.
    """
    if amount < 0:
        raise ValueError(f"debit amount must be non-negative, got {amount}")

    result = await db.execute(
        update(User)
        .where(User.id == user_id, User.balance >= amount)
        .values(balance=User.balance - amount)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        balance = await get_balance(db, user_id)
        logger.info(
            "ledger_debit_rejected",
            user_id=str(user_id),
            amount=amount,
            balance=balance,
        )
        raise InsufficientBalance(balance=balance, required=amount)

    logger.debug("ledger_debit", user_id=str(user_id), amount=amount)


async def get_balance(db: AsyncSession, user_id: uuid.UUID) -> int:
    result = await db.execute(select(User.balance).where(User.id == user_id))
    return result.scalar_one_or_none() or 0
