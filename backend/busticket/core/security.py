"""
Bearer-token authentication and role checks.

Tokens are HS256 JWTs carrying ``sub`` (user id) and ``role``. Issuing
tokens (login) happens elsewhere; this module only needs
``create_access_token`` for tooling and tests.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from busticket.core.config import get_settings
from busticket.core.exceptions import Forbidden, Unauthenticated, TokenExpired
from busticket.db.session import get_db
from busticket.models.user import User, UserRole

settings = get_settings()

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    user_id: uuid.UUID
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    if "sub" in to_encode:
        to_encode["sub"] = str(to_encode["sub"])
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Principal:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        raise TokenExpired()
    except JWTError:
        raise Unauthenticated()

    subject = payload.get("sub")
    role = payload.get("role")
    if not subject or role not in {r.value for r in UserRole}:
        raise Unauthenticated()
    try:
        user_id = uuid.UUID(subject)
    except ValueError:
        raise Unauthenticated()
    return Principal(user_id=user_id, role=role)


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Principal:
    """FastAPI dependency: the authenticated caller, or 401."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise Unauthenticated("Authorization token required")
    return decode_access_token(credentials.credentials)


async def get_optional_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[Principal]:
    if credentials is None:
        return None
    return decode_access_token(credentials.credentials)


def require_role(*roles: UserRole):
    allowed = {role.value for role in roles}

    async def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed:
            raise Forbidden(required=sorted(allowed))
        return principal

    return dependency


async def load_managed_company_id(db: AsyncSession, principal: Principal) -> uuid.UUID:
    """Company the calling manager currently manages, read from the store."""
    result = await db.execute(
        select(User.company_id, User.role).where(User.id == principal.user_id)
    )
    row = result.first()
    if row is None or row.role != UserRole.COMPANY.value or row.company_id is None:
        raise Forbidden("No company is assigned to this manager")
    return row.company_id


async def get_managed_company_id(
    principal: Principal = Depends(require_role(UserRole.COMPANY)),
    db: AsyncSession = Depends(get_db),
) -> uuid.UUID:
    return await load_managed_company_id(db, principal)
