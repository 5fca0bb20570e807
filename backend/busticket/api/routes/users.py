"""
User account endpoints: the caller's own profile and the admin user list.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from busticket.core.security import Principal, get_current_principal, require_role
from busticket.db.session import get_db
from busticket.models.user import UserRole
from busticket.schemas.user import UserProfile, UserSummary
from busticket.services import user_service

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserProfile)
async def get_my_profile(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Profile of the authenticated caller, including the current balance."""
    return await user_service.get_user(db, principal.user_id)


@router.get(
    "/",
    response_model=list[UserSummary],
    dependencies=[Depends(require_role(UserRole.ADMIN))],
)
async def list_users_endpoint(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.list_users(db, limit=limit, offset=offset)
