"""
Company administration endpoints (admin only).
"""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from busticket.core.security import require_role
from busticket.db.session import get_db
from busticket.models.user import UserRole
from busticket.schemas.company import (
    CompanyCreate,
    CompanyDetailResponse,
    CompanyResponse,
    CompanyUpdate,
    ManagerAssign,
    ManagerResponse,
    RefundSummaryResponse,
)
from busticket.services import company_service, refund_service
from busticket.services.cache_service import invalidate_trip_cache

router = APIRouter(
    prefix="/companies",
    tags=["Companies"],
    dependencies=[Depends(require_role(UserRole.ADMIN))],
)


@router.post("/", response_model=CompanyResponse, status_code=status.HTTP_201_CREATED)
async def create_company_endpoint(data: CompanyCreate, db: AsyncSession = Depends(get_db)):
    return await company_service.create_company(db, data)


@router.get("/", response_model=list[CompanyResponse])
async def list_companies_endpoint(db: AsyncSession = Depends(get_db)):
    return await company_service.list_companies(db)


@router.get("/{company_id}", response_model=CompanyDetailResponse)
async def get_company_endpoint(company_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    company = await company_service.get_company(db, company_id)
    managers = await company_service.list_managers(db, company_id)
    return CompanyDetailResponse(
        id=company.id,
        name=company.name,
        logo_path=company.logo_path,
        created_at=company.created_at,
        managers=[ManagerResponse.model_validate(m) for m in managers],
    )


@router.patch("/{company_id}", response_model=CompanyResponse)
async def update_company_endpoint(
    company_id: uuid.UUID, data: CompanyUpdate, db: AsyncSession = Depends(get_db)
):
    company = await company_service.update_company(db, company_id, data)
    await invalidate_trip_cache()
    return company


@router.post("/{company_id}/managers", response_model=ManagerResponse)
async def assign_manager_endpoint(
    company_id: uuid.UUID, data: ManagerAssign, db: AsyncSession = Depends(get_db)
):
    return await company_service.assign_manager(db, company_id, data.user_id)


@router.delete("/{company_id}/managers/{user_id}", response_model=ManagerResponse)
async def remove_manager_endpoint(
    company_id: uuid.UUID, user_id: uuid.UUID, db: AsyncSession = Depends(get_db)
):
    return await company_service.remove_manager(db, company_id, user_id)


@router.delete("/{company_id}", response_model=RefundSummaryResponse)
async def delete_company_endpoint(company_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    """
    Delete a company with all of its trips. Riders holding tickets on
    upcoming trips are refunded in full.
    """
    summary = await refund_service.delete_company(db, company_id)
    await invalidate_trip_cache()
    return RefundSummaryResponse(
        message="Company deleted",
        trips_deleted=summary.trips_deleted,
        tickets_refunded=summary.tickets_refunded,
        amount_refunded=summary.amount_refunded,
    )
