"""
Trip endpoints with Redis caching on search.
"""

import uuid
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from busticket.core.config import get_settings
from busticket.core.exceptions import TripNotFound
from busticket.core.logging import get_logger
from busticket.core.security import Principal, get_managed_company_id, get_optional_principal
from busticket.db.session import get_db
from busticket.schemas.booking import TripTicket
from busticket.schemas.company import RefundSummaryResponse
from busticket.schemas.trip import (
    TripCreate,
    TripDetailResponse,
    TripListResponse,
    TripResponse,
    TripSearch,
    TripUpdate,
)
from busticket.services import refund_service, trip_service
from busticket.services.cache_service import get_cached_trips, invalidate_trip_cache, set_cached_trips

logger = get_logger(__name__)
settings = get_settings()
router = APIRouter(prefix="/trips", tags=["Trips"])


async def _managed_trip(db: AsyncSession, trip_id: uuid.UUID, company_id: uuid.UUID):
    trip = await trip_service.get_trip_model(db, trip_id)
    if trip.company_id != company_id:
        # Other companies' trips are invisible to a manager
        raise TripNotFound(trip_id=str(trip_id))
    return trip


@router.post("/", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def create_trip_endpoint(
    trip_data: TripCreate,
    company_id: uuid.UUID = Depends(get_managed_company_id),
    db: AsyncSession = Depends(get_db),
):
    """Create a trip for the caller's company."""
    trip = await trip_service.create_trip(db, company_id, trip_data)
    await invalidate_trip_cache()
    return trip_service.trip_to_dict(trip, booked=0)


@router.get("/", response_model=TripListResponse)
async def list_trips_endpoint(
    departure_city: Optional[str] = Query(None, max_length=255),
    destination_city: Optional[str] = Query(None, max_length=255),
    date: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}-\d{2}$"),
    company_id: Optional[uuid.UUID] = Query(None),
    min_price: Optional[int] = Query(None, ge=0),
    max_price: Optional[int] = Query(None, ge=0),
    include_past: bool = Query(False),
    sort_by: Literal["price", "departure_time"] = Query("departure_time"),
    sort_dir: Literal["asc", "desc"] = Query("asc"),
    limit: int = Query(settings.TRIP_PAGE_SIZE_DEFAULT, ge=1, le=settings.TRIP_PAGE_SIZE_MAX),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """
    Search trips. Results are cached in Redis for REDIS_CACHE_TTL seconds
    and invalidated whenever trips or seat availability change.
    """
    search = TripSearch(
        departure_city=departure_city,
        destination_city=destination_city,
        date=date,
        company_id=company_id,
        min_price=min_price,
        max_price=max_price,
        include_past=include_past,
        sort_by=sort_by,
        sort_dir=sort_dir,
        limit=limit,
        offset=offset,
    )
    cache_key = search.cache_key()

    cached = await get_cached_trips(cache_key)
    if cached:
        logger.info("trips_list_cache_hit", key=cache_key)
        cached["cached"] = True
        return TripListResponse(**cached)

    trips, total = await trip_service.list_trips(db, search)
    response_data = {
        "trips": [TripResponse(**t).model_dump(mode="json") for t in trips],
        "total": total,
        "limit": limit,
        "offset": offset,
        "cached": False,
    }
    await set_cached_trips(cache_key, response_data)
    return TripListResponse(**response_data)


@router.get("/{trip_id}", response_model=TripDetailResponse)
async def get_trip_endpoint(
    trip_id: uuid.UUID,
    principal: Optional[Principal] = Depends(get_optional_principal),
    db: AsyncSession = Depends(get_db),
):
    """Trip detail with the live seat layout. Not cached."""
    viewer_id = principal.user_id if principal else None
    return await trip_service.get_trip(db, trip_id, viewer_id)


@router.patch("/{trip_id}", response_model=TripResponse)
async def update_trip_endpoint(
    trip_id: uuid.UUID,
    changes: TripUpdate,
    company_id: uuid.UUID = Depends(get_managed_company_id),
    db: AsyncSession = Depends(get_db),
):
    await _managed_trip(db, trip_id, company_id)
    trip = await trip_service.update_trip(db, trip_id, changes)
    await invalidate_trip_cache()
    detail = await trip_service.get_trip(db, trip.id)
    detail.pop("seats")
    return detail


@router.get("/{trip_id}/tickets", response_model=list[TripTicket])
async def list_trip_tickets_endpoint(
    trip_id: uuid.UUID,
    company_id: uuid.UUID = Depends(get_managed_company_id),
    db: AsyncSession = Depends(get_db),
):
    """Every ticket sold on one of the caller's trips."""
    await _managed_trip(db, trip_id, company_id)
    return await trip_service.list_trip_tickets(db, trip_id)


@router.delete("/{trip_id}", response_model=RefundSummaryResponse)
async def delete_trip_endpoint(
    trip_id: uuid.UUID,
    company_id: uuid.UUID = Depends(get_managed_company_id),
    db: AsyncSession = Depends(get_db),
):
    """Delete a trip. Every active ticket on it is refunded in full."""
    await _managed_trip(db, trip_id, company_id)
    summary = await refund_service.delete_trip(db, trip_id)
    await invalidate_trip_cache()
    return RefundSummaryResponse(
        message="Trip deleted",
        trips_deleted=summary.trips_deleted,
        tickets_refunded=summary.tickets_refunded,
        amount_refunded=summary.amount_refunded,
    )
