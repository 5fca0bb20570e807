"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter

from busticket.api.routes import bookings, companies, coupons, tickets, trips, users

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(trips.router)
api_router.include_router(bookings.router)
api_router.include_router(tickets.router)
api_router.include_router(coupons.router)
api_router.include_router(companies.router)
api_router.include_router(users.router)
