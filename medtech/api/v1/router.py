"""API v1 router configuration."""

from fastapi import APIRouter

from medtech.api.v1.endpoints import (
    articles,
    auth,
    bookings,
    consultations,
    health,
    payments,
    profiles,
    specialists,
)

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(profiles.router, tags=["Profiles"])
api_router.include_router(specialists.router, prefix="/specialists", tags=["Specialists"])
api_router.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])
api_router.include_router(payments.router, tags=["Payments"])
api_router.include_router(consultations.router, prefix="/consultations", tags=["Consultations"])
api_router.include_router(articles.router, prefix="/articles", tags=["Articles"])
