from fastapi import APIRouter

from app.api.v1.routers import (
    applications,
    assignments,
    health,
    loans,
    plans,
    profile,
)

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(profile.router)
api_router.include_router(plans.router)
api_router.include_router(applications.router)
api_router.include_router(loans.router)
api_router.include_router(assignments.router)

__all__ = ["api_router"]
