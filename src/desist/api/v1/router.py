"""
API v1 Router

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter

from desist.api.v1.endpoints.health import router as health_router
from desist.api.v1.endpoints.mode import router as mode_router
from desist.api.v1.endpoints.stealth import router as stealth_router
from desist.api.v1.endpoints.emergency import router as emergency_router
from desist.api.v1.endpoints.contacts import router as contacts_router

api_router = APIRouter()

# Include endpoint routers
api_router.include_router(
    health_router,
    prefix="/health",
    tags=["Health"],
)

api_router.include_router(
    mode_router,
    tags=["Mode"],
)

api_router.include_router(
    stealth_router,
    prefix="/stealth",
    tags=["Stealth"],
)

api_router.include_router(
    emergency_router,
    prefix="/emergency",
    tags=["Emergency"],
)

api_router.include_router(
    contacts_router,
    prefix="/contacts",
    tags=["Contacts"],
)
