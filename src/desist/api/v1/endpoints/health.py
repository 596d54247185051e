"""
Health Check Endpoints

Provides system health and readiness endpoints for:
- Load balancer health checks
- Kubernetes probes
- Monitoring systems
"""

from fastapi import APIRouter, Request
from pydantic import BaseModel

from desist import __version__
from desist.config import get_settings

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    environment: str


class ReadinessResponse(BaseModel):
    """Readiness check response with component health."""

    ready: bool
    components: dict


@router.get(
    "",
    response_model=HealthResponse,
    summary="Health check",
    description="Basic health check endpoint for load balancers",
)
async def health_check() -> HealthResponse:
    """Returns 200 if the application is running."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=get_settings().env,
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness check",
    description="Readiness check including coordination core and persistence",
)
async def readiness_check(request: Request) -> ReadinessResponse:
    """
    Detailed readiness check.

    The service is ready once the coordination core is loaded. Degraded
    persistence (settings held only in memory) is reported but does not
    make the service unready.
    """
    core = getattr(request.app.state, "core", None)
    components: dict = {"coordination_core": core is not None}

    if core is not None:
        degraded = sorted(core.writer.degraded_keys)
        components["persistence"] = not degraded
        components["persistence_degraded_keys"] = degraded
        components["mode"] = core.get_mode().value

    return ReadinessResponse(
        ready=core is not None,
        components=components,
    )


@router.get(
    "/live",
    response_model=HealthResponse,
    summary="Liveness probe",
    description="Kubernetes liveness probe endpoint",
)
async def liveness_check() -> HealthResponse:
    """Returns 200 if the application process is alive."""
    return HealthResponse(
        status="alive",
        version=__version__,
        environment=get_settings().env,
    )
