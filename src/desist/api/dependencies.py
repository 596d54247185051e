"""FastAPI dependencies."""

from fastapi import HTTPException, Request, status

from desist.services.coordination.coordination_core import CoordinationCore


def get_core(request: Request) -> CoordinationCore:
    """Coordination core built by the application lifespan."""
    core = getattr(request.app.state, "core", None)
    if core is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Coordination core not initialized",
        )
    return core
