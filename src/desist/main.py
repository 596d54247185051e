"""
DESIST FastAPI Application Entry Point

Main application initialization with:
- Lifespan management (coordination core load/shutdown)
- CORS configuration
- Error handling middleware
- Router registration
- Health and metrics endpoints

The mobile host drives the coordination core through this API.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from desist import __version__
from desist.config import Settings, get_settings
from desist.config.logging_config import configure_logging, get_logger
from desist.api.v1.router import api_router
from desist.api.middleware.error_handler import ErrorHandlerMiddleware, register_exception_handlers
from desist.infrastructure.metrics import metrics_router, update_system_info
from desist.infrastructure.monitoring import init_sentry
from desist.services.coordination.coordination_core import CoordinationCore
from desist.services.coordination.factory import build_coordination_core

# Initialize settings and logging
settings = get_settings()
configure_logging(settings)
logger = get_logger(__name__)


CoreFactory = Callable[[], CoordinationCore]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Builds and loads the coordination core on startup; stops timers and
    pipelines and flushes persistence on shutdown.
    """
    app_settings: Settings = app.state.settings

    logger.info(
        "Starting DESIST application",
        env=app_settings.env,
        version=__version__,
    )

    init_sentry(
        app_settings.sentry_dsn.get_secret_value(),
        environment=app_settings.env,
        release=f"desist@{__version__}",
    )
    update_system_info(app_settings.env, __version__)

    core: Optional[CoordinationCore] = None
    try:
        core = app.state.core_factory()
        mode = await core.load()
        app.state.core = core
        logger.info("Coordination core ready", mode=mode.value)

        yield

    finally:
        logger.info("Shutting down DESIST application")

        if core is not None:
            await core.shutdown()
        app.state.core = None

        logger.info("DESIST application shutdown complete")


def create_application(
    app_settings: Optional[Settings] = None,
    core_factory: Optional[CoreFactory] = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        app_settings: Settings override (defaults to environment)
        core_factory: Builds the coordination core at startup

    Returns:
        Configured FastAPI application
    """
    app_settings = app_settings or settings

    app = FastAPI(
        title="DESIST Coordination API",
        description="Stealth and emergency coordination core for the DESIST safety app",
        version=__version__,
        docs_url="/docs" if not app_settings.is_production() else None,
        redoc_url="/redoc" if not app_settings.is_production() else None,
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.core_factory = core_factory or (lambda: build_coordination_core(app_settings))
    app.state.core = None

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add error handling middleware
    app.add_middleware(ErrorHandlerMiddleware)
    register_exception_handlers(app)

    # Register API routers
    app.include_router(
        api_router,
        prefix=f"/api/{app_settings.api_version}",
    )
    app.include_router(metrics_router)

    # Root endpoint
    @app.get("/", include_in_schema=False)
    async def root() -> dict:
        """Root endpoint - basic info."""
        return {
            "name": "DESIST Coordination API",
            "version": __version__,
            "status": "operational",
        }

    return app


# Create application instance
app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "desist.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.env == "development",
        log_level=settings.log_level.lower(),
    )
