from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from jobflow.config.logging import get_logger, setup_logging
from jobflow.config.settings import Settings, settings as default_settings
from jobflow.v1.core.container import ServiceContainer, build_services
from jobflow.v1.core.exceptions import (
    JobflowException,
    RequestContextMiddleware,
    general_exception_handler,
    http_exception_handler,
    jobflow_exception_handler,
)
from jobflow.v1.healthz import router as health_router
from jobflow.v1.infra.cache.routes import router as cache_router
from jobflow.v1.infra.jobs.routes import router as jobs_router
from jobflow.v1.ingestion.routes import sync_router, webhooks_router
from jobflow.v1.scheduling.routes import router as scheduler_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    services: ServiceContainer = app.state.services
    settings = services.settings

    # Production schema is managed by Alembic
    if settings.environment in ("development", "test"):
        await services.database.create_all()

    if settings.scheduler_enabled:
        services.scheduler.start()

    logger.info(
        "Application started",
        environment=settings.environment,
        queues=services.queue.queue_names(),
        caches=services.caches.list(),
        scheduler_enabled=settings.scheduler_enabled,
    )
    try:
        yield
    finally:
        await services.close()
        logger.info("Application stopped")


def create_app(
    settings: Settings | None = None, services: ServiceContainer | None = None
) -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = settings or (services.settings if services else default_settings)

    # Initialize structured logging
    setup_logging(settings)

    # All endpoints live under the /v1 prefix
    app = FastAPI(
        title=settings.app_name,
        description="Job ingestion, deduplication, scheduling and status tracking",
        version=settings.version,
        debug=settings.debug,
        lifespan=lifespan,
        openapi_url="/v1/openapi.json" if settings.debug else None,
        docs_url="/v1/docs" if settings.debug else None,
        redoc_url="/v1/redoc" if settings.debug else None,
    )
    app.state.services = services or build_services(settings)

    # Add middleware
    app.add_middleware(RequestContextMiddleware)

    # Add CORS middleware for development
    if settings.debug:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Add exception handlers
    app.add_exception_handler(JobflowException, jobflow_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # Include routers with /v1 prefix
    app.include_router(health_router, prefix="/v1", tags=["health"])
    app.include_router(webhooks_router, prefix="/v1")
    app.include_router(sync_router, prefix="/v1")
    app.include_router(jobs_router, prefix="/v1")
    app.include_router(cache_router, prefix="/v1")
    app.include_router(scheduler_router, prefix="/v1")

    return app


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "jobflow.main:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.debug,
        workers=1 if default_settings.debug else default_settings.workers,
    )
