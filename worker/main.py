from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from worker.config.logging import get_logger, setup_logging
from worker.config.settings import settings
from worker.infra.downstream import close_downstream
from worker.v1.core.exceptions import (
    RequestContextMiddleware,
    WorkerException,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    worker_exception_handler,
)
from worker.v1.healthz import router as health_router
from worker.v1.jobs.dispatcher import get_dispatcher
from worker.v1.jobs.routes import pubsub_router
from worker.v1.jobs.routes import router as jobs_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Worker started",
        app=settings.app_name,
        version=settings.version,
        environment=settings.environment,
        subscription=settings.pubsub_subscription,
    )
    yield
    logger.info("Worker shutting down")
    await close_downstream()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    # Initialize structured logging
    setup_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Async pipeline worker for enrichment, scoring and discovery jobs",
        version=settings.version,
        debug=settings.debug,
        lifespan=lifespan,
        openapi_url="/v1/openapi.json" if settings.debug else None,
        docs_url="/v1/docs" if settings.debug else None,
        redoc_url="/v1/redoc" if settings.debug else None,
    )

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
    app.add_exception_handler(WorkerException, worker_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # Include routers with /v1 prefix
    app.include_router(health_router, prefix="/v1", tags=["health"])
    app.include_router(jobs_router, prefix="/v1")
    app.include_router(pubsub_router, prefix="/v1")

    # Freeze the job table in non-development environments
    if settings.environment != "development":
        get_dispatcher(settings).registry.freeze()

    return app


def run() -> None:
    """Run the worker with uvicorn."""
    import uvicorn

    uvicorn.run(
        "worker.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers,
    )


# Create the app instance
app = create_app()


if __name__ == "__main__":
    run()
