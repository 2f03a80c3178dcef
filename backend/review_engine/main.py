"""
Review & Sign-off Engine - FastAPI entry point

Wires settings, logging, middleware, error envelope, the review router and
the overdue sweep into one application object (``app``).
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.middleware import CORRELATION_HEADER, CorrelationIdMiddleware, register_error_handlers
from .api.routes import api_router
from .config.settings import settings
from .repositories.mongo_client import close_connection, create_indexes, health_check
from .scheduler.overdue_scheduler import get_scheduler, start_scheduler, stop_scheduler
from .utils.logger import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)

APP_NAME = "Review & Sign-off Engine"
APP_VERSION = "1.0.0"
API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup ensures indexes (including the one-active-workflow-per-item
    partial unique index) and starts the overdue sweep.
    Index or scheduler failures are logged; the API still serves reads.
    """
    logger.info(f"Starting {APP_NAME} {APP_VERSION} ({settings.environment})")

    try:
        create_indexes()
    except Exception as e:
        logger.error(f"Index creation failed, uniqueness is not enforced by the store: {e}")

    if settings.overdue_sweep_enabled:
        try:
            start_scheduler()
        except Exception as e:
            logger.error(f"Overdue sweep not started: {e}")
    else:
        logger.info("Overdue sweep disabled by configuration")

    yield

    stop_scheduler()
    close_connection()
    logger.info(f"{APP_NAME} stopped")


def create_app() -> FastAPI:
    """Build the application; docs are only exposed in debug mode"""
    docs_enabled = settings.debug
    application = FastAPI(
        title=APP_NAME,
        description="Review, approval, sign-off and reopening lifecycle for audit engagement artifacts",
        version=APP_VERSION,
        lifespan=lifespan,
        docs_url="/api/docs" if docs_enabled else None,
        redoc_url=None,
        openapi_url="/api/openapi.json" if docs_enabled else None,
    )

    # Wildcard origins cannot be combined with credentials
    allow_all = settings.cors_origins.strip() == "*"
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_origins_list,
        allow_credentials=not allow_all,
        allow_methods=["GET", "POST", "PUT", "PATCH"],
        allow_headers=["Authorization", "Content-Type", CORRELATION_HEADER],
        expose_headers=[CORRELATION_HEADER],
    )
    application.add_middleware(CorrelationIdMiddleware)

    register_error_handlers(application)
    application.include_router(api_router, prefix=API_PREFIX)
    _add_service_routes(application)

    return application


def _add_service_routes(app: FastAPI) -> None:
    """Unauthenticated probes"""

    @app.get("/health", tags=["Health"])
    async def health():
        mongo = health_check()
        return {
            "status": "healthy" if mongo.get("status") == "healthy" else "degraded",
            "version": APP_VERSION,
            "environment": settings.environment,
            "mongo": mongo,
            "overdue_sweep": {
                "enabled": settings.overdue_sweep_enabled,
                "running": get_scheduler().is_running,
            },
        }

    @app.get("/", tags=["Health"])
    async def root():
        return {
            "name": APP_NAME,
            "version": APP_VERSION,
            "api": f"{API_PREFIX}/reviews",
            "docs": app.docs_url,
        }


app = create_app()
