"""
Main FastAPI application.

WHY: This is the entry point for the quote engine. It configures logging,
middleware, routes, exception handlers and the background expiry sweep.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from quote_engine.api import analytics, quote_templates, quotes
from quote_engine.core.config import settings
from quote_engine.core.exceptions import AppException
from quote_engine.core.exception_handlers import (
    app_exception_handler,
    validation_exception_handler,
    http_exception_handler,
    generic_exception_handler,
)
from quote_engine.db.session import AsyncSessionLocal
from quote_engine.middleware import RequestContextMiddleware, RequestIdLogFilter
from quote_engine.services.scheduler import start_scheduler, shutdown_scheduler, get_scheduler_status
from quote_engine.services.template_service import QuoteTemplateService

LOG_FORMAT = "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s"

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """
    Configure the root logger from LOG_LEVEL.

    Every record carries the request ID of the request that produced it
    ("-" outside requests).
    """
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format=LOG_FORMAT)
    for handler in logging.getLogger().handlers:
        handler.addFilter(RequestIdLogFilter())


async def seed_default_templates() -> None:
    """Insert the stock templates on an empty database."""
    async with AsyncSessionLocal() as session:
        try:
            created = await QuoteTemplateService(session).seed_default_templates()
            await session.commit()
        except Exception:
            await session.rollback()
            raise
    if created:
        logger.info(f"Seeded {created} default quote templates")


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    WHY: Factory pattern allows tests to build an app with their own
    dependency overrides.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Quote (CPQ) engine for EV charger installation projects",
        version=settings.VERSION,
        docs_url=f"{settings.API_V1_PREFIX}/docs",
        redoc_url=f"{settings.API_V1_PREFIX}/redoc",
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    )

    # Register exception handlers
    # WHY: Consistent {"error", "message", "status_code", "details"} envelope
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # Request ID and acting user for every request
    app.add_middleware(RequestContextMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    @app.get("/health", tags=["health"])
    async def health_check() -> dict:
        """
        Health check endpoint.

        Reports the expiry sweep scheduler without touching the database.
        """
        return {
            "status": "healthy",
            "version": settings.VERSION,
            "scheduler": get_scheduler_status(),
        }

    @app.on_event("startup")
    async def startup_event():
        """Seed templates and start the expiry sweep."""
        if settings.SEED_DEFAULT_TEMPLATES:
            await seed_default_templates()
        if settings.QUOTE_EXPIRY_SWEEP_ENABLED:
            await start_scheduler()

    @app.on_event("shutdown")
    async def shutdown_event():
        await shutdown_scheduler()

    app.include_router(quotes.router, prefix=settings.API_V1_PREFIX)
    app.include_router(quote_templates.router, prefix=settings.API_V1_PREFIX)
    app.include_router(analytics.router, prefix=settings.API_V1_PREFIX)

    return app


configure_logging()

# WHY: Module-level instance so uvicorn can import quote_engine.main:app
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "quote_engine.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="info" if settings.DEBUG else "warning",
    )
