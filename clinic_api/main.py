"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from clinic_api.api.v1.router import api_router
from clinic_api.config import settings
from clinic_api.core.exceptions import AppException
from clinic_api.core.redis_client import close_redis_connection, get_redis_client
from clinic_api.core.security import Auth0TokenVerifier
from clinic_api.database import Database
from clinic_api.middleware.error_handler import (
    app_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from clinic_api.middleware.logging import LoggingMiddleware, configure_logging
from clinic_api.services.notification_service import NotificationDispatcher, ResendEmailSender

# Configure logging
configure_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Opens the storage handle, the token verifier and the notification
    worker at startup and closes them at shutdown.
    """
    logger.info("application_startup", environment=settings.environment)

    database = Database(
        settings.database_url,
        echo=settings.debug,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        application_name=settings.app_name,
    )
    app.state.database = database

    if settings.auto_create_schema:
        await database.create_schema()

    if await database.check_connection():
        logger.info("database_connected")
    else:
        logger.error("database_connection_failed")

    app.state.token_verifier = Auth0TokenVerifier(
        domain=settings.auth0_domain,
        audience=settings.auth0_audience,
        algorithms=settings.auth0_algorithms,
        issuer=settings.auth0_issuer,
        jwks_cache_ttl=settings.jwks_cache_ttl,
    )

    if not settings.resend_api_key:
        logger.warning(
            "email_not_configured",
            note="Notifications will fail. Set RESEND_API_KEY env var.",
        )
    notifier = NotificationDispatcher(
        ResendEmailSender(settings.resend_api_key),
        max_attempts=settings.notification_max_attempts,
        retry_delay=settings.notification_retry_delay,
        queue_size=settings.notification_queue_size,
    )
    notifier.start()
    app.state.notifier = notifier

    try:
        get_redis_client().ping()
        logger.info("redis_connected")
    except Exception as e:
        logger.error("redis_connection_failed", error=str(e))

    yield

    logger.info("application_shutdown")

    await notifier.stop()

    await database.dispose()
    logger.info("database_connections_closed")

    close_redis_connection()
    logger.info("redis_connection_closed")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Clinic appointment booking and clinical records API",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add logging middleware
app.add_middleware(LoggingMiddleware)

# Add exception handlers
app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(
    RequestValidationError,
    validation_exception_handler,  # type: ignore[arg-type]
)
app.add_exception_handler(Exception, general_exception_handler)  # type: ignore[arg-type]

# Include API router
app.include_router(api_router, prefix=settings.api_prefix)

# Setup Prometheus instrumentation
Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=False,
    excluded_handlers=["/docs", "/redoc", "/openapi.json", "/metrics"],
).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "message": f"{settings.app_name} funcionando",
        "version": settings.app_version,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "clinic_api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )
