"""
PR Journal Sync - FastAPI Application
======================================

Application factory: logging, lifespan, error rendering and routers.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from journal_sync.api import auth, github, journal
from journal_sync.api.deps import get_github_gateway, get_journal_gateway
from journal_sync.core.config import settings
from journal_sync.core.crypto import get_cipher
from journal_sync.core.database import close_db, init_db, ping_db
from journal_sync.core.errors import AppError, ErrorKind, Unauthorized
from journal_sync.core.schemas import ErrorResponse, HealthResponse


def configure_logging() -> None:
    """structlog on top of stdlib logging, so plain ``logging`` callers share the output."""
    logging.basicConfig(
        format="%(message)s",
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if settings.is_production else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create tables and derive the cipher key on startup; close upstream clients on shutdown."""
    logger.info("service_starting", version=settings.APP_VERSION, environment=settings.ENVIRONMENT)
    await init_db()

    if settings.ENCRYPTION_KEY:
        get_cipher().ensure_ready()
    else:
        logger.warning("encryption_key_missing", detail="credential relay disabled")

    yield

    await get_github_gateway().close()
    await get_journal_gateway().close()
    await close_db()
    logger.info("service_stopped")


# ==========================================================================
# Error Rendering
# ==========================================================================

async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    if exc.kind == ErrorKind.INTERNAL_ERROR:
        logger.error("request_failed", kind=exc.kind.value, error=exc.message, path=request.url.path)
    else:
        logger.info("request_rejected", kind=exc.kind.value, status=exc.status_code, path=request.url.path)

    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.message, code=exc.kind.value).model_dump(),
        headers={"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None,
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log everything, reveal details only in development."""
    logger.error("unhandled_exception", exc_info=exc, path=request.url.path, method=request.method)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Internal Server Error",
            detail=str(exc) if settings.is_development else "An unexpected error occurred",
            code=ErrorKind.INTERNAL_ERROR.value,
        ).model_dump(),
    )


# ==========================================================================
# Service Endpoints
# ==========================================================================

async def health_check() -> HealthResponse:
    """Liveness plus a database round trip. A dead database degrades, it does not fail."""
    try:
        await ping_db()
        database = "connected"
    except Exception as e:
        logger.warning("health_database_unavailable", error=str(e))
        database = "unavailable"

    return HealthResponse(
        status="healthy" if database == "connected" else "degraded",
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        database=database,
    )


async def service_info() -> dict:
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "health": "/health",
        "api": settings.API_V1_PREFIX,
    }


def create_app() -> FastAPI:
    docs_enabled = settings.is_development
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Summarize GitHub pull requests into a work journal",
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AppError, handle_app_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.add_api_route(
        "/health", health_check, methods=["GET"], response_model=HealthResponse, tags=["Health"]
    )
    app.add_api_route("/", service_info, methods=["GET"], tags=["Root"])

    for module in (auth, github, journal):
        app.include_router(module.router, prefix=settings.API_V1_PREFIX)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "journal_sync.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level="info",
    )
