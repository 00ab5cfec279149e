# backend/bullion/main.py
"""
FastAPI application entry point.

This file:
- Configures application-wide logging
- Creates the FastAPI application (tables are created on startup)
- Registers global exception handlers
- Registers all routers
- Defines global endpoints (health checks)
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bullion.config import settings
from bullion.database import check_database_health, engine
from bullion.dependencies import shutdown_services
from bullion.middleware import CorrelationIdMiddleware
from bullion.models import Base
from bullion.routers import analytics_router, assets_router, backup_router, sync_router
from bullion.schemas.errors import ErrorDetail
from bullion.services.exceptions import (
    BackupError,
    NotFoundError,
    ServiceError,
    SourceRejectedError,
    SourceUnavailableError,
    ValidationError,
)
from bullion.utils import get_correlation_id, setup_logging

logger = logging.getLogger(__name__)

# =============================================================================
# LOGGING SETUP (must be before app creation)
# =============================================================================

setup_logging()


# =============================================================================
# APPLICATION SETUP
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    Base.metadata.create_all(bind=engine)
    logger.info(f"{settings.app_name} started (environment={settings.environment})")
    yield
    shutdown_services()
    logger.info(f"{settings.app_name} stopped")


app = FastAPI(
    title=settings.app_name,
    description="Precious-metal portfolio tracker: price sync and analytics API",
    version="0.1.0",
    lifespan=lifespan,
)


# =============================================================================
# MIDDLEWARE (order matters: last added = first executed)
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
    expose_headers=["X-Correlation-ID"],
)

# Extracts/generates correlation ids and adds them to response headers
app.add_middleware(CorrelationIdMiddleware)


# =============================================================================
# GLOBAL EXCEPTION HANDLERS
# =============================================================================
# Service-layer exceptions carry no HTTP knowledge; they are converted to
# ErrorDetail responses here. Handlers are matched on the most specific
# exception class first.
# =============================================================================

def _error_response(
        status_code: int,
        exc: Exception,
        details: dict | list | None = None,
        message: str | None = None,
        headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorDetail(
            error=type(exc).__name__,
            message=message if message is not None else str(exc),
            details=details,
            correlation_id=get_correlation_id(),
        ).model_dump(),
        headers=headers,
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    """Handle not found errors (404)."""
    logger.warning(f"Not found: {exc}")
    return _error_response(
        404,
        exc,
        details={"resource_type": exc.resource_type, "resource_id": exc.resource_id},
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Handle validation errors (400)."""
    logger.warning(f"Validation error: {exc}")
    return _error_response(400, exc, details={"field": exc.field} if exc.field else None)


@app.exception_handler(BackupError)
async def backup_error_handler(request: Request, exc: BackupError) -> JSONResponse:
    """Handle invalid or unsupported backup bundles (400)."""
    logger.warning(f"Backup rejected: {exc}")
    return _error_response(400, exc)


@app.exception_handler(SourceRejectedError)
async def source_rejected_handler(request: Request, exc: SourceRejectedError) -> JSONResponse:
    """Handle a price source refusing our requests (502)."""
    logger.error(f"Price source rejected request: {exc}")
    return _error_response(
        502,
        exc,
        details={"source": exc.source, "status_code": exc.status_code},
    )


@app.exception_handler(SourceUnavailableError)
async def source_unavailable_handler(request: Request, exc: SourceUnavailableError) -> JSONResponse:
    """Handle an unreachable price source (503)."""
    logger.error(f"Price source unavailable: {exc}")
    return _error_response(503, exc, details={"source": exc.source})


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Handle generic service errors (500)."""
    logger.error(f"Service error: {exc}")
    return _error_response(500, exc)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """
    Handle all HTTPExceptions with consistent error format.

    Converts FastAPI's default {"detail": "..."} format to ErrorDetail.
    """
    error_types = {
        400: "BadRequestError",
        404: "NotFoundError",
        405: "MethodNotAllowedError",
        409: "ConflictError",
        422: "ValidationError",
        500: "InternalServerError",
        503: "ServiceUnavailableError",
    }
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorDetail(
            error=error_types.get(exc.status_code, "HTTPError"),
            message=str(exc.detail) if exc.detail else "An error occurred",
            correlation_id=get_correlation_id(),
        ).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
        request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Handle Pydantic request validation errors (422).

    One entry per invalid field, with the dotted location.
    """
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    return _error_response(422, exc, details=errors, message="Request validation failed")


# =============================================================================
# ROUTER REGISTRATION
# =============================================================================

app.include_router(assets_router)  # /assets/*
app.include_router(sync_router)  # /sync
app.include_router(analytics_router)  # /portfolio/*
app.include_router(backup_router)  # /backup/*


# =============================================================================
# GLOBAL ENDPOINTS
# =============================================================================

@app.get("/", tags=["Health"])
def root():
    """API root - returns basic application info."""
    return {
        "message": f"Welcome to {settings.app_name}!",
        "docs": "/docs",
    }


@app.get("/health", tags=["Health"])
def health_check():
    """
    Liveness check.

    Always 200 while the process is running; does not touch dependencies.
    """
    return {"status": "alive"}


@app.get("/health/db", tags=["Health"])
def database_health_check():
    """
    Database connectivity check.

    Returns **503** if the database cannot be reached.
    """
    result = check_database_health()
    if result["status"] != "healthy":
        return JSONResponse(status_code=503, content=result)
    return result
