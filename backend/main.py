"""
RDC Portal FastAPI Application
Main entry point for the research and development cell portal API.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.api import (
    arps,
    auth,
    cron,
    documents,
    emr,
    health,
    incentives,
    notifications,
    projects,
    recruitment,
    upload,
    users,
)
from backend.api import settings as settings_api
from backend.core.config import settings
from backend.core.exceptions import PortalError
from backend.core.rate_limit import close_rate_limiter
from backend.core.sentry import capture_exception, init_sentry
from backend.database import close_db, init_db

# =============================================================================
# Logging Configuration
# =============================================================================

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# Lifespan Events
# =============================================================================


def validate_security_settings() -> None:
    """
    Validate critical security settings at startup.
    Raises RuntimeError if insecure configuration detected in production.
    """
    warnings = []
    errors = []

    insecure_keys = [
        "CHANGE-THIS-IN-PRODUCTION-REQUIRED",
        "secret",
        "changeme",
    ]
    if settings.secret_key in insecure_keys or len(settings.secret_key) < 32:
        msg = "SECRET_KEY is insecure or too short (minimum 32 characters required)"
        if settings.is_production:
            errors.append(msg)
        else:
            warnings.append(msg)

    if settings.is_production and settings.debug:
        errors.append("DEBUG mode must be disabled in production (set DEBUG=false)")

    if not settings.cron_secret:
        msg = "CRON_SECRET is not set - scheduled reminder endpoints will reject every call"
        if settings.is_production:
            errors.append(msg)
        else:
            warnings.append(msg)

    if settings.is_production and os.getenv("DEV_BYPASS_AUTH", "false").lower() == "true":
        errors.append("DEV_BYPASS_AUTH must be disabled in production")

    for warning in warnings:
        logger.warning(f"SECURITY WARNING: {warning}")

    if errors:
        for error in errors:
            logger.error(f"SECURITY ERROR: {error}")
        raise RuntimeError(f"Cannot start in production with insecure configuration: {'; '.join(errors)}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: validate settings, enable Sentry, create tables in debug.
    Shutdown: close the rate limiter and database pool.
    """
    logger.info(f"Starting {settings.app_name}...")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Version: {settings.app_version}")

    validate_security_settings()

    if init_sentry():
        logger.info("Sentry error tracking enabled")
    else:
        logger.info("Sentry error tracking disabled (no DSN configured)")

    # Production schemas are managed outside the app
    if settings.debug:
        await init_db()
        logger.info("Database initialized successfully")

    logger.info("Application startup complete")

    yield

    logger.info(f"Shutting down {settings.app_name}...")
    await close_rate_limiter()
    await close_db()
    logger.info("Database connections closed")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="RDC Portal API",
    description="""
    Research & Development Cell Portal API

    ## Features

    - **IMR Projects**: Submission, review meetings, evaluations and grants
    - **EMR Calls**: Funding calls, interest registration, presentations and sanction trail
    - **Incentive Claims**: Publication, patent, book and membership claims with staged approvals
    - **ARPS**: Annual research performance scoring
    - **Documents**: Generated recommendation, office noting and payment forms
    - **Recruitment**: Project staff postings and applications

    ## Authentication

    Most endpoints require a bearer token from `/api/auth/login`.
    Scheduled jobs under `/api/cron` authenticate with the shared cron secret header.
    """,
    version=settings.app_version,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan,
)

# =============================================================================
# CORS Middleware
# =============================================================================

allowed_origins = [settings.frontend_url, *settings.cors_origin_list]
if settings.debug:
    allowed_origins.extend(
        [
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ]
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=sorted(set(allowed_origins)),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Every domain failure (``PortalError``) and routing error becomes ``{"success": false, "error": ...}``."""
    message = exc.message if isinstance(exc, PortalError) else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": message},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = "Invalid request."
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": message},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")

    event_id = capture_exception(
        exc,
        extra={
            "request_url": str(request.url),
            "request_method": request.method,
            "request_path": request.url.path,
        },
    )

    message = "An unexpected error occurred."
    if settings.debug:
        message = f"{message} {exc}"
    elif event_id:
        message = f"{message} (ref: {event_id})"

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": message},
    )


# =============================================================================
# API Routers
# =============================================================================

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(projects.router)
app.include_router(emr.router)
app.include_router(incentives.router)
app.include_router(arps.router)
app.include_router(documents.router)
app.include_router(recruitment.router)
app.include_router(notifications.router)
app.include_router(settings_api.router)
app.include_router(upload.router)
app.include_router(cron.router)


@app.get("/", tags=["Root"], summary="API root")
async def root() -> dict[str, Any]:
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs_url": "/docs" if settings.debug else None,
        "health_url": "/health",
        "readiness_url": "/health/ready",
    }


def create_app() -> FastAPI:
    """Application factory used by uvicorn --factory."""
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "backend.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )
