# main.py
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from datetime import datetime, timezone
from pydantic import BaseModel, Field
from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError
from slowapi.errors import RateLimitExceeded
from common.config import initialize_config, get_config, is_configured
from common.context_vars import request_id_context_var
from common.logger import get_app_logger
from common.logger.logger_middleware import RequestLoggingMiddleware
from common.api_error import ConfigurationError, AppError
from typing import Any, Optional
from app.db import DbManager
from app.services.v1 import QueueHub
from app.api.v1 import (
    doctor_router,
    booking_router,
    clinic_router,
    patient_router,
    queue_router,
)
from app.api.v1.rate_limit import limiter
from contextlib import asynccontextmanager
from fastapi.responses import JSONResponse

load_dotenv()
try:
    initialize_config()
except ConfigurationError as e:
    # Can't use logger yet, but that's OK - this is a fatal startup error
    print(f"FATAL: Configuration error:\n{e}")
    import sys

    sys.exit(1)

config = get_config()
logger = get_app_logger(
    name=__name__,
    track_timing=True,
)

app_title = config.app_title
app_version = config.app_version


@asynccontextmanager
async def lifespan(app: FastAPI):
    _db_config = config.database
    if not _db_config:
        raise RuntimeError("Database configuration required")

    logger.info("Database configuration", **_db_config.to_dict_safe())

    db_manager = DbManager.from_config(
        _db_config,
        serial_lock_timeout=config.queue.serial_lock_timeout_seconds,
    )
    await db_manager.verify_connection()

    # Ensure migrations are up-to-date (fail fast if not)
    try:
        await db_manager.verify_migrations_current()
        logger.info("✓ All migrations applied")
    except RuntimeError as e:
        logger.error(f"❌ Migration check failed: {e}")
        logger.error("Run 'alembic upgrade head'")
        raise

    # Add to state
    app.state.db_manager = db_manager

    yield
    logger.info("shutting down")
    await db_manager.dispose()


app = FastAPI(
    title=app_title,
    version=app_version,
    description=f"Clinic booking queue API, running in {config.environment.value} environment",
    lifespan=lifespan,
)
app.add_middleware(
    RequestLoggingMiddleware,
    expose_performance_headers=not config.environment.is_production,
)

# Process-local; see QueueHub for the single-instance caveat
app.state.queue_hub = QueueHub(heartbeat_seconds=config.queue.heartbeat_seconds)

limiter.enabled = config.rate_limit.enabled
app.state.limiter = limiter

app.include_router(doctor_router)
app.include_router(booking_router)
app.include_router(clinic_router)
app.include_router(patient_router)
app.include_router(queue_router)


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None) or request_id_context_var.get()


def error_envelope(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    fields: Optional[dict[str, list[str]]] = None,
) -> JSONResponse:
    content: dict[str, Any] = {"error": code, "message": message}
    if fields:
        content["fields"] = fields
    content["requestId"] = _request_id(request)
    content["timestamp"] = datetime.now(tz=timezone.utc).isoformat()
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    log = logger.error if exc.is_retryable else logger.warning
    log(
        f"Domain Error: {exc.code}",
        path=request.url.path,
        error_code=exc.code,
        message=exc.message,
    )
    return error_envelope(request, exc.status_code, exc.code, exc.message, exc.fields)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    logger.warning("Rate limit exceeded", path=request.url.path, limit=exc.detail)
    return error_envelope(
        request, 429, "RATE_LIMITED", f"Too many requests, limit is {exc.detail}"
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields: dict[str, list[str]] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ())]
        # drop the "body"/"query"/"path" prefix
        key = ".".join(loc[1:]) if len(loc) > 1 else ".".join(loc) or "request"
        fields.setdefault(key, []).append(error.get("msg", "Invalid value"))

    logger.warning("Request validation failed", path=request.url.path, fields=fields)
    return error_envelope(request, 422, "VALIDATION_ERROR", "Validation failed", fields)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(
        "Database error",
        path=request.url.path,
        error_type=type(exc).__name__,
    )
    return error_envelope(request, 500, "INTERNAL_ERROR", "An unexpected error occurred")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(
        "Unhandled error",
        path=request.url.path,
        error_type=type(exc).__name__,
    )
    return error_envelope(request, 500, "INTERNAL_ERROR", "An unexpected error occurred")


class HealthCheckResponse(BaseModel):
    status: str = Field(..., description="Current system health status")
    timestamp: datetime = Field(..., description="Server time in ISO 8601 format")
    version: str = Field(..., description="Application version")
    logging_configured: bool = Field(..., description="Logging configuration status")
    log_level: str = Field(..., description="Application log level")
    database: dict[str, Any] = Field(default_factory=dict, description="Database probe")


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Error message describing the failure")
    timestamp: datetime = Field(..., description="Server time when the error occurred")


@app.get(
    "/health",
    response_model=HealthCheckResponse,
    responses={
        200: {"description": "System is healthy", "model": HealthCheckResponse},
        503: {"description": "System is unhealthy", "model": ErrorResponse},
    },
)
async def check_health(request: Request) -> HealthCheckResponse:
    db_manager: Optional[DbManager] = getattr(request.app.state, "db_manager", None)
    database = (
        await db_manager.health_check()
        if db_manager
        else {"healthy": False, "error": "not initialized"}
    )

    if not database.get("healthy"):
        logger.error("Health check failed", endpoint="/health", database=database)
        err = ErrorResponse(
            error="database unavailable",
            timestamp=datetime.now(tz=timezone.utc),
        )
        raise HTTPException(
            status_code=503,
            detail=err.model_dump(mode="json"),
        )

    logger.debug("Health check passed", version=app_version, endpoint="/health")
    return HealthCheckResponse(
        status="Healthy",
        timestamp=datetime.now(tz=timezone.utc),
        version=app_version,
        logging_configured=is_configured(),
        log_level=get_config().logging.level_value,
        database=database,
    )


@app.get("/metrics")
async def metrics(request: Request) -> dict[str, Any]:
    """Logger timings, queue hub counters and pool settings."""
    db_manager: Optional[DbManager] = getattr(request.app.state, "db_manager", None)
    return {
        "logger": logger.get_timing_stats(),
        "queue": request.app.state.queue_hub.stats(),
        "database": db_manager.get_config_snapshot() if db_manager else None,
    }


__all__ = ["app", "config"]
