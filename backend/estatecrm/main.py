"""
EstateCRM Reminders - FastAPI Application Entry Point

Purpose: Wires the reminder, notification and admin routers, maps domain
errors to HTTP responses and owns the in-process reminder scheduler.

Testing:
    uvicorn estatecrm.main:app --reload --port 8080
    curl http://localhost:8080/health
    curl -H "X-Employee-Id: emp_1" http://localhost:8080/api/v1/reminders/due

AWS Deployment Notes:
    - API runs on ECS Fargate behind an ALB (/health is the target group check)
    - With SCHEDULER_PROVIDER=eventbridge the tick runs in lambda/reminder_scheduler;
      this process serves requests and relays stored notifications to its
      WebSocket clients
    - Identity headers are set by the upstream gateway, never by browsers
"""

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager
import logging
import time
from typing import Dict, Any

import shortuuid

from estatecrm.config import settings, validate_settings, print_config_summary
from estatecrm.api.v1 import admin, notifications, reminders
from estatecrm.dependencies import get_broadcast_channel, get_db_service
from estatecrm.errors import ReminderError
from estatecrm.logging_setup import setup_logging
from estatecrm.workers import reminder_scheduler

API_VERSION = "1.0.0"

setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate config, check tables, start the in-process tick or broadcast relay"""
    logger.info(f"Starting EstateCRM Reminders ({settings.ENVIRONMENT})")

    validate_settings()
    if settings.DEBUG:
        print_config_summary()

    await get_db_service().verify_tables()

    reminder_scheduler.start_scheduler()

    yield

    logger.info("Shutting down EstateCRM Reminders")
    reminder_scheduler.shutdown_scheduler()


app = FastAPI(
    title="EstateCRM Reminders API",
    description="Employee follow-up reminders with push and in-app notifications",
    version=API_VERSION,
    lifespan=lifespan,
)


# =============================================================================
# MIDDLEWARE
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Tag each request with an id and log its status and duration"""
    request_id = request.headers.get("X-Request-Id") or shortuuid.uuid()
    context = {
        "request_id": request_id,
        "employee_id": request.headers.get("X-Employee-Id"),
    }
    start_time = time.perf_counter()

    response = await call_next(request)

    duration = time.perf_counter() - start_time
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code} ({duration:.3f}s)",
        extra=context,
    )

    response.headers["X-Request-Id"] = request_id
    response.headers["X-Process-Time"] = f"{duration:.3f}"
    return response


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

@app.exception_handler(ReminderError)
async def reminder_exception_handler(request: Request, exc: ReminderError):
    """Map domain errors to their HTTP status"""
    logger.warning(f"{exc.kind} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.kind, "detail": exc.message},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Request body or query did not match the schema"""
    logger.warning(f"Invalid request to {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": "Validation Error", "detail": exc.errors()},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)

    content = {"error": "Internal Server Error", "detail": "An unexpected error occurred"}
    if settings.DEBUG:
        content["detail"] = str(exc)
        content["type"] = type(exc).__name__

    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


# =============================================================================
# ROUTES
# =============================================================================

@app.get("/health", tags=["Health"])
async def health_check() -> Dict[str, Any]:
    """ALB health check with the state of the reminder pipeline"""
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "version": API_VERSION,
        "reminders_enabled": settings.ENABLE_REMINDERS,
        "services": {
            "database": "dynamodb-local" if settings.USE_DYNAMODB_LOCAL else "dynamodb",
            "scheduler": settings.SCHEDULER_PROVIDER,
            "scheduler_running": reminder_scheduler.is_running(),
            "push": settings.PUSH_PROVIDER if settings.ENABLE_PUSH else "disabled",
            "broadcast_clients": len(get_broadcast_channel().active_connections),
        },
    }


@app.get("/", tags=["Root"])
async def root() -> Dict[str, str]:
    return {
        "service": "EstateCRM Reminders API",
        "version": API_VERSION,
        "docs": "/docs",
        "health": "/health",
    }


for router, tag in (
    (reminders.router, "Reminders"),
    (notifications.router, "Notifications"),
    (admin.router, "Admin"),
):
    app.include_router(router, prefix=settings.API_V1_PREFIX, tags=[tag])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "estatecrm.main:app",
        host="0.0.0.0",
        port=8080,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
