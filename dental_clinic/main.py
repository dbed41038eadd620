"""FastAPI application entry point."""

import asyncio
import contextlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from dental_clinic.api.v1.router import api_router
from dental_clinic.config import settings
from dental_clinic.core.exceptions import AppException
from dental_clinic.core.firebase import initialize_firebase
from dental_clinic.core.redis_client import check_redis_connection, close_redis_connection
from dental_clinic.database import AsyncSessionLocal, check_database_connection, engine
from dental_clinic.middleware.error_handler import (
    app_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from dental_clinic.middleware.logging import LoggingMiddleware, configure_logging
from dental_clinic.services.appointment_service import AppointmentService

# Configure logging
configure_logging()
logger = structlog.get_logger()


async def run_expiry_sweep() -> None:
    """Run one expiry sweep on a fresh session."""
    async with AsyncSessionLocal() as session:
        report = await AppointmentService(session).sweep_expired()
    if report.marked_missed or report.failures:
        logger.info(
            "expiry_sweep_run",
            checked=report.checked,
            marked_missed=len(report.marked_missed),
            failures=len(report.failures),
        )


async def expiry_sweep_loop(interval: int) -> None:
    """Sweep forever; an error in one run is logged and the next run goes ahead."""
    while True:
        try:
            await run_expiry_sweep()
        except Exception as e:
            logger.exception("expiry_sweep_crashed", error=str(e))
        await asyncio.sleep(interval)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Checks dependencies on startup and runs the expiry sweep in the
    background while the application is up.
    """
    logger.info("application_startup", environment=settings.environment)

    try:
        initialize_firebase(
            settings.firebase_credentials_path or None,
            settings.firebase_config_json or None,
        )
        logger.info("firebase_initialized")
    except Exception as e:
        logger.warning(
            "firebase_initialization_failed",
            error=str(e),
            note="Sign-in and registration will not work. Set FIREBASE_CREDENTIALS_PATH.",
        )

    if await check_database_connection():
        logger.info("database_connected")
    else:
        logger.error("database_connection_failed")

    if await check_redis_connection():
        logger.info("redis_connected")
    else:
        logger.error("redis_connection_failed", note="Patient profiles will not be cached")

    sweep_task: asyncio.Task | None = None
    if settings.sweep_interval_seconds > 0:
        sweep_task = asyncio.create_task(expiry_sweep_loop(settings.sweep_interval_seconds))
        logger.info("expiry_sweep_started", interval=settings.sweep_interval_seconds)

    yield

    logger.info("application_shutdown")

    if sweep_task is not None:
        sweep_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweep_task
        logger.info("expiry_sweep_stopped")

    await engine.dispose()
    logger.info("database_connections_closed")

    close_redis_connection()
    logger.info("redis_connection_closed")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Appointment booking and tracking for a multi-clinic dental practice",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(LoggingMiddleware)

app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(Exception, general_exception_handler)  # type: ignore[arg-type]

app.include_router(api_router, prefix=settings.api_v1_prefix)

Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    should_instrument_requests_inprogress=True,
    excluded_handlers=["/docs", "/redoc", "/openapi.json", "/metrics"],
    inprogress_name="http_requests_inprogress",
    inprogress_labels=True,
).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
    }


def main() -> None:
    import uvicorn

    uvicorn.run(
        "dental_clinic.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
