"""Run one expiry sweep, marking overdue scheduled appointments as missed.

Meant for cron when the in-process loop is disabled (SWEEP_INTERVAL_SECONDS=0).
Exits with status 1 when some appointments could not be updated.
"""

import asyncio
import sys

import structlog

from dental_clinic.database import AsyncSessionLocal, engine
from dental_clinic.middleware.logging import configure_logging
from dental_clinic.services.appointment_service import AppointmentService

logger = structlog.get_logger("run_sweep")


async def run_sweep() -> int:
    async with AsyncSessionLocal() as session:
        report = await AppointmentService(session).sweep_expired()
    await engine.dispose()

    for failure in report.failures:
        logger.error(
            "sweep_record_failed",
            appointment_id=str(failure.appointment_id),
            error=failure.error,
        )
    return 1 if report.partial_failure else 0


if __name__ == "__main__":
    configure_logging()
    sys.exit(asyncio.run(run_sweep()))
