"""Appointment persistence over SQLAlchemy Core."""

from collections.abc import Callable
from datetime import date
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dental_clinic.core.change_feed import ChangeCallback, ChangeFeed, appointment_feed
from dental_clinic.core.exceptions import PersistenceError
from dental_clinic.models.appointments import appointments
from dental_clinic.schemas.appointments import AppointmentStatus

logger = structlog.get_logger(__name__)


def _status_value(status: AppointmentStatus | str) -> str:
    return status.value if isinstance(status, AppointmentStatus) else status


class AppointmentStore:
    """
    Read and write appointment records.

    Every failure of the underlying database is re-raised as
    ``PersistenceError`` after rolling the session back, so a write is either
    committed whole or not at all.
    """

    def __init__(self, db: AsyncSession, feed: ChangeFeed | None = None):
        """Initialize store with a database session and change feed."""
        self.db = db
        self.feed = feed or appointment_feed

    async def query_appointments(
        self,
        *,
        patient_id: UUID | None = None,
        date: date | None = None,
        clinic: str | None = None,
        time: str | None = None,
        status: AppointmentStatus | str | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> list[dict[str, Any]]:
        """
        Fetch appointments matching every given filter.

        Returns:
            Records ordered by date and time
        """
        conditions = []
        if patient_id is not None:
            conditions.append(appointments.c.patient_id == patient_id)
        if date is not None:
            conditions.append(appointments.c.date == date)
        if clinic is not None:
            conditions.append(appointments.c.clinic == clinic)
        if time is not None:
            conditions.append(appointments.c.time == time)
        if status is not None:
            conditions.append(appointments.c.status == _status_value(status))
        if from_date is not None:
            conditions.append(appointments.c.date >= from_date)
        if to_date is not None:
            conditions.append(appointments.c.date <= to_date)

        stmt = select(appointments).order_by(appointments.c.date, appointments.c.time)
        if conditions:
            stmt = stmt.where(and_(*conditions))

        try:
            result = await self.db.execute(stmt)
            return [dict(row._mapping) for row in result.fetchall()]
        except SQLAlchemyError as e:
            logger.error("appointment_query_failed", error=str(e))
            raise PersistenceError() from e

    async def count_appointments(self, **filters: Any) -> int:
        return len(await self.query_appointments(**filters))

    async def get_appointment(self, appointment_id: UUID) -> dict[str, Any] | None:
        try:
            result = await self.db.execute(
                select(appointments).where(appointments.c.id == appointment_id)
            )
            row = result.fetchone()
        except SQLAlchemyError as e:
            logger.error("appointment_fetch_failed", appointment_id=str(appointment_id), error=str(e))
            raise PersistenceError() from e
        return dict(row._mapping) if row else None

    async def insert_appointment(self, values: dict[str, Any]) -> dict[str, Any]:
        """Insert a record and return it as stored."""
        stmt = insert(appointments).values(**values).returning(appointments)
        record = await self._write(stmt, "insert")
        if record is None:
            logger.error("appointment_insert_returned_nothing")
            raise PersistenceError()
        await self.feed.publish("inserted", record)
        return record

    async def update_appointment(
        self,
        appointment_id: UUID,
        values: dict[str, Any],
        expected_status: AppointmentStatus | str | None = None,
    ) -> dict[str, Any] | None:
        """
        Apply a partial update.

        Args:
            appointment_id: Appointment ID
            values: Columns to write
            expected_status: When given, the write only happens if the record
                still has this status

        Returns:
            The updated record, or None when no row matched
        """
        condition = appointments.c.id == appointment_id
        if expected_status is not None:
            condition = and_(condition, appointments.c.status == _status_value(expected_status))

        stmt = update(appointments).where(condition).values(**values).returning(appointments)
        record = await self._write(stmt, "update")
        if record is not None:
            await self.feed.publish("updated", record)
        return record

    async def delete_appointment(self, appointment_id: UUID) -> bool:
        stmt = delete(appointments).where(appointments.c.id == appointment_id).returning(appointments)
        record = await self._write(stmt, "delete")
        if record is None:
            return False
        await self.feed.publish("deleted", record)
        return True

    def subscribe(
        self,
        filters: dict[str, Any] | None,
        on_change: ChangeCallback,
    ) -> Callable[[], None]:
        """Register for changes to records matching ``filters``; returns an unsubscribe function."""
        return self.feed.subscribe(filters, on_change)

    async def _write(self, stmt: Any, operation: str) -> dict[str, Any] | None:
        try:
            result = await self.db.execute(stmt)
            row = result.fetchone()
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("appointment_write_failed", operation=operation, error=str(e))
            raise PersistenceError() from e
        return dict(row._mapping) if row else None
