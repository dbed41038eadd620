"""Appointment reports, exports and dashboard figures."""

from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import date
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from dental_clinic.core.calendar import clinic_label, clinic_today, slot_display
from dental_clinic.core.exceptions import PersistenceError
from dental_clinic.core.results import Result
from dental_clinic.schemas.appointments import (
    STATUS_LABELS,
    AppointmentResponse,
    AppointmentStatus,
)
from dental_clinic.schemas.reports import (
    AppointmentReport,
    DashboardStats,
    ExportRow,
    ReportFilters,
    ReportStatistics,
    StatusCounts,
    StatusPercentages,
)
from dental_clinic.services.appointment_store import AppointmentStore
from dental_clinic.services.patient_service import PatientService

logger = structlog.get_logger(__name__)

ALL = "all"


def _value(field: Any) -> Any:
    return field.value if hasattr(field, "value") else field


def _get(appointment: Any, name: str) -> Any:
    if isinstance(appointment, dict):
        return appointment.get(name)
    return getattr(appointment, name, None)


def _percentage(count: int, total: int) -> float:
    if total == 0:
        return 0
    return round(count / total * 100, 1)


def aggregate(appointments: Iterable[Any]) -> ReportStatistics:
    """
    Summarize a list of appointments.

    Every status appears in ``by_status`` even with a zero count, while
    ``by_clinic`` only lists clinics that occur in the input.
    """
    records = list(appointments)
    total = len(records)
    statuses = Counter(_value(_get(record, "status")) for record in records)
    clinics = Counter(_get(record, "clinic") for record in records if _get(record, "clinic"))

    counts = StatusCounts(**{status.value: statuses[status.value] for status in AppointmentStatus})
    percentages = StatusPercentages(
        **{status.value: _percentage(statuses[status.value], total) for status in AppointmentStatus}
    )
    return ReportStatistics(
        total=total,
        by_status=counts,
        by_clinic=dict(clinics),
        percentages=percentages,
    )


def filter_appointments(appointments: Iterable[Any], filters: ReportFilters) -> list[Any]:
    """
    Apply report filters.

    Args:
        appointments: Records to filter
        filters: Inclusive date range, status, clinic and free-text search

    Returns:
        Matching records, most recent first
    """
    term = (filters.search_term or "").strip().lower()

    def matches(record: Any) -> bool:
        day = _get(record, "date")
        if filters.start_date and day < filters.start_date:
            return False
        if filters.end_date and day > filters.end_date:
            return False
        if filters.status != ALL and _value(_get(record, "status")) != filters.status:
            return False
        if filters.clinic != ALL and _get(record, "clinic") != filters.clinic:
            return False
        if term:
            haystack = f"{_get(record, 'patient_name') or ''} {_get(record, 'reason') or ''}".lower()
            if term not in haystack:
                return False
        return True

    selected = [record for record in appointments if matches(record)]
    selected.sort(key=lambda record: (_get(record, "date"), _get(record, "time")), reverse=True)
    return selected


def export_rows(appointments: Iterable[Any]) -> list[ExportRow]:
    """Flatten appointments into rows with display labels."""
    return [
        ExportRow(
            date=_get(record, "date"),
            time=slot_display(_get(record, "time")),
            patient=_get(record, "patient_name") or "",
            clinic=clinic_label(_get(record, "clinic")),
            reason=_get(record, "reason") or "",
            status=STATUS_LABELS.get(_value(_get(record, "status")), ""),
            notes=_get(record, "notes") or "",
        )
        for record in appointments
    ]


class ReportService:
    """Service for staff reports and dashboard figures."""

    def __init__(self, db: AsyncSession, store: AppointmentStore | None = None):
        """Initialize service with database session."""
        self.db = db
        self.store = store or AppointmentStore(db)

    async def build_report(self, filters: ReportFilters) -> Result[AppointmentReport]:
        """Filtered appointment list with its statistics."""
        try:
            records = await self.store.query_appointments(
                from_date=filters.start_date,
                to_date=filters.end_date,
            )
        except PersistenceError as e:
            return Result.failure(e)

        selected = filter_appointments(records, filters)
        logger.info(
            "report_generated",
            total=len(selected),
            status=filters.status,
            clinic=filters.clinic,
        )
        return Result.success(
            AppointmentReport(
                filters=filters,
                statistics=aggregate(selected),
                appointments=[AppointmentResponse.model_validate(record) for record in selected],
            )
        )

    async def export(self, filters: ReportFilters) -> Result[list[ExportRow]]:
        report = await self.build_report(filters)
        if not report.ok:
            return Result.failure(report.error)
        return Result.success(export_rows(report.value.appointments))

    async def dashboard_stats(self, today: date | None = None) -> Result[DashboardStats]:
        """
        Headline figures for the staff dashboard.

        Args:
            today: Reference date, defaults to today in clinic time
        """
        today = today or clinic_today()
        try:
            records = await self.store.query_appointments()
        except PersistenceError as e:
            return Result.failure(e)

        statistics = aggregate(records)
        return Result.success(
            DashboardStats(
                total_patients=await PatientService(self.db).count_patients(),
                total_appointments=statistics.total,
                scheduled_appointments=statistics.by_status.scheduled,
                completed_appointments=statistics.by_status.completed,
                cancelled_appointments=statistics.by_status.cancelled,
                missed_appointments=statistics.by_status.missed,
                today_appointments=sum(1 for record in records if record["date"] == today),
            )
        )

    async def todays_schedule(self, today: date | None = None) -> Result[Sequence[AppointmentResponse]]:
        """Scheduled appointments for the day, in slot order."""
        try:
            records = await self.store.query_appointments(
                date=today or clinic_today(),
                status=AppointmentStatus.SCHEDULED,
            )
        except PersistenceError as e:
            return Result.failure(e)
        return Result.success([AppointmentResponse.model_validate(record) for record in records])
