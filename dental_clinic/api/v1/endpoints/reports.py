"""Report and dashboard endpoints (staff only)."""

from collections.abc import Sequence
from datetime import date

from fastapi import APIRouter, Depends, status

from dental_clinic.dependencies import DatabaseSession, require_staff
from dental_clinic.schemas.appointments import AppointmentResponse
from dental_clinic.schemas.reports import (
    AppointmentReport,
    DashboardStats,
    ExportRow,
    ReportFilters,
)
from dental_clinic.services.reporting import ReportService

router = APIRouter(prefix="/reports", tags=["Reports"], dependencies=[Depends(require_staff)])


@router.get(
    "/appointments",
    response_model=AppointmentReport,
    status_code=status.HTTP_200_OK,
    summary="Appointment report",
)
async def appointment_report(
    db: DatabaseSession,
    filters: ReportFilters = Depends(),
) -> AppointmentReport:
    """
    Filtered appointments with totals and percentages per status.

    Args:
        db: Database session
        filters: Date range, ``status`` and ``clinic`` (``all`` to skip) and a
            search term matched against patient name and reason

    Returns:
        The report, appointments most recent first
    """
    return (await ReportService(db).build_report(filters)).unwrap()


@router.get(
    "/appointments/export",
    response_model=list[ExportRow],
    status_code=status.HTTP_200_OK,
    summary="Appointment report rows for export",
)
async def export_report(
    db: DatabaseSession,
    filters: ReportFilters = Depends(),
) -> list[ExportRow]:
    """Report rows with display labels, ready for spreadsheet or PDF rendering."""
    return (await ReportService(db).export(filters)).unwrap()


@router.get(
    "/dashboard",
    response_model=DashboardStats,
    status_code=status.HTTP_200_OK,
    summary="Dashboard figures",
)
async def dashboard(db: DatabaseSession, today: date | None = None) -> DashboardStats:
    return (await ReportService(db).dashboard_stats(today)).unwrap()


@router.get(
    "/today",
    response_model=list[AppointmentResponse],
    status_code=status.HTTP_200_OK,
    summary="Today's scheduled appointments",
)
async def todays_schedule(db: DatabaseSession, today: date | None = None) -> Sequence[AppointmentResponse]:
    return (await ReportService(db).todays_schedule(today)).unwrap()
