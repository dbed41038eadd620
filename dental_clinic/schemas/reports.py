"""Report and dashboard schemas."""

import datetime as dt

from pydantic import BaseModel, Field

from dental_clinic.schemas.appointments import AppointmentResponse


class ReportFilters(BaseModel):
    """Filters applied before aggregation; ``all`` disables a filter."""

    start_date: dt.date | None = None
    end_date: dt.date | None = None
    status: str = "all"
    clinic: str = "all"
    search_term: str | None = Field(None, max_length=200)


class StatusCounts(BaseModel):
    """Appointment counts per status."""

    scheduled: int = 0
    completed: int = 0
    cancelled: int = 0
    missed: int = 0


class StatusPercentages(BaseModel):
    """Share of each status in percent, one decimal."""

    scheduled: float = 0
    completed: float = 0
    cancelled: float = 0
    missed: float = 0


class ReportStatistics(BaseModel):
    """Aggregate over a filtered appointment list."""

    total: int
    by_status: StatusCounts
    by_clinic: dict[str, int]
    percentages: StatusPercentages


class AppointmentReport(BaseModel):
    """Report payload consumed by the dashboard and export layers."""

    filters: ReportFilters
    statistics: ReportStatistics
    appointments: list[AppointmentResponse]


class ExportRow(BaseModel):
    """One appointment flattened with display labels."""

    date: dt.date
    time: str
    patient: str
    clinic: str
    reason: str
    status: str
    notes: str


class DashboardStats(BaseModel):
    """Staff dashboard KPIs."""

    total_patients: int
    total_appointments: int
    scheduled_appointments: int
    completed_appointments: int
    cancelled_appointments: int
    missed_appointments: int
    today_appointments: int
