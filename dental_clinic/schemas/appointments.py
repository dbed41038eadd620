"""Appointment schemas for request/response validation."""

import datetime as dt
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from dental_clinic.core.calendar import normalize_slot_label


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    MISSED = "missed"


STATUS_LABELS: dict[str, str] = {
    AppointmentStatus.SCHEDULED.value: "Programada",
    AppointmentStatus.COMPLETED.value: "Terminada",
    AppointmentStatus.CANCELLED.value: "Cancelada",
    AppointmentStatus.MISSED.value: "Perdida",
}


class BookingMode(str, Enum):
    """Whether a booking is new or an edit of an existing appointment."""

    CREATE = "create"
    EDIT = "edit"


def normalize_time_field(value: str | None) -> str | None:
    """Canonicalize a slot label, leaving unknown labels for the validator to report."""
    if value is None:
        return None
    return normalize_slot_label(value) or value


class AppointmentCreate(BaseModel):
    """
    Schema for creating a new appointment.

    Fields are optional at the schema level so that missing values come back
    as booking violations rather than request-shape errors.
    """

    date: dt.date | None = None
    time: str | None = Field(None, max_length=16)
    clinic: str | None = Field(None, max_length=32)
    reason: str | None = Field(None, max_length=500)
    notes: str | None = Field(None, max_length=1000)

    @field_validator("time")
    @classmethod
    def normalize_time(cls, v: str | None) -> str | None:
        """Accept both ``14:00`` and ``2:00 PM``."""
        return normalize_time_field(v)


class StaffAppointmentCreate(AppointmentCreate):
    """Schema for staff booking on behalf of a patient."""

    patient_id: UUID
    doctor_notes: str | None = Field(None, max_length=2000)


class AppointmentUpdate(BaseModel):
    """Schema for editing an existing appointment."""

    date: dt.date | None = None
    time: str | None = Field(None, max_length=16)
    clinic: str | None = Field(None, max_length=32)
    reason: str | None = Field(None, min_length=1, max_length=500)
    notes: str | None = Field(None, max_length=1000)
    doctor_notes: str | None = Field(None, max_length=2000)

    @field_validator("time")
    @classmethod
    def normalize_time(cls, v: str | None) -> str | None:
        return normalize_time_field(v)


class AppointmentStatusUpdate(BaseModel):
    """Schema for a staff status override."""

    status: AppointmentStatus


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    patient_id: UUID
    patient_name: str
    date: dt.date
    time: str
    clinic: str
    reason: str
    notes: str | None = None
    doctor_notes: str | None = None
    status: AppointmentStatus
    created_by: UUID | None = None
    created_by_staff: bool = False
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = {"from_attributes": True}


class AppointmentListResponse(BaseModel):
    """Schema for appointment list response."""

    total: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    patient_id: UUID | None = None
    status: AppointmentStatus | None = None
    clinic: str | None = None
    date: dt.date | None = None
    from_date: dt.date | None = None
    to_date: dt.date | None = None


class SlotOption(BaseModel):
    """One offered time slot."""

    time: str
    label: str


class SlotAvailability(BaseModel):
    """
    Result of a slot lookup.

    ``filtered`` is False when the full slot list was returned without
    checking occupancy (missing input or a failed read); ``error`` then
    carries a user-facing message for the failed read.
    """

    slots: list[str]
    filtered: bool = True
    error: str | None = None


class AvailabilityResponse(BaseModel):
    """Availability endpoint response."""

    date: dt.date | None
    clinic: str | None
    slots: list[SlotOption]
    filtered: bool
    error: str | None = None


class BookingValidationRequest(BaseModel):
    """Pre-submission check of a booking."""

    patient_id: UUID | None = None
    date: dt.date | None = None
    time: str | None = Field(None, max_length=16)
    clinic: str | None = Field(None, max_length=32)
    reason: str | None = Field(None, max_length=500)
    mode: BookingMode = BookingMode.CREATE
    exclude_appointment_id: UUID | None = None
    keep_time: str | None = Field(None, max_length=16)

    @field_validator("time", "keep_time")
    @classmethod
    def normalize_time(cls, v: str | None) -> str | None:
        return normalize_time_field(v)


class BookingValidation(BaseModel):
    """
    Outcome of the booking rules.

    ``conflict`` marks a rejection by the patient limits or slot capacity,
    which callers resolve by picking another date or slot.
    """

    ok: bool
    violations: dict[str, str] = Field(default_factory=dict)
    conflict: bool = False


class SweepFailure(BaseModel):
    """An appointment the expiry sweep could not transition."""

    appointment_id: UUID
    error: str


class SweepReport(BaseModel):
    """Summary of one expiry sweep."""

    checked: int = 0
    marked_missed: list[UUID] = Field(default_factory=list)
    failures: list[SweepFailure] = Field(default_factory=list)
    ran_at: dt.datetime

    @property
    def partial_failure(self) -> bool:
        return bool(self.failures)
