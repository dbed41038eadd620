"""Appointments table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    Uuid,
    false,
    func,
)

from dental_clinic.models.base import metadata

appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Ownership
    Column(
        "patient_id",
        Uuid,
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
    ),
    # Snapshot of the patient's display name at booking time (not kept in sync)
    Column("patient_name", Text, nullable=False, server_default=""),
    # Slot
    Column("date", Date, nullable=False),
    Column("time", String(5), nullable=False),
    Column("clinic", String(32), nullable=False),
    # Visit details
    Column("reason", Text, nullable=False),
    Column("notes", Text, nullable=True),
    Column("doctor_notes", Text, nullable=True),
    # Status management
    Column("status", String(16), nullable=False, server_default="scheduled"),
    # Provenance when staff books on behalf of a patient
    Column("created_by", Uuid, nullable=True),
    Column("created_by_staff", Boolean, nullable=False, server_default=false()),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint(
        "status IN ('scheduled', 'completed', 'cancelled', 'missed')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "clinic IN ('santa-tecla', 'soyapango', 'san-martin', 'escalon', 'usulutan')",
        name="appointments_clinic_check",
    ),
    Index("idx_appointments_slot", "date", "clinic", "status"),
    Index("idx_appointments_patient_status", "patient_id", "status"),
)
