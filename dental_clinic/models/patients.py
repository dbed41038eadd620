"""Patient model definition using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    String,
    Table,
    Text,
    Uuid,
    func,
    true,
)

from dental_clinic.models.base import metadata

patients = Table(
    "patients",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Identity provider account (absent for walk-in patients registered by staff)
    Column("firebase_uid", Text, nullable=True, unique=True, index=True),
    Column("email", Text, nullable=True, index=True),
    # Profile
    Column("first_names", Text, nullable=False),
    Column("last_names", Text, nullable=False),
    Column("birth_date", Date),
    Column("dui", String(20)),
    Column("gender", String(20)),
    Column("phone", String(20)),
    Column("address", Text),
    Column("patient_type", String(20)),
    Column("is_active", Boolean, nullable=False, server_default=true()),
    # Staff member who registered the patient, if any
    Column("created_by", Uuid, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)
