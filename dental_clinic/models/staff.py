"""Staff model definition using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    String,
    Table,
    Text,
    Uuid,
    func,
    true,
)

from dental_clinic.models.base import metadata

staff = Table(
    "staff",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("firebase_uid", Text, nullable=False, unique=True, index=True),
    Column("email", Text, nullable=False),
    Column("first_names", Text, nullable=False, server_default=""),
    Column("last_names", Text, nullable=False, server_default=""),
    Column("position", Text),
    Column("phone", String(20)),
    Column("role", String(16), nullable=False, server_default="doctor"),
    Column("is_active", Boolean, nullable=False, server_default=true()),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint("role IN ('doctor', 'admin')", name="staff_role_check"),
)
