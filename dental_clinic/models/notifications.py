"""In-app notification records."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    String,
    Table,
    Text,
    Uuid,
    false,
    func,
)

from dental_clinic.models.base import metadata

notifications = Table(
    "notifications",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Patient or staff id; no foreign key because either table may own it
    Column("user_id", Uuid, nullable=False),
    Column("title", Text, nullable=False),
    Column("message", Text, nullable=False),
    Column("type", String(16), nullable=False, server_default="info"),
    Column("link", Text, nullable=True),
    Column("read", Boolean, nullable=False, server_default=false()),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint(
        "type IN ('info', 'success', 'warning', 'error')",
        name="notifications_type_check",
    ),
    Index("idx_notifications_user_read", "user_id", "read"),
)
