"""Initial schema - patients, staff, appointments and notifications.

Revision ID: 001
Revises:
Create Date: 2025-03-01 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Upgrade database schema."""
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    op.create_table(
        "patients",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("firebase_uid", sa.Text(), nullable=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("first_names", sa.Text(), nullable=False),
        sa.Column("last_names", sa.Text(), nullable=False),
        sa.Column("birth_date", sa.Date(), nullable=True),
        sa.Column("dui", sa.VARCHAR(length=20), nullable=True),
        sa.Column("gender", sa.VARCHAR(length=20), nullable=True),
        sa.Column("phone", sa.VARCHAR(length=20), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("patient_type", sa.VARCHAR(length=20), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("created_by", postgresql.UUID(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("firebase_uid"),
    )
    op.create_index("ix_patients_firebase_uid", "patients", ["firebase_uid"])
    op.create_index("ix_patients_email", "patients", ["email"])

    op.create_table(
        "staff",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("firebase_uid", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("first_names", sa.Text(), server_default="", nullable=False),
        sa.Column("last_names", sa.Text(), server_default="", nullable=False),
        sa.Column("position", sa.Text(), nullable=True),
        sa.Column("phone", sa.VARCHAR(length=20), nullable=True),
        sa.Column("role", sa.VARCHAR(length=16), server_default="doctor", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("role IN ('doctor', 'admin')", name="staff_role_check"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("firebase_uid"),
    )
    op.create_index("ix_staff_firebase_uid", "staff", ["firebase_uid"])

    op.create_table(
        "appointments",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("patient_id", postgresql.UUID(), nullable=False),
        sa.Column("patient_name", sa.Text(), server_default="", nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.VARCHAR(length=5), nullable=False),
        sa.Column("clinic", sa.VARCHAR(length=32), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("doctor_notes", sa.Text(), nullable=True),
        sa.Column("status", sa.VARCHAR(length=16), server_default="scheduled", nullable=False),
        sa.Column("created_by", postgresql.UUID(), nullable=True),
        sa.Column("created_by_staff", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('scheduled', 'completed', 'cancelled', 'missed')",
            name="appointments_status_check",
        ),
        sa.CheckConstraint(
            "clinic IN ('santa-tecla', 'soyapango', 'san-martin', 'escalon', 'usulutan')",
            name="appointments_clinic_check",
        ),
        sa.ForeignKeyConstraint(["patient_id"], ["patients.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_appointments_slot", "appointments", ["date", "clinic", "status"])
    op.create_index("idx_appointments_patient_status", "appointments", ["patient_id", "status"])

    op.create_table(
        "notifications",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("user_id", postgresql.UUID(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", sa.VARCHAR(length=16), server_default="info", nullable=False),
        sa.Column("link", sa.Text(), nullable=True),
        sa.Column("read", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.CheckConstraint(
            "type IN ('info', 'success', 'warning', 'error')",
            name="notifications_type_check",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_notifications_user_read", "notifications", ["user_id", "read"])


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index("idx_notifications_user_read", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("idx_appointments_patient_status", table_name="appointments")
    op.drop_index("idx_appointments_slot", table_name="appointments")
    op.drop_table("appointments")

    op.drop_index("ix_staff_firebase_uid", table_name="staff")
    op.drop_table("staff")

    op.drop_index("ix_patients_email", table_name="patients")
    op.drop_index("ix_patients_firebase_uid", table_name="patients")
    op.drop_table("patients")
