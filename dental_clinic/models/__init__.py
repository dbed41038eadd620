"""Database models."""

from dental_clinic.models.appointments import appointments
from dental_clinic.models.base import metadata
from dental_clinic.models.notifications import notifications
from dental_clinic.models.patients import patients
from dental_clinic.models.staff import staff

__all__ = [
    "appointments",
    "metadata",
    "notifications",
    "patients",
    "staff",
]
