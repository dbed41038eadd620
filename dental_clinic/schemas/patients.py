"""Patient schemas."""

import datetime as dt
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class PatientBase(BaseModel):
    """Profile fields shared by create and response schemas."""

    first_names: str = Field(..., min_length=1, max_length=200)
    last_names: str = Field(..., min_length=1, max_length=200)
    birth_date: dt.date | None = None
    dui: str | None = Field(None, max_length=20)
    gender: str | None = Field(None, max_length=20)
    phone: str | None = Field(None, max_length=20)
    address: str | None = Field(None, max_length=500)
    patient_type: str | None = Field(None, max_length=20)


class PatientRegister(PatientBase):
    """Self-service or staff registration with a new login."""

    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)


class PatientUpdate(BaseModel):
    """Partial profile update."""

    first_names: str | None = Field(None, min_length=1, max_length=200)
    last_names: str | None = Field(None, min_length=1, max_length=200)
    birth_date: dt.date | None = None
    dui: str | None = Field(None, max_length=20)
    gender: str | None = Field(None, max_length=20)
    phone: str | None = Field(None, max_length=20)
    address: str | None = Field(None, max_length=500)
    patient_type: str | None = Field(None, max_length=20)
    is_active: bool | None = None


class PatientResponse(PatientBase):
    """Patient profile response."""

    id: UUID
    email: str | None = None
    is_active: bool = True
    created_by: UUID | None = None
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = {"from_attributes": True}

    @property
    def display_name(self) -> str:
        return f"{self.first_names} {self.last_names}".strip()


class RegistrationResult(BaseModel):
    """
    Registration outcome.

    ``suppress_auto_login`` tells the client not to start a session from the
    sign-up response; the patient signs in explicitly afterwards.
    """

    patient: PatientResponse
    suppress_auto_login: bool
