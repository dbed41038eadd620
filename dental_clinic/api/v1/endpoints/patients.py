"""Patient endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from dental_clinic.core.exceptions import ForbiddenException
from dental_clinic.dependencies import Cache, CurrentPrincipal, DatabaseSession, StaffPrincipal
from dental_clinic.schemas.patients import (
    PatientRegister,
    PatientResponse,
    PatientUpdate,
    RegistrationResult,
)
from dental_clinic.services.patient_service import PatientService

router = APIRouter(prefix="/patients", tags=["Patients"])


@router.post(
    "/register",
    response_model=RegistrationResult,
    status_code=status.HTTP_201_CREATED,
    summary="Patient self sign-up",
)
async def register(data: PatientRegister, db: DatabaseSession) -> RegistrationResult:
    """
    Create a login and patient profile for a new patient.

    The response always has ``suppress_auto_login`` set; the client sends the
    patient to the sign-in screen instead of starting a session.
    """
    return (await PatientService(db).register_patient(data)).unwrap()


@router.post(
    "/",
    response_model=RegistrationResult,
    status_code=status.HTTP_201_CREATED,
    summary="Register a patient (staff)",
)
async def register_on_behalf(
    data: PatientRegister,
    principal: StaffPrincipal,
    db: DatabaseSession,
) -> RegistrationResult:
    """Register a patient at the front desk without affecting the staff session."""
    return (await PatientService(db).register_patient(data, acting_staff_id=principal.id)).unwrap()


@router.get(
    "/",
    response_model=list[PatientResponse],
    status_code=status.HTTP_200_OK,
    summary="List patients (staff)",
)
async def list_patients(
    principal: StaffPrincipal,
    db: DatabaseSession,
    search: str | None = Query(None, max_length=200),
) -> list[PatientResponse]:
    return await PatientService(db).list_patients(search)


@router.get(
    "/{patient_id}",
    response_model=PatientResponse,
    status_code=status.HTTP_200_OK,
    summary="Get patient profile",
)
async def get_patient(
    patient_id: UUID,
    principal: CurrentPrincipal,
    db: DatabaseSession,
    cache: Cache,
) -> PatientResponse:
    """
    Get a patient profile.

    Patients may only read their own profile.
    """
    if not principal.is_staff and principal.id != patient_id:
        raise ForbiddenException("Access denied to this patient")
    return (await PatientService(db, cache).get_patient(patient_id)).unwrap()


@router.patch(
    "/{patient_id}",
    response_model=PatientResponse,
    status_code=status.HTTP_200_OK,
    summary="Update patient profile (staff)",
)
async def update_patient(
    patient_id: UUID,
    data: PatientUpdate,
    principal: StaffPrincipal,
    db: DatabaseSession,
    cache: Cache,
) -> PatientResponse:
    return (await PatientService(db, cache).update_patient(patient_id, data)).unwrap()
