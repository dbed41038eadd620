"""Appointment endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, Response, status

from dental_clinic.core.calendar import VISIT_REASONS, normalize_slot_label, slot_display
from dental_clinic.core.exceptions import ValidationException
from dental_clinic.dependencies import (
    AdminPrincipal,
    Cache,
    CurrentPrincipal,
    DatabaseSession,
    StaffPrincipal,
)
from dental_clinic.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentStatusUpdate,
    AppointmentUpdate,
    AvailabilityResponse,
    BookingValidation,
    BookingValidationRequest,
    SlotOption,
    StaffAppointmentCreate,
    SweepReport,
)
from dental_clinic.services.appointment_service import AppointmentService
from dental_clinic.services.appointment_store import AppointmentStore
from dental_clinic.services.booking_validator import BookingValidator
from dental_clinic.services.slot_service import SlotService

router = APIRouter()


@router.get(
    "/availability",
    response_model=AvailabilityResponse,
    status_code=status.HTTP_200_OK,
    summary="Open time slots",
)
async def availability(
    principal: CurrentPrincipal,
    db: DatabaseSession,
    day: date | None = Query(None, alias="date"),
    clinic: str | None = Query(None),
    keep_time: str | None = Query(None),
) -> AvailabilityResponse:
    """
    Slots that still accept bookings at a clinic on a date.

    Args:
        principal: Authenticated caller
        db: Database session
        day: Requested date
        clinic: Clinic identifier
        keep_time: Slot held by the appointment being edited, always offered

    Returns:
        Slots in the clinic's order; ``filtered`` is false when occupancy was
        not checked and ``error`` explains a failed lookup
    """
    result = await SlotService(AppointmentStore(db)).resolve_available_slots(
        day, clinic, normalize_slot_label(keep_time) or keep_time
    )
    return AvailabilityResponse(
        date=day,
        clinic=clinic,
        slots=[SlotOption(time=slot, label=slot_display(slot)) for slot in result.slots],
        filtered=result.filtered,
        error=result.error,
    )


@router.get(
    "/reasons",
    response_model=list[str],
    status_code=status.HTTP_200_OK,
    summary="Visit reasons offered when booking",
)
async def visit_reasons(principal: CurrentPrincipal) -> list[str]:
    """Reasons in the order the booking form lists them."""
    return list(VISIT_REASONS)


@router.post(
    "/validate",
    response_model=BookingValidation,
    status_code=status.HTTP_200_OK,
    summary="Check a booking before submitting it",
)
async def validate(
    data: BookingValidationRequest,
    principal: CurrentPrincipal,
    db: DatabaseSession,
) -> BookingValidation:
    """
    Run the booking rules without writing anything.

    Always answers 200; an unavailable store is reported as a ``general``
    violation rather than a pass.
    """
    patient_id = data.patient_id if principal.is_staff else principal.id
    if patient_id is None:
        raise ValidationException({"patient_id": "Please select a patient"})

    result = await BookingValidator(AppointmentStore(db)).validate_booking(
        patient_id=patient_id,
        day=data.date,
        time=data.time,
        clinic=data.clinic,
        reason=data.reason,
        mode=data.mode,
        exclude_appointment_id=data.exclude_appointment_id,
        keep_time=data.keep_time,
    )
    if not result.ok:
        return BookingValidation(ok=False, violations={"general": result.error.message})
    return result.value


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book an appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    principal: CurrentPrincipal,
    db: DatabaseSession,
    cache: Cache,
) -> AppointmentResponse:
    """
    Book an appointment for the authenticated patient.

    Raises:
        ValidationException: Missing or invalid fields (422)
        ConstraintConflictException: Patient limits or slot capacity (409)
    """
    if principal.is_staff:
        raise ValidationException(
            {"patient_id": "Staff must book through /appointments/staff"},
            message="Patient required",
        )
    result = await AppointmentService(db, cache).book(principal.id, data)
    return result.unwrap()


@router.post(
    "/staff",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book an appointment on behalf of a patient",
)
async def create_appointment_for_patient(
    data: StaffAppointmentCreate,
    principal: StaffPrincipal,
    db: DatabaseSession,
    cache: Cache,
) -> AppointmentResponse:
    """Book for a patient; the appointment records the booking staff member."""
    result = await AppointmentService(db, cache).book(
        data.patient_id,
        AppointmentCreate(**data.model_dump(include=set(AppointmentCreate.model_fields))),
        acting_staff_id=principal.id,
        doctor_notes=data.doctor_notes,
    )
    return result.unwrap()


@router.post(
    "/sweep",
    response_model=SweepReport,
    status_code=status.HTTP_200_OK,
    summary="Mark overdue appointments as missed",
)
async def run_sweep(principal: StaffPrincipal, db: DatabaseSession) -> SweepReport:
    return await AppointmentService(db).sweep_expired()


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List appointments",
)
async def list_appointments(
    principal: CurrentPrincipal,
    db: DatabaseSession,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    patient_id: UUID | None = Query(None),
    clinic: str | None = Query(None),
    day: date | None = Query(None, alias="date"),
    from_date: date | None = Query(None),
    to_date: date | None = Query(None),
) -> AppointmentListResponse:
    """
    List appointments.

    Patients get their own appointments soonest first and ``patient_id`` is
    ignored; staff get every matching appointment, most recent first.
    """
    filters = AppointmentFilters(
        patient_id=patient_id,
        status=status_filter,
        clinic=clinic,
        date=day,
        from_date=from_date,
        to_date=to_date,
    )
    return (await AppointmentService(db).list(principal, filters)).unwrap()


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    principal: CurrentPrincipal,
    db: DatabaseSession,
) -> AppointmentResponse:
    return (await AppointmentService(db).get(appointment_id, principal)).unwrap()


@router.put(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Edit or reschedule an appointment",
)
async def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    principal: CurrentPrincipal,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Edit an appointment.

    Changing the date, time or clinic re-runs the booking rules; the
    appointment's own slot and date do not count against it.

    Raises:
        ForbiddenException: Patient editing another patient's appointment or doctor notes
        ConstraintConflictException: Not scheduled (patients) or the new slot is taken
    """
    return (await AppointmentService(db).reschedule(appointment_id, data, principal)).unwrap()


@router.post(
    "/{appointment_id}/cancel",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Cancel an appointment",
)
async def cancel_appointment(
    appointment_id: UUID,
    principal: CurrentPrincipal,
    db: DatabaseSession,
) -> AppointmentResponse:
    return (await AppointmentService(db).cancel(appointment_id, principal)).unwrap()


@router.post(
    "/{appointment_id}/complete",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark an appointment as attended (staff)",
)
async def complete_appointment(
    appointment_id: UUID,
    principal: StaffPrincipal,
    db: DatabaseSession,
) -> AppointmentResponse:
    return (await AppointmentService(db).complete(appointment_id)).unwrap()


@router.patch(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Set appointment status (staff)",
)
async def update_appointment_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    principal: StaffPrincipal,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Staff override; any status may be set from any status."""
    return (await AppointmentService(db).set_status(appointment_id, data.status)).unwrap()


@router.delete(
    "/{appointment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete appointment (admin)",
)
async def delete_appointment(
    appointment_id: UUID,
    principal: AdminPrincipal,
    db: DatabaseSession,
) -> Response:
    (await AppointmentService(db).delete(appointment_id)).unwrap()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
