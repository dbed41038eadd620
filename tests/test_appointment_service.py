"""Tests for the appointment lifecycle service."""

from datetime import date, datetime, timedelta
from unittest.mock import AsyncMock
from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import make_appointment, make_patient
from dental_clinic.core.exceptions import (
    ConstraintConflictException,
    ForbiddenException,
    NotFoundException,
    PersistenceError,
    ValidationException,
)
from dental_clinic.models import appointments, notifications
from dental_clinic.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentStatus,
    AppointmentUpdate,
)
from dental_clinic.schemas.patients import PatientUpdate
from dental_clinic.services.appointment_service import AppointmentService, is_overdue
from dental_clinic.services.patient_service import PatientService

TZ = ZoneInfo("America/El_Salvador")
TODAY = date(2025, 3, 1)
MONDAY = date(2025, 3, 10)


@pytest.fixture
def service(db_session: AsyncSession) -> AppointmentService:
    return AppointmentService(db_session)


async def _status(db: AsyncSession, appointment_id) -> str:
    result = await db.execute(select(appointments.c.status).where(appointments.c.id == appointment_id))
    return result.scalar_one()


def _booking(**overrides) -> AppointmentCreate:
    return AppointmentCreate(
        **{
            "date": MONDAY,
            "time": "2:00 PM",
            "clinic": "santa-tecla",
            "reason": "Dolor de muelas",
            **overrides,
        }
    )


# Booking


async def test_book_creates_scheduled_appointment(service, test_patient) -> None:
    result = await service.book(test_patient["id"], _booking(), today=TODAY)

    appointment = result.unwrap()
    assert appointment.status == AppointmentStatus.SCHEDULED
    assert appointment.time == "14:00"
    assert appointment.patient_name == "Ana María López"
    assert appointment.created_by_staff is False
    assert appointment.created_at == appointment.updated_at


async def test_book_by_staff_records_provenance(service, test_patient, test_doctor) -> None:
    result = await service.book(
        test_patient["id"],
        _booking(),
        acting_staff_id=test_doctor["id"],
        doctor_notes="Sensibilidad al frío",
        today=TODAY,
    )

    appointment = result.unwrap()
    assert appointment.created_by == test_doctor["id"]
    assert appointment.created_by_staff is True
    assert appointment.doctor_notes == "Sensibilidad al frío"


async def test_book_field_violations_are_validation_errors(service, test_patient) -> None:
    result = await service.book(test_patient["id"], _booking(reason=None), today=TODAY)

    assert isinstance(result.error, ValidationException)
    assert "reason" in result.error.violations


async def test_book_limit_violations_are_conflicts(service, db_session, test_patient) -> None:
    await make_appointment(db_session, test_patient, MONDAY, time="08:00")

    result = await service.book(test_patient["id"], _booking(), today=TODAY)

    assert isinstance(result.error, ConstraintConflictException)
    assert result.error.status_code == 409
    assert "date" in result.error.violations


async def test_book_unknown_patient(service) -> None:
    result = await service.book(uuid4(), _booking(), today=TODAY)
    assert isinstance(result.error, NotFoundException)


async def test_book_notifies_patient(service, db_session, test_patient) -> None:
    await service.book(test_patient["id"], _booking(), today=TODAY)

    rows = (await db_session.execute(select(notifications))).fetchall()
    assert len(rows) == 1
    assert rows[0].user_id == test_patient["id"]
    assert rows[0].title == "Appointment booked"


async def test_patient_rename_keeps_name_snapshot(
    service, db_session, test_patient, patient_principal
) -> None:
    booked = (await service.book(test_patient["id"], _booking(), today=TODAY)).unwrap()

    renamed = await PatientService(db_session).update_patient(
        test_patient["id"], PatientUpdate(first_names="Ana Sofía")
    )
    assert renamed.ok

    assert renamed.value.display_name == "Ana Sofía López"
    assert (await service.get(booked.id, patient_principal)).unwrap().patient_name == "Ana María López"


# Editing


async def test_reschedule_to_full_slot_is_conflict(
    service, db_session, test_patient, patient_principal
) -> None:
    appointment = await make_appointment(db_session, test_patient, MONDAY, time="08:00")
    for name in ("Carlos", "Rosa"):
        other = await make_patient(db_session, first_names=name, last_names="Pérez")
        await make_appointment(db_session, other, MONDAY, time="10:00")

    result = await service.reschedule(
        appointment["id"], AppointmentUpdate(time="10:00 AM"), patient_principal, today=TODAY
    )

    assert isinstance(result.error, ConstraintConflictException)
    assert result.error.violations == {"time": "This time is fully booked at the selected clinic; please choose another time"}


async def test_reschedule_within_same_day_ignores_own_appointment(
    service, db_session, test_patient, patient_principal
) -> None:
    appointment = await make_appointment(db_session, test_patient, MONDAY, time="08:00")

    result = await service.reschedule(
        appointment["id"], AppointmentUpdate(time="11:00"), patient_principal, today=TODAY
    )

    assert result.unwrap().time == "11:00"


async def test_reschedule_keeps_own_full_slot_when_changing_reason(
    service, db_session, test_patient, patient_principal
) -> None:
    other = await make_patient(db_session, first_names="Rosa", last_names="Pérez")
    await make_appointment(db_session, other, MONDAY, time="14:00")
    appointment = await make_appointment(db_session, test_patient, MONDAY, time="14:00")

    result = await service.reschedule(
        appointment["id"],
        AppointmentUpdate(time="14:00", reason="Ortodoncia"),
        patient_principal,
        today=TODAY,
    )

    assert result.unwrap().reason == "Ortodoncia"


async def test_reschedule_notes_only_skips_booking_rules(
    service, db_session, test_patient, patient_principal
) -> None:
    # A date in the past would fail validation if it were re-checked
    appointment = await make_appointment(db_session, test_patient, date(2025, 2, 20))

    result = await service.reschedule(
        appointment["id"], AppointmentUpdate(notes="Llegaré 10 minutos antes"), patient_principal, today=TODAY
    )

    assert result.unwrap().notes == "Llegaré 10 minutos antes"


@pytest.mark.parametrize("reason", [None, "   "])
async def test_reschedule_rejects_blank_reason(
    service, db_session, test_patient, patient_principal, reason
) -> None:
    appointment = await make_appointment(db_session, test_patient, MONDAY)

    result = await service.reschedule(
        appointment["id"], AppointmentUpdate(reason=reason), patient_principal, today=TODAY
    )

    assert isinstance(result.error, ValidationException)
    assert list(result.error.violations) == ["reason"]
    stored = (await db_session.execute(select(appointments).where(appointments.c.id == appointment["id"]))).one()
    assert stored.reason == "Limpieza dental"


async def test_patient_cannot_edit_others_appointment(
    service, db_session, other_patient, patient_principal
) -> None:
    appointment = await make_appointment(db_session, other_patient, MONDAY)

    result = await service.reschedule(appointment["id"], AppointmentUpdate(notes="x"), patient_principal)

    assert isinstance(result.error, ForbiddenException)


async def test_patient_cannot_edit_finished_appointment(
    service, db_session, test_patient, patient_principal
) -> None:
    appointment = await make_appointment(db_session, test_patient, MONDAY, status="completed")

    result = await service.update(appointment["id"], {"notes": "x"}, patient_principal)

    assert isinstance(result.error, ConstraintConflictException)


async def test_patient_cannot_write_doctor_notes(
    service, db_session, test_patient, patient_principal
) -> None:
    appointment = await make_appointment(db_session, test_patient, MONDAY)

    result = await service.update(appointment["id"], {"doctor_notes": "x"}, patient_principal)

    assert isinstance(result.error, ForbiddenException)


async def test_staff_can_edit_any_status(service, db_session, test_patient, doctor_principal) -> None:
    appointment = await make_appointment(db_session, test_patient, MONDAY, status="completed")

    result = await service.update(appointment["id"], {"doctor_notes": "Sin caries"}, doctor_principal)

    updated = result.unwrap()
    assert updated.doctor_notes == "Sin caries"
    assert updated.updated_at >= updated.created_at


# Status transitions


async def test_cancel_scheduled_appointment(service, db_session, test_patient, patient_principal) -> None:
    appointment = await make_appointment(db_session, test_patient, MONDAY)

    result = await service.cancel(appointment["id"], patient_principal)

    assert result.unwrap().status == AppointmentStatus.CANCELLED
    assert await _status(db_session, appointment["id"]) == "cancelled"


async def test_cancel_requires_scheduled(service, db_session, test_patient, patient_principal) -> None:
    appointment = await make_appointment(db_session, test_patient, MONDAY, status="missed")

    result = await service.cancel(appointment["id"], patient_principal)

    assert isinstance(result.error, ConstraintConflictException)
    assert await _status(db_session, appointment["id"]) == "missed"


async def test_staff_status_override_is_unconditional(service, db_session, test_patient) -> None:
    appointment = await make_appointment(db_session, test_patient, MONDAY, status="missed")

    result = await service.set_status(appointment["id"], AppointmentStatus.COMPLETED)

    assert result.unwrap().status == AppointmentStatus.COMPLETED


async def test_complete(service, db_session, test_patient) -> None:
    appointment = await make_appointment(db_session, test_patient, MONDAY)

    assert (await service.complete(appointment["id"])).unwrap().status == AppointmentStatus.COMPLETED


async def test_delete(service, db_session, test_patient) -> None:
    appointment = await make_appointment(db_session, test_patient, MONDAY)

    assert (await service.delete(appointment["id"])).ok
    assert isinstance((await service.delete(appointment["id"])).error, NotFoundException)


# Reads


async def test_patient_lists_only_own_appointments_soonest_first(
    service, db_session, test_patient, other_patient, patient_principal
) -> None:
    await make_appointment(db_session, test_patient, date(2025, 3, 20), doctor_notes="privado")
    await make_appointment(db_session, test_patient, date(2025, 3, 12))
    await make_appointment(db_session, other_patient, date(2025, 3, 11))

    listing = (await service.list(patient_principal, AppointmentFilters(patient_id=other_patient["id"]))).unwrap()

    assert listing.total == 2
    assert [item.date for item in listing.items] == [date(2025, 3, 12), date(2025, 3, 20)]
    assert all(item.doctor_notes is None for item in listing.items)


async def test_staff_lists_everything_most_recent_first(
    service, db_session, test_patient, other_patient, doctor_principal
) -> None:
    await make_appointment(db_session, test_patient, date(2025, 3, 12), doctor_notes="visible")
    await make_appointment(db_session, other_patient, date(2025, 3, 20))

    listing = (await service.list(doctor_principal, AppointmentFilters())).unwrap()

    assert [item.date for item in listing.items] == [date(2025, 3, 20), date(2025, 3, 12)]
    assert listing.items[1].doctor_notes == "visible"


# Expiry


def test_is_overdue_boundary() -> None:
    appointment = {"date": MONDAY, "time": "14:00"}
    boundary = datetime(2025, 3, 10, 16, 0, tzinfo=TZ)

    assert not is_overdue(appointment, boundary - timedelta(seconds=1), TZ)
    assert not is_overdue(appointment, boundary, TZ)
    assert is_overdue(appointment, boundary + timedelta(seconds=1), TZ)


def test_is_overdue_treats_naive_now_as_clinic_time() -> None:
    appointment = {"date": MONDAY, "time": "14:00"}
    assert is_overdue(appointment, datetime(2025, 3, 10, 16, 0, 1), TZ)
    assert not is_overdue(appointment, datetime(2025, 3, 10, 15, 59, 59), TZ)


def test_is_overdue_compares_across_timezones() -> None:
    appointment = {"date": MONDAY, "time": "14:00"}
    # 22:00 UTC is 16:00 in El Salvador
    assert not is_overdue(appointment, datetime(2025, 3, 10, 22, 0, tzinfo=ZoneInfo("UTC")), TZ)
    assert is_overdue(appointment, datetime(2025, 3, 10, 22, 0, 1, tzinfo=ZoneInfo("UTC")), TZ)


async def test_sweep_marks_only_overdue_scheduled(service, db_session, test_patient, other_patient) -> None:
    overdue = await make_appointment(db_session, test_patient, MONDAY, time="08:00")
    upcoming = await make_appointment(db_session, other_patient, MONDAY, time="14:00")
    done = await make_appointment(db_session, other_patient, date(2025, 3, 3), status="completed")

    report = await service.sweep_expired(datetime(2025, 3, 10, 12, 0, tzinfo=TZ))

    assert report.checked == 2
    assert report.marked_missed == [overdue["id"]]
    assert not report.partial_failure
    assert await _status(db_session, overdue["id"]) == "missed"
    assert await _status(db_session, upcoming["id"]) == "scheduled"
    assert await _status(db_session, done["id"]) == "completed"


async def test_sweep_is_idempotent(service, db_session, test_patient) -> None:
    await make_appointment(db_session, test_patient, MONDAY, time="08:00")
    now = datetime(2025, 3, 11, 9, 0, tzinfo=TZ)

    first = await service.sweep_expired(now)
    second = await service.sweep_expired(now)

    assert len(first.marked_missed) == 1
    assert second.checked == 0
    assert second.marked_missed == []


async def test_sweep_does_not_overwrite_concurrent_cancellation(
    service, db_session, test_patient
) -> None:
    appointment = await make_appointment(db_session, test_patient, MONDAY, time="08:00")
    stale = await service.store.query_appointments(status=AppointmentStatus.SCHEDULED)
    await service.store.update_appointment(appointment["id"], {"status": "cancelled"})
    service.store.query_appointments = AsyncMock(return_value=stale)

    report = await service.sweep_expired(datetime(2025, 3, 11, 9, 0, tzinfo=TZ))

    assert report.marked_missed == []
    assert report.failures == []
    assert await _status(db_session, appointment["id"]) == "cancelled"


async def test_sweep_continues_past_failed_records(
    service, db_session, test_patient, other_patient
) -> None:
    broken = await make_appointment(db_session, test_patient, MONDAY, time="08:00")
    healthy = await make_appointment(db_session, other_patient, MONDAY, time="09:00")
    real_update = service.store.update_appointment

    async def flaky_update(appointment_id, values, expected_status=None):
        if appointment_id == broken["id"]:
            raise PersistenceError()
        return await real_update(appointment_id, values, expected_status=expected_status)

    service.store.update_appointment = flaky_update

    report = await service.sweep_expired(datetime(2025, 3, 11, 9, 0, tzinfo=TZ))

    assert report.partial_failure
    assert [failure.appointment_id for failure in report.failures] == [broken["id"]]
    assert report.marked_missed == [healthy["id"]]
    assert await _status(db_session, broken["id"]) == "scheduled"


async def test_sweep_read_failure_returns_empty_report(service) -> None:
    service.store.query_appointments = AsyncMock(side_effect=PersistenceError())

    report = await service.sweep_expired(datetime(2025, 3, 11, 9, 0, tzinfo=TZ))

    assert report.checked == 0
    assert report.marked_missed == []
