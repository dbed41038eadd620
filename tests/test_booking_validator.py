"""Tests for the booking rules."""

from datetime import date
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import make_appointment, make_patient
from dental_clinic.core.exceptions import PersistenceError
from dental_clinic.schemas.appointments import BookingMode
from dental_clinic.services.appointment_store import AppointmentStore
from dental_clinic.services.booking_validator import MESSAGES, BookingValidator

TODAY = date(2025, 3, 1)
MONDAY = date(2025, 3, 10)


@pytest.fixture
def validator(db_session: AsyncSession) -> BookingValidator:
    return BookingValidator(AppointmentStore(db_session))


async def _validate(validator: BookingValidator, patient: dict, **overrides):
    request = {
        "patient_id": patient["id"],
        "day": MONDAY,
        "time": "14:00",
        "clinic": "santa-tecla",
        "reason": "Dolor de muelas",
        "today": TODAY,
        **overrides,
    }
    result = await validator.validate_booking(**request)
    assert result.ok
    return result.value


async def test_valid_booking_passes(validator, test_patient) -> None:
    outcome = await _validate(validator, test_patient)
    assert outcome.ok
    assert outcome.violations == {}


async def test_missing_fields_are_all_reported(validator, test_patient) -> None:
    outcome = await _validate(validator, test_patient, day=None, time=None, clinic=None, reason="  ")

    assert not outcome.ok
    assert not outcome.conflict
    assert set(outcome.violations) == {"reason", "clinic", "date", "time"}


async def test_unknown_clinic_and_slot_are_field_violations(validator, test_patient) -> None:
    outcome = await _validate(validator, test_patient, clinic="san-salvador", time="12:00")

    assert outcome.violations == {
        "clinic": MESSAGES["clinic_invalid"],
        "time": MESSAGES["time_invalid"],
    }


@pytest.mark.parametrize(
    ("day", "message"),
    [
        (date(2025, 2, 27), "The date cannot be in the past"),
        (TODAY, "Appointments cannot be booked for today"),
        (date(2025, 3, 9), "Appointments cannot be booked on Sundays"),
    ],
)
async def test_date_problems_have_distinct_messages(validator, test_patient, day, message) -> None:
    outcome = await _validate(validator, test_patient, day=day)
    assert outcome.violations == {"date": message}


async def test_ceiling_counts_scheduled_on_any_date_and_clinic(validator, db_session, test_patient) -> None:
    await make_appointment(db_session, test_patient, date(2025, 3, 4), clinic="soyapango")
    await make_appointment(db_session, test_patient, date(2025, 3, 20), clinic="usulutan")

    outcome = await _validate(validator, test_patient)

    assert not outcome.ok
    assert outcome.conflict
    assert list(outcome.violations) == ["general"]


async def test_ceiling_ignores_finished_appointments(validator, db_session, test_patient) -> None:
    await make_appointment(db_session, test_patient, date(2025, 2, 3), status="completed")
    await make_appointment(db_session, test_patient, date(2025, 2, 4), status="missed")
    await make_appointment(db_session, test_patient, date(2025, 3, 20), status="cancelled")

    outcome = await _validate(validator, test_patient)
    assert outcome.ok


async def test_ceiling_not_applied_when_editing(validator, db_session, test_patient) -> None:
    await make_appointment(db_session, test_patient, date(2025, 3, 4))
    edited = await make_appointment(db_session, test_patient, date(2025, 3, 20))

    outcome = await _validate(
        validator,
        test_patient,
        mode=BookingMode.EDIT,
        exclude_appointment_id=edited["id"],
    )
    assert outcome.ok


async def test_one_appointment_per_day(validator, db_session, test_patient) -> None:
    await make_appointment(db_session, test_patient, MONDAY, time="08:00", clinic="escalon")

    outcome = await _validate(validator, test_patient)

    assert outcome.conflict
    assert outcome.violations == {"date": MESSAGES["same_day"]}


async def test_same_day_rule_excludes_edited_appointment(validator, db_session, test_patient) -> None:
    edited = await make_appointment(db_session, test_patient, MONDAY, time="08:00")

    outcome = await _validate(
        validator,
        test_patient,
        mode=BookingMode.EDIT,
        exclude_appointment_id=edited["id"],
    )
    assert outcome.ok


async def test_full_slot_is_rejected_and_next_slot_accepted(validator, db_session, test_patient) -> None:
    for name in ("Carlos", "Rosa"):
        other = await make_patient(db_session, first_names=name, last_names="Pérez")
        await make_appointment(db_session, other, MONDAY, time="14:00", clinic="santa-tecla")

    rejected = await _validate(validator, test_patient, time="2:00 PM")
    assert rejected.conflict
    assert rejected.violations == {"time": MESSAGES["slot_full"]}

    accepted = await _validate(validator, test_patient, time="15:00")
    assert accepted.ok


async def test_keep_time_allows_own_full_slot(validator, db_session, test_patient) -> None:
    other = await make_patient(db_session, first_names="Rosa", last_names="Pérez")
    await make_appointment(db_session, other, MONDAY, time="14:00")
    edited = await make_appointment(db_session, test_patient, MONDAY, time="14:00")

    outcome = await _validate(
        validator,
        test_patient,
        reason="Ortodoncia",
        mode=BookingMode.EDIT,
        exclude_appointment_id=edited["id"],
        keep_time="14:00",
    )
    assert outcome.ok


async def test_read_failure_is_not_a_pass(test_patient) -> None:
    store = AsyncMock(spec=AppointmentStore)
    store.count_appointments.side_effect = PersistenceError()

    result = await BookingValidator(store).validate_booking(
        patient_id=test_patient["id"],
        day=MONDAY,
        time="14:00",
        clinic="santa-tecla",
        reason="Dolor de muelas",
        today=TODAY,
    )

    assert not result.ok
    assert isinstance(result.error, PersistenceError)
