"""Tests for slot availability resolution."""

from datetime import date
from unittest.mock import AsyncMock

from sqlalchemy.ext.asyncio import AsyncSession

from conftest import make_appointment, make_patient
from dental_clinic.core.calendar import TIME_SLOTS
from dental_clinic.core.exceptions import PersistenceError
from dental_clinic.services.appointment_store import AppointmentStore
from dental_clinic.services.slot_service import (
    SLOT_LOOKUP_FAILED,
    SlotService,
    filter_available_slots,
)

DAY = date(2025, 3, 10)


def _booked(time: str, status: str = "scheduled") -> dict:
    return {"time": time, "status": status}


def test_no_appointments_offers_every_slot() -> None:
    assert filter_available_slots([]) == list(TIME_SLOTS)


def test_full_slot_is_removed_and_order_kept() -> None:
    booked = [_booked("14:00"), _booked("14:00"), _booked("09:00")]
    assert filter_available_slots(booked) == ["08:00", "09:00", "10:00", "11:00", "13:00", "15:00"]


def test_only_scheduled_appointments_take_capacity() -> None:
    booked = [_booked("14:00", "cancelled"), _booked("14:00", "missed"), _booked("14:00")]
    assert "14:00" in filter_available_slots(booked)


def test_keep_time_stays_offered_when_full() -> None:
    booked = [_booked("14:00"), _booked("14:00")]
    assert "14:00" in filter_available_slots(booked, keep_time="14:00")
    assert "14:00" in filter_available_slots(booked, keep_time="2:00 PM")


def test_legacy_am_pm_labels_count_towards_their_slot() -> None:
    booked = [_booked("1:00 PM"), _booked("13:00")]
    assert "13:00" not in filter_available_slots(booked)


async def test_resolve_without_input_is_unfiltered() -> None:
    store = AsyncMock(spec=AppointmentStore)
    service = SlotService(store)

    for day, clinic in [(None, "escalon"), (DAY, None), (DAY, "nowhere")]:
        result = await service.resolve_available_slots(day, clinic)
        assert result.slots == list(TIME_SLOTS)
        assert result.filtered is False
        assert result.error is None

    store.query_appointments.assert_not_called()


async def test_resolve_reads_store(db_session: AsyncSession) -> None:
    first = await make_patient(db_session)
    second = await make_patient(db_session, first_names="Carlos", last_names="Hernández")
    await make_appointment(db_session, first, DAY, time="10:00", clinic="escalon")
    await make_appointment(db_session, second, DAY, time="10:00", clinic="escalon")
    await make_appointment(db_session, second, DAY, time="11:00", clinic="soyapango")

    result = await SlotService(AppointmentStore(db_session)).resolve_available_slots(DAY, "escalon")

    assert result.filtered is True
    assert "10:00" not in result.slots
    assert "11:00" in result.slots


async def test_resolve_degrades_on_read_failure() -> None:
    store = AsyncMock(spec=AppointmentStore)
    store.query_appointments.side_effect = PersistenceError()

    result = await SlotService(store).resolve_available_slots(DAY, "escalon")

    assert result.slots == list(TIME_SLOTS)
    assert result.filtered is False
    assert result.error == SLOT_LOOKUP_FAILED
