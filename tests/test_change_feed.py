"""Tests for appointment change subscriptions."""

from datetime import date
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import make_patient
from dental_clinic.core.change_feed import ChangeFeed
from dental_clinic.core.exceptions import PersistenceError
from dental_clinic.schemas.appointments import AppointmentStatus
from dental_clinic.services.appointment_store import AppointmentStore


async def test_subscriber_receives_matching_records() -> None:
    feed = ChangeFeed()
    patient_id = uuid4()
    received = []

    feed.subscribe({"patient_id": str(patient_id)}, lambda event, record: received.append((event, record)))

    await feed.publish("inserted", {"patient_id": patient_id, "status": "scheduled"})
    await feed.publish("inserted", {"patient_id": uuid4(), "status": "scheduled"})

    assert [event for event, _ in received] == ["inserted"]


async def test_async_subscriber_and_enum_filter() -> None:
    feed = ChangeFeed()
    received = []

    async def on_change(event, record) -> None:
        received.append(record["status"])

    feed.subscribe({"status": AppointmentStatus.MISSED}, on_change)
    await feed.publish("updated", {"status": "scheduled"})
    await feed.publish("updated", {"status": "missed"})

    assert received == ["missed"]


async def test_failing_subscriber_does_not_stop_others() -> None:
    feed = ChangeFeed()
    received = []

    def broken(event, record) -> None:
        raise RuntimeError("boom")

    feed.subscribe(None, broken)
    feed.subscribe(None, lambda event, record: received.append(event))

    await feed.publish("deleted", {"id": uuid4()})

    assert received == ["deleted"]


async def test_unsubscribe() -> None:
    feed = ChangeFeed()
    unsubscribe = feed.subscribe(None, lambda event, record: None)
    assert feed.subscriber_count == 1

    unsubscribe()
    unsubscribe()

    assert feed.subscriber_count == 0


async def test_store_publishes_committed_writes(db_session: AsyncSession) -> None:
    patient = await make_patient(db_session)
    store = AppointmentStore(db_session, feed=ChangeFeed())
    events = []
    store.subscribe({"patient_id": patient["id"]}, lambda event, record: events.append((event, record["status"])))

    record = await store.insert_appointment(
        {
            "patient_id": patient["id"],
            "patient_name": "Ana María López",
            "date": date(2025, 3, 10),
            "time": "08:00",
            "clinic": "escalon",
            "reason": "Extracción",
        }
    )
    await store.update_appointment(record["id"], {"status": "cancelled"})
    # A conditional write that matches nothing publishes nothing
    await store.update_appointment(record["id"], {"status": "missed"}, expected_status="scheduled")
    await store.delete_appointment(record["id"])

    assert events == [("inserted", "scheduled"), ("updated", "cancelled"), ("deleted", "cancelled")]


async def test_insert_without_returned_row_is_persistence_error(db_session: AsyncSession) -> None:
    feed = ChangeFeed()
    events = []
    feed.subscribe(None, lambda event, record: events.append(event))
    store = AppointmentStore(db_session, feed=feed)
    store._write = AsyncMock(return_value=None)

    with pytest.raises(PersistenceError):
        await store.insert_appointment({"patient_id": uuid4()})

    assert events == []
