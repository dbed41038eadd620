"""Slot availability resolution."""

from collections import Counter
from collections.abc import Iterable
from datetime import date
from typing import Any

import structlog

from dental_clinic.config import settings
from dental_clinic.core.calendar import TIME_SLOTS, is_valid_clinic, normalize_slot_label
from dental_clinic.core.exceptions import PersistenceError
from dental_clinic.schemas.appointments import AppointmentStatus, SlotAvailability
from dental_clinic.services.appointment_store import AppointmentStore

logger = structlog.get_logger(__name__)

SLOT_LOOKUP_FAILED = "Could not check slot occupancy; availability will be confirmed on submission"


def _field(record: Any, name: str) -> Any:
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


def slot_occupancy(appointments: Iterable[Any]) -> Counter:
    """Count scheduled appointments per canonical slot label."""
    counts: Counter = Counter()
    for appointment in appointments:
        status = _field(appointment, "status")
        if hasattr(status, "value"):
            status = status.value
        if status != AppointmentStatus.SCHEDULED.value:
            continue
        label = normalize_slot_label(_field(appointment, "time"))
        if label is not None:
            counts[label] += 1
    return counts


def filter_available_slots(
    appointments: Iterable[Any],
    keep_time: str | None = None,
    capacity: int | None = None,
) -> list[str]:
    """
    Slots with spare capacity given the appointments booked at one date and clinic.

    Args:
        appointments: Records for a single (date, clinic); non-scheduled ones are ignored
        keep_time: Slot held by the appointment being edited, always offered
        capacity: Scheduled appointments allowed per slot

    Returns:
        Slot labels in the clinic's fixed order
    """
    capacity = capacity or settings.slot_capacity
    keep = normalize_slot_label(keep_time) if keep_time else None
    counts = slot_occupancy(appointments)
    return [slot for slot in TIME_SLOTS if counts[slot] < capacity or slot == keep]


class SlotService:
    """Resolves which of the daily slots still accept bookings."""

    def __init__(self, store: AppointmentStore):
        """Initialize service with an appointment store."""
        self.store = store

    async def resolve_available_slots(
        self,
        day: date | None,
        clinic: str | None,
        keep_time: str | None = None,
    ) -> SlotAvailability:
        """
        Open slots for a date and clinic.

        Without a date or a valid clinic the full list is returned unfiltered.
        A failed read also returns the full list, flagged with ``error``; the
        booking validator re-checks capacity at submission.
        """
        if day is None or not is_valid_clinic(clinic):
            return SlotAvailability(slots=list(TIME_SLOTS), filtered=False)

        try:
            booked = await self.store.query_appointments(
                date=day,
                clinic=clinic,
                status=AppointmentStatus.SCHEDULED,
            )
        except PersistenceError as e:
            logger.warning(
                "slot_lookup_failed",
                date=day.isoformat(),
                clinic=clinic,
                error=e.message,
            )
            return SlotAvailability(
                slots=list(TIME_SLOTS),
                filtered=False,
                error=SLOT_LOOKUP_FAILED,
            )

        return SlotAvailability(slots=filter_available_slots(booked, keep_time))
