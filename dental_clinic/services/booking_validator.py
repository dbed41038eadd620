"""Per-patient and per-slot booking rules."""

from datetime import date
from typing import cast
from uuid import UUID

import structlog

from dental_clinic.config import settings
from dental_clinic.core.calendar import (
    DateProblem,
    date_problem,
    is_valid_clinic,
    normalize_slot_label,
)
from dental_clinic.core.exceptions import PersistenceError
from dental_clinic.core.results import Result
from dental_clinic.schemas.appointments import (
    AppointmentStatus,
    BookingMode,
    BookingValidation,
)
from dental_clinic.services.appointment_store import AppointmentStore
from dental_clinic.services.slot_service import SlotService

logger = structlog.get_logger(__name__)

MESSAGES = {
    "reason_required": "Please select the reason for the appointment",
    "clinic_required": "Please select a clinic",
    "clinic_invalid": "Please select one of the listed clinics",
    "date_required": "Please select a date",
    "time_required": "Please select a time",
    "time_invalid": "Please select one of the listed times",
    DateProblem.PAST: "The date cannot be in the past",
    DateProblem.TODAY: "Appointments cannot be booked for today",
    DateProblem.SUNDAY: "Appointments cannot be booked on Sundays",
    "ceiling": "You already have {limit} scheduled appointments; cancel or attend one before booking another",
    "same_day": "You already have an appointment scheduled on this date",
    "slot_full": "This time is fully booked at the selected clinic; please choose another time",
}


class BookingValidator:
    """
    Authoritative gate for creating or rescheduling an appointment.

    Field and date checks accumulate every violation. The patient-limit and
    slot-capacity checks each read the store, so they run in order and stop
    at the first failure.
    """

    def __init__(self, store: AppointmentStore, slots: SlotService | None = None):
        """Initialize validator with an appointment store."""
        self.store = store
        self.slots = slots or SlotService(store)

    async def validate_booking(
        self,
        patient_id: UUID,
        day: date | None,
        time: str | None,
        clinic: str | None,
        reason: str | None,
        mode: BookingMode = BookingMode.CREATE,
        exclude_appointment_id: UUID | None = None,
        keep_time: str | None = None,
        today: date | None = None,
    ) -> Result[BookingValidation]:
        """
        Check a booking against all rules.

        Args:
            patient_id: Patient the appointment belongs to
            day: Requested date
            time: Requested slot label
            clinic: Requested clinic identifier
            reason: Visit reason
            mode: ``create`` applies the scheduled-appointment ceiling
            exclude_appointment_id: Appointment being edited
            keep_time: Slot the edited appointment currently holds
            today: Reference date, defaults to today in clinic time

        Returns:
            A validation outcome, or a PersistenceError when the store could
            not be read
        """
        violations = self._check_fields(day, time, clinic, reason, today)
        if violations:
            return Result.success(BookingValidation(ok=False, violations=violations))

        # _check_fields has rejected every missing or unknown value
        day = cast(date, day)
        slot = cast(str, normalize_slot_label(time))
        clinic = cast(str, clinic)

        try:
            conflict = await self._check_limits(
                patient_id, day, slot, clinic, mode, exclude_appointment_id, keep_time
            )
        except PersistenceError as e:
            logger.error(
                "booking_validation_unavailable",
                patient_id=str(patient_id),
                date=day.isoformat(),
                clinic=clinic,
            )
            return Result.failure(e)

        if conflict:
            logger.info(
                "booking_rejected",
                patient_id=str(patient_id),
                date=day.isoformat(),
                time=slot,
                clinic=clinic,
                violations=conflict,
            )
            return Result.success(BookingValidation(ok=False, violations=conflict, conflict=True))

        return Result.success(BookingValidation(ok=True))

    def _check_fields(
        self,
        day: date | None,
        time: str | None,
        clinic: str | None,
        reason: str | None,
        today: date | None,
    ) -> dict[str, str]:
        violations: dict[str, str] = {}

        if not reason or not reason.strip():
            violations["reason"] = MESSAGES["reason_required"]

        if not clinic:
            violations["clinic"] = MESSAGES["clinic_required"]
        elif not is_valid_clinic(clinic):
            violations["clinic"] = MESSAGES["clinic_invalid"]

        if day is None:
            violations["date"] = MESSAGES["date_required"]
        else:
            problem = date_problem(day, today)
            if problem is not None:
                violations["date"] = MESSAGES[problem]

        if not time:
            violations["time"] = MESSAGES["time_required"]
        elif normalize_slot_label(time) is None:
            violations["time"] = MESSAGES["time_invalid"]

        return violations

    async def _check_limits(
        self,
        patient_id: UUID,
        day: date,
        slot: str,
        clinic: str,
        mode: BookingMode,
        exclude_appointment_id: UUID | None,
        keep_time: str | None,
    ) -> dict[str, str]:
        if mode == BookingMode.CREATE:
            scheduled = await self.store.count_appointments(
                patient_id=patient_id,
                status=AppointmentStatus.SCHEDULED,
            )
            if scheduled >= settings.max_scheduled_per_patient:
                return {
                    "general": MESSAGES["ceiling"].format(limit=settings.max_scheduled_per_patient)
                }

        same_day = await self.store.query_appointments(
            patient_id=patient_id,
            date=day,
            status=AppointmentStatus.SCHEDULED,
        )
        if any(record["id"] != exclude_appointment_id for record in same_day):
            return {"date": MESSAGES["same_day"]}

        availability = await self.slots.resolve_available_slots(day, clinic, keep_time)
        if availability.error:
            raise PersistenceError(availability.error)
        if slot not in availability.slots:
            return {"time": MESSAGES["slot_full"]}

        return {}
