"""Appointment lifecycle: booking, edits, status transitions and expiry."""

from datetime import UTC, date, datetime, timedelta
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from dental_clinic.config import settings
from dental_clinic.core.calendar import clinic_tz, normalize_slot_label, slot_start
from dental_clinic.core.exceptions import (
    AppException,
    ConstraintConflictException,
    ForbiddenException,
    NotFoundException,
    PersistenceError,
    ValidationException,
)
from dental_clinic.core.redis_client import CacheManager
from dental_clinic.core.results import Result
from dental_clinic.core.security import Principal
from dental_clinic.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentUpdate,
    BookingMode,
    BookingValidation,
    SweepFailure,
    SweepReport,
)
from dental_clinic.services.appointment_store import AppointmentStore
from dental_clinic.services.booking_validator import MESSAGES, BookingValidator
from dental_clinic.services.notification_service import NotificationService
from dental_clinic.services.patient_service import PatientService, display_name

logger = structlog.get_logger(__name__)

SLOT_FIELDS = ("date", "time", "clinic")
PATIENT_EDITABLE_FIELDS = {"date", "time", "clinic", "reason", "notes"}


def is_overdue(
    appointment: dict[str, Any],
    now: datetime,
    tz: ZoneInfo | None = None,
    grace: timedelta | None = None,
) -> bool:
    """
    Whether a scheduled appointment is past its grace window.

    The slot start is interpreted in clinic time; a naive ``now`` is taken
    to be clinic time as well.
    """
    tz = tz or clinic_tz()
    grace = grace if grace is not None else timedelta(hours=settings.missed_grace_hours)
    if now.tzinfo is None:
        now = now.replace(tzinfo=tz)
    return now > slot_start(appointment["date"], appointment["time"], tz) + grace


def _rejection(validation: BookingValidation) -> AppException:
    if validation.conflict:
        return ConstraintConflictException(validation.violations)
    return ValidationException(validation.violations)


class AppointmentService:
    """
    Service for the appointment state machine.

    ``create``, ``update`` and ``set_status`` are pure commit steps; ``book``
    and ``reschedule`` run the booking validator first. All operations return
    a ``Result`` instead of raising for expected failures.
    """

    def __init__(
        self,
        db: AsyncSession,
        cache: CacheManager | None = None,
        store: AppointmentStore | None = None,
    ):
        """Initialize service with database session."""
        self.db = db
        self.store = store or AppointmentStore(db)
        self.validator = BookingValidator(self.store)
        self.notifications = NotificationService(db)
        self.patients = PatientService(db, cache)

    # Commit steps

    async def create(
        self,
        patient_id: UUID,
        data: AppointmentCreate,
        acting_staff_id: UUID | None = None,
        doctor_notes: str | None = None,
        patient_name: str | None = None,
    ) -> Result[AppointmentResponse]:
        """
        Persist a new scheduled appointment.

        Args:
            patient_id: Owning patient
            data: Slot and visit details, already validated
            acting_staff_id: Staff member booking on the patient's behalf
            doctor_notes: Staff-only notes
            patient_name: Display name snapshot; looked up when omitted

        Returns:
            Created appointment
        """
        if patient_name is None:
            patient = await self.patients.get_patient(patient_id)
            if not patient.ok:
                return Result.failure(patient.error)
            patient_name = display_name(patient.value)

        now = datetime.now(UTC)
        values = {
            "patient_id": patient_id,
            "patient_name": patient_name,
            "date": data.date,
            "time": normalize_slot_label(data.time) or data.time,
            "clinic": data.clinic,
            "reason": (data.reason or "").strip(),
            "notes": data.notes,
            "doctor_notes": doctor_notes,
            "status": AppointmentStatus.SCHEDULED.value,
            "created_by": acting_staff_id,
            "created_by_staff": acting_staff_id is not None,
            "created_at": now,
            "updated_at": now,
        }

        try:
            record = await self.store.insert_appointment(values)
        except PersistenceError as e:
            return Result.failure(e)

        logger.info(
            "appointment_created",
            appointment_id=str(record["id"]),
            patient_id=str(patient_id),
            date=record["date"].isoformat(),
            time=record["time"],
            clinic=record["clinic"],
            by_staff=acting_staff_id is not None,
        )
        await self.notifications.notify_appointment_event("created", record)
        return Result.success(AppointmentResponse.model_validate(record))

    async def update(
        self,
        appointment_id: UUID,
        changes: dict[str, Any],
        actor: Principal,
    ) -> Result[AppointmentResponse]:
        """
        Write field changes to an appointment.

        Patients may only edit their own scheduled appointments and never
        ``doctor_notes``; staff may edit in any status. Booking rules are not
        re-checked here.
        """
        current = await self._load(appointment_id, actor)
        if not current.ok:
            return Result.failure(current.error)

        denied = self._check_edit_allowed(current.value, changes, actor)
        if denied is not None:
            return Result.failure(denied)

        if "reason" in changes and not (changes["reason"] or "").strip():
            return Result.failure(ValidationException({"reason": MESSAGES["reason_required"]}))

        if not changes:
            return Result.success(self._present(current.value, actor))

        values = dict(changes)
        values["updated_at"] = datetime.now(UTC)

        try:
            record = await self.store.update_appointment(appointment_id, values)
        except PersistenceError as e:
            return Result.failure(e)
        if record is None:
            return Result.failure(NotFoundException("Appointment not found"))

        logger.info(
            "appointment_updated",
            appointment_id=str(appointment_id),
            fields=sorted(changes),
            actor_role=actor.role.value,
        )
        return Result.success(self._present(record, actor))

    async def set_status(
        self,
        appointment_id: UUID,
        new_status: AppointmentStatus,
        expected_status: AppointmentStatus | None = None,
    ) -> Result[AppointmentResponse]:
        """
        Write a new status.

        Unconditional unless ``expected_status`` is given, in which case the
        write only applies while the appointment still has that status.
        """
        try:
            before = await self.store.get_appointment(appointment_id)
            if before is None:
                return Result.failure(NotFoundException("Appointment not found"))
            record = await self.store.update_appointment(
                appointment_id,
                {"status": new_status.value, "updated_at": datetime.now(UTC)},
                expected_status=expected_status,
            )
        except PersistenceError as e:
            return Result.failure(e)

        if record is None and expected_status is None:
            return Result.failure(NotFoundException("Appointment not found"))
        if record is None:
            return Result.failure(
                ConstraintConflictException(
                    {"status": f"The appointment is no longer {expected_status.value}"}
                )
            )

        logger.info(
            "appointment_status_changed",
            appointment_id=str(appointment_id),
            old_status=before["status"],
            new_status=new_status.value,
        )
        if before["status"] != new_status.value:
            await self.notifications.notify_appointment_event(new_status.value, record)
        return Result.success(AppointmentResponse.model_validate(record))

    # Validated operations

    async def book(
        self,
        patient_id: UUID,
        data: AppointmentCreate,
        acting_staff_id: UUID | None = None,
        doctor_notes: str | None = None,
        today: date | None = None,
    ) -> Result[AppointmentResponse]:
        """
        Validate and create an appointment for a patient.

        Returns:
            The new appointment, or a ValidationException / ConstraintConflictException
            describing which booking rule failed
        """
        patient = await self.patients.get_patient(patient_id)
        if not patient.ok:
            return Result.failure(patient.error)

        checked = await self.validator.validate_booking(
            patient_id=patient_id,
            day=data.date,
            time=data.time,
            clinic=data.clinic,
            reason=data.reason,
            mode=BookingMode.CREATE,
            today=today,
        )
        if not checked.ok:
            return Result.failure(checked.error)
        if not checked.value.ok:
            return Result.failure(_rejection(checked.value))

        return await self.create(
            patient_id,
            data,
            patient_name=display_name(patient.value),
            acting_staff_id=acting_staff_id,
            doctor_notes=doctor_notes,
        )

    async def reschedule(
        self,
        appointment_id: UUID,
        data: AppointmentUpdate,
        actor: Principal,
        today: date | None = None,
    ) -> Result[AppointmentResponse]:
        """
        Edit an appointment, re-validating when the date, time or clinic change.

        The appointment's current slot stays selectable while its date and
        clinic are unchanged, and it does not count against the patient's
        one-per-day limit.
        """
        current = await self._load(appointment_id, actor)
        if not current.ok:
            return Result.failure(current.error)
        record: dict[str, Any] = current.value

        requested = data.model_dump(exclude_unset=True)
        changes = {key: value for key, value in requested.items() if record.get(key) != value}

        denied = self._check_edit_allowed(record, changes, actor)
        if denied is not None:
            return Result.failure(denied)

        if any(field in changes for field in SLOT_FIELDS):
            target = {**record, **changes}
            same_place = target["date"] == record["date"] and target["clinic"] == record["clinic"]
            checked = await self.validator.validate_booking(
                patient_id=record["patient_id"],
                day=target["date"],
                time=target["time"],
                clinic=target["clinic"],
                reason=target["reason"],
                mode=BookingMode.EDIT,
                exclude_appointment_id=appointment_id,
                keep_time=record["time"] if same_place else None,
                today=today,
            )
            if not checked.ok:
                return Result.failure(checked.error)
            if not checked.value.ok:
                return Result.failure(_rejection(checked.value))

        result = await self.update(appointment_id, changes, actor)
        if result.ok and any(field in changes for field in SLOT_FIELDS):
            await self.notifications.notify_appointment_event(
                "rescheduled", result.value.model_dump()
            )
        return result

    async def cancel(self, appointment_id: UUID, actor: Principal) -> Result[AppointmentResponse]:
        """Cancel a scheduled appointment (patient for their own, or staff)."""
        current = await self._load(appointment_id, actor)
        if not current.ok:
            return Result.failure(current.error)
        if current.value["status"] != AppointmentStatus.SCHEDULED.value:
            return Result.failure(
                ConstraintConflictException({"status": "Only scheduled appointments can be cancelled"})
            )

        result = await self.set_status(
            appointment_id,
            AppointmentStatus.CANCELLED,
            expected_status=AppointmentStatus.SCHEDULED,
        )
        if result.ok and not actor.is_staff:
            result = Result.success(self._present(result.value.model_dump(), actor))
        return result

    async def complete(self, appointment_id: UUID) -> Result[AppointmentResponse]:
        """Mark a scheduled appointment as attended (staff)."""
        return await self.set_status(
            appointment_id,
            AppointmentStatus.COMPLETED,
            expected_status=AppointmentStatus.SCHEDULED,
        )

    async def delete(self, appointment_id: UUID) -> Result[None]:
        """Hard delete, reserved for administrators."""
        try:
            deleted = await self.store.delete_appointment(appointment_id)
        except PersistenceError as e:
            return Result.failure(e)
        if not deleted:
            return Result.failure(NotFoundException("Appointment not found"))
        logger.warning("appointment_deleted", appointment_id=str(appointment_id))
        return Result.success(None)

    # Reads

    async def get(self, appointment_id: UUID, actor: Principal) -> Result[AppointmentResponse]:
        current = await self._load(appointment_id, actor)
        if not current.ok:
            return Result.failure(current.error)
        return Result.success(self._present(current.value, actor))

    async def list(
        self,
        actor: Principal,
        filters: AppointmentFilters,
    ) -> Result[AppointmentListResponse]:
        """
        List appointments.

        Patients only ever see their own appointments, soonest first; staff
        see all matching appointments, most recent first.
        """
        patient_id = filters.patient_id if actor.is_staff else actor.id
        try:
            records = await self.store.query_appointments(
                patient_id=patient_id,
                status=filters.status,
                clinic=filters.clinic,
                date=filters.date,
                from_date=filters.from_date,
                to_date=filters.to_date,
            )
        except PersistenceError as e:
            return Result.failure(e)

        if actor.is_staff:
            records.reverse()
        items = [self._present(record, actor) for record in records]
        return Result.success(AppointmentListResponse(total=len(items), items=items))

    # Expiry

    async def sweep_expired(self, now: datetime | None = None) -> SweepReport:
        """
        Mark overdue scheduled appointments as missed.

        Each write is conditional on the appointment still being scheduled,
        so a concurrent cancellation or completion wins. Failures on single
        records are collected in the report and do not stop the sweep.
        """
        tz = clinic_tz()
        now = now or datetime.now(tz)
        if now.tzinfo is None:
            now = now.replace(tzinfo=tz)
        report = SweepReport(ran_at=now)

        try:
            scheduled = await self.store.query_appointments(status=AppointmentStatus.SCHEDULED)
        except PersistenceError as e:
            logger.error("sweep_read_failed", error=e.message)
            return report

        report.checked = len(scheduled)
        for appointment in scheduled:
            try:
                if not is_overdue(appointment, now, tz):
                    continue
                record = await self.store.update_appointment(
                    appointment["id"],
                    {"status": AppointmentStatus.MISSED.value, "updated_at": datetime.now(UTC)},
                    expected_status=AppointmentStatus.SCHEDULED,
                )
            except (PersistenceError, ValueError) as e:
                report.failures.append(
                    SweepFailure(appointment_id=appointment["id"], error=str(e))
                )
                continue

            if record is None:
                continue
            report.marked_missed.append(record["id"])
            await self.notifications.notify_appointment_event(AppointmentStatus.MISSED.value, record)

        if report.partial_failure:
            logger.warning(
                "sweep_partial_failure",
                failed=len(report.failures),
                marked_missed=len(report.marked_missed),
            )
        logger.info(
            "sweep_completed",
            checked=report.checked,
            marked_missed=len(report.marked_missed),
        )
        return report

    # Helpers

    async def _load(self, appointment_id: UUID, actor: Principal) -> Result[dict[str, Any]]:
        try:
            record = await self.store.get_appointment(appointment_id)
        except PersistenceError as e:
            return Result.failure(e)
        if record is None:
            return Result.failure(NotFoundException("Appointment not found"))
        if not actor.is_staff and record["patient_id"] != actor.id:
            return Result.failure(ForbiddenException("Access denied to this appointment"))
        return Result.success(record)

    @staticmethod
    def _check_edit_allowed(
        record: dict[str, Any],
        changes: dict[str, Any],
        actor: Principal,
    ) -> AppException | None:
        if actor.is_staff:
            return None
        if record["status"] != AppointmentStatus.SCHEDULED.value:
            return ConstraintConflictException(
                {"status": "Only scheduled appointments can be edited"}
            )
        forbidden = set(changes) - PATIENT_EDITABLE_FIELDS
        if forbidden:
            return ForbiddenException(f"Patients cannot edit: {', '.join(sorted(forbidden))}")
        return None

    @staticmethod
    def _present(record: dict[str, Any], actor: Principal) -> AppointmentResponse:
        response = AppointmentResponse.model_validate(record)
        if not actor.is_staff:
            response.doctor_notes = None
        return response
