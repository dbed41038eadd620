"""Patient profiles: lookup, registration and staff edits."""

import asyncio
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import func, insert, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dental_clinic.config import settings
from dental_clinic.core.exceptions import (
    ConstraintConflictException,
    NotFoundException,
    PersistenceError,
)
from dental_clinic.core.firebase import create_identity, delete_identity
from dental_clinic.core.redis_client import CacheManager
from dental_clinic.core.results import Result
from dental_clinic.models.patients import patients
from dental_clinic.schemas.patients import (
    PatientRegister,
    PatientResponse,
    PatientUpdate,
    RegistrationResult,
)

logger = structlog.get_logger(__name__)

PROFILE_FETCH_ATTEMPTS = 3
PROFILE_FETCH_BACKOFF = 0.2


def _cache_key(patient_id: UUID) -> str:
    return f"patient:{patient_id}"


def display_name(profile: dict[str, Any] | PatientResponse) -> str:
    """Name shown on appointments, e.g. ``Ana María López``."""
    if isinstance(profile, PatientResponse):
        return profile.display_name
    return f"{profile.get('first_names', '')} {profile.get('last_names', '')}".strip()


class PatientService:
    """Service for patient profiles."""

    def __init__(self, db: AsyncSession, cache: CacheManager | None = None):
        """Initialize service with database session and optional cache."""
        self.db = db
        self.cache = cache

    async def get_patient(self, patient_id: UUID) -> Result[PatientResponse]:
        """
        Fetch a patient profile.

        Served from the cache when possible; otherwise read from the database
        with up to three attempts before reporting a PersistenceError.
        """
        if self.cache is not None:
            cached = self.cache.get_json(_cache_key(patient_id))
            if cached:
                return Result.success(PatientResponse.model_validate(cached))

        last_error: SQLAlchemyError | None = None
        for attempt in range(1, PROFILE_FETCH_ATTEMPTS + 1):
            try:
                result = await self.db.execute(select(patients).where(patients.c.id == patient_id))
                row = result.fetchone()
                break
            except SQLAlchemyError as e:
                last_error = e
                logger.warning(
                    "patient_fetch_retry",
                    patient_id=str(patient_id),
                    attempt=attempt,
                    error=str(e),
                )
                await self.db.rollback()
                if attempt < PROFILE_FETCH_ATTEMPTS:
                    await asyncio.sleep(PROFILE_FETCH_BACKOFF * attempt)
        else:
            logger.error("patient_fetch_failed", patient_id=str(patient_id), error=str(last_error))
            return Result.failure(PersistenceError())

        if not row:
            return Result.failure(NotFoundException("Patient not found"))

        profile = PatientResponse.model_validate(dict(row._mapping))
        if self.cache is not None:
            self.cache.set_json(
                _cache_key(patient_id),
                profile.model_dump(mode="json"),
                ttl=settings.patient_profile_cache_ttl,
            )
        return Result.success(profile)

    async def get_by_firebase_uid(self, firebase_uid: str) -> dict[str, Any] | None:
        result = await self.db.execute(select(patients).where(patients.c.firebase_uid == firebase_uid))
        row = result.fetchone()
        return dict(row._mapping) if row else None

    async def list_patients(self, search: str | None = None) -> list[PatientResponse]:
        """
        List patients ordered by last name.

        Args:
            search: Case-insensitive match on names, email or DUI
        """
        stmt = select(patients).order_by(patients.c.last_names, patients.c.first_names)
        if search and search.strip():
            pattern = f"%{search.strip().lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(patients.c.first_names).like(pattern),
                    func.lower(patients.c.last_names).like(pattern),
                    func.lower(patients.c.email).like(pattern),
                    patients.c.dui.like(pattern),
                )
            )
        result = await self.db.execute(stmt)
        return [PatientResponse.model_validate(dict(row._mapping)) for row in result.fetchall()]

    async def count_patients(self) -> int:
        result = await self.db.execute(select(func.count()).select_from(patients))
        return result.scalar() or 0

    async def update_patient(self, patient_id: UUID, data: PatientUpdate) -> Result[PatientResponse]:
        """
        Update a patient profile.

        Appointment ``patient_name`` snapshots taken at booking time are left
        untouched.
        """
        values = data.model_dump(exclude_unset=True)
        if not values:
            return await self.get_patient(patient_id)
        values["updated_at"] = datetime.now(UTC)

        try:
            result = await self.db.execute(
                update(patients)
                .where(patients.c.id == patient_id)
                .values(**values)
                .returning(patients)
            )
            row = result.fetchone()
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("patient_update_failed", patient_id=str(patient_id), error=str(e))
            return Result.failure(PersistenceError())

        if not row:
            return Result.failure(NotFoundException("Patient not found"))

        if self.cache is not None:
            self.cache.delete(_cache_key(patient_id))
        logger.info("patient_updated", patient_id=str(patient_id), fields=sorted(values))
        return Result.success(PatientResponse.model_validate(dict(row._mapping)))

    async def register_patient(
        self,
        data: PatientRegister,
        acting_staff_id: UUID | None = None,
    ) -> Result[RegistrationResult]:
        """
        Create a login and a patient profile.

        The login is created through the Admin SDK, so a staff member
        registering a patient keeps their own session. Self sign-up returns
        ``suppress_auto_login=True``; the client must not start a session
        from the registration response.
        """
        try:
            firebase_uid = create_identity(
                email=data.email,
                password=data.password,
                display_name=f"{data.first_names} {data.last_names}",
            )
        except ValueError as e:
            return Result.failure(ConstraintConflictException({"email": str(e)}, message=str(e)))

        now = datetime.now(UTC)
        values = data.model_dump(exclude={"password"})
        values.update(
            firebase_uid=firebase_uid,
            created_by=acting_staff_id,
            created_at=now,
            updated_at=now,
        )

        try:
            result = await self.db.execute(insert(patients).values(**values).returning(patients))
            row = result.fetchone()
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("patient_register_failed", firebase_uid=firebase_uid, error=str(e))
            # The login must not outlive a profile that was never stored
            delete_identity(firebase_uid)
            return Result.failure(PersistenceError())

        patient = PatientResponse.model_validate(dict(row._mapping))
        logger.info(
            "patient_registered",
            patient_id=str(patient.id),
            by_staff=acting_staff_id is not None,
        )
        return Result.success(
            RegistrationResult(
                patient=patient,
                suppress_auto_login=acting_staff_id is None,
            )
        )
