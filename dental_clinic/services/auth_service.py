"""Authentication service: Firebase sign-in exchanged for access tokens."""

from datetime import timedelta

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dental_clinic.config import settings
from dental_clinic.core.exceptions import ForbiddenException, UnauthorizedException
from dental_clinic.core.firebase import verify_firebase_token
from dental_clinic.core.security import Role, create_access_token
from dental_clinic.models.staff import staff
from dental_clinic.schemas.auth import LoginResponse
from dental_clinic.services.patient_service import PatientService, display_name

logger = structlog.get_logger(__name__)


class AuthService:
    """Resolves a Firebase identity to a staff member or patient."""

    def __init__(self, db: AsyncSession):
        """Initialize auth service with database session."""
        self.db = db

    async def verify_firebase_id_token(self, id_token: str) -> dict:
        """
        Verify Firebase ID token and extract user information.

        Raises:
            UnauthorizedException: If token verification fails
        """
        try:
            return await verify_firebase_token(id_token)
        except ValueError as e:
            raise UnauthorizedException(str(e))

    async def login(self, id_token: str) -> LoginResponse:
        """
        Exchange a Firebase ID token for an application access token.

        Staff records take precedence over patient records for the same
        Firebase account.

        Raises:
            UnauthorizedException: If the token is invalid or no profile matches
            ForbiddenException: If the profile is deactivated
        """
        token_data = await self.verify_firebase_id_token(id_token)
        firebase_uid = token_data["uid"]

        result = await self.db.execute(select(staff).where(staff.c.firebase_uid == firebase_uid))
        row = result.fetchone()
        if row:
            profile = dict(row._mapping)
            role = Role(profile["role"])
        else:
            profile = await PatientService(self.db).get_by_firebase_uid(firebase_uid)
            role = Role.PATIENT

        if profile is None:
            logger.warning("login_unknown_identity", firebase_uid=firebase_uid)
            raise UnauthorizedException("No profile is linked to this account")
        if not profile["is_active"]:
            raise ForbiddenException("User account is deactivated")

        access_token = create_access_token(
            data={"sub": str(profile["id"]), "role": role.value},
            expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
        )
        logger.info("user_logged_in", user_id=str(profile["id"]), role=role.value)

        return LoginResponse(
            access_token=access_token,
            user_id=str(profile["id"]),
            role=role.value,
            name=display_name(profile),
        )
