"""Authentication endpoints."""

from fastapi import APIRouter, status

from dental_clinic.dependencies import DatabaseSession
from dental_clinic.schemas.auth import FirebaseAuthRequest, LoginResponse
from dental_clinic.services.auth_service import AuthService

router = APIRouter()


@router.post(
    "/firebase/verify",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    summary="Firebase ID token verification",
)
async def firebase_verify(
    request: FirebaseAuthRequest,
    db: DatabaseSession,
) -> LoginResponse:
    """
    Exchange a Firebase ID token for an API access token.

    The web client signs in with Firebase and sends the resulting ID token;
    the response token carries the caller's id and role (``patient``,
    ``doctor`` or ``admin``).

    Raises:
        UnauthorizedException: If the token is invalid or has no linked profile
    """
    return await AuthService(db).login(request.id_token)
