"""Authentication schemas."""

from pydantic import BaseModel, Field


class FirebaseAuthRequest(BaseModel):
    """Firebase ID token authentication request."""

    id_token: str = Field(..., description="Firebase ID token from the web client")


class LoginResponse(BaseModel):
    """Access token plus the resolved principal."""

    access_token: str
    token_type: str = "bearer"
    user_id: str
    role: str
    name: str
