"""Firebase Admin SDK initialization and identity helpers."""

import json
import os

import firebase_admin
from firebase_admin import auth, credentials
from structlog import get_logger

logger = get_logger(__name__)

_firebase_app: firebase_admin.App | None = None


def initialize_firebase(
    firebase_credentials_path: str | None = None, firebase_config_json: str | None = None
) -> None:
    """
    Initialize Firebase Admin SDK.

    Args:
        firebase_credentials_path: Optional path to service account JSON file.
        firebase_config_json: Optional raw JSON string of service account.

    Falls back to Application Default Credentials when neither is given.
    """
    global _firebase_app

    if _firebase_app is not None:
        logger.info("firebase_already_initialized")
        return

    try:
        cred = None

        if firebase_config_json:
            logger.info("firebase_init_from_json")
            cred = credentials.Certificate(json.loads(firebase_config_json))
        elif firebase_credentials_path and os.path.exists(firebase_credentials_path):
            logger.info("firebase_init_from_file", path=firebase_credentials_path)
            cred = credentials.Certificate(firebase_credentials_path)

        if cred:
            _firebase_app = firebase_admin.initialize_app(cred)
        else:
            _firebase_app = firebase_admin.initialize_app()
            logger.info("firebase_init_default_credentials")

    except Exception as e:
        logger.error("firebase_init_failed", error=str(e))
        raise


async def verify_firebase_token(id_token: str) -> dict:
    """
    Verify a Firebase ID token.

    Args:
        id_token: Firebase ID token from the client

    Returns:
        Decoded token containing user information

    Raises:
        ValueError: If token is invalid or expired
    """
    try:
        decoded_token = auth.verify_id_token(id_token, clock_skew_seconds=10)

        logger.info(
            "firebase_token_verified",
            uid=decoded_token.get("uid"),
            email=decoded_token.get("email"),
        )

        return decoded_token

    except auth.InvalidIdTokenError as e:
        logger.warning("firebase_token_invalid", error=str(e))
        raise ValueError(f"Invalid Firebase ID token: {e!s}")
    except Exception as e:
        logger.error("firebase_token_verification_failed", error=str(e))
        raise ValueError(f"Token verification failed: {e!s}")


def create_identity(email: str, password: str, display_name: str | None = None) -> str:
    """
    Create a Firebase account through the Admin SDK.

    The account is created server-side, so no client session (the acting
    staff member's included) is signed in or out as a side effect.

    Returns:
        The new account's Firebase UID

    Raises:
        ValueError: If the identity provider rejects the account
    """
    try:
        record = auth.create_user(
            email=email,
            password=password,
            display_name=display_name,
            email_verified=False,
        )
    except auth.EmailAlreadyExistsError as e:
        raise ValueError("An account with this email already exists") from e
    except Exception as e:
        logger.error("firebase_create_user_failed", error=str(e))
        raise ValueError(f"Could not create account: {e!s}") from e

    logger.info("firebase_user_created", uid=record.uid)
    return record.uid


def delete_identity(firebase_uid: str) -> bool:
    """
    Delete a Firebase account through the Admin SDK.

    Returns:
        True when the account was removed, False when the provider refused
    """
    try:
        auth.delete_user(firebase_uid)
    except Exception as e:
        logger.error("firebase_delete_user_failed", uid=firebase_uid, error=str(e))
        return False

    logger.info("firebase_user_deleted", uid=firebase_uid)
    return True
