from datetime import datetime, timedelta, timezone

import jwt

from backend.core import config

SUBJECT_USER = "user"
SUBJECT_GOOGLE = "google"

LINK_TOKEN_EXPIRES_MINUTES = 10


def create_access_token(subject: str, subject_type: str = SUBJECT_USER, expires_minutes: int | None = None) -> str:
    expire_minutes = expires_minutes or config.JWT_EXPIRES_MINUTES
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(subject),
        "sub_type": subject_type,
        "exp": now + timedelta(minutes=expire_minutes),
        "iat": now,
    }
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])


def create_link_token(email: str, google_id: str, expires_minutes: int | None = None) -> str:
    """Token handed to the client when an external sign-in matches an existing local email."""
    now = datetime.now(timezone.utc)
    payload = {
        "userEmail": email,
        "googleID": google_id,
        "exp": now + timedelta(minutes=expires_minutes or LINK_TOKEN_EXPIRES_MINUTES),
        "iat": now,
    }
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_link_token(token: str) -> tuple[str, str]:
    """Return ``(email, google_id)`` from a link token.

    Raises ``jwt.InvalidTokenError`` for a bad signature, an expired token or
    missing claims.
    """
    payload = jwt.decode(
        token,
        config.JWT_SECRET_KEY,
        algorithms=[config.JWT_ALGORITHM],
        options={"require": ["exp", "userEmail", "googleID"]},
    )
    email = payload["userEmail"]
    google_id = payload["googleID"]
    if not isinstance(email, str) or not email or not google_id:
        raise jwt.InvalidTokenError("Link token claims are empty")
    return email, str(google_id)
