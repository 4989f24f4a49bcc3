from datetime import datetime, timedelta, timezone

import jwt

from agenda.core import config

REQUIRED_CLAIMS = ["sub", "exp"]


def create_access_token(owner_id: int, expires_minutes: int | None = None) -> str:
    issued_at = datetime.now(timezone.utc)
    lifetime = timedelta(minutes=expires_minutes or config.JWT_EXPIRES_MINUTES)
    payload = {"sub": str(owner_id), "iat": issued_at, "exp": issued_at + lifetime}
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(
        token,
        config.JWT_SECRET_KEY,
        algorithms=[config.JWT_ALGORITHM],
        options={"require": REQUIRED_CLAIMS},
    )


def owner_id_from_token(token: str) -> int | None:
    """Return the owner id a token was issued for, or None for a malformed subject.

    Raises ``jwt.PyJWTError`` when the token itself is invalid or expired.
    """
    subject = str(decode_access_token(token)["sub"])
    return int(subject) if subject.isdigit() else None
