# app/core/security.py
import uuid
from datetime import datetime, timedelta, timezone

from jose import jwt

from app.core.config import settings


def decode_access_token(token: str) -> uuid.UUID:
    """
    Decode a Supabase access token and return the subject (user id).
    Raises JWTError on any signature/claim failure and ValueError if the
    subject is not a UUID.
    """
    payload = jwt.decode(
        token,
        settings.SUPABASE_JWT_SECRET,
        algorithms=[settings.JWT_ALGORITHM],
        audience=settings.SUPABASE_JWT_AUDIENCE,
    )
    subject = payload.get("sub")
    if not subject:
        raise ValueError("Token has no subject")
    return uuid.UUID(str(subject))


def create_access_token(subject: str, expires_minutes: int = 60) -> str:
    """
    Mint a token shaped like the ones Supabase issues.
    Used by local tooling and tests; production tokens come from Supabase Auth.
    """
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode = {
        "exp": expire,
        "sub": str(subject),
        "aud": settings.SUPABASE_JWT_AUDIENCE,
        "role": "authenticated",
    }
    return jwt.encode(to_encode, settings.SUPABASE_JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
