import uuid
from datetime import datetime, timedelta, timezone

import pytest
from jose import JWTError, jwt

from app.core.config import settings
from app.core.security import create_access_token, decode_access_token


def _token(**claims):
    payload = {
        "sub": str(uuid.uuid4()),
        "aud": "authenticated",
        "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
    }
    payload.update(claims)
    return jwt.encode(payload, settings.SUPABASE_JWT_SECRET, algorithm="HS256")


def test_round_trip_returns_subject_uuid():
    user_id = uuid.uuid4()
    assert decode_access_token(create_access_token(str(user_id))) == user_id


def test_expired_token_is_rejected():
    with pytest.raises(JWTError):
        decode_access_token(_token(exp=datetime.now(timezone.utc) - timedelta(minutes=1)))


def test_wrong_audience_is_rejected():
    with pytest.raises(JWTError):
        decode_access_token(_token(aud="anon"))


def test_wrong_secret_is_rejected():
    token = jwt.encode(
        {"sub": str(uuid.uuid4()), "aud": "authenticated"}, "another-secret", algorithm="HS256"
    )
    with pytest.raises(JWTError):
        decode_access_token(token)


def test_non_uuid_subject_is_rejected():
    with pytest.raises(ValueError):
        decode_access_token(_token(sub="user-123"))
