"""
Tests for access token signing and verification.
"""
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from jose import jwt

from core.config import settings
from core.security import ALGORITHM, SECRET_KEY, create_access_token, decode_access_token, user_id_from_token


def test_round_trip_yields_user_id():
    user_id = uuid4()
    assert user_id_from_token(create_access_token(user_id)) == user_id


def test_expired_token_is_rejected():
    issued = datetime.now(timezone.utc) - timedelta(days=2)
    token = create_access_token(uuid4(), expires_delta=timedelta(hours=1), now=issued)
    assert decode_access_token(token) is None


def test_wrong_issuer_is_rejected():
    token = jwt.encode(
        {"sub": str(uuid4()), "type": "access", "iss": "someone-else",
         "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        SECRET_KEY, algorithm=ALGORITHM,
    )
    assert decode_access_token(token) is None


def test_refresh_token_type_is_rejected():
    token = jwt.encode(
        {"sub": str(uuid4()), "type": "refresh", "iss": settings.JWT_ISSUER,
         "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        SECRET_KEY, algorithm=ALGORITHM,
    )
    assert decode_access_token(token) is None


def test_non_uuid_subject_has_no_user():
    token = jwt.encode(
        {"sub": "42", "type": "access", "iss": settings.JWT_ISSUER,
         "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        SECRET_KEY, algorithm=ALGORITHM,
    )
    assert decode_access_token(token) is not None
    assert user_id_from_token(token) is None


def test_token_signed_with_other_key_is_rejected():
    token = jwt.encode(
        {"sub": str(uuid4()), "type": "access", "iss": settings.JWT_ISSUER,
         "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        "x" * 40, algorithm=ALGORITHM,
    )
    assert decode_access_token(token) is None
