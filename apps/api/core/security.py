"""
Access token signing and verification (HS256).

Tokens carry the user id in `sub`, a fixed `type` of "access" and the
configured issuer. Anything else (refresh tokens, other issuers, expired
tokens) fails verification.

SECRET_KEY must come from the environment and be 32+ characters.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from uuid import UUID
from jose import ExpiredSignatureError, JWTError, jwt
from core.config import settings

logger = logging.getLogger(__name__)

SECRET_KEY = settings.SECRET_KEY

if len(SECRET_KEY) < 32:
    raise ValueError(
        "SECRET_KEY must be at least 32 characters. "
        "Generate with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""
    )

ALGORITHM = "HS256"
TOKEN_TYPE = "access"


def create_access_token(
    user_id: UUID,
    expires_delta: Optional[timedelta] = None,
    now: Optional[datetime] = None,
) -> str:
    """Sign an access token for one user."""
    issued_at = now or datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {
        "sub": str(user_id),
        "type": TOKEN_TYPE,
        "iss": settings.JWT_ISSUER,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Verified claims, or None when the token must be rejected."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM], issuer=settings.JWT_ISSUER)
    except ExpiredSignatureError:
        logger.info("Rejected expired access token")
        return None
    except JWTError:
        return None

    if payload.get("type") != TOKEN_TYPE:
        return None
    return payload


def user_id_from_token(token: str) -> Optional[UUID]:
    payload = decode_access_token(token)
    if not payload:
        return None
    try:
        return UUID(str(payload.get("sub")))
    except ValueError:
        return None
