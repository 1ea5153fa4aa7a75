"""
Authentication dependencies.

Resolves the bearer token on each request to the owning User row.
Token issuance (login, refresh) lives outside this service.
"""
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional

from core.database import get_db
from core.exceptions import UnauthorizedError
from core.security import user_id_from_token
from models import User

# auto_error=False so a missing header raises our 401
security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Resolve the bearer token to its User.

    Raises UnauthorizedError when the header is missing, the token fails
    verification, or the user no longer exists.
    """
    # Missing credentials are a 401, not HTTPBearer's default 403
    if not credentials:
        raise UnauthorizedError("Not authenticated")

    user_id = user_id_from_token(credentials.credentials)
    if user_id is None:
        raise UnauthorizedError("Invalid authentication credentials")

    user = db.get(User, user_id)
    if not user:
        raise UnauthorizedError("User not found")

    return user
