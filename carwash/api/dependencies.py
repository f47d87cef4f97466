"""
API dependencies for FastAPI dependency injection.

Provides common dependencies like database sessions and authentication.
"""
import hmac
from typing import Optional
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from carwash.api.middleware.error_handler import ForbiddenException, UnauthorizedException
from carwash.lib.db import get_db as get_db_session
from carwash.lib.jwt import InvalidTokenError, verify_token
from carwash.lib.settings import settings
from carwash.models.users import User, UserRole


# Re-export get_db for convenience
get_db = get_db_session


# HTTP Bearer token security scheme; missing headers are reported as 401 below
security = HTTPBearer(auto_error=False)


def _user_from_token(token: str, db: Session) -> User:
    try:
        payload = verify_token(token)
    except InvalidTokenError:
        raise UnauthorizedException("Invalid authentication token")

    try:
        user_id = UUID(str(payload.get("sub")))
    except ValueError:
        raise UnauthorizedException("Invalid authentication token")

    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise UnauthorizedException("User not found")
    return user


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Dependency to get current authenticated user from JWT token.

    Raises:
        UnauthorizedException: 401 if the token is missing, invalid, or the user is gone
    """
    if credentials is None:
        raise UnauthorizedException("Not authenticated")
    return _user_from_token(credentials.credentials, db)


def require_staff(user: User = Depends(get_current_user)) -> User:
    """Allow STAFF and ADMIN users only."""
    if not user.is_staff:
        raise ForbiddenException("Staff access required")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    """Allow ADMIN users only."""
    if user.role != UserRole.ADMIN:
        raise ForbiddenException("Admin access required")
    return user


def is_cron_secret(token: Optional[str]) -> bool:
    """True when a cron secret is configured and the token matches it."""
    if not settings.cron_secret or not token:
        return False
    return hmac.compare_digest(token, settings.cron_secret)


def verify_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> None:
    """
    Authorize the cron trigger.

    When no cron secret is configured the check is skipped.
    """
    if not settings.cron_secret:
        return
    if credentials is None or not is_cron_secret(credentials.credentials):
        raise UnauthorizedException("Unauthorized")


def require_staff_or_cron(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """
    Allow the cron secret or a STAFF/ADMIN bearer token.

    Returns:
        The staff user, or None for the cron caller
    """
    if credentials is None:
        raise UnauthorizedException("Not authenticated")
    if is_cron_secret(credentials.credentials):
        return None

    user = _user_from_token(credentials.credentials, db)
    if not user.is_staff:
        raise ForbiddenException("Staff access required")
    return user


def client_ip(request: Request) -> str:
    """Client address, preferring the first X-Forwarded-For hop."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
