"""Authentication service for email/password login.

Handles:
1. Password hashing and verification (bcrypt)
2. Login with shared rate limiting per email/IP pair
3. Per-user lockout after repeated failures
4. JWT issue on success
"""
from datetime import datetime, timedelta
from typing import Optional

import bcrypt
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from carwash.api.middleware.error_handler import TooManyRequestsException, UnauthorizedException
from carwash.lib.clock import local_now
from carwash.lib.jwt import create_access_token
from carwash.lib.logging import get_logger
from carwash.lib.rate_limiter import LoginRateLimiter, login_key
from carwash.lib.settings import settings
from carwash.models.users import User

logger = get_logger(__name__)


def hash_password(password: str) -> str:
    """Hash a password with a fresh bcrypt salt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """Check a password against a stored bcrypt hash."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


class AuthService:
    """Password login with rate limiting.

    The rate limiter is keyed by email and client IP and lives in a shared
    store. Independently, a user row is locked for the lockout window after
    `login_max_attempts` consecutive failures, which still protects the
    account when the shared store is unreachable.
    """

    def __init__(self, session: Session, rate_limiter: LoginRateLimiter):
        """Initialize auth service.

        Args:
            session: SQLAlchemy session for database operations
            rate_limiter: Shared failed-attempt counter
        """
        self.session = session
        self.rate_limiter = rate_limiter

    def _find_user(self, email: str) -> Optional[User]:
        stmt = select(User).where(func.lower(User.email) == email.strip().lower())
        return self.session.execute(stmt).scalar_one_or_none()

    def _record_failure(self, key: str, user: Optional[User], now: datetime) -> None:
        self.rate_limiter.record_failure(key)
        if user is None:
            return

        user.failed_login_count = (user.failed_login_count or 0) + 1
        if user.failed_login_count >= settings.login_max_attempts:
            user.locked_until = now + timedelta(seconds=settings.login_lockout_seconds)
            logger.warning(
                "User locked after repeated login failures",
                extra={"user_id": str(user.id), "locked_until": user.locked_until},
            )
        self.session.commit()

    def login(self, email: str, password: str, ip: str, now: Optional[datetime] = None) -> dict:
        """Verify credentials and issue a JWT.

        Args:
            email: Account email (case-insensitive)
            password: Plain-text password
            ip: Client IP, part of the rate-limit key
            now: Naive local time (defaults to the current time)

        Returns:
            {"token", "user_id", "role"}

        Raises:
            TooManyRequestsException: Rate limit reached or account locked
            UnauthorizedException: Unknown email, inactive user or wrong password
        """
        now = now or local_now()
        key = login_key(email, ip)

        if not self.rate_limiter.check(key):
            logger.warning("Login blocked by rate limiter", extra={"key": key})
            raise TooManyRequestsException(
                "Too many login attempts. Please try again later.",
                retry_after_seconds=settings.login_lockout_seconds,
            )

        user = self._find_user(email)

        if user is not None and user.locked_until and user.locked_until > now:
            raise TooManyRequestsException(
                "Account temporarily locked. Please try again later.",
                retry_after_seconds=int((user.locked_until - now).total_seconds()),
            )

        if user is None or not user.is_active or not verify_password(password, user.password_hash):
            self._record_failure(key, user, now)
            raise UnauthorizedException("Invalid email or password")

        self.rate_limiter.clear(key)
        user.failed_login_count = 0
        user.locked_until = None
        user.last_login_at = now
        self.session.commit()

        role = user.role.value
        logger.info("User logged in", extra={"user_id": str(user.id), "role": role})

        return {
            "token": create_access_token(user_id=str(user.id), role=role),
            "user_id": str(user.id),
            "role": role,
        }
