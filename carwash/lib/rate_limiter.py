"""
Login attempt rate limiting backed by Redis.

Counters live in the shared cache so every API instance sees the same
lockout state. Each key holds the number of failed attempts and expires
after the lockout window.

Usage:
    limiter = get_login_rate_limiter()
    key = login_key(email, ip)
    if not limiter.check(key):
        ...  # reject with 429
    limiter.record_failure(key)   # on bad credentials
    limiter.clear(key)            # on success
"""
from typing import Optional, Protocol

import redis

from carwash.lib.logging import get_logger
from carwash.lib.settings import settings

logger = get_logger(__name__)

KEY_PREFIX = "login"

_redis_client: Optional[redis.Redis] = None
_limiter: Optional["RedisLoginRateLimiter"] = None


class LoginRateLimiter(Protocol):
    """Interface every login rate limiter implements."""

    def check(self, key: str) -> bool:
        """Return True while the key is still allowed to attempt a login."""
        ...

    def record_failure(self, key: str) -> int:
        """Count a failed attempt and return the current total."""
        ...

    def clear(self, key: str) -> None:
        """Forget all failures for the key."""
        ...


def login_key(email: str, ip: str) -> str:
    """Build the rate-limit key for an email/IP pair."""
    return f"{KEY_PREFIX}:{email.strip().lower()}:{ip}"


class RedisLoginRateLimiter:
    """
    Fixed-window failure counter stored in Redis.

    The window starts at the first failure: INCR and EXPIRE NX run in one
    transaction, so a counted key always has a TTL (needs Redis 7).
    Redis errors fail open and are logged,
    the per-user lock on the users table still applies.
    """

    def __init__(
        self,
        client: redis.Redis,
        max_attempts: int = 3,
        window_seconds: int = 900,
    ):
        self.client = client
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds

    def check(self, key: str) -> bool:
        try:
            count = self.client.get(key)
        except redis.RedisError as e:
            logger.error(f"Rate limit check failed, allowing attempt: {e}", extra={"key": key})
            return True

        return count is None or int(count) < self.max_attempts

    def record_failure(self, key: str) -> int:
        try:
            pipe = self.client.pipeline(transaction=True)
            pipe.incr(key)
            pipe.expire(key, self.window_seconds, nx=True)
            count, _ = pipe.execute()
        except redis.RedisError as e:
            logger.error(f"Failed to record login failure: {e}", extra={"key": key})
            return 0

        if count >= self.max_attempts:
            logger.warning("Login rate limit reached", extra={"key": key, "attempts": count})
        return int(count)

    def clear(self, key: str) -> None:
        try:
            self.client.delete(key)
        except redis.RedisError as e:
            logger.error(f"Failed to clear login failures: {e}", extra={"key": key})


def get_redis_client() -> redis.Redis:
    """Get or create the shared Redis client."""
    global _redis_client

    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            health_check_interval=30,
        )
        logger.info("Redis client initialized for login rate limiting")

    return _redis_client


def get_login_rate_limiter() -> LoginRateLimiter:
    """FastAPI dependency returning the process-wide limiter."""
    global _limiter

    if _limiter is None:
        _limiter = RedisLoginRateLimiter(
            get_redis_client(),
            max_attempts=settings.login_max_attempts,
            window_seconds=settings.login_lockout_seconds,
        )

    return _limiter
