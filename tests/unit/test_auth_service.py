"""Tests for authentication service."""
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest

from carwash.api.middleware.error_handler import TooManyRequestsException, UnauthorizedException
from carwash.lib.jwt import verify_token
from carwash.models.users import User, UserRole
from carwash.services.auth_service import AuthService, hash_password, verify_password

NOW = datetime(2030, 1, 15, 10, 0)


class MemoryLimiter:
    def __init__(self, allowed=True):
        self.allowed = allowed
        self.failures = []
        self.cleared = []

    def check(self, key):
        return self.allowed

    def record_failure(self, key):
        self.failures.append(key)
        return len(self.failures)

    def clear(self, key):
        self.cleared.append(key)


@pytest.fixture
def mock_session():
    """Create mock database session."""
    return MagicMock()


@pytest.fixture
def user():
    return User(
        email="thandi@example.com",
        name="Thandi Mokoena",
        role=UserRole.STAFF,
        password_hash=hash_password("correct horse"),
        failed_login_count=0,
        is_active=True,
    )


def _returns(session, user):
    result = MagicMock()
    result.scalar_one_or_none.return_value = user
    session.execute.return_value = result


@pytest.mark.unit
def test_hash_and_verify_password():
    hashed = hash_password("s3cret")

    assert hashed != "s3cret"
    assert verify_password("s3cret", hashed) is True
    assert verify_password("wrong", hashed) is False
    assert verify_password("s3cret", None) is False
    assert verify_password("s3cret", "not-a-bcrypt-hash") is False


@pytest.mark.unit
def test_login_success(mock_session, user):
    _returns(mock_session, user)
    limiter = MemoryLimiter()

    result = AuthService(mock_session, limiter).login("Thandi@Example.com", "correct horse", "10.0.0.1", now=NOW)

    assert result["role"] == "STAFF"
    assert verify_token(result["token"])["role"] == "STAFF"
    assert limiter.cleared == ["login:thandi@example.com:10.0.0.1"]
    assert user.last_login_at == NOW
    mock_session.commit.assert_called()


@pytest.mark.unit
def test_wrong_password_records_failure(mock_session, user):
    _returns(mock_session, user)
    limiter = MemoryLimiter()

    with pytest.raises(UnauthorizedException) as exc_info:
        AuthService(mock_session, limiter).login("thandi@example.com", "nope", "10.0.0.1", now=NOW)

    assert exc_info.value.message == "Invalid email or password"
    assert limiter.failures == ["login:thandi@example.com:10.0.0.1"]
    assert user.failed_login_count == 1
    assert user.locked_until is None


@pytest.mark.unit
def test_unknown_email_is_unauthorized(mock_session):
    _returns(mock_session, None)
    limiter = MemoryLimiter()

    with pytest.raises(UnauthorizedException):
        AuthService(mock_session, limiter).login("ghost@example.com", "whatever", "10.0.0.1", now=NOW)

    assert len(limiter.failures) == 1


@pytest.mark.unit
def test_repeated_failures_lock_the_user(mock_session, user):
    _returns(mock_session, user)
    service = AuthService(mock_session, MemoryLimiter())

    for _ in range(3):
        with pytest.raises(UnauthorizedException):
            service.login("thandi@example.com", "nope", "10.0.0.1", now=NOW)

    assert user.locked_until == NOW + timedelta(seconds=900)

    with pytest.raises(TooManyRequestsException):
        service.login("thandi@example.com", "correct horse", "10.0.0.1", now=NOW + timedelta(minutes=1))


@pytest.mark.unit
def test_rate_limited_key_is_rejected(mock_session, user):
    _returns(mock_session, user)

    with pytest.raises(TooManyRequestsException) as exc_info:
        AuthService(mock_session, MemoryLimiter(allowed=False)).login(
            "thandi@example.com", "correct horse", "10.0.0.1", now=NOW
        )

    assert exc_info.value.status_code == 429
    mock_session.execute.assert_not_called()
