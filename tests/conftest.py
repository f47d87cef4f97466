"""
Shared fixtures: in-memory database, API client, factories and fakes.
"""
import os

# Settings are read at import time, so configure them before importing carwash
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["NOTIFICATION_PROVIDER"] = "console"
os.environ["REMINDER_SCHEDULER_ENABLED"] = "false"

from datetime import datetime, time, timedelta
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from carwash.api.app import app
from carwash.lib.clock import local_now
from carwash.lib.db import SessionLocal, drop_db, init_db
from carwash.lib.jwt import create_access_token
from carwash.lib.metrics import reset_metrics
from carwash.lib.rate_limiter import get_login_rate_limiter
from carwash.models.bookings import Booking, BookingStatus
from carwash.models.services import Service, ServiceAddOn, ServiceCategory
from carwash.models.users import User, UserRole
from carwash.services.auth_service import hash_password
from carwash.services.notification_service import (
    NotificationChannel,
    NotificationDispatcher,
    NotificationProvider,
    get_notification_dispatcher,
)

CRON_SECRET = "test-cron-secret"


# ----- Fakes -----

class RecordingProvider(NotificationProvider):
    """Provider that records every message and optionally fails."""

    def __init__(self, channel: NotificationChannel, succeed: bool = True, error: Optional[Exception] = None):
        self._channel = channel
        self.succeed = succeed
        self.error = error
        self.sent: List[dict] = []

    @property
    def channel(self) -> NotificationChannel:
        return self._channel

    async def send(self, to: str, message: str, **kwargs) -> bool:
        if self.error is not None:
            raise self.error
        self.sent.append({"to": to, "message": message, **kwargs})
        return self.succeed


class FakeRateLimiter:
    """In-memory stand-in for the Redis limiter."""

    def __init__(self, max_attempts: int = 3):
        self.max_attempts = max_attempts
        self.counts: Dict[str, int] = {}

    def check(self, key: str) -> bool:
        return self.counts.get(key, 0) < self.max_attempts

    def record_failure(self, key: str) -> int:
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    def clear(self, key: str) -> None:
        self.counts.pop(key, None)


# ----- Database -----

@pytest.fixture(autouse=True)
def _database():
    """Fresh schema and metrics for every test."""
    init_db()
    reset_metrics()
    yield
    drop_db()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


# ----- API -----

@pytest.fixture
def email_provider():
    return RecordingProvider(NotificationChannel.EMAIL)


@pytest.fixture
def sms_provider():
    return RecordingProvider(NotificationChannel.SMS)


@pytest.fixture
def dispatcher(email_provider, sms_provider):
    return NotificationDispatcher({
        NotificationChannel.EMAIL: email_provider,
        NotificationChannel.SMS: sms_provider,
    })


@pytest.fixture
def rate_limiter():
    return FakeRateLimiter()


@pytest.fixture
def client(dispatcher, rate_limiter):
    app.dependency_overrides[get_notification_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_login_rate_limiter] = lambda: rate_limiter
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        token = create_access_token(user_id=str(user.id), role=user.role.value)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def cron_headers() -> dict:
    return {"Authorization": f"Bearer {CRON_SECRET}"}


# ----- Factories -----

@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(
        role: UserRole = UserRole.CUSTOMER,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        sms_notifications: bool = False,
        password: Optional[str] = None,
        first_name: str = "Thandi",
        last_name: str = "Mokoena",
    ) -> User:
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            name=f"{first_name} {last_name}",
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            role=role,
            sms_notifications=sms_notifications,
            password_hash=hash_password(password) if password else None,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def make_service(db):
    def _make(
        key: Optional[str] = "premium",
        name: str = "Premium Wash & Wax",
        price: int = 15000,
        duration: int = 30,
        category: ServiceCategory = ServiceCategory.PREMIUM,
        is_active: bool = True,
    ) -> Service:
        service = Service(
            key=key,
            name=name,
            category=category,
            price=price,
            duration=duration,
            is_active=is_active,
        )
        db.add(service)
        db.commit()
        return service

    return _make


@pytest.fixture
def make_add_on(db):
    def _make(name: str = "Tire Shine", price: int = 2500, is_active: bool = True) -> ServiceAddOn:
        add_on = ServiceAddOn(name=name, price=price, is_active=is_active)
        db.add(add_on)
        db.commit()
        return add_on

    return _make


@pytest.fixture
def make_booking(db):
    def _make(
        user: User,
        service: Service,
        starts_at: datetime,
        status: BookingStatus = BookingStatus.CONFIRMED,
        sms_notifications: bool = False,
        notes: Optional[str] = None,
        completed_at: Optional[datetime] = None,
    ) -> Booking:
        booking = Booking(
            user_id=user.id,
            service_id=service.id,
            booking_date=datetime.combine(starts_at.date(), time.min),
            time_slot=f"{starts_at:%H:%M}",
            status=status,
            base_amount=service.price,
            add_on_amount=0,
            total_amount=service.price,
            notes=notes,
            sms_notifications=sms_notifications,
            completed_at=completed_at,
        )
        db.add(booking)
        db.commit()
        return booking

    return _make


@pytest.fixture
def minutes_from_now():
    """Slot start `minutes` ahead of the local clock, truncated to the minute."""
    def _at(minutes: float) -> datetime:
        return (local_now() + timedelta(minutes=minutes)).replace(second=0, microsecond=0)

    return _at
