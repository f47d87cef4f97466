"""
Slot availability checks.

Counts active bookings (CONFIRMED or IN_PROGRESS) for a local day and time
slot. Lookups are read-only and take no locks, so a check followed by a
separate booking insert can race with another client doing the same; two
requests may both see spare capacity and both book the last place.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from carwash.api.middleware.error_handler import BadRequestException
from carwash.lib.clock import day_bounds, local_now, parse_booking_date
from carwash.lib.logging import get_logger
from carwash.lib.metrics import get_metrics_collector
from carwash.lib.settings import settings
from carwash.models.bookings import ACTIVE_STATUSES, Booking
from carwash.models.services import Service, service_key_for_name, service_name_for_key

logger = get_logger(__name__)


class CapacityPolicy:
    """
    Concurrent bookings a slot accepts.

    A per-service override wins over the default. The slot label is part of
    the signature so slot-specific limits can be added without touching
    callers.
    """

    def __init__(self, default_capacity: int = 10, overrides: Optional[Dict[str, int]] = None):
        self.default_capacity = default_capacity
        self.overrides = dict(overrides or {})

    @classmethod
    def from_settings(cls) -> "CapacityPolicy":
        return cls(settings.default_slot_capacity, settings.slot_capacity_overrides)

    def capacity_for(self, time_slot: str, service_key: Optional[str] = None) -> int:
        if service_key and service_key in self.overrides:
            return self.overrides[service_key]
        return self.default_capacity


@dataclass
class SlotAvailability:
    """Aggregates for a single (date, time slot) pair."""
    date: str
    time_slot: str
    booking_count: int
    service_specific_bookings: int
    total_day_bookings: int
    services: List[str] = field(default_factory=list)
    checked_at: datetime = field(default_factory=local_now)


@dataclass
class BatchAvailability:
    """One date x slot combination of a batch check."""
    date: str
    time_slot: str
    booking_count: int
    capacity: int
    available: bool


def parse_date(value: str) -> date:
    """
    Parse a requested day, mapping bad input to a 400.

    Raises:
        BadRequestException: If the value is not a valid date
    """
    try:
        return parse_booking_date(value)
    except (TypeError, ValueError):
        raise BadRequestException(
            f"Invalid date: {value!r}",
            details={"date": value},
        ) from None


class AvailabilityService:
    """Answers slot capacity questions against the bookings table."""

    def __init__(self, db: Session, capacity_policy: Optional[CapacityPolicy] = None):
        self.db = db
        self.capacity_policy = capacity_policy or CapacityPolicy.from_settings()

    def _active_in_day(self, day: date):
        start, end = day_bounds(day)
        return (
            Booking.booking_date >= start,
            Booking.booking_date <= end,
            Booking.status.in_(ACTIVE_STATUSES),
        )

    def count_slot(self, day: date, time_slot: str) -> int:
        """Active bookings in one slot of a local day."""
        stmt = (
            select(func.count())
            .select_from(Booking)
            .where(*self._active_in_day(day), Booking.time_slot == time_slot)
        )
        return self.db.scalar(stmt) or 0

    def count_day(self, day: date) -> int:
        stmt = select(func.count()).select_from(Booking).where(*self._active_in_day(day))
        return self.db.scalar(stmt) or 0

    def count_service(self, day: date, time_slot: str, service_key: str) -> int:
        """
        Active bookings in the slot whose service name contains the catalogue
        name for service_key (case-insensitive). Unknown keys count as 0.
        """
        service_name = service_name_for_key(service_key)
        if not service_name:
            return 0

        stmt = (
            select(func.count())
            .select_from(Booking)
            .join(Service, Booking.service_id == Service.id)
            .where(
                *self._active_in_day(day),
                Booking.time_slot == time_slot,
                func.lower(Service.name).contains(service_name.lower(), autoescape=True),
            )
        )
        return self.db.scalar(stmt) or 0

    def slot_services(self, day: date, time_slot: str) -> List[str]:
        """Catalogue keys of the active bookings in the slot; unknown names dropped."""
        stmt = (
            select(Service.name)
            .select_from(Booking)
            .join(Service, Booking.service_id == Service.id)
            .where(*self._active_in_day(day), Booking.time_slot == time_slot)
        )
        keys = [service_key_for_name(name) for name in self.db.scalars(stmt)]
        return [key for key in keys if key]

    def check_slot(
        self,
        date_value: str,
        time_slot: str,
        service_id: Optional[str] = None,
        include_services: bool = False,
    ) -> SlotAvailability:
        """
        Aggregates for one slot.

        Raises:
            BadRequestException: If date or time slot is missing or the date is malformed
        """
        if not date_value or not time_slot:
            raise BadRequestException("Date and timeSlot are required")

        day = parse_date(date_value)

        result = SlotAvailability(
            date=date_value,
            time_slot=time_slot,
            booking_count=self.count_slot(day, time_slot),
            service_specific_bookings=self.count_service(day, time_slot, service_id) if service_id else 0,
            total_day_bookings=self.count_day(day),
            services=self.slot_services(day, time_slot) if include_services else [],
        )

        get_metrics_collector().increment_availability_checks("single")
        logger.info(
            "Availability check",
            extra={
                "date": date_value,
                "time_slot": time_slot,
                "booking_count": result.booking_count,
                "service_specific_bookings": result.service_specific_bookings,
                "total_day_bookings": result.total_day_bookings,
            },
        )
        return result

    def check_batch(
        self,
        dates: Sequence[str],
        time_slots: Sequence[str],
        service_id: Optional[str] = None,
    ) -> List[BatchAvailability]:
        """
        Availability for every date x slot combination, date-major.

        All dates are parsed before any counting so a malformed entry fails
        the whole request.

        Raises:
            BadRequestException: If any date is malformed
        """
        days = [(value, parse_date(value)) for value in dates]

        results = []
        for date_value, day in days:
            for time_slot in time_slots:
                count = self.count_slot(day, time_slot)
                capacity = self.capacity_policy.capacity_for(time_slot, service_id)
                results.append(
                    BatchAvailability(
                        date=date_value,
                        time_slot=time_slot,
                        booking_count=count,
                        capacity=capacity,
                        available=count < capacity,
                    )
                )

        get_metrics_collector().increment_availability_checks("batch")
        logger.info(
            "Batch availability check",
            extra={"dates": len(days), "time_slots": len(time_slots), "service_id": service_id},
        )
        return results
