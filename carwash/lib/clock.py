"""
Wall-clock helpers for the business timezone.

Bookings are scheduled in local time (a date plus an "HH:MM" slot label), so
every comparison against "now" uses naive datetimes in the configured zone.
"""
from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from carwash.lib.settings import settings


def local_now() -> datetime:
    """Current naive datetime in the business timezone."""
    return datetime.now(ZoneInfo(settings.business_timezone)).replace(tzinfo=None)


def parse_time_slot(time_slot: str) -> time:
    """
    Parse an "HH:MM" slot label.

    Raises:
        ValueError: If the label is not a valid 24-hour time
    """
    hours, minutes = time_slot.strip().split(":")
    return time(int(hours), int(minutes))


def slot_start(booking_date: date, time_slot: str) -> datetime:
    """Combine a booking date and slot label into the scheduled start."""
    return datetime.combine(booking_date, parse_time_slot(time_slot))


def parse_booking_date(value: str) -> date:
    """
    Parse a date query value into a local calendar day.

    Accepts "YYYY-MM-DD" or a full ISO timestamp; aware timestamps are
    converted to the business timezone before taking the date.

    Raises:
        ValueError: If the value is not a valid date
    """
    value = value.strip()
    if len(value) == 10:
        return date.fromisoformat(value)

    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(ZoneInfo(settings.business_timezone))
    return parsed.date()


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Inclusive [00:00:00.000, 23:59:59.999] range of a local day."""
    start = datetime.combine(day, time.min)
    end = datetime.combine(day, time(23, 59, 59, 999000))
    return start, end
