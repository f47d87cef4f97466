"""
Tests for reminder window selection and reminder text.
"""
from datetime import datetime, timedelta
from uuid import UUID

import pytest

from carwash.api.middleware.error_handler import BadRequestException
from carwash.models.booking_reminders import BookingReminder, ReminderType
from carwash.models.bookings import Booking, BookingStatus
from carwash.models.services import Service
from carwash.models.users import User
from carwash.services.reminder_service import (
    REMINDER_WINDOWS,
    booking_reference,
    compose_reminder_email,
    compose_reminder_text,
    find_due_reminders,
    has_sent_reminder,
    parse_reminder_type,
)

NOW = datetime(2030, 1, 14, 9, 0)


@pytest.mark.unit
@pytest.mark.parametrize(
    "until, expected",
    [
        (timedelta(hours=23), True),
        (timedelta(hours=24), True),
        (timedelta(hours=22), False),
        (timedelta(hours=21), False),
        (timedelta(hours=24, minutes=1), False),
    ],
)
def test_twenty_four_hour_window(until, expected):
    assert REMINDER_WINDOWS[ReminderType.TWENTY_FOUR_HOUR].contains(until) is expected


@pytest.mark.unit
@pytest.mark.parametrize(
    "until, expected",
    [
        (timedelta(hours=2), True),
        (timedelta(minutes=100), True),
        (timedelta(minutes=90), False),
        (timedelta(minutes=121), False),
    ],
)
def test_two_hour_window(until, expected):
    assert REMINDER_WINDOWS[ReminderType.TWO_HOUR].contains(until) is expected


@pytest.mark.unit
@pytest.mark.parametrize(
    "until, expected",
    [
        (timedelta(minutes=30), True),
        (timedelta(minutes=27), True),
        (timedelta(minutes=25), False),
        (timedelta(minutes=31), False),
    ],
)
def test_thirty_minute_window(until, expected):
    assert REMINDER_WINDOWS[ReminderType.THIRTY_MIN].contains(until) is expected


@pytest.mark.unit
def test_parse_reminder_type():
    assert parse_reminder_type("2_hour") == ReminderType.TWO_HOUR

    with pytest.raises(BadRequestException) as exc_info:
        parse_reminder_type("1_week")
    assert exc_info.value.message == "Invalid reminder type"


@pytest.mark.unit
def test_booking_reference_is_last_eight_hex_digits():
    booking_id = UUID("12345678-1234-5678-1234-56789abcdef0")
    assert booking_reference(booking_id) == "9ABCDEF0"


@pytest.mark.unit
def test_has_sent_reminder_ignores_unsent_rows():
    booking = Booking(reminders=[
        BookingReminder(reminder_type=ReminderType.TWO_HOUR, sent_at=None),
        BookingReminder(reminder_type=ReminderType.TWENTY_FOUR_HOUR, sent_at=NOW),
    ])

    assert has_sent_reminder(booking, ReminderType.TWENTY_FOUR_HOUR)
    assert not has_sent_reminder(booking, ReminderType.TWO_HOUR)


@pytest.mark.unit
def test_reminder_text_and_email():
    booking = Booking(
        id=UUID("12345678-1234-5678-1234-56789abcdef0"),
        booking_date=datetime(2030, 1, 15),
        time_slot="09:00",
        total_amount=17500,
        plate_number="CA 123-456",
        notes="Mind the roof rack",
    )
    booking.user = User(name="Thandi Mokoena", first_name="Thandi", last_name="Mokoena")
    booking.service = Service(name="Premium Wash & Wax")

    text = compose_reminder_text(booking, ReminderType.TWENTY_FOUR_HOUR)
    assert text == "Reminder: Your car wash appointment is tomorrow at 09:00. Booking: 9ABCDEF0"
    assert "in 2 hours at 09:00" in compose_reminder_text(booking, ReminderType.TWO_HOUR)
    assert "starts in 30 minutes" in compose_reminder_text(booking, ReminderType.THIRTY_MIN)

    email = compose_reminder_email(booking, text)
    assert email["subject"] == "Booking reminder: Premium Wash & Wax on 2030-01-15 at 09:00"
    assert "Hi Thandi Mokoena," in email["body"]
    assert "Total: R175.00" in email["body"]
    assert "Special instructions: Mind the roof rack" in email["body"]
    assert email["html"].startswith("<html>")


# ----- Selection against the database -----

@pytest.mark.integration
def test_find_due_reminders_selects_open_windows(db, make_user, make_service, make_booking):
    user = make_user()
    service = make_service()
    tomorrow = make_booking(user, service, NOW + timedelta(hours=23))
    make_booking(user, service, NOW + timedelta(hours=21))
    soon = make_booking(user, service, NOW + timedelta(minutes=28))
    make_booking(user, service, NOW + timedelta(hours=23), status=BookingStatus.CANCELLED)

    due = find_due_reminders(db, now=NOW)

    pairs = {(item.booking_id, item.type) for item in due}
    assert pairs == {
        (tomorrow.id, ReminderType.TWENTY_FOUR_HOUR),
        (soon.id, ReminderType.THIRTY_MIN),
    }

    by_type = {item.type: item for item in due}
    assert by_type[ReminderType.TWENTY_FOUR_HOUR].hours_until == 23
    assert by_type[ReminderType.TWENTY_FOUR_HOUR].scheduled_for == NOW - timedelta(hours=1)
    assert by_type[ReminderType.THIRTY_MIN].minutes_until == 28
    assert by_type[ReminderType.THIRTY_MIN].booking["customer_name"] == "Thandi Mokoena"


@pytest.mark.integration
def test_find_due_reminders_skips_sent_and_filters_type(db, make_user, make_service, make_booking):
    user = make_user()
    service = make_service()
    sent = make_booking(user, service, NOW + timedelta(hours=23))
    db.add(BookingReminder(booking_id=sent.id, reminder_type=ReminderType.TWENTY_FOUR_HOUR, sent_at=NOW))
    db.commit()
    two_hour = make_booking(user, service, NOW + timedelta(minutes=105))

    assert [item.booking_id for item in find_due_reminders(db, now=NOW)] == [two_hour.id]
    assert find_due_reminders(db, check="24_hour", now=NOW) == []

    [entry] = find_due_reminders(db, check="2_hour", now=NOW)
    assert entry.hours_until == 1.8


@pytest.mark.integration
def test_find_due_reminders_rejects_unknown_check(db):
    with pytest.raises(BadRequestException):
        find_due_reminders(db, check="weekly", now=NOW)
