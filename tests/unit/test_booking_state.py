"""
Tests for the booking lifecycle state machine.
"""
from datetime import datetime
from uuid import uuid4

import pytest

from carwash.lib.metrics import get_metrics_collector
from carwash.models.bookings import Booking, BookingStatus
from carwash.services.booking_state import (
    TRANSITIONS,
    BookingEvent,
    TransitionError,
    can_transition,
    event_for_status,
    transition,
)

NOW = datetime(2030, 1, 15, 10, 0)


def _booking(status: BookingStatus) -> Booking:
    return Booking(id=uuid4(), status=status)


@pytest.mark.unit
def test_confirm_pending_booking():
    booking = transition(_booking(BookingStatus.PENDING), BookingEvent.CONFIRM, now=NOW)

    assert booking.status == BookingStatus.CONFIRMED
    assert get_metrics_collector().get_counter_value(
        "booking_transitions_total",
        {"from_status": "PENDING", "to_status": "CONFIRMED"},
    ) == 1


@pytest.mark.unit
def test_complete_sets_completed_at():
    booking = transition(_booking(BookingStatus.IN_PROGRESS), BookingEvent.COMPLETE, now=NOW)

    assert booking.status == BookingStatus.COMPLETED
    assert booking.completed_at == NOW


@pytest.mark.unit
def test_cancel_records_reason():
    booking = transition(
        _booking(BookingStatus.CONFIRMED),
        BookingEvent.CANCEL,
        reason="Cancelled by customer",
        now=NOW,
    )

    assert booking.status == BookingStatus.CANCELLED
    assert booking.cancelled_at == NOW
    assert booking.cancellation_reason == "Cancelled by customer"


@pytest.mark.unit
def test_repeated_payment_event_is_ignored():
    booking = _booking(BookingStatus.CONFIRMED)

    transition(booking, BookingEvent.PAYMENT_SUCCEEDED, now=NOW)

    assert booking.status == BookingStatus.CONFIRMED
    assert can_transition(BookingStatus.CONFIRMED, BookingEvent.PAYMENT_SUCCEEDED)


@pytest.mark.unit
@pytest.mark.parametrize("status", [BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW])
@pytest.mark.parametrize("event", list(BookingEvent))
def test_terminal_statuses_reject_every_event(status, event):
    booking = _booking(status)
    with pytest.raises(TransitionError) as exc_info:
        transition(booking, event, now=NOW)

    assert exc_info.value.status_code == 400
    assert exc_info.value.details == {"status": status.value, "event": event.value}
    assert booking.status == status


@pytest.mark.unit
def test_cannot_start_pending_booking():
    with pytest.raises(TransitionError) as exc_info:
        transition(_booking(BookingStatus.PENDING), BookingEvent.START, now=NOW)

    assert exc_info.value.message == "Cannot apply START to a PENDING booking"


@pytest.mark.unit
def test_no_transition_leaves_a_terminal_status():
    for (current, _event) in TRANSITIONS:
        assert current not in (BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW)


@pytest.mark.unit
def test_event_for_status():
    assert event_for_status(BookingStatus.IN_PROGRESS) == BookingEvent.START
    assert event_for_status(BookingStatus.NO_SHOW) == BookingEvent.MARK_NO_SHOW

    with pytest.raises(ValueError):
        event_for_status(BookingStatus.PENDING)
