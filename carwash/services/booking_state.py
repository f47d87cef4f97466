"""
Booking lifecycle state machine.

Every status change (customer cancel, staff update, payment confirmation,
booking creation) goes through transition() so the allowed moves live in a
single table.

    PENDING --CONFIRM/PAYMENT_SUCCEEDED--> CONFIRMED --START--> IN_PROGRESS
    CONFIRMED/IN_PROGRESS --COMPLETE--> COMPLETED
    PENDING/CONFIRMED/IN_PROGRESS --CANCEL--> CANCELLED
    CONFIRMED --MARK_NO_SHOW--> NO_SHOW
"""
import enum
from datetime import datetime
from typing import Dict, Optional, Tuple

from fastapi import status

from carwash.api.middleware.error_handler import AppException
from carwash.lib.clock import local_now
from carwash.lib.logging import get_logger
from carwash.lib.metrics import get_metrics_collector
from carwash.models.bookings import Booking, BookingStatus, TERMINAL_STATUSES

logger = get_logger(__name__)


class BookingEvent(str, enum.Enum):
    """Triggers that move a booking between statuses."""
    CONFIRM = "CONFIRM"
    PAYMENT_SUCCEEDED = "PAYMENT_SUCCEEDED"
    START = "START"
    COMPLETE = "COMPLETE"
    CANCEL = "CANCEL"
    MARK_NO_SHOW = "MARK_NO_SHOW"


TRANSITIONS: Dict[Tuple[BookingStatus, BookingEvent], BookingStatus] = {
    (BookingStatus.PENDING, BookingEvent.CONFIRM): BookingStatus.CONFIRMED,
    (BookingStatus.PENDING, BookingEvent.PAYMENT_SUCCEEDED): BookingStatus.CONFIRMED,
    (BookingStatus.PENDING, BookingEvent.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.CONFIRMED, BookingEvent.START): BookingStatus.IN_PROGRESS,
    (BookingStatus.CONFIRMED, BookingEvent.COMPLETE): BookingStatus.COMPLETED,
    (BookingStatus.CONFIRMED, BookingEvent.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.CONFIRMED, BookingEvent.MARK_NO_SHOW): BookingStatus.NO_SHOW,
    (BookingStatus.IN_PROGRESS, BookingEvent.COMPLETE): BookingStatus.COMPLETED,
    (BookingStatus.IN_PROGRESS, BookingEvent.CANCEL): BookingStatus.CANCELLED,
}

# Repeated deliveries of these events leave the booking untouched
_IDEMPOTENT: Dict[BookingEvent, BookingStatus] = {
    BookingEvent.PAYMENT_SUCCEEDED: BookingStatus.CONFIRMED,
}

_EVENT_BY_TARGET: Dict[BookingStatus, BookingEvent] = {
    BookingStatus.CONFIRMED: BookingEvent.CONFIRM,
    BookingStatus.IN_PROGRESS: BookingEvent.START,
    BookingStatus.COMPLETED: BookingEvent.COMPLETE,
    BookingStatus.CANCELLED: BookingEvent.CANCEL,
    BookingStatus.NO_SHOW: BookingEvent.MARK_NO_SHOW,
}


class TransitionError(AppException):
    """Requested event is not allowed from the booking's current status."""

    def __init__(self, current: BookingStatus, event: BookingEvent):
        self.current = current
        self.event = event
        super().__init__(
            message=f"Cannot apply {event.value} to a {current.value} booking",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"status": current.value, "event": event.value},
        )


def can_transition(current: BookingStatus, event: BookingEvent) -> bool:
    """True when the event is accepted from the given status."""
    if _IDEMPOTENT.get(event) == current:
        return True
    return (current, event) in TRANSITIONS


def transition(
    booking: Booking,
    event: BookingEvent,
    *,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Booking:
    """
    Apply an event to a booking in place.

    Sets completed_at on COMPLETE and cancelled_at/cancellation_reason on
    CANCEL. The caller owns the session and commits.

    Raises:
        TransitionError: If the move is not in the transition table
    """
    current = BookingStatus(booking.status)

    if _IDEMPOTENT.get(event) == current:
        logger.info(
            "Ignoring repeated booking event",
            extra={"booking_id": str(booking.id), "event": event.value},
        )
        return booking

    if current in TERMINAL_STATUSES or (current, event) not in TRANSITIONS:
        raise TransitionError(current, event)

    target = TRANSITIONS[(current, event)]
    now = now or local_now()

    booking.status = target
    if target == BookingStatus.COMPLETED:
        booking.completed_at = now
    elif target == BookingStatus.CANCELLED:
        booking.cancelled_at = now
        booking.cancellation_reason = reason

    get_metrics_collector().increment_transitions(current.value, target.value)
    logger.info(
        "Booking status changed",
        extra={
            "booking_id": str(booking.id),
            "from_status": current.value,
            "to_status": target.value,
            "event": event.value,
        },
    )
    return booking


def event_for_status(target: BookingStatus) -> BookingEvent:
    """
    Map a requested target status (staff form) to the event that reaches it.

    Raises:
        ValueError: If no event leads to the status (PENDING)
    """
    try:
        return _EVENT_BY_TARGET[target]
    except KeyError:
        raise ValueError(f"No event leads to status {target.value}") from None
