"""
Booking reminder selection and dispatch.

Selection finds CONFIRMED or PENDING bookings whose start falls inside one of
three narrow windows before the appointment:

    24_hour   22h   < until <= 24h
    2_hour    1.5h  < until <= 2h
    30_min    25min < until <= 30min

The windows are sized for a poller running every ~15 minutes. A sent
BookingReminder row (sent_at set) marks a (booking, type) pair as done.

Dispatch checks for that row and then inserts a new one; the two steps are
not atomic, so overlapping sweeps can both send the same reminder.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from carwash.api.middleware.error_handler import BadRequestException, NotFoundException
from carwash.lib.clock import local_now, slot_start
from carwash.lib.logging import get_logger
from carwash.lib.metrics import get_metrics_collector
from carwash.models.booking_reminders import BookingReminder, ReminderType
from carwash.models.bookings import Booking, BookingStatus
from carwash.services.notification_service import (
    ChannelMessage,
    NotificationChannel,
    NotificationDispatcher,
)

logger = get_logger(__name__)

# Bookings considered by the sweep
REMINDABLE_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.PENDING)

LOOKBACK = timedelta(hours=24)
LOOKAHEAD = timedelta(days=7)


@dataclass(frozen=True)
class ReminderWindow:
    offset: timedelta
    opens_after: timedelta

    def contains(self, until: timedelta) -> bool:
        return self.opens_after < until <= self.offset


REMINDER_WINDOWS: Dict[ReminderType, ReminderWindow] = {
    ReminderType.TWENTY_FOUR_HOUR: ReminderWindow(timedelta(hours=24), timedelta(hours=22)),
    ReminderType.TWO_HOUR: ReminderWindow(timedelta(hours=2), timedelta(hours=1, minutes=30)),
    ReminderType.THIRTY_MIN: ReminderWindow(timedelta(minutes=30), timedelta(minutes=25)),
}

CHECK_ALL = "all"


def parse_reminder_type(value: Optional[str]) -> ReminderType:
    """
    Raises:
        BadRequestException: If the value is not a known reminder type
    """
    try:
        return ReminderType(value)
    except ValueError:
        raise BadRequestException(
            "Invalid reminder type",
            details={"type": value, "allowed": [t.value for t in ReminderType]},
        ) from None


def booking_reference(booking_id: UUID) -> str:
    """Short customer-facing reference: last 8 hex digits, upper case."""
    return booking_id.hex[-8:].upper()


def has_sent_reminder(booking: Booking, reminder_type: ReminderType) -> bool:
    return any(
        r.reminder_type == reminder_type and r.sent_at is not None
        for r in booking.reminders
    )


@dataclass
class DueReminder:
    """A reminder the sweep should send now."""
    booking_id: UUID
    type: ReminderType
    scheduled_for: datetime
    booking: Dict[str, Any]
    hours_until: Optional[float] = None
    minutes_until: Optional[int] = None


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def _booking_summary(booking: Booking) -> Dict[str, Any]:
    return {
        "id": booking.id,
        "customer_name": booking.user.full_name if booking.user else None,
        "service": booking.service.name if booking.service else None,
        "date": booking.booking_date,
        "time": booking.time_slot,
    }


def _due_entry(booking: Booking, reminder_type: ReminderType, starts_at: datetime, until: timedelta) -> DueReminder:
    window = REMINDER_WINDOWS[reminder_type]
    hours = until.total_seconds() / 3600
    entry = DueReminder(
        booking_id=booking.id,
        type=reminder_type,
        scheduled_for=starts_at - window.offset,
        booking=_booking_summary(booking),
    )
    if reminder_type == ReminderType.TWENTY_FOUR_HOUR:
        entry.hours_until = int(_round_half_up(hours))
    elif reminder_type == ReminderType.TWO_HOUR:
        entry.hours_until = _round_half_up(hours, 1)
    else:
        entry.minutes_until = int(_round_half_up(until.total_seconds() / 60))
    return entry


def find_due_reminders(
    db: Session,
    check: str = CHECK_ALL,
    now: Optional[datetime] = None,
) -> List[DueReminder]:
    """
    Reminders whose window is open at `now` and that have not been sent.

    Args:
        db: Database session
        check: "all" or a single reminder type
        now: Naive local time (defaults to the current time)

    Raises:
        BadRequestException: If check is not "all" or a reminder type
    """
    types = list(ReminderType) if check == CHECK_ALL else [parse_reminder_type(check)]
    now = now or local_now()

    stmt = (
        select(Booking)
        .where(
            Booking.status.in_(REMINDABLE_STATUSES),
            Booking.booking_date >= now - LOOKBACK,
            Booking.booking_date <= now + LOOKAHEAD,
        )
        .options(
            selectinload(Booking.reminders),
            selectinload(Booking.user),
            selectinload(Booking.service),
        )
        .order_by(Booking.booking_date, Booking.time_slot)
    )

    due = []
    for booking in db.scalars(stmt):
        try:
            starts_at = slot_start(booking.booking_date.date(), booking.time_slot)
        except ValueError:
            logger.warning(
                "Skipping booking with unparseable time slot",
                extra={"booking_id": str(booking.id), "time_slot": booking.time_slot},
            )
            continue

        until = starts_at - now
        for reminder_type in types:
            if REMINDER_WINDOWS[reminder_type].contains(until) and not has_sent_reminder(booking, reminder_type):
                due.append(_due_entry(booking, reminder_type, starts_at, until))

    logger.info("Checked pending reminders", extra={"check": check, "count": len(due)})
    return due


def compose_reminder_text(booking: Booking, reminder_type: ReminderType) -> str:
    """Short reminder text shared by SMS and the email intro."""
    ref = booking_reference(booking.id)
    if reminder_type == ReminderType.TWENTY_FOUR_HOUR:
        return f"Reminder: Your car wash appointment is tomorrow at {booking.time_slot}. Booking: {ref}"
    if reminder_type == ReminderType.TWO_HOUR:
        return f"Your car wash appointment is in 2 hours at {booking.time_slot}. Booking: {ref}"
    return f"Your car wash appointment starts in 30 minutes! Please arrive on time. Booking: {ref}"


def compose_reminder_email(booking: Booking, reminder_text: str) -> Dict[str, str]:
    """Subject, plain body and HTML body for the email channel."""
    service_name = booking.service.name if booking.service else "Selected Service"
    day = f"{booking.booking_date:%Y-%m-%d}"
    lines = [
        f"Hi {booking.user.full_name},",
        "",
        reminder_text,
        "",
        f"Service: {service_name}",
        f"Date: {day}",
        f"Time: {booking.time_slot}",
        f"Vehicle: {booking.plate_number or 'N/A'}",
        f"Total: R{booking.total_amount / 100:.2f}",
    ]
    if booking.notes:
        lines.append(f"Special instructions: {booking.notes}")

    html_rows = "".join(f"<p>{line}</p>" for line in lines if line)
    return {
        "subject": f"Booking reminder: {service_name} on {day} at {booking.time_slot}",
        "body": "\n".join(lines),
        "html": f"<html><body>{html_rows}</body></html>",
    }


@dataclass
class ReminderOutcome:
    reminder: BookingReminder
    email_sent: bool
    sms_sent: bool
    already_sent: bool
    message: str


class ReminderService:
    """Sends a single reminder and records the attempt."""

    def __init__(self, db: Session, dispatcher: NotificationDispatcher):
        self.db = db
        self.dispatcher = dispatcher
        self.metrics = get_metrics_collector()

    def _load_booking(self, booking_id: str) -> Booking:
        try:
            key = booking_id if isinstance(booking_id, UUID) else UUID(str(booking_id))
        except ValueError:
            raise NotFoundException("Booking", str(booking_id)) from None

        booking = self.db.get(Booking, key)
        if booking is None:
            raise NotFoundException("Booking", str(booking_id))
        return booking

    def _existing_sent(self, booking_id: UUID, reminder_type: ReminderType) -> Optional[BookingReminder]:
        stmt = (
            select(BookingReminder)
            .where(
                BookingReminder.booking_id == booking_id,
                BookingReminder.reminder_type == reminder_type,
                BookingReminder.sent_at.is_not(None),
            )
            .order_by(BookingReminder.sent_at)
            .limit(1)
        )
        return self.db.scalars(stmt).first()

    def _channel_messages(self, booking: Booking, reminder_type: ReminderType, text: str) -> List[ChannelMessage]:
        user = booking.user
        email = compose_reminder_email(booking, text)
        messages = [
            ChannelMessage(
                channel=NotificationChannel.EMAIL,
                to=user.email,
                message=email["body"],
                options={"subject": email["subject"], "html": email["html"]},
            )
        ]

        wants_sms = booking.sms_notifications or user.sms_notifications
        if wants_sms and user.phone:
            messages.append(ChannelMessage(channel=NotificationChannel.SMS, to=user.phone, message=text))
        return messages

    async def send_reminder(
        self,
        booking_id: str,
        reminder_type: str,
        force: bool = False,
        now: Optional[datetime] = None,
    ) -> ReminderOutcome:
        """
        Send one reminder unless it was already sent.

        Email is always attempted; SMS only when the customer opted in and has
        a phone number. Channel failures are logged and reflected in the
        flags; the reminder row is written either way.

        Raises:
            BadRequestException: Invalid type, or the booking is cancelled
            NotFoundException: Unknown booking
        """
        kind = parse_reminder_type(reminder_type)
        booking = self._load_booking(booking_id)

        if booking.status == BookingStatus.CANCELLED:
            raise BadRequestException("Cannot send reminders for cancelled bookings")

        if not force:
            existing = self._existing_sent(booking.id, kind)
            if existing is not None:
                logger.info(
                    "Reminder already sent",
                    extra={"booking_id": str(booking.id), "reminder_type": kind.value},
                )
                return ReminderOutcome(
                    reminder=existing,
                    email_sent=existing.email_sent,
                    sms_sent=existing.sms_sent,
                    already_sent=True,
                    message="Reminder already sent",
                )

        text = compose_reminder_text(booking, kind)
        results = await self.dispatcher.fan_out(self._channel_messages(booking, kind, text))

        for channel, result in results.items():
            self.metrics.increment_reminders(kind.value, channel.value, "sent" if result.success else "failed")

        email_result = results.get(NotificationChannel.EMAIL)
        sms_result = results.get(NotificationChannel.SMS)
        email_sent = bool(email_result and email_result.success)
        sms_sent = bool(sms_result and sms_result.success)

        reminder = BookingReminder(
            booking_id=booking.id,
            reminder_type=kind,
            sent_at=now or local_now(),
            email_sent=email_sent,
            sms_sent=sms_sent,
            message=text,
        )
        self.db.add(reminder)
        self.db.commit()

        logger.info(
            "Reminder recorded",
            extra={
                "booking_id": str(booking.id),
                "reminder_type": kind.value,
                "email_sent": email_sent,
                "sms_sent": sms_sent,
                "sms_attempted": bool(sms_result and sms_result.attempted),
            },
        )

        return ReminderOutcome(
            reminder=reminder,
            email_sent=email_sent,
            sms_sent=sms_sent,
            already_sent=False,
            message=f"{kind.value.replace('_', ' ')} reminder sent successfully",
        )
