"""
Booking reminder routes.

- POST /bookings/reminders: send one reminder (idempotent unless force)
- GET  /bookings/reminders?check=...: reminders due right now

Both accept a STAFF/ADMIN bearer token or the cron secret.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import Field
from sqlalchemy.orm import Session

from carwash.api.dependencies import require_staff_or_cron
from carwash.api.middleware.error_handler import BadRequestException
from carwash.api.schemas import CamelModel
from carwash.lib.clock import local_now
from carwash.lib.db import get_db
from carwash.lib.logging import get_logger
from carwash.services.notification_service import NotificationDispatcher, get_notification_dispatcher
from carwash.services.reminder_service import DueReminder, ReminderService, find_due_reminders

logger = get_logger(__name__)


# Pydantic schemas
class SendReminderRequest(CamelModel):
    type: Optional[str] = Field(None, description="24_hour, 2_hour or 30_min")
    booking_id: Optional[str] = None
    force: bool = False


class ReminderRecord(CamelModel):
    id: UUID
    booking_id: UUID
    reminder_type: str
    sent_at: Optional[datetime] = None
    email_sent: bool
    sms_sent: bool
    message: Optional[str] = None
    created_at: Optional[datetime] = None


class SendReminderResponse(CamelModel):
    success: bool = True
    reminder: ReminderRecord
    email_sent: bool
    sms_sent: bool
    already_sent: bool = False
    message: str


class ReminderBookingSummary(CamelModel):
    id: UUID
    customer_name: Optional[str] = None
    service: Optional[str] = None
    date: datetime
    time: str


class PendingReminder(CamelModel):
    booking_id: UUID
    type: str
    scheduled_for: datetime
    hours_until: Optional[float] = None
    minutes_until: Optional[int] = None
    booking: ReminderBookingSummary

    @classmethod
    def from_due(cls, due: DueReminder) -> "PendingReminder":
        return cls(
            booking_id=due.booking_id,
            type=due.type.value,
            scheduled_for=due.scheduled_for,
            hours_until=due.hours_until,
            minutes_until=due.minutes_until,
            booking=ReminderBookingSummary(**due.booking),
        )


class PendingRemindersResponse(CamelModel):
    success: bool = True
    pending_reminders: List[PendingReminder]
    count: int
    checked_at: datetime


# Router
router = APIRouter(
    prefix="/bookings",
    tags=["reminders"],
    dependencies=[Depends(require_staff_or_cron)],
)


@router.post("/reminders", response_model=SendReminderResponse)
async def send_reminder(
    request: SendReminderRequest,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> SendReminderResponse:
    """
    Send a reminder for one booking.

    Without force, a second call for the same booking and type reports
    alreadySent and writes nothing.
    """
    if not request.type or not request.booking_id:
        raise BadRequestException("Type and bookingId are required")

    outcome = await ReminderService(db, dispatcher).send_reminder(
        request.booking_id,
        request.type,
        force=request.force,
    )

    reminder = outcome.reminder
    return SendReminderResponse(
        reminder=ReminderRecord(
            id=reminder.id,
            booking_id=reminder.booking_id,
            reminder_type=reminder.reminder_type.value,
            sent_at=reminder.sent_at,
            email_sent=reminder.email_sent,
            sms_sent=reminder.sms_sent,
            message=reminder.message,
            created_at=reminder.created_at,
        ),
        email_sent=outcome.email_sent,
        sms_sent=outcome.sms_sent,
        already_sent=outcome.already_sent,
        message=outcome.message,
    )


@router.get(
    "/reminders",
    response_model=PendingRemindersResponse,
    response_model_exclude_none=True,
)
def list_pending_reminders(
    check: str = Query("all", description="all, 24_hour, 2_hour or 30_min"),
    db: Session = Depends(get_db),
) -> PendingRemindersResponse:
    """Reminders whose window is open now and that were not sent yet."""
    now = local_now()
    due = find_due_reminders(db, check=check, now=now)
    return PendingRemindersResponse(
        pending_reminders=[PendingReminder.from_due(item) for item in due],
        count=len(due),
        checked_at=now,
    )
