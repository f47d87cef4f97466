"""
Reminder Runner Job - periodic booking reminder sweep.

Each run is a fresh, stateless pass: select the reminders whose window is
open, then send each one. The BookingReminder rows written by previous runs
are the only state carried between runs.

Execution flow:
1. find_due_reminders() selects (booking, type) pairs
2. ReminderService.send_reminder() dispatches each pair; a failure is
   recorded against that pair and the sweep continues
3. Totals are logged and returned

Triggered by the cron endpoint (external scheduler, every ~15 minutes) or by
the in-process APScheduler interval job when enabled.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from carwash.api.middleware.error_handler import AppException
from carwash.lib.clock import local_now
from carwash.lib.db import get_db_context
from carwash.lib.logging import get_logger
from carwash.lib.settings import settings
from carwash.services.notification_service import NotificationDispatcher, get_notification_dispatcher
from carwash.services.reminder_service import DueReminder, ReminderService, find_due_reminders

logger = get_logger(__name__)

JOB_ID = "booking_reminders"


@dataclass
class ReminderRunEntry:
    booking_id: UUID
    type: str
    status: str  # sent, skipped or failed
    email_sent: bool = False
    sms_sent: bool = False
    error: Optional[str] = None


@dataclass
class ReminderRunResult:
    processed: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    reminders: List[ReminderRunEntry] = field(default_factory=list)
    pending: List[DueReminder] = field(default_factory=list)
    test_mode: bool = False

    @property
    def summary(self) -> str:
        return f"Processed {self.processed} reminders: {self.sent} sent, {self.failed} failed"


async def run_booking_reminders(
    db: Session,
    dispatcher: NotificationDispatcher,
    test_mode: bool = False,
    now: Optional[datetime] = None,
) -> ReminderRunResult:
    """
    Run one reminder sweep.

    Args:
        db: Database session
        dispatcher: Notification fan-out
        test_mode: Select only, send nothing
        now: Naive local time (defaults to the current time)

    Returns:
        ReminderRunResult with per-reminder outcomes
    """
    run_id = uuid4()
    now = now or local_now()

    due = find_due_reminders(db, now=now)
    result = ReminderRunResult(processed=len(due), pending=due, test_mode=test_mode)

    if test_mode:
        logger.info(
            "Reminder sweep test run",
            extra={"run_id": str(run_id), "pending": len(due)},
        )
        return result

    service = ReminderService(db, dispatcher)

    for reminder in due:
        try:
            outcome = await service.send_reminder(reminder.booking_id, reminder.type.value, now=now)
        except AppException as e:
            db.rollback()
            result.failed += 1
            result.reminders.append(
                ReminderRunEntry(reminder.booking_id, reminder.type.value, "failed", error=e.message)
            )
            continue
        except Exception as e:
            db.rollback()
            logger.error(
                f"Reminder dispatch failed: {e}",
                extra={"run_id": str(run_id), "booking_id": str(reminder.booking_id)},
                exc_info=True,
            )
            result.failed += 1
            result.reminders.append(
                ReminderRunEntry(reminder.booking_id, reminder.type.value, "failed", error=str(e))
            )
            continue

        status = "skipped" if outcome.already_sent else "sent"
        if outcome.already_sent:
            result.skipped += 1
        else:
            result.sent += 1
        result.reminders.append(
            ReminderRunEntry(
                reminder.booking_id,
                reminder.type.value,
                status,
                email_sent=outcome.email_sent,
                sms_sent=outcome.sms_sent,
            )
        )

    logger.info(
        "Booking reminder sweep completed",
        extra={
            "run_id": str(run_id),
            "processed": result.processed,
            "sent": result.sent,
            "failed": result.failed,
            "skipped": result.skipped,
        },
    )
    return result


def run_booking_reminders_job() -> None:
    """
    Synchronous wrapper for APScheduler compatibility.

    Opens its own session and event loop per run.
    """
    with get_db_context() as db:
        asyncio.run(run_booking_reminders(db, get_notification_dispatcher()))


def register_reminder_jobs(scheduler_manager) -> None:
    """
    Register the reminder sweep with the scheduler.

    Args:
        scheduler_manager: SchedulerManager instance from get_scheduler()
    """
    scheduler_manager.add_interval_job(
        func=run_booking_reminders_job,
        job_id=JOB_ID,
        minutes=settings.reminder_poll_minutes,
    )
    logger.info(
        "Booking reminder job registered",
        extra={"every_minutes": settings.reminder_poll_minutes},
    )
