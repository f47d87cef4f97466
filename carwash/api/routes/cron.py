"""
Cron trigger for the booking reminder sweep.

Called by an external scheduler every ~15 minutes:
- GET  /cron/booking-reminders: run a sweep
- POST /cron/booking-reminders: run a sweep, or preview it with testMode

Authorization: Bearer <CRON_SECRET>
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from carwash.api.dependencies import verify_cron_secret
from carwash.api.routes.reminders import PendingReminder
from carwash.api.schemas import CamelModel
from carwash.lib.clock import local_now
from carwash.lib.db import get_db
from carwash.lib.logging import get_logger
from carwash.services.notification_service import NotificationDispatcher, get_notification_dispatcher
from carwash.jobs.reminder_runner import ReminderRunResult, run_booking_reminders

logger = get_logger(__name__)


class CronRunRequest(CamelModel):
    test_mode: bool = False


class ReminderRunEntryResponse(CamelModel):
    booking_id: UUID
    type: str
    status: str
    email_sent: bool = False
    sms_sent: bool = False
    error: Optional[str] = None


class ReminderRunDetails(CamelModel):
    processed: int
    sent: int
    failed: int
    skipped: int
    reminders: List[ReminderRunEntryResponse]


class CronRunResponse(CamelModel):
    success: bool = True
    message: str
    test_mode: Optional[bool] = None
    details: Optional[ReminderRunDetails] = None
    pending_reminders: Optional[List[PendingReminder]] = None
    count: Optional[int] = None
    timestamp: datetime


router = APIRouter(
    prefix="/cron",
    tags=["cron"],
    dependencies=[Depends(verify_cron_secret)],
)


def _to_response(result: ReminderRunResult) -> CronRunResponse:
    if result.test_mode:
        return CronRunResponse(
            test_mode=True,
            message="Test run completed - no reminders actually sent",
            pending_reminders=[PendingReminder.from_due(item) for item in result.pending],
            count=len(result.pending),
            timestamp=local_now(),
        )

    return CronRunResponse(
        message=result.summary,
        details=ReminderRunDetails(
            processed=result.processed,
            sent=result.sent,
            failed=result.failed,
            skipped=result.skipped,
            reminders=[ReminderRunEntryResponse.model_validate(entry) for entry in result.reminders],
        ),
        timestamp=local_now(),
    )


@router.get("/booking-reminders", response_model=CronRunResponse, response_model_exclude_none=True)
async def run_reminders(
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> CronRunResponse:
    """Run one reminder sweep."""
    result = await run_booking_reminders(db, dispatcher)
    return _to_response(result)


@router.post("/booking-reminders", response_model=CronRunResponse, response_model_exclude_none=True)
async def run_reminders_manual(
    request: Optional[CronRunRequest] = Body(None),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> CronRunResponse:
    """Run one reminder sweep; with testMode only report what is due."""
    test_mode = bool(request and request.test_mode)
    if test_mode:
        logger.info("Reminder sweep requested in test mode")
    result = await run_booking_reminders(db, dispatcher, test_mode=test_mode)
    return _to_response(result)
