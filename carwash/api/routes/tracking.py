"""
Booking progress tracking route.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from carwash.api.dependencies import get_current_user
from carwash.api.middleware.error_handler import ForbiddenException
from carwash.api.schemas import CamelModel
from carwash.lib.clock import local_now
from carwash.lib.db import get_db
from carwash.models.users import User
from carwash.services.booking_service import BookingService
from carwash.services.tracking_service import build_tracking


class StageResponse(CamelModel):
    id: str
    name: str
    completed: bool
    current: bool
    estimated_time: int
    notes: Optional[str] = None


class TrackingResponse(CamelModel):
    stages: List[StageResponse]
    total_progress: int
    estimated_completion: datetime
    actual_completion: Optional[datetime] = None
    status: str
    starts_at: datetime
    overdue: bool
    overdue_minutes: int


router = APIRouter(prefix="/bookings", tags=["tracking"])


@router.get("/{booking_id}/tracking", response_model=TrackingResponse)
def get_tracking(
    booking_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TrackingResponse:
    """
    Live progress of a booking for its owner or staff.

    401 without a valid session, 404 for an unknown booking, 403 otherwise.
    """
    booking = BookingService(db).get_booking(booking_id)
    if booking.user_id != user.id and not user.is_staff:
        raise ForbiddenException()

    tracking = build_tracking(booking, booking.service, local_now())
    return TrackingResponse(
        stages=[StageResponse.model_validate(stage) for stage in tracking.stages],
        total_progress=tracking.total_progress,
        estimated_completion=tracking.estimated_completion,
        actual_completion=tracking.actual_completion,
        status=tracking.status.value,
        starts_at=tracking.starts_at,
        overdue=tracking.overdue,
        overdue_minutes=tracking.overdue_minutes,
    )
