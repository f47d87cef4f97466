"""
Wash progress tracking.

Progress is estimated from the booking's scheduled start, its status and the
service duration; there is no sensor input. build_tracking() is a pure
function of (booking, service, now) and is safe to call on every poll.
"""
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from carwash.lib.clock import slot_start
from carwash.models.bookings import Booking, BookingStatus
from carwash.models.services import Service

DEFAULT_DURATION_MINUTES = 30

# Progress while the booking stays IN_PROGRESS; completion is always explicit
IN_PROGRESS_CAP = 95

# Shown for a CONFIRMED booking whose start has passed (awaiting check-in)
AWAITING_CHECK_IN_PROGRESS = 5

STAGE_ORDER = ("scheduled", "arrival", "pre", "wash", "quality", "complete")

STAGE_NAMES = {
    "scheduled": "Scheduled",
    "arrival": "Vehicle Arrival Check-in",
    "pre": "Pre-Wash Inspection",
    "wash": "Premium Wash Process",
    "quality": "Quality Check & Final Photos",
    "complete": "Ready for Pickup",
}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class StagePolicy:
    """
    Share of the service duration given to each working stage, with a
    minimum length in minutes so short services still show legible stages.
    """
    weights: Dict[str, float] = field(
        default_factory=lambda: {"arrival": 0.05, "pre": 0.15, "wash": 0.70, "quality": 0.10}
    )
    floors: Dict[str, int] = field(
        default_factory=lambda: {"arrival": 2, "pre": 3, "wash": 10, "quality": 2}
    )

    def portions(self, duration_minutes: int) -> Dict[str, int]:
        """Estimated minutes per working stage."""
        return {
            stage: max(self.floors[stage], round_half_up(duration_minutes * weight))
            for stage, weight in self.weights.items()
        }

    def thresholds(self, duration_minutes: int) -> Dict[str, float]:
        """Cumulative progress percentage at which each working stage ends."""
        portions = self.portions(duration_minutes)
        total = sum(portions.values())
        running = 0
        thresholds = {}
        for stage, minutes in portions.items():
            running += minutes
            thresholds[stage] = running / total * 100
        return thresholds


DEFAULT_STAGE_POLICY = StagePolicy()


@dataclass
class TrackingStage:
    id: str
    name: str
    completed: bool
    current: bool
    estimated_time: int
    notes: Optional[str] = None


@dataclass
class Tracking:
    stages: List[TrackingStage]
    total_progress: int
    estimated_completion: datetime
    actual_completion: Optional[datetime]
    status: BookingStatus
    starts_at: datetime
    overdue: bool
    overdue_minutes: int

    @property
    def current_stage(self) -> str:
        for stage in self.stages:
            if stage.current:
                return stage.id
        return "scheduled"


def _stage_for_progress(progress: int, thresholds: Dict[str, float]) -> str:
    for stage in ("arrival", "pre", "wash"):
        if progress < thresholds[stage]:
            return stage
    return "quality"


def build_tracking(
    booking: Booking,
    service: Optional[Service],
    now: datetime,
    policy: StagePolicy = DEFAULT_STAGE_POLICY,
) -> Tracking:
    """
    Derive the six-stage progress view of a booking at `now`.

    Args:
        booking: Booking with booking_date, time_slot, status and completed_at
        service: Linked service; its duration defaults to 30 minutes
        now: Naive local time to evaluate against
        policy: Stage weights and floors

    Returns:
        Tracking snapshot
    """
    status = BookingStatus(booking.status)
    starts_at = slot_start(booking.booking_date.date(), booking.time_slot)
    duration = (service.duration if service else None) or DEFAULT_DURATION_MINUTES

    portions = policy.portions(duration)
    thresholds = policy.thresholds(duration)

    has_started = now >= starts_at
    completed_at = booking.completed_at

    if status == BookingStatus.COMPLETED and completed_at:
        progress, current = 100, "complete"
    elif not has_started:
        progress, current = 0, "scheduled"
    elif status == BookingStatus.IN_PROGRESS:
        elapsed = max(timedelta(0), now - starts_at)
        ratio = elapsed / timedelta(minutes=duration)
        progress = min(IN_PROGRESS_CAP, round_half_up(ratio * 100))
        current = _stage_for_progress(progress, thresholds)
    elif status == BookingStatus.CONFIRMED:
        progress, current = AWAITING_CHECK_IN_PROGRESS, "arrival"
    else:
        # CANCELLED, NO_SHOW, PENDING past start, COMPLETED without a timestamp
        progress, current = 0, "scheduled"

    overdue = status == BookingStatus.CONFIRMED and has_started
    overdue_minutes = int((now - starts_at).total_seconds() // 60) if overdue else 0

    working = current != "scheduled"
    stages = [
        TrackingStage(
            id="scheduled",
            name=STAGE_NAMES["scheduled"],
            completed=has_started and status in (BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED),
            current=current == "scheduled",
            estimated_time=0,
            notes=f"Starts at {starts_at:%H:%M}",
        ),
        TrackingStage(
            id="arrival",
            name=STAGE_NAMES["arrival"],
            completed=working and progress >= thresholds["arrival"],
            current=current == "arrival",
            estimated_time=portions["arrival"],
            notes=f"Special instructions: {booking.notes}" if booking.notes else None,
        ),
        TrackingStage(
            id="pre",
            name=STAGE_NAMES["pre"],
            completed=working and progress >= thresholds["pre"],
            current=current == "pre",
            estimated_time=portions["pre"],
        ),
        TrackingStage(
            id="wash",
            name=STAGE_NAMES["wash"],
            completed=working and progress >= thresholds["wash"],
            current=current == "wash",
            estimated_time=portions["wash"],
        ),
        TrackingStage(
            id="quality",
            name=STAGE_NAMES["quality"],
            completed=progress >= thresholds["quality"] or current == "complete",
            current=current == "quality",
            estimated_time=portions["quality"],
        ),
        TrackingStage(
            id="complete",
            name=STAGE_NAMES["complete"],
            completed=progress >= 100 or status == BookingStatus.COMPLETED,
            current=current == "complete",
            estimated_time=0,
        ),
    ]

    if status == BookingStatus.COMPLETED and completed_at:
        estimated_completion = completed_at
    else:
        estimated_completion = starts_at + timedelta(minutes=duration)

    return Tracking(
        stages=stages,
        total_progress=min(100, progress),
        estimated_completion=estimated_completion,
        actual_completion=completed_at,
        status=status,
        starts_at=starts_at,
        overdue=overdue,
        overdue_minutes=overdue_minutes,
    )
