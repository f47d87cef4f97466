"""
Slot availability routes.

- GET  /bookings/availability: aggregates for one date and time slot
- POST /bookings/availability: batch check over dates x time slots
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field
from sqlalchemy.orm import Session

from carwash.api.schemas import CamelModel
from carwash.lib.clock import local_now
from carwash.lib.db import get_db
from carwash.services.availability_service import AvailabilityService


# Pydantic schemas
class AvailabilityResponse(CamelModel):
    """Single-slot availability."""
    success: bool = True
    date: str
    time_slot: str
    booking_count: int = Field(..., description="Active (CONFIRMED/IN_PROGRESS) bookings in the slot")
    services: List[str] = Field(default_factory=list, description="Catalogue keys of active bookings in the slot")
    service_specific_bookings: int = 0
    total_day_bookings: int = 0
    timestamp: datetime


class BatchAvailabilityRequest(CamelModel):
    """Dates x time slots to check."""
    dates: List[str] = Field(..., description="Days as YYYY-MM-DD or ISO timestamps")
    time_slots: List[str] = Field(..., description="Slot labels, e.g. 09:00")
    service_id: Optional[str] = Field(None, description="Catalogue key used for capacity overrides")


class SlotAvailabilityEntry(CamelModel):
    date: str
    time_slot: str
    booking_count: int
    capacity: int
    available: bool


class BatchAvailabilityResponse(CamelModel):
    success: bool = True
    availability: List[SlotAvailabilityEntry]
    timestamp: datetime


# Router
router = APIRouter(prefix="/bookings", tags=["availability"])


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    return AvailabilityService(db)


@router.get("/availability", response_model=AvailabilityResponse)
def get_availability(
    date: Optional[str] = Query(None, description="Day to check"),
    time_slot: Optional[str] = Query(None, alias="timeSlot", description="Slot label, e.g. 09:00"),
    service_id: Optional[str] = Query(None, alias="serviceId", description="Catalogue key (express, premium, ...)"),
    include_services: bool = Query(False, alias="includeServices"),
    service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityResponse:
    """
    Count active bookings in a slot.

    Returns 400 when date or timeSlot is missing or the date is malformed.
    """
    result = service.check_slot(date, time_slot, service_id=service_id, include_services=include_services)
    return AvailabilityResponse(
        date=result.date,
        time_slot=result.time_slot,
        booking_count=result.booking_count,
        services=result.services,
        service_specific_bookings=result.service_specific_bookings,
        total_day_bookings=result.total_day_bookings,
        timestamp=result.checked_at,
    )


@router.post("/availability", response_model=BatchAvailabilityResponse)
def post_batch_availability(
    request: BatchAvailabilityRequest,
    service: AvailabilityService = Depends(get_availability_service),
) -> BatchAvailabilityResponse:
    """
    Availability of every date x time slot combination, date-major.

    A malformed date fails the whole request with 400.
    """
    results = service.check_batch(request.dates, request.time_slots, service_id=request.service_id)
    return BatchAvailabilityResponse(
        availability=[SlotAvailabilityEntry.model_validate(entry) for entry in results],
        timestamp=local_now(),
    )
