"""
Customer booking routes.

- GET /bookings: list the caller's bookings
- POST /bookings: create a booking
- POST /bookings/{id}/cancel
- POST /bookings/{id}/reschedule
- POST /bookings/{id}/modify

All routes act on the caller's own bookings.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from sqlalchemy.orm import Session

from carwash.api.dependencies import get_current_user
from carwash.api.schemas import CamelModel
from carwash.lib.db import get_db
from carwash.models.bookings import Booking
from carwash.models.users import User
from carwash.services.booking_service import (
    MAX_ADD_ON_QUANTITY,
    AddOnSelection,
    BookingService,
)


# Pydantic schemas
class AddOnRequest(CamelModel):
    add_on_id: str
    # Range is checked by BookingService so the error reads like the others
    quantity: int = 1


class CreateBookingRequest(CamelModel):
    service_id: str = Field(..., description="Catalogue key (express, premium, ...) or service id")
    booking_date: str = Field(..., description="YYYY-MM-DD")
    time_slot: str = Field(..., description="HH:MM")
    add_ons: List[AddOnRequest] = Field(default_factory=list)
    notes: Optional[str] = Field(None, max_length=1000)
    sms_notifications: bool = False
    plate_number: Optional[str] = Field(None, max_length=20)


class RescheduleBookingRequest(CamelModel):
    booking_date: str
    time_slot: str


class ModifyBookingRequest(CamelModel):
    service_id: str
    add_ons: List[AddOnRequest] = Field(
        default_factory=list,
        description=f"Replaces every add-on line; quantity 1-{MAX_ADD_ON_QUANTITY}",
    )
    notes: Optional[str] = Field(None, max_length=1000)


class BookingAddOnResponse(CamelModel):
    add_on_id: UUID
    name: str
    quantity: int
    price: int


class BookingResponse(CamelModel):
    id: UUID
    user_id: UUID
    service_id: UUID
    service_name: str
    booking_date: datetime
    time_slot: str
    status: str
    base_amount: int
    add_on_amount: int
    total_amount: int
    add_ons: List[BookingAddOnResponse] = Field(default_factory=list)
    notes: Optional[str] = None
    plate_number: Optional[str] = None
    sms_notifications: bool = False
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingResponse":
        return cls(
            id=booking.id,
            user_id=booking.user_id,
            service_id=booking.service_id,
            service_name=booking.service.name,
            booking_date=booking.booking_date,
            time_slot=booking.time_slot,
            status=booking.status.value,
            base_amount=booking.base_amount,
            add_on_amount=booking.add_on_amount,
            total_amount=booking.total_amount,
            add_ons=[
                BookingAddOnResponse(
                    add_on_id=line.add_on_id,
                    name=line.add_on.name,
                    quantity=line.quantity,
                    price=line.price,
                )
                for line in booking.add_ons
            ],
            notes=booking.notes,
            plate_number=booking.plate_number,
            sms_notifications=booking.sms_notifications,
            completed_at=booking.completed_at,
            cancelled_at=booking.cancelled_at,
            cancellation_reason=booking.cancellation_reason,
            created_at=booking.created_at,
        )


class BookingListResponse(CamelModel):
    """One page of bookings, newest first."""
    bookings: List[BookingResponse]
    total: int
    page: int
    limit: int
    has_next: bool


def _selections(add_ons: List[AddOnRequest]) -> List[AddOnSelection]:
    return [AddOnSelection(add_on_id=item.add_on_id, quantity=item.quantity) for item in add_ons]


# Router
router = APIRouter(prefix="/bookings", tags=["bookings"])


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    return BookingService(db)


@router.get("", response_model=BookingListResponse)
def list_my_bookings(
    status_filter: Optional[str] = Query(None, alias="status", description="Only bookings in this status"),
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
) -> BookingListResponse:
    bookings, total = service.list_bookings(status=status_filter, user_id=user.id, page=page, limit=limit)
    return BookingListResponse(
        bookings=[BookingResponse.from_booking(booking) for booking in bookings],
        total=total,
        page=page,
        limit=limit,
        has_next=page * limit < total,
    )


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    request: CreateBookingRequest,
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """
    Create a confirmed booking. Amounts are priced from the catalogue.

    Capacity is not locked here; clients check /bookings/availability first.
    """
    booking = service.create_booking(
        user,
        request.service_id,
        request.booking_date,
        request.time_slot,
        add_ons=_selections(request.add_ons),
        notes=request.notes,
        sms_notifications=request.sms_notifications,
        plate_number=request.plate_number,
    )
    return BookingResponse.from_booking(booking)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: str,
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    booking = service.cancel_booking(booking_id, user)
    return BookingResponse.from_booking(booking)


@router.post("/{booking_id}/reschedule", response_model=BookingResponse)
def reschedule_booking(
    booking_id: str,
    request: RescheduleBookingRequest,
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Move a confirmed booking; needs 2 hours notice and a free slot (409 otherwise)."""
    booking = service.reschedule_booking(booking_id, user, request.booking_date, request.time_slot)
    return BookingResponse.from_booking(booking)


@router.post("/{booking_id}/modify", response_model=BookingResponse)
def modify_booking(
    booking_id: str,
    request: ModifyBookingRequest,
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    booking = service.modify_booking(
        booking_id,
        user,
        request.service_id,
        add_ons=_selections(request.add_ons),
        notes=request.notes,
    )
    return BookingResponse.from_booking(booking)
