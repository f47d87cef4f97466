"""
Staff booking routes.

- GET /staff/bookings: page through all bookings with filters
- POST /staff/bookings/{id}/status: move a booking through its lifecycle
"""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from pydantic import Field
from sqlalchemy.orm import Session

from carwash.api.dependencies import client_ip, require_staff
from carwash.api.routes.bookings import BookingResponse
from carwash.api.schemas import CamelModel
from carwash.lib.db import get_db
from carwash.lib.logging import get_logger
from carwash.models.bookings import Booking
from carwash.models.users import User
from carwash.services.booking_service import BookingService

logger = get_logger(__name__)


class UpdateStatusRequest(CamelModel):
    status: str = Field(..., description="CONFIRMED, IN_PROGRESS, COMPLETED, CANCELLED or NO_SHOW")
    reason: Optional[str] = Field(None, max_length=500)


class BookingCustomer(CamelModel):
    id: UUID
    name: str
    email: str
    phone: Optional[str] = None


class StaffBookingResponse(BookingResponse):
    """Booking with the customer's contact details."""
    customer: BookingCustomer

    @classmethod
    def from_booking(cls, booking: Booking) -> "StaffBookingResponse":
        return cls(
            **BookingResponse.from_booking(booking).model_dump(),
            customer=BookingCustomer(
                id=booking.user.id,
                name=booking.user.full_name,
                email=booking.user.email,
                phone=booking.user.phone,
            ),
        )


class StaffBookingListResponse(CamelModel):
    bookings: List[StaffBookingResponse]
    total: int
    page: int
    limit: int
    has_next: bool


router = APIRouter(prefix="/staff", tags=["staff"])


@router.get("/bookings", response_model=StaffBookingListResponse)
def list_bookings(
    status: Optional[str] = Query(None, description="Only bookings in this status"),
    start_date: Optional[str] = Query(None, alias="startDate", description="First booking day, YYYY-MM-DD"),
    end_date: Optional[str] = Query(None, alias="endDate", description="Last booking day, YYYY-MM-DD"),
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    limit: int = Query(50, ge=1, le=100, description="Items per page"),
    staff: User = Depends(require_staff),
    db: Session = Depends(get_db),
) -> StaffBookingListResponse:
    """
    List bookings for the staff dashboard, newest first.

    Date filters apply to the booking day, both ends inclusive.
    """
    bookings, total = BookingService(db).list_bookings(
        status=status,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )

    logger.info(
        "Staff booking list",
        extra={"staff_id": str(staff.id), "total": total, "page": page},
    )
    return StaffBookingListResponse(
        bookings=[StaffBookingResponse.from_booking(booking) for booking in bookings],
        total=total,
        page=page,
        limit=limit,
        has_next=page * limit < total,
    )


@router.post("/bookings/{booking_id}/status", response_model=BookingResponse)
def update_booking_status(
    booking_id: str,
    body: UpdateStatusRequest,
    request: Request,
    staff: User = Depends(require_staff),
    db: Session = Depends(get_db),
) -> BookingResponse:
    """
    Apply a status change and record it in the admin audit log.

    Moves not allowed from the current status return 400.
    """
    booking = BookingService(db).update_status(
        booking_id,
        staff,
        body.status,
        reason=body.reason,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )

    logger.info(
        "Booking status updated by staff",
        extra={
            "booking_id": str(booking.id),
            "staff_id": str(staff.id),
            "status": booking.status.value,
        },
    )
    return BookingResponse.from_booking(booking)
