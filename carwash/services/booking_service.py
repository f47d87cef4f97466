"""
Booking management: create, cancel, reschedule, modify and staff status
updates.

Amounts are always computed server-side from the catalogue:
base_amount = service price, add_on_amount = sum of add-on line totals,
total_amount = base_amount + add_on_amount. Status changes go through
services.booking_state.
"""
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import List, Optional, Sequence, Tuple
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from carwash.api.middleware.error_handler import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
)
from carwash.lib.clock import day_bounds, local_now, parse_booking_date, parse_time_slot, slot_start
from carwash.lib.logging import get_logger
from carwash.models.admin_audit_logs import AdminAuditLog
from carwash.models.bookings import Booking, BookingAddOn, BookingStatus
from carwash.models.services import Service, ServiceAddOn
from carwash.models.users import User
from carwash.services.booking_state import BookingEvent, event_for_status, transition

logger = get_logger(__name__)

# Minimum notice for a customer reschedule
RESCHEDULE_NOTICE = timedelta(hours=2)

MIN_ADD_ON_QUANTITY = 1
MAX_ADD_ON_QUANTITY = 5

# Targets staff may set from the dashboard
STAFF_SETTABLE_STATUSES = (
    BookingStatus.CONFIRMED,
    BookingStatus.IN_PROGRESS,
    BookingStatus.COMPLETED,
    BookingStatus.CANCELLED,
    BookingStatus.NO_SHOW,
)

STAFF_CANCELLATION_REASON = "Cancelled by staff"


@dataclass
class AddOnSelection:
    add_on_id: str
    quantity: int = 1


def _parse_uuid(value, what: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise BadRequestException(f"Invalid {what}: {value!r}") from None


def _parse_slot(booking_date: str, time_slot: str) -> Tuple[datetime, str]:
    """Local-midnight booking_date and a normalised HH:MM label."""
    if not booking_date or not time_slot:
        raise BadRequestException("Missing booking date or time slot")
    try:
        day = parse_booking_date(booking_date)
        slot = parse_time_slot(time_slot)
    except (TypeError, ValueError):
        raise BadRequestException(
            "Invalid booking date or time slot",
            details={"bookingDate": booking_date, "timeSlot": time_slot},
        ) from None
    return datetime.combine(day, time.min), f"{slot:%H:%M}"


class BookingService:
    """Booking lifecycle operations on behalf of customers and staff."""

    def __init__(self, db: Session):
        self.db = db

    # ===== Lookups =====

    def get_booking(self, booking_id) -> Booking:
        """
        Raises:
            NotFoundException: If the id is malformed or unknown
        """
        try:
            key = booking_id if isinstance(booking_id, UUID) else UUID(str(booking_id))
        except ValueError:
            raise NotFoundException("Booking", str(booking_id)) from None

        booking = self.db.get(Booking, key)
        if booking is None:
            raise NotFoundException("Booking", str(booking_id))
        return booking

    def get_owned_booking(self, booking_id, user: User, action: str = "access") -> Booking:
        """
        Raises:
            NotFoundException: Unknown booking
            ForbiddenException: The user does not own the booking
        """
        booking = self.get_booking(booking_id)
        if booking.user_id != user.id:
            raise ForbiddenException(f"Not authorized to {action} this booking")
        return booking

    def list_bookings(
        self,
        status: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        user_id: Optional[UUID] = None,
        page: int = 1,
        limit: int = 50,
    ) -> Tuple[List[Booking], int]:
        """
        Page through bookings, newest first.

        Args:
            status: Only bookings in this status
            start_date: First booking day (YYYY-MM-DD), inclusive
            end_date: Last booking day (YYYY-MM-DD), inclusive
            user_id: Only this customer's bookings
            page: 1-indexed page number
            limit: Page size

        Returns:
            (bookings on the page, total matching bookings)

        Raises:
            BadRequestException: Unknown status, bad date, or start after end
        """
        filters = []

        if status:
            try:
                filters.append(Booking.status == BookingStatus(status.upper()))
            except ValueError:
                raise BadRequestException("Invalid status", details={"status": status}) from None

        try:
            first_day = parse_booking_date(start_date) if start_date else None
            last_day = parse_booking_date(end_date) if end_date else None
        except ValueError:
            raise BadRequestException(
                "Invalid date filter",
                details={"startDate": start_date, "endDate": end_date},
            ) from None
        if first_day and last_day and first_day > last_day:
            raise BadRequestException("Start date must not be after end date")

        if first_day:
            filters.append(Booking.booking_date >= day_bounds(first_day)[0])
        if last_day:
            filters.append(Booking.booking_date <= day_bounds(last_day)[1])
        if user_id is not None:
            filters.append(Booking.user_id == user_id)

        total = self.db.scalar(select(func.count()).select_from(Booking).where(*filters))
        bookings = self.db.scalars(
            select(Booking)
            .where(*filters)
            .options(
                selectinload(Booking.user),
                selectinload(Booking.service),
                selectinload(Booking.add_ons).selectinload(BookingAddOn.add_on),
            )
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return list(bookings), total or 0

    def resolve_service(self, service_ref: str) -> Service:
        """
        Find an active service by catalogue key or id.

        Raises:
            BadRequestException: If no active service matches
        """
        if not service_ref:
            raise BadRequestException("Service ID is required")

        service = self.db.scalars(select(Service).where(Service.key == service_ref)).first()
        if service is None:
            try:
                service = self.db.get(Service, UUID(str(service_ref)))
            except ValueError:
                service = None

        if service is None or not service.is_active:
            raise BadRequestException("Selected service not found or not active")
        return service

    def price_add_ons(self, selections: Sequence[AddOnSelection]) -> List[Tuple[ServiceAddOn, int, int]]:
        """
        Validate add-on selections and price each line.

        Returns:
            (add_on, quantity, line_total) per selection

        Raises:
            BadRequestException: Unknown or inactive add-on, or quantity outside 1-5
        """
        for selection in selections:
            if not MIN_ADD_ON_QUANTITY <= selection.quantity <= MAX_ADD_ON_QUANTITY:
                raise BadRequestException(
                    f"Add-on quantities must be between {MIN_ADD_ON_QUANTITY} and {MAX_ADD_ON_QUANTITY}"
                )

        ids = {_parse_uuid(s.add_on_id, "add-on id") for s in selections}
        if not ids:
            return []

        found = {
            add_on.id: add_on
            for add_on in self.db.scalars(
                select(ServiceAddOn).where(ServiceAddOn.id.in_(ids), ServiceAddOn.is_active.is_(True))
            )
        }
        if len(found) != len(ids):
            raise BadRequestException("One or more selected add-ons are not valid")

        lines = []
        for selection in selections:
            add_on = found[_parse_uuid(selection.add_on_id, "add-on id")]
            lines.append((add_on, selection.quantity, add_on.price * selection.quantity))
        return lines

    # ===== Customer operations =====

    def create_booking(
        self,
        user: User,
        service_ref: str,
        booking_date: str,
        time_slot: str,
        add_ons: Sequence[AddOnSelection] = (),
        notes: Optional[str] = None,
        sms_notifications: bool = False,
        plate_number: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Booking:
        """
        Create a confirmed booking.

        No capacity lock is taken; callers check availability first and
        two concurrent creates for the last place can both succeed.

        Raises:
            BadRequestException: Bad slot, unknown service/add-on, or a start in the past
        """
        day, slot = _parse_slot(booking_date, time_slot)
        now = now or local_now()
        if slot_start(day.date(), slot) <= now:
            raise BadRequestException("Booking date must be in the future")

        service = self.resolve_service(service_ref)
        lines = self.price_add_ons(add_ons)
        add_on_amount = sum(line_total for _, _, line_total in lines)

        booking = Booking(
            id=uuid4(),
            user_id=user.id,
            service_id=service.id,
            booking_date=day,
            time_slot=slot,
            status=BookingStatus.PENDING,
            base_amount=service.price,
            add_on_amount=add_on_amount,
            total_amount=service.price + add_on_amount,
            notes=notes,
            plate_number=plate_number,
            sms_notifications=sms_notifications,
        )
        booking.service = service
        booking.add_ons = [
            BookingAddOn(add_on_id=add_on.id, quantity=quantity, price=line_total)
            for add_on, quantity, line_total in lines
        ]
        transition(booking, BookingEvent.CONFIRM, now=now)

        self.db.add(booking)
        self.db.commit()

        logger.info(
            "Booking created",
            extra={
                "booking_id": str(booking.id),
                "user_id": str(user.id),
                "service": service.name,
                "date": f"{day:%Y-%m-%d}",
                "time_slot": slot,
                "total_amount": booking.total_amount,
            },
        )
        return booking

    def cancel_booking(self, booking_id, user: User, now: Optional[datetime] = None) -> Booking:
        """
        Raises:
            NotFoundException, ForbiddenException, TransitionError
        """
        booking = self.get_owned_booking(booking_id, user, action="cancel")
        transition(booking, BookingEvent.CANCEL, reason="Cancelled by customer", now=now)
        self.db.commit()
        return booking

    def reschedule_booking(
        self,
        booking_id,
        user: User,
        booking_date: str,
        time_slot: str,
        now: Optional[datetime] = None,
    ) -> Booking:
        """
        Move a confirmed booking to a new slot at least two hours ahead.

        Raises:
            BadRequestException: Not CONFIRMED, bad slot, or too little notice
            ConflictException: Another confirmed booking holds the slot
        """
        booking = self.get_owned_booking(booking_id, user, action="reschedule")
        if booking.status != BookingStatus.CONFIRMED:
            raise BadRequestException("Only confirmed bookings can be rescheduled")

        day, slot = _parse_slot(booking_date, time_slot)
        now = now or local_now()
        new_start = slot_start(day.date(), slot)
        if new_start <= now:
            raise BadRequestException("Booking date must be in the future")
        if new_start - now < RESCHEDULE_NOTICE:
            raise BadRequestException(
                "Bookings must be rescheduled at least 2 hours in advance. "
                "Please call us for same-day changes."
            )

        clash = self.db.scalars(
            select(Booking.id).where(
                Booking.booking_date == day,
                Booking.time_slot == slot,
                Booking.status == BookingStatus.CONFIRMED,
                Booking.id != booking.id,
            )
        ).first()
        if clash is not None:
            raise ConflictException(
                "The selected time slot is not available. Please choose a different time."
            )

        old_slot = (f"{booking.booking_date:%Y-%m-%d}", booking.time_slot)
        booking.booking_date = day
        booking.time_slot = slot
        self.db.commit()

        logger.info(
            "Booking rescheduled",
            extra={
                "booking_id": str(booking.id),
                "from": f"{old_slot[0]} {old_slot[1]}",
                "to": f"{day:%Y-%m-%d} {slot}",
            },
        )
        return booking

    def modify_booking(
        self,
        booking_id,
        user: User,
        service_ref: str,
        add_ons: Sequence[AddOnSelection] = (),
        notes: Optional[str] = None,
    ) -> Booking:
        """
        Replace the service, add-on lines and notes of a confirmed booking.

        All line items and amounts change in one transaction; any failure
        rolls the whole modification back.

        Raises:
            BadRequestException: Not CONFIRMED, or invalid service/add-ons
        """
        booking = self.get_owned_booking(booking_id, user, action="modify")
        if booking.status != BookingStatus.CONFIRMED:
            raise BadRequestException("Only confirmed bookings can be modified")

        service = self.resolve_service(service_ref)
        lines = self.price_add_ons(add_ons)
        add_on_amount = sum(line_total for _, _, line_total in lines)

        try:
            booking.add_ons.clear()
            self.db.flush()
            for add_on, quantity, line_total in lines:
                booking.add_ons.append(
                    BookingAddOn(add_on_id=add_on.id, quantity=quantity, price=line_total)
                )
            booking.service_id = service.id
            booking.service = service
            booking.base_amount = service.price
            booking.add_on_amount = add_on_amount
            booking.total_amount = service.price + add_on_amount
            booking.notes = notes
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.error("Booking modification rolled back", extra={"booking_id": str(booking.id)}, exc_info=True)
            raise

        logger.info(
            "Booking modified",
            extra={
                "booking_id": str(booking.id),
                "service": service.name,
                "add_ons": len(lines),
                "total_amount": booking.total_amount,
            },
        )
        return booking

    # ===== Staff operations =====

    def update_status(
        self,
        booking_id,
        actor: User,
        target_status: str,
        reason: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Booking:
        """
        Move a booking to the requested status and write an audit log row
        in the same transaction.

        Raises:
            BadRequestException: Unknown or non-settable status
            NotFoundException: Unknown booking
            TransitionError: Move not allowed from the current status
        """
        try:
            target = BookingStatus(target_status)
        except ValueError:
            target = None
        if target not in STAFF_SETTABLE_STATUSES:
            raise BadRequestException("Invalid status", details={"status": target_status})

        booking = self.get_booking(booking_id)
        old_status = BookingStatus(booking.status)

        if target == BookingStatus.CANCELLED and not reason:
            reason = STAFF_CANCELLATION_REASON
        transition(booking, event_for_status(target), reason=reason, now=now)
        self.db.add(
            AdminAuditLog(
                actor_id=actor.id,
                action="UPDATE_BOOKING_STATUS",
                entity_type="BOOKING",
                entity_id=str(booking.id),
                old_values={"status": old_status.value},
                new_values={"status": target.value},
                ip_address=ip_address or "unknown",
                user_agent=user_agent or "unknown",
            )
        )
        self.db.commit()
        return booking
