"""
Booking models - wash appointments and their add-on lines.
"""
from datetime import datetime
from typing import Optional
from uuid import uuid4, UUID
import enum

from sqlalchemy import (
    String,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    Uuid,
    Enum as SQLEnum,
    CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carwash.lib.clock import local_now
from carwash.lib.db import Base
from carwash.models.services import Service, ServiceAddOn
from carwash.models.users import User


class BookingStatus(str, enum.Enum):
    """Booking lifecycle states; transitions live in services.booking_state."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


# Statuses that consume slot capacity
ACTIVE_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS)

TERMINAL_STATUSES = (BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW)


class Booking(Base):
    """
    Booking entity - one vehicle in one time slot.

    booking_date holds local midnight of the service day; the start time is
    carried separately in time_slot ("HH:MM"). Amounts are minor currency
    units with total_amount == base_amount + add_on_amount.
    """
    __tablename__ = "bookings"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )

    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    service_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("services.id"),
        nullable=False,
        index=True,
    )

    # Scheduling
    booking_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    time_slot: Mapped[str] = mapped_column(String(5), nullable=False, index=True)

    status: Mapped[BookingStatus] = mapped_column(
        SQLEnum(BookingStatus, name="booking_status"),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True,
    )

    # Amounts
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    base_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    add_on_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Terminal transitions
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    plate_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    sms_notifications: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=local_now,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=local_now,
        onupdate=local_now,
    )

    user: Mapped[User] = relationship()
    service: Mapped[Service] = relationship()
    add_ons: Mapped[list["BookingAddOn"]] = relationship(
        back_populates="booking",
        cascade="all, delete-orphan",
    )
    reminders: Mapped[list["BookingReminder"]] = relationship(  # noqa: F821
        back_populates="booking",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint(
            "total_amount = base_amount + add_on_amount",
            name="booking_total_matches_parts",
        ),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, status={self.status}, slot={self.booking_date:%Y-%m-%d} {self.time_slot})>"


class BookingAddOn(Base):
    """
    Add-on line on a booking. price is the line total (unit price x quantity).
    """
    __tablename__ = "booking_add_ons"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    add_on_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("service_add_ons.id"),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    price: Mapped[int] = mapped_column(Integer, nullable=False)

    booking: Mapped[Booking] = relationship(back_populates="add_ons")
    add_on: Mapped[ServiceAddOn] = relationship()

    __table_args__ = (
        CheckConstraint("quantity BETWEEN 1 AND 5", name="booking_add_on_quantity_range"),
    )
