"""
BookingReminder model - record of every reminder dispatch attempt.
"""
from datetime import datetime
from typing import Optional
from uuid import uuid4, UUID
import enum

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carwash.lib.clock import local_now
from carwash.lib.db import Base
from carwash.models.bookings import Booking


class ReminderType(str, enum.Enum):
    """Reminder offsets before the scheduled start."""
    TWENTY_FOUR_HOUR = "24_hour"
    TWO_HOUR = "2_hour"
    THIRTY_MIN = "30_min"


class BookingReminder(Base):
    """
    A reminder row with sent_at set marks (booking_id, reminder_type) as
    delivered. There is no unique index; the dispatcher checks for an
    existing sent row before inserting, so two overlapping sweeps can both
    insert.
    """
    __tablename__ = "booking_reminders"

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
    reminder_type: Mapped[ReminderType] = mapped_column(
        SQLEnum(
            ReminderType,
            name="reminder_type",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
    )

    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    email_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sms_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    message: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=local_now,
    )

    booking: Mapped[Booking] = relationship(back_populates="reminders")

    def __repr__(self) -> str:
        return f"<BookingReminder(booking_id={self.booking_id}, type={self.reminder_type}, sent_at={self.sent_at})>"
