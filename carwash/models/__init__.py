"""
SQLAlchemy models package.
Import all models here to ensure they're registered with Base.metadata.
"""
from carwash.models.users import User, UserRole
from carwash.models.services import Service, ServiceAddOn, ServiceCategory
from carwash.models.bookings import Booking, BookingAddOn, BookingStatus
from carwash.models.booking_reminders import BookingReminder, ReminderType
from carwash.models.admin_audit_logs import AdminAuditLog

__all__ = [
    "User",
    "UserRole",
    "Service",
    "ServiceAddOn",
    "ServiceCategory",
    "Booking",
    "BookingAddOn",
    "BookingStatus",
    "BookingReminder",
    "ReminderType",
    "AdminAuditLog",
]
