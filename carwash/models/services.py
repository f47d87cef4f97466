"""
Service catalogue models - wash packages and their add-ons.
"""
from uuid import uuid4
from typing import Optional
from uuid import UUID
import enum

from sqlalchemy import String, Integer, Boolean, ForeignKey, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carwash.lib.db import Base


class ServiceCategory(str, enum.Enum):
    """Service category enumeration."""
    EXPRESS = "EXPRESS"
    PREMIUM = "PREMIUM"
    DELUXE = "DELUXE"
    EXECUTIVE = "EXECUTIVE"


# Catalogue keys used by the booking form, mapped to seeded service names.
# Booking records reference services whose names drifted over time, so
# lookups by key match names loosely.
SERVICE_NAMES_BY_KEY = {
    "express": "Express Exterior Wash",
    "premium": "Premium Wash & Wax",
    "deluxe": "Deluxe Interior & Exterior",
    "executive": "Executive Detail Package",
}


def service_name_for_key(key: str) -> str:
    """Catalogue name for a booking-form key, or "" when unknown."""
    return SERVICE_NAMES_BY_KEY.get(key, "")


def service_key_for_name(name: str) -> str:
    """Booking-form key for a catalogue name, or "" when unknown."""
    for key, service_name in SERVICE_NAMES_BY_KEY.items():
        if service_name == name:
            return key
    return ""


class Service(Base):
    """
    Service entity - bookable wash packages.
    Prices are stored in minor currency units (cents).
    """
    __tablename__ = "services"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )

    key: Mapped[Optional[str]] = mapped_column(String(50), unique=True, nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    category: Mapped[ServiceCategory] = mapped_column(
        SQLEnum(ServiceCategory, name="service_category"),
        nullable=False,
        index=True,
    )
    description: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    price: Mapped[int] = mapped_column(Integer, nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False, default=30)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    add_ons: Mapped[list["ServiceAddOn"]] = relationship(back_populates="service")

    def __repr__(self) -> str:
        return f"<Service(id={self.id}, name={self.name}, duration={self.duration})>"


class ServiceAddOn(Base):
    """
    Optional extra that can be attached to a booking (air freshener, engine bay...).
    """
    __tablename__ = "service_add_ons"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
    service_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("services.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    service: Mapped[Optional[Service]] = relationship(back_populates="add_ons")

    def __repr__(self) -> str:
        return f"<ServiceAddOn(id={self.id}, name={self.name}, price={self.price})>"
