"""
Services API routes.
"""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from carwash.api.schemas import CamelModel
from carwash.lib.db import get_db
from carwash.models.services import Service, ServiceAddOn, ServiceCategory


# Pydantic schemas
class AddOnResponse(CamelModel):
    id: UUID
    name: str
    price: int


class ServiceResponse(CamelModel):
    """Catalogue entry. Prices are in cents."""
    id: UUID
    key: Optional[str] = None
    name: str
    category: str
    description: Optional[str] = None
    price: int
    duration: int
    is_active: bool = True
    add_ons: List[AddOnResponse] = []


# Router
router = APIRouter(prefix="/services", tags=["services"])


@router.get("", response_model=List[ServiceResponse])
def list_services(
    category: Optional[ServiceCategory] = Query(None, description="Filter by category"),
    active_only: bool = Query(True, alias="activeOnly", description="Show only active services"),
    db: Session = Depends(get_db),
) -> List[ServiceResponse]:
    """
    List the service catalogue.

    Query parameters:
    - category: Filter by category (EXPRESS, PREMIUM, DELUXE, EXECUTIVE)
    - activeOnly: Show only active services (default: true)

    Returns:
        Services ordered by price, with their active add-ons
    """
    stmt = select(Service).options(selectinload(Service.add_ons))

    if active_only:
        stmt = stmt.where(Service.is_active.is_(True))

    if category:
        stmt = stmt.where(Service.category == category)

    stmt = stmt.order_by(Service.price, Service.name)
    services = db.scalars(stmt).all()

    return [
        ServiceResponse(
            id=s.id,
            key=s.key,
            name=s.name,
            category=s.category.value,
            description=s.description,
            price=s.price,
            duration=s.duration,
            is_active=s.is_active,
            add_ons=[AddOnResponse.model_validate(a) for a in s.add_ons if a.is_active],
        )
        for s in services
    ]


@router.get("/add-ons", response_model=List[AddOnResponse])
def list_add_ons(db: Session = Depends(get_db)) -> List[AddOnResponse]:
    """Active add-ons, including those not tied to a single service."""
    stmt = (
        select(ServiceAddOn)
        .where(ServiceAddOn.is_active.is_(True))
        .order_by(ServiceAddOn.price, ServiceAddOn.name)
    )
    return [AddOnResponse.model_validate(a) for a in db.scalars(stmt).all()]
