"""seed_service_catalogue

Revision ID: 8b3e5f0c61d4
Revises: 4f1c2a7d9e10
Create Date: 2026-09-28 10:31:07.552910

Seed the wash packages and the shared add-ons. Prices are in cents.
"""
from typing import Sequence, Union
from uuid import uuid4

from alembic import op
import sqlalchemy as sa
from sqlalchemy import Table, MetaData


# revision identifiers, used by Alembic.
revision: str = '8b3e5f0c61d4'
down_revision: Union[str, Sequence[str], None] = '4f1c2a7d9e10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


SERVICES = [
    {
        'key': 'express',
        'name': 'Express Exterior Wash',
        'category': 'EXPRESS',
        'description': 'Quick exterior wash and dry',
        'price': 8000,
        'duration': 15,
    },
    {
        'key': 'premium',
        'name': 'Premium Wash & Wax',
        'category': 'PREMIUM',
        'description': 'Exterior wash with hand wax and tyre dressing',
        'price': 15000,
        'duration': 30,
    },
    {
        'key': 'deluxe',
        'name': 'Deluxe Interior & Exterior',
        'category': 'DELUXE',
        'description': 'Full wash, vacuum and interior wipe-down',
        'price': 20000,
        'duration': 60,
    },
    {
        'key': 'executive',
        'name': 'Executive Detail Package',
        'category': 'EXECUTIVE',
        'description': 'Complete detail inside and out',
        'price': 30000,
        'duration': 120,
    },
]

ADD_ONS = [
    ('Tire Shine', 2500),
    ('Premium Air Freshener', 1500),
    ('Dashboard Treatment', 3500),
    ('Floor Mat Deep Clean', 5000),
    ('Engine Bay Cleaning', 7500),
]


def upgrade() -> None:
    """Seed the service catalogue."""
    conn = op.get_bind()
    metadata = MetaData()

    services = Table('services', metadata, autoload_with=conn)
    service_add_ons = Table('service_add_ons', metadata, autoload_with=conn)

    op.bulk_insert(
        services,
        [dict(service, id=uuid4(), is_active=True) for service in SERVICES],
    )
    op.bulk_insert(
        service_add_ons,
        [
            {'id': uuid4(), 'service_id': None, 'name': name, 'price': price, 'is_active': True}
            for name, price in ADD_ONS
        ],
    )


def downgrade() -> None:
    """Remove the seeded catalogue."""
    op.execute(
        sa.text("DELETE FROM service_add_ons WHERE service_id IS NULL AND name IN :names")
        .bindparams(sa.bindparam('names', value=[name for name, _ in ADD_ONS], expanding=True))
    )
    op.execute(
        sa.text("DELETE FROM services WHERE key IN :keys")
        .bindparams(sa.bindparam('keys', value=[service['key'] for service in SERVICES], expanding=True))
    )
