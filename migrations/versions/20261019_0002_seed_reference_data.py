"""seed product categories and payment methods

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 00:15:00
"""

from collections.abc import Sequence
from datetime import datetime, timezone

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261019_0002"
down_revision: str | None = "20261019_0001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

CATEGORIES = [
    ("Fruits", "Fresh fruits and produce"),
    ("Grains", "Cereals and grains"),
    ("Vegetables", "Fresh vegetables"),
    ("Legumes", "Beans and pulses"),
    ("Coffee", "Coffee beans and products"),
]

PAYMENT_METHODS = [
    ("Mobile Money", "Payment through mobile money services"),
    ("Bank Transfer", "Direct bank transfer"),
    ("Cash on Delivery", "Payment upon delivery"),
    ("Credit Card", "Payment via credit card"),
    ("Cheque", "Payment by cheque"),
]


def upgrade() -> None:
    now = datetime.now(timezone.utc)
    categories_table = sa.table(
        "product_categories",
        sa.column("name", sa.String),
        sa.column("description", sa.Text),
        sa.column("created_at", sa.DateTime(timezone=True)),
    )
    payment_methods_table = sa.table(
        "payment_methods",
        sa.column("name", sa.String),
        sa.column("description", sa.Text),
        sa.column("is_active", sa.Boolean),
        sa.column("created_at", sa.DateTime(timezone=True)),
    )

    op.bulk_insert(
        categories_table,
        [{"name": name, "description": description, "created_at": now} for name, description in CATEGORIES],
    )
    op.bulk_insert(
        payment_methods_table,
        [
            {"name": name, "description": description, "is_active": True, "created_at": now}
            for name, description in PAYMENT_METHODS
        ],
    )


def downgrade() -> None:
    connection = op.get_bind()
    connection.execute(
        sa.text("DELETE FROM payment_methods WHERE name IN :names").bindparams(
            sa.bindparam("names", expanding=True)
        ),
        {"names": [name for name, _ in PAYMENT_METHODS]},
    )
    connection.execute(
        sa.text("DELETE FROM product_categories WHERE name IN :names").bindparams(
            sa.bindparam("names", expanding=True)
        ),
        {"names": [name for name, _ in CATEGORIES]},
    )
