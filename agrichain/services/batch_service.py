"""
Multi-row operations that commit or fail as a single unit.

Both operations evaluate every item before deciding the outcome, so a
rejected batch reports all offending rows at once rather than the first.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, Overflow
from typing import Any

from sqlalchemy import extract, select

from agrichain.errors import (
    BatchItemFailure,
    BatchValidationError,
    InsufficientStock,
    IntegrityViolation,
    ValidationError,
)
from agrichain.extensions import db
from agrichain.models import Order, Product
from agrichain.services import audit_service
from agrichain.services.inventory_service import admit_order
from agrichain.services.unit_of_work import transaction
from agrichain.validation import (
    PRICE_CEILING,
    coerce_decimal,
    quantize_money,
    season_months,
    validate_order,
    validate_product,
)

logger = logging.getLogger(__name__)

_ADMISSION_ERRORS = (ValidationError, InsufficientStock, IntegrityViolation)


@dataclass(frozen=True)
class PriceChange:
    product_id: int
    old_price: Decimal
    new_price: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "old_price_per_kg": str(self.old_price),
            "new_price_per_kg": str(self.new_price),
        }


def adjust_seasonal_prices(season: str, factor: Any, *, actor: str | None) -> list[PriceChange]:
    """
    Multiply the price of every product harvested in ``season`` by ``factor``.

    Whole-batch policy: if any resulting row would break a product invariant
    (the price floor or ceiling in practice) the batch raises ``BatchValidationError``
    and no price changes.
    """
    first_month, last_month = season_months(season)
    factor = coerce_decimal(factor, "factor")
    if factor <= 0:
        raise ValidationError.single("InvalidFactor", "factor must be greater than zero", "factor")

    with transaction():
        stmt = (
            select(Product)
            .where(extract("month", Product.harvest_date).between(first_month, last_month))
            .order_by(Product.id.asc())
            .with_for_update(of=Product)
            .execution_options(populate_existing=True)
        )
        products = list(db.session.execute(stmt).scalars().all())

        planned: list[tuple[Product, Decimal]] = []
        failures: list[BatchItemFailure] = []
        for index, product in enumerate(products):
            new_price = _scaled_price(product.price_per_kg, factor)
            try:
                validate_product(
                    {
                        "name": product.name,
                        "quantity": product.quantity,
                        "harvest_date": product.harvest_date,
                        "expiry_date": product.expiry_date,
                        "price_per_kg": new_price,
                        "quality_rating": product.quality_rating,
                    }
                )
            except ValidationError as exc:
                failures.append(BatchItemFailure(index=index, subject_id=product.id, error=exc))
            else:
                planned.append((product, new_price))

        if failures:
            logger.warning(
                "seasonal adjustment %s x%s rejected: %d of %d products would break invariants",
                season,
                factor,
                len(failures),
                len(products),
            )
            raise BatchValidationError("seasonal price adjustment", failures)

        changes: list[PriceChange] = []
        for product, new_price in planned:
            before = product.audit_snapshot()
            old_price = product.price_per_kg
            product.price_per_kg = new_price
            db.session.flush()
            audit_service.record(
                "products",
                "SEASONAL_PRICE_ADJUSTMENT",
                actor,
                record_id=product.id,
                before=before,
                after=product.audit_snapshot(),
            )
            changes.append(PriceChange(product_id=product.id, old_price=old_price, new_price=new_price))

    logger.info("seasonal adjustment %s x%s applied to %d products", season, factor, len(changes))
    return changes


def _scaled_price(price: Decimal, factor: Decimal) -> Decimal:
    # Out-of-range results are left unquantized so validate_product reports PriceTooHigh.
    try:
        scaled = price * factor
    except Overflow:
        return Decimal("Infinity")
    if scaled > PRICE_CEILING:
        return scaled
    return quantize_money(scaled)


def bulk_place_orders(
    product_ids: Sequence[int],
    quantities: Sequence[int],
    buyer_id: int,
    payment_method_id: int | None,
    *,
    actor: str | None,
    order_date: date | None = None,
) -> list[Order]:
    """
    Place one order per ``(product_id, quantity)`` pair, all or nothing.

    Items are admitted in sequence inside a single transaction, so repeated
    product ids draw down the same stock cumulatively.
    """
    if len(product_ids) != len(quantities):
        raise ValidationError.single(
            "LengthMismatch",
            "product_ids and quantities must have the same length",
            "quantities",
        )
    if not product_ids:
        raise ValidationError.single("EmptyBatch", "at least one product is required", "product_ids")

    order_date = order_date or date.today()

    with transaction():
        orders: list[Order] = []
        failures: list[BatchItemFailure] = []
        for index, (product_id, quantity) in enumerate(zip(product_ids, quantities)):
            try:
                validate_order({"quantity": quantity, "order_date": order_date})
                order = admit_order(
                    product_id,
                    buyer_id,
                    quantity,
                    payment_method_id,
                    actor=actor,
                    order_date=order_date,
                )
            except _ADMISSION_ERRORS as exc:
                failures.append(BatchItemFailure(index=index, subject_id=product_id, error=exc))
            else:
                orders.append(order)

        if failures:
            logger.warning(
                "bulk order for buyer %s rejected: %d of %d items failed admission",
                buyer_id,
                len(failures),
                len(product_ids),
            )
            raise BatchValidationError("bulk order placement", failures)

    logger.info("bulk order for buyer %s placed %d orders", buyer_id, len(orders))
    return orders
