from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date
from typing import Any

from sqlalchemy import func, select

from agrichain.errors import IntegrityViolation, ValidationError, Violation
from agrichain.extensions import db
from agrichain.models import Farmer, Order, Product, ProductCategory, Supplier
from agrichain.services import audit_service
from agrichain.services.inventory_service import lock_product
from agrichain.services.unit_of_work import transaction
from agrichain.validation import coerce_date, coerce_int, normalize_price, validate_product

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "name",
    "quantity",
    "harvest_date",
    "expiry_date",
    "price_per_kg",
    "supplier_id",
    "category_id",
    "quality_rating",
    "certification",
)
REQUIRED_LISTING_FIELDS = ("name", "harvest_date", "expiry_date", "price_per_kg", "farmer_id")


def create_product(fields: Mapping[str, Any], *, actor: str | None) -> Product:
    missing = [name for name in REQUIRED_LISTING_FIELDS if fields.get(name) is None]
    if missing:
        raise ValidationError([Violation("MissingField", name, f"{name} is required") for name in missing])

    unknown = set(fields) - set(UPDATABLE_FIELDS) - {"farmer_id"}
    if unknown:
        raise _unknown_fields(unknown)

    values = _normalize(fields)
    values.setdefault("quantity", 0)
    values.setdefault("quality_rating", "Good")
    values["farmer_id"] = coerce_int(fields["farmer_id"], "farmer_id")
    validate_product(values)

    with transaction():
        farmer = db.session.get(Farmer, values["farmer_id"])
        if farmer is None:
            raise IntegrityViolation.missing("farmer", values["farmer_id"], field="farmer_id")
        _check_references(values)
        _check_unique_name(values["name"])

        product = Product(**values)
        db.session.add(product)
        db.session.flush()
        audit_service.record(
            "products", "INSERT", actor, record_id=product.id, after=product.audit_snapshot()
        )

    logger.info("product %s listed by farmer %s", product.id, product.farmer_id)
    return product


def update_product(product_id: int, fields: Mapping[str, Any], *, actor: str | None) -> Product:
    """
    Apply a correction to a product as one atomic write.

    The merged row is re-validated as a whole; if any rule fails nothing is
    changed. Exactly one audit entry is written per committed update.
    """
    if not fields:
        raise ValidationError.single("MissingField", "no product fields provided")
    unknown = set(fields) - set(UPDATABLE_FIELDS)
    if unknown:
        raise _unknown_fields(unknown)

    updates = _normalize(fields)

    with transaction():
        product = lock_product(product_id)
        merged = {name: getattr(product, name) for name in UPDATABLE_FIELDS}
        merged.update(updates)
        validate_product(merged)
        _check_references(updates)
        if "name" in updates and updates["name"] != product.name:
            _check_unique_name(updates["name"])

        before = product.audit_snapshot()
        for name, value in updates.items():
            setattr(product, name, value)
        db.session.flush()
        audit_service.record(
            "products", "UPDATE", actor, record_id=product.id, before=before, after=product.audit_snapshot()
        )

    logger.info("product %s updated: %s", product_id, sorted(updates))
    return product


def retire_product(product_id: int, *, actor: str | None) -> str:
    """Soft-delete a product referenced by orders; hard-delete it otherwise."""
    with transaction():
        product = lock_product(product_id)
        before = product.audit_snapshot()
        order_count = db.session.scalar(
            select(func.count(Order.id)).where(Order.product_id == product_id)
        )
        if order_count and not product.is_active:
            logger.info("product %s already inactive", product_id)
            return "deactivated"
        if order_count:
            product.is_active = False
            db.session.flush()
            outcome = "deactivated"
            audit_service.record(
                "products",
                "DEACTIVATE",
                actor,
                record_id=product_id,
                before={**before, "is_active": True},
                after={**product.audit_snapshot(), "is_active": False},
            )
        else:
            db.session.delete(product)
            db.session.flush()
            outcome = "deleted"
            audit_service.record("products", "DELETE", actor, record_id=product_id, before=before)

    logger.info("product %s %s", product_id, outcome)
    return outcome


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise IntegrityViolation.missing("product", product_id)
    return product


def list_products(
    *,
    farmer_id: int | None = None,
    category_id: int | None = None,
    active_only: bool = True,
    limit: int = 200,
) -> list[Product]:
    stmt = select(Product)
    if farmer_id is not None:
        stmt = stmt.where(Product.farmer_id == farmer_id)
    if category_id is not None:
        stmt = stmt.where(Product.category_id == category_id)
    if active_only:
        stmt = stmt.where(Product.is_active.is_(True))
    stmt = stmt.order_by(Product.name.asc()).limit(limit)
    return list(db.session.execute(stmt).scalars().all())


def _normalize(fields: Mapping[str, Any]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for name, raw in fields.items():
        if name == "farmer_id":
            continue
        if name in ("harvest_date", "expiry_date"):
            values[name] = _as_date(raw, name)
        elif name == "price_per_kg":
            values[name] = normalize_price(raw, name)
        elif name == "quantity":
            values[name] = coerce_int(raw, name)
        elif name in ("supplier_id", "category_id"):
            values[name] = None if raw is None else coerce_int(raw, name)
        elif name == "name":
            values[name] = str(raw or "").strip()
        elif name == "certification":
            values[name] = (str(raw).strip() or None) if raw is not None else None
        else:
            values[name] = raw
    return values


def _as_date(raw: Any, field: str) -> date:
    if raw is None:
        raise ValidationError.single("MissingField", f"{field} is required", field)
    return coerce_date(raw, field)


def _check_references(values: Mapping[str, Any]) -> None:
    supplier_id = values.get("supplier_id")
    if supplier_id is not None and db.session.get(Supplier, supplier_id) is None:
        raise IntegrityViolation.missing("supplier", supplier_id, field="supplier_id")
    category_id = values.get("category_id")
    if category_id is not None and db.session.get(ProductCategory, category_id) is None:
        raise IntegrityViolation.missing("category", category_id, field="category_id")


def _check_unique_name(name: str) -> None:
    if db.session.scalar(select(Product.id).where(Product.name == name)) is not None:
        raise IntegrityViolation(
            f"a product named {name!r} already exists",
            entity="product",
            field="name",
            status_code=409,
        )


def _unknown_fields(names: set[str]) -> ValidationError:
    return ValidationError(
        [Violation("UnknownField", name, f"{name} cannot be set on a product") for name in sorted(names)]
    )
