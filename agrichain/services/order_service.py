from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date
from typing import Any

from sqlalchemy import select

from agrichain.errors import IntegrityViolation, InvalidTransition, ValidationError, Violation
from agrichain.extensions import db
from agrichain.models import Order, Transportation
from agrichain.services import audit_service
from agrichain.services.inventory_service import lock_product, release_stock
from agrichain.services.unit_of_work import transaction
from agrichain.validation import (
    ORDER_STATUSES,
    PAYMENT_STATUSES,
    TRANSPORT_STATUSES,
    coerce_date,
    validate_transportation,
)

logger = logging.getLogger(__name__)

ORDER_STATUS_TRANSITIONS: dict[str, set[str]] = {
    "Pending": {"Shipped", "Partially Fulfilled", "Cancelled"},
    "Partially Fulfilled": {"Shipped", "Delivered", "Cancelled"},
    "Shipped": {"Delivered", "Cancelled"},
    "Delivered": set(),
    "Cancelled": set(),
}

PAYMENT_STATUS_TRANSITIONS: dict[str, set[str]] = {
    "Pending": {"Paid", "Partially Paid", "Overdue"},
    "Partially Paid": {"Paid", "Overdue"},
    "Overdue": {"Paid", "Partially Paid"},
    "Paid": set(),
}

TRANSPORT_STATUS_TRANSITIONS: dict[str, set[str]] = {
    "In Transit": {"Delivered", "Delayed", "Cancelled"},
    "Delayed": {"In Transit", "Delivered", "Cancelled"},
    "Delivered": set(),
    "Cancelled": set(),
}

TRANSPORT_FIELDS = ("vehicle_type", "driver_name", "driver_contact", "expected_delivery", "actual_delivery", "status")


def update_order_status(order_id: int, new_status: str, *, actor: str | None) -> Order:
    """
    Move an order along its lifecycle.

    Cancelling returns the ordered quantity to the product. Terminal orders
    (Delivered, Cancelled) cannot change.
    """
    if new_status not in ORDER_STATUSES:
        raise ValidationError.single(
            "InvalidStatus", f"status must be one of {', '.join(ORDER_STATUSES)}", "status"
        )

    with transaction():
        order = _lock_order(order_id)
        old_status = order.status
        if new_status == old_status:
            return order
        if new_status not in ORDER_STATUS_TRANSITIONS.get(old_status, set()):
            raise InvalidTransition(f"order {order_id}", old_status, new_status)

        before = order.audit_snapshot()
        order.status = new_status
        db.session.flush()
        audit_service.record(
            "orders", "STATUS_CHANGE", actor, record_id=order.id, before=before, after=order.audit_snapshot()
        )

        if new_status == "Cancelled":
            product = lock_product(order.product_id)
            release_stock(product, order.quantity, actor=actor, reason="ORDER_CANCELLED")

    logger.info("order %s status %s -> %s", order_id, old_status, new_status)
    return order


def update_payment_status(order_id: int, new_status: str, *, actor: str | None) -> Order:
    if new_status not in PAYMENT_STATUSES:
        raise ValidationError.single(
            "InvalidStatus",
            f"payment_status must be one of {', '.join(PAYMENT_STATUSES)}",
            "payment_status",
        )

    with transaction():
        order = _lock_order(order_id)
        if order.is_terminal:
            raise InvalidTransition(f"order {order_id}", order.status, new_status, field="payment_status")
        old_status = order.payment_status
        if new_status == old_status:
            return order
        if new_status not in PAYMENT_STATUS_TRANSITIONS.get(old_status, set()):
            raise InvalidTransition(f"payment of order {order_id}", old_status, new_status, field="payment_status")

        before = order.audit_snapshot()
        order.payment_status = new_status
        db.session.flush()
        audit_service.record(
            "orders", "PAYMENT_STATUS_CHANGE", actor, record_id=order.id, before=before, after=order.audit_snapshot()
        )

    logger.info("order %s payment %s -> %s", order_id, old_status, new_status)
    return order


def schedule_transportation(order_id: int, fields: Mapping[str, Any], *, actor: str | None) -> Transportation:
    values = _transport_values(fields)
    values.setdefault("status", "In Transit")
    if values["status"] not in ("In Transit", "Delayed"):
        raise ValidationError.single(
            "InvalidStatus", "new transportation must start In Transit or Delayed", "status"
        )
    validate_transportation(values)

    with transaction():
        order = _lock_order(order_id)
        if order.status == "Cancelled":
            raise InvalidTransition(f"order {order_id}", order.status, "transport scheduled")
        transport = Transportation(order_id=order.id, **values)
        db.session.add(transport)
        db.session.flush()
        audit_service.record(
            "transportation", "INSERT", actor, record_id=transport.id, after=_transport_snapshot(transport)
        )

    logger.info("transport %s scheduled for order %s", transport.id, order_id)
    return transport


def update_transportation(transport_id: int, fields: Mapping[str, Any], *, actor: str | None) -> Transportation:
    if not fields:
        raise ValidationError.single("MissingField", "no transportation fields provided")
    updates = _transport_values(fields)

    with transaction():
        stmt = (
            select(Transportation)
            .where(Transportation.id == transport_id)
            .with_for_update(of=Transportation)
            .execution_options(populate_existing=True)
        )
        transport = db.session.execute(stmt).scalar_one_or_none()
        if transport is None:
            raise IntegrityViolation.missing("transportation", transport_id)

        new_status = updates.get("status", transport.status)
        if new_status != transport.status and new_status not in TRANSPORT_STATUS_TRANSITIONS.get(
            transport.status, set()
        ):
            raise InvalidTransition(f"transport {transport_id}", transport.status, new_status)
        if new_status == "Delivered" and updates.get("actual_delivery") is None and transport.actual_delivery is None:
            updates["actual_delivery"] = date.today()

        merged = {name: getattr(transport, name) for name in TRANSPORT_FIELDS}
        merged.update(updates)
        validate_transportation(merged)

        before = _transport_snapshot(transport)
        for name, value in updates.items():
            setattr(transport, name, value)
        db.session.flush()
        audit_service.record(
            "transportation", "UPDATE", actor, record_id=transport.id, before=before, after=_transport_snapshot(transport)
        )

    return transport


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise IntegrityViolation.missing("order", order_id)
    return order


def list_orders(
    *,
    buyer_id: int | None = None,
    product_id: int | None = None,
    status: str | None = None,
    limit: int = 200,
) -> list[Order]:
    stmt = select(Order)
    if buyer_id is not None:
        stmt = stmt.where(Order.buyer_id == buyer_id)
    if product_id is not None:
        stmt = stmt.where(Order.product_id == product_id)
    if status is not None:
        stmt = stmt.where(Order.status == status)
    stmt = stmt.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit)
    return list(db.session.execute(stmt).scalars().all())


def _lock_order(order_id: int) -> Order:
    stmt = (
        select(Order)
        .where(Order.id == order_id)
        .with_for_update(of=Order)
        .execution_options(populate_existing=True)
    )
    order = db.session.execute(stmt).scalar_one_or_none()
    if order is None:
        raise IntegrityViolation.missing("order", order_id)
    return order


def _transport_values(fields: Mapping[str, Any]) -> dict[str, Any]:
    unknown = set(fields) - set(TRANSPORT_FIELDS)
    if unknown:
        raise ValidationError(
            [Violation("UnknownField", name, f"{name} cannot be set on a transport") for name in sorted(unknown)]
        )

    values: dict[str, Any] = {}
    for name, raw in fields.items():
        if name in ("expected_delivery", "actual_delivery"):
            values[name] = None if raw is None else coerce_date(raw, name)
        elif name == "status":
            if raw not in TRANSPORT_STATUSES:
                raise ValidationError.single(
                    "InvalidStatus", f"status must be one of {', '.join(TRANSPORT_STATUSES)}", "status"
                )
            values[name] = raw
        elif raw is None:
            values[name] = None
        else:
            values[name] = str(raw).strip()
    return values


def _transport_snapshot(transport: Transportation) -> dict[str, Any]:
    return {
        "transport_id": transport.id,
        "order_id": transport.order_id,
        "vehicle_type": transport.vehicle_type,
        "status": transport.status,
        "expected_delivery": transport.expected_delivery.isoformat() if transport.expected_delivery else None,
        "actual_delivery": transport.actual_delivery.isoformat() if transport.actual_delivery else None,
    }
