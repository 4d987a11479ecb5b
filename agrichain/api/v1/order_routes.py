from __future__ import annotations

from datetime import date
from decimal import Decimal

from flask import Blueprint, request

from agrichain.errors import ValidationError
from agrichain.models import Order, Transportation
from agrichain.security.decorators import current_actor, require_capabilities
from agrichain.services import batch_service, inventory_service, order_service
from agrichain.validation import coerce_date, coerce_int

order_bp = Blueprint("orders", __name__)


@order_bp.get("")
@require_capabilities("order.read")
def list_orders() -> tuple[dict[str, list[dict[str, object]]], int]:
    orders = order_service.list_orders(
        buyer_id=_optional_int_query_arg("buyer_id"),
        product_id=_optional_int_query_arg("product_id"),
        status=request.args.get("status") or None,
    )
    return {"items": [_build_order_response(order) for order in orders]}, 200


@order_bp.get("/<int:order_id>")
@require_capabilities("order.read")
def get_order(order_id: int) -> tuple[dict[str, object], int]:
    return _build_order_response(order_service.get_order(order_id)), 200


@order_bp.post("")
@require_capabilities("order.create")
def place_order() -> tuple[dict[str, object], int]:
    payload = _json_object()
    order = inventory_service.place_order(
        coerce_int(payload.get("product_id"), "product_id"),
        coerce_int(payload.get("buyer_id"), "buyer_id"),
        payload.get("quantity"),
        _optional_int(payload.get("payment_method_id"), "payment_method_id"),
        actor=current_actor(),
        order_date=_optional_date(payload.get("order_date"), "order_date"),
    )
    return _build_order_response(order), 201


@order_bp.post("/bulk")
@require_capabilities("order.create")
def bulk_place_orders() -> tuple[dict[str, object], int]:
    payload = _json_object()
    product_ids = payload.get("product_ids")
    quantities = payload.get("quantities")
    if not isinstance(product_ids, list) or not isinstance(quantities, list):
        raise ValidationError.single("InvalidValue", "product_ids and quantities must be lists", "product_ids")

    orders = batch_service.bulk_place_orders(
        [coerce_int(product_id, f"product_ids[{index}]") for index, product_id in enumerate(product_ids)],
        quantities,
        coerce_int(payload.get("buyer_id"), "buyer_id"),
        _optional_int(payload.get("payment_method_id"), "payment_method_id"),
        actor=current_actor(),
        order_date=_optional_date(payload.get("order_date"), "order_date"),
    )
    return {
        "order_count": len(orders),
        "total_amount": str(sum((order.total_amount for order in orders), Decimal("0.00"))),
        "orders": [_build_order_response(order) for order in orders],
    }, 201


@order_bp.patch("/<int:order_id>/status")
@require_capabilities("order.status.update")
def update_order_status(order_id: int) -> tuple[dict[str, object], int]:
    payload = _json_object()
    order = order_service.update_order_status(order_id, str(payload.get("status", "")).strip(), actor=current_actor())
    return _build_order_response(order), 200


@order_bp.patch("/<int:order_id>/payment-status")
@require_capabilities("order.status.update")
def update_payment_status(order_id: int) -> tuple[dict[str, object], int]:
    payload = _json_object()
    order = order_service.update_payment_status(
        order_id, str(payload.get("payment_status", "")).strip(), actor=current_actor()
    )
    return _build_order_response(order), 200


@order_bp.post("/<int:order_id>/transportation")
@require_capabilities("transport.manage")
def schedule_transportation(order_id: int) -> tuple[dict[str, object], int]:
    payload = _json_object()
    transport = order_service.schedule_transportation(order_id, payload, actor=current_actor())
    return _build_transport_response(transport), 201


@order_bp.patch("/transportation/<int:transport_id>")
@require_capabilities("transport.manage")
def update_transportation(transport_id: int) -> tuple[dict[str, object], int]:
    payload = _json_object()
    transport = order_service.update_transportation(transport_id, payload, actor=current_actor())
    return _build_transport_response(transport), 200


def _json_object() -> dict[str, object]:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError.single("InvalidValue", "request body must be a JSON object")
    return payload


def _optional_int(value: object, field: str) -> int | None:
    return None if value is None else coerce_int(value, field)


def _optional_date(value: object, field: str) -> date | None:
    return None if value is None else coerce_date(value, field)


def _optional_int_query_arg(name: str) -> int | None:
    raw_value = request.args.get(name)
    if raw_value is None or raw_value == "":
        return None
    try:
        return int(raw_value)
    except ValueError:
        raise ValidationError.single("InvalidValue", f"{name} must be an integer", name) from None


def _build_order_response(order: Order) -> dict[str, object]:
    return {
        "id": order.id,
        "product_id": order.product_id,
        "buyer_id": order.buyer_id,
        "payment_method_id": order.payment_method_id,
        "payment_method": order.payment_method.name if order.payment_method else None,
        "quantity": order.quantity,
        "order_date": order.order_date.isoformat(),
        "status": order.status,
        "payment_status": order.payment_status,
        "total_amount": str(order.total_amount),
        "transports": [_build_transport_response(transport) for transport in order.transports],
    }


def _build_transport_response(transport: Transportation) -> dict[str, object]:
    return {
        "id": transport.id,
        "order_id": transport.order_id,
        "vehicle_type": transport.vehicle_type,
        "driver_name": transport.driver_name,
        "driver_contact": transport.driver_contact,
        "expected_delivery": transport.expected_delivery.isoformat(),
        "actual_delivery": transport.actual_delivery.isoformat() if transport.actual_delivery else None,
        "status": transport.status,
    }
