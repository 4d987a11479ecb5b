from __future__ import annotations

from flask import Blueprint, request

from agrichain.errors import ValidationError
from agrichain.models import Product
from agrichain.security.decorators import current_actor, require_capabilities
from agrichain.services import batch_service, product_service

product_bp = Blueprint("products", __name__)


@product_bp.get("")
@require_capabilities("product.read")
def list_products() -> tuple[dict[str, list[dict[str, object]]], int]:
    include_inactive = str(request.args.get("include_inactive", "")).strip().lower() in {"1", "true", "yes"}
    products = product_service.list_products(
        farmer_id=_optional_int_query_arg("farmer_id"),
        category_id=_optional_int_query_arg("category_id"),
        active_only=not include_inactive,
    )
    return {"items": [_build_product_response(product) for product in products]}, 200


@product_bp.get("/<int:product_id>")
@require_capabilities("product.read")
def get_product(product_id: int) -> tuple[dict[str, object], int]:
    return _build_product_response(product_service.get_product(product_id)), 200


@product_bp.post("")
@require_capabilities("product.create")
def create_product() -> tuple[dict[str, object], int]:
    payload = _json_object()
    product = product_service.create_product(payload, actor=current_actor())
    return _build_product_response(product), 201


@product_bp.patch("/<int:product_id>")
@require_capabilities("product.update")
def update_product(product_id: int) -> tuple[dict[str, object], int]:
    payload = _json_object()
    product = product_service.update_product(product_id, payload, actor=current_actor())
    return _build_product_response(product), 200


@product_bp.delete("/<int:product_id>")
@require_capabilities("product.retire")
def retire_product(product_id: int) -> tuple[dict[str, object], int]:
    outcome = product_service.retire_product(product_id, actor=current_actor())
    return {"id": product_id, "outcome": outcome}, 200


@product_bp.post("/seasonal-price-adjustments")
@require_capabilities("product.price.adjust")
def adjust_seasonal_prices() -> tuple[dict[str, object], int]:
    payload = _json_object()
    season = payload.get("season")
    if not isinstance(season, str) or not season.strip():
        raise ValidationError.single("MissingField", "season is required", "season")
    if payload.get("factor") is None:
        raise ValidationError.single("MissingField", "factor is required", "factor")

    changes = batch_service.adjust_seasonal_prices(season, payload["factor"], actor=current_actor())
    return {
        "season": season,
        "factor": str(payload["factor"]),
        "updated_count": len(changes),
        "changes": [change.to_dict() for change in changes],
    }, 200


def _json_object() -> dict[str, object]:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError.single("InvalidValue", "request body must be a JSON object")
    return payload


def _optional_int_query_arg(name: str) -> int | None:
    raw_value = request.args.get(name)
    if raw_value is None or raw_value == "":
        return None
    try:
        return int(raw_value)
    except ValueError:
        raise ValidationError.single("InvalidValue", f"{name} must be an integer", name) from None


def _build_product_response(product: Product) -> dict[str, object]:
    return {
        "id": product.id,
        "name": product.name,
        "quantity": product.quantity,
        "harvest_date": product.harvest_date.isoformat(),
        "expiry_date": product.expiry_date.isoformat(),
        "price_per_kg": str(product.price_per_kg),
        "farmer_id": product.farmer_id,
        "supplier_id": product.supplier_id,
        "category_id": product.category_id,
        "category_name": product.category.name if product.category else None,
        "quality_rating": product.quality_rating,
        "certification": product.certification,
        "is_active": product.is_active,
    }
