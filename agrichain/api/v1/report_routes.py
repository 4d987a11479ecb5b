from flask import Blueprint, request

from agrichain.errors import ValidationError
from agrichain.security.decorators import require_capabilities
from agrichain.services import report_service

report_bp = Blueprint("reports", __name__)


@report_bp.get("/category-summary")
@require_capabilities("report.read")
def category_summary() -> tuple[dict[str, list[dict[str, object]]], int]:
    return {"items": report_service.category_summary()}, 200


@report_bp.get("/order-status")
@require_capabilities("report.read")
def order_status() -> tuple[dict[str, list[dict[str, object]]], int]:
    return {"items": report_service.order_status_report(status=request.args.get("status") or None)}, 200


@report_bp.get("/payment-method-usage")
@require_capabilities("report.read")
def payment_method_usage() -> tuple[dict[str, list[dict[str, object]]], int]:
    return {"items": report_service.payment_method_usage()}, 200


@report_bp.get("/seasonal-products")
@require_capabilities("report.read")
def seasonal_products() -> tuple[dict[str, object], int]:
    season = str(request.args.get("season", "")).strip()
    if not season:
        raise ValidationError.single("MissingField", "season query parameter is required", "season")
    return {"season": season, "items": report_service.seasonal_products(season)}, 200


@report_bp.get("/upcoming-harvests")
@require_capabilities("report.read")
def upcoming_harvests() -> tuple[dict[str, list[dict[str, object]]], int]:
    return {"items": report_service.upcoming_harvests()}, 200
