from flask import Blueprint
from sqlalchemy import select

from agrichain.extensions import db
from agrichain.models import PaymentMethod, ProductCategory
from agrichain.security.decorators import require_capabilities

reference_bp = Blueprint("reference", __name__)


@reference_bp.get("/categories")
@require_capabilities()
def list_categories() -> tuple[dict[str, list[dict[str, object]]], int]:
    categories = db.session.execute(select(ProductCategory).order_by(ProductCategory.name.asc())).scalars()
    return {
        "items": [
            {"id": category.id, "name": category.name, "description": category.description}
            for category in categories
        ]
    }, 200


@reference_bp.get("/payment-methods")
@require_capabilities()
def list_payment_methods() -> tuple[dict[str, list[dict[str, object]]], int]:
    methods = db.session.execute(select(PaymentMethod).order_by(PaymentMethod.name.asc())).scalars()
    return {
        "items": [
            {
                "id": method.id,
                "name": method.name,
                "description": method.description,
                "is_active": method.is_active,
            }
            for method in methods
        ]
    }, 200
