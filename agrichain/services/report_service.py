"""
Read-only projections over the data the engine maintains.
"""

from __future__ import annotations

import calendar
from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import extract, func, select

from agrichain.extensions import db
from agrichain.models import Buyer, Farmer, Order, PaymentMethod, Product, ProductCategory, Transportation
from agrichain.validation import quantize_money, season_months


def category_summary() -> list[dict[str, Any]]:
    stmt = (
        select(
            ProductCategory.name,
            func.count(Product.id),
            func.coalesce(func.sum(Product.quantity), 0),
            func.avg(Product.price_per_kg),
            func.min(Product.harvest_date),
            func.max(Product.expiry_date),
        )
        .outerjoin(Product, Product.category_id == ProductCategory.id)
        .group_by(ProductCategory.id, ProductCategory.name)
        .order_by(ProductCategory.name.asc())
    )
    return [
        {
            "category": name,
            "product_count": product_count,
            "total_quantity": int(total_quantity),
            "average_price": _money(average_price),
            "earliest_harvest": _iso(earliest_harvest),
            "latest_expiry": _iso(latest_expiry),
        }
        for name, product_count, total_quantity, average_price, earliest_harvest, latest_expiry in db.session.execute(
            stmt
        )
    ]


def order_status_report(*, status: str | None = None) -> list[dict[str, Any]]:
    stmt = (
        select(Order, Product.name, Buyer.name, Transportation)
        .join(Product, Order.product_id == Product.id)
        .join(Buyer, Order.buyer_id == Buyer.id)
        .outerjoin(Transportation, Transportation.order_id == Order.id)
        .order_by(Order.id.asc(), Transportation.id.asc())
    )
    if status is not None:
        stmt = stmt.where(Order.status == status)

    rows = []
    for order, product_name, buyer_name, transport in db.session.execute(stmt):
        rows.append(
            {
                "order_id": order.id,
                "product_name": product_name,
                "buyer_name": buyer_name,
                "quantity": order.quantity,
                "order_date": _iso(order.order_date),
                "status": order.status,
                "total_amount": _money(order.total_amount),
                "payment_status": order.payment_status,
                "transport_status": transport.status if transport else None,
                "expected_delivery": _iso(transport.expected_delivery) if transport else None,
                "actual_delivery": _iso(transport.actual_delivery) if transport else None,
            }
        )
    return rows


def payment_method_usage() -> list[dict[str, Any]]:
    stmt = (
        select(
            PaymentMethod.name,
            func.count(Order.id),
            func.sum(Order.total_amount),
            func.avg(Order.total_amount),
        )
        .outerjoin(Order, Order.payment_method_id == PaymentMethod.id)
        .group_by(PaymentMethod.id, PaymentMethod.name)
        .order_by(PaymentMethod.name.asc())
    )
    return [
        {
            "payment_method": name,
            "order_count": order_count,
            "total_amount": _money(total_amount),
            "average_amount": _money(average_amount),
        }
        for name, order_count, total_amount, average_amount in db.session.execute(stmt)
    ]


def seasonal_products(season: str) -> list[dict[str, Any]]:
    first_month, last_month = season_months(season)
    stmt = (
        select(Product, Farmer.name, ProductCategory.name)
        .join(Farmer, Product.farmer_id == Farmer.id)
        .outerjoin(ProductCategory, Product.category_id == ProductCategory.id)
        .where(extract("month", Product.harvest_date).between(first_month, last_month))
        .where(Product.is_active.is_(True))
        .order_by(Product.name.asc())
    )
    return [
        {
            "product_id": product.id,
            "name": product.name,
            "quantity": product.quantity,
            "price_per_kg": _money(product.price_per_kg),
            "farmer": farmer_name,
            "category": category_name,
        }
        for product, farmer_name, category_name in db.session.execute(stmt)
    ]


def upcoming_harvests(today: date | None = None, months: int = 3) -> list[dict[str, Any]]:
    """Products whose harvest date falls between today and ``months`` months ahead."""
    today = today or date.today()
    horizon = add_months(today, months)
    stmt = (
        select(Product, ProductCategory.name)
        .outerjoin(ProductCategory, Product.category_id == ProductCategory.id)
        .where(Product.harvest_date.between(today, horizon))
        .where(Product.is_active.is_(True))
        .order_by(Product.harvest_date.asc(), Product.name.asc())
    )
    return [
        {
            "product_id": product.id,
            "name": product.name,
            "quantity": product.quantity,
            "harvest_date": _iso(product.harvest_date),
            "expiry_date": _iso(product.expiry_date),
            "category": category_name,
        }
        for product, category_name in db.session.execute(stmt)
    ]


def add_months(start: date, months: int) -> date:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def _money(value: Any) -> str | None:
    if value is None:
        return None
    return str(quantize_money(Decimal(str(value))))


def _iso(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return value.isoformat()
