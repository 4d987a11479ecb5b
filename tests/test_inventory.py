from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest

from agrichain.errors import InsufficientStock, IntegrityViolation, ValidationError
from agrichain.extensions import db
from agrichain.models import AuditLog, Order, PaymentMethod
from agrichain.services import audit_service, inventory_service, product_service


def _order_count() -> int:
    return db.session.query(Order).count()


def test_place_order_reserves_stock_and_fixes_total(make_product, make_buyer, payment_methods):
    product = make_product(quantity=100, price_per_kg=Decimal("2.00"))
    buyer = make_buyer()

    order = inventory_service.place_order(
        product.id, buyer.id, 60, payment_methods["Mobile Money"], actor="clerk-1"
    )

    assert order.status == "Pending"
    assert order.payment_status == "Pending"
    assert order.total_amount == Decimal("120.00")
    assert order.order_date == date.today()
    assert db.session.get(type(product), product.id).quantity == 40


def test_order_can_take_the_last_unit(make_product, make_buyer):
    product = make_product(quantity=5)
    buyer = make_buyer()

    inventory_service.place_order(product.id, buyer.id, 5, actor="clerk-1")

    assert product.quantity == 0


def test_insufficient_stock_leaves_state_unchanged(make_product, make_buyer):
    product = make_product(quantity=10)
    buyer = make_buyer()

    with pytest.raises(InsufficientStock) as exc_info:
        inventory_service.place_order(product.id, buyer.id, 11, actor="clerk-1")

    assert exc_info.value.requested == 11
    assert exc_info.value.available == 10
    assert product.quantity == 10
    assert _order_count() == 0
    assert db.session.query(AuditLog).count() == 0


def test_zero_quantity_is_rejected_before_storage(make_product, make_buyer):
    product = make_product(quantity=10)
    buyer = make_buyer()

    with pytest.raises(ValidationError) as exc_info:
        inventory_service.place_order(product.id, buyer.id, 0, actor="clerk-1")

    assert exc_info.value.code == "InvalidQuantity"
    assert product.quantity == 10
    assert _order_count() == 0


def test_future_order_date_is_rejected(make_product, make_buyer):
    product = make_product()
    buyer = make_buyer()

    with pytest.raises(ValidationError) as exc_info:
        inventory_service.place_order(
            product.id, buyer.id, 1, actor="clerk-1", order_date=date.today() + timedelta(days=1)
        )
    assert exc_info.value.code == "FutureOrderDate"


def test_unknown_references_raise_integrity_violation(make_product, make_buyer, payment_methods):
    product = make_product(quantity=10)
    buyer = make_buyer()

    with pytest.raises(IntegrityViolation) as exc_info:
        inventory_service.place_order(9999, buyer.id, 1, actor="clerk-1")
    assert exc_info.value.entity == "product"

    with pytest.raises(IntegrityViolation) as exc_info:
        inventory_service.place_order(product.id, 9999, 1, actor="clerk-1")
    assert exc_info.value.entity == "buyer"

    with pytest.raises(IntegrityViolation) as exc_info:
        inventory_service.place_order(product.id, buyer.id, 1, 9999, actor="clerk-1")
    assert exc_info.value.entity == "payment_method"

    assert product.quantity == 10
    assert _order_count() == 0


def test_inactive_payment_method_is_rejected(make_product, make_buyer, payment_methods):
    product = make_product(quantity=10)
    buyer = make_buyer()
    cheque = db.session.get(PaymentMethod, payment_methods["Cheque"])
    cheque.is_active = False
    db.session.commit()

    with pytest.raises(ValidationError) as exc_info:
        inventory_service.place_order(product.id, buyer.id, 1, cheque.id, actor="clerk-1")

    assert exc_info.value.code == "InactivePaymentMethod"
    assert product.quantity == 10


def test_retired_product_cannot_be_ordered(make_product, make_buyer):
    product = make_product(quantity=10)
    buyer = make_buyer()
    inventory_service.place_order(product.id, buyer.id, 1, actor="clerk-1")
    assert product_service.retire_product(product.id, actor="clerk-1") == "deactivated"

    with pytest.raises(ValidationError) as exc_info:
        inventory_service.place_order(product.id, buyer.id, 1, actor="clerk-1")

    assert exc_info.value.code == "InactiveProduct"
    assert product.quantity == 9


def test_order_total_survives_later_price_change(make_product, make_buyer):
    product = make_product(quantity=50, price_per_kg=Decimal("2.00"))
    buyer = make_buyer()
    order = inventory_service.place_order(product.id, buyer.id, 10, actor="clerk-1")

    product_service.update_product(product.id, {"price_per_kg": "3.00"}, actor="clerk-1")

    assert product.price_per_kg == Decimal("3.00")
    assert db.session.get(Order, order.id).total_amount == Decimal("20.00")


def test_order_total_cannot_be_rewritten(make_product, make_buyer):
    product = make_product(quantity=50)
    buyer = make_buyer()
    order = inventory_service.place_order(product.id, buyer.id, 10, actor="clerk-1")

    order.total_amount = Decimal("1.00")
    with pytest.raises(ValueError):
        db.session.flush()
    db.session.rollback()

    assert db.session.get(Order, order.id).total_amount == Decimal("20.00")


def test_successful_order_is_audited(make_product, make_buyer):
    product = make_product(quantity=30, price_per_kg=Decimal("1.25"))
    buyer = make_buyer()

    order = inventory_service.place_order(product.id, buyer.id, 4, actor="clerk-7")

    entries = db.session.query(AuditLog).order_by(AuditLog.id).all()
    assert [(entry.table_name, entry.action) for entry in entries] == [
        ("products", "UPDATE"),
        ("orders", "INSERT"),
    ]
    product_entry, order_entry = entries
    assert product_entry.actor == "clerk-7"
    assert product_entry.record_id == str(product.id)
    assert product_entry.old_value["quantity"] == 30
    assert product_entry.new_value["quantity"] == 26
    assert order_entry.record_id == str(order.id)
    assert order_entry.new_value["total_amount"] == "5.00"


def test_quantity_beyond_integer_range_is_rejected(make_product, make_buyer):
    product = make_product(quantity=10)
    buyer = make_buyer()

    with pytest.raises(ValidationError) as exc_info:
        inventory_service.place_order(product.id, buyer.id, 2**64, actor="clerk-1")

    assert exc_info.value.code == "InvalidQuantity"
    assert product.quantity == 10
    assert _order_count() == 0


def test_total_beyond_column_range_is_rejected(make_product, make_buyer):
    product = make_product(quantity=20000, price_per_kg=Decimal("1000000.00"))
    buyer = make_buyer()

    with pytest.raises(ValidationError) as exc_info:
        inventory_service.place_order(product.id, buyer.id, 10000, actor="clerk-1")

    assert exc_info.value.code == "TotalTooHigh"
    assert product.quantity == 20000
    assert _order_count() == 0


def test_failed_audit_write_rolls_back_the_order(make_product, make_buyer, monkeypatch):
    product = make_product(quantity=10)
    buyer = make_buyer()

    def unavailable(*args, **kwargs):
        raise RuntimeError("audit store unavailable")

    monkeypatch.setattr(audit_service, "record", unavailable)

    with pytest.raises(RuntimeError):
        inventory_service.place_order(product.id, buyer.id, 4, actor="clerk-1")

    db.session.expire_all()
    assert product.quantity == 10
    assert _order_count() == 0
    assert db.session.query(AuditLog).count() == 0
