from __future__ import annotations

import pytest

from agrichain.errors import IntegrityViolation, ValidationError
from agrichain.extensions import db
from agrichain.models import AuditLog, Order, Product, Transportation, UserLogin
from agrichain.services import inventory_service, order_service, party_service, security_service

pytestmark = pytest.mark.usefixtures("app")


def test_register_buyer_normalizes_and_audits():
    buyer = party_service.register_party(
        "buyer",
        {"name": " Fresh Mart ", "contact": "Achieng", "location": "Nairobi", "email": "Orders@FreshMart.co.ke"},
        actor="clerk-1",
    )

    assert buyer.name == "Fresh Mart"
    assert buyer.email == "orders@freshmart.co.ke"
    assert buyer.is_active is True
    entry = db.session.query(AuditLog).one()
    assert (entry.table_name, entry.action) == ("buyers", "INSERT")


def test_register_rejects_bad_contact_details():
    with pytest.raises(ValidationError) as exc_info:
        party_service.register_party(
            "farmer", {"name": "Kip", "contact": "Kip", "location": "", "phone": "0700"}, actor="clerk-1"
        )
    assert exc_info.value.codes == ["EmptyLocation", "InvalidContact"]


def test_register_rejects_duplicates():
    fields = {"name": "Agro Supplies", "contact": "Musa", "location": "Thika"}
    party_service.register_party("supplier", fields, actor="clerk-1")

    with pytest.raises(IntegrityViolation) as exc_info:
        party_service.register_party("supplier", {**fields, "contact": "Other"}, actor="clerk-1")
    assert exc_info.value.status_code == 409


def test_farmers_may_share_a_name():
    party_service.register_party("farmer", {"name": "Jane", "contact": "jane-1", "location": "Meru"}, actor="clerk-1")
    party_service.register_party("farmer", {"name": "Jane", "contact": "jane-2", "location": "Embu"}, actor="clerk-1")


def test_unknown_party_kind():
    with pytest.raises(ValidationError):
        party_service.register_party("broker", {"name": "x"}, actor="clerk-1")


def test_removing_farmer_cascades_to_products_and_orders(make_farmer, make_product, make_buyer):
    farmer = make_farmer()
    product = make_product(farmer_id=farmer.id, quantity=10)
    buyer = make_buyer()
    order = inventory_service.place_order(product.id, buyer.id, 2, actor="clerk-1")
    order_service.schedule_transportation(
        order.id,
        {"vehicle_type": "Van", "driver_name": "Ali", "expected_delivery": "2030-01-01"},
        actor="clerk-1",
    )
    product_id = product.id

    party_service.remove_party("farmer", farmer.id, actor="clerk-1")

    assert db.session.query(Product).count() == 0
    assert db.session.query(Order).count() == 0
    assert db.session.query(Transportation).count() == 0
    entry = db.session.query(AuditLog).filter_by(table_name="farmers", action="DELETE").one()
    assert entry.old_value["product_ids"] == [product_id]


def test_removing_supplier_detaches_products(make_supplier, make_product):
    supplier = make_supplier()
    product = make_product(supplier_id=supplier.id)

    party_service.remove_party("supplier", supplier.id, actor="clerk-1")

    assert product.supplier_id is None
    assert db.session.query(Product).count() == 1


def test_removing_buyer_cascades_to_orders(make_product, make_buyer):
    product = make_product(quantity=10)
    buyer = make_buyer()
    inventory_service.place_order(product.id, buyer.id, 2, actor="clerk-1")

    party_service.remove_party("buyer", buyer.id, actor="clerk-1")

    assert db.session.query(Order).count() == 0
    assert product.quantity == 8


def test_removing_missing_party_raises():
    with pytest.raises(IntegrityViolation):
        party_service.remove_party("buyer", 321, actor="clerk-1")


def test_failed_login_is_audited():
    attempt = security_service.record_login_attempt(
        17, "Farmer", "Failed", ip_address="10.0.0.8", device_info="Android 14"
    )

    assert attempt.id is not None
    entry = db.session.query(AuditLog).one()
    assert entry.action == "Failed Login"
    assert entry.actor == "Farmer ID: 17"
    assert entry.source == "10.0.0.8"


def test_successful_login_is_stored_without_audit():
    security_service.record_login_attempt(3, "Buyer", "Success")

    assert db.session.query(UserLogin).count() == 1
    assert db.session.query(AuditLog).count() == 0


def test_login_attempt_validation():
    with pytest.raises(ValidationError) as exc_info:
        security_service.record_login_attempt(3, "Admin", "Maybe", ip_address="999.1.1.1")
    assert exc_info.value.codes == ["InvalidValue", "InvalidStatus", "InvalidIPAddress"]
    assert db.session.query(UserLogin).count() == 0
