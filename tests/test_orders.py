from __future__ import annotations

from datetime import date, timedelta

import pytest

from agrichain.errors import IntegrityViolation, InvalidTransition, ValidationError
from agrichain.extensions import db
from agrichain.models import AuditLog, Transportation
from agrichain.services import inventory_service, order_service

pytestmark = pytest.mark.usefixtures("app")


@pytest.fixture()
def pending_order(make_product, make_buyer):
    product = make_product(quantity=50)
    buyer = make_buyer()
    return inventory_service.place_order(product.id, buyer.id, 20, actor="clerk-1")


def _transport_fields(**overrides):
    fields = {
        "vehicle_type": "Refrigerated Truck",
        "driver_name": "Wanjiru",
        "driver_contact": "0722000111",
        "expected_delivery": (date.today() + timedelta(days=3)).isoformat(),
    }
    fields.update(overrides)
    return fields


def test_order_moves_through_lifecycle(pending_order):
    order = order_service.update_order_status(pending_order.id, "Shipped", actor="clerk-1")
    assert order.status == "Shipped"

    order = order_service.update_order_status(pending_order.id, "Delivered", actor="clerk-1")
    assert order.status == "Delivered"
    assert order.is_terminal

    entries = db.session.query(AuditLog).filter_by(table_name="orders").order_by(AuditLog.id)
    actions = [entry.action for entry in entries]
    assert actions == ["INSERT", "STATUS_CHANGE", "STATUS_CHANGE"]


def test_terminal_order_cannot_change(pending_order):
    order_service.update_order_status(pending_order.id, "Shipped", actor="clerk-1")
    order_service.update_order_status(pending_order.id, "Delivered", actor="clerk-1")

    with pytest.raises(InvalidTransition):
        order_service.update_order_status(pending_order.id, "Pending", actor="clerk-1")
    with pytest.raises(InvalidTransition):
        order_service.update_payment_status(pending_order.id, "Paid", actor="clerk-1")


def test_unknown_status_is_a_validation_error(pending_order):
    with pytest.raises(ValidationError) as exc_info:
        order_service.update_order_status(pending_order.id, "Lost", actor="clerk-1")
    assert exc_info.value.code == "InvalidStatus"


def test_cancelling_restores_stock(pending_order):
    product = pending_order.product
    assert product.quantity == 30

    order_service.update_order_status(pending_order.id, "Cancelled", actor="clerk-1")

    assert product.quantity == 50
    restock = db.session.query(AuditLog).filter_by(action="ORDER_CANCELLED").one()
    assert restock.old_value["quantity"] == 30
    assert restock.new_value["quantity"] == 50


def test_same_status_is_a_no_op(pending_order):
    order_service.update_order_status(pending_order.id, "Pending", actor="clerk-1")

    assert db.session.query(AuditLog).filter_by(action="STATUS_CHANGE").count() == 0


def test_payment_status_transitions(pending_order):
    order = order_service.update_payment_status(pending_order.id, "Partially Paid", actor="clerk-1")
    assert order.payment_status == "Partially Paid"

    order = order_service.update_payment_status(pending_order.id, "Paid", actor="clerk-1")
    assert order.payment_status == "Paid"

    with pytest.raises(InvalidTransition):
        order_service.update_payment_status(pending_order.id, "Overdue", actor="clerk-1")


def test_missing_order_raises_integrity_violation():
    with pytest.raises(IntegrityViolation):
        order_service.update_order_status(4242, "Shipped", actor="clerk-1")
    with pytest.raises(IntegrityViolation):
        order_service.get_order(4242)


def test_schedule_and_deliver_transport(pending_order):
    transport = order_service.schedule_transportation(pending_order.id, _transport_fields(), actor="dispatch")
    assert transport.status == "In Transit"
    assert transport.actual_delivery is None

    delivered_on = date.today() + timedelta(days=4)
    transport = order_service.update_transportation(
        transport.id, {"status": "Delivered", "actual_delivery": delivered_on.isoformat()}, actor="dispatch"
    )
    assert transport.status == "Delivered"
    assert transport.actual_delivery == delivered_on

    entries = db.session.query(AuditLog).filter_by(table_name="transportation").order_by(AuditLog.id)
    actions = [entry.action for entry in entries]
    assert actions == ["INSERT", "UPDATE"]


def test_delivery_without_date_is_stamped_today(pending_order):
    transport = order_service.schedule_transportation(
        pending_order.id, _transport_fields(expected_delivery=date.today().isoformat()), actor="dispatch"
    )

    transport = order_service.update_transportation(transport.id, {"status": "Delivered"}, actor="dispatch")

    assert transport.actual_delivery == date.today()


def test_transport_validation_leaves_no_row(pending_order):
    with pytest.raises(ValidationError) as exc_info:
        order_service.schedule_transportation(
            pending_order.id, _transport_fields(vehicle_type="Bicycle", driver_contact="abc"), actor="dispatch"
        )
    assert exc_info.value.codes == ["InvalidVehicleType", "InvalidContact"]
    assert db.session.query(Transportation).count() == 0


def test_delivery_before_expected_date_is_rejected(pending_order):
    transport = order_service.schedule_transportation(pending_order.id, _transport_fields(), actor="dispatch")

    with pytest.raises(ValidationError) as exc_info:
        order_service.update_transportation(
            transport.id, {"status": "Delivered", "actual_delivery": date.today().isoformat()}, actor="dispatch"
        )
    assert exc_info.value.code == "InvalidDateRange"
    assert transport.status == "In Transit"


def test_delivered_transport_is_final(pending_order):
    transport = order_service.schedule_transportation(
        pending_order.id, _transport_fields(expected_delivery=date.today().isoformat()), actor="dispatch"
    )
    order_service.update_transportation(transport.id, {"status": "Delivered"}, actor="dispatch")

    with pytest.raises(InvalidTransition):
        order_service.update_transportation(transport.id, {"status": "Delayed"}, actor="dispatch")


def test_cancelled_order_cannot_be_shipped(pending_order):
    order_service.update_order_status(pending_order.id, "Cancelled", actor="clerk-1")

    with pytest.raises(InvalidTransition):
        order_service.schedule_transportation(pending_order.id, _transport_fields(), actor="dispatch")
