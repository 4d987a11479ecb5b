"""
Inventory consistency engine.

Placing an order is a reservation against a single product row: admission
(is there enough stock?) and the decrement happen in one conditional UPDATE,
so two concurrent orders against the same product can never both observe
the pre-decrement quantity. The row is additionally read ``FOR UPDATE`` on
backends that support it, which fixes the price used for the order total.
"""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import select, update

from agrichain.errors import InsufficientStock, IntegrityViolation, ValidationError
from agrichain.extensions import db
from agrichain.models import Buyer, Order, PaymentMethod, Product
from agrichain.services import audit_service
from agrichain.services.unit_of_work import transaction
from agrichain.validation import TOTAL_CEILING, quantize_money, validate_order

logger = logging.getLogger(__name__)


def place_order(
    product_id: int,
    buyer_id: int,
    quantity: int,
    payment_method_id: int | None = None,
    *,
    actor: str | None,
    order_date: date | None = None,
) -> Order:
    order_date = order_date or date.today()
    validate_order({"quantity": quantity, "order_date": order_date})

    with transaction():
        order = admit_order(
            product_id,
            buyer_id,
            quantity,
            payment_method_id,
            actor=actor,
            order_date=order_date,
        )

    logger.info(
        "order %s admitted: product=%s buyer=%s qty=%s total=%s",
        order.id,
        product_id,
        buyer_id,
        quantity,
        order.total_amount,
    )
    return order


def admit_order(
    product_id: int,
    buyer_id: int,
    quantity: int,
    payment_method_id: int | None,
    *,
    actor: str | None,
    order_date: date,
) -> Order:
    """
    Reserve stock and create the order inside the caller's transaction.

    Nothing is written unless admission succeeds; the caller owns commit and
    rollback. Reference checks run before the decrement so a failure leaves
    the product untouched.
    """
    product = lock_product(product_id)
    if not product.is_active:
        raise ValidationError.single("InactiveProduct", f"product {product_id} is no longer listed", "product_id")

    if db.session.get(Buyer, buyer_id) is None:
        raise IntegrityViolation.missing("buyer", buyer_id, field="buyer_id")

    if payment_method_id is not None:
        payment_method = db.session.get(PaymentMethod, payment_method_id)
        if payment_method is None:
            raise IntegrityViolation.missing("payment_method", payment_method_id, field="payment_method_id")
        if not payment_method.is_active:
            raise ValidationError.single(
                "InactivePaymentMethod",
                f"payment method {payment_method_id} is not accepted",
                "payment_method_id",
            )

    total_amount = quantize_money(product.price_per_kg * quantity, "quantity")
    if total_amount > TOTAL_CEILING:
        raise ValidationError.single(
            "TotalTooHigh", f"order total cannot be more than {TOTAL_CEILING}", "quantity"
        )

    result = db.session.execute(
        update(Product)
        .where(Product.id == product_id, Product.quantity >= quantity)
        .values(quantity=Product.quantity - quantity)
        .execution_options(synchronize_session=False)
    )
    db.session.refresh(product)

    if result.rowcount != 1:
        logger.info(
            "order rejected: product=%s requested=%s available=%s",
            product_id,
            quantity,
            product.quantity,
        )
        raise InsufficientStock(product_id, quantity, product.quantity)

    if product.quantity < 0:
        raise ValidationError.single("NegativeQuantity", "Product quantity cannot be negative", "quantity")

    order = Order(
        product_id=product.id,
        buyer_id=buyer_id,
        payment_method_id=payment_method_id,
        quantity=quantity,
        order_date=order_date,
        status="Pending",
        payment_status="Pending",
        total_amount=total_amount,
    )
    db.session.add(order)
    db.session.flush()

    after = product.audit_snapshot()
    before = {**after, "quantity": product.quantity + quantity}
    audit_service.record("products", "UPDATE", actor, record_id=product.id, before=before, after=after)
    audit_service.record(
        "orders",
        "INSERT",
        actor,
        record_id=order.id,
        after={
            **order.audit_snapshot(),
            "product_id": order.product_id,
            "quantity": order.quantity,
            "total_amount": str(order.total_amount),
        },
    )
    return order


def release_stock(product: Product, quantity: int, *, actor: str | None, reason: str) -> None:
    """Return previously reserved stock to a product within the caller's transaction."""
    db.session.execute(
        update(Product)
        .where(Product.id == product.id)
        .values(quantity=Product.quantity + quantity)
        .execution_options(synchronize_session=False)
    )
    db.session.refresh(product)

    after = product.audit_snapshot()
    before = {**after, "quantity": product.quantity - quantity}
    audit_service.record("products", reason, actor, record_id=product.id, before=before, after=after)


def lock_product(product_id: int) -> Product:
    stmt = (
        select(Product)
        .where(Product.id == product_id)
        .with_for_update(of=Product)
        .execution_options(populate_existing=True)
    )
    product = db.session.execute(stmt).scalar_one_or_none()
    if product is None:
        raise IntegrityViolation.missing("product", product_id, field="product_id")
    return product
