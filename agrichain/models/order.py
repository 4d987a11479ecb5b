from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Numeric, String, event
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.orm.attributes import get_history

from agrichain.extensions import db

TERMINAL_ORDER_STATUSES = frozenset({"Delivered", "Cancelled"})


class Order(db.Model):
    __tablename__ = "orders"
    __table_args__ = (CheckConstraint("quantity > 0", name="chk_positive_quantity"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True, active_history=True
    )
    buyer_id: Mapped[int] = mapped_column(ForeignKey("buyers.id", ondelete="CASCADE"), nullable=False, index=True)
    payment_method_id: Mapped[int | None] = mapped_column(
        ForeignKey("payment_methods.id", ondelete="RESTRICT"), index=True
    )
    quantity: Mapped[int] = mapped_column(nullable=False, active_history=True)
    order_date: Mapped[date] = mapped_column(Date, nullable=False, default=date.today, index=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="Pending", index=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, active_history=True)
    payment_status: Mapped[str] = mapped_column(String(32), nullable=False, default="Pending")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    product: Mapped["Product"] = relationship(back_populates="orders")
    buyer: Mapped["Buyer"] = relationship(back_populates="orders")
    payment_method: Mapped["PaymentMethod | None"] = relationship(lazy="joined")
    transports: Mapped[list["Transportation"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", lazy="selectin"
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ORDER_STATUSES

    def audit_snapshot(self) -> dict[str, object]:
        return {
            "order_id": self.id,
            "status": self.status,
            "payment_status": self.payment_status,
        }


@event.listens_for(Order, "before_update")
def _freeze_order_totals(mapper, connection, target: Order) -> None:
    for attribute in ("total_amount", "quantity", "product_id"):
        history = get_history(target, attribute)
        if history.deleted and history.added and history.deleted[0] != history.added[0]:
            raise ValueError(f"Order.{attribute} is fixed at creation and cannot be changed")


from .party import Buyer  # noqa: E402
from .product import Product  # noqa: E402
from .reference import PaymentMethod  # noqa: E402
from .transportation import Transportation  # noqa: E402
