from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agrichain.extensions import db


class Product(db.Model):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("price_per_kg >= 0.1", name="chk_min_price"),
        CheckConstraint("quantity >= 0", name="chk_non_negative_quantity"),
        CheckConstraint("expiry_date >= harvest_date", name="chk_valid_dates"),
        Index("ix_products_dates", "harvest_date", "expiry_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    quantity: Mapped[int] = mapped_column(nullable=False, default=0)
    harvest_date: Mapped[date] = mapped_column(Date, nullable=False)
    expiry_date: Mapped[date] = mapped_column(Date, nullable=False)
    price_per_kg: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    farmer_id: Mapped[int] = mapped_column(
        ForeignKey("farmers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    supplier_id: Mapped[int | None] = mapped_column(
        ForeignKey("suppliers.id", ondelete="SET NULL"), index=True
    )
    category_id: Mapped[int | None] = mapped_column(
        ForeignKey("product_categories.id", ondelete="RESTRICT"), index=True
    )
    quality_rating: Mapped[str] = mapped_column(String(16), nullable=False, default="Good")
    certification: Mapped[str | None] = mapped_column(String(100))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    farmer: Mapped["Farmer"] = relationship(back_populates="products")
    supplier: Mapped["Supplier | None"] = relationship(back_populates="products")
    category: Mapped["ProductCategory | None"] = relationship()
    orders: Mapped[list["Order"]] = relationship(back_populates="product", cascade="all, delete-orphan")

    def audit_snapshot(self) -> dict[str, object]:
        return {
            "product_id": self.id,
            "price_per_kg": format(self.price_per_kg, ".2f"),
            "quantity": self.quantity,
        }


from .order import Order  # noqa: E402
from .party import Farmer, Supplier  # noqa: E402
from .reference import ProductCategory  # noqa: E402
