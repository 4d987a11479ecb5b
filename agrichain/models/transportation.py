from datetime import date, datetime, timezone

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agrichain.extensions import db


class Transportation(db.Model):
    __tablename__ = "transportation"
    __table_args__ = (
        CheckConstraint(
            "vehicle_type IN ('Pickup Truck', 'Lorry', 'Van', 'Container Truck', 'Refrigerated Truck')",
            name="chk_valid_vehicle_type",
        ),
        CheckConstraint(
            "actual_delivery IS NULL OR actual_delivery >= expected_delivery",
            name="chk_valid_delivery_dates",
        ),
        Index("ix_transportation_dates", "expected_delivery", "actual_delivery"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    vehicle_type: Mapped[str] = mapped_column(String(50), nullable=False)
    driver_name: Mapped[str] = mapped_column(String(100), nullable=False)
    driver_contact: Mapped[str | None] = mapped_column(String(20))
    expected_delivery: Mapped[date] = mapped_column(Date, nullable=False)
    actual_delivery: Mapped[date | None] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="In Transit")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    order: Mapped["Order"] = relationship(back_populates="transports")


from .order import Order  # noqa: E402
