from datetime import date, datetime, timezone

from sqlalchemy import Boolean, Date, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agrichain.extensions import db


class PartyMixin:
    id: Mapped[int] = mapped_column(primary_key=True)
    contact: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    location: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(100), unique=True)
    phone: Mapped[str | None] = mapped_column(String(20), unique=True)
    registration_date: Mapped[date] = mapped_column(Date, nullable=False, default=date.today)
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


class Farmer(PartyMixin, db.Model):
    __tablename__ = "farmers"

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    products: Mapped[list["Product"]] = relationship(
        back_populates="farmer", cascade="all, delete-orphan"
    )


class Supplier(PartyMixin, db.Model):
    __tablename__ = "suppliers"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)

    # removing a supplier nulls Product.supplier_id
    products: Mapped[list["Product"]] = relationship(back_populates="supplier")


class Buyer(PartyMixin, db.Model):
    __tablename__ = "buyers"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)

    orders: Mapped[list["Order"]] = relationship(
        back_populates="buyer", cascade="all, delete-orphan"
    )


from .order import Order  # noqa: E402
from .product import Product  # noqa: E402
