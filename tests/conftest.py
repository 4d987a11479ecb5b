from __future__ import annotations

import itertools
from datetime import date
from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token

from agrichain import create_app
from agrichain.extensions import db
from agrichain.models import Buyer, Farmer, PaymentMethod, Product, ProductCategory, Supplier

ALL_CAPABILITIES = [
    "product.read",
    "product.create",
    "product.update",
    "product.retire",
    "product.price.adjust",
    "order.read",
    "order.create",
    "order.status.update",
    "transport.manage",
    "party.manage",
    "report.read",
    "security.login.record",
    "audit.read",
]

CATEGORY_NAMES = ["Fruits", "Grains", "Vegetables", "Legumes", "Coffee"]
PAYMENT_METHOD_NAMES = ["Mobile Money", "Bank Transfer", "Cash on Delivery", "Credit Card", "Cheque"]

_sequence = itertools.count(1)


class TestConfig:
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JWT_SECRET_KEY = "test-secret-with-enough-length-for-hs256"
    LOG_LEVEL = "WARNING"


@pytest.fixture()
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        seed_reference_data()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def auth_headers(app):
    def build(*capabilities: str, identity: str = "clerk-1") -> dict[str, str]:
        granted = list(capabilities) if capabilities else ALL_CAPABILITIES
        token = create_access_token(identity=identity, additional_claims={"capabilities": granted})
        return {"Authorization": f"Bearer {token}"}

    return build


@pytest.fixture()
def make_farmer(app):
    def build(**overrides) -> Farmer:
        n = next(_sequence)
        farmer = Farmer(
            name=overrides.pop("name", f"Farmer {n}"),
            contact=overrides.pop("contact", f"farmer-contact-{n}"),
            location=overrides.pop("location", "Nakuru"),
            **overrides,
        )
        db.session.add(farmer)
        db.session.commit()
        return farmer

    return build


@pytest.fixture()
def make_supplier(app):
    def build(**overrides) -> Supplier:
        n = next(_sequence)
        supplier = Supplier(
            name=overrides.pop("name", f"Supplier {n}"),
            contact=overrides.pop("contact", f"supplier-contact-{n}"),
            location=overrides.pop("location", "Mombasa"),
            **overrides,
        )
        db.session.add(supplier)
        db.session.commit()
        return supplier

    return build


@pytest.fixture()
def make_buyer(app):
    def build(**overrides) -> Buyer:
        n = next(_sequence)
        buyer = Buyer(
            name=overrides.pop("name", f"Buyer {n}"),
            contact=overrides.pop("contact", f"buyer-contact-{n}"),
            location=overrides.pop("location", "Nairobi"),
            **overrides,
        )
        db.session.add(buyer)
        db.session.commit()
        return buyer

    return build


@pytest.fixture()
def make_product(app, make_farmer):
    def build(**overrides) -> Product:
        farmer_id = overrides.pop("farmer_id", None)
        if farmer_id is None:
            farmer_id = make_farmer().id
        n = next(_sequence)
        product = Product(
            name=overrides.pop("name", f"Product {n}"),
            quantity=overrides.pop("quantity", 100),
            harvest_date=overrides.pop("harvest_date", date(2026, 2, 10)),
            expiry_date=overrides.pop("expiry_date", date(2026, 12, 31)),
            price_per_kg=overrides.pop("price_per_kg", Decimal("2.00")),
            farmer_id=farmer_id,
            category_id=overrides.pop("category_id", category_id("Fruits")),
            **overrides,
        )
        db.session.add(product)
        db.session.commit()
        return product

    return build


def seed_reference_data() -> None:
    db.session.add_all([ProductCategory(name=name, description=f"{name} produce") for name in CATEGORY_NAMES])
    db.session.add_all([PaymentMethod(name=name, is_active=True) for name in PAYMENT_METHOD_NAMES])
    db.session.commit()


def category_id(name: str) -> int:
    return db.session.query(ProductCategory).filter_by(name=name).one().id


@pytest.fixture()
def payment_methods(app) -> dict[str, int]:
    return {method.name: method.id for method in db.session.query(PaymentMethod).all()}


@pytest.fixture()
def categories(app) -> dict[str, int]:
    return {category.name: category.id for category in db.session.query(ProductCategory).all()}
