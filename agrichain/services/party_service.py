from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy import or_, select

from agrichain.errors import IntegrityViolation, ValidationError, Violation
from agrichain.extensions import db
from agrichain.models import Buyer, Farmer, Supplier
from agrichain.services import audit_service
from agrichain.services.unit_of_work import transaction
from agrichain.validation import coerce_date, validate_party

logger = logging.getLogger(__name__)

PARTY_MODELS: dict[str, type[Farmer] | type[Supplier] | type[Buyer]] = {
    "farmer": Farmer,
    "supplier": Supplier,
    "buyer": Buyer,
}
PARTY_FIELDS = ("name", "contact", "location", "email", "phone", "registration_date")


def register_party(kind: str, fields: Mapping[str, Any], *, actor: str | None) -> Farmer | Supplier | Buyer:
    model = _model_for(kind)
    unknown = set(fields) - set(PARTY_FIELDS)
    if unknown:
        raise ValidationError(
            [Violation("UnknownField", name, f"{name} cannot be set on a {kind}") for name in sorted(unknown)]
        )

    values = _normalize(fields)
    validate_party(values)

    with transaction():
        _check_unique(kind, model, values)
        party = model(**{name: value for name, value in values.items() if value is not None})
        db.session.add(party)
        db.session.flush()
        audit_service.record(
            model.__tablename__, "INSERT", actor, record_id=party.id, after=_snapshot(party)
        )

    logger.info("%s %s registered", kind, party.id)
    return party


def remove_party(kind: str, party_id: int, *, actor: str | None) -> None:
    """
    Delete a farmer, supplier or buyer.

    Farmers take their products (and those products' orders) with them,
    buyers take their orders; suppliers only detach from their products.
    """
    model = _model_for(kind)

    with transaction():
        party = db.session.get(model, party_id)
        if party is None:
            raise IntegrityViolation.missing(kind, party_id)
        before = _snapshot(party)
        if isinstance(party, Farmer):
            before["product_ids"] = sorted(product.id for product in party.products)
        elif isinstance(party, Buyer):
            before["order_ids"] = sorted(order.id for order in party.orders)
        elif isinstance(party, Supplier):
            before["detached_product_ids"] = sorted(product.id for product in party.products)
        db.session.delete(party)
        db.session.flush()
        audit_service.record(model.__tablename__, "DELETE", actor, record_id=party_id, before=before)

    logger.info("%s %s removed", kind, party_id)


def get_party(kind: str, party_id: int) -> Farmer | Supplier | Buyer:
    model = _model_for(kind)
    party = db.session.get(model, party_id)
    if party is None:
        raise IntegrityViolation.missing(kind, party_id)
    return party


def _model_for(kind: str) -> type[Farmer] | type[Supplier] | type[Buyer]:
    try:
        return PARTY_MODELS[kind]
    except KeyError:
        raise ValidationError.single(
            "InvalidValue", f"party kind must be one of {', '.join(PARTY_MODELS)}", "kind"
        ) from None


def _normalize(fields: Mapping[str, Any]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for name in PARTY_FIELDS:
        raw = fields.get(name)
        if name == "registration_date":
            values[name] = None if raw is None else coerce_date(raw, name)
        elif name == "email":
            values[name] = (str(raw).strip().lower() or None) if raw is not None else None
        elif raw is None:
            values[name] = None
        else:
            values[name] = str(raw).strip() or None
    return values


def _check_unique(kind: str, model: type[Farmer] | type[Supplier] | type[Buyer], values: Mapping[str, Any]) -> None:
    checks = [model.contact == values["contact"]]
    if values.get("email"):
        checks.append(model.email == values["email"])
    if values.get("phone"):
        checks.append(model.phone == values["phone"])
    if model is not Farmer:
        checks.append(model.name == values["name"])

    if db.session.scalar(select(model.id).where(or_(*checks)).limit(1)) is not None:
        raise IntegrityViolation(
            f"a {kind} with the same name, contact, email or phone already exists",
            entity=kind,
            status_code=409,
        )


def _snapshot(party: Farmer | Supplier | Buyer) -> dict[str, Any]:
    return {
        "id": party.id,
        "name": party.name,
        "contact": party.contact,
        "location": party.location,
    }
