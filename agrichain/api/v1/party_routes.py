from __future__ import annotations

from flask import Blueprint, request

from agrichain.errors import ValidationError
from agrichain.models import Buyer, Farmer, Supplier
from agrichain.security.decorators import current_actor, require_capabilities
from agrichain.services import party_service

party_bp = Blueprint("parties", __name__)

_KIND_BY_COLLECTION = {"farmers": "farmer", "suppliers": "supplier", "buyers": "buyer"}


@party_bp.post("/<collection>")
@require_capabilities("party.manage")
def register_party(collection: str) -> tuple[dict[str, object], int]:
    kind = _kind_for(collection)
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError.single("InvalidValue", "request body must be a JSON object")

    party = party_service.register_party(kind, payload, actor=current_actor())
    return _build_party_response(party), 201


@party_bp.get("/<collection>/<int:party_id>")
@require_capabilities("party.manage")
def get_party(collection: str, party_id: int) -> tuple[dict[str, object], int]:
    party = party_service.get_party(_kind_for(collection), party_id)
    return _build_party_response(party), 200


@party_bp.delete("/<collection>/<int:party_id>")
@require_capabilities("party.manage")
def remove_party(collection: str, party_id: int) -> tuple[dict[str, object], int]:
    party_service.remove_party(_kind_for(collection), party_id, actor=current_actor())
    return {"id": party_id, "removed": True}, 200


def _kind_for(collection: str) -> str:
    kind = _KIND_BY_COLLECTION.get(collection)
    if kind is None:
        raise ValidationError.single(
            "InvalidValue", f"collection must be one of {', '.join(_KIND_BY_COLLECTION)}", "collection"
        )
    return kind


def _build_party_response(party: Farmer | Supplier | Buyer) -> dict[str, object]:
    return {
        "id": party.id,
        "name": party.name,
        "contact": party.contact,
        "location": party.location,
        "email": party.email,
        "phone": party.phone,
        "registration_date": party.registration_date.isoformat(),
        "is_active": party.is_active,
    }
