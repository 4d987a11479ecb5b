from __future__ import annotations

from flask import Blueprint, request

from agrichain.errors import ValidationError
from agrichain.security.decorators import require_capabilities
from agrichain.services import audit_service, security_service
from agrichain.validation import coerce_int

security_bp = Blueprint("security", __name__)


@security_bp.post("/login-attempts")
@require_capabilities("security.login.record")
def record_login_attempt() -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError.single("InvalidValue", "request body must be a JSON object")

    ip_address = payload.get("ip_address")
    device_info = payload.get("device_info")
    attempt = security_service.record_login_attempt(
        coerce_int(payload.get("user_id"), "user_id"),
        str(payload.get("user_type", "")).strip(),
        str(payload.get("status", "")).strip(),
        ip_address=str(ip_address) if ip_address else None,
        device_info=str(device_info) if device_info is not None else None,
    )
    return {
        "id": attempt.id,
        "user_id": attempt.user_id,
        "user_type": attempt.user_type,
        "status": attempt.status,
        "ip_address": attempt.ip_address,
        "login_time": attempt.login_time.isoformat(),
    }, 201


@security_bp.get("/audit-logs")
@require_capabilities("audit.read")
def list_audit_logs() -> tuple[dict[str, list[dict[str, object]]], int]:
    entries = audit_service.list_entries(
        table=request.args.get("table") or None,
        record_id=request.args.get("record_id") or None,
        action=request.args.get("action") or None,
    )
    return {
        "items": [
            {
                "id": entry.id,
                "table_name": entry.table_name,
                "record_id": entry.record_id,
                "action": entry.action,
                "actor": entry.actor,
                "old_value": entry.old_value,
                "new_value": entry.new_value,
                "source": entry.source,
                "created_at": entry.created_at.isoformat(),
            }
            for entry in entries
        ]
    }, 200
