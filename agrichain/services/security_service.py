from __future__ import annotations

import logging

from agrichain.extensions import db
from agrichain.models import UserLogin
from agrichain.services import audit_service
from agrichain.services.unit_of_work import transaction
from agrichain.validation import validate_login_attempt

logger = logging.getLogger(__name__)


def record_login_attempt(
    user_id: int,
    user_type: str,
    status: str,
    *,
    ip_address: str | None = None,
    device_info: str | None = None,
) -> UserLogin:
    """Store a login attempt reported by the identity provider; failures are audited."""
    validate_login_attempt({"user_type": user_type, "status": status, "ip_address": ip_address})

    with transaction():
        attempt = UserLogin(
            user_id=user_id,
            user_type=user_type,
            status=status,
            ip_address=ip_address,
            device_info=device_info,
        )
        db.session.add(attempt)
        db.session.flush()
        if status == "Failed":
            audit_service.record(
                "user_logins",
                "Failed Login",
                f"{user_type} ID: {user_id}",
                record_id=attempt.id,
                after={"ip_address": ip_address, "device_info": device_info},
                source=ip_address,
            )

    if status == "Failed":
        logger.warning("failed login for %s %s from %s", user_type, user_id, ip_address or "unknown source")
    return attempt
