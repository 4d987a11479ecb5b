from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import jsonify
from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request


def require_capabilities(*required_capabilities: str) -> Callable[..., Any]:
    """
    Gate a view on capability claims issued by the external identity provider.

    The bearer token must carry every listed capability in its
    ``capabilities`` claim; an empty list only requires a valid token.
    """
    required_set = set(required_capabilities)

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            verify_jwt_in_request()
            granted = set(get_jwt().get("capabilities", []))

            if not required_set.issubset(granted):
                missing = sorted(required_set - granted)
                return jsonify({"message": "Forbidden", "missing_capabilities": missing}), 403

            return func(*args, **kwargs)

        return wrapper

    return decorator


def current_actor() -> str:
    """Audit actor for the current request: the token subject."""
    identity = get_jwt_identity()
    return str(identity) if identity is not None else "anonymous"
