"""
Error taxonomy for the consistency engine.

Every failure a caller can observe is a ``SupplyChainError`` subclass with a
stable ``kind`` string; the HTTP layer renders them through
``register_error_handlers``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from flask import Flask


class SupplyChainError(Exception):
    kind = "SupplyChainError"
    status_code = 400

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.kind, "message": self.message}
        if self.field is not None:
            body["field"] = self.field
        return body


@dataclass(frozen=True)
class Violation:
    code: str
    field: str | None
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "field": self.field, "message": self.message}


class ValidationError(SupplyChainError):
    """A field-level or cross-field rule was violated; nothing was written."""

    kind = "ValidationError"
    status_code = 400

    def __init__(self, violations: list[Violation]) -> None:
        if not violations:
            raise ValueError("ValidationError requires at least one violation")
        first = violations[0]
        super().__init__(first.message, field=first.field)
        self.violations = list(violations)

    @classmethod
    def single(cls, code: str, message: str, field: str | None = None) -> "ValidationError":
        return cls([Violation(code=code, field=field, message=message)])

    @property
    def code(self) -> str:
        return self.violations[0].code

    @property
    def codes(self) -> list[str]:
        return [violation.code for violation in self.violations]

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["code"] = self.code
        body["violations"] = [violation.to_dict() for violation in self.violations]
        return body


class InsufficientStock(SupplyChainError):
    kind = "InsufficientStock"
    status_code = 409

    def __init__(self, product_id: int, requested: int, available: int) -> None:
        super().__init__(
            f"order quantity {requested} exceeds available quantity {available} for product {product_id}",
            field="quantity",
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body.update(
            {
                "product_id": self.product_id,
                "requested": self.requested,
                "available": self.available,
            }
        )
        return body


class IntegrityViolation(SupplyChainError):
    """A referenced row is missing or a uniqueness rule was broken."""

    kind = "IntegrityViolation"
    status_code = 404

    def __init__(
        self,
        message: str,
        *,
        entity: str | None = None,
        entity_id: Any = None,
        field: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, field=field)
        self.entity = entity
        self.entity_id = entity_id
        if status_code is not None:
            self.status_code = status_code

    @classmethod
    def missing(cls, entity: str, entity_id: Any, field: str | None = None) -> "IntegrityViolation":
        return cls(f"{entity} {entity_id} does not exist", entity=entity, entity_id=entity_id, field=field)

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        if self.entity is not None:
            body["entity"] = self.entity
            body["entity_id"] = self.entity_id
        return body


class ConcurrencyConflict(SupplyChainError):
    """Lock contention or a serialization failure; retry the whole operation."""

    kind = "ConcurrencyConflict"
    status_code = 409


class InvalidTransition(SupplyChainError):
    kind = "InvalidTransition"
    status_code = 409

    def __init__(self, subject: str, current: str, requested: str, *, field: str = "status") -> None:
        super().__init__(f"cannot move {subject} from {current} to {requested}", field=field)
        self.current = current
        self.requested = requested


@dataclass(frozen=True)
class BatchItemFailure:
    index: int
    subject_id: Any
    error: SupplyChainError

    def to_dict(self) -> dict[str, Any]:
        return {"index": self.index, "subject_id": self.subject_id, **self.error.to_dict()}


class BatchValidationError(SupplyChainError):
    """At least one row of a batch failed; the whole batch was rolled back."""

    kind = "BatchValidationError"
    status_code = 422

    def __init__(self, operation: str, failures: list[BatchItemFailure]) -> None:
        super().__init__(f"{operation} rejected: {len(failures)} item(s) failed")
        self.operation = operation
        self.failures = list(failures)

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["operation"] = self.operation
        body["failures"] = [failure.to_dict() for failure in self.failures]
        return body


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(SupplyChainError)
    def handle_supply_chain_error(exc: SupplyChainError) -> tuple[dict[str, Any], int]:
        return exc.to_dict(), exc.status_code
