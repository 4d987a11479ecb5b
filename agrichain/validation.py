"""
Validation layer.

Pure checks run before any write is admitted. Each rule is evaluated
independently and every violation is reported in a single
``ValidationError``; none of these functions touch the database.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from agrichain.errors import ValidationError, Violation

PRICE_FLOOR = Decimal("0.10")
CENT = Decimal("0.01")

# Column ranges: NUMERIC(10, 2) prices, NUMERIC(12, 2) order totals, INTEGER quantities.
PRICE_CEILING = Decimal("99999999.99")
TOTAL_CEILING = Decimal("9999999999.99")
MAX_QUANTITY = 2**31 - 1

QUALITY_RATINGS = ("Poor", "Fair", "Good", "Excellent")
ORDER_STATUSES = ("Pending", "Shipped", "Delivered", "Cancelled", "Partially Fulfilled")
PAYMENT_STATUSES = ("Pending", "Paid", "Overdue", "Partially Paid")
VEHICLE_TYPES = ("Pickup Truck", "Lorry", "Van", "Container Truck", "Refrigerated Truck")
TRANSPORT_STATUSES = ("In Transit", "Delivered", "Delayed", "Cancelled")
USER_TYPES = ("Farmer", "Supplier", "Buyer")
LOGIN_STATUSES = ("Success", "Failed")

SEASON_MONTHS: dict[str, tuple[int, int]] = {
    "Dry": (1, 3),
    "Rainy": (4, 6),
    "Harvest": (7, 9),
    "Planting": (10, 12),
}

EMAIL_PATTERN = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
PHONE_PATTERN = re.compile(r"[0-9]{10,15}")
IPV4_PATTERN = re.compile(r"[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}")


def coerce_decimal(value: Any, field: str) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError.single("InvalidValue", f"{field} must be a number", field)
    try:
        result = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError.single("InvalidValue", f"{field} must be a number", field) from None
    if not result.is_finite():
        raise ValidationError.single("InvalidValue", f"{field} must be a finite number", field)
    return result


def coerce_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError.single("InvalidValue", f"{field} must be an integer", field)
    return value


def coerce_date(value: Any, field: str) -> date:
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise ValidationError.single("InvalidValue", f"{field} must be an ISO date (YYYY-MM-DD)", field)


def quantize_money(value: Decimal, field: str | None = None) -> Decimal:
    try:
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError.single("InvalidValue", "amount is out of range", field) from None


def normalize_price(value: Any, field: str = "price_per_kg") -> Decimal:
    """Coerce a price to cents. Values above the column range are returned as given for ``validate_product``."""
    price = coerce_decimal(value, field)
    if price > PRICE_CEILING:
        return price
    return quantize_money(price, field)


def season_months(season: str) -> tuple[int, int]:
    months = SEASON_MONTHS.get(str(season).strip().capitalize())
    if months is None:
        raise ValidationError.single(
            "InvalidSeason",
            f"season must be one of {', '.join(SEASON_MONTHS)}",
            "season",
        )
    return months


def validate_product(fields: Mapping[str, Any]) -> None:
    violations: list[Violation] = []

    name = fields.get("name")
    if name is not None and not str(name).strip():
        violations.append(Violation("MissingField", "name", "name is required"))

    harvest_date = fields.get("harvest_date")
    expiry_date = fields.get("expiry_date")
    if harvest_date is not None and expiry_date is not None and expiry_date < harvest_date:
        violations.append(
            Violation("InvalidDateRange", "expiry_date", "Expiry date cannot be before harvest date")
        )

    price = fields.get("price_per_kg")
    if price is not None and price < PRICE_FLOOR:
        violations.append(
            Violation("PriceTooLow", "price_per_kg", f"Price per kg cannot be less than {PRICE_FLOOR}")
        )
    elif price is not None and price > PRICE_CEILING:
        violations.append(
            Violation("PriceTooHigh", "price_per_kg", f"Price per kg cannot be more than {PRICE_CEILING}")
        )

    quantity = fields.get("quantity")
    if quantity is not None and quantity < 0:
        violations.append(Violation("NegativeQuantity", "quantity", "Product quantity cannot be negative"))
    elif quantity is not None and quantity > MAX_QUANTITY:
        violations.append(
            Violation("QuantityTooLarge", "quantity", f"Product quantity cannot be more than {MAX_QUANTITY}")
        )

    quality_rating = fields.get("quality_rating")
    if quality_rating is not None and quality_rating not in QUALITY_RATINGS:
        violations.append(
            Violation(
                "InvalidQualityRating",
                "quality_rating",
                f"quality_rating must be one of {', '.join(QUALITY_RATINGS)}",
            )
        )

    _raise_if_any(violations)


def validate_order(fields: Mapping[str, Any], today: date | None = None) -> None:
    violations: list[Violation] = []
    today = today or date.today()

    quantity = fields.get("quantity")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        violations.append(Violation("InvalidQuantity", "quantity", "Order quantity must be a positive integer"))
    elif quantity > MAX_QUANTITY:
        violations.append(
            Violation("InvalidQuantity", "quantity", f"Order quantity cannot be more than {MAX_QUANTITY}")
        )

    order_date = fields.get("order_date")
    if order_date is not None and order_date > today:
        violations.append(Violation("FutureOrderDate", "order_date", "Order date cannot be in the future"))

    status = fields.get("status")
    if status is not None and status not in ORDER_STATUSES:
        violations.append(Violation("InvalidStatus", "status", f"status must be one of {', '.join(ORDER_STATUSES)}"))

    payment_status = fields.get("payment_status")
    if payment_status is not None and payment_status not in PAYMENT_STATUSES:
        violations.append(
            Violation(
                "InvalidStatus",
                "payment_status",
                f"payment_status must be one of {', '.join(PAYMENT_STATUSES)}",
            )
        )

    _raise_if_any(violations)


def validate_transportation(fields: Mapping[str, Any]) -> None:
    violations: list[Violation] = []

    if fields.get("vehicle_type") not in VEHICLE_TYPES:
        violations.append(
            Violation(
                "InvalidVehicleType",
                "vehicle_type",
                f"vehicle_type must be one of {', '.join(VEHICLE_TYPES)}",
            )
        )

    if not str(fields.get("driver_name") or "").strip():
        violations.append(Violation("MissingField", "driver_name", "driver_name is required"))

    driver_contact = fields.get("driver_contact")
    if driver_contact is not None and not PHONE_PATTERN.fullmatch(str(driver_contact)):
        violations.append(
            Violation("InvalidContact", "driver_contact", "driver_contact must be 10 to 15 digits")
        )

    expected = fields.get("expected_delivery")
    actual = fields.get("actual_delivery")
    if expected is None:
        violations.append(Violation("MissingField", "expected_delivery", "expected_delivery is required"))
    elif actual is not None and actual < expected:
        violations.append(
            Violation(
                "InvalidDateRange",
                "actual_delivery",
                "actual_delivery cannot be before expected_delivery",
            )
        )

    status = fields.get("status")
    if status is not None and status not in TRANSPORT_STATUSES:
        violations.append(
            Violation("InvalidStatus", "status", f"status must be one of {', '.join(TRANSPORT_STATUSES)}")
        )

    _raise_if_any(violations)


def validate_party(fields: Mapping[str, Any]) -> None:
    """Contact rules shared by farmers, suppliers and buyers."""
    violations: list[Violation] = []

    for required in ("name", "contact"):
        if not str(fields.get(required) or "").strip():
            violations.append(Violation("MissingField", required, f"{required} is required"))

    if not str(fields.get("location") or "").strip():
        violations.append(Violation("EmptyLocation", "location", "location cannot be empty"))

    email = fields.get("email")
    if email is not None and not EMAIL_PATTERN.fullmatch(str(email)):
        violations.append(Violation("InvalidEmail", "email", "email is not a valid address"))

    phone = fields.get("phone")
    if phone is not None and not PHONE_PATTERN.fullmatch(str(phone)):
        violations.append(Violation("InvalidContact", "phone", "phone must be 10 to 15 digits"))

    _raise_if_any(violations)


def validate_login_attempt(fields: Mapping[str, Any]) -> None:
    violations: list[Violation] = []

    if fields.get("user_type") not in USER_TYPES:
        violations.append(
            Violation("InvalidValue", "user_type", f"user_type must be one of {', '.join(USER_TYPES)}")
        )
    if fields.get("status") not in LOGIN_STATUSES:
        violations.append(
            Violation("InvalidStatus", "status", f"status must be one of {', '.join(LOGIN_STATUSES)}")
        )

    ip_address = fields.get("ip_address")
    if ip_address is not None and not _is_ipv4(str(ip_address)):
        violations.append(Violation("InvalidIPAddress", "ip_address", "ip_address must be a dotted IPv4 address"))

    _raise_if_any(violations)


_VALIDATORS = {
    "product": validate_product,
    "order": validate_order,
    "transportation": validate_transportation,
    "farmer": validate_party,
    "supplier": validate_party,
    "buyer": validate_party,
    "user_login": validate_login_attempt,
}


def validate(entity: str, fields: Mapping[str, Any]) -> None:
    try:
        validator = _VALIDATORS[entity]
    except KeyError:
        raise ValueError(f"no validator registered for {entity!r}") from None
    validator(fields)


def _is_ipv4(value: str) -> bool:
    if not IPV4_PATTERN.fullmatch(value):
        return False
    return all(int(octet) <= 255 for octet in value.split("."))


def _raise_if_any(violations: list[Violation]) -> None:
    if violations:
        raise ValidationError(violations)
