from .audit_log import AuditLog, AuditLogImmutableError
from .order import TERMINAL_ORDER_STATUSES, Order
from .party import Buyer, Farmer, Supplier
from .product import Product
from .reference import PaymentMethod, ProductCategory
from .transportation import Transportation
from .user_login import UserLogin

__all__ = [
    "AuditLog",
    "AuditLogImmutableError",
    "Buyer",
    "Farmer",
    "Order",
    "PaymentMethod",
    "Product",
    "ProductCategory",
    "Supplier",
    "TERMINAL_ORDER_STATUSES",
    "Transportation",
    "UserLogin",
]
