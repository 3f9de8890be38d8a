"""Orders Service models package.

Re-exports all models and enums so SQLAlchemy's mapper registry sees every
model class on import.
"""

from services.orders_service.models.enums import (  # noqa: F401
    OrderStatus,
    PaymentMethod,
)
from services.orders_service.models.order import (  # noqa: F401
    Order,
    OrderItem,
    OrderStatusEvent,
)
from services.orders_service.models.review import Review  # noqa: F401

__all__ = [
    # Enums
    "OrderStatus",
    "PaymentMethod",
    # Models
    "Order",
    "OrderItem",
    "OrderStatusEvent",
    "Review",
]
