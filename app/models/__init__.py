from app.models.base import Base, TimestampMixin
from app.models.order import Order, OrderStatus, PaymentStatus
from app.models.product import Product
from app.models.user import User

__all__ = [
    "Base",
    "TimestampMixin",
    "Order",
    "OrderStatus",
    "PaymentStatus",
    "Product",
    "User",
]
