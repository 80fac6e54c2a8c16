import enum
from typing import Any

from sqlalchemy import JSON, Enum, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin, generate_prefixed_id


def generate_order_id() -> str:
    return generate_prefixed_id("ord")


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    FAILED = "failed"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class Order(TimestampMixin, Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(
        String(50),
        primary_key=True,
        default=generate_order_id,
    )
    user_id: Mapped[str] = mapped_column(String(255), index=True)
    # Snapshot of the requested line items:
    # [{product, name, image, price, quantity, size, color}]
    items: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    shipping_address: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    contact_info: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    payment_method: Mapped[str] = mapped_column(String(50), default="credit-card")
    total_price: Mapped[float] = mapped_column(Float, nullable=False)
    shipping_cost: Mapped[float] = mapped_column(Float, default=0)
    order_status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus, values_callable=lambda e: [m.value for m in e], native_enum=False),
        default=OrderStatus.PENDING,
        nullable=False,
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, values_callable=lambda e: [m.value for m in e], native_enum=False),
        default=PaymentStatus.PENDING,
        nullable=False,
        index=True,
    )
    payment_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    payment_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Order {self.id} {self.order_status.value}/{self.payment_status.value}>"
