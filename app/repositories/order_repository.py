import logging
from typing import Any

from sqlalchemy import update

from app.models.order import Order, OrderStatus, PaymentStatus
from app.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class OrderRepository(BaseRepository[Order]):
    model = Order

    async def mark_paid_if_unpaid(
        self,
        order_id: str,
        payment_id: str | None,
        payment_details: dict[str, Any] | None,
    ) -> bool:
        """
        Move the order to paid/processing in a single conditional UPDATE.

        Returns False when the order was already paid, in which case nothing
        was written. Callers use the return value to decide whether stock
        must be decremented.
        """
        result = await self.session.execute(
            update(Order)
            .where(Order.id == order_id, Order.payment_status != PaymentStatus.PAID)
            .values(
                payment_status=PaymentStatus.PAID,
                order_status=OrderStatus.PROCESSING,
                payment_id=payment_id,
                payment_details=payment_details,
                payment_error=None,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def mark_failed(
        self,
        order_id: str,
        payment_id: str | None = None,
        payment_details: dict[str, Any] | None = None,
        payment_error: str | None = None,
    ) -> bool:
        """Mark the order failed unless it is already paid."""
        values: dict[str, Any] = {
            "payment_status": PaymentStatus.FAILED,
            "order_status": OrderStatus.FAILED,
        }
        if payment_id is not None:
            values["payment_id"] = payment_id
        if payment_details is not None:
            values["payment_details"] = payment_details
        if payment_error is not None:
            values["payment_error"] = payment_error

        result = await self.session.execute(
            update(Order)
            .where(Order.id == order_id, Order.payment_status != PaymentStatus.PAID)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning(f"[orders] not marking {order_id} failed, already paid or missing")
        return result.rowcount == 1
