"""
3-D Secure callback reconciliation.

iyzico redirects the buyer's browser here after the issuing bank step.
The posted ``status``/``mdStatus`` pair is only a hint: a payment counts
as paid once the follow-up ``auth`` call succeeds. Every outcome ends in
a redirect back to the storefront.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlencode

from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.unit_of_work import UnitOfWork
from app.models.order import Order
from app.services.iyzico_service import STATUS_SUCCESS, IyzicoService, is_success

logger = logging.getLogger(__name__)


# Storefront routes and the error markers it understands
CART_PATH = "/sepet"
CHECKOUT_PATH = "/odeme"
ORDERS_PATH = "/siparisler"

ERROR_ORDER_ID_MISSING = "SiparisIDBulunamadi"
ERROR_ORDER_NOT_FOUND = "SiparisBulunamadi"
ERROR_AUTH_FAILED = "DogrulamaHatasi"
ERROR_PAYMENT_FAILED = "OdemeBasarisiz"
ERROR_SYSTEM = "SistemselHata"

MD_STATUS_APPROVED = "1"

AUTH_FAILED_MESSAGE = "Ödeme doğrulanamadı (Auth hatası)"
THREE_DS_FAILED_MESSAGE = "3D Onayı alınamadı"


def frontend_url(path: str, frontend_base: Optional[str] = None, **params: Any) -> str:
    base = (frontend_base or settings.FRONTEND_URL).rstrip("/")
    query = urlencode(params)
    return f"{base}{path}?{query}" if query else f"{base}{path}"


def system_error_url(frontend_base: Optional[str] = None) -> str:
    return frontend_url(CART_PATH, frontend_base, error=ERROR_SYSTEM)


def is_bank_approved(status: Any, md_status: Any) -> bool:
    """The bank approved when status is success and mdStatus is 1 (int or str)."""
    return status == STATUS_SUCCESS and str(md_status).strip() == MD_STATUS_APPROVED


class PaymentCallbackService:
    def __init__(
        self,
        uow: UnitOfWork,
        iyzico: IyzicoService,
        frontend_base: Optional[str] = None,
    ):
        self.uow = uow
        self.iyzico = iyzico
        self.frontend_base = frontend_base or settings.FRONTEND_URL

    def _url(self, path: str, **params: Any) -> str:
        return frontend_url(path, self.frontend_base, **params)

    async def handle_callback(self, payload: Mapping[str, Any]) -> str:
        """Reconcile one callback and return the storefront URL to redirect to."""
        payment_id = payload.get("paymentId")
        status = payload.get("status")
        conversation_id = payload.get("conversationId")
        md_status = payload.get("mdStatus")

        logger.info(
            f"[callback] received — conversationId={conversation_id}, paymentId={payment_id}, "
            f"status={status}, mdStatus={md_status}"
        )

        if not conversation_id:
            return self._url(CART_PATH, error=ERROR_ORDER_ID_MISSING)

        order = await self.uow.orders.get_by_id(str(conversation_id))
        if order is None:
            logger.warning(f"[callback] order {conversation_id} not found")
            return self._url(CART_PATH, error=ERROR_ORDER_NOT_FOUND)

        if is_bank_approved(status, md_status):
            return await self._handle_approved(order, payment_id)

        return await self._handle_declined(order, payment_id, payload)

    async def _handle_approved(self, order: Order, payment_id: Optional[str]) -> str:
        auth_result = await self.iyzico.auth_3d(payment_id, order.id)

        if not is_success(auth_result):
            error_message = auth_result.get("errorMessage") or AUTH_FAILED_MESSAGE
            logger.warning(
                f"[callback] order {order.id}: auth rejected — errorCode={auth_result.get('errorCode')}, "
                f"message={error_message}"
            )
            await self.uow.orders.mark_failed(
                order.id,
                payment_id=payment_id,
                payment_details=auth_result,
                payment_error=error_message,
            )
            await self.uow.commit()
            return self._url(CHECKOUT_PATH, error=ERROR_AUTH_FAILED)

        transitioned = await self.uow.orders.mark_paid_if_unpaid(order.id, payment_id, auth_result)
        await self.uow.commit()

        if transitioned:
            logger.info(f"[callback] order {order.id} paid — paymentId={payment_id}")
            await self._decrement_stock(order)
        else:
            logger.info(f"[callback] order {order.id} already paid, skipping stock update")

        return self._url(ORDERS_PATH, success="true", orderId=order.id)

    async def _handle_declined(
        self,
        order: Order,
        payment_id: Optional[str],
        payload: Mapping[str, Any],
    ) -> str:
        error_message = payload.get("errorMessage") or THREE_DS_FAILED_MESSAGE
        logger.warning(
            f"[callback] order {order.id}: 3-D Secure not approved — status={payload.get('status')}, "
            f"mdStatus={payload.get('mdStatus')}"
        )
        await self.uow.orders.mark_failed(
            order.id,
            payment_id=payment_id,
            payment_details=dict(payload),
            payment_error=error_message,
        )
        await self.uow.commit()
        return self._url(CHECKOUT_PATH, error=ERROR_PAYMENT_FAILED)

    async def _decrement_stock(self, order: Order) -> Dict[str, int]:
        """
        Apply the order's stock decrements, one committed update per line.

        Lines are independent: a vanished product is skipped and a failing
        update is logged and rolled back without undoing earlier lines.
        """
        summary = {"applied": 0, "skipped": 0, "failed": 0}

        for item in order.items or []:
            product_id = item.get("product")
            try:
                found = await self.uow.products.decrement_stock(
                    product_id,
                    int(item.get("quantity") or 0),
                    color=item.get("color"),
                    size=item.get("size"),
                )
                await self.uow.commit()
            except SQLAlchemyError:
                logger.exception(f"[callback] order {order.id}: stock update failed for {product_id}")
                await self.uow.rollback()
                summary["failed"] += 1
                continue

            if found:
                summary["applied"] += 1
            else:
                logger.warning(f"[callback] order {order.id}: product {product_id} missing, skipped")
                summary["skipped"] += 1

        logger.info(f"[callback] order {order.id} stock update — {summary}")
        return summary
