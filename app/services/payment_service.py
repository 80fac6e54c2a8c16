"""
Payment initialization flow.

Validates the buyer, checks stock, prices the basket server-side, stores a
pending order and asks iyzico to start a 3-D Secure payment. The order id
doubles as iyzico's ``conversationId`` and ``basketId``; the callback flow
uses it to find the order again.
"""

from __future__ import annotations

import logging
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Tuple

from app.core.config import settings
from app.core.exceptions import (
    InsufficientStockError,
    NotFoundError,
    PaymentGatewayError,
    ValidationError,
)
from app.core.security import CurrentUser, validate_identity_number
from app.core.unit_of_work import UnitOfWork
from app.models.order import OrderStatus, PaymentStatus
from app.schemas.iyzico import BasketItem, BasketItemType
from app.schemas.payment import (
    InitializePaymentRequest,
    InitializePaymentResponse,
    PaymentDetailResponse,
    ShippingAddressIn,
)
from app.services.inventory_service import available_quantity
from app.services.iyzico_service import HTML_CONTENT_FIELD, IyzicoService, is_success

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════
# Constants
# ══════════════════════════════════════════════════════════════════════

PAYMENT_METHOD = "credit-card"
LOCALE = "tr"
CURRENCY = "TRY"
INSTALLMENT = "1"
PAYMENT_CHANNEL = "WEB"

PRODUCT_CATEGORY = "Giyim"
SHIPPING_ITEM_ID = "SHIPPING_FEE"
SHIPPING_ITEM_NAME = "Kargo Ücreti"
SHIPPING_CATEGORY = "Lojistik"

# iyzico rejects an empty surname
FALLBACK_SURNAME = "Butik"
DEFAULT_CITY = "Istanbul"
DEFAULT_COUNTRY = "Türkiye"
DEFAULT_ADDRESS = "Istanbul"
DEFAULT_ZIP_CODE = "34000"
DEFAULT_CLIENT_IP = "127.0.0.1"

COUNTRY_CALLING_CODE = "+90"

TWO_PLACES = Decimal("0.01")


# ══════════════════════════════════════════════════════════════════════
# Pure helper functions
# ══════════════════════════════════════════════════════════════════════


def to_money(value: Any) -> Decimal:
    return Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def normalize_phone_number(phone: str) -> str:
    """
    International format for the gateway's ``gsmNumber``.

    ``05551234567`` and ``5551234567`` both become ``+905551234567``;
    anything already starting with ``+`` is passed through.
    """
    phone = (phone or "").strip()
    if phone.startswith("+"):
        return phone

    digits = re.sub(r"\D", "", phone)
    if len(digits) == 11 and digits.startswith("0"):
        return f"{COUNTRY_CALLING_CODE}{digits[1:]}"
    if len(digits) == 10 and not digits.startswith("0"):
        return f"{COUNTRY_CALLING_CODE}{digits}"
    return f"+{digits}"


def split_buyer_name(full_name: str) -> Tuple[str, str]:
    """Last whitespace-separated token is the surname."""
    parts = full_name.strip().split()
    if len(parts) > 1:
        return " ".join(parts[:-1]), parts[-1]
    return (parts[0] if parts else ""), FALLBACK_SURNAME


def resolve_client_ip(forwarded_for: Optional[str]) -> str:
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return DEFAULT_CLIENT_IP


def normalize_expire_year(year: str) -> str:
    year = year.strip()
    return f"20{year}" if len(year) == 2 else year


def _gateway_address(address: ShippingAddressIn) -> Dict[str, Any]:
    return {
        "contactName": address.name,
        "city": address.city or DEFAULT_CITY,
        "country": address.country or DEFAULT_COUNTRY,
        "address": address.address or DEFAULT_ADDRESS,
        "zipCode": address.postal_code or DEFAULT_ZIP_CODE,
    }


def _line_label(product_name: str, color: Optional[str], size: Optional[str]) -> str:
    if color and size:
        return f"{product_name} ({color}, {size})"
    return product_name


# ══════════════════════════════════════════════════════════════════════
# PaymentService class
# ══════════════════════════════════════════════════════════════════════


class PaymentService:
    def __init__(self, uow: UnitOfWork, iyzico: IyzicoService):
        self.uow = uow
        self.iyzico = iyzico

    async def _build_basket(self, body: InitializePaymentRequest) -> List[BasketItem]:
        """
        Check stock for every requested line and price it from the catalog.

        Raises before anything is written, so a rejected basket never leaves
        an order behind.
        """
        basket: List[BasketItem] = []

        for item in body.items:
            product = await self.uow.products.get_by_id(item.product)
            if product is None:
                raise NotFoundError(
                    f"Ürün bulunamadı: {item.product}",
                    details={"product": item.product},
                )

            available = available_quantity(product, item.color, item.size)
            if item.quantity > available:
                label = _line_label(product.name, item.color, item.size)
                raise InsufficientStockError(
                    f"{label} için yeterli stok yok",
                    details={
                        "product": product.id,
                        "color": item.color,
                        "size": item.size,
                        "requested": item.quantity,
                        "available": available,
                    },
                )

            basket.append(BasketItem(
                id=f"{product.id}_{len(basket)}",
                name=_line_label(product.name, item.color, item.size),
                category1=PRODUCT_CATEGORY,
                item_type=BasketItemType.PHYSICAL,
                price=to_money(Decimal(str(product.price)) * item.quantity),
            ))

        shipping_cost = body.shipping_cost or 0
        if shipping_cost > 0:
            basket.append(BasketItem(
                id=SHIPPING_ITEM_ID,
                name=SHIPPING_ITEM_NAME,
                category1=SHIPPING_CATEGORY,
                item_type=BasketItemType.VIRTUAL,
                price=to_money(shipping_cost),
            ))

        return basket

    def _build_gateway_request(
        self,
        user: CurrentUser,
        body: InitializePaymentRequest,
        order_id: str,
        total: Decimal,
        basket: List[BasketItem],
        client_ip: str,
    ) -> Dict[str, Any]:
        first_name, last_name = split_buyer_name(body.shipping_address.name)
        address = _gateway_address(body.shipping_address)
        card = body.payment_card

        return {
            "locale": LOCALE,
            "conversationId": order_id,
            "price": str(total),
            "paidPrice": str(total),
            "currency": CURRENCY,
            "installment": INSTALLMENT,
            "basketId": order_id,
            "paymentChannel": PAYMENT_CHANNEL,
            "paymentCard": {
                "cardHolderName": card.card_holder_name,
                "cardNumber": re.sub(r"\s", "", card.card_number),
                "expireMonth": card.expire_month,
                "expireYear": normalize_expire_year(card.expire_year),
                "cvc": card.cvc,
                "registerCard": 0,
            },
            "buyer": {
                "id": user.user_id,
                "name": first_name,
                "surname": last_name,
                "gsmNumber": normalize_phone_number(body.contact_info.phone),
                "email": body.contact_info.email,
                "identityNumber": body.identity_number.strip(),
                "registrationAddress": address["address"],
                "city": address["city"],
                "country": address["country"],
                "zipCode": address["zipCode"],
                "ip": client_ip,
            },
            "shippingAddress": address,
            "billingAddress": dict(address),
            "basketItems": [item.to_gateway() for item in basket],
            "callbackUrl": settings.callback_url,
        }

    async def initialize_payment(
        self,
        user: CurrentUser,
        body: InitializePaymentRequest,
        client_ip: str = DEFAULT_CLIENT_IP,
    ) -> InitializePaymentResponse:
        valid, message = validate_identity_number(body.identity_number)
        if not valid:
            raise ValidationError(message or "Geçersiz TC Kimlik numarası")

        basket = await self._build_basket(body)
        # The charged amount is what the basket lines add up to; iyzico
        # rejects requests whose price differs from that sum.
        total = sum((item.price for item in basket), Decimal("0.00"))

        if body.total_price is not None and to_money(body.total_price) != total:
            logger.info(
                f"[payment] client total {body.total_price} differs from basket total {total}, "
                f"using basket total"
            )

        await self.uow.users.update_identity_number(user.user_id, body.identity_number.strip())

        order = await self.uow.orders.create(
            user_id=user.user_id,
            items=[item.model_dump() for item in body.items],
            shipping_address=body.shipping_address.model_dump(by_alias=True),
            contact_info=body.contact_info.model_dump(),
            payment_method=PAYMENT_METHOD,
            total_price=float(total),
            shipping_cost=float(body.shipping_cost or 0),
            order_status=OrderStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
        )
        # Persist before calling out: the callback may arrive on another request
        await self.uow.commit()

        logger.info(
            f"[payment] order {order.id} created — user={user.user_id}, total={total} {CURRENCY}, "
            f"lines={len(basket)}"
        )

        request = self._build_gateway_request(user, body, order.id, total, basket, client_ip)
        result = await self.iyzico.initialize_payment(request)

        if is_success(result):
            html = result.get(HTML_CONTENT_FIELD)
            if html:
                return InitializePaymentResponse(success=True, three_ds_html_content=html)

            logger.warning(f"[payment] order {order.id}: gateway success without 3-D Secure page")
            raise PaymentGatewayError("Ödeme onay sayfası oluşturulamadı", details=result)

        error_message = result.get("errorMessage") or "Ödeme işlemi başarısız"
        logger.warning(
            f"[payment] order {order.id}: initialize rejected — errorCode={result.get('errorCode')}, "
            f"message={error_message}"
        )
        await self.uow.orders.mark_failed(
            order.id,
            payment_details=result,
            payment_error=error_message,
        )
        await self.uow.commit()
        raise PaymentGatewayError(error_message, details=result)

    async def get_payment_detail(self, user: CurrentUser, order_id: str) -> PaymentDetailResponse:
        """Gateway-side payment detail for one of the caller's orders."""
        order = await self.uow.orders.get_by_id(order_id)
        if order is None or order.user_id != user.user_id:
            raise NotFoundError(f"Sipariş bulunamadı: {order_id}", details={"order": order_id})
        if not order.payment_id:
            raise ValidationError("Bu sipariş için ödeme kaydı yok", details={"order": order_id})

        result = await self.iyzico.retrieve_payment(order.payment_id, conversation_id=order.id)

        return PaymentDetailResponse(
            order_id=order.id,
            order_status=order.order_status.value,
            payment_status=order.payment_status.value,
            payment_id=order.payment_id,
            gateway=result,
        )
