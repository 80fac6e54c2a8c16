"""
Pydantic models for the payment routes.

Request bodies arrive camelCased from the storefront.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ──────────────────────────────────────────────────────────────────────
#  Initialize – POST /api/v1/payment/initialize
# ──────────────────────────────────────────────────────────────────────


class OrderItemIn(CamelModel):
    product: str
    name: Optional[str] = None
    image: Optional[str] = ""
    price: Optional[float] = None
    quantity: int = Field(..., gt=0)
    size: Optional[str] = None
    color: Optional[str] = None


class ShippingAddressIn(CamelModel):
    name: str = Field(..., min_length=1)
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None


class ContactInfoIn(CamelModel):
    email: str
    phone: str


class PaymentCardIn(CamelModel):
    card_holder_name: str
    card_number: str
    expire_month: str
    expire_year: str
    cvc: str


class InitializePaymentRequest(CamelModel):
    """Request body for starting a 3-D Secure card payment."""

    items: List[OrderItemIn] = Field(..., min_length=1)
    shipping_address: ShippingAddressIn
    contact_info: ContactInfoIn
    payment_card: PaymentCardIn
    # Informational only; the charged amount is computed server-side
    total_price: Optional[float] = None
    shipping_cost: Optional[float] = 0
    # Validated in the service so a missing value yields a readable message
    identity_number: Optional[str] = None


class InitializePaymentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    three_ds_html_content: str = Field(..., alias="threeDSHtmlContent")


# ──────────────────────────────────────────────────────────────────────
#  Detail – GET /api/v1/payment/{order_id}/detail
# ──────────────────────────────────────────────────────────────────────


class PaymentDetailResponse(CamelModel):
    order_id: str
    order_status: str
    payment_status: str
    payment_id: Optional[str] = None
    gateway: Dict[str, Any] = {}


class ErrorResponse(BaseModel):
    error: str
    code: Optional[str] = None
    details: Optional[Any] = None
