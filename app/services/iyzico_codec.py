"""
iyzico request codec.

Builds the canonical JSON body iyzico signs against and the IYZWSv2
authorization header. The gateway recomputes the HMAC over the exact body
text it receives, so field whitelists, field order and price formatting
here are part of the wire contract:

  * every sub-object keeps a fixed set of keys, in a fixed order
  * absent (None) values are dropped, never sent as null
  * prices are decimal strings with at least one fractional digit
  * the body is compact JSON with non-ASCII characters left as-is

Nothing in this module does I/O.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import secrets
import time
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

AUTHORIZATION_SCHEME = "IYZWSv2"

DEFAULT_LOCALE = "tr"
DEFAULT_CURRENCY = "TRY"
DEFAULT_INSTALLMENT = "1"
DEFAULT_PAYMENT_CHANNEL = "WEB"

LOOPBACK_IPV6 = "::1"
LOOPBACK_IPV4 = "127.0.0.1"


# ══════════════════════════════════════════════════════════════════════
# Formatting helpers
# ══════════════════════════════════════════════════════════════════════


def format_price(price: Any) -> str:
    """
    Render an amount the way iyzico expects it in the signed body.

    Trailing zeros are dropped and integral amounts keep a single ``.0``:
    ``150`` -> ``"150.0"``, ``"149.90"`` -> ``"149.9"``, ``None`` -> ``"0.0"``.
    """
    if price is None:
        return "0.0"
    value = Decimal(str(price)).normalize()
    text = format(value, "f")
    if "." not in text:
        return text + ".0"
    return text


def _compact(pairs: Iterable[Tuple[str, Any]]) -> Dict[str, Any]:
    """Build an ordered dict from pairs, skipping None values."""
    return {key: value for key, value in pairs if value is not None}


# ══════════════════════════════════════════════════════════════════════
# Per-object whitelists
# ══════════════════════════════════════════════════════════════════════


def filter_address(data: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    if not data:
        return None
    return _compact([
        ("address", data.get("address")),
        ("zipCode", data.get("zipCode")),
        ("contactName", data.get("contactName")),
        ("city", data.get("city")),
        ("country", data.get("country")),
    ])


def filter_buyer(data: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    if not data:
        return None
    ip = data.get("ip")
    if ip == LOOPBACK_IPV6:
        ip = LOOPBACK_IPV4
    return _compact([
        ("id", data.get("id")),
        ("name", data.get("name")),
        ("surname", data.get("surname")),
        ("identityNumber", data.get("identityNumber")),
        ("email", data.get("email")),
        ("gsmNumber", data.get("gsmNumber")),
        ("registrationDate", data.get("registrationDate")),
        ("lastLoginDate", data.get("lastLoginDate")),
        ("registrationAddress", data.get("registrationAddress")),
        ("city", data.get("city")),
        ("country", data.get("country")),
        ("zipCode", data.get("zipCode")),
        ("ip", ip),
    ])


def filter_payment_card(data: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    if not data:
        return None
    return _compact([
        ("cardHolderName", data.get("cardHolderName")),
        ("cardNumber", data.get("cardNumber")),
        ("expireYear", data.get("expireYear")),
        ("expireMonth", data.get("expireMonth")),
        ("cvc", data.get("cvc")),
        ("registerCard", data.get("registerCard") or 0),
    ])


def filter_basket_item(data: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    if not data:
        return None
    item = _compact([
        ("id", data.get("id")),
        ("price", format_price(data.get("price"))),
        ("name", data.get("name")),
        ("category1", data.get("category1")),
        ("category2", data.get("category2")),
        ("itemType", data.get("itemType")),
    ])
    # Marketplace fields are only sent when present
    if data.get("subMerchantKey"):
        item["subMerchantKey"] = data["subMerchantKey"]
    if data.get("subMerchantPrice") is not None:
        item["subMerchantPrice"] = format_price(data["subMerchantPrice"])
    if data.get("withholdingTax") is not None:
        item["withholdingTax"] = format_price(data["withholdingTax"])
    return item


def filter_payment(data: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    """Canonical body for POST /payment/3dsecure/initialize."""
    if not data:
        return None
    basket_items: List[Optional[Dict[str, Any]]] = [
        filter_basket_item(item) for item in (data.get("basketItems") or [])
    ]
    payment = _compact([
        ("locale", data.get("locale") or DEFAULT_LOCALE),
        ("conversationId", data.get("conversationId")),
        ("price", format_price(data.get("price"))),
        ("paidPrice", format_price(data.get("paidPrice"))),
        ("installment", data.get("installment") or DEFAULT_INSTALLMENT),
        ("paymentChannel", data.get("paymentChannel") or DEFAULT_PAYMENT_CHANNEL),
        ("basketId", data.get("basketId")),
        ("paymentCard", filter_payment_card(data.get("paymentCard"))),
        ("buyer", filter_buyer(data.get("buyer"))),
        ("shippingAddress", filter_address(data.get("shippingAddress"))),
        ("billingAddress", filter_address(data.get("billingAddress"))),
        ("basketItems", basket_items),
        ("currency", data.get("currency") or DEFAULT_CURRENCY),
        ("callbackUrl", data.get("callbackUrl")),
    ])
    if data.get("paymentGroup"):
        payment["paymentGroup"] = data["paymentGroup"]
    return payment


def filter_auth_request(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Canonical body for POST /payment/3dsecure/auth."""
    return _compact([
        ("locale", data.get("locale") or DEFAULT_LOCALE),
        ("conversationId", data.get("conversationId")),
        ("paymentId", data.get("paymentId")),
        ("conversationData", data.get("conversationData")),
    ])


def filter_retrieve_request(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Canonical body for POST /payment/detail."""
    return _compact([
        ("locale", data.get("locale") or DEFAULT_LOCALE),
        ("conversationId", data.get("conversationId")),
        ("paymentId", data.get("paymentId")),
        ("paymentConversationId", data.get("paymentConversationId")),
    ])


def canonical_json(body: Mapping[str, Any]) -> str:
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False)


# ══════════════════════════════════════════════════════════════════════
# Signing
# ══════════════════════════════════════════════════════════════════════


def generate_random_key() -> str:
    """Per-request nonce: epoch milliseconds followed by six random digits."""
    return f"{time.time_ns() // 1_000_000}{secrets.randbelow(1_000_000):06d}"


def compute_signature(secret_key: str, random_key: str, path: str, body_json: str) -> str:
    message = f"{random_key}{path}{body_json}"
    return hmac.new(
        secret_key.encode("utf-8"),
        message.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def build_authorization_header(
    api_key: str,
    secret_key: str,
    path: str,
    body_json: str,
    random_key: str,
) -> str:
    signature = compute_signature(secret_key, random_key, path, body_json)
    auth_string = f"apiKey:{api_key}&randomKey:{random_key}&signature:{signature}"
    encoded = base64.b64encode(auth_string.encode("utf-8")).decode("ascii")
    return f"{AUTHORIZATION_SCHEME} {encoded}"


def decode_html_content(encoded: str) -> str:
    """Decode the base64 3-D Secure page iyzico returns."""
    return base64.b64decode(encoded).decode("utf-8")


def redact_api_key(api_key: str) -> str:
    return f"{api_key[:4]}..."


def mask_card(body: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy of a canonical body with card number and CVC masked for logs."""
    masked = dict(body)
    card = masked.get("paymentCard")
    if isinstance(card, Mapping):
        card = dict(card)
        number = str(card.get("cardNumber") or "")
        if number:
            card["cardNumber"] = f"{'*' * max(len(number) - 4, 0)}{number[-4:]}"
        if card.get("cvc"):
            card["cvc"] = "***"
        masked["paymentCard"] = card
    return masked
