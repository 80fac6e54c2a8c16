"""Tests for the iyzico request codec: canonical bodies and signing."""

import base64
import hashlib
import hmac
import json
from decimal import Decimal

import pytest

from app.services.iyzico_codec import (
    build_authorization_header,
    canonical_json,
    compute_signature,
    filter_auth_request,
    filter_basket_item,
    filter_buyer,
    filter_payment,
    filter_retrieve_request,
    format_price,
    mask_card,
    redact_api_key,
)


def sample_request():
    return {
        "locale": "tr",
        "conversationId": "ord_1",
        "price": "649.90",
        "paidPrice": "649.90",
        "currency": "TRY",
        "installment": "1",
        "basketId": "ord_1",
        "paymentChannel": "WEB",
        "ip": "85.34.78.112",
        "paymentCard": {
            "cardHolderName": "Ayşe Yılmaz",
            "cardNumber": "5528790000000008",
            "expireMonth": "12",
            "expireYear": "2030",
            "cvc": "123",
            "registerCard": 0,
        },
        "buyer": {
            "id": "usr_1",
            "name": "Ayşe",
            "surname": "Yılmaz",
            "gsmNumber": "+905551234567",
            "email": "ayse@example.com",
            "identityNumber": "10000000146",
            "registrationAddress": "Kadıköy",
            "city": "Istanbul",
            "country": "Türkiye",
            "zipCode": "34000",
            "ip": "85.34.78.112",
            "favouriteColor": "mavi",
        },
        "shippingAddress": {
            "contactName": "Ayşe Yılmaz",
            "city": "Istanbul",
            "country": "Türkiye",
            "address": "Kadıköy",
            "zipCode": "34000",
            "phone": "not-sent",
        },
        "billingAddress": {
            "contactName": "Ayşe Yılmaz",
            "city": "Istanbul",
            "country": "Türkiye",
            "address": "Kadıköy",
            "zipCode": "34000",
        },
        "basketItems": [
            {"id": "prod_1_0", "name": "Tişört", "category1": "Giyim", "itemType": "PHYSICAL", "price": Decimal("150.00")},
            {"id": "SHIPPING_FEE", "name": "Kargo Ücreti", "category1": "Lojistik", "itemType": "VIRTUAL", "price": "499.90"},
        ],
        "callbackUrl": "http://localhost:3002/api/v1/payment/callback",
    }


class TestFormatPrice:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (150, "150.0"),
            ("150.00", "150.0"),
            ("149.90", "149.9"),
            (Decimal("649.90"), "649.9"),
            (0.5, "0.5"),
            ("1.25", "1.25"),
            (None, "0.0"),
            (0, "0.0"),
        ],
    )
    def test_formats(self, value, expected):
        assert format_price(value) == expected


class TestFilters:
    def test_payment_keeps_whitelisted_keys_in_order(self):
        body = filter_payment(sample_request())
        assert list(body) == [
            "locale", "conversationId", "price", "paidPrice", "installment",
            "paymentChannel", "basketId", "paymentCard", "buyer",
            "shippingAddress", "billingAddress", "basketItems", "currency",
            "callbackUrl",
        ]
        # top-level ip is not part of the signed envelope
        assert "ip" not in body
        assert "favouriteColor" not in body["buyer"]
        assert "phone" not in body["shippingAddress"]
        assert list(body["shippingAddress"]) == ["address", "zipCode", "contactName", "city", "country"]

    def test_payment_formats_every_amount(self):
        body = filter_payment(sample_request())
        assert body["price"] == "649.9"
        assert body["paidPrice"] == "649.9"
        assert [item["price"] for item in body["basketItems"]] == ["150.0", "499.9"]

    def test_payment_defaults(self):
        body = filter_payment({"conversationId": "ord_1", "price": 10, "paidPrice": 10})
        assert body["locale"] == "tr"
        assert body["installment"] == "1"
        assert body["paymentChannel"] == "WEB"
        assert body["currency"] == "TRY"
        assert body["basketItems"] == []
        assert "paymentGroup" not in body
        assert "buyer" not in body

    def test_payment_group_only_when_present(self):
        data = sample_request()
        data["paymentGroup"] = "PRODUCT"
        assert filter_payment(data)["paymentGroup"] == "PRODUCT"

    def test_basket_item_omits_absent_sub_merchant_fields(self):
        item = filter_basket_item({"id": "x", "name": "n", "category1": "c", "itemType": "PHYSICAL", "price": 10})
        assert item == {"id": "x", "price": "10.0", "name": "n", "category1": "c", "itemType": "PHYSICAL"}
        assert "null" not in canonical_json(item)

    def test_basket_item_keeps_sub_merchant_fields(self):
        item = filter_basket_item({
            "id": "x", "name": "n", "category1": "c", "itemType": "PHYSICAL", "price": 10,
            "subMerchantKey": "smk", "subMerchantPrice": 9, "withholdingTax": "0.50",
        })
        assert list(item)[-3:] == ["subMerchantKey", "subMerchantPrice", "withholdingTax"]
        assert item["subMerchantPrice"] == "9.0"
        assert item["withholdingTax"] == "0.5"

    def test_buyer_loopback_ipv6_becomes_ipv4(self):
        assert filter_buyer({"id": "u", "ip": "::1"})["ip"] == "127.0.0.1"
        assert filter_buyer({"id": "u", "ip": "10.0.0.1"})["ip"] == "10.0.0.1"

    def test_card_register_card_defaults_to_zero(self):
        body = filter_payment({"paymentCard": {"cardNumber": "4111"}})
        assert body["paymentCard"]["registerCard"] == 0

    def test_auth_and_retrieve_bodies_are_minimal(self):
        assert filter_auth_request({"paymentId": "p1", "conversationId": "ord_1", "price": 5}) == {
            "locale": "tr",
            "conversationId": "ord_1",
            "paymentId": "p1",
        }
        assert filter_retrieve_request({"paymentId": "p1"}) == {"locale": "tr", "paymentId": "p1"}


class TestCanonicalJson:
    def test_deterministic(self):
        first = canonical_json(filter_payment(sample_request()))
        second = canonical_json(filter_payment(sample_request()))
        assert first == second

    def test_compact_and_unescaped(self):
        text = canonical_json(filter_payment(sample_request()))
        assert ", " not in text and ": " not in text
        assert "Türkiye" in text
        assert text.startswith('{"locale":"tr","conversationId":"ord_1","price":"649.9"')
        assert json.loads(text)["basketItems"][1]["id"] == "SHIPPING_FEE"


class TestSigning:
    def test_signature_reproducible(self):
        body = canonical_json(filter_auth_request({"paymentId": "p1", "conversationId": "ord_1"}))
        first = compute_signature("secret", "123456", "/payment/3dsecure/auth", body)
        second = compute_signature("secret", "123456", "/payment/3dsecure/auth", body)
        expected = hmac.new(
            b"secret",
            f"123456/payment/3dsecure/auth{body}".encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()
        assert first == second == expected

    def test_signature_changes_with_nonce(self):
        assert compute_signature("s", "1", "/p", "{}") != compute_signature("s", "2", "/p", "{}")

    def test_authorization_header_format(self):
        header = build_authorization_header("api-key", "secret", "/payment/detail", '{"locale":"tr"}', "98765")
        scheme, encoded = header.split(" ")
        assert scheme == "IYZWSv2"
        decoded = base64.b64decode(encoded).decode("utf-8")
        signature = compute_signature("secret", "98765", "/payment/detail", '{"locale":"tr"}')
        assert decoded == f"apiKey:api-key&randomKey:98765&signature:{signature}"


class TestRedaction:
    def test_redact_api_key(self):
        assert redact_api_key("sandbox-key") == "sand..."

    def test_mask_card_leaves_original_untouched(self):
        body = filter_payment(sample_request())
        masked = mask_card(body)
        assert masked["paymentCard"]["cardNumber"] == "************0008"
        assert masked["paymentCard"]["cvc"] == "***"
        assert body["paymentCard"]["cardNumber"] == "5528790000000008"
