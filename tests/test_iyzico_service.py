"""Tests for the iyzico client against a stub transport."""

import base64
import json

import httpx

from app.services.audit_log import AuditLog
from app.services.iyzico_codec import compute_signature
from app.services.iyzico_service import IyzicoService

from conftest import run

API_KEY = "live-api-key-XYZ"
SECRET_KEY = "live-secret"


def make_service(tmp_path, handler, log_name="audit.log"):
    captured = []

    def _handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return handler(request)

    service = IyzicoService(
        api_key=API_KEY,
        secret_key=SECRET_KEY,
        base_url="https://sandbox-api.iyzipay.com/",
        audit_log=AuditLog(str(tmp_path / log_name)),
        transport=httpx.MockTransport(_handler),
        random_key_factory=lambda: "1700000000123456",
    )
    return service, captured


def payment_request():
    return {
        "conversationId": "ord_1",
        "price": "150.00",
        "paidPrice": "150.00",
        "basketId": "ord_1",
        "paymentCard": {"cardHolderName": "Ali Veli", "cardNumber": "5528790000000008", "cvc": "123"},
        "buyer": {"id": "usr_1", "name": "Ali", "surname": "Veli", "ip": "::1"},
        "basketItems": [{"id": "p_0", "name": "Tişört", "category1": "Giyim", "itemType": "PHYSICAL", "price": "150.00"}],
        "callbackUrl": "http://localhost:3002/api/v1/payment/callback",
    }


def test_initialize_sends_signed_canonical_body(tmp_path):
    html = "<html><body>3D Secure</body></html>"
    service, captured = make_service(
        tmp_path,
        lambda req: httpx.Response(
            200,
            json={"status": "success", "threeDSHtmlContent": base64.b64encode(html.encode()).decode()},
        ),
    )

    result = run(service.initialize_payment(payment_request()))

    assert result["status"] == "success"
    assert result["threeDSHtmlContent"] == html

    request = captured[0]
    assert str(request.url) == "https://sandbox-api.iyzipay.com/payment/3dsecure/initialize"
    assert request.headers["content-type"] == "application/json"
    assert request.headers["x-iyzi-rnd"] == "1700000000123456"
    assert request.headers["x-iyzi-client-version"]

    body_text = request.content.decode("utf-8")
    body = json.loads(body_text)
    assert body["price"] == "150.0"
    assert body["buyer"]["ip"] == "127.0.0.1"

    scheme, encoded = request.headers["authorization"].split(" ")
    assert scheme == "IYZWSv2"
    expected_signature = compute_signature(
        SECRET_KEY, "1700000000123456", "/payment/3dsecure/initialize", body_text
    )
    assert base64.b64decode(encoded).decode() == (
        f"apiKey:{API_KEY}&randomKey:1700000000123456&signature:{expected_signature}"
    )


def test_auth_3d_posts_minimal_body(tmp_path):
    service, captured = make_service(
        tmp_path, lambda req: httpx.Response(200, json={"status": "success", "paymentId": "pay_9"})
    )

    result = run(service.auth_3d("pay_9", "ord_1"))

    assert result == {"status": "success", "paymentId": "pay_9"}
    assert captured[0].url.path == "/payment/3dsecure/auth"
    assert json.loads(captured[0].content) == {"locale": "tr", "conversationId": "ord_1", "paymentId": "pay_9"}


def test_retrieve_payment_uses_detail_path(tmp_path):
    service, captured = make_service(tmp_path, lambda req: httpx.Response(200, json={"status": "success"}))

    run(service.retrieve_payment("pay_9"))

    assert captured[0].url.path == "/payment/detail"
    assert json.loads(captured[0].content) == {"locale": "tr", "paymentId": "pay_9"}


def test_gateway_failure_body_is_returned_as_is(tmp_path):
    service, _ = make_service(
        tmp_path,
        lambda req: httpx.Response(
            400, json={"status": "failure", "errorCode": "12", "errorMessage": "Kart numarası geçersizdir"}
        ),
    )

    result = run(service.initialize_payment(payment_request()))

    assert result["status"] == "failure"
    assert result["errorMessage"] == "Kart numarası geçersizdir"


def test_transport_error_becomes_failure_result(tmp_path):
    def boom(request):
        raise httpx.ConnectError("connection refused", request=request)

    service, _ = make_service(tmp_path, boom)

    result = run(service.auth_3d("pay_1", "ord_1"))

    assert result == {"status": "failure", "errorMessage": "connection refused"}


def test_unparseable_response_becomes_failure_result(tmp_path):
    service, _ = make_service(tmp_path, lambda req: httpx.Response(502, text="<html>Bad gateway</html>"))

    result = run(service.auth_3d("pay_1", "ord_1"))

    assert result["status"] == "failure"
    assert result["errorMessage"]


def test_undecodable_html_is_returned_raw(tmp_path):
    service, _ = make_service(
        tmp_path, lambda req: httpx.Response(200, json={"status": "success", "threeDSHtmlContent": "abc"})
    )

    result = run(service.initialize_payment(payment_request()))

    assert result["threeDSHtmlContent"] == "abc"
    assert "Base64 Decode Error" in (tmp_path / "audit.log").read_text(encoding="utf-8")


def test_audit_log_redacts_credentials(tmp_path):
    service, _ = make_service(tmp_path, lambda req: httpx.Response(200, json={"status": "success"}))

    run(service.initialize_payment(payment_request()))

    log = (tmp_path / "audit.log").read_text(encoding="utf-8")
    assert "--- Filtered Request Start [" in log
    assert "--- Request Result [" in log
    assert "live..." in log
    assert API_KEY not in log
    assert "5528790000000008" not in log


def test_unwritable_audit_log_does_not_abort_call(tmp_path):
    # A directory cannot be opened as the log file
    (tmp_path / "not-a-file").mkdir()
    service, captured = make_service(
        tmp_path, lambda req: httpx.Response(200, json={"status": "success"}), log_name="not-a-file"
    )

    result = run(service.auth_3d("pay_1", "ord_1"))

    assert result["status"] == "success"
    assert len(captured) == 1
