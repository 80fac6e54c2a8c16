"""
iyzico Payment Gateway Service.

Signed HTTP calls to the iyzico API for the 3-D Secure card flow:
initialize, auth (confirmation after the bank redirect) and payment
detail lookup. No vendor SDK is used; request bodies and authorization
headers are produced by ``app.services.iyzico_codec``.

Every call returns the gateway JSON as a dict. Transport and parse
failures are folded into ``{"status": "failure", "errorMessage": ...}``
so callers only ever branch on ``status``.
"""

from __future__ import annotations

import binascii
import logging
from typing import Any, Callable, Dict, Mapping, Optional

import httpx

from app.core.config import settings
from app.services.audit_log import AuditLog
from app.services.iyzico_codec import (
    build_authorization_header,
    canonical_json,
    decode_html_content,
    filter_auth_request,
    filter_payment,
    filter_retrieve_request,
    generate_random_key,
    mask_card,
    redact_api_key,
)

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════
# Constants
# ══════════════════════════════════════════════════════════════════════

INITIALIZE_3DS_PATH = "/payment/3dsecure/initialize"
AUTH_3DS_PATH = "/payment/3dsecure/auth"
PAYMENT_DETAIL_PATH = "/payment/detail"

STATUS_SUCCESS = "success"
STATUS_FAILURE = "failure"

HTML_CONTENT_FIELD = "threeDSHtmlContent"


def is_success(result: Mapping[str, Any]) -> bool:
    return result.get("status") == STATUS_SUCCESS


# ══════════════════════════════════════════════════════════════════════
# IyzicoService class
# ══════════════════════════════════════════════════════════════════════


class IyzicoService:
    """
    Service class that encapsulates all iyzico gateway operations.

    ``transport`` is handed to ``httpx.AsyncClient``; tests pass an
    ``httpx.MockTransport`` to run without network access.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client_version: Optional[str] = None,
        timeout: Optional[float] = None,
        audit_log: Optional[AuditLog] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        random_key_factory: Callable[[], str] = generate_random_key,
    ) -> None:
        self.api_key = api_key or settings.IYZICO_API_KEY
        self.secret_key = secret_key or settings.IYZICO_SECRET_KEY
        self.base_url = (base_url or settings.IYZICO_BASE_URL).rstrip("/")
        self.client_version = client_version or settings.IYZICO_CLIENT_VERSION
        self.timeout = timeout or settings.IYZICO_TIMEOUT
        self.audit_log = audit_log or AuditLog(settings.IYZICO_AUDIT_LOG_PATH)
        self._transport = transport
        self._random_key_factory = random_key_factory

    # ──────────────────────────────────────────────────────────────
    # Request building
    # ──────────────────────────────────────────────────────────────

    def build_headers(self, path: str, body_json: str, random_key: str) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "x-iyzi-rnd": random_key,
            "x-iyzi-client-version": self.client_version,
            "Authorization": build_authorization_header(
                self.api_key, self.secret_key, path, body_json, random_key
            ),
        }

    # ──────────────────────────────────────────────────────────────
    # Signed request
    # ──────────────────────────────────────────────────────────────

    async def _request(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        body_json = canonical_json(body)
        random_key = self._random_key_factory()
        headers = self.build_headers(path, body_json, random_key)

        self.audit_log.write(
            "Filtered Request Start",
            {
                "url": url,
                "apiKey": redact_api_key(self.api_key),
                "body": mask_card(body),
            },
        )

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                resp = await client.post(
                    url,
                    content=body_json.encode("utf-8"),
                    headers=headers,
                )
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"[iyzico] POST {path} failed: {e}")
            self.audit_log.write("Request ERROR", {"message": str(e)})
            return {"status": STATUS_FAILURE, "errorMessage": str(e)}

        if not isinstance(data, dict):
            message = f"Unexpected response body from {path}"
            logger.error(f"[iyzico] {message}: HTTP {resp.status_code}")
            self.audit_log.write("Request ERROR", {"message": message, "body": data})
            return {"status": STATUS_FAILURE, "errorMessage": message}

        encoded_html = data.get(HTML_CONTENT_FIELD)
        if encoded_html:
            try:
                data[HTML_CONTENT_FIELD] = decode_html_content(encoded_html)
            except (binascii.Error, UnicodeDecodeError, TypeError) as e:
                logger.warning(f"[iyzico] could not decode {HTML_CONTENT_FIELD}: {e}")
                self.audit_log.write("Base64 Decode Error", {"message": str(e)})

        logger.info(
            f"[iyzico] POST {path} — HTTP {resp.status_code}, status={data.get('status')}, "
            f"errorCode={data.get('errorCode')}"
        )
        self.audit_log.write("Request Result", data)
        return data

    # ──────────────────────────────────────────────────────────────
    # Public operations
    # ──────────────────────────────────────────────────────────────

    async def initialize_payment(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        """Start a 3-D Secure payment; success carries ``threeDSHtmlContent``."""
        return await self._request(INITIALIZE_3DS_PATH, filter_payment(request) or {})

    async def auth_3d(self, payment_id: str, conversation_id: str) -> Dict[str, Any]:
        """Confirm a payment after the issuing bank redirected back."""
        body = filter_auth_request({
            "paymentId": payment_id,
            "conversationId": conversation_id,
        })
        return await self._request(AUTH_3DS_PATH, body)

    async def retrieve_payment(
        self,
        payment_id: str,
        conversation_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        body = filter_retrieve_request({
            "paymentId": payment_id,
            "conversationId": conversation_id,
        })
        return await self._request(PAYMENT_DETAIL_PATH, body)


# Module-level singleton
iyzico_service = IyzicoService()
