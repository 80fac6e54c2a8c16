"""
Payment Routes — iyzico 3-D Secure.

Endpoints:
  POST /api/v1/payment/initialize           — Start a 3-D Secure card payment
  POST /api/v1/payment/callback             — iyzico browser callback (303 redirect)
  GET  /api/v1/payment/{order_id}/detail    — Gateway payment detail for an order
"""

import logging
import traceback
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse

from app.core.config import settings
from app.core.cors import safe_cors_headers
from app.core.dependencies import get_iyzico_service, get_unit_of_work, require_current_user
from app.core.exceptions import AppException
from app.core.security import CurrentUser
from app.core.unit_of_work import UnitOfWork
from app.schemas.payment import (
    ErrorResponse,
    InitializePaymentRequest,
    InitializePaymentResponse,
    PaymentDetailResponse,
)
from app.services.callback_service import PaymentCallbackService, system_error_url
from app.services.iyzico_service import IyzicoService
from app.services.payment_service import PaymentService, resolve_client_ip

logger = logging.getLogger(__name__)

router = APIRouter()

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")
INTERNAL_ERROR_MESSAGE = "Ödeme işlemi başlatılamadı"


def _internal_error_response(request: Request, error: Exception) -> JSONResponse:
    content: Dict[str, Any] = {"error": INTERNAL_ERROR_MESSAGE}
    if not settings.is_production:
        content["error"] = str(error) or INTERNAL_ERROR_MESSAGE
        content["details"] = traceback.format_exc()
    return JSONResponse(
        status_code=500,
        content=content,
        headers=safe_cors_headers(request),
    )


@router.post(
    "/initialize",
    response_model=InitializePaymentResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    summary="Initialize a 3-D Secure payment",
)
async def initialize_payment(
    body: InitializePaymentRequest,
    request: Request,
    user: CurrentUser = Depends(require_current_user),
    uow: UnitOfWork = Depends(get_unit_of_work),
    iyzico: IyzicoService = Depends(get_iyzico_service),
):
    """
    POST /api/v1/payment/initialize

    Checks stock, creates a pending order and returns the bank's 3-D Secure
    page (``threeDSHtmlContent``) for the storefront to render.
    """
    logger.info(f"[payment] initialize requested — user={user.user_id}, lines={len(body.items)}")
    service = PaymentService(uow, iyzico)
    client_ip = resolve_client_ip(request.headers.get("x-forwarded-for"))

    try:
        return await service.initialize_payment(user, body, client_ip=client_ip)
    except AppException:
        raise
    except Exception as e:
        logger.exception(f"[payment] initialize failed: {e}")
        await uow.rollback()
        return _internal_error_response(request, e)


async def _read_callback_payload(request: Request) -> Dict[str, Any]:
    # iyzico posts form data; JSON is accepted for manual replays
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        return {key: value for key, value in form.items()}

    payload = await request.json()
    if not isinstance(payload, dict):
        raise ValueError("Callback body must be a JSON object")
    return payload


@router.post(
    "/callback",
    summary="iyzico 3-D Secure callback",
)
async def payment_callback(
    request: Request,
    uow: UnitOfWork = Depends(get_unit_of_work),
    iyzico: IyzicoService = Depends(get_iyzico_service),
):
    """
    POST /api/v1/payment/callback

    Confirms the payment with iyzico, updates the order and stock, then
    redirects the browser to the storefront.
    """
    try:
        payload = await _read_callback_payload(request)
        service = PaymentCallbackService(uow, iyzico)
        target = await service.handle_callback(payload)
        return RedirectResponse(target, status_code=303)
    except Exception as e:
        logger.exception(f"[callback] processing failed: {e}")
        await uow.rollback()
        return RedirectResponse(
            system_error_url(),
            status_code=303,
            headers=safe_cors_headers(request),
        )


@router.get(
    "/{order_id}/detail",
    response_model=PaymentDetailResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Retrieve gateway payment detail for an order",
)
async def get_payment_detail(
    order_id: str,
    user: CurrentUser = Depends(require_current_user),
    uow: UnitOfWork = Depends(get_unit_of_work),
    iyzico: IyzicoService = Depends(get_iyzico_service),
):
    service = PaymentService(uow, iyzico)
    return await service.get_payment_detail(user, order_id)
