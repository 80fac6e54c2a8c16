from fastapi import APIRouter

from app.api.v1.endpoints import payment

api_router = APIRouter()

# Full paths: /api/v1/payment/initialize, /api/v1/payment/callback, ...
api_router.include_router(payment.router, prefix="/payment", tags=["payment"])
