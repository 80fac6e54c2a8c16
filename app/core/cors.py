import logging

from fastapi import Request

from app.core.config import settings

logger = logging.getLogger(__name__)

FALLBACK_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Allow-Credentials": "true",
}


def get_cors_headers(request: Request) -> dict[str, str]:
    origins = settings.cors_origins_list
    origin = request.headers.get("origin")

    if "*" in origins:
        allow_origin = origin or "*"
    elif origin in origins:
        allow_origin = origin
    else:
        allow_origin = origins[0]

    headers = {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Methods": FALLBACK_CORS_HEADERS["Access-Control-Allow-Methods"],
        "Access-Control-Allow-Headers": FALLBACK_CORS_HEADERS["Access-Control-Allow-Headers"],
    }
    if settings.CORS_CREDENTIALS:
        headers["Access-Control-Allow-Credentials"] = "true"
    return headers


def safe_cors_headers(request: Request) -> dict[str, str]:
    """CORS headers for error responses; never raises."""
    try:
        return get_cors_headers(request)
    except Exception as e:
        logger.error(f"CORS header generation failed: {e}")
        return dict(FALLBACK_CORS_HEADERS)
