"""
Session token verification and national identity number checks.

Session tokens are issued by the auth service; this module only verifies
them. The token is an HS256 JWT carrying the user id in ``userId``.
"""

import logging
from typing import Optional

import jwt
from pydantic import BaseModel

from app.core.config import settings

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "token"
JWT_ALGORITHM = "HS256"


class CurrentUser(BaseModel):
    user_id: str
    email: Optional[str] = None


def decode_session_token(token: str) -> Optional[CurrentUser]:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError as e:
        logger.info(f"[auth] rejected session token: {e}")
        return None

    user_id = payload.get("userId") or payload.get("sub")
    if not user_id:
        return None
    return CurrentUser(user_id=str(user_id), email=payload.get("email"))


def validate_identity_number(value: Optional[str]) -> tuple[bool, Optional[str]]:
    """
    Check a Turkish national identity (T.C. Kimlik) number.

    Eleven digits, first digit non-zero. The tenth digit is
    ``(7 * sum(odd positions 1..9) - sum(even positions 2..8)) mod 10`` and
    the eleventh is the sum of the first ten digits mod 10.
    """
    if not value:
        return False, "TC Kimlik numarası gereklidir"

    value = value.strip()
    if len(value) != 11 or not value.isdigit():
        return False, "TC Kimlik numarası 11 haneli olmalıdır"
    if value[0] == "0":
        return False, "TC Kimlik numarası 0 ile başlayamaz"

    digits = [int(c) for c in value]
    odd_sum = sum(digits[0:9:2])
    even_sum = sum(digits[1:8:2])
    if (odd_sum * 7 - even_sum) % 10 != digits[9]:
        return False, "Geçersiz TC Kimlik numarası"
    if sum(digits[:10]) % 10 != digits[10]:
        return False, "Geçersiz TC Kimlik numarası"

    return True, None
