from collections.abc import AsyncGenerator

from fastapi import Depends, Request

from app.core.database import async_session_maker
from app.core.exceptions import UnauthorizedError
from app.core.security import SESSION_COOKIE_NAME, CurrentUser, decode_session_token
from app.core.unit_of_work import UnitOfWork
from app.services.iyzico_service import IyzicoService, iyzico_service


async def get_unit_of_work() -> AsyncGenerator[UnitOfWork, None]:
    async with async_session_maker() as session:
        uow = UnitOfWork(session)
        try:
            yield uow
        except Exception:
            await uow.rollback()
            raise


def get_iyzico_service() -> IyzicoService:
    return iyzico_service


async def get_current_user(request: Request) -> CurrentUser | None:
    token = None
    auth_header = request.headers.get("authorization", "")
    if auth_header.lower().startswith("bearer "):
        token = auth_header[7:].strip()
    if not token:
        token = request.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        return None
    return decode_session_token(token)


async def require_current_user(
    user: CurrentUser | None = Depends(get_current_user),
) -> CurrentUser:
    if user is None:
        raise UnauthorizedError()
    return user
