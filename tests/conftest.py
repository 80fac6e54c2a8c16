"""Pytest fixtures for the payment service tests."""

import asyncio
import os
import tempfile

# Settings are read at import time, so the environment must be in place
# before anything from ``app`` is imported.
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-session-secret")
os.environ.setdefault("IYZICO_API_KEY", "sandbox-api-key-123456")
os.environ.setdefault("IYZICO_SECRET_KEY", "sandbox-secret-key-abcdef")
os.environ.setdefault("IYZICO_BASE_URL", "https://sandbox-api.iyzipay.com")
os.environ.setdefault("FRONTEND_URL", "http://localhost:3001")
os.environ.setdefault("BACKEND_URL", "http://localhost:3002")
os.environ.setdefault(
    "IYZICO_AUDIT_LOG_PATH",
    os.path.join(tempfile.gettempdir(), "iyzico_manual_test.log"),
)

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.config import settings
from app.core.dependencies import get_iyzico_service, get_unit_of_work
from app.core.unit_of_work import UnitOfWork
from app.models import Base, Order, Product, User

VALID_IDENTITY_NUMBER = "10000000146"


def run(coro):
    return asyncio.run(coro)


def make_token(user_id: str) -> str:
    return jwt.encode({"userId": user_id}, settings.SECRET_KEY, algorithm="HS256")


class FakeIyzico:
    """Stands in for IyzicoService; records calls and replays canned results."""

    def __init__(self):
        self.initialize_result = {
            "status": "success",
            "threeDSHtmlContent": "<html>bank</html>",
        }
        self.auth_result = {"status": "success", "paymentId": "pay_1"}
        self.retrieve_result = {"status": "success", "paymentStatus": "SUCCESS"}
        self.initialize_calls = []
        self.auth_calls = []
        self.retrieve_calls = []
        self.before_auth = None

    async def initialize_payment(self, request):
        self.initialize_calls.append(request)
        if isinstance(self.initialize_result, Exception):
            raise self.initialize_result
        return dict(self.initialize_result)

    async def auth_3d(self, payment_id, conversation_id):
        self.auth_calls.append((payment_id, conversation_id))
        if self.before_auth is not None:
            await self.before_auth()
        return dict(self.auth_result)

    async def retrieve_payment(self, payment_id, conversation_id=None):
        self.retrieve_calls.append((payment_id, conversation_id))
        return dict(self.retrieve_result)


@pytest.fixture
def session_factory(tmp_path):
    """Session factory bound to a fresh SQLite file with all tables created."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'payments.db'}",
        poolclass=NullPool,
    )

    async def create_all():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    run(create_all())
    yield async_sessionmaker(engine, expire_on_commit=False)
    run(engine.dispose())


@pytest.fixture
def seed(session_factory):
    def _seed(*objects):
        async def _add():
            async with session_factory() as session:
                session.add_all(objects)
                await session.commit()

        run(_add())
        return objects

    return _seed


@pytest.fixture
def fetch(session_factory):
    """Load one row by primary key in a fresh session."""

    def _fetch(model, id):
        async def _get():
            async with session_factory() as session:
                return await session.get(model, id)

        return run(_get())

    return _fetch


@pytest.fixture
def count_orders(session_factory):
    def _count():
        async def _run():
            from sqlalchemy import func, select

            async with session_factory() as session:
                return (await session.execute(select(func.count()).select_from(Order))).scalar_one()

        return run(_run())

    return _count


@pytest.fixture
def fake_iyzico():
    return FakeIyzico()


@pytest.fixture
def client(session_factory, fake_iyzico):
    from app.main import app

    async def override_uow():
        async with session_factory() as session:
            yield UnitOfWork(session)

    app.dependency_overrides[get_unit_of_work] = override_uow
    app.dependency_overrides[get_iyzico_service] = lambda: fake_iyzico
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def user(seed):
    (u,) = seed(User(id="usr_1", email="ayse@example.com"))
    return u


@pytest.fixture
def auth_headers(user):
    return {"Authorization": f"Bearer {make_token(user.id)}"}


@pytest.fixture
def tshirt(seed):
    (p,) = seed(Product(id="prod_tshirt", name="Basic Tişört", price=150.0, stock=5))
    return p


@pytest.fixture
def dress(seed):
    (p,) = seed(
        Product(
            id="prod_dress",
            name="Yazlık Elbise",
            price=499.9,
            stock=0,
            color_size_stock={
                "Kırmızı": {"S": 2, "M": 1},
                "Mavi": {"S": 4, "M": 0},
            },
        )
    )
    return p
