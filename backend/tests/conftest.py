from __future__ import annotations
import os

os.environ["ENVIRONMENT"] = "test"
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
import httpx
import jwt
import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from lifekit.config import settings
from lifekit.db import Base, get_session
from lifekit.main import app
from lifekit.models.booking import Booking, Service
from lifekit.models.wallet import Wallet
from lifekit.security import JWT_ALG, AuthContext
from lifekit.services import wallet as wallet_service
import lifekit.models.ledger  # noqa: F401
import lifekit.models.notification  # noqa: F401
import lifekit.models.review  # noqa: F401
import lifekit.models.message  # noqa: F401


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; take it over
    @event.listens_for(eng.sync_engine, "connect")
    def _on_connect(dbapi_connection, _record):
        dbapi_connection.isolation_level = None

    @event.listens_for(eng.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def sessionmaker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(sessionmaker):
    async with sessionmaker() as s:
        yield s


@pytest_asyncio.fixture
async def client(sessionmaker):
    async def _override() -> AsyncSession:
        async with sessionmaker() as s:
            yield s

    app.dependency_overrides[get_session] = _override
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def make_token(user_id: uuid.UUID, email: str | None = None, **claims) -> str:
    payload = {
        "sub": str(user_id),
        "aud": settings.auth_jwt_audience,
        "exp": datetime.now(timezone.utc) + timedelta(hours=1),
        "email": email or f"user-{user_id.hex[:8]}@ex.com",
        "email_confirmed_at": datetime.now(timezone.utc).isoformat(),
        **claims,
    }
    return jwt.encode(payload, settings.auth_jwt_secret, algorithm=JWT_ALG)


def auth_headers(user_id: uuid.UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


def caller(user_id: uuid.UUID) -> AuthContext:
    return AuthContext(user_id=user_id, email=f"user-{user_id.hex[:8]}@ex.com", email_verified=True)


async def add_service(
    session: AsyncSession,
    provider_id: uuid.UUID,
    *,
    price: str = "50.00",
    pricing_type: str = "fixed",
    status: str = "active",
    title: str = "Deep house cleaning",
) -> Service:
    svc = Service(provider_id=provider_id, title=title, price=Decimal(price), pricing_type=pricing_type, status=status)
    session.add(svc)
    await session.commit()
    return svc


async def fund(session: AsyncSession, owner_id: uuid.UUID, amount: str) -> Wallet:
    """Deposit through the ledger so the balance matches the transaction log."""
    w = await wallet_service.get_or_create_wallet(session, owner_id)
    await wallet_service.credit(session, w.id, Decimal(amount), kind="deposit", description="test deposit")
    await session.commit()
    return w


async def add_booking(session: AsyncSession, service: Service, client_id: uuid.UUID, *, status: str = "completed",
                      scheduled_time: datetime | None = None, duration_hours: int | None = None) -> Booking:
    """Bare booking row with no money attached, for read-side tests."""
    b = Booking(
        client_id=client_id,
        provider_id=service.provider_id,
        service_id=service.id,
        scheduled_time=scheduled_time or datetime(2024, 6, 1, 14, 0, tzinfo=timezone.utc),
        duration_hours=duration_hours,
        total_price=Decimal("0.00"),
        status=status,
        client_confirmed=status == "completed",
        provider_confirmed=status == "completed",
    )
    session.add(b)
    await session.commit()
    return b


async def balance_of(sessionmaker, owner_id: uuid.UUID) -> Decimal:
    # fresh short-lived session: the app shares the single in-memory connection
    async with sessionmaker() as s:
        return await wallet_service.get_balance(s, owner_id)


@pytest.fixture
def users():
    return {"client": uuid.uuid4(), "provider": uuid.uuid4(), "stranger": uuid.uuid4()}
