"""Pytest configuration and shared fixtures."""
import os

# Antes de importar módulos de la app: sin Redis real para rate limiting
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT_STORAGE_URI", "memory://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from shared.auth.jwt_handler import create_user_token
from shared.cache.ticket_store import get_ticket_store
from shared.database.connection import Base
from shared.database.session import get_db
import shared.database.models  # noqa: F401
from services.tickets.services.driver_identity import build_driver_resolver
from services.tickets.services.ticket_issuer import TicketIssuer
from services.tickets.services.ticket_verifier import TicketVerifier
from tests.fakes import (
    FakeClock,
    InMemoryAuditLog,
    InMemoryPassengerDirectory,
    InMemoryTicketStore,
    InMemoryUserDirectory,
)

DEFAULT_DRIVER = "driver_default"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> InMemoryTicketStore:
    return InMemoryTicketStore(clock)


@pytest.fixture
def audit_log() -> InMemoryAuditLog:
    return InMemoryAuditLog()


@pytest.fixture
def users() -> InMemoryUserDirectory:
    return InMemoryUserDirectory()


@pytest.fixture
def passengers() -> InMemoryPassengerDirectory:
    return InMemoryPassengerDirectory()


@pytest.fixture
def issuer(store, clock) -> TicketIssuer:
    return TicketIssuer(store, ttl_seconds=180, clock=clock)


@pytest.fixture
def make_verifier(store, audit_log, users, passengers, clock):
    def factory(allow_reuse: bool = False, dedup_seconds: int = 3, ttl_seconds: int = 180) -> TicketVerifier:
        return TicketVerifier(
            store=store,
            audit_log=audit_log,
            identity=build_driver_resolver(users, DEFAULT_DRIVER),
            passengers=passengers,
            ticket_ttl_seconds=ttl_seconds,
            dedup_seconds=dedup_seconds,
            allow_reuse=allow_reuse,
            clock=clock,
        )
    return factory


@pytest.fixture
def verifier(make_verifier) -> TicketVerifier:
    return make_verifier()


# ==================== DATABASE ====================

@pytest.fixture
async def session_maker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


# ==================== API ====================

@pytest.fixture
async def api_client(store, session_maker):
    from main import app

    async def override_get_db():
        async with session_maker() as session:
            yield session

    async def override_get_ticket_store():
        return store

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_ticket_store] = override_get_ticket_store

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client

    app.dependency_overrides.clear()


def auth_header(user_id: str, role: str = "PASSENGER", openid: str = None) -> dict:
    token = create_user_token(user_id, role, openid or f"{role.lower()}_{user_id}")
    return {"Authorization": f"Bearer {token}"}
