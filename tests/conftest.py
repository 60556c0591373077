from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from seatledger.services.auth import create_access_token
from seatledger.services.registry import LedgerRegistry


class FakeClock:
    def __init__(self, start: datetime = None):
        self.now = start or datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    return LedgerRegistry(hold_ttl_seconds=300, max_seats=5, clock=clock)


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'seatledger-test.db'}"


@pytest.fixture
def client(db_url, clock, monkeypatch):
    from seatledger import main
    from seatledger.db.session import create_schema, get_session

    engine = create_async_engine(db_url, poolclass=NullPool)
    session_factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    async def _get_session():
        async with session_factory() as session:
            yield session

    monkeypatch.setattr(main, "create_schema", lambda: create_schema(engine))
    main.app.dependency_overrides[get_session] = _get_session
    with TestClient(main.app) as test_client:
        test_client.app.state.ledger_registry.clock = clock
        yield test_client
    main.app.dependency_overrides.clear()


def auth_headers(owner_id: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(owner_id)}"}


@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
def alice():
    return auth_headers("alice")


@pytest.fixture
def bob():
    return auth_headers("bob")
