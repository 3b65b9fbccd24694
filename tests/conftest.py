from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from itertools import count

import pytest
from httpx import ASGITransport, AsyncClient

from jobflow.config.settings import Settings
from jobflow.main import create_app
from jobflow.v1.core.container import ServiceContainer, build_services
from jobflow.v1.scheduling.triggers import BulkOperations


class FakeClock:
    """Controllable clock injected wherever code asks for the current time."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 14, 12, 0, 0, tzinfo=UTC))


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite:///:memory:",
        environment="test",
        debug=False,
    )


@pytest.fixture
def nonces():
    """Deterministic refund nonces: "1", "2", "3", ..."""
    counter = count(1)
    return lambda: str(next(counter))


@pytest.fixture
def operations() -> BulkOperations:
    return BulkOperations()


@pytest.fixture
async def services(
    test_settings: Settings, clock: FakeClock, nonces, operations: BulkOperations
) -> AsyncGenerator[ServiceContainer, None]:
    """An isolated service graph over a fresh in-memory database."""
    container = build_services(
        test_settings, clock=clock, operations=operations, nonce_factory=nonces
    )
    await container.database.create_all()
    yield container
    await container.close()


@pytest.fixture
def queue(services: ServiceContainer):
    return services.queue


@pytest.fixture
def sessions(services: ServiceContainer):
    return services.database.SessionLocal


@pytest.fixture
def app(services: ServiceContainer):
    return create_app(services=services)


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
