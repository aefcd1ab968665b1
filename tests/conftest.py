"""Test configuration and fixtures."""
from typing import Any, AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from loadguard.app_factory import create_app
from loadguard.core.config import Settings
from loadguard.db.session import init_db
from loadguard.deps import get_app_settings, get_broker, get_ledger
from loadguard.services.dispatcher import ControlDispatcher
from loadguard.services.ingestor import TelemetryIngestor
from loadguard.services.ledger import Ledger
from loadguard.services.message_handler import MessageHandler
from loadguard.services.settings_resolver import SettingsResolver


class FakeBroker:
    """In-memory stand-in for the broker connection that records publishes."""

    def __init__(self, connected: bool = True) -> None:
        self.connected = connected
        self.published: list[tuple[str, Any]] = []

    @property
    def is_connected(self) -> bool:
        return self.connected

    @property
    def subscribed(self) -> bool:
        return self.connected

    async def publish(self, topic: str, payload: Any, *, qos: int = 1, retain: bool = False) -> bool:
        if not self.connected:
            return False
        self.published.append((topic, payload))
        return True

    def on(self, topic: str) -> list[Any]:
        return [payload for published_topic, payload in self.published if published_topic == topic]


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest_asyncio.fixture
async def test_db():
    """Create a test database."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db(engine)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def ledger(test_db) -> Ledger:
    return Ledger(test_db)


@pytest.fixture
def broker() -> FakeBroker:
    return FakeBroker()


@pytest.fixture
def dispatcher(ledger: Ledger, broker: FakeBroker, settings: Settings) -> ControlDispatcher:
    return ControlDispatcher(ledger, broker, settings)


@pytest.fixture
def resolver(ledger: Ledger, dispatcher: ControlDispatcher, settings: Settings) -> SettingsResolver:
    return SettingsResolver(ledger, dispatcher, settings.default_max_weight)


@pytest.fixture
def ingestor(
    ledger: Ledger, resolver: SettingsResolver, dispatcher: ControlDispatcher, settings: Settings
) -> TelemetryIngestor:
    return TelemetryIngestor(ledger, resolver, dispatcher, settings.default_device_id)


@pytest.fixture
def handler(settings: Settings, ingestor: TelemetryIngestor) -> MessageHandler:
    return MessageHandler(settings, ingestor)


@pytest_asyncio.fixture
async def client(ledger: Ledger, broker: FakeBroker, settings: Settings) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client wired to the in-memory ledger and fake broker."""
    app = create_app()
    app.dependency_overrides[get_ledger] = lambda: ledger
    app.dependency_overrides[get_broker] = lambda: broker
    app.dependency_overrides[get_app_settings] = lambda: settings

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
