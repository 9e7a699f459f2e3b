from __future__ import annotations

import random
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tokenbot.src.config import settings
from tokenbot.src.core.dispatcher import Dispatcher, create_dispatcher
from tokenbot.src.core.locks import LocalAccountLocks
from tokenbot.src.locale.loader import Locale, get_locale
from tokenbot.src.main import app
from tokenbot.src.storage.database import Base, get_db

TEST_BOT_TOKEN = "123456:test-bot-token"  # matches WEBHOOK_URL in test_api_webhook.py


class SequenceTokenGenerator:
    """Deterministic tokens: tok-0001, tok-0002, ..."""

    def __init__(self) -> None:
        self.issued: list[str] = []

    def generate(self) -> str:
        token = f"tok-{len(self.issued) + 1:04d}"
        self.issued.append(token)
        return token


class FixedRandom(random.Random):
    """``randrange`` always returns the same value."""

    def __init__(self, value: int) -> None:
        super().__init__()
        self.value = value

    def randrange(self, *args, **kwargs) -> int:  # type: ignore[override]
        return self.value


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Create a test database engine backed by a per-test SQLite file."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def locale() -> Locale:
    return get_locale("en")


@pytest.fixture
def generator() -> SequenceTokenGenerator:
    return SequenceTokenGenerator()


@pytest.fixture
def registration() -> dict[str, bool]:
    """Mutable registration switch read by the /create command on every attempt."""
    return {"enabled": True}


@pytest.fixture
def dispatcher(locale, session_factory, generator, registration) -> Dispatcher:
    # The egg never fires unless a test swaps in its own rng
    return create_dispatcher(
        locale,
        session_factory,
        LocalAccountLocks(timeout=5.0),
        registration_enabled=lambda: registration["enabled"],
        api_endpoint_url="https://bot.example.com/api/v1/messages",
        generator=generator,
        rng=FixedRandom(1),
    )


@pytest.fixture
def mock_sender() -> AsyncMock:
    sender = AsyncMock()
    sender.send_text = AsyncMock()
    sender.send_easter_egg = AsyncMock()
    return sender


@pytest_asyncio.fixture
async def client(db_session, dispatcher, mock_sender, monkeypatch):
    """Create a test HTTP client with overridden dependencies."""

    async def override_get_db():
        yield db_session

    monkeypatch.setattr(settings, "bot_token", TEST_BOT_TOKEN)
    monkeypatch.setattr(settings, "webhook_secret", None)
    app.dependency_overrides[get_db] = override_get_db
    app.state.dispatcher = dispatcher
    app.state.sender = mock_sender

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()
