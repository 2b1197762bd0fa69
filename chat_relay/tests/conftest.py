# chat_relay/tests/conftest.py

import logging
import random
import string

import pytest
from fakeredis import aioredis
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chat_relay.config import AppConfig
from chat_relay.gateways.group_gateway import GroupGateway
from chat_relay.gateways.user_gateway import UserGateway
from chat_relay.infrastructure import schemas
from chat_relay.infrastructure.change_feed import InMemoryChangeFeed
from chat_relay.infrastructure.database import Base, create_database, create_engine
from chat_relay.infrastructure.event_dispatcher import EventDispatcher
from chat_relay.infrastructure.event_handlers import EventHandlers
from chat_relay.infrastructure.uow import UnitOfWork
from chat_relay.interactors.factory import InteractorFactory
from chat_relay.main import Application
from chat_relay.realtime.session import ChatSession


def random_name(prefix: str) -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=8))
    return f"{prefix}_{suffix}"


@pytest.fixture(scope="function")
def app_config(tmp_path):
    """
    Test configuration: a throwaway SQLite file and the in-process feed.
    """
    return AppConfig(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'chat_relay.db'}",
        FEED_BACKEND="memory",
        PROJECT_NAME="Test Chat Relay",
        PROJECT_VERSION="1.0.0",
        PROJECT_DESCRIPTION="Test Chat Relay",
        API_V1_STR="/api/v1",
        LOG_LEVEL="DEBUG",
        SEEN_MESSAGE_WINDOW=100,
    )


@pytest.fixture(scope="function")
def logger():
    return logging.getLogger("ChatRelay.tests")


@pytest.fixture(scope="function")
async def mock_redis():
    """Provide a fake Redis client for testing."""
    redis = aioredis.FakeRedis(decode_responses=True)
    yield redis
    await redis.flushall()
    await redis.aclose()


@pytest.fixture(scope="function")
async def engine(app_config):
    """Create a SQLAlchemy engine with the schema in place."""
    engine = create_engine(app_config.DATABASE_URL)
    async with engine.begin() as conn:
        from chat_relay.infrastructure import models  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(engine):
    """Provide a SQLAlchemy session for testing."""
    async_session_factory = async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False
    )
    session = async_session_factory()
    yield session
    await session.close()


@pytest.fixture(scope="function")
async def uow(db_session):
    """Provide a UnitOfWork bound to the test session."""
    return UnitOfWork(db_session)


@pytest.fixture(scope="function")
def database(engine):
    return create_database(engine)


@pytest.fixture(scope="function")
async def change_feed(logger):
    feed = InMemoryChangeFeed(logger)
    yield feed
    await feed.disconnect()


@pytest.fixture(scope="function")
def event_dispatcher(change_feed, logger):
    dispatcher = EventDispatcher(logger)
    EventHandlers(change_feed).register_all(dispatcher)
    return dispatcher


@pytest.fixture(scope="function")
def interactors(database, event_dispatcher, logger):
    return InteractorFactory(database, event_dispatcher, logger)


@pytest.fixture(scope="function")
async def make_session(interactors, change_feed, app_config, logger):
    """Factory for logged in chat sessions, logged out again on teardown."""
    sessions: list[ChatSession] = []

    async def _make_session(username: str) -> ChatSession:
        session = ChatSession(interactors, change_feed, app_config, logger)
        await session.login(username)
        sessions.append(session)
        return session

    yield _make_session
    for session in sessions:
        await session.logout()


@pytest.fixture(scope="function")
async def test_user(db_session, uow):
    """Create a test user in the database."""
    user_gateway = UserGateway(db_session, uow)
    return await user_gateway.create_user(random_name("testuser"))


@pytest.fixture(scope="function")
async def test_user2(db_session, uow):
    """Create a second test user in the database."""
    user_gateway = UserGateway(db_session, uow)
    return await user_gateway.create_user(random_name("testuser2"))


@pytest.fixture(scope="function")
async def test_group(db_session, uow, test_user):
    """Create a group the first test user belongs to."""
    group_gateway = GroupGateway(db_session, uow)
    return await group_gateway.create_group(
        schemas.GroupCreate(name=random_name("group")), test_user.id
    )


@pytest.fixture(scope="function")
async def app(app_config, engine):
    """Create the FastAPI app with the test database."""
    application = Application(config=app_config)
    application.database = create_database(engine)
    return application.create_app()


@pytest.fixture(scope="function")
async def client(app):
    """Provide an HTTP client with the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac


@pytest.fixture(scope="function")
async def login(client):
    """Log a username in over HTTP and return (user json, identity header)."""

    async def _login(username: str | None = None):
        response = await client.post(
            "/api/v1/users/login", json={"username": username or random_name("user")}
        )
        assert response.status_code == 200, f"Login failed: {response.json()}"
        user = response.json()
        return user, {"X-User-Id": user["id"]}

    return _login
