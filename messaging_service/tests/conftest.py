# messaging_service/tests/conftest.py
import pytest
from fakeredis import aioredis
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from messaging_service.api import dependencies
from messaging_service.config import AppConfig
from messaging_service.infrastructure import models
from messaging_service.infrastructure.database import Base, create_database
from messaging_service.infrastructure.security import SecurityService
from messaging_service.main import Application


@pytest.fixture(scope="function")
def app_config():
    """Test configuration with an in-memory SQLite database."""
    return AppConfig(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        REDIS_HOST="localhost",
        REDIS_PORT=6379,
        SECRET_KEY="test_secret_key",
        PROJECT_NAME="Test Messaging API",
        PROJECT_VERSION="1.0.0",
        PROJECT_DESCRIPTION="Test Messaging API",
        API_PREFIX="/api",
        ALGORITHM="HS256",
        ACCESS_TOKEN_EXPIRE_MINUTES=5,
    )


@pytest.fixture(scope="function")
async def mock_redis():
    """Provide a fake Redis client for testing."""
    redis = aioredis.FakeRedis()
    yield redis
    await redis.flushall()
    await redis.aclose()


@pytest.fixture(scope="function")
async def engine(app_config):
    engine = create_async_engine(
        app_config.DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,  # Reuse the same connection
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(engine):
    async_session_factory = async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False
    )
    session = async_session_factory()
    yield session
    await session.close()


@pytest.fixture(scope="function")
def security_service(app_config):
    return SecurityService(app_config)


@pytest.fixture(scope="function")
def override_get_db(db_session):
    """Override the get_session dependency to use the test session."""

    async def _override_get_db():
        yield db_session

    return _override_get_db


@pytest.fixture(scope="function")
async def application(app_config, mock_redis, engine):
    application = Application(config=app_config)
    application.database = create_database(engine)
    application.redis_client.client = mock_redis
    return application


@pytest.fixture(scope="function")
async def app(application, override_get_db):
    app_instance = application.create_app()
    app_instance.dependency_overrides[dependencies.get_session] = override_get_db
    yield app_instance
    app_instance.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def _create_profile(db_session, display_name: str) -> models.Profile:
    profile = models.Profile(
        id=models.generate_id(),
        full_name=f"{display_name} Fullname",
        display_name=display_name,
        avatar_url=f"https://cdn.example.com/{display_name}.png",
    )
    db_session.add(profile)
    await db_session.commit()
    return profile


@pytest.fixture(scope="function")
async def test_user(db_session):
    return await _create_profile(db_session, "dj_alpha")


@pytest.fixture(scope="function")
async def test_user2(db_session):
    return await _create_profile(db_session, "dj_bravo")


@pytest.fixture(scope="function")
async def test_user3(db_session):
    return await _create_profile(db_session, "dj_charlie")


def _bearer(security_service, user) -> dict:
    access_token, _ = security_service.create_access_token(user.id)
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture(scope="function")
def auth_header(security_service, test_user):
    return _bearer(security_service, test_user)


@pytest.fixture(scope="function")
def auth_header2(security_service, test_user2):
    return _bearer(security_service, test_user2)


@pytest.fixture(scope="function")
def auth_header3(security_service, test_user3):
    return _bearer(security_service, test_user3)


@pytest.fixture(scope="function")
async def test_conversation(client, auth_header, test_user2):
    """A direct conversation between test_user (admin) and test_user2."""
    response = await client.post(
        "/api/conversations",
        headers=auth_header,
        json={"participantIds": [test_user2.id]},
    )
    assert response.status_code == 201, response.json()
    return response.json()["data"]


@pytest.fixture(scope="function")
async def test_group(client, auth_header, test_user2, test_user3):
    response = await client.post(
        "/api/conversations",
        headers=auth_header,
        json={
            "participantIds": [test_user2.id, test_user3.id],
            "name": "Warehouse Crew",
            "isGroup": True,
        },
    )
    assert response.status_code == 201, response.json()
    return response.json()["data"]
