import pytest
from unittest.mock import Mock
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel, Session, create_engine
import os
import sys
from typing import Generator

# Add the parent directory to the path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from main import app
from core import database
from core import models  # noqa: F401
from core.auth import CredentialSigner, PasswordManager
from core.config import AuthSettings
from services.auth_gate import AuthGate
from services.relationship_graph import RelationshipGraphEngine
from services.session_authority import SessionAuthority
from services.user_directory import UserDirectory

ACCESS_SECRET = "test-access-secret"
REFRESH_SECRET = "test-refresh-secret"


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("ACCESS_TOKEN_SECRET", ACCESS_SECRET)
    monkeypatch.setenv("REFRESH_TOKEN_SECRET", REFRESH_SECRET)
    monkeypatch.setenv("ACCESS_TOKEN_EXPIRY", "15m")
    monkeypatch.setenv("REFRESH_TOKEN_EXPIRY", "10d")
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")


@pytest.fixture
def auth_settings() -> AuthSettings:
    return AuthSettings(
        access_token_secret=ACCESS_SECRET,
        refresh_token_secret=REFRESH_SECRET,
        bcrypt_rounds=4,
    )


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
async def session_factory(database_url):
    """Async session factory bound to a fresh SQLite file with all tables."""
    engine = create_async_engine(database_url)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def signer(auth_settings) -> CredentialSigner:
    return CredentialSigner(auth_settings)


@pytest.fixture
def directory(session_factory) -> UserDirectory:
    return UserDirectory(session_factory, timeout=5.0)


@pytest.fixture
def authority(directory, signer, auth_settings) -> SessionAuthority:
    return SessionAuthority(
        directory, signer, PasswordManager(rounds=auth_settings.bcrypt_rounds)
    )


@pytest.fixture
def gate(signer, directory) -> AuthGate:
    return AuthGate(signer, directory)


@pytest.fixture
def graph(session_factory) -> RelationshipGraphEngine:
    return RelationshipGraphEngine(session_factory, timeout=5.0)


@pytest.fixture
def add_rows(session_factory):
    """Insert rows that belong to other subsystems (videos, subscriptions)."""

    async def _add(*rows):
        async with session_factory() as session:
            async with session.begin():
                session.add_all(rows)
        return rows

    return _add


@pytest.fixture
def test_client(database_url) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app backed by a fresh database."""
    database.init_database(database_url)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def seed(database_url):
    """Synchronous writer for API tests; runs outside the app's event loop."""
    engine = create_engine(database_url.replace("sqlite+aiosqlite", "sqlite"))

    def _seed(*rows):
        with Session(engine) as session:
            for row in rows:
                session.add(row)
            session.commit()
            for row in rows:
                session.refresh(row)
        return rows

    yield _seed
    engine.dispose()


@pytest.fixture
def sample_registration():
    """Sample registration payload for testing."""
    return {
        "full_name": "Alice Doe",
        "email": "alice@x.com",
        "username": "alice",
        "password": "pw123",
        "avatar": "https://cdn.example.com/avatars/alice.png",
    }


@pytest.fixture
def mock_logger():
    """Create a mock logger for testing."""
    logger = Mock()
    logger.info = Mock()
    logger.error = Mock()
    logger.warning = Mock()
    logger.debug = Mock()
    return logger
