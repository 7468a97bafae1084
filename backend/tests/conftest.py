"""
Pytest-Konfiguration mit In-Memory SQLite fuer die Benutzertabelle,
temporaerer aiosqlite-Datei fuer Nachrichten und frischem
Presence-Tracker/Delivery-Router pro Test.
"""
import os

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from relaychat.database import get_db
from relaychat.main import app
from relaychat.models.base import Base
from relaychat.services.message_store import init_message_db
from relaychat.websocket.handlers import init_realtime

# In-memory SQLite fuer die Benutzer im Test
TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    session_maker = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_maker() as session:
        yield session


@pytest.fixture
def message_db_path(tmp_path, monkeypatch):
    path = str(tmp_path / "messages.db")
    monkeypatch.setattr("relaychat.config.settings.message_db_path", path)
    return path


@pytest_asyncio.fixture
async def message_db(message_db_path):
    await init_message_db()
    return message_db_path


@pytest.fixture
def tmp_upload_dir(tmp_path, monkeypatch):
    upload_dir = str(tmp_path / "uploads")
    os.makedirs(upload_dir, exist_ok=True)
    monkeypatch.setattr("relaychat.config.settings.upload_dir", upload_dir)
    return upload_dir


@pytest_asyncio.fixture
async def client(db_engine, message_db):
    """AsyncClient der FastAPI-App mit ueberschriebener DB-Dependency."""
    session_maker = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False
    )

    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    init_realtime(app)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


class FakeConnection:
    """Zeichnet gesendete Frames auf statt einen Socket zu bedienen."""

    def __init__(self, name: str = "conn", broken: bool = False):
        self.name = name
        self.broken = broken
        self.frames: list[tuple[str, object]] = []

    async def send(self, event: str, data) -> None:
        if self.broken:
            raise RuntimeError("socket closed")
        self.frames.append((event, data))

    def events(self, event: str) -> list:
        return [data for name, data in self.frames if name == event]

    def __repr__(self) -> str:
        return f"<FakeConnection {self.name}>"


async def register_user(
    client: AsyncClient,
    username: str = "testuser",
    password: str = "Test1234!",
) -> dict:
    """Hilfsfunktion: Registriert und meldet einen Benutzer an, gibt das Login-Dict zurueck."""
    resp = await client.post(
        "/api/users/register",
        json={"username": username, "password": password},
    )
    assert resp.status_code == 200, f"Register fehlgeschlagen: {resp.text}"
    resp = await client.post(
        "/api/users/login",
        json={"username": username, "password": password},
    )
    assert resp.status_code == 200, f"Login fehlgeschlagen: {resp.text}"
    return resp.json()


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
