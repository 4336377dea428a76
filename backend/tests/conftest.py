"""Shared fixtures: in-memory database, owners and an HTTP client."""

import os
import uuid

os.environ.setdefault("SUPABASE_JWT_SECRET", "test-secret")
os.environ["RATE_LIMIT_ENABLED"] = "false"

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from inventory_tracker import models  # noqa: F401
from inventory_tracker.core.config import settings
from inventory_tracker.core.deps import get_current_user
from inventory_tracker.db.base import Base, get_db
from inventory_tracker.main import create_app
from inventory_tracker.schemas.auth import CurrentUser
from inventory_tracker.services.storage import StorageClient, get_storage

STORAGE_URL = "https://project.supabase.test"


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Let SQLAlchemy emit BEGIN itself so SAVEPOINTs work on SQLite
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db(engine):
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def user() -> CurrentUser:
    return CurrentUser(id=uuid.uuid4(), email="owner@example.com", role="authenticated", token="user-token")


@pytest.fixture
def other_user() -> CurrentUser:
    return CurrentUser(id=uuid.uuid4(), email="other@example.com", role="authenticated", token="other-token")


class StorageRecorder:
    """Records requests made against the storage API and answers them."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.fail_with: int | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with:
            return httpx.Response(self.fail_with, json={"error": "failed"})
        return httpx.Response(200, json={"Key": request.url.path})


@pytest.fixture
def storage_recorder() -> StorageRecorder:
    return StorageRecorder()


@pytest.fixture
def storage(storage_recorder) -> StorageClient:
    return StorageClient(
        base_url=STORAGE_URL,
        api_key="anon-key",
        bucket=settings.STORAGE_BUCKET,
        transport=httpx.MockTransport(storage_recorder),
    )


@pytest_asyncio.fixture
async def client(db, user, storage):
    app = create_app()

    async def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_current_user] = lambda: user
    app.dependency_overrides[get_storage] = lambda: storage

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
