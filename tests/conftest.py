"""
Shared test fixtures for the catering storefront test suite.

Async throughout (aiosqlite + AsyncSession); object storage is replaced by
an in-memory fake.
"""

import os
import sys
from typing import AsyncGenerator

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from catering.api.deps import get_db
from catering.core.security import create_admin_token, get_password_hash
from catering.db.base import Base
from catering.db.session import json_serializer
from catering.main import app
from catering.models.user import ROLE_ADMIN, ROLE_USER, User
from catering.services.storage import StorageError, UploadResult, get_storage, read_image

# A separate test engine; one in-memory database shared through StaticPool
test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    json_serializer=json_serializer,
)

TestingSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def setup_db():
    """Create all tables before usage and drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestingSessionLocal() as session:
        yield session


app.dependency_overrides[get_db] = _override_get_db
# The page gate opens its own sessions; point it at the test database too.
app.state.session_factory = TestingSessionLocal


# ── Object storage ──────────────────────────────────────────────────
class FakeStorage:
    """In-memory stand-in for the Supabase bucket client."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.fail_upload = False
        self.fail_delete = False

    async def upload_image(self, upload, folder: str) -> UploadResult:
        data = await read_image(upload)
        if self.fail_upload:
            raise StorageError("Upload failed: simulated outage")
        key = f"{folder}/{len(self.objects) + len(self.deleted) + 1}-{upload.filename}"
        self.objects[key] = data
        return UploadResult(url=f"https://cdn.test/{key}", key=key)

    async def delete(self, key: str) -> None:
        if self.fail_delete:
            raise StorageError("Delete failed: simulated outage")
        self.objects.pop(key, None)
        self.deleted.append(key)


@pytest.fixture(autouse=True)
def storage() -> FakeStorage:
    fake = FakeStorage()
    app.dependency_overrides[get_storage] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_storage, None)


# ── Clients & sessions ──────────────────────────────────────────────
@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with TestingSessionLocal() as session:
        yield session


# ── Auth helpers ────────────────────────────────────────────────────
@pytest.fixture
def admin_headers() -> dict[str, str]:
    token = create_admin_token("admin-test-id", "admin@test.local", "Test Admin")
    return {"Authorization": f"Bearer {token}"}


async def _make_user(db: AsyncSession, email: str, password: str, role: str) -> User:
    user = User(email=email, hashed_password=get_password_hash(password), name="Tester", role=role)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "boss@test.local", "secret123", ROLE_ADMIN)


@pytest.fixture
async def regular_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "guest@test.local", "secret123", ROLE_USER)


# ── Catalogue helpers ───────────────────────────────────────────────
async def create_category(client: AsyncClient, headers: dict, name: str = "Main Course") -> dict:
    resp = await client.post("/api/admin/categories", json={"name": name}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["category"]


async def create_menu(client: AsyncClient, headers: dict, category_id: str, **fields) -> dict:
    payload = {
        "name": "Nasi Goreng",
        "description": ["Fried rice", "Served with egg"],
        "price": 25000,
        "categoryId": category_id,
    }
    payload.update(fields)
    resp = await client.post("/api/admin/menus", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["menu"]
