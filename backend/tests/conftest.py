"""
Strata Backend: Test Configuration (conftest.py)
================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── settings_factory: Settings with overrides, in-memory adapters, no retry waits
    ├── test_settings:   settings_factory() with no overrides
    ├── retry:           RetryPolicy with zero backoff
    ├── repository:      InMemoryRepository[User]
    ├── memory_storage:  InMemoryFileStorage
    ├── local_storage:   LocalFileStorage under tmp_path (started)
    ├── sql_repository:  SqlUserRepository on a temp SQLite file (started)
    ├── user_service / file_service
    └── client:          HTTPX AsyncClient against a started app
"""

import os
import tempfile

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Override settings BEFORE any strata import: strata.config builds its
# module-level Settings and strata.main builds `app` at import time
os.environ["PERSISTENCE_BACKEND"] = "memory"
os.environ["FILE_STORAGE_BACKEND"] = "memory"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="strata_test_")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./strata_test.db"
os.environ["LOG_LEVEL"] = "WARNING"

from strata.adapters import (  # noqa: E402
    InMemoryFileStorage,
    InMemoryRepository,
    LocalFileStorage,
    SqlUserRepository,
)
from strata.config import Settings  # noqa: E402
from strata.schemas.user import User  # noqa: E402
from strata.services import FileService, RetryPolicy, UserService  # noqa: E402


def make_settings(**overrides) -> Settings:
    """Settings isolated from any .env file in the working directory."""
    values = {
        "persistence_backend": "memory",
        "file_storage_backend": "memory",
        "log_level": "WARNING",
        "retry_min_wait": 0,
        "retry_max_wait": 0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def settings_factory(tmp_path):
    """Build Settings with overrides: settings_factory(request_timeout_seconds=0.1)."""

    def factory(**overrides):
        overrides.setdefault("storage_root", str(tmp_path / "storage"))
        return make_settings(**overrides)

    return factory


@pytest.fixture
def test_settings(settings_factory):
    return settings_factory()


@pytest.fixture
def retry():
    """Three attempts, no sleeping between them."""
    return RetryPolicy(max_attempts=3, min_wait=0, max_wait=0)


@pytest.fixture
def repository():
    return InMemoryRepository(User, unique_fields=("email",))


@pytest.fixture
def memory_storage():
    return InMemoryFileStorage()


@pytest_asyncio.fixture
async def local_storage(tmp_path):
    storage = LocalFileStorage(str(tmp_path / "files"))
    await storage.start()
    yield storage
    await storage.close()


@pytest_asyncio.fixture
async def sql_repository(tmp_path):
    """
    SqlUserRepository on a fresh SQLite file.

    A file (not :memory:) so every pooled connection sees the same database.
    """
    settings = make_settings(
        persistence_backend="sqlalchemy",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'strata.db'}",
    )
    repo = SqlUserRepository(settings)
    await repo.start()
    yield repo
    await repo.close()


@pytest.fixture
def user_service(repository, memory_storage, retry):
    return UserService(repository, memory_storage, retry, max_file_size=1024)


@pytest.fixture
def file_service(memory_storage, retry):
    return FileService(memory_storage, retry, max_file_size=1024)


@pytest_asyncio.fixture
async def client(test_settings):
    """
    HTTPX AsyncClient talking to a fully started app.

    ASGITransport does not run the lifespan, so it is entered explicitly.

    Usage:
        async def test_health(client):
            response = await client.get("/health")
            assert response.status_code == 200
    """
    from strata.main import create_app

    app = create_app(test_settings)
    async with app.router.lifespan_context(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as http:
            yield http
