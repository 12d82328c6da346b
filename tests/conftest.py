"""Shared pytest fixtures for all test suites."""

import os
import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from docchat.config import Settings
from docchat.db.context import RequestContext
from docchat.db.engine import create_session_factory
from docchat.db.models import Base
from docchat.models.common import DocumentStatus
from docchat.models.documents import Document
from docchat.services import Services, build_in_memory_services


@pytest.fixture
def settings() -> Settings:
    """Settings with small limits so quota tests stay short."""
    return Settings(
        database_url=None,
        redis_url=None,
        qdrant_url=None,
        openai_api_key=None,
        free_question_limit=2,
        pro_question_limit=5,
        completion_timeout_ms=1000,
    )


@pytest.fixture
def services(settings: Settings) -> Services:
    """Fully wired in-memory services."""
    return build_in_memory_services(settings)


@pytest.fixture
def owner() -> RequestContext:
    return RequestContext(owner_id="user_alice")


@pytest.fixture
def other_owner() -> RequestContext:
    return RequestContext(owner_id="user_mallory")


def _make_document(
    owner_id: str = "user_alice",
    status: DocumentStatus = DocumentStatus.ready,
    **overrides: object,
) -> Document:
    document_id = overrides.pop("id", None) or uuid.uuid4()
    values: dict[str, object] = {
        "id": document_id,
        "owner_id": owner_id,
        "name": "report.pdf",
        "byte_size": 1024,
        "mime_type": "application/pdf",
        "blob_ref": f"users/{owner_id}/files/{document_id}",
        "download_url": f"memory://users/{owner_id}/files/{document_id}",
        "status": status,
        "created_at": datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc),
    }
    values.update(overrides)
    return Document.model_validate(values)


@pytest.fixture
def document_factory() -> Callable[..., Document]:
    """Build document records for repository-level tests."""
    return _make_document


@pytest_asyncio.fixture
async def sqlite_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with all tables created.

    StaticPool keeps the single connection alive so every session sees
    the same in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(sqlite_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(sqlite_engine)


@pytest_asyncio.fixture
async def postgres_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create async engine for PostgreSQL integration tests.

    Requires DATABASE_URL to be set to a real PostgreSQL connection string.
    Tests using this fixture should be marked with @pytest.mark.postgres.
    """
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set - skipping postgres test")

    if not database_url.startswith(("postgresql://", "postgresql+asyncpg://")):
        pytest.skip(f"DATABASE_URL is not PostgreSQL: {database_url}")

    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    engine = create_async_engine(database_url, poolclass=NullPool, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()
