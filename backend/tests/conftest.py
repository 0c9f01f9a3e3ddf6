from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from leave_engine.db import engine_options, get_session
from leave_engine.main import app
from leave_engine.models import SQLModel
from leave_engine.services.attendance import InMemoryAttendanceService, set_attendance_service
from leave_engine.services.employee import InMemoryEmployeeService, set_employee_service

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from sqlalchemy.ext.asyncio import AsyncEngine

_SQLITE_URL = "sqlite+aiosqlite://"


@pytest.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    """Create an async engine and ensure tables exist.

    TEST_DATABASE_URL points the suite at PostgreSQL; otherwise an in-memory
    SQLite database shared over a single connection is used.
    """
    url = os.environ.get("TEST_DATABASE_URL", _SQLITE_URL)
    if url.startswith("sqlite"):
        _engine = create_async_engine(url, poolclass=StaticPool, **engine_options(url))
    else:
        _engine = create_async_engine(url, **engine_options(url))
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await _engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Yield a database session wrapped in a transaction that rolls back after each test."""
    async with engine.connect() as conn:
        txn = await conn.begin()
        session = AsyncSession(bind=conn, expire_on_commit=False)
        yield session
        await session.close()
        await txn.rollback()


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the database session dependency overridden."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def employee_service() -> Iterator[InMemoryEmployeeService]:
    """Fresh in-memory employee directory for the test."""
    svc = InMemoryEmployeeService()
    set_employee_service(svc)
    yield svc
    set_employee_service(InMemoryEmployeeService())


@pytest.fixture
def attendance_service() -> Iterator[InMemoryAttendanceService]:
    """Fresh in-memory attendance recorder for the test."""
    svc = InMemoryAttendanceService()
    set_attendance_service(svc)
    yield svc
    set_attendance_service(InMemoryAttendanceService())
