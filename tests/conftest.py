"""Shared fixtures: isolated settings, an in-memory database and an API client."""

import os

# Must be set before postdeck modules read their settings
os.environ["DATABASE_URL"] = ""
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["LINKEDIN_ACCESS_TOKEN"] = ""
os.environ["LINKEDIN_PROFILE_ID"] = ""

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from postdeck import models  # noqa: F401  (registers tables)
from postdeck.database import Base, get_db
from postdeck.main import app


def _memory_engine():
    return create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )


@pytest_asyncio.fixture
async def db_session():
    engine = _memory_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_maker = async_sessionmaker(engine, expire_on_commit=False)
    async with session_maker() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def client():
    engine = _memory_engine()
    session_maker = async_sessionmaker(engine, expire_on_commit=False)
    tables_created = False

    async def override_get_db():
        nonlocal tables_created
        if not tables_created:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            tables_created = True
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def workspace(client):
    response = client.post("/api/workspaces", json={"name": "Acme"})
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def headers(workspace):
    return {"X-Workspace-Id": workspace["id"]}
