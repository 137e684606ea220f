"""Pytest configuration and fixtures."""
import os

# Settings are read at import time; make the suite importable without a .env
os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017")
os.environ.setdefault("JWT_SECRET", "test-secret-not-for-production")

from datetime import datetime

import pytest
import pytest_asyncio
from bson import ObjectId
from httpx import AsyncClient, ASGITransport
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from timetracker.main import app
from timetracker.config import settings
from timetracker.database import ensure_indexes


@pytest.fixture
def t0():
    """A fixed start instant for timer scenarios."""
    return datetime(2026, 3, 2, 9, 0, 0)


@pytest.fixture
def task_doc():
    """A task that is eligible for tracking."""
    return {
        "_id": ObjectId(),
        "title": "Write release notes",
        "project_id": "proj-1",
        "status": "in_progress",
    }


@pytest_asyncio.fixture
async def test_db():
    """
    A clean MongoDB test database.

    Skips when no MongoDB server is reachable at ``MONGODB_URL``.
    """
    test_client = AsyncIOMotorClient(settings.mongodb_url, serverSelectionTimeoutMS=500)
    test_db_name = f"{settings.mongodb_db_name}_test"

    try:
        await test_client.admin.command("ping")
    except PyMongoError:
        test_client.close()
        pytest.skip("MongoDB is not reachable")

    await test_client.drop_database(test_db_name)
    db = test_client[test_db_name]
    await ensure_indexes(db)

    yield db

    await test_client.drop_database(test_db_name)
    test_client.close()


@pytest_asyncio.fixture
async def app_client(test_db):
    """
    An HTTP client against the app, wired to the test database.

    ASGITransport does not run the lifespan, so the database handle is
    swapped in directly.
    """
    from timetracker.database import database

    original_db = database.db
    database.db = test_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client

    database.db = original_db
