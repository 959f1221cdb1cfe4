"""
Pytest configuration and shared fixtures.

Service tests run against a real in-memory SQLite database that is created
fresh for every test.
"""

import pytest
import pytest_asyncio

from planboard.database.connection import Database
from planboard.database.repositories import UserRepository
from planboard.models import ProjectCreate
from planboard.services import (
    StatusRegistry,
    ProjectService,
    WorkItemService,
    EpicService,
    BoardService,
    KeyAllocator,
)


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory database with all tables created."""
    database = Database("sqlite+aiosqlite:///:memory:")
    assert await database.initialize()
    yield database
    await database.close()


@pytest_asyncio.fixture
async def owner(db):
    """The user who owns the test project."""
    return await UserRepository(db).create("olivia@example.com", "Olivia", "Owner")


@pytest_asyncio.fixture
async def other_user(db):
    """A user who does not own the test project."""
    return await UserRepository(db).create("sam@example.com", "Sam", "Stranger")


@pytest.fixture
def registry(db):
    return StatusRegistry(db, policy="permissive")


@pytest_asyncio.fixture
async def statuses(registry):
    """Default statuses keyed by name."""
    created = await registry.create_default_statuses()
    return {status.name: status for status in created}


@pytest_asyncio.fixture
async def project(db, owner):
    return await ProjectService(db).create_project(
        ProjectCreate(key="TST", name="Test Project"),
        owner_id=owner.id,
    )


@pytest.fixture
def key_allocator(db):
    return KeyAllocator(db)


@pytest.fixture
def work_item_service(db, registry):
    return WorkItemService(db, status_registry=registry)


@pytest.fixture
def epic_service(db, registry):
    return EpicService(db, status_registry=registry)


@pytest.fixture
def board_service(db, registry):
    return BoardService(db, status_registry=registry)


@pytest.fixture
def sample_work_item_data():
    """Minimal task payload; add project_id before use."""
    return {
        "type": "task",
        "summary": "Write the release notes",
        "description": "Cover every change since the last release",
        "priority": 2,
    }
