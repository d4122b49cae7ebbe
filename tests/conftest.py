"""Pytest configuration and shared fixtures"""

import os

# Must be set before the application settings are first imported
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "100000")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import Database
from backend.app.models.permission import Permission
from backend.app.models.user import User, UserRole
from tests.factories import create_admin, create_user


@pytest.fixture
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    """Fresh SQLite database per test, built from the ORM metadata"""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session"""
    async with database.session_factory() as session:
        yield session


@pytest.fixture
async def candidate(db_session) -> User:
    return await create_user(db_session, role=UserRole.CANDIDATE, first_name="Ada", last_name="Lovelace")


@pytest.fixture
async def company(db_session) -> User:
    return await create_user(db_session, role=UserRole.COMPANY)


@pytest.fixture
async def admin(db_session) -> User:
    """Admin holding every permission"""
    return await create_admin(db_session, permissions=tuple(Permission))
