"""Fixtures for HTTP-level tests against the FastAPI app"""

import pytest
from httpx import ASGITransport, AsyncClient

from backend.app.main import app


@pytest.fixture
async def client(database):
    """Async HTTP client bound to the per-test database"""
    app.state.db = database
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac
    finally:
        app.state.db = None
