"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool (created at import time) remains valid across
the entire test session. The tests are skipped when PostgreSQL is not
reachable.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.container import build_container
from src.main import app
from src.mp_common.database import ping_database


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client with the default service wiring."""
    try:
        await ping_database()
    except Exception as exc:
        pytest.skip(f"PostgreSQL not reachable: {exc}")
    app.state.container = build_container()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
