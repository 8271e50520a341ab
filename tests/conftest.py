from __future__ import annotations

import asyncio
import os
import tempfile
from datetime import datetime

import pytest

_DB_DIR = tempfile.mkdtemp(prefix="servicecrm-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR}/test.db"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["BUSINESS_TIMEZONE"] = "Asia/Kolkata"

from servicecrm.core.money import to_nanos  # noqa: E402


def ns(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> int:
    """Epoch nanoseconds for a wall-clock time in the business timezone."""
    return to_nanos(datetime(year, month, day, hour, minute))


@pytest.fixture
def database():
    from servicecrm.database import drop_db, init_db

    asyncio.run(drop_db())
    asyncio.run(init_db())
    yield
    asyncio.run(drop_db())


async def _create_user(name: str, email: str, role: str) -> int:
    from servicecrm.database import async_session_factory
    from servicecrm.models.user import User

    async with async_session_factory() as session:
        user = User(name=name, email=email, role=role)
        session.add(user)
        await session.commit()
        return user.id


@pytest.fixture
def now():
    return ns(2024, 2, 1, 10, 30)


@pytest.fixture
def client(database, now):
    from fastapi.testclient import TestClient

    from servicecrm.api.deps import get_now
    from servicecrm.main import app

    app.dependency_overrides[get_now] = lambda: now
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _auth_headers(user_id: int) -> dict:
    from servicecrm.core.security import create_access_token

    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture
def admin_headers(database):
    return _auth_headers(asyncio.run(_create_user("Asha Admin", "admin@example.com", "ADMIN")))


@pytest.fixture
def user_headers(database):
    return _auth_headers(asyncio.run(_create_user("Ravi Staff", "staff@example.com", "USER")))


@pytest.fixture
def guest_headers(database):
    return _auth_headers(asyncio.run(_create_user("Gita Guest", "guest@example.com", "GUEST")))
