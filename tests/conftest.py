"""
Shared fixtures.

Every test gets a fresh SQLite database file driven through the same async
SQLAlchemy stack as production, and a FixedClock so week, overdue and
duplicate-window decisions are deterministic.
"""

from datetime import date, datetime

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

import components.core.init_db  # noqa: F401  registers every model on Base
from components.category.repository import CategoryRepository
from components.category.schemas import CategoryCreate
from components.core.clock import FixedClock, get_clock
from components.core.database import DatabaseManager
from components.core.init_db import get_db
from components.user.repository import UserRepository
from components.user.schemas import UserCreate
from restapi.endpoints.auth import get_current_user
from restapi.router import create_app


@pytest.fixture
async def db_manager(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'budget.db'}")
    manager = DatabaseManager(engine=engine)
    await manager.create_tables()
    yield manager
    await engine.dispose()


@pytest.fixture
async def session(db_manager):
    async with db_manager.get_db() as session:
        yield session


@pytest.fixture
def clock():
    # Wednesday of the first week of February 2027; Feb 1 2027 is a Monday
    return FixedClock(datetime(2027, 2, 3, 10, 0))


@pytest.fixture
async def user(session):
    return await UserRepository(session).create(
        UserCreate(login="alice", password="secret123", currency="EUR"),
        registration_date=date(2027, 1, 1),
    )


@pytest.fixture
async def other_user(session):
    return await UserRepository(session).create(
        UserCreate(login="bob", password="secret123"),
        registration_date=date(2027, 1, 1),
    )


@pytest.fixture
async def groceries(session):
    return await CategoryRepository(session).create(None, CategoryCreate(name="Groceries"))


@pytest.fixture
async def utilities(session):
    return await CategoryRepository(session).create(None, CategoryCreate(name="Utilities"))


@pytest.fixture
async def salary(session):
    return await CategoryRepository(session).create(None, CategoryCreate(name="Salary", type="income"))


def build_app(db_manager, clock):
    app = create_app()

    async def override_get_db():
        async with db_manager.get_db() as api_session:
            yield api_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    return app


@pytest.fixture
async def client(db_manager, clock, user):
    app = build_app(db_manager, clock)
    app.dependency_overrides[get_current_user] = lambda: user

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
async def anonymous_client(db_manager, clock):
    """Client going through real bearer-token authentication."""
    app = build_app(db_manager, clock)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
