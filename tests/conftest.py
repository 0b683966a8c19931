"""Test configuration and fixtures for projloader."""

import warnings
# Silence Strawberry's LazyType deprecation warnings to keep test output clean
warnings.filterwarnings("ignore", category=DeprecationWarning, message=r"LazyType is deprecated.*")

from dotenv import load_dotenv
import pytest
import asyncio
import os
import sys
from typing import AsyncGenerator
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from tests.models import Base

# Try to load environment variables from .env file
load_dotenv()


@pytest.fixture(scope="session")
def event_loop_policy():
    """Selector event loop policy on Windows, the default elsewhere."""
    if sys.platform.startswith("win"):
        return asyncio.WindowsSelectorEventLoopPolicy()
    return asyncio.get_event_loop_policy()


@pytest.fixture(scope="function")
async def engine():
    """Create a test database engine for each test function."""
    test_db_url = os.getenv('PROJLOADER_TEST_DATABASE_URL')

    if test_db_url:
        engine = create_async_engine(
            test_db_url,
            echo=False,
            pool_size=1,
            max_overflow=0,
            pool_pre_ping=False,
        )
        # Clean slate: drop then create all tables
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        is_external_db = True
    else:
        engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        is_external_db = False

    yield engine

    if is_external_db:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a new database session for each test function."""
    async_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session


@pytest.fixture(scope="function")
def select_statements(engine):
    """Collect SELECT statements issued on the test engine, lower-cased."""
    statements: list[str] = []
    sync_engine = engine.sync_engine

    def _capture(conn, cursor, statement, parameters, context, executemany):  # noqa: ANN001
        if str(statement).lstrip().upper().startswith("SELECT"):
            statements.append(" ".join(str(statement).lower().split()))

    event.listen(sync_engine, "before_cursor_execute", _capture)
    yield statements
    event.remove(sync_engine, "before_cursor_execute", _capture)


# Import fixtures from fixtures module
from tests.fixtures import populated_db  # noqa: E402,F401
