"""
Test Suite Configuration
"""
from typing import AsyncGenerator, Callable

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from shopdb.config import Settings
from shopdb.data.generators import DataGenerator
from shopdb.database.connection import create_engine, create_session_factory
from shopdb.database.models import Base
from shopdb.persistence.unit_of_work import UnitOfWork


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        app_env="testing",
        debug=True,
    )


@pytest.fixture
def database_url(tmp_path) -> str:
    """File backed SQLite database, one per test"""
    return f"sqlite+aiosqlite:///{tmp_path / 'shopdb_test.sqlite3'}"


@pytest.fixture
async def blank_engine(database_url) -> AsyncGenerator[AsyncEngine, None]:
    """Engine over an empty database with no tables"""
    engine = create_engine(database_url)
    yield engine
    await engine.dispose()


@pytest.fixture
async def engine(blank_engine) -> AsyncEngine:
    """Engine with the schema created"""
    async with blank_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return blank_engine


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
def uow_factory(session_factory) -> Callable[[], UnitOfWork]:
    """Build a fresh unit of work on the test database"""
    return lambda: UnitOfWork(session_factory)


@pytest.fixture
def generator() -> DataGenerator:
    """Reproducible data source"""
    return DataGenerator(random_seed=42)
