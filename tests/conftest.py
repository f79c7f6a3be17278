"""
pytest 공용 픽스처 모음

테스트 전략:
- aiosqlite 인메모리 DB (StaticPool) 를 테스트 함수마다 새로 생성
- 스키마는 tests.sample_models 의 모델로 생성
- 각 테스트 종료 시 ROLLBACK 후 엔진 dispose (데이터 잔류 없음)
"""

import logging
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from datarepo.common.utils import fixed_clock
from datarepo.database import AsyncDatabaseEngine
from tests.sample_models import FIXED_NOW, AuthorRepository, BookRepository

# Configure logging for tests
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

TEST_DATABASE_URL = "sqlite+aiosqlite://"


# ============================================================
# 1. Pytest Configuration
# ============================================================
def pytest_configure(config):
    config.addinivalue_line("markers", "integration: mark test as integration test (requires database)")
    config.addinivalue_line("markers", "unit: mark test as unit test (no external dependencies)")


# ============================================================
# 2. 엔진 & 세션 픽스처 (함수 스코프)
# ============================================================
@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncDatabaseEngine, None]:
    """Fresh in-memory database with the sample schema (singleton reset)."""
    AsyncDatabaseEngine._instance = None

    engine = AsyncDatabaseEngine()
    await engine.initialize(url=TEST_DATABASE_URL, echo=False)
    await engine.create_schema()

    yield engine

    await engine.dispose()
    AsyncDatabaseEngine._instance = None


@pytest_asyncio.fixture
async def db_session(db_engine: AsyncDatabaseEngine) -> AsyncGenerator[AsyncSession, None]:
    """Session on the test database, rolled back after the test."""
    session = db_engine.session_factory()
    try:
        yield session
    finally:
        await session.rollback()
        await session.close()


# ============================================================
# 3. Repository 픽스처
# ============================================================
@pytest.fixture
def clock():
    return fixed_clock(FIXED_NOW)


@pytest.fixture
def author_repo(db_session: AsyncSession, clock) -> AuthorRepository:
    return AuthorRepository(db_session, clock=clock)


@pytest.fixture
def book_repo(db_session: AsyncSession, clock) -> BookRepository:
    return BookRepository(db_session, clock=clock)
