"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import typing as typ

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from clubsync.storage import init_learner_storage
from tests.helpers.workbooks import learner_row, write_learner_workbook

if typ.TYPE_CHECKING:
    from pathlib import Path


async def _setup_sqlite(tmp_path: Path) -> AsyncEngine:
    """Create a SQLite engine and initialise the learner table."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'clubsync_test.db'}")
    try:
        await init_learner_storage(engine)
    except Exception:
        await engine.dispose()
        raise
    return engine


@pytest_asyncio.fixture
async def session_factory(
    tmp_path: Path,
) -> typ.AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Yield a fresh async session factory backed by sqlite."""
    engine = await _setup_sqlite(tmp_path)
    factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest.fixture
def learners_path(tmp_path: Path) -> Path:
    """Return a workbook path holding two valid learners."""
    return write_learner_workbook(
        tmp_path / "learners.xlsx",
        [
            learner_row("A001", "Jane Doe", "Grade 7"),
            learner_row("A002", "John Roe", "Grade 8", gender="M"),
        ],
    )
