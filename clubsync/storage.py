"""Reference persistence collaborator for synchronized learners.

``SqlAlchemyLearnerStore`` implements the ``ChangeSink`` interface on top of
an async SQLAlchemy engine. Each batch runs in a single transaction and rows
are keyed by ``(tenant_id, admission_key)``, so applying the same batch twice
leaves the table unchanged.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import typing as typ

from sqlalchemy import DateTime, String, UniqueConstraint, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.pool import NullPool

from clubsync.common.time import utcnow
from clubsync.logging import get_logger, log_debug, log_info
from clubsync.models import ChangeTag

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

    from clubsync.models import LearnerRecord, TaggedRecord

logger = get_logger(__name__)

REMOVED_STATUS = "removed"


class Base(DeclarativeBase):
    """Base declarative class for learner storage."""


class Learner(Base):
    """One synchronized learner per tenant and normalized admission number."""

    __tablename__ = "learners"
    __table_args__ = (
        UniqueConstraint("tenant_id", "admission_key", name="uq_learners_natural_key"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String(64))
    admission_key: Mapped[str] = mapped_column(String(64))
    admission_number: Mapped[str] = mapped_column(String(64))
    full_name: Mapped[str] = mapped_column(String(255), default="")
    grade_name: Mapped[str] = mapped_column(String(64), default="")
    date_joined: Mapped[str] = mapped_column(String(32), default="")
    gender: Mapped[str] = mapped_column(String(32), default="")
    status: Mapped[str] = mapped_column(String(32), default="")
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    def assign(self, record: LearnerRecord, *, status: str | None = None) -> None:
        """Copy *record*'s fields onto this row."""
        self.admission_number = record.admission_number
        self.full_name = record.full_name
        self.grade_name = record.grade_name
        self.date_joined = record.date_joined
        self.gender = record.gender
        self.status = record.status if status is None else status


async def init_learner_storage(engine: AsyncEngine) -> None:
    """Create all tables registered with Base if they are absent."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


class SqlAlchemyLearnerStore:
    """Apply tagged learner batches to the ``learners`` table.

    Parameters
    ----------
    session_factory
        Async session factory bound to the learner database.
    tenant_id
        School the batches belong to.

    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        tenant_id: str = "default",
    ) -> None:
        self._session_factory = session_factory
        self.tenant_id = tenant_id

    async def store_changes(self, changes: cabc.Sequence[TaggedRecord]) -> int:
        """Upsert *changes* in one transaction and return the rows touched.

        Inserts and updates are both upserts on the natural key. Removals
        mark an existing row ``status="removed"`` and are ignored for
        learners the store has never seen.
        """
        touched = 0
        async with self._session_factory() as session, session.begin():  # type: ignore[call-arg]
            for change in changes:
                if await self._apply_one(session, change):
                    touched += 1
        log_info(
            logger,
            "Stored %d of %d learner changes for tenant %s",
            touched,
            len(changes),
            self.tenant_id,
        )
        return touched

    def apply_changes(self, changes: cabc.Sequence[TaggedRecord]) -> None:
        """Run :meth:`store_changes` synchronously for the monitor threads."""
        asyncio.run(self.store_changes(changes))

    async def get(self, admission_number: str) -> Learner | None:
        """Return the stored learner for *admission_number*, if any."""
        key = admission_number.strip().lower()
        async with self._session_factory() as session:
            return await self._find(session, key)

    async def list_learners(self) -> list[Learner]:
        """Return every learner for this tenant ordered by admission key."""
        async with self._session_factory() as session:
            result = await session.scalars(
                select(Learner)
                .where(Learner.tenant_id == self.tenant_id)
                .order_by(Learner.admission_key)
            )
            return list(result)

    async def _find(self, session: AsyncSession, key: str) -> Learner | None:
        return await session.scalar(
            select(Learner).where(
                Learner.tenant_id == self.tenant_id,
                Learner.admission_key == key,
            )
        )

    async def _apply_one(self, session: AsyncSession, change: TaggedRecord) -> bool:
        record = change.record
        row = await self._find(session, record.key)

        if change.tag is ChangeTag.REMOVE:
            if row is None:
                log_debug(logger, "Ignoring removal of unknown learner %s", record.key)
                return False
            row.status = REMOVED_STATUS
            return True

        if row is None:
            row = Learner(tenant_id=self.tenant_id, admission_key=record.key)
            session.add(row)
        row.assign(record)
        await session.flush()
        return True


def create_learner_store(
    database_url: str, *, tenant_id: str = "default"
) -> tuple[SqlAlchemyLearnerStore, AsyncEngine]:
    """Build a store for *database_url* and return it with its engine.

    The engine does not pool connections because every synchronous batch
    runs on its own event loop.
    """
    engine = create_async_engine(database_url, poolclass=NullPool)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    return SqlAlchemyLearnerStore(session_factory, tenant_id=tenant_id), engine


__all__ = [
    "REMOVED_STATUS",
    "Base",
    "Learner",
    "SqlAlchemyLearnerStore",
    "create_learner_store",
    "init_learner_storage",
]
