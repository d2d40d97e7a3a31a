from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from coworks.core.settings import settings


class Base(DeclarativeBase):
    pass


def use_immediate_transactions(engine: AsyncEngine, wal: bool = True) -> AsyncEngine:
    """Make every SQLite transaction take the write lock when it begins.

    pysqlite only opens a transaction before DML, so a read-then-write
    sequence in one session is not serialised against other writers.
    With the driver's own handling off and ``BEGIN IMMEDIATE`` emitted on
    begin, the first statement of a session waits for competing writers.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        if wal:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    future=True,
)
if settings.DATABASE_URL.startswith("sqlite"):
    use_immediate_transactions(engine)

AsyncSessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def get_db() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        try:
            yield session
            # services may already have committed; this only persists leftovers
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create tables on startup and seed the default seating types."""
    from coworks.models import all_models  # noqa: F401
    from coworks.services.bootstrap_defaults import ensure_default_seating_types

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        await ensure_default_seating_types(session)
        await session.commit()
