"""
ShopVault — Database engine and session factory
"""
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from shopvault.core.config import Settings


class Base(DeclarativeBase):
    pass


def _enable_sqlite_transactions(engine: AsyncEngine):
    """
    pysqlite defers BEGIN until the first DML statement and cannot emit
    SAVEPOINT reliably. Take over transaction control and open every
    transaction with BEGIN IMMEDIATE so concurrent writers queue on the
    database lock (busy timeout) instead of deadlocking on a lock upgrade.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_engine(settings: Settings, url: str | None = None, **kwargs) -> AsyncEngine:
    url = url or settings.database_url
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"timeout": 30})
        engine = create_async_engine(url, echo=settings.DB_ECHO, **kwargs)
        _enable_sqlite_transactions(engine)
        return engine
    return create_async_engine(url, echo=settings.DB_ECHO, pool_pre_ping=True, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_all(engine: AsyncEngine):
    # Import models so every table is registered on Base.metadata
    from shopvault import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

