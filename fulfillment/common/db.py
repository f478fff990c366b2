"""
Database plumbing shared by the SQL-backed stores.

Every service owns its own database (database per service). This module only
provides the engine/session factory and the backend switch; table layouts
live next to each service's store.
"""

import os

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

BACKEND_ENV = "STORE_BACKEND"
SQL_BACKEND = "sql"
MEMORY_BACKEND = "memory"


def get_backend() -> str:
    backend = os.environ.get(BACKEND_ENV, SQL_BACKEND).lower()
    if backend not in (SQL_BACKEND, MEMORY_BACKEND):
        raise ValueError(f"Unknown {BACKEND_ENV}={backend!r} (expected sql|memory)")
    return backend


def create_engine(database_url: str) -> AsyncEngine:
    return create_async_engine(database_url, echo=False)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(engine: AsyncEngine, metadata: MetaData) -> None:
    """Create missing tables. Safe to call on every startup."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
