"""
Inventory Service — inventory store

The only shared mutable resource in the system. Every mutation runs inside a
transaction that holds an exclusive lock on each row it reads for update, from
the locked read until commit or rollback. Stock is only ever taken by a
guarded decrement (quantity >= n in the same write), so it cannot go
negative even where the row lock is not honoured (SQLite).

Two backends:
  SqlInventoryStore     SELECT ... FOR UPDATE plus a conditional UPDATE
  MemoryInventoryStore  one asyncio.Lock per product, writes staged until commit
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager

from sqlalchemy import CheckConstraint, Column, Integer, MetaData, String, Table, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.common import db
from fulfillment.common.errors import StoreError

logger = logging.getLogger(__name__)

metadata = MetaData()

inventory_table = Table(
    "inventory",
    metadata,
    Column("product_id", String(64), primary_key=True),
    Column("quantity", Integer, nullable=False),
    CheckConstraint("quantity >= 0", name="inventory_quantity_non_negative"),
)


class InventoryTransaction(ABC):
    @abstractmethod
    async def get_for_update(self, product_id: str) -> int | None:
        """Lock the row and return its quantity, or None if it does not exist."""

    @abstractmethod
    async def decrement(self, product_id: str, quantity: int) -> bool:
        """Take quantity from a row only if that much is in stock. Returns False otherwise."""

    @abstractmethod
    async def increment(self, product_id: str, quantity: int) -> bool:
        """Add to a row's quantity. Returns False if the row does not exist."""


class InventoryStore(ABC):
    async def open(self) -> None:
        pass

    async def close(self) -> None:
        pass

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[InventoryTransaction]:
        """Async context manager: commit on clean exit, discard on exception."""

    @abstractmethod
    async def get(self, product_id: str) -> int | None: ...

    @abstractmethod
    async def list_all(self) -> list[tuple[str, int]]: ...

    @abstractmethod
    async def seed(self, product_id: str, quantity: int) -> None:
        """Insert or overwrite a row (setup and development only)."""


# ── SQL backend ──────────────────────────────────


class _SqlInventoryTransaction(InventoryTransaction):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_for_update(self, product_id: str) -> int | None:
        result = await self.session.execute(
            select(inventory_table.c.quantity)
            .where(inventory_table.c.product_id == product_id)
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def decrement(self, product_id: str, quantity: int) -> bool:
        # SQLite drops FOR UPDATE; the WHERE clause is what keeps stock >= 0.
        result = await self.session.execute(
            update(inventory_table)
            .where(
                inventory_table.c.product_id == product_id,
                inventory_table.c.quantity >= quantity,
            )
            .values(quantity=inventory_table.c.quantity - quantity)
        )
        return result.rowcount > 0

    async def increment(self, product_id: str, quantity: int) -> bool:
        result = await self.session.execute(
            update(inventory_table)
            .where(inventory_table.c.product_id == product_id)
            .values(quantity=inventory_table.c.quantity + quantity)
        )
        return result.rowcount > 0


class SqlInventoryStore(InventoryStore):
    def __init__(self, database_url: str) -> None:
        self.engine = db.create_engine(database_url)
        self.session_factory = db.create_session_factory(self.engine)

    async def open(self) -> None:
        await db.create_tables(self.engine, metadata)

    async def close(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[InventoryTransaction]:
        try:
            async with self.session_factory() as session, session.begin():
                yield _SqlInventoryTransaction(session)
        except SQLAlchemyError as e:
            raise StoreError(f"Inventory transaction failed: {e}") from e

    async def get(self, product_id: str) -> int | None:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(inventory_table.c.quantity).where(
                        inventory_table.c.product_id == product_id
                    )
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read inventory: {e}") from e

    async def list_all(self) -> list[tuple[str, int]]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(inventory_table.c.product_id, inventory_table.c.quantity).order_by(
                        inventory_table.c.product_id
                    )
                )
                return [(row.product_id, row.quantity) for row in result.fetchall()]
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read inventory: {e}") from e

    async def seed(self, product_id: str, quantity: int) -> None:
        try:
            async with self.session_factory() as session, session.begin():
                result = await session.execute(
                    update(inventory_table)
                    .where(inventory_table.c.product_id == product_id)
                    .values(quantity=quantity)
                )
                if result.rowcount == 0:
                    await session.execute(
                        inventory_table.insert().values(product_id=product_id, quantity=quantity)
                    )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to seed inventory: {e}") from e


# ── In-memory backend ────────────────────────────


class _MemoryInventoryTransaction(InventoryTransaction):
    def __init__(self, store: "MemoryInventoryStore") -> None:
        self.store = store
        self.locked: list[str] = []
        self.staged: dict[str, int] = {}

    async def _lock(self, product_id: str) -> None:
        if product_id in self.locked:
            return
        await self.store.locks[product_id].acquire()
        self.locked.append(product_id)

    def _current(self, product_id: str) -> int | None:
        if product_id in self.staged:
            return self.staged[product_id]
        return self.store.rows.get(product_id)

    async def get_for_update(self, product_id: str) -> int | None:
        await self._lock(product_id)
        return self._current(product_id)

    async def decrement(self, product_id: str, quantity: int) -> bool:
        await self._lock(product_id)
        current = self._current(product_id)
        if current is None or current < quantity:
            return False
        self.staged[product_id] = current - quantity
        return True

    async def increment(self, product_id: str, quantity: int) -> bool:
        await self._lock(product_id)
        current = self._current(product_id)
        if current is None:
            return False
        self.staged[product_id] = current + quantity
        return True

    def commit(self) -> None:
        self.store.rows.update(self.staged)

    def release(self) -> None:
        for product_id in reversed(self.locked):
            self.store.locks[product_id].release()
        self.locked.clear()


class MemoryInventoryStore(InventoryStore):
    def __init__(self) -> None:
        self.rows: dict[str, int] = {}
        self.locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[InventoryTransaction]:
        tx = _MemoryInventoryTransaction(self)
        try:
            yield tx
            tx.commit()
        finally:
            tx.release()

    async def get(self, product_id: str) -> int | None:
        return self.rows.get(product_id)

    async def list_all(self) -> list[tuple[str, int]]:
        return sorted(self.rows.items())

    async def seed(self, product_id: str, quantity: int) -> None:
        async with self.locks[product_id]:
            self.rows[product_id] = quantity


def build_inventory_store(database_url: str) -> InventoryStore:
    if db.get_backend() == db.MEMORY_BACKEND:
        logger.info("Using in-memory inventory store")
        return MemoryInventoryStore()
    return SqlInventoryStore(database_url)
