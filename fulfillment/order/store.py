"""
Order Service — order store

Order header and line items are written together in one transaction. The
status column is only ever changed through update_status, which locks the
row and applies the state machine before writing.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    select,
    update,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.common import db
from fulfillment.common.errors import OrderNotFound, StoreError

from .aggregate import OrderStatus, check_transition
from .models import LineItem, Order

logger = logging.getLogger(__name__)

metadata = MetaData()

orders_table = Table(
    "orders",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(64), nullable=False),
    Column("amount", Numeric(12, 2), nullable=False),
    Column("status", String(16), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

order_line_items_table = Table(
    "order_line_items",
    metadata,
    Column("order_id", String(36), ForeignKey("orders.id"), primary_key=True),
    Column("position", Integer, primary_key=True),
    Column("product_id", String(64), nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("price", Numeric(12, 2), nullable=False),
)


class OrderStore(ABC):
    async def open(self) -> None:
        pass

    async def close(self) -> None:
        pass

    @abstractmethod
    async def create(self, order: Order) -> None:
        """Persist header and line items atomically."""

    @abstractmethod
    async def get(self, order_id: str) -> Order | None: ...

    @abstractmethod
    async def list_all(self) -> list[Order]: ...

    @abstractmethod
    async def update_status(self, order_id: str, status: OrderStatus) -> Order:
        """Apply a guarded status transition. Raises OrderNotFound / InvalidTransition."""


# ── SQL backend ──────────────────────────────────


class SqlOrderStore(OrderStore):
    def __init__(self, database_url: str) -> None:
        self.engine = db.create_engine(database_url)
        self.session_factory = db.create_session_factory(self.engine)

    async def open(self) -> None:
        await db.create_tables(self.engine, metadata)

    async def close(self) -> None:
        await self.engine.dispose()

    async def create(self, order: Order) -> None:
        now = datetime.now(timezone.utc)
        try:
            async with self.session_factory() as session, session.begin():
                await session.execute(
                    orders_table.insert().values(
                        id=order.id,
                        user_id=order.user_id,
                        amount=order.amount,
                        status=order.status.value,
                        created_at=now,
                        updated_at=now,
                    )
                )
                await session.execute(
                    order_line_items_table.insert(),
                    [
                        {
                            "order_id": order.id,
                            "position": position,
                            "product_id": item.product_id,
                            "quantity": item.quantity,
                            "price": item.price,
                        }
                        for position, item in enumerate(order.line_items)
                    ],
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to create order: {e}") from e

    async def _load(self, session: AsyncSession, rows) -> list[Order]:
        orders = {
            row.id: Order(
                id=row.id,
                user_id=row.user_id,
                amount=row.amount,
                status=OrderStatus(row.status),
                line_items=[],
            )
            for row in rows
        }
        if not orders:
            return []
        result = await session.execute(
            select(order_line_items_table)
            .where(order_line_items_table.c.order_id.in_(list(orders)))
            .order_by(order_line_items_table.c.order_id, order_line_items_table.c.position)
        )
        for item in result.fetchall():
            orders[item.order_id].line_items.append(
                LineItem(product_id=item.product_id, quantity=item.quantity, price=item.price)
            )
        return list(orders.values())

    async def get(self, order_id: str) -> Order | None:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(orders_table).where(orders_table.c.id == order_id)
                )
                orders = await self._load(session, result.fetchall())
                return orders[0] if orders else None
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read order: {e}") from e

    async def list_all(self) -> list[Order]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(orders_table).order_by(orders_table.c.created_at.desc())
                )
                return await self._load(session, result.fetchall())
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read orders: {e}") from e

    async def update_status(self, order_id: str, status: OrderStatus) -> Order:
        try:
            async with self.session_factory() as session, session.begin():
                result = await session.execute(
                    select(orders_table).where(orders_table.c.id == order_id).with_for_update()
                )
                row = result.fetchone()
                if row is None:
                    raise OrderNotFound(f"Order {order_id} not found")
                check_transition(order_id, OrderStatus(row.status), status)

                await session.execute(
                    update(orders_table)
                    .where(orders_table.c.id == order_id)
                    .values(status=status.value, updated_at=datetime.now(timezone.utc))
                )
                orders = await self._load(session, [row])
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to update order status: {e}") from e

        order = orders[0]
        order.status = status
        return order


# ── In-memory backend ────────────────────────────


class MemoryOrderStore(OrderStore):
    def __init__(self) -> None:
        self.rows: dict[str, Order] = {}
        self.lock = asyncio.Lock()

    async def create(self, order: Order) -> None:
        async with self.lock:
            self.rows[order.id] = order.model_copy(deep=True)

    async def get(self, order_id: str) -> Order | None:
        order = self.rows.get(order_id)
        return order.model_copy(deep=True) if order else None

    async def list_all(self) -> list[Order]:
        return [order.model_copy(deep=True) for order in reversed(self.rows.values())]

    async def update_status(self, order_id: str, status: OrderStatus) -> Order:
        async with self.lock:
            order = self.rows.get(order_id)
            if order is None:
                raise OrderNotFound(f"Order {order_id} not found")
            check_transition(order_id, order.status, status)
            order.status = status
            return order.model_copy(deep=True)


def build_order_store(database_url: str) -> OrderStore:
    if db.get_backend() == db.MEMORY_BACKEND:
        logger.info("Using in-memory order store")
        return MemoryOrderStore()
    return SqlOrderStore(database_url)
