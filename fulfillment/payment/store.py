"""
Payment Service — payment ledger store
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager

from sqlalchemy import Column, DateTime, MetaData, Numeric, String, Table, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.common import db
from fulfillment.common.errors import StoreError

from .models import Payment, PaymentStatus

logger = logging.getLogger(__name__)

metadata = MetaData()

payments_table = Table(
    "payments",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("order_id", String(36), nullable=False, index=True),
    Column("amount", Numeric(12, 2), nullable=False),
    Column("status", String(16), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)


class PaymentTransaction(ABC):
    @abstractmethod
    async def insert(self, payment: Payment) -> None: ...

    @abstractmethod
    async def set_status(self, payment_id: str, status: PaymentStatus) -> None: ...


class PaymentStore(ABC):
    async def open(self) -> None:
        pass

    async def close(self) -> None:
        pass

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[PaymentTransaction]:
        """Async context manager: commit on clean exit, discard on exception."""

    @abstractmethod
    async def mark_failed(self, order_id: str) -> int:
        """Set every payment of the order to failed. Returns the number of rows touched."""

    @abstractmethod
    async def list_for_order(self, order_id: str) -> list[Payment]:
        """Payments of one order, newest first."""


# ── SQL backend ──────────────────────────────────


class _SqlPaymentTransaction(PaymentTransaction):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def insert(self, payment: Payment) -> None:
        await self.session.execute(
            payments_table.insert().values(
                id=payment.id,
                order_id=payment.order_id,
                amount=payment.amount,
                status=payment.status.value,
                created_at=payment.created_at,
            )
        )

    async def set_status(self, payment_id: str, status: PaymentStatus) -> None:
        await self.session.execute(
            update(payments_table)
            .where(payments_table.c.id == payment_id)
            .values(status=status.value)
        )


class SqlPaymentStore(PaymentStore):
    def __init__(self, database_url: str) -> None:
        self.engine = db.create_engine(database_url)
        self.session_factory = db.create_session_factory(self.engine)

    async def open(self) -> None:
        await db.create_tables(self.engine, metadata)

    async def close(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[PaymentTransaction]:
        try:
            async with self.session_factory() as session, session.begin():
                yield _SqlPaymentTransaction(session)
        except SQLAlchemyError as e:
            raise StoreError(f"Payment transaction failed: {e}") from e

    async def mark_failed(self, order_id: str) -> int:
        try:
            async with self.session_factory() as session, session.begin():
                result = await session.execute(
                    update(payments_table)
                    .where(payments_table.c.order_id == order_id)
                    .values(status=PaymentStatus.FAILED.value)
                )
                return result.rowcount
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to rollback payment: {e}") from e

    async def list_for_order(self, order_id: str) -> list[Payment]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(payments_table)
                    .where(payments_table.c.order_id == order_id)
                    .order_by(payments_table.c.created_at.desc())
                )
                return [
                    Payment(
                        id=row.id,
                        order_id=row.order_id,
                        amount=row.amount,
                        status=PaymentStatus(row.status),
                        created_at=row.created_at,
                    )
                    for row in result.fetchall()
                ]
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read payments: {e}") from e


# ── In-memory backend ────────────────────────────


class _MemoryPaymentTransaction(PaymentTransaction):
    def __init__(self) -> None:
        self.staged: dict[str, Payment] = {}

    async def insert(self, payment: Payment) -> None:
        self.staged[payment.id] = payment.model_copy()

    async def set_status(self, payment_id: str, status: PaymentStatus) -> None:
        self.staged[payment_id].status = status


class MemoryPaymentStore(PaymentStore):
    def __init__(self) -> None:
        self.rows: dict[str, Payment] = {}

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[PaymentTransaction]:
        tx = _MemoryPaymentTransaction()
        yield tx
        self.rows.update(tx.staged)

    async def mark_failed(self, order_id: str) -> int:
        touched = 0
        for payment in self.rows.values():
            if payment.order_id == order_id:
                payment.status = PaymentStatus.FAILED
                touched += 1
        return touched

    async def list_for_order(self, order_id: str) -> list[Payment]:
        payments = [p.model_copy() for p in self.rows.values() if p.order_id == order_id]
        return sorted(payments, key=lambda p: p.created_at, reverse=True)


def build_payment_store(database_url: str) -> PaymentStore:
    if db.get_backend() == db.MEMORY_BACKEND:
        logger.info("Using in-memory payment store")
        return MemoryPaymentStore()
    return SqlPaymentStore(database_url)
