"""Pytest fixtures: stores for every backend and the wired services."""

import logging

import httpx
import pytest

from fulfillment.inventory.main import create_app as create_inventory_app
from fulfillment.inventory.store import MemoryInventoryStore, SqlInventoryStore
from fulfillment.order.main import create_app as create_order_app
from fulfillment.order.store import MemoryOrderStore, SqlOrderStore
from fulfillment.payment.main import create_app as create_payment_app
from fulfillment.payment.store import MemoryPaymentStore, SqlPaymentStore
from fulfillment.saga.clients import InventoryClient, PaymentClient
from fulfillment.saga.orchestrator import OrderSagaOrchestrator
from fulfillment.saga.runner import SagaRunner

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def sqlite_url(tmp_path, name: str) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / name}.db"


# ── Stores ───────────────────────────────────────


@pytest.fixture(params=["memory", "sql"])
async def inventory_store(request, tmp_path):
    if request.param == "memory":
        store = MemoryInventoryStore()
    else:
        store = SqlInventoryStore(sqlite_url(tmp_path, "inventory"))
    await store.open()
    await store.seed("P1", 5)
    await store.seed("P2", 3)
    yield store
    await store.close()


@pytest.fixture(params=["memory", "sql"])
async def order_store(request, tmp_path):
    if request.param == "memory":
        store = MemoryOrderStore()
    else:
        store = SqlOrderStore(sqlite_url(tmp_path, "orders"))
    await store.open()
    yield store
    await store.close()


@pytest.fixture(params=["memory", "sql"])
async def payment_store(request, tmp_path):
    if request.param == "memory":
        store = MemoryPaymentStore()
    else:
        store = SqlPaymentStore(sqlite_url(tmp_path, "payments"))
    await store.open()
    yield store
    await store.close()


# ── Wired services (in-process over ASGI) ────────


class Cluster:
    """Three services on SQLite, talking to each other in-process."""

    def __init__(self, tmp_path) -> None:
        self.inventory_store = SqlInventoryStore(sqlite_url(tmp_path, "inventory"))
        self.payment_store = SqlPaymentStore(sqlite_url(tmp_path, "payments"))
        self.order_store = SqlOrderStore(sqlite_url(tmp_path, "orders"))

        self.inventory_app = create_inventory_app(store=self.inventory_store)
        self.payment_app = create_payment_app(store=self.payment_store)

        self.inventory_http = httpx.AsyncClient(
            transport=httpx.ASGITransport(app=self.inventory_app), base_url="http://inventory"
        )
        self.payment_http = httpx.AsyncClient(
            transport=httpx.ASGITransport(app=self.payment_app), base_url="http://payment"
        )
        self.runner = SagaRunner(
            OrderSagaOrchestrator(
                InventoryClient("http://inventory", self.inventory_http),
                PaymentClient("http://payment", self.payment_http),
                self.order_store,
            )
        )
        self.order_app = create_order_app(store=self.order_store, runner=self.runner)
        self.order_http = httpx.AsyncClient(
            transport=httpx.ASGITransport(app=self.order_app), base_url="http://order"
        )

    async def open(self) -> None:
        for store in (self.inventory_store, self.payment_store, self.order_store):
            await store.open()

    async def close(self) -> None:
        await self.runner.shutdown()
        for client in (self.order_http, self.inventory_http, self.payment_http):
            await client.aclose()
        for store in (self.inventory_store, self.payment_store, self.order_store):
            await store.close()


@pytest.fixture
async def cluster(tmp_path):
    c = Cluster(tmp_path)
    await c.open()
    yield c
    await c.close()
