"""Background saga execution: wait, results, cancellation at shutdown."""

import asyncio
from decimal import Decimal

import pytest

from fakes import FakeInventoryClient, FakePaymentClient
from fulfillment.order.aggregate import OrderStatus
from fulfillment.order.models import LineItem, Order
from fulfillment.order.store import MemoryOrderStore
from fulfillment.saga.orchestrator import OrderSagaOrchestrator
from fulfillment.saga.runner import SagaRunner


class BlockingInventoryClient(FakeInventoryClient):
    """Reserve hangs until released, so the saga stays in flight."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = asyncio.Event()
        self.proceed = asyncio.Event()

    async def reserve(self, order_id, products) -> None:
        self.entered.set()
        await self.proceed.wait()
        await super().reserve(order_id, products)


def make_order(order_id: str) -> Order:
    return Order(
        id=order_id,
        user_id="u1",
        amount=Decimal("10"),
        status=OrderStatus.PENDING,
        line_items=[LineItem(product_id="P1", quantity=1, price=Decimal("10"))],
    )


def _runner_with(inventory) -> tuple[SagaRunner, MemoryOrderStore]:
    store = MemoryOrderStore()
    runner = SagaRunner(OrderSagaOrchestrator(inventory, FakePaymentClient(), store))
    return runner, store


async def test_wait_returns_result_and_keeps_it():
    runner, store = _runner_with(FakeInventoryClient())
    order = make_order("o1")
    await store.create(order)

    runner.submit(order)
    result = await runner.wait("o1")

    assert result.status is OrderStatus.COMPLETED
    assert runner.in_flight == 0
    # Finished sagas can still be looked up.
    assert (await runner.wait("o1")) is result


async def test_wait_unknown_order_raises_key_error():
    runner, _ = _runner_with(FakeInventoryClient())

    with pytest.raises(KeyError):
        await runner.wait("nope")


async def test_shutdown_cancels_and_leaves_order_pending():
    inventory = BlockingInventoryClient()
    runner, store = _runner_with(inventory)
    order = make_order("o1")
    await store.create(order)

    runner.submit(order)
    await inventory.entered.wait()
    assert runner.in_flight == 1

    waiter = asyncio.create_task(runner.wait("o1"))
    await asyncio.sleep(0)
    await runner.shutdown()

    assert await waiter is None
    assert runner.in_flight == 0
    assert (await store.get("o1")).status is OrderStatus.PENDING


async def test_results_are_bounded():
    store = MemoryOrderStore()
    runner = SagaRunner(
        OrderSagaOrchestrator(FakeInventoryClient(), FakePaymentClient(), store), keep_results=2
    )
    for i in range(3):
        order = make_order(f"o{i}")
        await store.create(order)
        runner.submit(order)
        await runner.wait(order.id)

    with pytest.raises(KeyError):
        await runner.wait("o0")
    assert (await runner.wait("o2")).success
