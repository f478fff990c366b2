"""
Saga Orchestrator — order fulfillment saga

Orchestration-style saga: one coordinator drives each participant service in
turn. A failed step triggers compensating actions for the steps that already
committed, in reverse order, and the order ends FAILED.

  Flow:
  ┌──────────────────────────────────────────────────────────────┐
  │  1. Inventory Service: reserve the order's line items        │
  │     └─ failure → order FAILED (nothing to compensate)        │
  │  2. Payment Service: process the payment                     │
  │     └─ failure → release reserved items (compensation)       │
  │                  → order FAILED                              │
  │  3. Order status → COMPLETED                                 │
  └──────────────────────────────────────────────────────────────┘

The execution context (what has been reserved, the saga log) lives only in
memory for one run. If the process dies between a committed step and the
final status write, the order stays PENDING.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone

from fulfillment.common.errors import ServiceError
from fulfillment.common.schema import ProductQuantity
from fulfillment.order import commands as order_commands
from fulfillment.order.aggregate import OrderStatus
from fulfillment.order.models import Order
from fulfillment.order.store import OrderStore

from .clients import InventoryClient, PaymentClient, StepFailed

logger = logging.getLogger(__name__)


@dataclass
class SagaContext:
    order: Order
    reserved: list[ProductQuantity] = field(default_factory=list)
    saga_log: list[dict] = field(default_factory=list)

    def record(self, action: str) -> dict:
        entry = {
            "step": len(self.saga_log) + 1,
            "action": action,
            "status": "EXECUTING",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        self.saga_log.append(entry)
        return entry


@dataclass
class SagaResult:
    order_id: str
    status: OrderStatus
    saga_log: list[dict]

    @property
    def success(self) -> bool:
        return self.status is OrderStatus.COMPLETED


class SagaStep(ABC):
    name: str

    @abstractmethod
    async def execute(self, ctx: SagaContext) -> None: ...

    @abstractmethod
    async def compensate(self, ctx: SagaContext) -> None: ...


class ReserveInventory(SagaStep):
    name = "ReserveInventory"

    def __init__(self, inventory: InventoryClient) -> None:
        self.inventory = inventory

    async def execute(self, ctx: SagaContext) -> None:
        products = [
            ProductQuantity(product_id=item.product_id, quantity=item.quantity)
            for item in ctx.order.line_items
        ]
        await self.inventory.reserve(ctx.order.id, products)
        ctx.reserved = products

    async def compensate(self, ctx: SagaContext) -> None:
        await self.inventory.release(ctx.order.id, ctx.reserved)


class ProcessPayment(SagaStep):
    name = "ProcessPayment"

    def __init__(self, payment: PaymentClient) -> None:
        self.payment = payment

    async def execute(self, ctx: SagaContext) -> None:
        await self.payment.process(ctx.order.id, ctx.order.amount, ctx.order.user_id)

    async def compensate(self, ctx: SagaContext) -> None:
        await self.payment.rollback(ctx.order.id)


class OrderSagaOrchestrator:
    """Drives the fulfillment steps of one order per execute() call."""

    def __init__(
        self,
        inventory: InventoryClient,
        payment: PaymentClient,
        order_store: OrderStore,
    ) -> None:
        self.order_store = order_store
        self.steps: list[SagaStep] = [ReserveInventory(inventory), ProcessPayment(payment)]

    async def execute(self, order: Order) -> SagaResult:
        """
        Run every step in sequence; on the first failure compensate the
        completed steps in reverse order and mark the order FAILED.
        """
        ctx = SagaContext(order=order)
        completed: list[SagaStep] = []
        logger.info("[order=%s] SAGA START user=%s amount=%s", order.id, order.user_id, order.amount)

        for step in self.steps:
            entry = ctx.record(step.name)
            try:
                await step.execute(ctx)
            except StepFailed as e:
                entry["status"] = "FAILED"
                entry["error"] = str(e)
                logger.warning("[order=%s] STEP %s FAILED: %s", order.id, step.name, e)
                await self._compensate(ctx, completed)
                return await self._finish(ctx, OrderStatus.FAILED)

            entry["status"] = "COMPLETED"
            completed.append(step)
            logger.info("[order=%s] STEP %s OK", order.id, step.name)

        return await self._finish(ctx, OrderStatus.COMPLETED)

    async def _compensate(self, ctx: SagaContext, completed: list[SagaStep]) -> None:
        """Best-effort: a failed compensation is logged and the next one still runs."""
        for step in reversed(completed):
            entry = ctx.record(f"{step.name} (COMPENSATING)")
            try:
                await step.compensate(ctx)
            except StepFailed as e:
                entry["status"] = "FAILED"
                entry["error"] = str(e)
                logger.error("[order=%s] COMPENSATION FAILED at %s: %s", ctx.order.id, step.name, e)
                continue
            entry["status"] = "COMPLETED"
            logger.info("[order=%s] COMPENSATE %s OK", ctx.order.id, step.name)

    async def _finish(self, ctx: SagaContext, status: OrderStatus) -> SagaResult:
        try:
            await order_commands.update_order_status(self.order_store, ctx.order.id, status)
        except ServiceError as e:
            logger.error("[order=%s] Failed to update order status: %s", ctx.order.id, e.message)

        logger.info("[order=%s] SAGA END (%s)", ctx.order.id, status.value)
        return SagaResult(order_id=ctx.order.id, status=status, saga_log=ctx.saga_log)
