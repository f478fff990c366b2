"""
Saga runner — background execution of order sagas

The order endpoint returns before the saga resolves. Each saga runs as its
own asyncio task, keyed by order id, so that it can be awaited (wait) and
cancelled at shutdown instead of being an unobserved fire-and-forget call.
A cancelled saga leaves its order PENDING.
"""

import asyncio
import logging
from collections import OrderedDict

from fulfillment.order.models import Order

from .orchestrator import OrderSagaOrchestrator, SagaResult

logger = logging.getLogger(__name__)


class SagaRunner:
    def __init__(self, orchestrator: OrderSagaOrchestrator, keep_results: int = 1000) -> None:
        self.orchestrator = orchestrator
        self.keep_results = keep_results
        self._tasks: dict[str, asyncio.Task[SagaResult]] = {}
        self._results: OrderedDict[str, SagaResult] = OrderedDict()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def submit(self, order: Order) -> asyncio.Task[SagaResult]:
        task = asyncio.create_task(self._run(order), name=f"saga-{order.id}")
        self._tasks[order.id] = task
        task.add_done_callback(lambda t, order_id=order.id: self._on_done(order_id, t))
        return task

    async def _run(self, order: Order) -> SagaResult:
        try:
            return await self.orchestrator.execute(order)
        except asyncio.CancelledError:
            logger.warning("[order=%s] saga cancelled; order left pending", order.id)
            raise

    def _on_done(self, order_id: str, task: asyncio.Task[SagaResult]) -> None:
        self._tasks.pop(order_id, None)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("[order=%s] saga crashed; order left pending", order_id, exc_info=exc)
            return
        self._results[order_id] = task.result()
        while len(self._results) > self.keep_results:
            self._results.popitem(last=False)

    async def wait(self, order_id: str) -> SagaResult | None:
        """
        Wait for the saga of an order to finish and return its result.

        Returns None if the saga was cancelled. Re-raises an unexpected saga
        error. Raises KeyError for an order this runner does not know about.
        """
        task = self._tasks.get(order_id)
        if task is None:
            return self._results[order_id]

        await asyncio.wait({task})
        if task.cancelled():
            return None
        return task.result()

    async def shutdown(self) -> None:
        """Cancel every in-flight saga and wait for them to unwind."""
        tasks = list(self._tasks.values())
        if tasks:
            logger.info("Cancelling %d in-flight saga(s)", len(tasks))
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
