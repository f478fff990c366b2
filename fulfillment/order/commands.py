"""
Order Service — command handlers

create_order persists the order and hands it to the saga runner only after
the store transaction has committed. The caller gets the PENDING order back
immediately; the saga outcome is observable only by reading the order later.
"""

import logging
import uuid
from collections.abc import Sequence
from decimal import Decimal
from typing import TYPE_CHECKING

from .aggregate import OrderStatus
from .models import LineItem, Order
from .store import OrderStore

if TYPE_CHECKING:
    from fulfillment.saga.runner import SagaRunner

logger = logging.getLogger(__name__)


async def create_order(
    store: OrderStore,
    runner: "SagaRunner",
    user_id: str,
    amount: Decimal,
    line_items: Sequence[LineItem],
) -> Order:
    order = Order(
        id=str(uuid.uuid4()),
        user_id=user_id,
        amount=amount,
        status=OrderStatus.PENDING,
        line_items=list(line_items),
    )
    await store.create(order)
    logger.info(
        "[order=%s] order created: user=%s amount=%s items=%d",
        order.id, user_id, amount, len(order.line_items),
    )

    runner.submit(order)
    return order


async def update_order_status(store: OrderStore, order_id: str, status: OrderStatus) -> Order:
    """Final status write of the saga (PENDING → COMPLETED | FAILED)."""
    order = await store.update_status(order_id, status)
    logger.info("[order=%s] status updated to: %s", order_id, status.value)
    return order
