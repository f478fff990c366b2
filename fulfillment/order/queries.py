"""
Order Service — query handlers (read side)

Polling an order is the only way a client learns how its saga ended.
"""

from fulfillment.common.errors import OrderNotFound

from .models import Order
from .store import OrderStore


async def get_order(store: OrderStore, order_id: str) -> Order:
    order = await store.get(order_id)
    if order is None:
        raise OrderNotFound(f"Order {order_id} not found")
    return order


async def list_orders(store: OrderStore) -> list[Order]:
    return await store.list_all()
