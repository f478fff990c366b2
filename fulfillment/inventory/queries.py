"""
Inventory Service — query handlers (read side)
"""

from .models import InventoryRecord
from .store import InventoryStore


async def get_product(store: InventoryStore, product_id: str) -> InventoryRecord | None:
    quantity = await store.get(product_id)
    if quantity is None:
        return None
    return InventoryRecord(product_id=product_id, quantity=quantity)


async def list_products(store: InventoryStore) -> list[InventoryRecord]:
    return [
        InventoryRecord(product_id=product_id, quantity=quantity)
        for product_id, quantity in await store.list_all()
    ]
