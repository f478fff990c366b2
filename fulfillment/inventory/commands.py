"""
Inventory Service — command handlers

Reserve and release stock for an order. Both run inside a single store
transaction, so a request either applies to every line or to none.

Reserve is the saga's first step. Release is its compensating action: it is
trusted and not matched against a prior reservation, so releasing the same
items twice credits the stock twice.
"""

import logging
from collections.abc import Sequence

from fulfillment.common.errors import InsufficientInventory, ProductNotFound
from fulfillment.common.schema import ProductQuantity

from .store import InventoryStore

logger = logging.getLogger(__name__)


async def reserve_inventory(
    store: InventoryStore,
    order_id: str,
    products: Sequence[ProductQuantity],
) -> None:
    """
    Reserve every line or none.

    1. Lock the product row (held until the transaction ends)
    2. Decrement only if the row still holds the requested quantity
    3. Otherwise abort the whole transaction
    """
    # Lock rows in a stable order so overlapping multi-item reservations cannot deadlock.
    ordered = sorted(products, key=lambda p: p.product_id)

    async with store.transaction() as tx:
        for product in ordered:
            current = await tx.get_for_update(product.product_id)
            if current is None:
                logger.info(
                    "[order=%s] reserve rejected: product %s not found", order_id, product.product_id
                )
                raise ProductNotFound(f"Product {product.product_id} not found")

            if not await tx.decrement(product.product_id, product.quantity):
                logger.info(
                    "[order=%s] reserve rejected: %s have=%d need=%d",
                    order_id, product.product_id, current, product.quantity,
                )
                raise InsufficientInventory(
                    f"Insufficient inventory for {product.product_id}: "
                    f"requested={product.quantity}, available={current}"
                )

    logger.info(
        "[order=%s] inventory reserved: %s",
        order_id, ", ".join(f"{p.product_id}x{p.quantity}" for p in products),
    )


async def release_inventory(
    store: InventoryStore,
    order_id: str,
    products: Sequence[ProductQuantity],
) -> None:
    """Credit the quantities back (compensation). Unknown products are skipped."""
    ordered = sorted(products, key=lambda p: p.product_id)

    async with store.transaction() as tx:
        for product in ordered:
            if not await tx.increment(product.product_id, product.quantity):
                logger.warning(
                    "[order=%s] release skipped: product %s not found", order_id, product.product_id
                )

    logger.info(
        "[order=%s] inventory released: %s",
        order_id, ", ".join(f"{p.product_id}x{p.quantity}" for p in products),
    )
