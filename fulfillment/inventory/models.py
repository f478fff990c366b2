"""
Inventory Service — request / response models
"""

from fulfillment.common.schema import CamelModel, OrderId, ProductQuantity


class ReserveRequest(CamelModel):
    """Body of both /reserve and /rollback."""

    order_id: OrderId
    products: list[ProductQuantity]


class InventoryRecord(CamelModel):
    product_id: str
    quantity: int


class MessageResponse(CamelModel):
    message: str
