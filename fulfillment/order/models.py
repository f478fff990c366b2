"""
Order Service — order and request models
"""

from pydantic import Field

from fulfillment.common.schema import CamelModel, Money, ProductId, UserId

from .aggregate import OrderStatus


class LineItem(CamelModel):
    product_id: ProductId
    quantity: int = Field(gt=0)
    price: Money = Field(ge=0)


class Order(CamelModel):
    id: str
    user_id: str
    amount: Money
    status: OrderStatus
    line_items: list[LineItem]


class CreateOrderRequest(CamelModel):
    user_id: UserId
    amount: Money = Field(ge=0)
    line_items: list[LineItem] = Field(min_length=1)
