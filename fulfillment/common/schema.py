"""
Wire-format helpers shared by all services.

Fields are snake_case in Python and camelCase on the wire. Money is kept as
Decimal internally and rendered as a JSON number.

The length and precision limits match the columns they are stored in
(String(36), String(64), Numeric(12, 2)), so oversized input is a 400 rather
than a failed transaction.
"""

from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

Money = Annotated[
    Decimal,
    Field(max_digits=12, decimal_places=2),
    PlainSerializer(float, return_type=float, when_used="json"),
]

OrderId = Annotated[str, Field(min_length=1, max_length=36)]
UserId = Annotated[str, Field(min_length=1, max_length=64)]
ProductId = Annotated[str, Field(min_length=1, max_length=64)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProductQuantity(CamelModel):
    """One line of a reserve/rollback request."""

    product_id: ProductId
    quantity: int = Field(gt=0)
