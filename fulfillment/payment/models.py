"""
Payment Service — payment record and request models

State transitions:
    PROCESSING → COMPLETED  (gateway accepted; always, in this stub)
    PROCESSING → FAILED

A later rollback may still overwrite the status with FAILED, keyed by order id.
"""

from datetime import datetime
from enum import Enum

from pydantic import Field

from fulfillment.common.schema import CamelModel, Money, OrderId, UserId


class PaymentStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Payment(CamelModel):
    id: str
    order_id: str
    amount: Money
    status: PaymentStatus
    created_at: datetime


class ProcessPaymentRequest(CamelModel):
    order_id: OrderId
    amount: Money = Field(ge=0)
    user_id: UserId


class RollbackPaymentRequest(CamelModel):
    order_id: OrderId


class MessageResponse(CamelModel):
    message: str
