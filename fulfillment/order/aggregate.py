"""
Order Service — order status state machine

    PENDING → COMPLETED  (inventory reserved and payment processed)
    PENDING → FAILED     (any saga step failed)

Both targets are terminal: an order never re-enters PENDING and never moves
between COMPLETED and FAILED.
"""

from enum import Enum

from fulfillment.common.errors import InvalidTransition


class OrderStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.COMPLETED, OrderStatus.FAILED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.FAILED: frozenset(),
}


def is_terminal(status: OrderStatus) -> bool:
    return not TRANSITIONS[status]


def check_transition(order_id: str, current: OrderStatus, target: OrderStatus) -> None:
    if target not in TRANSITIONS[current]:
        raise InvalidTransition(
            f"Order {order_id} cannot move from {current.value} to {target.value}"
        )
