"""
Payment Service — command handlers

Processing is a stub: there is no gateway call, so the business check cannot
fail. The record is still created in PROCESSING and finalized to COMPLETED
inside the same transaction, which is where a real gateway call would sit.
"""

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from .models import Payment, PaymentStatus
from .store import PaymentStore

logger = logging.getLogger(__name__)


async def process_payment(
    store: PaymentStore,
    order_id: str,
    amount: Decimal,
    user_id: str,
) -> Payment:
    payment = Payment(
        id=str(uuid.uuid4()),
        order_id=order_id,
        amount=amount,
        status=PaymentStatus.PROCESSING,
        created_at=datetime.now(timezone.utc),
    )

    async with store.transaction() as tx:
        await tx.insert(payment)
        payment.status = PaymentStatus.COMPLETED
        await tx.set_status(payment.id, payment.status)

    logger.info(
        "[order=%s] payment %s completed for user=%s amount=%s",
        order_id, payment.id, user_id, amount,
    )
    return payment


async def rollback_payment(store: PaymentStore, order_id: str) -> None:
    """Mark the order's payments failed. Idempotent; no funds are moved."""
    touched = await store.mark_failed(order_id)
    if touched:
        logger.info("[order=%s] payment rolled back (%d record(s))", order_id, touched)
    else:
        logger.warning("[order=%s] payment rollback: no payment on record", order_id)
