"""Background reconciliation for orders.

Handles:
- Releasing stock held by orders that were never paid
- Catching late payments before giving up on an order
"""

from datetime import datetime, timedelta
from typing import Callable, Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.errors import InvalidTransition, PaymentVerificationFailed
from libs.common.logging import get_logger
from libs.db.config import AsyncSessionLocal
from services.communications_service.services.notifier import NotificationSink
from services.orders_service.models import Order, OrderStatus, PaymentMethod
from services.orders_service.paystack_client import (
    PaymentGateway,
    PaystackClient,
    PaystackError,
)
from services.orders_service.services.order_workflow import (
    REASON_PAYMENT_TIMEOUT,
    SYSTEM_ACTOR,
    cancel_order,
    process_payment,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


async def _paid_upstream(
    db: AsyncSession,
    order: Order,
    gateway: PaymentGateway,
    notifier: Optional[NotificationSink],
) -> bool:
    """Check Paystack once more before timing an order out."""
    try:
        result = await gateway.verify_collection(order.payment_reference)
    except PaystackError as e:
        logger.warning(
            "Pending order verify failed for %s: %s", order.payment_reference, e
        )
        return False
    if not result.success:
        return False

    try:
        await process_payment(
            db,
            order.id,
            order.payment_reference,
            result.amount,
            gateway=gateway,
            notifier=notifier,
        )
    except (InvalidTransition, PaymentVerificationFailed) as e:
        logger.warning("Late payment for order %s not applied: %s", order.id, e)
        await db.rollback()
        return False
    return True


async def expire_unpaid_orders(
    *,
    session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
    gateway: Optional[PaymentGateway] = None,
    notifier: Optional[NotificationSink] = None,
    now: Optional[datetime] = None,
) -> int:
    """Cancel orders stuck in pending_payment past the TTL. Returns the count."""
    settings = get_settings()
    now = now or utc_now()
    cutoff = now - timedelta(minutes=settings.PENDING_PAYMENT_TTL_MINUTES)
    if gateway is None and settings.paystack_enabled:
        gateway = PaystackClient()
    cancelled = 0

    async with session_factory() as db:
        result = await db.execute(
            select(Order.id, Order.payment_method)
            .where(
                Order.status == OrderStatus.PENDING_PAYMENT,
                Order.created_at <= cutoff,
            )
            .order_by(Order.created_at.asc())
            .limit(200)
        )
        stale = list(result.all())

        for order_id, payment_method in stale:
            if gateway is not None and payment_method == PaymentMethod.PAYSTACK:
                order = await db.get(Order, order_id)
                if await _paid_upstream(db, order, gateway, notifier):
                    continue
            try:
                await cancel_order(
                    db,
                    order_id,
                    reason=REASON_PAYMENT_TIMEOUT,
                    actor=SYSTEM_ACTOR,
                    gateway=gateway,
                    notifier=notifier,
                )
            except InvalidTransition:
                # Paid or cancelled by someone else since the query ran
                await db.rollback()
                continue
            cancelled += 1

    if cancelled:
        logger.info("Cancelled %d unpaid orders", cancelled)
    return cancelled
