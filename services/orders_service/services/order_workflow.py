"""Order workflow: checkout, payment, fulfilment and cancellation.

States::

    pending_payment -> paid -> confirmed -> ready_for_pickup -> completed
                 \\________\\_________\\____________\\-> cancelled / disputed

Every status change is a compare-and-set UPDATE on ``(id, status)``. When two
callers race on the same order exactly one wins; the loser gets
``InvalidTransition`` and none of its side effects run.

Ledger and inventory changes ride in the same database transaction as the
status change that causes them. Notifications go out after commit and never
fail the operation.
"""

import secrets
import string
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from libs.common.config import get_settings
from libs.common.currency import naira_to_points, points_to_naira, to_money
from libs.common.datetime_utils import as_utc, utc_now
from libs.common.errors import (
    CheckoutConflict,
    InsufficientPoints,
    InvalidCart,
    InvalidPickupCode,
    InvalidTransition,
    ItemUnavailable,
    NotAuthorized,
    OrderNotFound,
    PaymentInitializationFailed,
    PaymentVerificationFailed,
    ReservationFailed,
)
from libs.common.logging import get_logger
from services.communications_service.models import NotificationCategory
from services.communications_service.services.notifier import (
    NotificationSink,
    get_notifier,
)
from services.listings_service.models import Business, ListingStatus
from services.listings_service.services import inventory
from services.listings_service.services.listing_ops import get_listing, quote_unit_price
from services.orders_service.models import (
    Order,
    OrderItem,
    OrderStatus,
    OrderStatusEvent,
    PaymentMethod,
)
from services.orders_service.paystack_client import (
    PaymentGateway,
    PaystackClient,
    PaystackError,
)
from services.wallet_service.models import PointsReason, TransactionType
from services.wallet_service.services.ledger_ops import (
    add_points,
    add_wallet_transaction,
    get_or_create_wallet,
    lock_wallet,
    record_meals_rescued,
)
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

logger = get_logger(__name__)

ZERO = Decimal("0.00")
PICKUP_CODE_ALPHABET = string.ascii_uppercase + string.digits
PICKUP_CODE_LENGTH = 6
CHECKOUT_ATTEMPTS = 3
SYSTEM_ACTOR = "system"

REASON_PAYMENT_TIMEOUT = "payment_timeout"
REASON_PAYMENT_INIT_FAILED = "payment_initialization_failed"

TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING_PAYMENT: frozenset(
        {OrderStatus.PAID, OrderStatus.CANCELLED, OrderStatus.DISPUTED}
    ),
    OrderStatus.PAID: frozenset(
        {
            OrderStatus.CONFIRMED,
            OrderStatus.READY_FOR_PICKUP,
            OrderStatus.CANCELLED,
            OrderStatus.DISPUTED,
        }
    ),
    OrderStatus.CONFIRMED: frozenset(
        {OrderStatus.READY_FOR_PICKUP, OrderStatus.CANCELLED, OrderStatus.DISPUTED}
    ),
    OrderStatus.READY_FOR_PICKUP: frozenset(
        {OrderStatus.COMPLETED, OrderStatus.CANCELLED, OrderStatus.DISPUTED}
    ),
    OrderStatus.DISPUTED: frozenset({OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# Only payment confirmation and the admin dispute path reach these.
RESTRICTED_TARGETS = frozenset({OrderStatus.PAID, OrderStatus.DISPUTED})

STATUS_MESSAGES = {
    OrderStatus.CONFIRMED: "The business has confirmed your order.",
    OrderStatus.READY_FOR_PICKUP: "Your order is ready. Show code {code} at pickup.",
}


@dataclass(frozen=True)
class CartLine:
    listing_id: uuid.UUID
    quantity: int


# ============================================================================
# HELPERS
# ============================================================================


def _merge_cart(cart: Sequence[CartLine]) -> dict[uuid.UUID, int]:
    if not cart:
        raise InvalidCart("Cart is empty")
    merged: dict[uuid.UUID, int] = {}
    for line in cart:
        if line.quantity <= 0:
            raise InvalidCart(
                "Quantities must be positive", listing_id=line.listing_id
            )
        merged[line.listing_id] = merged.get(line.listing_id, 0) + line.quantity
    return merged


async def _generate_pickup_code(db: AsyncSession) -> str:
    """Random 6-character code not used by any existing order."""
    for _ in range(10):
        code = "".join(
            secrets.choice(PICKUP_CODE_ALPHABET) for _ in range(PICKUP_CODE_LENGTH)
        )
        taken = await db.scalar(select(Order.id).where(Order.pickup_code == code))
        if taken is None:
            return code
    raise CheckoutConflict("Could not generate a unique pickup code")


def _payment_reference(order_id: uuid.UUID) -> str:
    return f"looper_{order_id.hex}"


async def _business_owner(db: AsyncSession, business_id: uuid.UUID) -> Optional[str]:
    return await db.scalar(
        select(Business.owner_auth_id).where(Business.id == business_id)
    )


async def _transition(
    db: AsyncSession,
    order: Order,
    to_status: OrderStatus,
    *,
    actor: str,
    reason: Optional[str] = None,
    **values,
) -> None:
    """Compare-and-set the order status; raises InvalidTransition on conflict."""
    from_status = order.status
    if to_status not in TRANSITIONS[from_status]:
        raise InvalidTransition(
            f"Cannot move order from {from_status.value} to {to_status.value}",
            order_id=order.id,
            from_status=from_status.value,
            to_status=to_status.value,
        )

    values["status"] = to_status
    result = await db.execute(
        update(Order)
        .where(Order.id == order.id, Order.status == from_status)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidTransition(
            "Order status changed concurrently",
            order_id=order.id,
            from_status=from_status.value,
            to_status=to_status.value,
        )

    for key, value in values.items():
        set_committed_value(order, key, value)
    db.add(
        OrderStatusEvent(
            order_id=order.id,
            from_status=from_status,
            to_status=to_status,
            actor=actor,
            reason=reason,
        )
    )
    await db.flush()
    logger.info(
        "Order %s %s -> %s by %s",
        order.id,
        from_status.value,
        to_status.value,
        actor,
    )


# ============================================================================
# READS
# ============================================================================


async def get_order(db: AsyncSession, order_id: uuid.UUID) -> Order:
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if not order:
        raise OrderNotFound(order_id=order_id)
    return order


async def get_order_by_reference(db: AsyncSession, reference: str) -> Order:
    result = await db.execute(
        select(Order)
        .where(Order.payment_reference == reference)
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if not order:
        raise OrderNotFound(reference=reference)
    return order


async def get_order_for_consumer(
    db: AsyncSession, order_id: uuid.UUID, user_id: str, *, is_admin: bool = False
) -> Order:
    order = await get_order(db, order_id)
    if not is_admin and order.consumer_id != user_id:
        raise NotAuthorized(order_id=order_id)
    return order


async def list_consumer_orders(
    db: AsyncSession,
    consumer_id: str,
    *,
    status: Optional[OrderStatus] = None,
    skip: int = 0,
    limit: int = 50,
) -> list[Order]:
    query = select(Order).where(Order.consumer_id == consumer_id)
    if status is not None:
        query = query.where(Order.status == status)
    result = await db.execute(
        query.order_by(Order.created_at.desc()).offset(skip).limit(limit)
    )
    return list(result.scalars().all())


async def list_business_orders(
    db: AsyncSession,
    business_id: uuid.UUID,
    *,
    status: Optional[OrderStatus] = None,
    skip: int = 0,
    limit: int = 50,
) -> list[Order]:
    query = select(Order).where(Order.business_id == business_id)
    if status is not None:
        query = query.where(Order.status == status)
    result = await db.execute(
        query.order_by(Order.created_at.desc()).offset(skip).limit(limit)
    )
    return list(result.scalars().all())


# ============================================================================
# CHECKOUT
# ============================================================================


async def _place_order(
    db: AsyncSession,
    consumer_id: Optional[str],
    lines: dict[uuid.UUID, int],
    *,
    use_wallet: bool,
    points_to_redeem: int,
    payer_email: Optional[str],
    is_donation: bool,
    special_instructions: Optional[str],
    now: datetime,
) -> Order:
    """One checkout attempt, committed as a single transaction."""
    settings = get_settings()
    order_id = uuid.uuid4()
    reservations: list[tuple[uuid.UUID, int]] = []

    try:
        # 1-2. Validate availability and price every line authoritatively
        items: list[OrderItem] = []
        business_id: Optional[uuid.UUID] = None
        for listing_id, quantity in lines.items():
            listing = await get_listing(db, listing_id)
            if (
                listing.status != ListingStatus.ACTIVE
                or listing.available_quantity < quantity
                or as_utc(listing.pickup_window_end) <= as_utc(now)
            ):
                raise ItemUnavailable(
                    listing_id=listing_id,
                    requested=quantity,
                    available=listing.available_quantity,
                )
            if business_id is None:
                business_id = listing.business_id
            elif listing.business_id != business_id:
                raise InvalidCart("All items must come from one business")

            unit_price = quote_unit_price(listing, quantity, now=now)
            items.append(
                OrderItem(
                    listing_id=listing_id,
                    title=listing.title,
                    quantity=quantity,
                    unit_price=unit_price,
                    line_total=to_money(unit_price * quantity),
                )
            )

        subtotal = to_money(sum((item.line_total for item in items), ZERO))

        # 3. Points redemption (only as many points as the subtotal can absorb)
        points_used = 0
        points_discount = ZERO
        if points_to_redeem > 0:
            wallet = await get_or_create_wallet(db, consumer_id)
            if wallet.points_balance < points_to_redeem:
                raise InsufficientPoints(
                    f"You need {points_to_redeem} points but have "
                    f"{wallet.points_balance}",
                    user_id=consumer_id,
                )
            max_useful = int(subtotal * settings.POINTS_PER_NAIRA_DISCOUNT)
            points_used = min(points_to_redeem, max_useful)
            points_discount = min(
                points_to_naira(points_used, settings.POINTS_PER_NAIRA_DISCOUNT),
                subtotal,
            )
        total = max(subtotal - points_discount, ZERO)

        # 4. Reserve every line or none
        for item in items:
            if not await inventory.reserve(db, item.listing_id, item.quantity):
                for reserved_id, reserved_qty in reservations:
                    await inventory.release(db, reserved_id, reserved_qty)
                reservations.clear()
                raise ReservationFailed(
                    listing_id=item.listing_id, requested=item.quantity
                )
            reservations.append((item.listing_id, item.quantity))

        # 5. Persist
        order = Order(
            id=order_id,
            consumer_id=consumer_id,
            business_id=business_id,
            status=OrderStatus.PENDING_PAYMENT,
            subtotal_amount=subtotal,
            points_redeemed=points_used,
            points_discount_amount=points_discount,
            total_amount=total,
            wallet_amount_applied=ZERO,
            amount_due=total,
            paid_amount=ZERO,
            refunded_amount=ZERO,
            points_awarded=0,
            pickup_code=await _generate_pickup_code(db),
            is_donation=is_donation,
            special_instructions=special_instructions,
            items=items,
        )
        db.add(order)
        db.add(
            OrderStatusEvent(
                order_id=order_id,
                from_status=None,
                to_status=OrderStatus.PENDING_PAYMENT,
                actor=consumer_id or SYSTEM_ACTOR,
            )
        )
        await db.flush()

        if points_used:
            await add_points(
                db,
                user_id=consumer_id,
                delta=-points_used,
                reason=PointsReason.POINTS_REDEMPTION,
                order_id=order_id,
                idempotency_key=f"order-redeem-{order_id}",
            )

        # 6a. Immediate wallet deduction
        if use_wallet and total > 0:
            wallet = await lock_wallet(db, consumer_id)
            wallet_applied = min(to_money(wallet.balance), total)
            if wallet_applied > 0:
                await add_wallet_transaction(
                    db,
                    user_id=consumer_id,
                    amount=-wallet_applied,
                    transaction_type=TransactionType.PURCHASE,
                    source="order",
                    description=f"Payment for order {order_id}",
                    order_id=order_id,
                    idempotency_key=f"order-wallet-{order_id}",
                )
                order.wallet_amount_applied = wallet_applied
                order.amount_due = total - wallet_applied

        if order.amount_due == 0:
            order.status = OrderStatus.PAID
            order.payment_method = (
                PaymentMethod.WALLET
                if order.wallet_amount_applied > 0
                else PaymentMethod.POINTS
            )
            order.payment_reference = f"wallet_{order_id.hex}"
            order.paid_at = now
            db.add(
                OrderStatusEvent(
                    order_id=order_id,
                    from_status=OrderStatus.PENDING_PAYMENT,
                    to_status=OrderStatus.PAID,
                    actor=SYSTEM_ACTOR,
                    reason="covered by wallet/points",
                )
            )
        else:
            if not payer_email:
                raise InvalidCart("An email address is needed for card payment")
            order.payment_method = PaymentMethod.PAYSTACK
            order.payment_reference = _payment_reference(order_id)

        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return order


async def create_order(
    db: AsyncSession,
    consumer_id: Optional[str],
    cart: Sequence[CartLine],
    *,
    gateway: PaymentGateway,
    use_wallet: bool = False,
    points_to_redeem: int = 0,
    payer_email: Optional[str] = None,
    is_donation: bool = False,
    special_instructions: Optional[str] = None,
    notifier: Optional[NotificationSink] = None,
    now: Optional[datetime] = None,
) -> Order:
    """Validate, price, reserve, persist and start payment for a cart.

    Inventory is reserved line by line; if any line cannot be reserved the
    lines already reserved are released and ``ReservationFailed`` is raised.
    Any failure before commit rolls back every write made here, so no partial
    order, reservation or ledger entry survives. A pickup-code collision with
    a concurrent checkout rolls back and retries with a fresh code.
    """
    settings = get_settings()
    notifier = notifier or get_notifier()
    now = now or utc_now()
    lines = _merge_cart(cart)

    if consumer_id is None and (use_wallet or points_to_redeem):
        raise InvalidCart("Wallet and points need a signed-in consumer")
    if points_to_redeem < 0:
        raise InvalidCart("Points to redeem cannot be negative")

    order = None
    for attempt in range(1, CHECKOUT_ATTEMPTS + 1):
        try:
            order = await _place_order(
                db,
                consumer_id,
                lines,
                use_wallet=use_wallet,
                points_to_redeem=points_to_redeem,
                payer_email=payer_email,
                is_donation=is_donation,
                special_instructions=special_instructions,
                now=now,
            )
            break
        except IntegrityError as e:
            # Another checkout took the same pickup code between check and insert
            logger.warning(
                "Checkout attempt %d for %s hit a unique conflict: %s",
                attempt,
                consumer_id,
                e.orig,
            )
    if order is None:
        raise CheckoutConflict(consumer_id=consumer_id)

    logger.info(
        "Created order %s for %s: %d lines, total=%s due=%s",
        order.id,
        consumer_id,
        len(order.items),
        order.total_amount,
        order.amount_due,
    )

    # 6b. Hand off the remainder to the payment collaborator
    if order.status == OrderStatus.PENDING_PAYMENT:
        try:
            init = await gateway.initialize_collection(
                reference=order.payment_reference,
                amount=order.amount_due,
                payer_email=payer_email,
                metadata={
                    "type": "order",
                    "order_id": str(order.id),
                    "wallet_deduction": str(order.wallet_amount_applied),
                },
                callback_url=(
                    f"{settings.FRONTEND_URL.rstrip('/')}/orders/{order.id}/payment"
                ),
            )
        except Exception as e:
            logger.error("Failed to initialize payment for order %s: %s", order.id, e)
            await cancel_order(
                db,
                order.id,
                reason=REASON_PAYMENT_INIT_FAILED,
                actor=SYSTEM_ACTOR,
                gateway=gateway,
                notifier=notifier,
            )
            raise PaymentInitializationFailed(order_id=order.id) from e

        order.payment_authorization_url = init.authorization_url
        await db.commit()

    # 7. Notify
    await notifier.notify(
        consumer_id,
        "Order placed",
        f"Your pickup code is {order.pickup_code}.",
        NotificationCategory.ORDER_UPDATE,
        related_entity_id=str(order.id),
        related_entity_type="order",
    )
    if order.status == OrderStatus.PAID:
        await _notify_business_new_order(db, order, notifier)
    return order


async def _notify_business_new_order(
    db: AsyncSession, order: Order, notifier: NotificationSink
) -> None:
    owner = await _business_owner(db, order.business_id)
    await notifier.notify(
        owner,
        "New order",
        f"New paid order for {order.total_quantity} item(s), "
        f"total NGN {order.total_amount}.",
        NotificationCategory.ORDER_UPDATE,
        related_entity_id=str(order.id),
        related_entity_type="order",
    )


# ============================================================================
# PAYMENT
# ============================================================================


async def process_payment(
    db: AsyncSession,
    order_id: uuid.UUID,
    reference: str,
    amount: Optional[Decimal] = None,
    *,
    gateway: Optional[PaymentGateway] = None,
    notifier: Optional[NotificationSink] = None,
) -> Order:
    """pending_payment -> paid on confirmed collection. Idempotent per reference."""
    notifier = notifier or get_notifier()
    order = await get_order(db, order_id)

    if order.payment_reference and order.payment_reference != reference:
        raise PaymentVerificationFailed(
            "Payment reference does not match order", order_id=order_id
        )
    if order.paid_at is not None:
        logger.info("Order %s already paid (reference=%s)", order_id, reference)
        return order

    captured = to_money(amount) if amount is not None else order.amount_due
    if captured < order.amount_due:
        raise PaymentVerificationFailed(
            "Paid amount is less than the amount due",
            order_id=order_id,
            expected=order.amount_due,
            received=captured,
        )

    if order.status == OrderStatus.CANCELLED:
        # Money arrived after the order was cancelled (e.g. payment timeout)
        order.paid_amount = captured
        order.paid_at = utc_now()
        await _refund_capture(
            db, order, captured, reference=reference, gateway=gateway
        )
        await db.commit()
        return order

    if order.status == OrderStatus.DISPUTED:
        # Captured while on hold; record it so the resolving cancel refunds it
        paid = {
            "payment_reference": reference,
            "paid_amount": captured,
            "paid_at": utc_now(),
        }
        result = await db.execute(
            update(Order)
            .where(
                Order.id == order.id,
                Order.status == OrderStatus.DISPUTED,
                Order.paid_at.is_(None),
            )
            .values(**paid)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidTransition(
                "Order changed while recording payment", order_id=order.id
            )
        for key, value in paid.items():
            set_committed_value(order, key, value)
        await db.commit()
        logger.info(
            "Recorded payment %s of %s on disputed order %s",
            reference,
            captured,
            order.id,
        )
        return order

    await _transition(
        db,
        order,
        OrderStatus.PAID,
        actor=SYSTEM_ACTOR,
        reason="payment confirmed",
        payment_reference=reference,
        paid_amount=captured,
        paid_at=utc_now(),
    )
    await db.commit()

    await notifier.notify(
        order.consumer_id,
        "Payment confirmed",
        f"We received NGN {captured} for your order.",
        NotificationCategory.PAYMENT,
        related_entity_id=str(order.id),
        related_entity_type="order",
    )
    await _notify_business_new_order(db, order, notifier)
    return order


async def verify_and_process_payment(
    db: AsyncSession,
    reference: str,
    gateway: PaymentGateway,
    *,
    notifier: Optional[NotificationSink] = None,
) -> Order:
    """Ask the payment collaborator about ``reference`` and apply the result."""
    order = await get_order_by_reference(db, reference)
    if order.paid_at is not None:
        return order

    try:
        result = await gateway.verify_collection(reference)
    except PaystackError as e:
        logger.error("Paystack verify failed for %s: %s", reference, e.message)
        raise PaymentVerificationFailed(order_id=order.id) from e

    if not result.success:
        raise PaymentVerificationFailed(
            f"Payment not successful ({result.status})", order_id=order.id
        )
    return await process_payment(
        db, order.id, reference, result.amount, gateway=gateway, notifier=notifier
    )


async def handle_payment_webhook(
    db: AsyncSession,
    event: str,
    reference: str,
    metadata: Optional[dict] = None,
    amount: Optional[Decimal] = None,
    *,
    gateway: Optional[PaymentGateway] = None,
    notifier: Optional[NotificationSink] = None,
) -> Optional[Order]:
    """Map a verified Paystack event onto the workflow."""
    notifier = notifier or get_notifier()
    metadata = metadata or {}

    try:
        order_id = uuid.UUID(str(metadata["order_id"]))
    except (KeyError, ValueError):
        order = await get_order_by_reference(db, reference)
    else:
        order = await get_order(db, order_id)

    if event == "charge.success":
        return await process_payment(
            db, order.id, reference, amount, gateway=gateway, notifier=notifier
        )

    if event == "charge.failed":
        logger.info("Payment failed for order %s (reference=%s)", order.id, reference)
        await notifier.notify(
            order.consumer_id,
            "Payment failed",
            "Your payment failed. Please try again or contact support.",
            NotificationCategory.PAYMENT,
            related_entity_id=str(order.id),
            related_entity_type="order",
        )
        return order

    logger.info("Ignoring Paystack event %s for order %s", event, order.id)
    return None


# ============================================================================
# STATUS CHANGES
# ============================================================================


async def update_status(
    db: AsyncSession,
    order_id: uuid.UUID,
    new_status: OrderStatus,
    *,
    actor: str,
    reason: Optional[str] = None,
    gateway: Optional[PaymentGateway] = None,
    notifier: Optional[NotificationSink] = None,
) -> Order:
    """Business-driven transitions (confirm, ready, complete, cancel)."""
    if new_status in RESTRICTED_TARGETS:
        raise InvalidTransition(
            f"Orders cannot be set to {new_status.value} directly",
            order_id=order_id,
            to_status=new_status.value,
        )
    if new_status == OrderStatus.CANCELLED:
        return await cancel_order(
            db,
            order_id,
            reason=reason,
            actor=actor,
            gateway=gateway,
            notifier=notifier,
        )

    notifier = notifier or get_notifier()
    order = await get_order(db, order_id)
    if new_status == OrderStatus.COMPLETED:
        return await _complete(db, order, actor=actor, notifier=notifier)

    await _transition(db, order, new_status, actor=actor, reason=reason)
    await db.commit()

    message = STATUS_MESSAGES.get(new_status)
    if message:
        await notifier.notify(
            order.consumer_id,
            "Order update",
            message.format(code=order.pickup_code),
            NotificationCategory.ORDER_UPDATE,
            related_entity_id=str(order.id),
            related_entity_type="order",
        )
    return order


async def _complete(
    db: AsyncSession, order: Order, *, actor: str, notifier: NotificationSink
) -> Order:
    """The single completion path: transition, award points, count meals."""
    settings = get_settings()
    points = 0
    if order.consumer_id:
        points = naira_to_points(order.total_amount, settings.NAIRA_PER_POINT_EARNED)

    await _transition(
        db,
        order,
        OrderStatus.COMPLETED,
        actor=actor,
        completed_at=utc_now(),
        points_awarded=points,
    )

    if order.consumer_id:
        if points > 0:
            await add_points(
                db,
                user_id=order.consumer_id,
                delta=points,
                reason=PointsReason.ORDER_COMPLETION,
                order_id=order.id,
                idempotency_key=f"order-complete-{order.id}",
            )
        await record_meals_rescued(db, order.consumer_id, order.total_quantity)
    await db.commit()

    await notifier.notify(
        order.consumer_id,
        "Order completed",
        f"Thanks for rescuing food! You earned {points} points.",
        NotificationCategory.ORDER_UPDATE,
        related_entity_id=str(order.id),
        related_entity_type="order",
    )
    return order


async def verify_pickup(
    db: AsyncSession,
    order_id: uuid.UUID,
    supplied_code: str,
    *,
    actor: str,
    notifier: Optional[NotificationSink] = None,
) -> Order:
    """Complete an order when the consumer presents the right pickup code."""
    notifier = notifier or get_notifier()
    code = (supplied_code or "").strip().upper()
    result = await db.execute(
        select(Order)
        .where(Order.pickup_code == code)
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if order is None or order.id != order_id:
        raise InvalidPickupCode(order_id=order_id)
    if order.status != OrderStatus.READY_FOR_PICKUP:
        raise InvalidPickupCode(
            "Order is not ready for pickup",
            order_id=order_id,
            status=order.status.value,
        )
    return await _complete(db, order, actor=actor, notifier=notifier)


async def open_dispute(
    db: AsyncSession,
    order_id: uuid.UUID,
    *,
    reason: str,
    actor: str,
    notifier: Optional[NotificationSink] = None,
) -> Order:
    """Administrative hold on a non-terminal order. Resolved only by cancellation."""
    if not reason:
        raise InvalidTransition("A dispute reason is required", order_id=order_id)
    notifier = notifier or get_notifier()
    order = await get_order(db, order_id)
    await _transition(db, order, OrderStatus.DISPUTED, actor=actor, reason=reason)
    await db.commit()

    owner = await _business_owner(db, order.business_id)
    for user_id in (order.consumer_id, owner):
        await notifier.notify(
            user_id,
            "Order under review",
            f"Order {order.id} is on hold while we review: {reason}",
            NotificationCategory.ORDER_UPDATE,
            related_entity_id=str(order.id),
            related_entity_type="order",
        )
    return order


# ============================================================================
# CANCELLATION / COMPENSATION
# ============================================================================


async def _refund_capture(
    db: AsyncSession,
    order: Order,
    captured: Decimal,
    *,
    reference: str,
    gateway: Optional[PaymentGateway],
) -> None:
    """Give back money Paystack captured, to the wallet or via a Paystack refund."""
    if captured <= 0:
        return

    if get_settings().REFUND_TO_WALLET and order.consumer_id:
        await add_wallet_transaction(
            db,
            user_id=order.consumer_id,
            amount=captured,
            transaction_type=TransactionType.REFUND,
            source="order",
            description=f"Refund for cancelled order {order.id}",
            order_id=order.id,
            idempotency_key=f"order-refund-{order.id}",
            reference=reference,
        )
        order.refunded_amount = to_money(order.refunded_amount) + captured
        return

    gateway = gateway or PaystackClient()
    try:
        await gateway.create_refund(reference, captured)
    except PaystackError as e:
        logger.error(
            "Refund initiation failed for order %s (%s): %s",
            order.id,
            reference,
            e.message,
        )
        return
    order.refunded_amount = to_money(order.refunded_amount) + captured
    logger.info("Initiated Paystack refund of %s for order %s", captured, order.id)


async def cancel_order(
    db: AsyncSession,
    order_id: uuid.UUID,
    *,
    reason: Optional[str],
    actor: str,
    gateway: Optional[PaymentGateway] = None,
    notifier: Optional[NotificationSink] = None,
) -> Order:
    """Cancel a non-terminal order and undo everything it holds.

    Releases every line's stock, returns redeemed points, refunds the wallet
    portion, and refunds whatever Paystack captured.
    """
    if not reason:
        raise InvalidTransition("A cancellation reason is required", order_id=order_id)
    notifier = notifier or get_notifier()
    order = await get_order(db, order_id)

    await _transition(
        db,
        order,
        OrderStatus.CANCELLED,
        actor=actor,
        reason=reason,
        cancelled_at=utc_now(),
        cancellation_reason=reason,
    )

    for item in order.items:
        await inventory.release(db, item.listing_id, item.quantity)

    if order.consumer_id and order.points_redeemed:
        await add_points(
            db,
            user_id=order.consumer_id,
            delta=order.points_redeemed,
            reason=PointsReason.REDEMPTION_REVERSAL,
            order_id=order.id,
            idempotency_key=f"order-cancel-points-{order.id}",
        )

    wallet_applied = to_money(order.wallet_amount_applied)
    if order.consumer_id and wallet_applied > 0:
        await add_wallet_transaction(
            db,
            user_id=order.consumer_id,
            amount=wallet_applied,
            transaction_type=TransactionType.REFUND,
            source="order",
            description=f"Wallet refund for cancelled order {order.id}",
            order_id=order.id,
            idempotency_key=f"order-cancel-wallet-{order.id}",
        )
        order.refunded_amount = to_money(order.refunded_amount) + wallet_applied

    await _refund_capture(
        db,
        order,
        to_money(order.paid_amount),
        reference=order.payment_reference,
        gateway=gateway,
    )
    await db.commit()

    owner = await _business_owner(db, order.business_id)
    for user_id in (order.consumer_id, owner):
        await notifier.notify(
            user_id,
            "Order cancelled",
            f"Order {order.id} was cancelled: {reason}",
            NotificationCategory.ORDER_UPDATE,
            related_entity_id=str(order.id),
            related_entity_type="order",
        )
    return order
