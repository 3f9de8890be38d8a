"""Consumer and business order endpoints: checkout, payment, fulfilment."""

import uuid
from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.errors import NotAuthorized
from libs.db.session import get_async_db
from services.communications_service.services.notifier import Notifier, get_notifier
from services.orders_service.models import OrderStatus
from services.orders_service.paystack_client import (
    PaymentGateway,
    get_payment_gateway,
)
from services.orders_service.routers._helpers import (
    has_business_access,
    load_order_for_business,
    load_order_for_viewer,
)
from services.orders_service.schemas import (
    BusinessOrderResponse,
    CancelRequest,
    OrderCreate,
    OrderResponse,
    PickupVerifyRequest,
    StatusUpdateRequest,
)
from services.orders_service.services import order_workflow
from services.orders_service.services.order_workflow import CartLine
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/orders", tags=["orders"])

# Consumers may back out until the business has the food ready.
CONSUMER_CANCELLABLE = frozenset(
    {OrderStatus.PENDING_PAYMENT, OrderStatus.PAID, OrderStatus.CONFIRMED}
)


# ============================================================================
# CHECKOUT
# ============================================================================


@router.post("", response_model=OrderResponse, status_code=201)
async def create_order(
    payload: OrderCreate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: Notifier = Depends(get_notifier),
):
    """Reserve the cart and start payment. Prices are always recomputed here."""
    payer_email = payload.payer_email or current_user.email
    return await order_workflow.create_order(
        db,
        current_user.user_id,
        [CartLine(line.listing_id, line.quantity) for line in payload.items],
        gateway=gateway,
        use_wallet=payload.use_wallet,
        points_to_redeem=payload.points_to_redeem,
        payer_email=str(payer_email) if payer_email else None,
        is_donation=payload.is_donation,
        special_instructions=payload.special_instructions,
        notifier=notifier,
    )


@router.get("", response_model=list[OrderResponse])
async def list_my_orders(
    status: Optional[OrderStatus] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await order_workflow.list_consumer_orders(
        db, current_user.user_id, status=status, skip=skip, limit=limit
    )


@router.get(
    "/{order_id}", response_model=Union[OrderResponse, BusinessOrderResponse]
)
async def get_order(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    order, is_consumer = await load_order_for_viewer(db, order_id, current_user)
    if is_consumer or current_user.is_admin:
        return OrderResponse.model_validate(order)
    return BusinessOrderResponse.model_validate(order)


@router.post("/{order_id}/verify-payment", response_model=OrderResponse)
async def verify_payment(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: Notifier = Depends(get_notifier),
):
    """Fallback for a late webhook: ask Paystack directly."""
    order = await order_workflow.get_order_for_consumer(
        db, order_id, current_user.user_id, is_admin=current_user.is_admin
    )
    if not order.payment_reference:
        raise HTTPException(status_code=400, detail="Order has no payment reference")
    return await order_workflow.verify_and_process_payment(
        db, order.payment_reference, gateway, notifier=notifier
    )


# ============================================================================
# FULFILMENT
# ============================================================================


@router.post("/{order_id}/status", response_model=BusinessOrderResponse)
async def update_order_status(
    order_id: uuid.UUID,
    payload: StatusUpdateRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: Notifier = Depends(get_notifier),
):
    await load_order_for_business(db, order_id, current_user)
    return await order_workflow.update_status(
        db,
        order_id,
        payload.status,
        actor=current_user.user_id,
        reason=payload.reason,
        gateway=gateway,
        notifier=notifier,
    )


@router.post("/{order_id}/cancel", response_model=BusinessOrderResponse)
async def cancel_order(
    order_id: uuid.UUID,
    payload: CancelRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: Notifier = Depends(get_notifier),
):
    """Consumers cancel before pickup is ready; businesses and admins any time.

    Disputed orders can only be cancelled by an admin.
    """
    order, is_consumer = await load_order_for_viewer(db, order_id, current_user)
    if order.status == OrderStatus.DISPUTED and not current_user.is_admin:
        raise NotAuthorized("Only an admin can resolve a dispute", order_id=order_id)
    if (
        is_consumer
        and order.status not in CONSUMER_CANCELLABLE
        and not current_user.is_admin
        and not await has_business_access(db, order, current_user)
    ):
        raise NotAuthorized("This order can no longer be cancelled", order_id=order_id)

    return await order_workflow.cancel_order(
        db,
        order_id,
        reason=payload.reason,
        actor=current_user.user_id,
        gateway=gateway,
        notifier=notifier,
    )


@router.post("/{order_id}/verify-pickup", response_model=BusinessOrderResponse)
async def verify_pickup(
    order_id: uuid.UUID,
    payload: PickupVerifyRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    notifier: Notifier = Depends(get_notifier),
):
    await load_order_for_business(db, order_id, current_user)
    return await order_workflow.verify_pickup(
        db,
        order_id,
        payload.pickup_code,
        actor=current_user.user_id,
        notifier=notifier,
    )
