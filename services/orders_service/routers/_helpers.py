"""Shared authorization helpers for order routers."""

import uuid

from libs.auth.models import AuthUser
from libs.common.errors import NotAuthorized
from services.listings_service.services.access import ensure_business_access
from services.orders_service.models import Order
from services.orders_service.services.order_workflow import get_order
from sqlalchemy.ext.asyncio import AsyncSession


async def load_order_for_business(
    db: AsyncSession, order_id: uuid.UUID, user: AuthUser
) -> Order:
    order = await get_order(db, order_id)
    await ensure_business_access(db, order.business_id, user)
    return order


async def has_business_access(db: AsyncSession, order: Order, user: AuthUser) -> bool:
    try:
        await ensure_business_access(db, order.business_id, user)
    except NotAuthorized:
        return False
    return True


async def load_order_for_viewer(
    db: AsyncSession, order_id: uuid.UUID, user: AuthUser
) -> tuple[Order, bool]:
    """Return ``(order, is_consumer)`` for the consumer, the business or an admin."""
    order = await get_order(db, order_id)
    if order.consumer_id == user.user_id:
        return order, True
    if not user.is_admin:
        await ensure_business_access(db, order.business_id, user)
    return order, False
