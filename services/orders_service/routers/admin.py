"""Admin order endpoints: disputes."""

import uuid

from fastapi import APIRouter, Depends
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.communications_service.services.notifier import Notifier, get_notifier
from services.orders_service.schemas import DisputeRequest, OrderResponse
from services.orders_service.services import order_workflow
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/admin/orders", tags=["admin-orders"])


@router.post("/{order_id}/dispute", response_model=OrderResponse)
async def open_dispute(
    order_id: uuid.UUID,
    payload: DisputeRequest,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Put an order on hold. Resolve with POST /orders/{id}/cancel."""
    return await order_workflow.open_dispute(
        db,
        order_id,
        reason=payload.reason,
        actor=current_user.user_id,
        notifier=notifier,
    )
