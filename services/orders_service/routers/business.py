"""Business-side order listing."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.listings_service.services.access import ensure_business_access
from services.orders_service.models import OrderStatus
from services.orders_service.schemas import BusinessOrderResponse
from services.orders_service.services import order_workflow
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/business", tags=["business-orders"])


@router.get("/{business_id}/orders", response_model=list[BusinessOrderResponse])
async def list_business_orders(
    business_id: uuid.UUID,
    status: Optional[OrderStatus] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    await ensure_business_access(db, business_id, current_user)
    return await order_workflow.list_business_orders(
        db, business_id, status=status, skip=skip, limit=limit
    )
