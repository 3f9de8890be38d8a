"""Business registration and per-business listing views."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.listings_service.models import (
    Business,
    BusinessStaff,
    ListingStatus,
    StaffRole,
)
from services.listings_service.schemas import (
    BusinessCreate,
    BusinessResponse,
    ListingResponse,
)
from services.listings_service.services import listing_ops
from services.listings_service.services.access import (
    ensure_business_access,
    get_business,
)
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

router = APIRouter(prefix="/businesses", tags=["businesses"])


@router.post("", response_model=BusinessResponse, status_code=201)
async def create_business(
    payload: BusinessCreate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Register a business owned by the caller."""
    business = Business(**payload.model_dump(), owner_auth_id=current_user.user_id)
    db.add(business)
    await db.flush()
    db.add(
        BusinessStaff(
            business_id=business.id,
            user_id=current_user.user_id,
            role=StaffRole.OWNER,
        )
    )
    await db.commit()
    await db.refresh(business)
    logger.info("Business %s registered by %s", business.id, current_user.user_id)
    return business


@router.get("/{business_id}", response_model=BusinessResponse)
async def get_business_detail(
    business_id: uuid.UUID, db: AsyncSession = Depends(get_async_db)
):
    return await get_business(db, business_id)


@router.get("/{business_id}/listings", response_model=list[ListingResponse])
async def list_business_listings(
    business_id: uuid.UUID,
    status: Optional[ListingStatus] = None,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Every listing of the business, including expired and cancelled ones."""
    await ensure_business_access(db, business_id, current_user)
    return await listing_ops.list_business_listings(db, business_id, status=status)
