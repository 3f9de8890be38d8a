"""Listing endpoints: browse, quote, and business-side management."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.currency import to_money
from libs.db.session import get_async_db
from services.listings_service.models import ListingType
from services.listings_service.schemas import (
    ListingCreate,
    ListingQuote,
    ListingResponse,
    ListingSort,
    ListingUpdate,
)
from services.listings_service.services import listing_ops
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/listings", tags=["listings"])


# ============================================================================
# PUBLIC BROWSING
# ============================================================================


@router.get("", response_model=list[ListingResponse])
async def search_listings(
    max_price: Optional[Decimal] = Query(None, ge=0),
    listing_type: Optional[ListingType] = None,
    business_id: Optional[uuid.UUID] = None,
    expiring_before: Optional[datetime] = None,
    sort_by: ListingSort = "expiry",
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_async_db),
):
    """Active listings, soonest-ending first unless sorted by price."""
    return await listing_ops.search_active(
        db,
        max_price=max_price,
        listing_type=listing_type,
        business_id=business_id,
        expiring_before=expiring_before,
        sort_by=sort_by,
        skip=skip,
        limit=limit,
    )


@router.get("/{listing_id}", response_model=ListingResponse)
async def get_listing(listing_id: uuid.UUID, db: AsyncSession = Depends(get_async_db)):
    return await listing_ops.get_listing(db, listing_id)


@router.get("/{listing_id}/quote", response_model=ListingQuote)
async def quote_listing(
    listing_id: uuid.UUID,
    quantity: int = Query(1, ge=1),
    db: AsyncSession = Depends(get_async_db),
):
    """Preview the price for a quantity. Orders re-price at checkout."""
    listing = await listing_ops.get_listing(db, listing_id)
    unit_price = listing_ops.quote_unit_price(listing, quantity)
    line_total = to_money(unit_price * quantity)
    original_total = to_money(listing.original_price * quantity)
    return ListingQuote(
        listing_id=listing.id,
        quantity=quantity,
        unit_price=unit_price,
        line_total=line_total,
        original_total=original_total,
        savings=original_total - line_total,
    )


# ============================================================================
# BUSINESS MANAGEMENT
# ============================================================================


@router.post("", response_model=ListingResponse, status_code=201)
async def create_listing(
    payload: ListingCreate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await listing_ops.create_listing(db, payload, current_user)


@router.patch("/{listing_id}", response_model=ListingResponse)
async def update_listing(
    listing_id: uuid.UUID,
    patch: ListingUpdate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await listing_ops.update_listing(db, listing_id, patch, current_user)


@router.post("/{listing_id}/cancel", response_model=ListingResponse)
async def cancel_listing(
    listing_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await listing_ops.cancel_listing(db, listing_id, current_user)
