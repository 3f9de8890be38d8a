"""Listing lifecycle: create, update, expire, cancel and search.

Status moves active -> sold_out/expired/cancelled. Listings are never
deleted; a cancelled listing stays readable for the orders that reference it.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo

from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.currency import to_money
from libs.common.datetime_utils import as_utc, utc_now
from libs.common.errors import InvalidListing, ListingNotExpired, ListingNotFound
from libs.common.logging import get_logger
from services.listings_service.models import Listing, ListingStatus, ListingType
from services.listings_service.schemas import ListingCreate, ListingUpdate
from services.listings_service.services.access import ensure_business_access
from services.listings_service.services.pricing import listing_unit_price
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

PRICE_FIELDS = frozenset(
    {
        "original_price",
        "asking_price",
        "pickup_window_end",
        "bulk_threshold",
        "bulk_discount_pct",
        "peak_rules",
    }
)
NULLABLE_FIELDS = frozenset(
    {
        "description",
        "bulk_threshold",
        "bulk_discount_pct",
        "peak_rules",
        "allergen_info",
        "ingredients",
        "preparation_time_minutes",
    }
)
TERMINAL_STATUSES = (ListingStatus.EXPIRED, ListingStatus.CANCELLED)


@lru_cache
def _local_tz() -> ZoneInfo:
    return ZoneInfo(get_settings().TIMEZONE)


def quote_unit_price(
    listing: Listing, quantity: int = 1, *, now: Optional[datetime] = None
) -> Decimal:
    """Authoritative unit price for ``quantity`` units using configured tz/floor."""
    return listing_unit_price(
        listing,
        quantity,
        now=now,
        tz=_local_tz(),
        floor=get_settings().PRICE_FLOOR_NGN,
    )


def _normalize_window(listing: Listing) -> None:
    listing.pickup_window_start = as_utc(listing.pickup_window_start)
    listing.pickup_window_end = as_utc(listing.pickup_window_end)
    if listing.pickup_window_end <= listing.pickup_window_start:
        raise InvalidListing("Pickup window must end after it starts")


def _dump_peak_rules(rules) -> Optional[list]:
    if rules is None:
        return None
    return [rule.model_dump(mode="json") for rule in rules]


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_listing(
    db: AsyncSession, listing_id: uuid.UUID, *, for_update: bool = False
) -> Listing:
    query = (
        select(Listing)
        .where(Listing.id == listing_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    listing = result.scalar_one_or_none()
    if not listing:
        raise ListingNotFound(listing_id=listing_id)
    return listing


async def search_active(
    db: AsyncSession,
    *,
    max_price: Optional[Decimal] = None,
    listing_type: Optional[ListingType] = None,
    business_id: Optional[uuid.UUID] = None,
    expiring_before: Optional[datetime] = None,
    sort_by: str = "expiry",
    include_inactive: bool = False,
    skip: int = 0,
    limit: int = 50,
) -> list[Listing]:
    """Browse listings. Only active, unexpired listings unless asked otherwise."""
    query = select(Listing)
    if not include_inactive:
        query = query.where(
            Listing.status == ListingStatus.ACTIVE,
            Listing.pickup_window_end > utc_now(),
        )
    if max_price is not None:
        query = query.where(Listing.discounted_price <= max_price)
    if listing_type is not None:
        query = query.where(Listing.listing_type == listing_type)
    if business_id is not None:
        query = query.where(Listing.business_id == business_id)
    if expiring_before is not None:
        query = query.where(Listing.pickup_window_end <= expiring_before)

    if sort_by == "price":
        query = query.order_by(Listing.discounted_price.asc(), Listing.id)
    else:
        query = query.order_by(Listing.pickup_window_end.asc(), Listing.id)

    result = await db.execute(query.offset(skip).limit(limit))
    return list(result.scalars().all())


async def list_business_listings(
    db: AsyncSession,
    business_id: uuid.UUID,
    *,
    status: Optional[ListingStatus] = None,
) -> list[Listing]:
    query = select(Listing).where(Listing.business_id == business_id)
    if status is not None:
        query = query.where(Listing.status == status)
    result = await db.execute(query.order_by(Listing.created_at.desc()))
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


async def create_listing(
    db: AsyncSession, payload: ListingCreate, actor: AuthUser
) -> Listing:
    await ensure_business_access(db, payload.business_id, actor)
    if payload.asking_price > payload.original_price:
        raise InvalidListing("Asking price cannot exceed the original price")

    listing = Listing(
        **payload.model_dump(exclude={"peak_rules"}),
        peak_rules=_dump_peak_rules(payload.peak_rules),
        available_quantity=payload.total_quantity,
        status=ListingStatus.ACTIVE,
        created_by=actor.user_id,
    )
    _normalize_window(listing)
    listing.discounted_price = quote_unit_price(listing)
    db.add(listing)
    await db.commit()
    await db.refresh(listing)

    logger.info(
        "Created listing %s for business %s: %d units at %s",
        listing.id,
        listing.business_id,
        listing.total_quantity,
        listing.discounted_price,
    )
    return listing


async def update_listing(
    db: AsyncSession, listing_id: uuid.UUID, patch: ListingUpdate, actor: AuthUser
) -> Listing:
    """Apply a partial update, recomputing price and sold-out status as needed."""
    listing = await get_listing(db, listing_id, for_update=True)
    await ensure_business_access(db, listing.business_id, actor)
    if listing.status in TERMINAL_STATUSES:
        raise InvalidListing(
            f"Cannot edit a {listing.status.value} listing", listing_id=listing_id
        )

    changes = {
        field: value
        for field, value in patch.model_dump(exclude_unset=True).items()
        if value is not None or field in NULLABLE_FIELDS
    }
    if "peak_rules" in changes:
        changes["peak_rules"] = _dump_peak_rules(patch.peak_rules)

    for field, value in changes.items():
        setattr(listing, field, value)

    _normalize_window(listing)
    if listing.asking_price > listing.original_price:
        raise InvalidListing("Asking price cannot exceed the original price")
    if listing.available_quantity > listing.total_quantity:
        raise InvalidListing(
            "Available quantity cannot exceed total quantity", listing_id=listing_id
        )

    if "available_quantity" in changes:
        if listing.available_quantity == 0:
            listing.status = ListingStatus.SOLD_OUT
        elif listing.status == ListingStatus.SOLD_OUT:
            listing.status = ListingStatus.ACTIVE

    if PRICE_FIELDS & changes.keys():
        listing.discounted_price = quote_unit_price(listing)

    await db.commit()
    await db.refresh(listing)
    logger.info("Updated listing %s fields=%s", listing.id, sorted(changes))
    return listing


async def refresh_price(
    db: AsyncSession, listing: Listing, *, now: Optional[datetime] = None
) -> bool:
    """Recompute the stored price as time decay kicks in. Returns True if changed."""
    new_price = quote_unit_price(listing, now=now)
    if to_money(listing.discounted_price) == new_price:
        return False
    listing.discounted_price = new_price
    await db.flush()
    return True


async def mark_expired(
    db: AsyncSession, listing_id: uuid.UUID, *, now: Optional[datetime] = None
) -> Listing:
    """Expire a listing whose pickup window has ended. Idempotent."""
    now = now or utc_now()
    listing = await get_listing(db, listing_id)
    if listing.status == ListingStatus.EXPIRED:
        return listing
    if listing.status == ListingStatus.CANCELLED:
        raise InvalidListing("Cancelled listings cannot expire", listing_id=listing_id)
    if as_utc(now) <= as_utc(listing.pickup_window_end):
        raise ListingNotExpired(listing_id=listing_id)

    await db.execute(
        update(Listing)
        .where(
            Listing.id == listing_id,
            Listing.status.in_([ListingStatus.ACTIVE, ListingStatus.SOLD_OUT]),
        )
        .values(status=ListingStatus.EXPIRED, expired_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    logger.info("Listing %s expired", listing_id)
    return await get_listing(db, listing_id)


async def cancel_listing(
    db: AsyncSession, listing_id: uuid.UUID, actor: AuthUser
) -> Listing:
    """Retire a listing. Orders already placed keep their locked price/quantity."""
    listing = await get_listing(db, listing_id, for_update=True)
    await ensure_business_access(db, listing.business_id, actor)
    if listing.status == ListingStatus.CANCELLED:
        return listing
    if listing.status == ListingStatus.EXPIRED:
        raise InvalidListing("Listing already expired", listing_id=listing_id)

    listing.status = ListingStatus.CANCELLED
    listing.cancelled_at = utc_now()
    await db.commit()
    await db.refresh(listing)
    logger.info("Listing %s cancelled by %s", listing_id, actor.user_id)
    return listing


async def find_expirable(
    db: AsyncSession, *, now: Optional[datetime] = None
) -> list[Listing]:
    """Active or sold-out listings whose pickup window has passed."""
    now = now or utc_now()
    result = await db.execute(
        select(Listing).where(
            Listing.status.in_([ListingStatus.ACTIVE, ListingStatus.SOLD_OUT]),
            Listing.pickup_window_end < now,
        )
    )
    return list(result.scalars().all())
