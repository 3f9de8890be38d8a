"""
Background sweeps for listings.

Handles:
- Expiring listings whose pickup window has ended
- Re-pricing active listings as the time-decay ceiling tightens
- Reminding businesses about listings that end soon
"""

from datetime import datetime, timedelta
from typing import Callable, Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.errors import MarketplaceError
from libs.common.logging import get_logger
from libs.db.config import AsyncSessionLocal
from services.communications_service.models import NotificationCategory
from services.communications_service.services.notifier import (
    NotificationSink,
    get_notifier,
)
from services.listings_service.models import Business, Listing, ListingStatus
from services.listings_service.services.listing_ops import (
    find_expirable,
    mark_expired,
    refresh_price,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


async def _owner_ids(db: AsyncSession, listings: list[Listing]) -> dict:
    business_ids = {listing.business_id for listing in listings}
    if not business_ids:
        return {}
    result = await db.execute(
        select(Business.id, Business.owner_auth_id).where(
            Business.id.in_(business_ids)
        )
    )
    return dict(result.all())


async def expire_listings_sweep(
    *,
    session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
    notifier: Optional[NotificationSink] = None,
    now: Optional[datetime] = None,
) -> int:
    """Expire every listing past its pickup window. Returns the number expired."""
    notifier = notifier or get_notifier()
    now = now or utc_now()
    expired: list[Listing] = []

    async with session_factory() as db:
        for listing in await find_expirable(db, now=now):
            try:
                expired.append(await mark_expired(db, listing.id, now=now))
            except MarketplaceError as e:
                logger.warning("Could not expire listing %s: %s", listing.id, e)
        owners = await _owner_ids(db, expired)

    for listing in expired:
        await notifier.notify(
            owners.get(listing.business_id),
            "Listing expired",
            f'"{listing.title}" has passed its pickup window '
            f"with {listing.available_quantity} left.",
            NotificationCategory.DEAL_EXPIRING,
            related_entity_id=str(listing.id),
            related_entity_type="listing",
        )

    if expired:
        logger.info("Expired %d listings", len(expired))
    return len(expired)


async def refresh_listing_prices(
    *,
    session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
    now: Optional[datetime] = None,
) -> int:
    """Re-run the pricing engine on active listings. Returns how many changed."""
    now = now or utc_now()
    async with session_factory() as db:
        result = await db.execute(
            select(Listing).where(
                Listing.status == ListingStatus.ACTIVE,
                Listing.pickup_window_end > now,
            )
        )
        changed = 0
        for listing in result.scalars().all():
            if await refresh_price(db, listing, now=now):
                changed += 1
        await db.commit()

    if changed:
        logger.info("Re-priced %d listings", changed)
    return changed


async def remind_expiring_listings(
    *,
    session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
    notifier: Optional[NotificationSink] = None,
    now: Optional[datetime] = None,
) -> int:
    """Tell owners once about active listings ending within EXPIRING_SOON_HOURS."""
    notifier = notifier or get_notifier()
    now = now or utc_now()
    horizon = now + timedelta(hours=get_settings().EXPIRING_SOON_HOURS)

    async with session_factory() as db:
        result = await db.execute(
            select(Listing).where(
                Listing.status == ListingStatus.ACTIVE,
                Listing.pickup_window_end > now,
                Listing.pickup_window_end <= horizon,
                Listing.expiry_reminder_sent_at.is_(None),
            )
        )
        due = list(result.scalars().all())
        for listing in due:
            listing.expiry_reminder_sent_at = now
        owners = await _owner_ids(db, due)
        await db.commit()

    for listing in due:
        await notifier.notify(
            owners.get(listing.business_id),
            "Listing ending soon",
            f'"{listing.title}" ends soon with {listing.available_quantity} '
            f"of {listing.total_quantity} still available.",
            NotificationCategory.DEAL_EXPIRING,
            related_entity_id=str(listing.id),
            related_entity_type="listing",
        )
    return len(due)
