"""Inventory ledger: atomic reserve/release on a listing's available stock.

Each operation is a single conditional UPDATE, so the check and the change
happen in one statement and concurrent reservations cannot oversell. The
statements run inside the caller's transaction; nothing here commits.
"""

import uuid

from libs.common.logging import get_logger
from services.listings_service.models import Listing, ListingStatus
from sqlalchemy import case, literal, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


def _status_literal(value: ListingStatus):
    return literal(value, Listing.status.type)


async def reserve(db: AsyncSession, listing_id: uuid.UUID, quantity: int) -> bool:
    """Take ``quantity`` units from an active listing.

    Returns False (and changes nothing) when the listing is not active or
    has fewer than ``quantity`` units left. A reservation that empties the
    listing flips it to sold_out in the same statement.
    """
    if quantity <= 0:
        raise ValueError("Reservation quantity must be positive")

    stmt = (
        update(Listing)
        .where(
            Listing.id == listing_id,
            Listing.status == ListingStatus.ACTIVE,
            Listing.available_quantity >= quantity,
        )
        .values(
            available_quantity=Listing.available_quantity - quantity,
            status=case(
                (
                    Listing.available_quantity == quantity,
                    _status_literal(ListingStatus.SOLD_OUT),
                ),
                else_=Listing.status,
            ),
        )
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    reserved = result.rowcount == 1

    if reserved:
        logger.info("Reserved %d of listing %s", quantity, listing_id)
    else:
        logger.info(
            "Reservation of %d refused for listing %s (inactive or short)",
            quantity,
            listing_id,
        )
    return reserved


async def release(db: AsyncSession, listing_id: uuid.UUID, quantity: int) -> None:
    """Return ``quantity`` units, capped at the listing's total quantity.

    A sold_out listing becomes active again. Expired and cancelled listings
    get their stock back but keep their status.
    """
    if quantity <= 0:
        raise ValueError("Release quantity must be positive")

    restored = Listing.available_quantity + quantity
    stmt = (
        update(Listing)
        .where(Listing.id == listing_id)
        .values(
            available_quantity=case(
                (restored > Listing.total_quantity, Listing.total_quantity),
                else_=restored,
            ),
            status=case(
                (
                    Listing.status == ListingStatus.SOLD_OUT,
                    _status_literal(ListingStatus.ACTIVE),
                ),
                else_=Listing.status,
            ),
        )
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    if result.rowcount != 1:
        logger.warning("Release of %d for unknown listing %s", quantity, listing_id)
        return
    logger.info("Released %d back to listing %s", quantity, listing_id)
