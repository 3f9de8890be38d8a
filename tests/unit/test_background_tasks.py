"""Unit tests for the listing sweeps and the unpaid-order reconciler."""

from datetime import timedelta
from decimal import Decimal

import pytest
from libs.common.datetime_utils import utc_now
from services.listings_service.models import ListingStatus
from services.listings_service.services.listing_ops import get_listing
from services.listings_service.tasks import (
    expire_listings_sweep,
    refresh_listing_prices,
    remind_expiring_listings,
)
from services.orders_service.models import OrderStatus
from services.orders_service.paystack_client import CollectionResult
from services.orders_service.services.order_workflow import (
    REASON_PAYMENT_TIMEOUT,
    CartLine,
    create_order,
    get_order,
)
from services.orders_service.tasks import expire_unpaid_orders
from tests.factories import BusinessFactory, ListingFactory, seed_listing

OWNER = "owner-tasks"


async def _seed(db, **overrides):
    business = BusinessFactory.create(owner_auth_id=OWNER)
    return await seed_listing(db, business=business, **overrides)


async def _place(db, gateway, notifier, listing, qty=1):
    return await create_order(
        db,
        "consumer-1",
        [CartLine(listing.id, qty)],
        gateway=gateway,
        notifier=notifier,
        payer_email="buyer@test.looper.ng",
    )


# ---------------------------------------------------------------------------
# Listing expiry
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_expire_sweep_only_touches_ended_windows(
    db_session, session_factory, notifier
):
    now = utc_now()
    business, ended = await _seed(
        db_session,
        pickup_window_start=now - timedelta(hours=4),
        pickup_window_end=now - timedelta(minutes=1),
    )
    sold_out = ListingFactory.create(
        business.id,
        title="Sold out rice",
        status=ListingStatus.SOLD_OUT,
        available_quantity=0,
        pickup_window_start=now - timedelta(hours=4),
        pickup_window_end=now - timedelta(minutes=1),
    )
    live = ListingFactory.create(business.id, title="Still fresh")
    db_session.add_all([sold_out, live])
    await db_session.commit()

    count = await expire_listings_sweep(
        session_factory=session_factory, notifier=notifier, now=now
    )

    assert count == 2
    assert (await get_listing(db_session, ended.id)).status == ListingStatus.EXPIRED
    assert (await get_listing(db_session, sold_out.id)).status == ListingStatus.EXPIRED
    assert (await get_listing(db_session, live.id)).status == ListingStatus.ACTIVE
    assert notifier.titles_for(OWNER) == ["Listing expired", "Listing expired"]

    again = await expire_listings_sweep(
        session_factory=session_factory, notifier=notifier, now=now
    )
    assert again == 0


# ---------------------------------------------------------------------------
# Price refresh
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_price_refresh_applies_time_decay(db_session, session_factory):
    now = utc_now()
    _, listing = await _seed(
        db_session,
        original_price=Decimal("5000"),
        asking_price=Decimal("4000"),
        discounted_price=Decimal("4000"),
        pickup_window_end=now + timedelta(minutes=30),
    )

    changed = await refresh_listing_prices(session_factory=session_factory, now=now)

    assert changed == 1
    fresh = await get_listing(db_session, listing.id)
    # Inside the last hour the ceiling is 20% of the original price
    assert fresh.discounted_price == Decimal("1000.00")
    assert await refresh_listing_prices(session_factory=session_factory, now=now) == 0


# ---------------------------------------------------------------------------
# Expiring-soon reminders
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_expiring_reminder_is_sent_once(db_session, session_factory, notifier):
    now = utc_now()
    business, soon = await _seed(
        db_session, pickup_window_end=now + timedelta(hours=2)
    )
    later = ListingFactory.create(
        business.id, title="Tomorrow", pickup_window_end=now + timedelta(hours=20)
    )
    db_session.add(later)
    await db_session.commit()

    first = await remind_expiring_listings(
        session_factory=session_factory, notifier=notifier, now=now
    )
    second = await remind_expiring_listings(
        session_factory=session_factory, notifier=notifier, now=now
    )

    assert first == 1
    assert second == 0
    assert notifier.titles_for(OWNER) == ["Listing ending soon"]
    assert notifier.sent[0]["related_entity_id"] == str(soon.id)


# ---------------------------------------------------------------------------
# Unpaid order reconciliation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unpaid_orders_are_cancelled_after_ttl(
    db_session, session_factory, gateway, notifier
):
    _, listing = await _seed(db_session, total_quantity=5)
    abandoned = await _place(db_session, gateway, notifier, listing, 2)
    gateway.verify_results[abandoned.payment_reference] = CollectionResult(
        reference=abandoned.payment_reference,
        success=False,
        amount=Decimal("0.00"),
        status="abandoned",
    )

    cancelled = await expire_unpaid_orders(
        session_factory=session_factory,
        gateway=gateway,
        notifier=notifier,
        now=utc_now() + timedelta(minutes=31),
    )

    assert cancelled == 1
    order = await get_order(db_session, abandoned.id)
    assert order.status == OrderStatus.CANCELLED
    assert order.cancellation_reason == REASON_PAYMENT_TIMEOUT
    assert (await get_listing(db_session, listing.id)).available_quantity == 5


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reconciler_applies_late_payment_instead_of_cancelling(
    db_session, session_factory, gateway, notifier
):
    _, listing = await _seed(db_session)
    order = await _place(db_session, gateway, notifier, listing)

    cancelled = await expire_unpaid_orders(
        session_factory=session_factory,
        gateway=gateway,
        notifier=notifier,
        now=utc_now() + timedelta(hours=1),
    )

    assert cancelled == 0
    fresh = await get_order(db_session, order.id)
    assert fresh.status == OrderStatus.PAID
    assert fresh.paid_amount == Decimal("1000.00")
    assert (await get_listing(db_session, listing.id)).available_quantity == 9


@pytest.mark.asyncio
@pytest.mark.unit
async def test_recent_unpaid_orders_are_left_alone(
    db_session, session_factory, gateway, notifier
):
    _, listing = await _seed(db_session)
    order = await _place(db_session, gateway, notifier, listing)

    cancelled = await expire_unpaid_orders(
        session_factory=session_factory, gateway=gateway, notifier=notifier
    )

    assert cancelled == 0
    assert (await get_order(db_session, order.id)).status == OrderStatus.PENDING_PAYMENT
