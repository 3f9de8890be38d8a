"""Unit tests for order reviews: eligibility, points, stats and replies."""

import uuid
from decimal import Decimal

import pytest
from libs.common.errors import (
    BusinessNotFound,
    InvalidReview,
    NotAuthorized,
    ReviewNotFound,
)
from services.communications_service.models import NotificationCategory
from services.orders_service.models import OrderStatus, Review
from services.orders_service.services.order_workflow import (
    CartLine,
    create_order,
    process_payment,
    update_status,
)
from services.orders_service.services.review_ops import (
    business_rating_stats,
    create_review,
    list_business_reviews,
    list_consumer_reviews,
    respond_to_review,
)
from services.wallet_service.models import PointsReason
from services.wallet_service.services.ledger_ops import (
    get_or_create_wallet,
    list_points_history,
    reconstruct_balances,
)
from sqlalchemy import func, select
from tests.factories import BusinessFactory, seed_listing

CONSUMER = "consumer-1"
OWNER = "owner-1"


async def _seed(db):
    business = BusinessFactory.create(owner_auth_id=OWNER, name="Buka Express")
    return await seed_listing(db, business=business)


async def _order(db, gateway, notifier, listing, *, consumer=CONSUMER, finish=True):
    order = await create_order(
        db,
        consumer,
        [CartLine(listing.id, 1)],
        gateway=gateway,
        payer_email="buyer@test.looper.ng",
        notifier=notifier,
    )
    await process_payment(db, order.id, order.payment_reference, notifier=notifier)
    if not finish:
        return order
    for status in (
        OrderStatus.CONFIRMED,
        OrderStatus.READY_FOR_PICKUP,
        OrderStatus.COMPLETED,
    ):
        order = await update_status(db, order.id, status, actor=OWNER, notifier=notifier)
    return order


async def _review_count(db) -> int:
    return await db.scalar(select(func.count(Review.id)))


@pytest.mark.asyncio
@pytest.mark.unit
async def test_review_awards_points_and_tells_the_business(
    db_session, gateway, notifier
):
    _, listing = await _seed(db_session)
    order = await _order(db_session, gateway, notifier, listing)

    review = await create_review(
        db_session,
        CONSUMER,
        order.id,
        rating_food=5,
        rating_service=4,
        comment="Still warm at pickup",
        notifier=notifier,
    )

    assert review.is_verified_purchase is True
    assert review.business_id == order.business_id
    assert review.overall_rating == 5

    wallet = await get_or_create_wallet(db_session, CONSUMER)
    assert wallet.points_balance == 10 + 25
    latest = (await list_points_history(db_session, CONSUMER))[0]
    assert latest.reason == PointsReason.REVIEW_SUBMITTED
    assert latest.points_change == 25
    assert latest.order_id == order.id
    assert (await reconstruct_balances(db_session, CONSUMER)).consistent

    sent = [n for n in notifier.sent if n["user_id"] == OWNER]
    assert sent[-1]["title"] == "New review received"
    assert sent[-1]["category"] == NotificationCategory.REVIEW
    assert "Buka Express" in sent[-1]["message"]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_only_completed_orders_can_be_reviewed(db_session, gateway, notifier):
    _, listing = await _seed(db_session)
    order = await _order(db_session, gateway, notifier, listing, finish=False)

    with pytest.raises(InvalidReview):
        await create_review(
            db_session, CONSUMER, order.id, rating_food=5, rating_service=5
        )

    assert await _review_count(db_session) == 0
    assert (await get_or_create_wallet(db_session, CONSUMER)).points_balance == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_only_the_buyer_can_review(db_session, gateway, notifier):
    _, listing = await _seed(db_session)
    order = await _order(db_session, gateway, notifier, listing)

    with pytest.raises(NotAuthorized):
        await create_review(
            db_session, "someone-else", order.id, rating_food=1, rating_service=1
        )

    assert await _review_count(db_session) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_an_order_is_reviewed_once(db_session, gateway, notifier):
    _, listing = await _seed(db_session)
    order = await _order(db_session, gateway, notifier, listing)
    await create_review(
        db_session, CONSUMER, order.id, rating_food=4, rating_service=4, notifier=notifier
    )

    with pytest.raises(InvalidReview):
        await create_review(
            db_session,
            CONSUMER,
            order.id,
            rating_food=1,
            rating_service=1,
            notifier=notifier,
        )

    assert await _review_count(db_session) == 1
    assert (await get_or_create_wallet(db_session, CONSUMER)).points_balance == 35


@pytest.mark.asyncio
@pytest.mark.unit
async def test_business_reviews_come_newest_first_with_stats(
    db_session, gateway, notifier
):
    business, listing = await _seed(db_session)
    first = await _order(db_session, gateway, notifier, listing)
    second = await _order(db_session, gateway, notifier, listing, consumer="consumer-2")
    await create_review(
        db_session,
        CONSUMER,
        first.id,
        rating_food=5,
        rating_service=4,
        rating_packaging=5,
        notifier=notifier,
    )
    await create_review(
        db_session,
        "consumer-2",
        second.id,
        rating_food=2,
        rating_service=3,
        notifier=notifier,
    )

    reviews = await list_business_reviews(db_session, business.id)
    stats = await business_rating_stats(db_session, business.id)

    assert [r.order_id for r in reviews] == [second.id, first.id]
    assert stats.total_reviews == 2
    assert stats.average_rating == 3.5
    assert stats.average_food == 3.5
    assert stats.average_service == 3.5
    assert stats.average_packaging == 5.0
    assert stats.average_value == 0.0
    assert stats.rating_breakdown == {1: 0, 2: 0, 3: 1, 4: 0, 5: 1}

    mine = await list_consumer_reviews(db_session, "consumer-2")
    assert [r.order_id for r in mine] == [second.id]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_business_without_reviews_has_empty_stats(db_session):
    business, _ = await _seed(db_session)

    assert await list_business_reviews(db_session, business.id) == []
    stats = await business_rating_stats(db_session, business.id)
    assert stats.total_reviews == 0
    assert stats.average_rating == 0.0
    assert sum(stats.rating_breakdown.values()) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reviews_of_unknown_business(db_session):
    with pytest.raises(BusinessNotFound):
        await list_business_reviews(db_session, uuid.uuid4())


@pytest.mark.asyncio
@pytest.mark.unit
async def test_business_reply_notifies_the_reviewer(db_session, gateway, notifier):
    _, listing = await _seed(db_session)
    order = await _order(db_session, gateway, notifier, listing)
    review = await create_review(
        db_session, CONSUMER, order.id, rating_food=3, rating_service=2, notifier=notifier
    )

    replied = await respond_to_review(
        db_session, review.id, "Sorry about the wait!", notifier=notifier
    )

    assert replied.business_response == "Sorry about the wait!"
    assert replied.business_response_at is not None
    assert "The business replied to your review" in notifier.titles_for(CONSUMER)

    with pytest.raises(ReviewNotFound):
        await respond_to_review(db_session, uuid.uuid4(), "Hello", notifier=notifier)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_points_for_a_review_match_the_order_total(db_session, gateway, notifier):
    """Completion earns 1 point per NGN 100; the review adds a flat 25."""
    _, listing = await _seed(db_session)
    order = await _order(db_session, gateway, notifier, listing)
    assert order.total_amount == Decimal("1000.00")
    assert order.points_awarded == 10

    await create_review(
        db_session, CONSUMER, order.id, rating_food=4, rating_service=5, notifier=notifier
    )

    wallet = await get_or_create_wallet(db_session, CONSUMER)
    assert wallet.lifetime_points_earned == 35
