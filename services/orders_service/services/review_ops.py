"""Reviews: consumers rate completed orders, businesses read and reply.

A review is tied to exactly one completed order and is written by the
consumer who placed it. Submitting one earns loyalty points through the
points ledger in the same transaction as the review row.
"""

import uuid
from dataclasses import dataclass, field
from typing import Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.errors import InvalidReview, NotAuthorized, ReviewNotFound
from libs.common.logging import get_logger
from services.communications_service.models import NotificationCategory
from services.communications_service.services.notifier import (
    NotificationSink,
    get_notifier,
)
from services.listings_service.services.access import get_business
from services.orders_service.models import OrderStatus, Review
from services.orders_service.services.order_workflow import get_order
from services.wallet_service.models import PointsReason
from services.wallet_service.services.ledger_ops import add_points
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass
class RatingStats:
    total_reviews: int = 0
    average_rating: float = 0.0
    average_food: float = 0.0
    average_service: float = 0.0
    average_packaging: float = 0.0
    average_value: float = 0.0
    rating_breakdown: dict[int, int] = field(
        default_factory=lambda: {star: 0 for star in range(1, 6)}
    )


def _average(values: list[int]) -> float:
    return round(sum(values) / len(values), 1) if values else 0.0


async def get_review(db: AsyncSession, review_id: uuid.UUID) -> Review:
    review = await db.get(Review, review_id)
    if not review:
        raise ReviewNotFound(review_id=review_id)
    return review


async def create_review(
    db: AsyncSession,
    consumer_id: str,
    order_id: uuid.UUID,
    *,
    rating_food: int,
    rating_service: int,
    rating_packaging: Optional[int] = None,
    rating_value: Optional[int] = None,
    comment: Optional[str] = None,
    notifier: Optional[NotificationSink] = None,
) -> Review:
    """Record the consumer's review of their own completed order, once."""
    notifier = notifier or get_notifier()
    order = await get_order(db, order_id)
    if order.consumer_id is None or order.consumer_id != consumer_id:
        raise NotAuthorized("You can only review your own orders", order_id=order_id)
    if order.status != OrderStatus.COMPLETED:
        raise InvalidReview(
            "Only completed orders can be reviewed",
            order_id=order_id,
            status=order.status.value,
        )

    existing = await db.scalar(select(Review.id).where(Review.order_id == order_id))
    if existing is not None:
        raise InvalidReview("This order has already been reviewed", order_id=order_id)

    review = Review(
        order_id=order.id,
        business_id=order.business_id,
        consumer_id=consumer_id,
        rating_food=rating_food,
        rating_service=rating_service,
        rating_packaging=rating_packaging,
        rating_value=rating_value,
        comment=comment,
        is_verified_purchase=True,
    )
    try:
        db.add(review)
        await db.flush()
        await add_points(
            db,
            user_id=consumer_id,
            delta=get_settings().REVIEW_POINTS,
            reason=PointsReason.REVIEW_SUBMITTED,
            order_id=order.id,
            idempotency_key=f"order-review-{order.id}",
        )
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        # A concurrent submission for the same order won
        raise InvalidReview(
            "This order has already been reviewed", order_id=order_id
        ) from e
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Review %s for order %s: food=%d service=%d",
        review.id,
        order.id,
        rating_food,
        rating_service,
    )

    business = await get_business(db, order.business_id)
    await notifier.notify(
        business.owner_auth_id,
        "New review received",
        f"{business.name} received a new {review.overall_rating}-star review.",
        NotificationCategory.REVIEW,
        related_entity_id=str(review.id),
        related_entity_type="review",
    )
    return review


async def list_business_reviews(
    db: AsyncSession,
    business_id: uuid.UUID,
    *,
    skip: int = 0,
    limit: int = 20,
) -> list[Review]:
    """Newest first."""
    await get_business(db, business_id)
    result = await db.execute(
        select(Review)
        .where(Review.business_id == business_id)
        .order_by(Review.created_at.desc())
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all())


async def business_rating_stats(
    db: AsyncSession, business_id: uuid.UUID
) -> RatingStats:
    """Averages to one decimal place and a breakdown of overall stars.

    Packaging and value averages only count reviews that rated them.
    """
    result = await db.execute(
        select(
            Review.rating_food,
            Review.rating_service,
            Review.rating_packaging,
            Review.rating_value,
        ).where(Review.business_id == business_id)
    )
    rows = result.all()
    stats = RatingStats()
    if not rows:
        return stats

    food = [row.rating_food for row in rows]
    service = [row.rating_service for row in rows]
    for f, s in zip(food, service):
        stats.rating_breakdown[(f + s + 1) // 2] += 1

    stats.total_reviews = len(rows)
    stats.average_rating = _average(food + service)
    stats.average_food = _average(food)
    stats.average_service = _average(service)
    stats.average_packaging = _average(
        [row.rating_packaging for row in rows if row.rating_packaging]
    )
    stats.average_value = _average(
        [row.rating_value for row in rows if row.rating_value]
    )
    return stats


async def list_consumer_reviews(db: AsyncSession, consumer_id: str) -> list[Review]:
    result = await db.execute(
        select(Review)
        .where(Review.consumer_id == consumer_id)
        .order_by(Review.created_at.desc())
    )
    return list(result.scalars().all())


async def respond_to_review(
    db: AsyncSession,
    review_id: uuid.UUID,
    response: str,
    *,
    notifier: Optional[NotificationSink] = None,
) -> Review:
    """Store the business's public reply. Access is checked by the caller."""
    notifier = notifier or get_notifier()
    review = await get_review(db, review_id)
    review.business_response = response
    review.business_response_at = utc_now()
    await db.commit()

    await notifier.notify(
        review.consumer_id,
        "The business replied to your review",
        "The business has responded to your review. Check it out!",
        NotificationCategory.REVIEW,
        related_entity_id=str(review.id),
        related_entity_type="review",
    )
    return review
