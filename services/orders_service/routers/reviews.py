"""Order reviews: submit, browse per business, reply."""

import uuid

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.communications_service.services.notifier import Notifier, get_notifier
from services.listings_service.services.access import ensure_business_access
from services.orders_service.schemas import (
    BusinessReviewsResponse,
    RatingStatsResponse,
    ReviewCreate,
    ReviewReplyRequest,
    ReviewResponse,
)
from services.orders_service.services import review_ops
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/reviews", tags=["reviews"])


@router.post("", response_model=ReviewResponse, status_code=201)
async def create_review(
    payload: ReviewCreate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Review a completed order. Earns loyalty points once per order."""
    return await review_ops.create_review(
        db,
        current_user.user_id,
        payload.order_id,
        rating_food=payload.rating_food,
        rating_service=payload.rating_service,
        rating_packaging=payload.rating_packaging,
        rating_value=payload.rating_value,
        comment=payload.comment,
        notifier=notifier,
    )


@router.get("/mine", response_model=list[ReviewResponse])
async def list_my_reviews(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await review_ops.list_consumer_reviews(db, current_user.user_id)


@router.get("/business/{business_id}", response_model=BusinessReviewsResponse)
async def list_business_reviews(
    business_id: uuid.UUID,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_async_db),
):
    """Public: a business's reviews, newest first, with rating stats."""
    reviews = await review_ops.list_business_reviews(
        db, business_id, skip=skip, limit=limit
    )
    stats = await review_ops.business_rating_stats(db, business_id)
    return BusinessReviewsResponse(
        stats=RatingStatsResponse.model_validate(stats),
        reviews=[ReviewResponse.model_validate(review) for review in reviews],
    )


@router.post("/{review_id}/response", response_model=ReviewResponse)
async def respond_to_review(
    review_id: uuid.UUID,
    payload: ReviewReplyRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    notifier: Notifier = Depends(get_notifier),
):
    review = await review_ops.get_review(db, review_id)
    await ensure_business_access(db, review.business_id, current_user)
    return await review_ops.respond_to_review(
        db, review_id, payload.response, notifier=notifier
    )
