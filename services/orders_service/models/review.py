"""Consumer reviews of completed orders."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index
from sqlalchemy import Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class Review(Base):
    """One review per order, written by the consumer who collected it."""

    __tablename__ = "reviews"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id"), unique=True, nullable=False
    )
    business_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("businesses.id"), nullable=False, index=True
    )
    consumer_id: Mapped[str] = mapped_column(String, nullable=False, index=True)

    # Ratings (1-5)
    rating_food: Mapped[int] = mapped_column(Integer, nullable=False)
    rating_service: Mapped[int] = mapped_column(Integer, nullable=False)
    rating_packaging: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    rating_value: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_verified_purchase: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    business_response: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    business_response_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "rating_food BETWEEN 1 AND 5", name="ck_review_rating_food_range"
        ),
        CheckConstraint(
            "rating_service BETWEEN 1 AND 5", name="ck_review_rating_service_range"
        ),
        CheckConstraint(
            "rating_packaging IS NULL OR rating_packaging BETWEEN 1 AND 5",
            name="ck_review_rating_packaging_range",
        ),
        CheckConstraint(
            "rating_value IS NULL OR rating_value BETWEEN 1 AND 5",
            name="ck_review_rating_value_range",
        ),
        Index("ix_reviews_business_created", "business_id", "created_at"),
    )

    @property
    def overall_rating(self) -> int:
        """Food and service averaged, halves rounded up."""
        return (self.rating_food + self.rating_service + 1) // 2

    def __repr__(self):
        return f"<Review {self.id} order={self.order_id} {self.overall_rating}*>"
