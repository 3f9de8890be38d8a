"""Listing model: a business's surplus-food offer with finite stock."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.listings_service.models.enums import (
    ListingStatus,
    ListingType,
    enum_values,
)
from sqlalchemy import JSON, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

# ============================================================================
# LISTING
# ============================================================================


class Listing(Base):
    """Surplus-food listing.

    ``discounted_price`` is the persisted single-unit price produced by the
    pricing engine from ``asking_price`` and the time/peak rules; it is
    recomputed whenever a price-relevant field changes. ``available_quantity``
    is only ever decreased by the inventory reserve statement.
    """

    __tablename__ = "listings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("businesses.id"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    listing_type: Mapped[ListingType] = mapped_column(
        SAEnum(
            ListingType,
            name="listing_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )

    # Pricing (NGN)
    original_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    asking_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discounted_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    bulk_threshold: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    bulk_discount_pct: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(5, 2), nullable=True
    )
    # [{"days": [0-6], "start_hour": 17, "end_hour": 20, "surcharge_pct": 10}]
    peak_rules: Mapped[Optional[list]] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=True
    )

    # Stock
    total_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    available_quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    pickup_window_start: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    pickup_window_end: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    status: Mapped[ListingStatus] = mapped_column(
        SAEnum(
            ListingStatus,
            name="listing_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=ListingStatus.ACTIVE,
        nullable=False,
    )

    # Details
    estimated_co2_savings_kg: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), default=Decimal("0"), nullable=False
    )
    allergen_info: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ingredients: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    preparation_time_minutes: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True
    )

    created_by: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    expired_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    expiry_reminder_sent_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        CheckConstraint("total_quantity > 0", name="ck_listing_total_positive"),
        CheckConstraint(
            "available_quantity >= 0 AND available_quantity <= total_quantity",
            name="ck_listing_available_within_total",
        ),
        CheckConstraint("original_price > 0", name="ck_listing_original_positive"),
        CheckConstraint("asking_price >= 0", name="ck_listing_asking_non_negative"),
        Index("ix_listings_status_window_end", "status", "pickup_window_end"),
    )

    @property
    def is_purchasable(self) -> bool:
        return self.status == ListingStatus.ACTIVE and self.available_quantity > 0

    def __repr__(self):
        return (
            f"<Listing {self.id} {self.title!r} {self.status.value} "
            f"{self.available_quantity}/{self.total_quantity}>"
        )
