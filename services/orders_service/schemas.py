import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from services.orders_service.models import OrderStatus, PaymentMethod


# ===== REQUESTS =====


class CartLineIn(BaseModel):
    listing_id: uuid.UUID
    quantity: int = Field(..., ge=1, le=100)


class OrderCreate(BaseModel):
    items: list[CartLineIn] = Field(..., min_length=1)
    use_wallet: bool = False
    points_to_redeem: int = Field(0, ge=0)
    payer_email: Optional[EmailStr] = None
    is_donation: bool = False
    special_instructions: Optional[str] = Field(None, max_length=500)


class StatusUpdateRequest(BaseModel):
    status: OrderStatus
    reason: Optional[str] = None


class CancelRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class PickupVerifyRequest(BaseModel):
    pickup_code: str = Field(..., min_length=1, max_length=12)


class DisputeRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


# ===== RESPONSES =====


class OrderItemResponse(BaseModel):
    id: uuid.UUID
    listing_id: uuid.UUID
    title: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal

    model_config = ConfigDict(from_attributes=True)


class BusinessOrderResponse(BaseModel):
    """Order as seen by the business. The pickup code is never exposed here."""

    id: uuid.UUID
    consumer_id: Optional[str] = None
    business_id: uuid.UUID
    status: OrderStatus
    items: list[OrderItemResponse]
    subtotal_amount: Decimal
    points_discount_amount: Decimal
    total_amount: Decimal
    is_donation: bool
    special_instructions: Optional[str] = None
    paid_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderResponse(BusinessOrderResponse):
    pickup_code: str
    points_redeemed: int
    wallet_amount_applied: Decimal
    amount_due: Decimal
    paid_amount: Decimal
    refunded_amount: Decimal
    points_awarded: int
    payment_method: Optional[PaymentMethod] = None
    payment_reference: Optional[str] = None
    payment_authorization_url: Optional[str] = None


# ===== REVIEWS =====


class ReviewCreate(BaseModel):
    order_id: uuid.UUID
    rating_food: int = Field(..., ge=1, le=5)
    rating_service: int = Field(..., ge=1, le=5)
    rating_packaging: Optional[int] = Field(None, ge=1, le=5)
    rating_value: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)


class ReviewReplyRequest(BaseModel):
    response: str = Field(..., min_length=1, max_length=2000)


class ReviewResponse(BaseModel):
    id: uuid.UUID
    order_id: uuid.UUID
    business_id: uuid.UUID
    rating_food: int
    rating_service: int
    rating_packaging: Optional[int] = None
    rating_value: Optional[int] = None
    overall_rating: int
    comment: Optional[str] = None
    is_verified_purchase: bool
    business_response: Optional[str] = None
    business_response_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RatingStatsResponse(BaseModel):
    total_reviews: int
    average_rating: float
    average_food: float
    average_service: float
    average_packaging: float
    average_value: float
    rating_breakdown: dict[int, int]

    model_config = ConfigDict(from_attributes=True)


class BusinessReviewsResponse(BaseModel):
    stats: RatingStatsResponse
    reviews: list[ReviewResponse]
