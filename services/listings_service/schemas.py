import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from services.listings_service.models import (
    BusinessType,
    ListingStatus,
    ListingType,
)

# ===== BUSINESS SCHEMAS =====


class BusinessCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    business_type: BusinessType = BusinessType.RESTAURANT
    description: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None


class BusinessResponse(BaseModel):
    id: uuid.UUID
    name: str
    business_type: BusinessType
    owner_auth_id: str
    description: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ===== LISTING SCHEMAS =====


class PeakRule(BaseModel):
    """Day/hour-scoped surcharge. ``days`` uses Monday=0 .. Sunday=6.

    ``end_hour < start_hour`` describes a window that crosses midnight,
    e.g. 22 -> 2 for late-night trade.
    """

    days: list[int] = Field(default_factory=list)
    start_hour: int = Field(..., ge=0, le=23)
    end_hour: int = Field(..., ge=1, le=24)
    surcharge_pct: Decimal = Field(..., ge=0, le=100)

    @model_validator(mode="after")
    def check_window(self):
        if self.end_hour == self.start_hour:
            raise ValueError("start_hour and end_hour must differ")
        if any(day < 0 or day > 6 for day in self.days):
            raise ValueError("days must be between 0 (Monday) and 6 (Sunday)")
        return self


class ListingCreate(BaseModel):
    business_id: uuid.UUID
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    listing_type: ListingType
    original_price: Decimal = Field(..., gt=0)
    asking_price: Decimal = Field(..., ge=0)
    total_quantity: int = Field(..., gt=0)
    pickup_window_start: datetime
    pickup_window_end: datetime
    bulk_threshold: Optional[int] = Field(None, ge=2)
    bulk_discount_pct: Optional[Decimal] = Field(None, gt=0, lt=100)
    peak_rules: Optional[list[PeakRule]] = None
    estimated_co2_savings_kg: Decimal = Field(Decimal("0"), ge=0)
    allergen_info: Optional[str] = None
    ingredients: Optional[str] = None
    preparation_time_minutes: Optional[int] = Field(None, ge=0)


class ListingUpdate(BaseModel):
    """Partial update. Only fields explicitly sent are applied."""

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    original_price: Optional[Decimal] = Field(None, gt=0)
    asking_price: Optional[Decimal] = Field(None, ge=0)
    total_quantity: Optional[int] = Field(None, gt=0)
    available_quantity: Optional[int] = Field(None, ge=0)
    pickup_window_start: Optional[datetime] = None
    pickup_window_end: Optional[datetime] = None
    bulk_threshold: Optional[int] = Field(None, ge=2)
    bulk_discount_pct: Optional[Decimal] = Field(None, gt=0, lt=100)
    peak_rules: Optional[list[PeakRule]] = None
    estimated_co2_savings_kg: Optional[Decimal] = Field(None, ge=0)
    allergen_info: Optional[str] = None
    ingredients: Optional[str] = None
    preparation_time_minutes: Optional[int] = Field(None, ge=0)


class ListingResponse(BaseModel):
    id: uuid.UUID
    business_id: uuid.UUID
    title: str
    description: Optional[str] = None
    listing_type: ListingType
    original_price: Decimal
    asking_price: Decimal
    discounted_price: Decimal
    total_quantity: int
    available_quantity: int
    pickup_window_start: datetime
    pickup_window_end: datetime
    status: ListingStatus
    bulk_threshold: Optional[int] = None
    bulk_discount_pct: Optional[Decimal] = None
    peak_rules: Optional[list[PeakRule]] = None
    estimated_co2_savings_kg: Decimal
    allergen_info: Optional[str] = None
    ingredients: Optional[str] = None
    preparation_time_minutes: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ListingQuote(BaseModel):
    listing_id: uuid.UUID
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    original_total: Decimal
    savings: Decimal


class ListingCancelRequest(BaseModel):
    reason: Optional[str] = None


ListingSort = Literal["expiry", "price"]
