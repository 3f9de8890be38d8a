import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from services.wallet_service.models import (
    PointsReason,
    TopupStatus,
    TransactionDirection,
    TransactionType,
    WalletStatus,
)


class WalletResponse(BaseModel):
    id: uuid.UUID
    user_id: str
    balance: Decimal
    points_balance: int
    total_meals_rescued: int
    lifetime_credited: Decimal
    lifetime_debited: Decimal
    lifetime_points_earned: int
    status: WalletStatus
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionResponse(BaseModel):
    id: uuid.UUID
    transaction_type: TransactionType
    direction: TransactionDirection
    amount: Decimal
    balance_before: Decimal
    balance_after: Decimal
    source: str
    description: str
    order_id: Optional[uuid.UUID] = None
    reference: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PointsEntryResponse(BaseModel):
    id: uuid.UUID
    points_change: int
    reason: PointsReason
    order_id: Optional[uuid.UUID] = None
    balance_after: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TopupCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, description="Amount in NGN")
    payer_email: Optional[EmailStr] = None


class TopupResponse(BaseModel):
    id: uuid.UUID
    reference: str
    amount: Decimal
    status: TopupStatus
    authorization_url: Optional[str] = None
    completed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
