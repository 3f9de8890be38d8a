"""Wallet Service models package.

Re-exports all models and enums so that:
  - ``from services.wallet_service.models import Wallet`` works unchanged
  - SQLAlchemy's mapper registry sees every model class on import

Every model class AND enum must be listed here.
"""

from services.wallet_service.models.enums import (  # noqa: F401
    PointsReason,
    TopupStatus,
    TransactionDirection,
    TransactionType,
    WalletStatus,
)
from services.wallet_service.models.topup import WalletTopup  # noqa: F401
from services.wallet_service.models.transaction import (  # noqa: F401
    PointsEntry,
    WalletTransaction,
)
from services.wallet_service.models.wallet import Wallet  # noqa: F401

__all__ = [
    # Enums
    "PointsReason",
    "TopupStatus",
    "TransactionDirection",
    "TransactionType",
    "WalletStatus",
    # Models
    "Wallet",
    "WalletTransaction",
    "PointsEntry",
    "WalletTopup",
]
