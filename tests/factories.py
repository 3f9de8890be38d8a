"""
Model factories for creating valid test data.

Every factory produces a valid, insertable SQLAlchemy model instance.
Override any field via kwargs.

Usage:
    business = BusinessFactory.create(owner_auth_id="owner-1")
    listing = ListingFactory.create(business_id=business.id, total_quantity=3)
    db_session.add_all([business, listing])
    await db_session.commit()
"""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _uuid() -> uuid.UUID:
    return uuid.uuid4()


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Listings Service
# ---------------------------------------------------------------------------


class BusinessFactory:
    @staticmethod
    def create(**overrides):
        from services.listings_service.models import Business, BusinessType

        defaults = {
            "id": _uuid(),
            "name": "Mama Put Kitchen",
            "business_type": BusinessType.RESTAURANT,
            "owner_auth_id": f"owner-{uuid.uuid4().hex[:8]}",
            "address": "12 Allen Avenue, Ikeja",
            "is_active": True,
        }
        defaults.update(overrides)
        return Business(**defaults)


class BusinessStaffFactory:
    @staticmethod
    def create(business_id, **overrides):
        from services.listings_service.models import BusinessStaff, StaffRole

        defaults = {
            "id": _uuid(),
            "business_id": business_id,
            "user_id": f"staff-{uuid.uuid4().hex[:8]}",
            "role": StaffRole.STAFF,
        }
        defaults.update(overrides)
        return BusinessStaff(**defaults)


class ListingFactory:
    """Active listing far enough from expiry that no time-decay applies."""

    @staticmethod
    def create(business_id, **overrides):
        from services.listings_service.models import (
            Listing,
            ListingStatus,
            ListingType,
        )

        total = overrides.pop("total_quantity", 10)
        defaults = {
            "id": _uuid(),
            "business_id": business_id,
            "title": "Jollof rice and chicken",
            "listing_type": ListingType.INDIVIDUAL,
            "original_price": Decimal("2000.00"),
            "asking_price": Decimal("1000.00"),
            "discounted_price": Decimal("1000.00"),
            "total_quantity": total,
            "available_quantity": total,
            "pickup_window_start": _now() - timedelta(hours=1),
            "pickup_window_end": _now() + timedelta(hours=12),
            "status": ListingStatus.ACTIVE,
            "estimated_co2_savings_kg": Decimal("0.80"),
        }
        defaults.update(overrides)
        return Listing(**defaults)


# ---------------------------------------------------------------------------
# Wallet Service
# ---------------------------------------------------------------------------


class WalletFactory:
    @staticmethod
    def create(**overrides):
        from services.wallet_service.models import Wallet, WalletStatus

        defaults = {
            "id": _uuid(),
            "user_id": f"user-{uuid.uuid4().hex[:8]}",
            "balance": Decimal("0.00"),
            "points_balance": 0,
            "total_meals_rescued": 0,
            "lifetime_credited": Decimal("0.00"),
            "lifetime_debited": Decimal("0.00"),
            "lifetime_points_earned": 0,
            "status": WalletStatus.ACTIVE,
        }
        defaults.update(overrides)
        return Wallet(**defaults)


# ---------------------------------------------------------------------------
# Seeding helpers
# ---------------------------------------------------------------------------


async def seed_listing(db, *, business=None, **listing_overrides):
    """Insert a business (unless given) and one listing; return both."""
    business = business or BusinessFactory.create()
    listing = ListingFactory.create(business.id, **listing_overrides)
    db.add_all([business, listing])
    await db.commit()
    return business, listing
