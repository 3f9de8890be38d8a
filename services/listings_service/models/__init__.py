"""Listings Service models package.

Re-exports all models and enums so SQLAlchemy's mapper registry sees every
model class on import.
"""

from services.listings_service.models.business import (  # noqa: F401
    Business,
    BusinessStaff,
)
from services.listings_service.models.enums import (  # noqa: F401
    BusinessType,
    ListingStatus,
    ListingType,
    StaffRole,
)
from services.listings_service.models.listing import Listing  # noqa: F401

__all__ = [
    # Enums
    "BusinessType",
    "ListingStatus",
    "ListingType",
    "StaffRole",
    # Models
    "Business",
    "BusinessStaff",
    "Listing",
]
