"""Enums for the Listings Service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class ListingType(str, enum.Enum):
    INDIVIDUAL = "individual"
    BULK_BAG = "bulk_bag"
    CHEF_SPECIAL = "chef_special"
    MYSTERY_BOX = "mystery_box"


class ListingStatus(str, enum.Enum):
    ACTIVE = "active"
    SOLD_OUT = "sold_out"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class BusinessType(str, enum.Enum):
    RESTAURANT = "restaurant"
    BAKERY = "bakery"
    CAFE = "cafe"
    GROCERY = "grocery"
    HOTEL = "hotel"
    CATERING = "catering"
    OTHER = "other"


class StaffRole(str, enum.Enum):
    OWNER = "owner"
    MANAGER = "manager"
    STAFF = "staff"
