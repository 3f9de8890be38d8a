"""Enum definitions for communications service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class NotificationCategory(str, enum.Enum):
    ORDER_UPDATE = "order_update"
    NEW_LISTING = "new_listing"
    DEAL_EXPIRING = "deal_expiring"
    PAYMENT = "payment"
    REVIEW = "review"
    SYSTEM = "system"
