"""Currency conversion utilities for Looper.

Internal storage unit: Naira as ``Decimal`` with two places (e.g. 1500.00).
Paystack unit: kobo (smallest NGN unit, 100 kobo = NGN 1).
Loyalty unit: points. Redemption and award rates come from settings.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal

# ─── constants ───────────────────────────────────────────────────────────────

KOBO_PER_NAIRA: int = 100
CENT = Decimal("0.01")


# ─── conversion helpers ───────────────────────────────────────────────────────


def to_money(value) -> Decimal:
    """Quantize any numeric value to two decimal places (round half-up)."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def naira_to_kobo(naira) -> int:
    """Convert Naira to kobo (round half-up). NGN 1 = 100 kobo."""
    return int(to_money(naira) * KOBO_PER_NAIRA)


def kobo_to_naira(kobo: int) -> Decimal:
    """Convert kobo to Naira. 100 kobo = NGN 1."""
    return to_money(Decimal(kobo) / KOBO_PER_NAIRA)


def points_to_naira(points: int, points_per_naira: int) -> Decimal:
    """Discount value of redeemed points (e.g. 10 points = NGN 1)."""
    return to_money(Decimal(points) / Decimal(points_per_naira))


def naira_to_points(naira, naira_per_point: int) -> int:
    """Points earned for an amount paid (floor, e.g. 1 point per NGN 100)."""
    return int(
        (Decimal(str(naira)) / Decimal(naira_per_point)).to_integral_value(
            rounding=ROUND_DOWN
        )
    )
