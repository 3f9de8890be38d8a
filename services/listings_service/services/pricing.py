"""Pricing engine: time-decay, bulk and peak pricing for a listing.

Pure functions only. The same inputs always produce the same price; the
clock is passed in as ``now`` rather than read here whenever callers need
reproducible results.
"""

from datetime import datetime, tzinfo
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

from libs.common.currency import to_money
from libs.common.datetime_utils import as_utc, utc_now

# (hours until expiry, max share of original price)
TIME_DECAY_CEILINGS: tuple[tuple[int, Decimal], ...] = (
    (1, Decimal("0.20")),
    (3, Decimal("0.40")),
    (6, Decimal("0.60")),
)

HUNDRED = Decimal("100")


def hours_until(expiry: datetime, now: datetime) -> float:
    return (as_utc(expiry) - as_utc(now)).total_seconds() / 3600


def time_decay_ceiling(original_price, hours_left: float) -> Optional[Decimal]:
    """Highest price allowed this close to expiry, or None when no cap applies."""
    for max_hours, share in TIME_DECAY_CEILINGS:
        if hours_left <= max_hours:
            return Decimal(str(original_price)) * share
    return None


def matching_peak_rule(
    peak_rules: Optional[Iterable[Mapping[str, Any]]],
    moment: datetime,
) -> Optional[Mapping[str, Any]]:
    """First rule whose weekday set and ``[start_hour, end_hour)`` contain ``moment``.

    Weekdays follow ``datetime.weekday()`` (Monday is 0). A rule without
    ``days`` applies every day. When ``end_hour <= start_hour`` the window
    runs past midnight, and the early-morning hours count toward the day
    the window opened on.
    """
    if not peak_rules:
        return None
    weekday = moment.weekday()
    for rule in peak_rules:
        start = int(rule.get("start_hour", 0))
        end = int(rule.get("end_hour", 24))
        if start < end:
            opened_on = weekday if start <= moment.hour < end else None
        elif moment.hour >= start:
            opened_on = weekday
        elif moment.hour < end:
            opened_on = (weekday - 1) % 7
        else:
            opened_on = None
        if opened_on is None:
            continue
        days = rule.get("days")
        if days and opened_on not in days:
            continue
        return rule
    return None


def compute_price(
    original_price,
    asking_price,
    quantity: int,
    bulk_threshold: Optional[int],
    bulk_discount_pct,
    expiry: datetime,
    peak_rules: Optional[Iterable[Mapping[str, Any]]] = None,
    *,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
    floor=Decimal("0"),
) -> Decimal:
    """Effective unit price for buying ``quantity`` units of a listing.

    1. Time decay: the price is the lower of the asking price and the
       ceiling for the time left (<=1h: 20%, <=3h: 40%, <=6h: 60% of the
       original price).
    2. Bulk: when ``quantity >= bulk_threshold`` and a discount is set,
       multiply by ``1 - pct/100``.
    3. Peak: the first matching rule multiplies by ``1 + surcharge_pct/100``.
       Peak hours are evaluated in ``tz`` when given.

    The result is clamped to ``floor`` and rounded to 2 decimal places.
    """
    now = now or utc_now()
    price = Decimal(str(asking_price))

    ceiling = time_decay_ceiling(original_price, hours_until(expiry, now))
    if ceiling is not None:
        price = min(price, ceiling)

    if bulk_threshold and bulk_discount_pct and quantity >= bulk_threshold:
        price = price * (1 - Decimal(str(bulk_discount_pct)) / HUNDRED)

    local_now = as_utc(now).astimezone(tz) if tz else now
    rule = matching_peak_rule(peak_rules, local_now)
    if rule:
        price = price * (1 + Decimal(str(rule.get("surcharge_pct", 0))) / HUNDRED)

    return to_money(max(price, Decimal(str(floor))))


def listing_unit_price(
    listing,
    quantity: int = 1,
    *,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
    floor=Decimal("0"),
) -> Decimal:
    """``compute_price`` fed from a Listing row."""
    return compute_price(
        listing.original_price,
        listing.asking_price,
        quantity,
        listing.bulk_threshold,
        listing.bulk_discount_pct,
        listing.pickup_window_end,
        listing.peak_rules,
        now=now,
        tz=tz,
        floor=floor,
    )
