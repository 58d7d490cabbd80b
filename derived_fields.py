"""
Display and SEO fields composed from raw and derived listing values.
"""

import math
from datetime import date, datetime, time, timezone
from typing import Optional

from address_parser import build_full_address
from enrichment_config import ENRICHMENT_MODEL, MARKET_POSITION_TOP, EnrichmentModel

SECONDS_PER_DAY = 86400

# Same composition as the legacy alias written during address processing.
full_address = build_full_address


def _count(value: Optional[float]) -> str:
    """3.0 -> "3", 2.5 -> "2.5", 0 -> "0", None -> "?"."""
    if value is None:
        return "?"
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def seo_title(
    street_address: Optional[str],
    city: Optional[str],
    bedrooms: Optional[float],
    bathrooms: Optional[float],
    price: Optional[float],
) -> Optional[str]:
    """"12 Oak Rd, Dover - 3 Bed, 2.5 Bath - $425,000".  Needs city and price."""
    if not city or not price:
        return None
    return (
        f"{street_address or ''}, {city} - {_count(bedrooms)} Bed, "
        f"{_count(bathrooms)} Bath - ${int(round(price)):,}"
    )


def price_difference_percent(price: Optional[float], comparison: Optional[float]) -> Optional[float]:
    if not price or price <= 0 or not comparison or comparison <= 0:
        return None
    return (price - comparison) / comparison * 100


def market_position(
    price: Optional[float],
    estimated_market_value: Optional[float] = None,
    comparable_sales_avg_price: Optional[float] = None,
    model: EnrichmentModel = ENRICHMENT_MODEL,
) -> Optional[str]:
    """Bucket the listing price against its market estimate.

    The estimate is estimated_market_value when present, otherwise the
    comparable-sales average.
    """
    if estimated_market_value and estimated_market_value > 0:
        comparison = estimated_market_value
    else:
        comparison = comparable_sales_avg_price
    diff = price_difference_percent(price, comparison)
    if diff is None:
        return None
    # Rounded so 920k over 800k is exactly 15.0, not 15.000000000000002.
    diff = round(diff, 6)
    for band in model.market_bands:
        if band.contains(diff):
            return band.label
    return MARKET_POSITION_TOP


def days_on_market(list_date: Optional[date], now: Optional[datetime] = None) -> Optional[int]:
    """Whole days since list_date (midnight UTC), never negative."""
    if list_date is None:
        return None
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    listed = datetime.combine(list_date, time.min, tzinfo=timezone.utc)
    return max(0, math.floor((now - listed).total_seconds() / SECONDS_PER_DAY))


def bathrooms_total(full: Optional[float], half: Optional[float]) -> Optional[float]:
    if full is None and half is None:
        return None
    return (full or 0) + (half or 0) * 0.5


def lot_sqft(acres: Optional[float], model: EnrichmentModel = ENRICHMENT_MODEL) -> Optional[int]:
    if acres is None or acres <= 0:
        return None
    # Half-up, not banker's rounding, so 0.5 sq ft boundaries are stable.
    return int(math.floor(acres * model.sqft_per_acre + 0.5))
