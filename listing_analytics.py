"""
Listing analytics: engagement, neighbourhood and commission roll-ups.

  listing_performance_score  0-100, from views, inquiries, showings and days on market
  overall_school_rating      mean of the non-zero school ratings (1-10 scale)
  lifestyle_score            weighted walk / transit / bike / school score (0-100)
  total_commission           sum of the three commission percentages

Zero is treated as "not rated" for ratings and scores, matching how the
admin forms store an untouched field.
"""

from dataclasses import dataclass, asdict
from typing import Optional, Sequence, Tuple

BASE_PERFORMANCE_SCORE = 50

# (weight) for walkability, transit, bike, school*10
LIFESTYLE_WEIGHTS: Tuple[float, float, float, float] = (0.3, 0.2, 0.2, 0.3)


@dataclass
class ListingAnalytics:
    listing_performance_score: Optional[int] = None
    overall_school_rating: Optional[float] = None
    lifestyle_score: Optional[int] = None
    total_commission: Optional[float] = None

    def to_fields(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


def performance_score(
    views_total: Optional[float],
    views_this_week: Optional[float],
    inquiries: Optional[float],
    showings: Optional[float],
    days_on_market: Optional[float],
) -> int:
    """Start at 50, add up to 25 for views and 20 for engagement, subtract
    up to 15 for a stale listing, add 5 for early activity.  Clamped 0..100."""
    views = int(views_total or 0)
    weekly = int(views_this_week or 0)
    inquiries = int(inquiries or 0)
    showings = int(showings or 0)
    dom = int(days_on_market or 0)

    score = float(BASE_PERFORMANCE_SCORE)

    if views > 0:
        score += min(25, (views / 100) * 15 + (weekly / 20) * 10)
        inquiry_rate = inquiries / max(views, 1) * 100
        showing_rate = showings / max(inquiries, 1) * 100
        score += min(20, inquiry_rate * 0.15 + showing_rate * 0.05)

    if dom > 30:
        score -= min(15, (dom - 30) / 10)

    if dom < 7 and (inquiries > 0 or showings > 0):
        score += 5

    return int(max(0, min(100, round(score))))


def school_rating_average(ratings: Sequence[Optional[float]]) -> Optional[float]:
    rated = [r for r in ratings if r]
    if not rated:
        return None
    return round(sum(rated) / len(rated), 1)


def lifestyle_score(
    walkability: Optional[float],
    transit: Optional[float],
    bike: Optional[float],
    school_rating: Optional[float],
    weights: Tuple[float, float, float, float] = LIFESTYLE_WEIGHTS,
) -> Optional[int]:
    """Weighted average over the scores that are present.

    Each score keeps its own weight; missing scores drop out and the
    remaining weights are renormalised.
    """
    school = school_rating * 10 if school_rating else None
    weighted_sum = 0.0
    total_weight = 0.0
    for value, weight in zip((walkability, transit, bike, school), weights):
        if value:
            weighted_sum += value * weight
            total_weight += weight
    if total_weight <= 0:
        return None
    return int(round(weighted_sum / total_weight))


def total_commission(
    primary: Optional[float],
    secondary: Optional[float],
    buyer: Optional[float],
) -> Optional[float]:
    total = (primary or 0) + (secondary or 0) + (buyer or 0)
    return round(total, 4) if total > 0 else None


def analyze_listing(repo, days_on_market: Optional[int]) -> ListingAnalytics:
    """Read the engagement / neighbourhood inputs from repo and score them."""
    analytics = ListingAnalytics()

    analytics.listing_performance_score = performance_score(
        repo.read_number("listing_views_total"),
        repo.read_number("listing_views_this_week"),
        repo.read_number("inquiries_count_total"),
        repo.read_number("showings_count_total"),
        days_on_market,
    )

    analytics.overall_school_rating = school_rating_average([
        repo.read_number("elementary_school_rating"),
        repo.read_number("middle_school_rating"),
        repo.read_number("high_school_rating"),
    ])

    analytics.lifestyle_score = lifestyle_score(
        repo.read_number("walkability_score"),
        repo.read_number("transit_score"),
        repo.read_number("bike_score"),
        analytics.overall_school_rating,
    )

    analytics.total_commission = total_commission(
        repo.read_number("listing_agent_commission_primary"),
        repo.read_number("listing_agent_commission_secondary"),
        repo.read_number("buyer_agent_commission"),
    )
    return analytics
