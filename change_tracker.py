"""
Price and status change tracking.

Runs once per enrichment pass and maintains the append/guard-once
fields of a listing:

  original_price          set on the first pass with a positive price, never again
  price_change_count      +1 whenever the price differs from a previously stored price
  price_history           append-only list of PriceHistoryEntry dicts, oldest first
  last_price_change_date  date of the most recent price change
  status_change_date      date listing_status last changed

The previous price and status are kept in auxiliary metadata
(_previous_price, _previous_listing_status) so the visible field set only
carries the history itself.  The very first price write is not a change.
"""

import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Callable, Optional

from listing_repository import ListingRepository, coerce_number, FieldValidationError

logger = logging.getLogger(__name__)

PREVIOUS_PRICE_KEY = "_previous_price"
PREVIOUS_STATUS_KEY = "_previous_listing_status"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PriceHistoryEntry:
    timestamp: str
    old_price: float
    new_price: float
    change_amount: float
    change_percent: float
    change_type: str   # "reduction" | "increase"

    @classmethod
    def between(cls, old_price: float, new_price: float, when: datetime) -> "PriceHistoryEntry":
        diff = new_price - old_price
        return cls(
            timestamp=when.isoformat(timespec="seconds"),
            old_price=old_price,
            new_price=new_price,
            change_amount=round(diff, 2),
            change_percent=round(diff / old_price * 100, 2),
            change_type="reduction" if diff < 0 else "increase",
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ChangeSummary:
    original_price_set: bool = False
    price_changed: bool = False
    status_changed: bool = False
    history_entry: Optional[PriceHistoryEntry] = None
    price_change_count: int = 0


class ChangeTracker:
    """Maintains price/status history for one listing per call."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._clock = clock

    def track(self, repo: ListingRepository) -> ChangeSummary:
        now = self._clock()
        today = now.date().isoformat()
        summary = ChangeSummary()

        price = repo.read_number("price")
        has_price = price is not None and price > 0

        # Original price: guard-once.
        original = repo.read_number("original_price")
        if has_price and not original:
            repo.set("original_price", price)
            summary.original_price_set = True

        count = int(repo.read_number("price_change_count") or 0)

        previous_price = self._previous_price(repo)
        if has_price and previous_price and price != previous_price:
            entry = PriceHistoryEntry.between(previous_price, price, now)
            history = repo.read_list("price_history")
            history.append(entry.to_dict())
            count += 1

            repo.set("price_history", history)
            repo.set("price_change_count", count)
            repo.set("last_price_change_date", today)

            summary.price_changed = True
            summary.history_entry = entry
            logger.info(
                "Listing %s price changed %s -> %s (%+.2f%%), change #%d",
                repo.listing_id, previous_price, price, entry.change_percent, count,
            )
        elif has_price and repo.get("price_change_count") is None:
            repo.set("price_change_count", 0)

        summary.price_change_count = count

        if has_price:
            repo.set_meta(PREVIOUS_PRICE_KEY, price)

        status = repo.get_text("listing_status")
        previous_status = repo.get_meta(PREVIOUS_STATUS_KEY)
        if status and status != previous_status:
            repo.set("status_change_date", today)
            repo.set_meta(PREVIOUS_STATUS_KEY, status)
            summary.status_changed = True
            logger.info(
                "Listing %s status changed %r -> %r", repo.listing_id, previous_status, status,
            )

        return summary

    @staticmethod
    def _previous_price(repo: ListingRepository) -> Optional[float]:
        try:
            return coerce_number(PREVIOUS_PRICE_KEY, repo.get_meta(PREVIOUS_PRICE_KEY))
        except FieldValidationError:
            logger.warning("Listing %s: discarding corrupt %s", repo.listing_id, PREVIOUS_PRICE_KEY)
            return None
