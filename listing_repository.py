"""
Typed access to one listing in the record store.

The record store speaks in untyped named values (whatever an admin form
or an import wrote).  ListingRepository converts at the boundary:
numbers arrive as int/float or numeric strings ("$1,250" is accepted),
dates as ISO strings, compact YYYYMMDD strings or date objects.  A value
that cannot be converted raises FieldValidationError from the strict
getters; the lenient read_* variants log it and treat the field as
absent, which is how the enrichment stages consume inputs.
"""

import logging
import re
from datetime import date, datetime
from typing import Any, List, Optional

from enrichment_config import ENRICHMENT_MODEL, EnrichmentModel
from models import RecordStore

logger = logging.getLogger(__name__)

_NUMERIC_NOISE = re.compile(r"[,$\s]")


class FieldValidationError(ValueError):
    """A stored value has the wrong type or an impossible value."""

    def __init__(self, field_name: str, value: Any, reason: str):
        self.field_name = field_name
        self.value = value
        super().__init__(f"{field_name}={value!r}: {reason}")


def coerce_number(field_name: str, value: Any, allow_negative: bool = False) -> Optional[float]:
    """Convert a stored value to float.  Empty values are None."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise FieldValidationError(field_name, value, "expected a number, got a boolean")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = _NUMERIC_NOISE.sub("", value)
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            raise FieldValidationError(field_name, value, "not a number") from None
    else:
        raise FieldValidationError(field_name, value, f"unsupported type {type(value).__name__}")

    if number != number or number in (float("inf"), float("-inf")):
        raise FieldValidationError(field_name, value, "not a finite number")
    if number < 0 and not allow_negative:
        raise FieldValidationError(field_name, value, "must not be negative")
    return number


def coerce_date(field_name: str, value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        for fmt in ("%Y-%m-%d", "%Y%m%d", "%m/%d/%Y"):
            try:
                return datetime.strptime(text, fmt).date()
            except ValueError:
                continue
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            pass
    raise FieldValidationError(field_name, value, "not a recognised date")


class ListingRepository:
    """Typed getters/setters for one listing id over a RecordStore."""

    def __init__(self, store: RecordStore, listing_id):
        self.store = store
        self.listing_id = listing_id

    # ------------------------------------------------------------------
    # Raw access
    # ------------------------------------------------------------------

    def get(self, field_name: str) -> Any:
        return self.store.get(self.listing_id, field_name)

    def set(self, field_name: str, value: Any) -> None:
        self.store.set(self.listing_id, field_name, value)

    def set_many(self, values: dict) -> None:
        for name, value in values.items():
            self.set(name, value)

    def get_meta(self, key: str) -> Any:
        return self.store.get_meta(self.listing_id, key)

    def set_meta(self, key: str, value: Any) -> None:
        self.store.set_meta(self.listing_id, key, value)

    # ------------------------------------------------------------------
    # Strict typed getters
    # ------------------------------------------------------------------

    def get_number(self, field_name: str, allow_negative: bool = True) -> Optional[float]:
        return coerce_number(field_name, self.get(field_name), allow_negative=allow_negative)

    def get_date(self, field_name: str) -> Optional[date]:
        return coerce_date(field_name, self.get(field_name))

    def get_text(self, field_name: str) -> Optional[str]:
        value = self.get(field_name)
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    def get_list(self, field_name: str) -> List[Any]:
        value = self.get(field_name)
        if value is None:
            return []
        if not isinstance(value, list):
            raise FieldValidationError(field_name, value, "expected a list")
        return list(value)

    # ------------------------------------------------------------------
    # Lenient getters (invalid -> absent)
    # ------------------------------------------------------------------

    def read_number(self, field_name: str, allow_negative: bool = False) -> Optional[float]:
        try:
            return self.get_number(field_name, allow_negative=allow_negative)
        except FieldValidationError as e:
            logger.warning("Listing %s: ignoring invalid field %s", self.listing_id, e)
            return None

    def read_date(self, field_name: str) -> Optional[date]:
        try:
            return self.get_date(field_name)
        except FieldValidationError as e:
            logger.warning("Listing %s: ignoring invalid field %s", self.listing_id, e)
            return None

    def read_list(self, field_name: str) -> List[Any]:
        try:
            return self.get_list(field_name)
        except FieldValidationError as e:
            logger.warning("Listing %s: ignoring invalid field %s", self.listing_id, e)
            return []


def validate_listing(repo: ListingRepository, model: EnrichmentModel = ENRICHMENT_MODEL) -> List[str]:
    """Plausibility checks on raw inputs.

    Returns human-readable warnings.  Nothing is rejected: a warning means
    "please verify", the value is still used.
    """
    limits = model.validation
    warnings = []

    checks = (
        ("price", "Price", limits.max_price),
        ("square_footage", "Square footage", limits.max_square_footage),
        ("bedrooms", "Bedrooms", limits.max_room_count),
        ("bathrooms_full", "Full bathrooms", limits.max_room_count),
        ("bathrooms_half", "Half bathrooms", limits.max_room_count),
    )
    for field_name, label, ceiling in checks:
        try:
            value = repo.get_number(field_name, allow_negative=False)
        except FieldValidationError as e:
            warnings.append(f"{label} must be a positive number ({e.value!r}).")
            continue
        if value is not None and value > ceiling:
            warnings.append(f"{label} seems unusually high ({value:,.0f}). Please verify.")

    for message in warnings:
        logger.info("Listing %s: %s", repo.listing_id, message)
    return warnings
