#!/usr/bin/env python3
"""
Listing enrichment pipeline.

EnrichmentService.enrich(listing_id) runs every stage over one stored
listing and writes the derived fields back through the record store:

  validation -> address -> geocoding -> county -> financial
  -> investment -> changes -> derived -> analytics

Each stage is timed on a per-pass EnrichmentTrace.  A stage that raises is
logged and recorded as errored; the remaining stages still run, so a
provider outage or a bad input yields a partial enrichment rather than
none.  RecordStoreError is the exception: if the store cannot be read or
written, enrich() stops and re-raises.

Usage:
    python enrichment.py 1042
    python enrichment.py 1042 --db /var/lib/listings.db --trace
"""

import argparse
import json
import logging
import sys
import threading
import weakref
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from dotenv import load_dotenv

from address_parser import (
    build_full_street_address,
    build_unparsed_address,
    legacy_address_aliases,
    parse_street_address,
)
from change_tracker import ChangeSummary, ChangeTracker
from county_lookup import county_for_zip
from derived_fields import (
    bathrooms_total,
    days_on_market,
    full_address,
    lot_sqft,
    market_position,
    seo_title,
)
from enrich_trace import EnrichmentTrace, StageStatus, clear_trace, get_trace, set_trace
from enrichment_config import ENRICHMENT_MODEL, EnrichmentModel, EnrichmentSettings
from financial import FinancialInputs, FinancialSummary, compute_financials
from geocoding import GeocodingResolver
from investment import InvestmentInputs, analyze_investment
from listing_analytics import analyze_listing
from listing_repository import ListingRepository, validate_listing
from models import RecordStore, RecordStoreError, SqliteRecordStore

logger = logging.getLogger(__name__)

# Set when estimated_monthly_pmi holds our own estimate rather than an entered value.
PMI_ESTIMATED_KEY = "_pmi_estimated"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _carrying_cost(summary: FinancialSummary) -> Optional[float]:
    """PITI plus HOA, without PMI: the monthly payment charged against rent."""
    if summary.piti is None and summary.total_monthly_hoa is None:
        return None
    return round((summary.piti or 0) + (summary.total_monthly_hoa or 0), 2)


# =============================================================================
# Result types
# =============================================================================

@dataclass
class EnrichmentResult:
    """What one enrich() call did."""
    listing_id: str
    fields_written: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    geocode_status: Optional[str] = None
    changes: Optional[ChangeSummary] = None
    stage_errors: Dict[str, str] = field(default_factory=dict)
    trace: Optional[Dict[str, Any]] = None

    @property
    def partial(self) -> bool:
        return bool(self.stage_errors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "listing_id": self.listing_id,
            "fields_written": self.fields_written,
            "warnings": self.warnings,
            "geocode_status": self.geocode_status,
            "price_changed": bool(self.changes and self.changes.price_changed),
            "status_changed": bool(self.changes and self.changes.status_changed),
            "stage_errors": self.stage_errors,
            "partial": self.partial,
        }


@dataclass
class _PassState:
    """Values handed from one stage to the next within a single pass."""
    financial: FinancialSummary = field(default_factory=FinancialSummary)
    days_on_market: Optional[int] = None


class _RecordingRepository(ListingRepository):
    """ListingRepository that remembers every field it wrote."""

    def __init__(self, store: RecordStore, listing_id):
        super().__init__(store, listing_id)
        self.written: Dict[str, Any] = {}

    def set(self, field_name: str, value: Any) -> None:
        super().set(field_name, value)
        self.written[field_name] = value


# Stage functions return SKIPPED when they had nothing to do.
SKIPPED = object()


# =============================================================================
# Service
# =============================================================================

class EnrichmentService:
    """Enriches stored listings.  Build once per process and share it."""

    def __init__(
        self,
        store: RecordStore,
        settings: Optional[EnrichmentSettings] = None,
        resolver: Optional[GeocodingResolver] = None,
        clock: Optional[Callable[[], datetime]] = None,
        model: EnrichmentModel = ENRICHMENT_MODEL,
    ):
        self.store = store
        self.settings = settings or EnrichmentSettings.load()
        self.resolver = resolver or GeocodingResolver.from_settings(self.settings)
        self.clock = clock or _utcnow
        self.model = model
        self.change_tracker = ChangeTracker(clock=self.clock)

        # Entries vanish once no pass holds the lock.
        self._locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

        self.stages = (
            ("validation", self._validate),
            ("address", self._process_address),
            ("geocoding", self._geocode),
            ("county", self._fill_county),
            ("financial", self._compute_financials),
            ("investment", self._analyze_investment),
            ("changes", self._track_changes),
            ("derived", self._derive_fields),
            ("analytics", self._compute_analytics),
        )

    def _lock_for(self, listing_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(listing_id)
            if lock is None:
                lock = self._locks[listing_id] = threading.Lock()
            return lock

    def enrich(self, listing_id) -> EnrichmentResult:
        """Run every stage for one listing.  Raises RecordStoreError only."""
        listing_id = str(listing_id)
        with self._lock_for(listing_id):
            return self._enrich_locked(listing_id)

    def _enrich_locked(self, listing_id: str) -> EnrichmentResult:
        trace = EnrichmentTrace(listing_id=listing_id)
        previous_trace = get_trace()
        set_trace(trace)

        repo = _RecordingRepository(self.store, listing_id)
        result = EnrichmentResult(listing_id=listing_id)
        state = _PassState()
        logger.info("Enriching listing %s", listing_id)
        try:
            for name, stage in self.stages:
                self._run_stage(name, stage, repo, state, result)
        finally:
            trace.log_summary()
            result.trace = trace.summary_dict()
            result.fields_written = dict(repo.written)
            if previous_trace is not None:
                set_trace(previous_trace)
            else:
                clear_trace()

        if result.partial:
            logger.warning(
                "Listing %s partially enriched; failed stages: %s",
                listing_id, ", ".join(result.stage_errors),
            )
        return result

    def _run_stage(self, name, stage, repo, state, result):
        trace = get_trace()
        started = trace.begin(name)
        try:
            outcome = stage(repo, state, result)
        except RecordStoreError as e:
            trace.finish(started, StageStatus.ERROR, f"{type(e).__name__}: {e}"[:200])
            raise
        except Exception as e:
            logger.warning("Listing %s: stage %s failed", repo.listing_id, name, exc_info=True)
            error = f"{type(e).__name__}: {e}"
            trace.finish(started, StageStatus.ERROR, error[:200])
            result.stage_errors[name] = error
            return
        trace.finish(started, StageStatus.SKIPPED if outcome is SKIPPED else StageStatus.OK)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _validate(self, repo, state, result):
        result.warnings = validate_listing(repo, self.model)

    def _process_address(self, repo, state, result):
        street = repo.get_text("street_address")
        if not street:
            return SKIPPED
        unit = repo.get_text("unit_number")
        city = repo.get_text("city")
        st = repo.get_text("state")
        zip_code = repo.get_text("zip_code")

        repo.set("unparsed_address", build_unparsed_address(street, unit, city, st, zip_code))
        existing = {name: repo.get(name) for name in ("address", "region", "zip")}
        repo.set_many(legacy_address_aliases(street, st, zip_code, existing))

        components = parse_street_address(street)
        if components.is_empty():
            logger.info("Listing %s: street line %r not parsed, components kept", repo.listing_id, street)
            return

        # All five components are rewritten so a shortened street line
        # cannot leave a stale prefix or suffix behind.
        for name, value in components.to_fields().items():
            repo.set(name, value)
        repo.set("full_street_address", build_full_street_address(components, unit))

    def _geocode(self, repo, state, result):
        outcome = self.resolver.geocode_listing(repo)
        result.geocode_status = outcome.status
        if outcome.status in ("incomplete_address", "cache_hit"):
            return SKIPPED
        if outcome.status == "failed":
            logger.warning("Listing %s: no geocoding provider resolved the address", repo.listing_id)

    def _fill_county(self, repo, state, result):
        if repo.get_text("county"):
            return SKIPPED
        county = county_for_zip(repo.get_text("zip_code"))
        if county is None:
            return SKIPPED
        repo.set("county", county)

    def _compute_financials(self, repo, state, result):
        pmi_estimated = bool(repo.get_meta(PMI_ESTIMATED_KEY))
        inputs = FinancialInputs(
            price=repo.read_number("price"),
            square_footage=repo.read_number("square_footage"),
            down_payment_percent=repo.read_number("down_payment_percent"),
            interest_rate=repo.read_number("interest_rate"),
            loan_term_years=repo.read_number("loan_term_years"),
            hoa_fee_monthly=repo.read_number("hoa_fee_monthly"),
            hoa_fee_quarterly=repo.read_number("hoa_fee_quarterly"),
            hoa_fee_annual=repo.read_number("hoa_fee_annual"),
            estimated_monthly_taxes=repo.read_number("estimated_monthly_taxes"),
            estimated_monthly_insurance=repo.read_number("estimated_monthly_insurance"),
            estimated_monthly_pmi=None if pmi_estimated else repo.read_number("estimated_monthly_pmi"),
            property_tax_annual=repo.read_number("property_tax_annual"),
            insurance_estimated_annual=repo.read_number("insurance_estimated_annual"),
            pmi_rate=repo.read_number("pmi_rate"),
        )
        summary = compute_financials(inputs, self.model)
        state.financial = summary

        fields = summary.to_fields()
        if not fields:
            return SKIPPED
        repo.set_many(fields)

        now_estimated = summary.estimated_monthly_pmi is not None
        if pmi_estimated and not now_estimated:
            repo.set("estimated_monthly_pmi", None)
        if now_estimated or pmi_estimated:
            repo.set_meta(PMI_ESTIMATED_KEY, now_estimated)

    def _analyze_investment(self, repo, state, result):
        inputs = InvestmentInputs(
            price=repo.read_number("price"),
            monthly_rent=repo.read_number("estimated_monthly_rent"),
            total_monthly_payment=_carrying_cost(state.financial),
            down_payment_amount=state.financial.down_payment_amount,
            appreciation_rate=repo.read_number("appreciation_rate", allow_negative=True),
        )
        fields = analyze_investment(inputs, self.model).to_fields()
        fields.pop("investment_score", None)
        if not fields:
            return SKIPPED
        repo.set_many(fields)

    def _track_changes(self, repo, state, result):
        result.changes = self.change_tracker.track(repo)

    def _derive_fields(self, repo, state, result):
        street = repo.get_text("street_address")
        city = repo.get_text("city")
        price = repo.read_number("price")

        baths = bathrooms_total(repo.read_number("bathrooms_full"), repo.read_number("bathrooms_half"))
        state.days_on_market = days_on_market(repo.read_date("list_date"), self.clock())

        derived = {
            "full_address": full_address(
                street, repo.get_text("unit_number"), city,
                repo.get_text("state"), repo.get_text("zip_code"),
            ),
            "bathrooms_total": baths,
            "lot_sqft": lot_sqft(repo.read_number("lot_size_acres"), self.model),
            "days_on_market": state.days_on_market,
            "seo_title": seo_title(street, city, repo.read_number("bedrooms"), baths, price),
            "market_position": market_position(
                price,
                repo.read_number("estimated_market_value"),
                repo.read_number("comparable_sales_avg_price"),
                self.model,
            ),
        }
        derived = {k: v for k, v in derived.items() if v is not None}
        if not derived:
            return SKIPPED
        repo.set_many(derived)

    def _compute_analytics(self, repo, state, result):
        repo.set_many(analyze_listing(repo, state.days_on_market).to_fields())


# =============================================================================
# Construction
# =============================================================================

def build_service(settings: Optional[EnrichmentSettings] = None, **kwargs) -> EnrichmentService:
    """Open the SQLite store named by settings.db_path and wrap it in a service.

    The caller owns the returned service and passes it to whatever needs to
    enrich listings.  Extra keyword arguments go to EnrichmentService.
    """
    settings = settings or EnrichmentSettings.load()
    store = SqliteRecordStore(settings.db_path)
    store.init_db()
    return EnrichmentService(store, settings, **kwargs)


# =============================================================================
# CLI
# =============================================================================

def main():
    load_dotenv()
    logging.basicConfig(level=logging.INFO)

    parser = argparse.ArgumentParser(
        description="Recompute derived fields for a stored listing"
    )
    parser.add_argument(
        "listing_id",
        help="Listing id in the record store"
    )
    parser.add_argument(
        "--db",
        help="SQLite database path (or set LISTINGS_DB_PATH env var)"
    )
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Include per-stage timing in the output"
    )
    args = parser.parse_args()

    settings = EnrichmentSettings.load()
    if args.db:
        settings.db_path = args.db
    logger.info("Settings: %s", settings.to_dict())

    try:
        result = build_service(settings).enrich(args.listing_id)
    except RecordStoreError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    output = result.to_dict()
    if args.trace:
        output["trace"] = result.trace
    print(json.dumps(output, indent=2, default=str))
    sys.exit(2 if result.partial else 0)


if __name__ == "__main__":
    main()
