"""
Enrichment model configuration.

Owns every numeric constant that affects derived listing fields:
financing defaults, investment assumptions, grading rubric and
market-position bands.  Provider credentials and network settings are
read from the environment by EnrichmentSettings.

Frozen dataclasses provide type checking and IDE support without
the indirection of YAML/JSON config files.
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple


# =============================================================================
# Dataclasses
# =============================================================================

@dataclass(frozen=True)
class ScoreStep:
    """Awards `points` when a metric is >= `threshold`.

    Steps are evaluated highest-first: the first step whose threshold is
    met is used.
    """
    threshold: float
    points: int


@dataclass(frozen=True)
class GradeBand:
    """Maps a minimum rubric score to a letter grade."""
    min_score: int
    grade: str


@dataclass(frozen=True)
class MarketBand:
    """Upper bound (percent over comparison value) for a position."""
    max_percent: float
    label: str
    inclusive: bool = True

    def contains(self, percent: float) -> bool:
        if self.inclusive:
            return percent <= self.max_percent
        return percent < self.max_percent


@dataclass(frozen=True)
class FinancingDefaults:
    """Assumptions used when a listing leaves financing fields blank."""
    down_payment_percent: float = 20.0
    interest_rate: float = 6.5
    loan_term_years: int = 30
    pmi_rate: float = 0.5           # annual % of loan, only below pmi_threshold
    pmi_threshold_percent: float = 20.0
    debt_to_income_ratio: float = 0.28


@dataclass(frozen=True)
class InvestmentAssumptions:
    operating_expense_ratio: float = 0.25   # share of annual rent
    appreciation_rate: float = 3.0          # % per year
    projection_years: int = 5


@dataclass(frozen=True)
class ValidationLimits:
    """Plausibility ceilings; values above these are flagged, not rejected."""
    max_price: float = 50_000_000
    max_square_footage: float = 50_000
    max_room_count: float = 20


@dataclass(frozen=True)
class EnrichmentModel:
    """Top-level container for all enrichment parameters.

    A single module-level instance (ENRICHMENT_MODEL) is the source of truth.
    Bump `version` on every change that alters derived outputs.
    """
    version: str
    financing: FinancingDefaults
    investment: InvestmentAssumptions
    validation: ValidationLimits
    cap_rate_steps: Tuple[ScoreStep, ...]
    cash_flow_steps: Tuple[ScoreStep, ...]
    gross_yield_steps: Tuple[ScoreStep, ...]
    grade_bands: Tuple[GradeBand, ...]
    market_bands: Tuple[MarketBand, ...]
    sqft_per_acre: int = 43560


# =============================================================================
# Pure helpers
# =============================================================================

def score_from_steps(steps: Tuple[ScoreStep, ...], value: float) -> int:
    """Return the points of the first step whose threshold `value` meets."""
    for step in steps:
        if value >= step.threshold:
            return step.points
    return 0


def grade_for_score(bands: Tuple[GradeBand, ...], score: int, fallback: str = "F") -> str:
    for band in bands:
        if score >= band.min_score:
            return band.grade
    return fallback


# =============================================================================
# Model instance
# =============================================================================

ENRICHMENT_MODEL = EnrichmentModel(
    version="1.0.0",
    financing=FinancingDefaults(),
    investment=InvestmentAssumptions(),
    validation=ValidationLimits(),
    cap_rate_steps=(
        ScoreStep(8, 40),
        ScoreStep(6, 30),
        ScoreStep(4, 20),
        ScoreStep(2, 10),
    ),
    cash_flow_steps=(
        ScoreStep(500, 40),
        ScoreStep(200, 30),
        ScoreStep(0, 20),
        ScoreStep(-200, 10),
    ),
    gross_yield_steps=(
        ScoreStep(12, 20),
        ScoreStep(10, 15),
        ScoreStep(8, 10),
        ScoreStep(6, 5),
    ),
    grade_bands=(
        GradeBand(90, "A+"),
        GradeBand(80, "A"),
        GradeBand(70, "B+"),
        GradeBand(60, "B"),
        GradeBand(50, "C+"),
        GradeBand(40, "C"),
        GradeBand(30, "D"),
    ),
    market_bands=(
        MarketBand(-10.0, "underpriced"),
        MarketBand(5.0, "fair_value"),
        # Exactly +15% already counts as premium.
        MarketBand(15.0, "overpriced", inclusive=False),
    ),
)

# Anything above the last market band.
MARKET_POSITION_TOP = "premium"


# =============================================================================
# Runtime settings (environment)
# =============================================================================

def _env_str(name: str) -> Optional[str]:
    value = os.environ.get(name, "").strip()
    return value or None


@dataclass
class EnrichmentSettings:
    """
    Process-level settings.

    Loads from environment variables with sensible defaults.  Call
    dotenv.load_dotenv() before load() if a .env file should be honoured.
    """

    google_api_key: Optional[str] = field(default_factory=lambda: _env_str("GOOGLE_MAPS_API_KEY"))
    opencage_api_key: Optional[str] = field(default_factory=lambda: _env_str("OPENCAGE_API_KEY"))
    geocoding_timeout: float = field(
        default_factory=lambda: float(os.environ.get("GEOCODING_TIMEOUT", "10"))
    )
    user_agent: str = field(
        default_factory=lambda: os.environ.get(
            "GEOCODING_USER_AGENT", "listing-enrichment/1.0 (real estate listing enrichment)"
        )
    )
    db_path: str = field(default_factory=lambda: os.environ.get("LISTINGS_DB_PATH", "listings.db"))

    @classmethod
    def load(cls) -> "EnrichmentSettings":
        """Load settings from environment."""
        return cls()

    def to_dict(self) -> dict:
        """Settings as a dict with credentials masked (safe to log)."""
        return {
            "google_api_key": "set" if self.google_api_key else None,
            "opencage_api_key": "set" if self.opencage_api_key else None,
            "geocoding_timeout": self.geocoding_timeout,
            "user_agent": self.user_agent,
            "db_path": self.db_path,
        }
