"""
Investment analysis for rental use of a listing.

Pure functions over price, expected rent and the monthly carrying cost
produced by financial.compute_financials().  Nothing is computed unless
the listing has both a positive price and a positive monthly rent.

The investment grade is a 100-point rubric: cap rate up to 40 points,
monthly cash flow up to 40, gross yield up to 20.  Thresholds and grade
bands live in enrichment_config.ENRICHMENT_MODEL.
"""

from dataclasses import dataclass, asdict
from typing import Optional

from enrichment_config import (
    ENRICHMENT_MODEL,
    EnrichmentModel,
    grade_for_score,
    score_from_steps,
)


def _positive(value: Optional[float]) -> bool:
    return value is not None and value > 0


@dataclass
class OnePercentRule:
    ratio: float     # monthly rent as % of price
    meets: bool


@dataclass
class InvestmentInputs:
    price: Optional[float] = None
    monthly_rent: Optional[float] = None
    total_monthly_payment: Optional[float] = None
    down_payment_amount: Optional[float] = None
    appreciation_rate: Optional[float] = None


@dataclass
class InvestmentSummary:
    estimated_annual_rent: Optional[float] = None
    gross_rental_yield: Optional[float] = None
    gross_rent_multiplier: Optional[float] = None
    one_percent_rule_ratio: Optional[float] = None
    meets_one_percent_rule: Optional[bool] = None
    net_operating_income: Optional[float] = None
    cap_rate: Optional[float] = None
    monthly_cash_flow: Optional[float] = None
    annual_cash_flow: Optional[float] = None
    break_even_ratio: Optional[float] = None
    cash_on_cash_return: Optional[float] = None
    roi_projected_5year: Optional[float] = None
    investment_score: Optional[int] = None
    investment_grade: Optional[str] = None

    def to_fields(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


# =============================================================================
# Pure calculators
# =============================================================================

def gross_rental_yield(price: Optional[float], monthly_rent: Optional[float]) -> Optional[float]:
    """Annual rent as a percentage of price."""
    if not (_positive(price) and _positive(monthly_rent)):
        return None
    return monthly_rent * 12 / price * 100


def gross_rent_multiplier(price: Optional[float], monthly_rent: Optional[float]) -> Optional[float]:
    if not (_positive(price) and _positive(monthly_rent)):
        return None
    return price / (monthly_rent * 12)


def one_percent_rule(price: Optional[float], monthly_rent: Optional[float]) -> Optional[OnePercentRule]:
    if not (_positive(price) and _positive(monthly_rent)):
        return None
    ratio = monthly_rent / price * 100
    return OnePercentRule(ratio=round(ratio, 4), meets=ratio >= 1.0)


def operating_expenses(
    annual_rent: float,
    expense_ratio: float = ENRICHMENT_MODEL.investment.operating_expense_ratio,
) -> float:
    return annual_rent * expense_ratio


def net_operating_income(
    annual_rent: Optional[float],
    expense_ratio: float = ENRICHMENT_MODEL.investment.operating_expense_ratio,
) -> Optional[float]:
    if not _positive(annual_rent):
        return None
    return annual_rent - operating_expenses(annual_rent, expense_ratio)


def cap_rate(noi: Optional[float], price: Optional[float]) -> Optional[float]:
    if noi is None or not _positive(price):
        return None
    return noi / price * 100


def monthly_cash_flow(
    monthly_rent: Optional[float],
    total_monthly_payment: Optional[float],
    annual_operating_expenses: float,
) -> Optional[float]:
    if not _positive(monthly_rent):
        return None
    return monthly_rent - (total_monthly_payment or 0) - annual_operating_expenses / 12


def break_even_ratio(
    monthly_rent: Optional[float],
    total_monthly_payment: Optional[float],
    annual_operating_expenses: float,
) -> Optional[float]:
    """Rent divided by all monthly outgoings; >= 1.0 means the rent covers them."""
    outgoings = (total_monthly_payment or 0) + annual_operating_expenses / 12
    if not _positive(monthly_rent) or outgoings <= 0:
        return None
    return monthly_rent / outgoings


def cash_on_cash_return(cash_flow_monthly: Optional[float], down_payment_amount: Optional[float]) -> Optional[float]:
    if cash_flow_monthly is None or not _positive(down_payment_amount):
        return None
    return cash_flow_monthly * 12 / down_payment_amount * 100


def roi_projected(
    price: Optional[float],
    cash_flow_monthly: Optional[float],
    down_payment_amount: Optional[float],
    appreciation_rate: float = ENRICHMENT_MODEL.investment.appreciation_rate,
    years: int = ENRICHMENT_MODEL.investment.projection_years,
) -> Optional[float]:
    """Total return over `years` (cash flow + appreciation) against the down payment."""
    if not _positive(price) or cash_flow_monthly is None or not _positive(down_payment_amount):
        return None
    appreciation_value = price * (1 + appreciation_rate / 100) ** years - price
    total_return = cash_flow_monthly * 12 * years + appreciation_value
    return total_return / down_payment_amount * 100


def investment_score(
    cap_rate_pct: float,
    cash_flow_monthly: float,
    gross_yield_pct: float,
    model: EnrichmentModel = ENRICHMENT_MODEL,
) -> int:
    return (
        score_from_steps(model.cap_rate_steps, cap_rate_pct)
        + score_from_steps(model.cash_flow_steps, cash_flow_monthly)
        + score_from_steps(model.gross_yield_steps, gross_yield_pct)
    )


def investment_grade(
    cap_rate_pct: float,
    cash_flow_monthly: float,
    gross_yield_pct: float,
    model: EnrichmentModel = ENRICHMENT_MODEL,
) -> str:
    """Letter grade A+ .. F from the rubric score."""
    score = investment_score(cap_rate_pct, cash_flow_monthly, gross_yield_pct, model)
    return grade_for_score(model.grade_bands, score)


# =============================================================================
# Assembly
# =============================================================================

def analyze_investment(inputs: InvestmentInputs, model: EnrichmentModel = ENRICHMENT_MODEL) -> InvestmentSummary:
    summary = InvestmentSummary()
    price, rent = inputs.price, inputs.monthly_rent
    if not (_positive(price) and _positive(rent)):
        return summary

    assumptions = model.investment
    annual_rent = rent * 12
    opex = operating_expenses(annual_rent, assumptions.operating_expense_ratio)
    noi = annual_rent - opex

    gross_yield = gross_rental_yield(price, rent)
    cap = cap_rate(noi, price)
    cash_flow = monthly_cash_flow(rent, inputs.total_monthly_payment, opex)
    rule = one_percent_rule(price, rent)

    summary.estimated_annual_rent = round(annual_rent, 2)
    summary.gross_rental_yield = round(gross_yield, 2)
    summary.gross_rent_multiplier = round(gross_rent_multiplier(price, rent), 2)
    summary.one_percent_rule_ratio = rule.ratio
    summary.meets_one_percent_rule = rule.meets
    summary.net_operating_income = round(noi, 2)
    summary.cap_rate = round(cap, 2)
    summary.monthly_cash_flow = round(cash_flow, 2)
    summary.annual_cash_flow = round(cash_flow * 12, 2)

    ratio = break_even_ratio(rent, inputs.total_monthly_payment, opex)
    if ratio is not None:
        summary.break_even_ratio = round(ratio, 2)

    coc = cash_on_cash_return(cash_flow, inputs.down_payment_amount)
    if coc is not None:
        summary.cash_on_cash_return = round(coc, 2)

    appreciation = inputs.appreciation_rate
    if appreciation is None:
        appreciation = assumptions.appreciation_rate
    roi = roi_projected(price, cash_flow, inputs.down_payment_amount, appreciation, assumptions.projection_years)
    if roi is not None:
        summary.roi_projected_5year = round(roi, 2)

    summary.investment_score = investment_score(cap, cash_flow, gross_yield, model)
    summary.investment_grade = grade_for_score(model.grade_bands, summary.investment_score)
    return summary
