"""
Financial calculations for a listing.

Pure, stateless functions over price / loan / cost inputs.  Every
function returns None ("not computed") instead of raising when an input
is missing or a denominator would be zero; callers skip writing the
corresponding field.  All monetary outputs are rounded to cents.
"""

from dataclasses import dataclass, asdict
from typing import Optional

from enrichment_config import ENRICHMENT_MODEL, EnrichmentModel


def _money(value: float) -> float:
    return round(value, 2)


def _positive(value: Optional[float]) -> bool:
    return value is not None and value > 0


# =============================================================================
# Data classes
# =============================================================================

@dataclass
class HOATotals:
    monthly: float
    annual: float


@dataclass
class MonthlyCost:
    total: float
    piti: float   # principal + interest + taxes + insurance


@dataclass
class FinancialInputs:
    """Raw listing values the financial stage reads."""
    price: Optional[float] = None
    square_footage: Optional[float] = None
    down_payment_percent: Optional[float] = None
    interest_rate: Optional[float] = None
    loan_term_years: Optional[float] = None
    hoa_fee_monthly: Optional[float] = None
    hoa_fee_quarterly: Optional[float] = None
    hoa_fee_annual: Optional[float] = None
    estimated_monthly_taxes: Optional[float] = None
    estimated_monthly_insurance: Optional[float] = None
    estimated_monthly_pmi: Optional[float] = None
    property_tax_annual: Optional[float] = None
    insurance_estimated_annual: Optional[float] = None
    pmi_rate: Optional[float] = None


@dataclass
class FinancialSummary:
    """Derived financial fields.  None means "do not write"."""
    price_per_sqft: Optional[float] = None
    down_payment_amount: Optional[float] = None
    loan_amount: Optional[float] = None
    estimated_monthly_payment: Optional[float] = None
    property_tax_monthly: Optional[float] = None
    insurance_estimated_monthly: Optional[float] = None
    estimated_monthly_pmi: Optional[float] = None
    total_monthly_hoa: Optional[float] = None
    total_annual_hoa: Optional[float] = None
    piti: Optional[float] = None
    total_monthly_cost: Optional[float] = None
    affordability_income_required: Optional[float] = None

    def to_fields(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


# =============================================================================
# Pure calculators
# =============================================================================

def price_per_sqft(price: Optional[float], sqft: Optional[float]) -> Optional[float]:
    if not (_positive(price) and _positive(sqft)):
        return None
    return _money(price / sqft)


def down_payment(price: Optional[float], percent: Optional[float]) -> Optional[float]:
    if not _positive(price) or percent is None or percent < 0:
        return None
    return _money(price * percent / 100)


def loan_amount(price: Optional[float], down_payment_amount: Optional[float]) -> Optional[float]:
    if not _positive(price) or down_payment_amount is None:
        return None
    return _money(max(price - down_payment_amount, 0.0))


def monthly_payment(
    loan: Optional[float],
    annual_rate: Optional[float],
    term_years: Optional[float],
) -> Optional[float]:
    """Principal and interest on a fully amortizing fixed-rate loan.

    M = L * r(1+r)^n / ((1+r)^n - 1), r = monthly rate, n = months.
    A zero rate degenerates to straight-line repayment, L / n.
    """
    if not _positive(loan) or not _positive(term_years) or annual_rate is None or annual_rate < 0:
        return None
    n = int(round(term_years * 12))
    if n <= 0:
        return None
    r = annual_rate / 100 / 12
    if r == 0:
        return _money(loan / n)
    growth = (1 + r) ** n
    return _money(loan * r * growth / (growth - 1))


def hoa_normalize(
    monthly: Optional[float],
    quarterly: Optional[float],
    annual: Optional[float],
) -> Optional[HOATotals]:
    """Fold monthly, quarterly and annual dues into monthly and annual totals."""
    if monthly is None and quarterly is None and annual is None:
        return None
    total_monthly = (monthly or 0) + (quarterly or 0) / 3 + (annual or 0) / 12
    return HOATotals(monthly=_money(total_monthly), annual=_money(total_monthly * 12))


def total_monthly_cost(
    payment: Optional[float],
    taxes: Optional[float] = None,
    insurance: Optional[float] = None,
    hoa: Optional[float] = None,
    pmi: Optional[float] = None,
) -> Optional[MonthlyCost]:
    parts = (payment, taxes, insurance, hoa, pmi)
    if all(p is None for p in parts):
        return None
    piti = (payment or 0) + (taxes or 0) + (insurance or 0)
    total = piti + (hoa or 0) + (pmi or 0)
    return MonthlyCost(total=_money(total), piti=_money(piti))


def monthly_from_annual(annual: Optional[float]) -> Optional[float]:
    if not _positive(annual):
        return None
    return _money(annual / 12)


def estimate_pmi(
    loan: Optional[float],
    down_payment_percent: Optional[float],
    pmi_rate: Optional[float],
    threshold_percent: float = ENRICHMENT_MODEL.financing.pmi_threshold_percent,
) -> Optional[float]:
    """Monthly PMI; only charged when the down payment is under the threshold."""
    if not _positive(loan) or not _positive(pmi_rate) or down_payment_percent is None:
        return None
    if down_payment_percent >= threshold_percent:
        return None
    return _money(loan * pmi_rate / 100 / 12)


def affordability_income(
    total_monthly: Optional[float],
    debt_to_income: float = ENRICHMENT_MODEL.financing.debt_to_income_ratio,
) -> Optional[float]:
    """Gross annual income needed to keep housing cost at the DTI ratio."""
    if not _positive(total_monthly) or debt_to_income <= 0:
        return None
    return _money(total_monthly * 12 / debt_to_income)


# =============================================================================
# Assembly
# =============================================================================

def compute_financials(inputs: FinancialInputs, model: EnrichmentModel = ENRICHMENT_MODEL) -> FinancialSummary:
    """Run every financial calculator, applying financing defaults for blanks."""
    defaults = model.financing
    summary = FinancialSummary()

    summary.price_per_sqft = price_per_sqft(inputs.price, inputs.square_footage)
    summary.property_tax_monthly = monthly_from_annual(inputs.property_tax_annual)
    summary.insurance_estimated_monthly = monthly_from_annual(inputs.insurance_estimated_annual)

    hoa = hoa_normalize(inputs.hoa_fee_monthly, inputs.hoa_fee_quarterly, inputs.hoa_fee_annual)
    if hoa is not None:
        summary.total_monthly_hoa = hoa.monthly
        summary.total_annual_hoa = hoa.annual

    if not _positive(inputs.price):
        return summary

    down_percent = inputs.down_payment_percent
    if down_percent is None:
        down_percent = defaults.down_payment_percent
    rate = inputs.interest_rate if inputs.interest_rate is not None else defaults.interest_rate
    term = inputs.loan_term_years or defaults.loan_term_years

    summary.down_payment_amount = down_payment(inputs.price, down_percent)
    summary.loan_amount = loan_amount(inputs.price, summary.down_payment_amount)
    summary.estimated_monthly_payment = monthly_payment(summary.loan_amount, rate, term)

    if inputs.estimated_monthly_pmi is not None:
        pmi = inputs.estimated_monthly_pmi
    else:
        pmi_rate = inputs.pmi_rate if inputs.pmi_rate is not None else defaults.pmi_rate
        pmi = estimate_pmi(summary.loan_amount, down_percent, pmi_rate, defaults.pmi_threshold_percent)
        summary.estimated_monthly_pmi = pmi

    taxes = inputs.estimated_monthly_taxes
    if taxes is None:
        taxes = summary.property_tax_monthly
    insurance = inputs.estimated_monthly_insurance
    if insurance is None:
        insurance = summary.insurance_estimated_monthly

    cost = total_monthly_cost(
        summary.estimated_monthly_payment, taxes, insurance, summary.total_monthly_hoa, pmi,
    )
    if cost is not None:
        summary.piti = cost.piti
        summary.total_monthly_cost = cost.total
        summary.affordability_income_required = affordability_income(
            cost.total, defaults.debt_to_income_ratio,
        )

    return summary
