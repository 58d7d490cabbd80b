"""Tests for financial.py calculators and compute_financials assembly."""

import pytest

from financial import (
    FinancialInputs,
    HOATotals,
    MonthlyCost,
    affordability_income,
    compute_financials,
    down_payment,
    estimate_pmi,
    hoa_normalize,
    loan_amount,
    monthly_from_annual,
    monthly_payment,
    price_per_sqft,
    total_monthly_cost,
)


# ============================================================================
# Pure calculators
# ============================================================================

class TestPricePerSqft:
    def test_basic(self):
        assert price_per_sqft(400000, 2000) == 200.0

    def test_rounded_to_cents(self):
        assert price_per_sqft(100000, 3) == 33333.33

    @pytest.mark.parametrize("price,sqft", [(0, 2000), (400000, 0), (None, 2000), (400000, None)])
    def test_guarded(self, price, sqft):
        assert price_per_sqft(price, sqft) is None


class TestLoan:
    def test_down_payment(self):
        assert down_payment(400000, 20) == 80000.0

    def test_zero_percent_down(self):
        assert down_payment(400000, 0) == 0.0
        assert loan_amount(400000, 0.0) == 400000.0

    def test_loan_amount(self):
        assert loan_amount(400000, 80000) == 320000.0

    def test_no_price(self):
        assert down_payment(None, 20) is None
        assert loan_amount(0, 0) is None


class TestMonthlyPayment:
    def test_standard_30_year(self):
        assert monthly_payment(320000, 6.5, 30) == pytest.approx(2022.62, abs=0.01)

    def test_zero_rate_is_straight_line(self):
        assert monthly_payment(120000, 0, 10) == 1000.0

    def test_guarded(self):
        assert monthly_payment(0, 6.5, 30) is None
        assert monthly_payment(320000, 6.5, 0) is None
        assert monthly_payment(320000, None, 30) is None


class TestHOA:
    def test_all_periods_combined(self):
        assert hoa_normalize(100, 300, 1200) == HOATotals(monthly=300.0, annual=3600.0)

    def test_monthly_only(self):
        assert hoa_normalize(250, None, None) == HOATotals(monthly=250.0, annual=3000.0)

    def test_nothing_entered(self):
        assert hoa_normalize(None, None, None) is None


class TestTotalMonthlyCost:
    def test_piti_excludes_hoa_and_pmi(self):
        cost = total_monthly_cost(2022.62, 400, 100, 300, 50)
        assert cost == MonthlyCost(total=2872.62, piti=2522.62)

    def test_missing_parts_count_as_zero(self):
        assert total_monthly_cost(1000, None, None, None, None) == MonthlyCost(total=1000.0, piti=1000.0)

    def test_all_missing(self):
        assert total_monthly_cost(None) is None


class TestExtras:
    def test_monthly_from_annual(self):
        assert monthly_from_annual(4800) == 400.0
        assert monthly_from_annual(0) is None

    def test_pmi_below_threshold(self):
        assert estimate_pmi(360000, 10, 0.5) == 150.0

    def test_no_pmi_at_twenty_percent(self):
        assert estimate_pmi(320000, 20, 0.5) is None

    def test_affordability(self):
        assert affordability_income(2800) == 120000.0
        assert affordability_income(None) is None


# ============================================================================
# compute_financials
# ============================================================================

class TestComputeFinancials:
    def test_defaults_applied(self):
        summary = compute_financials(FinancialInputs(
            price=400000,
            square_footage=2000,
            property_tax_annual=4800,
            insurance_estimated_annual=1200,
        ))
        assert summary.price_per_sqft == 200.0
        assert summary.down_payment_amount == 80000.0
        assert summary.loan_amount == 320000.0
        assert summary.estimated_monthly_payment == pytest.approx(2022.62, abs=0.01)
        assert summary.property_tax_monthly == 400.0
        assert summary.insurance_estimated_monthly == 100.0
        assert summary.estimated_monthly_pmi is None
        assert summary.piti == pytest.approx(2522.62, abs=0.01)
        assert summary.total_monthly_cost == summary.piti
        assert summary.affordability_income_required == pytest.approx(108112.29, abs=0.05)

    def test_entered_monthly_values_win_over_annual(self):
        summary = compute_financials(FinancialInputs(
            price=400000,
            estimated_monthly_taxes=500,
            property_tax_annual=4800,
        ))
        assert summary.piti == pytest.approx(summary.estimated_monthly_payment + 500, abs=0.01)

    def test_low_down_payment_adds_pmi(self):
        summary = compute_financials(FinancialInputs(price=300000, down_payment_percent=10))
        assert summary.loan_amount == 270000.0
        assert summary.estimated_monthly_pmi == 112.5
        assert summary.total_monthly_cost == pytest.approx(
            summary.estimated_monthly_payment + 112.5, abs=0.01,
        )

    def test_entered_pmi_not_overwritten(self):
        summary = compute_financials(FinancialInputs(
            price=300000, down_payment_percent=10, estimated_monthly_pmi=90,
        ))
        assert summary.estimated_monthly_pmi is None
        assert summary.total_monthly_cost == pytest.approx(
            summary.estimated_monthly_payment + 90, abs=0.01,
        )

    def test_zero_interest_rate_respected(self):
        summary = compute_financials(FinancialInputs(price=150000, interest_rate=0, loan_term_years=10))
        assert summary.estimated_monthly_payment == 1000.0

    def test_no_price_only_price_free_fields(self):
        summary = compute_financials(FinancialInputs(hoa_fee_monthly=200, property_tax_annual=1200))
        assert summary.to_fields() == {
            "property_tax_monthly": 100.0,
            "total_monthly_hoa": 200.0,
            "total_annual_hoa": 2400.0,
        }
