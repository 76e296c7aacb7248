"""Unit tests for CostAggregator."""

from decimal import Decimal
import logging

from grain_profit.cost_aggregator import CostAggregator
from grain_profit.exceptions import FinancingDataUnavailable
from grain_profit.models import ChemicalUsage, CostType, Field, OtherCost, SeedUsage
from grain_profit.providers import LoanInterestProvider, StaticLoanInterestProvider


class UnavailableLoans(LoanInterestProvider):
    """Loan provider whose data source is down."""

    def __init__(self):
        self.calls = 0

    def get_field_financing_cost(self, field_id, year):
        self.calls += 1
        raise FinancingDataUnavailable(field_id, year, "loan ledger offline")


class TestBreakdown:
    """Test cost components."""

    def test_input_costs(self, corn_field):
        """Fertilizer, seed and other costs sum to the field total."""
        breakdown = CostAggregator(StaticLoanInterestProvider()).breakdown(corn_field)

        assert breakdown.fertilizer_cost == Decimal("15000")
        assert breakdown.seed_cost == Decimal("15000")
        assert breakdown.other_costs == Decimal("25000")
        assert breakdown.chemical_cost == 0
        assert breakdown.total_cost == Decimal("55000")
        assert breakdown.total_cost_per_acre == Decimal("550")

    def test_loan_cost_included(self, corn_field):
        """Financing cost on file is added to the total."""
        loans = StaticLoanInterestProvider({("field-1", 2024): 1250})
        breakdown = CostAggregator(loans).breakdown(corn_field)

        assert breakdown.loan_cost == Decimal("1250")
        assert breakdown.financing_data_available
        assert breakdown.total_cost_per_acre == Decimal("562.5")

    def test_insurance_other_cost_excluded(self, corn_field):
        """Insurance recorded as an other cost is not double counted."""
        corn_field.other_costs.append(OtherCost(amount=25, cost_type=CostType.INSURANCE, is_per_acre=True))
        breakdown = CostAggregator(StaticLoanInterestProvider()).breakdown(corn_field)
        assert breakdown.other_costs == Decimal("25000")

    def test_chemical_and_bagless_seed(self):
        """Chemicals count; seed without a bag count costs nothing."""
        field = Field(
            id="f",
            business_id="b",
            acres=10,
            commodity="SOYBEANS",
            year=2024,
            chemical_usage=[ChemicalUsage(amount_used=4, price_per_unit="12.50")],
            seed_usage=[SeedUsage(price_per_bag=60)],
        )
        breakdown = CostAggregator(StaticLoanInterestProvider()).breakdown(field)
        assert breakdown.chemical_cost == Decimal("50")
        assert breakdown.seed_cost == 0
        assert breakdown.total_cost_per_acre == Decimal("5")

    def test_to_dict_includes_totals(self, corn_field):
        """The dict view carries derived totals."""
        data = CostAggregator(StaticLoanInterestProvider()).breakdown(corn_field).to_dict()
        assert data["total_cost"] == Decimal("55000")
        assert data["total_cost_per_acre"] == Decimal("550")
        assert data["financing_data_available"] is False
        assert data["financing_lookup_failed"] is False


class TestCompute:
    """Test per-acre cost and degraded financing."""

    def test_zero_acres_costs_zero(self):
        """A zero-acre field has zero cost per acre."""
        field = Field(
            id="f",
            business_id="b",
            acres=0,
            commodity="CORN",
            year=2024,
            other_costs=[OtherCost(amount=5000)],
        )
        assert CostAggregator(StaticLoanInterestProvider()).compute(field) == 0

    def test_missing_loans_default_to_zero(self, corn_field, caplog):
        """No loans on file is logged and flagged."""
        aggregator = CostAggregator(StaticLoanInterestProvider())
        with caplog.at_level(logging.INFO, logger="grain_profit"):
            breakdown = aggregator.breakdown(corn_field)

        assert breakdown.loan_cost == 0
        assert not breakdown.financing_data_available
        assert not breakdown.financing_lookup_failed
        assert "No loans on file" in caplog.text

    def test_unavailable_loans_default_to_zero(self, corn_field, caplog):
        """A failing loan provider degrades to zero with a warning."""
        loans = UnavailableLoans()
        with caplog.at_level(logging.WARNING, logger="grain_profit"):
            cost = CostAggregator(loans).compute(corn_field)

        assert cost == Decimal("550")
        assert loans.calls == 1
        assert "loan ledger offline" in caplog.text
        assert CostAggregator(loans).breakdown(corn_field).financing_lookup_failed
