"""Pytest configuration and shared fixtures."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from grain_profit.accumulator import AccumulatorAccrualEngine
from grain_profit.cost_aggregator import CostAggregator
from grain_profit.crop_insurance import CropInsuranceService
from grain_profit.models import (
    AccumulatorDetails,
    ContractType,
    FertilizerUsage,
    Field,
    GrainContract,
    InsurancePolicy,
    OtherCost,
    SeedUsage,
)
from grain_profit.profit_matrix import ProfitMatrixGenerator
from grain_profit.providers import (
    InMemoryAllocationProvider,
    InMemoryContractRepository,
    InMemoryFieldRepository,
    StaticLoanInterestProvider,
)

BUSINESS_ID = "biz-1"
NOW = datetime(2024, 6, 15, 9, 30)


@pytest.fixture
def business_id():
    """Owner of every fixture record."""
    return BUSINESS_ID


@pytest.fixture
def fixed_clock():
    """Clock frozen at 2024-06-15 09:30."""
    return lambda: NOW


@pytest.fixture
def accumulator_details():
    """1,000 bu/day from 2024-06-01, knockout at $5.10."""
    return AccumulatorDetails(
        knockout_price=Decimal("5.10"),
        double_up_price=Decimal("4.20"),
        daily_bushels=Decimal("1000"),
        start_date=date(2024, 6, 1),
    )


@pytest.fixture
def accumulator_contract(accumulator_details):
    """50,000 bu corn accumulator."""
    return GrainContract(
        id="acc-1",
        business_id=BUSINESS_ID,
        contract_type=ContractType.ACCUMULATOR,
        year=2024,
        commodity="CORN",
        total_bushels=Decimal("50000"),
        accumulator=accumulator_details,
    )


@pytest.fixture
def cash_contract():
    """10,000 bu corn cash sale at $4.80."""
    return GrainContract(
        id="cash-1",
        business_id=BUSINESS_ID,
        contract_type=ContractType.CASH,
        year=2024,
        commodity="CORN",
        total_bushels=Decimal("10000"),
        bushels_delivered=Decimal("2500"),
        cash_price=Decimal("4.80"),
    )


@pytest.fixture
def contract_repo(accumulator_contract, cash_contract):
    """Repository holding the accumulator and cash contracts."""
    return InMemoryContractRepository([accumulator_contract, cash_contract])


@pytest.fixture
def engine(contract_repo, fixed_clock):
    """Accrual engine over ``contract_repo`` with a frozen clock."""
    return AccumulatorAccrualEngine(contract_repo, clock=fixed_clock)


@pytest.fixture
def corn_field():
    """100 acre corn field, APH 200, projected 200 bu/acre.

    Inputs total $55,000 with no financing: $550/acre.
    """
    return Field(
        id="field-1",
        business_id=BUSINESS_ID,
        name="North 100",
        acres=Decimal("100"),
        commodity="CORN",
        year=2024,
        aph=Decimal("200"),
        projected_yield=Decimal("200"),
        fertilizer_usage=[FertilizerUsage(amount_used=20000, price_per_unit=Decimal("0.75"))],
        seed_usage=[SeedUsage(price_per_bag=Decimal("300"), bags_used=Decimal("50"))],
        other_costs=[
            OtherCost(amount=Decimal("200"), is_per_acre=True),
            OtherCost(amount=Decimal("5000")),
        ],
    )


@pytest.fixture
def rp_policy():
    """80% RP policy at $4.66 projected price, $20/acre premium."""
    return InsurancePolicy(
        field_id="field-1",
        plan_type="RP",
        coverage_level=Decimal("80"),
        projected_price=Decimal("4.66"),
        premium_per_acre=Decimal("20.00"),
    )


@pytest.fixture
def make_generator(corn_field):
    """Factory building a generator over in-memory collaborators."""

    def _make(field=None, allocations=(), policies=None, loans=None, insurance=None, config=None):
        field = field or corn_field
        return ProfitMatrixGenerator(
            InMemoryFieldRepository([field]),
            InMemoryAllocationProvider(allocations),
            insurance or CropInsuranceService(policies or {}),
            CostAggregator(StaticLoanInterestProvider(loans or {})),
            config,
        )

    return _make
