"""Data model for grain contracts, fields and crop insurance.

These are plain dataclasses loaded by the (external) persistence layer and
handed to the engines. Monetary and bushel quantities are normalized to
:class:`~decimal.Decimal` on construction so arithmetic downstream never mixes
floats and Decimals.

Examples:
    An accumulator contract accruing 1,000 bu/day::

        from datetime import date
        from grain_profit.models import (
            AccumulatorDetails, CommodityType, ContractType, GrainContract,
        )

        contract = GrainContract(
            id="c-1",
            business_id="b-1",
            contract_type=ContractType.ACCUMULATOR,
            year=2024,
            commodity=CommodityType.CORN,
            total_bushels=50_000,
            accumulator=AccumulatorDetails(
                knockout_price=5.10,
                double_up_price=4.20,
                daily_bushels=1_000,
                start_date=date(2024, 6, 1),
            ),
        )
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Union

from .decimal_utils import ZERO, to_decimal

DateLike = Union[date, datetime]


class ContractType(str, Enum):
    """Kinds of grain marketing agreement."""

    CASH = "CASH"
    BASIS = "BASIS"
    HTA = "HTA"  # Hedge-to-arrive
    ACCUMULATOR = "ACCUMULATOR"


class CommodityType(str, Enum):
    """Commodities with first-class defaults.

    Fields and contracts store the commodity as a string, so other crops are
    accepted and fall back to the configured default price.
    """

    CORN = "CORN"
    SOYBEANS = "SOYBEANS"
    WHEAT = "WHEAT"


class CostType(str, Enum):
    """Categories of flat per-field costs."""

    LAND_RENT = "LAND_RENT"
    INSURANCE = "INSURANCE"
    CUSTOM_WORK = "CUSTOM_WORK"
    FUEL = "FUEL"
    LABOR = "LABOR"
    OTHER = "OTHER"


class InsurancePlanType(str, Enum):
    """Federal crop insurance plans.

    Attributes:
        RP: Revenue Protection, guarantee priced at max(projected, harvest).
        YP: Yield Protection, guarantee in bushels valued at projected price.
        RP_HPE: Revenue Protection with Harvest Price Exclusion.
    """

    RP = "RP"
    YP = "YP"
    RP_HPE = "RP_HPE"


def _optional_decimal(value) -> Optional[Decimal]:
    return None if value is None else to_decimal(value)


@dataclass
class AccumulatorDailyEntry:
    """One manually logged day of accumulator marketing.

    Append-only audit record. The accrual formula never reads these.
    """

    date: DateLike
    bushels_marketed: Decimal
    market_price: Decimal
    was_doubled_up: bool = False
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.bushels_marketed = to_decimal(self.bushels_marketed)
        self.market_price = to_decimal(self.market_price)


@dataclass
class AccumulatorDetails:
    """Terms and running state of an accumulator contract.

    Attributes:
        knockout_price: Price at or above which accrual terminates.
        double_up_price: Modeled but not consumed by the accrual formula.
        daily_bushels: Bushels accrued per calendar day.
        start_date: First day of accrual (inclusive).
        end_date: Last day of accrual, if the contract has one.
        total_bushels_marketed: Running total from the manual ledger.
        knockout_reached: Whether the contract has been knocked out.
        knockout_date: When the knockout was recorded. Set iff
            ``knockout_reached``.
        is_daily_double: Modeled but inert.
        is_currently_doubled: Modeled but inert.
        basis_locked: Whether the basis has been set on accrued bushels.
        daily_entries: Manual ledger, oldest first.
    """

    knockout_price: Decimal
    daily_bushels: Decimal
    start_date: DateLike
    double_up_price: Decimal = ZERO
    end_date: Optional[DateLike] = None
    total_bushels_marketed: Decimal = ZERO
    knockout_reached: bool = False
    knockout_date: Optional[DateLike] = None
    is_daily_double: bool = False
    is_currently_doubled: bool = False
    basis_locked: bool = False
    daily_entries: List[AccumulatorDailyEntry] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Normalize amounts and check the knockout invariant.

        Raises:
            ValueError: If the daily rate is negative or the knockout flag and
                date disagree.
        """
        self.knockout_price = to_decimal(self.knockout_price)
        self.double_up_price = to_decimal(self.double_up_price)
        self.daily_bushels = to_decimal(self.daily_bushels)
        self.total_bushels_marketed = to_decimal(self.total_bushels_marketed)
        if self.daily_bushels < ZERO:
            raise ValueError(f"Daily bushels must be non-negative, got {self.daily_bushels}")
        if self.knockout_reached != (self.knockout_date is not None):
            raise ValueError("knockout_date must be set if and only if knockout_reached is true")


@dataclass
class GrainContract:
    """A grain marketing agreement owned by a business."""

    id: str
    business_id: str
    contract_type: ContractType
    year: int
    commodity: str
    total_bushels: Decimal
    bushels_delivered: Decimal = ZERO
    cash_price: Optional[Decimal] = None
    futures_price: Optional[Decimal] = None
    basis_price: Optional[Decimal] = None
    is_active: bool = True
    deleted: bool = False
    contract_number: Optional[str] = None
    buyer: Optional[str] = None
    accumulator: Optional[AccumulatorDetails] = None

    def __post_init__(self) -> None:
        self.contract_type = ContractType(self.contract_type)
        self.total_bushels = to_decimal(self.total_bushels)
        self.bushels_delivered = to_decimal(self.bushels_delivered)
        self.cash_price = _optional_decimal(self.cash_price)
        self.futures_price = _optional_decimal(self.futures_price)
        self.basis_price = _optional_decimal(self.basis_price)
        if self.total_bushels < ZERO:
            raise ValueError(f"Total bushels must be non-negative, got {self.total_bushels}")

    @property
    def is_accumulator(self) -> bool:
        """Whether the contract accrues bushels over time."""
        return self.contract_type == ContractType.ACCUMULATOR


@dataclass
class FertilizerUsage:
    """Fertilizer applied to a field and the product's unit price."""

    amount_used: Decimal
    price_per_unit: Decimal
    product_name: str = ""

    def __post_init__(self) -> None:
        self.amount_used = to_decimal(self.amount_used)
        self.price_per_unit = to_decimal(self.price_per_unit)


@dataclass
class ChemicalUsage:
    """Chemical applied to a field and the product's unit price."""

    amount_used: Decimal
    price_per_unit: Decimal
    product_name: str = ""

    def __post_init__(self) -> None:
        self.amount_used = to_decimal(self.amount_used)
        self.price_per_unit = to_decimal(self.price_per_unit)


@dataclass
class SeedUsage:
    """Seed planted on a field. Missing bag counts cost nothing."""

    price_per_bag: Decimal
    bags_used: Optional[Decimal] = None
    hybrid_name: str = ""

    def __post_init__(self) -> None:
        self.price_per_bag = to_decimal(self.price_per_bag)
        self.bags_used = _optional_decimal(self.bags_used)


@dataclass
class OtherCost:
    """A flat cost charged to a field, either per acre or in total."""

    amount: Decimal
    cost_type: CostType = CostType.OTHER
    is_per_acre: bool = False
    description: str = ""

    def __post_init__(self) -> None:
        self.amount = to_decimal(self.amount)
        self.cost_type = CostType(self.cost_type)


@dataclass
class Field:
    """One field (a.k.a. farm) planted to a commodity for a crop year.

    Attributes:
        aph: Actual Production History yield in bu/acre. Zero when unset.
        projected_yield: Expected yield in bu/acre for break-even figures.
    """

    id: str
    business_id: str
    acres: Decimal
    commodity: str
    year: int
    aph: Decimal = ZERO
    projected_yield: Decimal = ZERO
    name: str = ""
    fertilizer_usage: List[FertilizerUsage] = field(default_factory=list)
    chemical_usage: List[ChemicalUsage] = field(default_factory=list)
    seed_usage: List[SeedUsage] = field(default_factory=list)
    other_costs: List[OtherCost] = field(default_factory=list)
    deleted: bool = False

    def __post_init__(self) -> None:
        self.acres = to_decimal(self.acres)
        self.aph = to_decimal(self.aph)
        self.projected_yield = to_decimal(self.projected_yield)
        if self.acres < ZERO:
            raise ValueError(f"Acres must be non-negative, got {self.acres}")


@dataclass
class ContractAllocation:
    """Bushels of a contract assigned to one field."""

    contract: GrainContract
    field_id: str
    allocated_bushels: Decimal

    def __post_init__(self) -> None:
        self.allocated_bushels = to_decimal(self.allocated_bushels)


@dataclass
class InsurancePolicy:
    """Crop insurance policy attached to a field.

    Attributes:
        coverage_level: Base coverage in percent (e.g. 80).
        projected_price: Projected price; anchors the price scenarios.
        eco_level: ECO upper coverage in percent (90 or 95) when ECO is held.
    """

    field_id: str
    plan_type: InsurancePlanType
    coverage_level: Decimal
    projected_price: Decimal
    premium_per_acre: Decimal
    volatility_factor: Decimal = ZERO
    has_sco: bool = False
    has_eco: bool = False
    eco_level: Optional[Decimal] = None
    sco_premium_per_acre: Decimal = ZERO
    eco_premium_per_acre: Decimal = ZERO

    def __post_init__(self) -> None:
        self.plan_type = InsurancePlanType(self.plan_type)
        self.coverage_level = to_decimal(self.coverage_level)
        self.projected_price = to_decimal(self.projected_price)
        self.premium_per_acre = to_decimal(self.premium_per_acre)
        self.volatility_factor = to_decimal(self.volatility_factor)
        self.eco_level = _optional_decimal(self.eco_level)
        self.sco_premium_per_acre = to_decimal(self.sco_premium_per_acre)
        self.eco_premium_per_acre = to_decimal(self.eco_premium_per_acre)

    @property
    def total_premium_per_acre(self) -> Decimal:
        """Base premium plus the premiums of any riders held."""
        premium = self.premium_per_acre
        if self.has_sco:
            premium += self.sco_premium_per_acre
        if self.has_eco:
            premium += self.eco_premium_per_acre
        return premium


@dataclass(frozen=True)
class Indemnity:
    """Per-acre indemnity split by coverage component."""

    base: Decimal = ZERO
    sco: Decimal = ZERO
    eco: Decimal = ZERO

    def __post_init__(self) -> None:
        for name in ("base", "sco", "eco"):
            object.__setattr__(self, name, to_decimal(getattr(self, name)))

    @property
    def total(self) -> Decimal:
        """Sum of base, SCO and ECO indemnity."""
        return self.base + self.sco + self.eco


@dataclass(frozen=True)
class FinancingCost:
    """Financing cost charged to a field for a crop year."""

    total_loan_cost: Decimal = ZERO

    def __post_init__(self) -> None:
        object.__setattr__(self, "total_loan_cost", to_decimal(self.total_loan_cost))
