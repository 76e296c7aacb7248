"""Yield x price profit scenarios for a field.

For one field-year the generator combines

    - the bushels already sold through contracts allocated to the field
      ("marketed") and their weighted average price,
    - the remaining expected bushels ("unmarketed"), sold at the scenario price,
    - production cost per acre, and
    - crop insurance indemnity and premium, when the field carries a policy,

into a grid of per-acre outcomes. Rows are yield scenarios spanning 50% to
120% of APH and columns are price scenarios spanning 60% to 140% of the
projected price (both ranges configurable through
:class:`~grain_profit.config.ScenarioConfig`).

Marketed bushels are honoured first: in a short-crop scenario only the
scenario yield can be delivered against contracts and nothing is left to sell
at the scenario price.

Gross revenue, cost, premium and each indemnity are rounded to cents first;
profit, payout and net profit are then summed from those rounded parts, so a
cell always adds up exactly as displayed.

Examples:
    Generate and pivot the net-profit grid::

        generator = ProfitMatrixGenerator(fields, allocations, insurance, costs)
        result = generator.generate("field-1", "biz-1", yield_steps=5, price_steps=5)
        result.pivot("net_profit_per_acre")
"""

from dataclasses import dataclass, field
from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional, Tuple
import warnings

import numpy as np
import pandas as pd

from ._warnings import DataQualityWarning
from .config import EngineConfig, ScenarioConfig
from .cost_aggregator import CostAggregator, CostBreakdown
from .decimal_utils import (
    ZERO,
    Numeric,
    quantize_currency,
    round_to_increment,
    round_whole,
    safe_divide,
    to_decimal,
)
from .exceptions import InsuranceDataUnavailable, NotFoundError, ScenarioConfigError
from .models import ContractAllocation, Field, GrainContract, Indemnity, InsurancePolicy
from .providers import (
    ContractAllocationProvider,
    FieldRepository,
    InsuranceIndemnityProvider,
)

logger = logging.getLogger(__name__)

CELL_METRICS = (
    "gross_revenue_per_acre",
    "total_cost_per_acre",
    "profit_without_insurance",
    "insurance_indemnity",
    "sco_indemnity",
    "eco_indemnity",
    "total_insurance_payout",
    "insurance_premium_cost",
    "net_profit_per_acre",
)


# ---------------------------------------------------------------------- #
#  Scenario axes
# ---------------------------------------------------------------------- #


def _check_steps(name: str, steps: int) -> None:
    if steps < 2:
        raise ScenarioConfigError(f"{name} must be at least 2, got {steps}")


def build_yield_scenarios(
    aph: Numeric, steps: int, scenarios: Optional[ScenarioConfig] = None
) -> List[Decimal]:
    """Evenly spaced whole-bushel yields around APH.

    Args:
        aph: Actual Production History yield (bu/acre). Zero or negative
            selects the fixed fallback ladder (100, 120, 140, ...).
        steps: Number of yields, at least 2.
        scenarios: Range settings; defaults to 50%-120% of APH.

    Returns:
        Yields in bu/acre, ascending.

    Raises:
        ScenarioConfigError: If ``steps`` is below 2.

    Examples:
        >>> build_yield_scenarios(200, 3)
        [Decimal('100'), Decimal('170'), Decimal('240')]
    """
    _check_steps("yield_steps", steps)
    settings = scenarios or ScenarioConfig()
    aph_value = to_decimal(aph)

    if aph_value <= ZERO:
        return [
            settings.fallback_yield_start + settings.fallback_yield_step * i
            for i in range(steps)
        ]

    spread = (settings.yield_max_pct - settings.yield_min_pct) / (steps - 1)
    return [
        Decimal(round_whole(aph_value * (settings.yield_min_pct + spread * i)))
        for i in range(steps)
    ]


def build_price_scenarios(
    base_price: Numeric,
    steps: int,
    increment: Numeric = Decimal("0.05"),
    scenarios: Optional[ScenarioConfig] = None,
) -> List[Decimal]:
    """Evenly spaced prices around a base price, rounded to the quote increment.

    Args:
        base_price: Anchor price ($/bu).
        steps: Number of prices, at least 2.
        increment: Rounding step, $0.05 for corn and wheat, $0.10 for soybeans.
        scenarios: Range settings; defaults to 60%-140% of the base.

    Raises:
        ScenarioConfigError: If ``steps`` is below 2.

    Examples:
        >>> build_price_scenarios(Decimal("4.66"), 3)
        [Decimal('2.80'), Decimal('4.65'), Decimal('6.50')]
    """
    _check_steps("price_steps", steps)
    settings = scenarios or ScenarioConfig()
    base = to_decimal(base_price)
    spread = (settings.price_max_pct - settings.price_min_pct) / (steps - 1)
    return [
        round_to_increment(base * (settings.price_min_pct + spread * i), increment)
        for i in range(steps)
    ]


def effective_price(contract: GrainContract) -> Decimal:
    """Per-bushel price a contract realizes.

    Cash price when set; otherwise futures plus basis; otherwise whichever of
    futures or basis is present. A basis-only contract is valued at the basis
    alone, which understates it by the unpriced futures component.
    """
    if contract.cash_price is not None:
        return contract.cash_price
    if contract.futures_price is not None and contract.basis_price is not None:
        return contract.futures_price + contract.basis_price
    if contract.futures_price is not None:
        return contract.futures_price
    if contract.basis_price is not None:
        logger.debug("Contract %s valued at basis alone (%s)", contract.id, contract.basis_price)
        return contract.basis_price
    return ZERO


# ---------------------------------------------------------------------- #
#  Results
# ---------------------------------------------------------------------- #


@dataclass(frozen=True)
class ProfitMatrixCell:
    """Per-acre outcome for one (yield, price) scenario, rounded to cents."""

    yield_bu_acre: Decimal
    price_bu: Decimal
    gross_revenue_per_acre: Decimal
    total_cost_per_acre: Decimal
    profit_without_insurance: Decimal
    insurance_indemnity: Decimal
    sco_indemnity: Decimal
    eco_indemnity: Decimal
    total_insurance_payout: Decimal
    insurance_premium_cost: Decimal
    net_profit_per_acre: Decimal

    def to_dict(self) -> Dict[str, Decimal]:
        """Field-name keyed view of the cell."""
        return {
            "yield_bu_acre": self.yield_bu_acre,
            "price_bu": self.price_bu,
            **{name: getattr(self, name) for name in CELL_METRICS},
        }


@dataclass
class ProfitMatrixResult:
    """Complete profit scenario analysis for one field-year.

    ``matrix[i][j]`` is the cell for ``yield_scenarios[i]`` and
    ``price_scenarios[j]``.
    """

    field_id: str
    field_name: str
    commodity: str
    year: int
    acres: Decimal
    aph: Decimal
    projected_yield: Decimal
    insurance_policy: Optional[InsurancePolicy]
    break_even_price: Decimal
    total_cost_per_acre: Decimal
    marketed_bu_per_acre: Decimal
    marketed_avg_price: Decimal
    unmarketed_bu_per_acre: Decimal
    yield_scenarios: List[Decimal]
    price_scenarios: List[Decimal]
    matrix: List[List[ProfitMatrixCell]]
    cost_breakdown: Optional[CostBreakdown] = None
    notes: List[str] = field(default_factory=list)

    def cell(self, yield_bu_acre: Numeric, price_bu: Numeric) -> ProfitMatrixCell:
        """Look up a cell by its scenario values.

        Raises:
            KeyError: If either value is not one of the scenarios.
        """
        y, p = to_decimal(yield_bu_acre), to_decimal(price_bu)
        try:
            i = self.yield_scenarios.index(y)
            j = self.price_scenarios.index(p)
        except ValueError as exc:
            raise KeyError(f"No scenario for yield {y} and price {p}") from exc
        return self.matrix[i][j]

    def to_dataframe(self) -> pd.DataFrame:
        """Long-form DataFrame, one row per cell.

        Values are floats so the frame can be aggregated and plotted.

        Returns:
            pd.DataFrame: Columns ``yield_bu_acre``, ``price_bu`` and one
                column per cell metric.

        Examples:
            Export for a spreadsheet::

                result.to_dataframe().to_csv("field-1-2024.csv", index=False)
        """
        rows = [
            {key: float(value) for key, value in cell.to_dict().items()}
            for row in self.matrix
            for cell in row
        ]
        return pd.DataFrame(rows, columns=["yield_bu_acre", "price_bu", *CELL_METRICS])

    def pivot(self, metric: str = "net_profit_per_acre") -> pd.DataFrame:
        """Yield x price table of one metric.

        Raises:
            ValueError: If ``metric`` is not a cell metric.
        """
        if metric not in CELL_METRICS:
            raise ValueError(f"Unknown metric '{metric}'. Valid metrics: {', '.join(CELL_METRICS)}")
        return self.to_dataframe().pivot(index="yield_bu_acre", columns="price_bu", values=metric)

    def net_profit_grid(self) -> np.ndarray:
        """Net profit per acre as a ``(len(yields), len(prices))`` float array."""
        return np.array(
            [[float(cell.net_profit_per_acre) for cell in row] for row in self.matrix],
            dtype=float,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Plain-dict representation (Decimals preserved)."""
        return {
            "field_id": self.field_id,
            "field_name": self.field_name,
            "commodity": self.commodity,
            "year": self.year,
            "acres": self.acres,
            "aph": self.aph,
            "projected_yield": self.projected_yield,
            "insurance_policy": None
            if self.insurance_policy is None
            else {
                "plan_type": self.insurance_policy.plan_type.value,
                "coverage_level": self.insurance_policy.coverage_level,
                "projected_price": self.insurance_policy.projected_price,
                "premium_per_acre": self.insurance_policy.total_premium_per_acre,
                "has_sco": self.insurance_policy.has_sco,
                "has_eco": self.insurance_policy.has_eco,
                "eco_level": self.insurance_policy.eco_level,
            },
            "break_even_price": self.break_even_price,
            "total_cost_per_acre": self.total_cost_per_acre,
            "marketed_bu_per_acre": self.marketed_bu_per_acre,
            "marketed_avg_price": self.marketed_avg_price,
            "unmarketed_bu_per_acre": self.unmarketed_bu_per_acre,
            "yield_scenarios": list(self.yield_scenarios),
            "price_scenarios": list(self.price_scenarios),
            "matrix": [[cell.to_dict() for cell in row] for row in self.matrix],
            "cost_breakdown": None if self.cost_breakdown is None else self.cost_breakdown.to_dict(),
            "notes": list(self.notes),
        }


# ---------------------------------------------------------------------- #
#  Generator
# ---------------------------------------------------------------------- #


class ProfitMatrixGenerator:
    """Builds :class:`ProfitMatrixResult` objects from injected collaborators.

    Stateless between calls; every request reloads its inputs.

    Args:
        fields: Field lookup.
        allocations: Contract allocations per field-year.
        insurance: Policy lookup and indemnity math.
        cost_aggregator: Per-acre production cost.
        config: Scenario ranges and commodity defaults.
    """

    def __init__(
        self,
        fields: FieldRepository,
        allocations: ContractAllocationProvider,
        insurance: InsuranceIndemnityProvider,
        cost_aggregator: CostAggregator,
        config: Optional[EngineConfig] = None,
    ):
        self.fields = fields
        self.allocations = allocations
        self.insurance = insurance
        self.cost_aggregator = cost_aggregator
        self.config = config or EngineConfig()

    def generate(
        self,
        field_id: str,
        business_id: str,
        yield_steps: Optional[int] = None,
        price_steps: Optional[int] = None,
        expected_county_yield: Optional[Numeric] = None,
        simulated_county_yield: Optional[Numeric] = None,
    ) -> ProfitMatrixResult:
        """Generate the profit matrix for a field.

        Args:
            field_id: Field to analyse.
            business_id: Owner of the field.
            yield_steps: Rows; defaults to ``config.scenarios.default_yield_steps``.
            price_steps: Columns; defaults to ``config.scenarios.default_price_steps``.
            expected_county_yield: Accepted for interface compatibility; unused.
            simulated_county_yield: Accepted for interface compatibility; unused.

        Returns:
            ProfitMatrixResult for the field.

        Raises:
            ScenarioConfigError: If either step count is below 2.
            NotFoundError: If the field does not exist, is deleted or belongs
                to another business.
        """
        settings = self.config.scenarios
        yield_steps = settings.default_yield_steps if yield_steps is None else yield_steps
        price_steps = settings.default_price_steps if price_steps is None else price_steps
        _check_steps("yield_steps", yield_steps)
        _check_steps("price_steps", price_steps)

        if expected_county_yield is not None or simulated_county_yield is not None:
            logger.debug("County yields supplied for field %s are not used", field_id)

        field_record = self.fields.get_field(field_id, business_id)
        if field_record is None:
            raise NotFoundError("field", field_id)

        notes: List[str] = []
        breakdown = self.cost_aggregator.breakdown(field_record)
        total_cost_per_acre = breakdown.total_cost_per_acre
        if breakdown.financing_lookup_failed:
            notes.append("Loan lookup failed; financing counted as 0")

        marketed_bu_per_acre, marketed_avg_price = self._marketed_position(field_record, notes)
        unmarketed_bu_per_acre = max(ZERO, field_record.projected_yield - marketed_bu_per_acre)

        policy = self._policy(field_record, notes)

        yield_scenarios = build_yield_scenarios(field_record.aph, yield_steps, settings)
        if policy is not None and policy.projected_price > ZERO:
            base_price = policy.projected_price
        else:
            base_price = self.config.price_for(field_record.commodity)
        price_scenarios = build_price_scenarios(
            base_price,
            price_steps,
            self.config.increment_for(field_record.commodity),
            settings,
        )

        premium = policy.total_premium_per_acre if policy is not None else ZERO
        matrix = [
            [
                self._cell(
                    field_record,
                    policy,
                    scenario_yield,
                    scenario_price,
                    total_cost_per_acre,
                    marketed_bu_per_acre,
                    marketed_avg_price,
                    premium,
                )
                for scenario_price in price_scenarios
            ]
            for scenario_yield in yield_scenarios
        ]

        logger.debug(
            "Profit matrix for field %s: %dx%d, cost/acre %s, marketed %s bu/acre",
            field_id,
            yield_steps,
            price_steps,
            total_cost_per_acre,
            marketed_bu_per_acre,
        )

        return ProfitMatrixResult(
            field_id=field_record.id,
            field_name=field_record.name,
            commodity=field_record.commodity,
            year=field_record.year,
            acres=field_record.acres,
            aph=field_record.aph,
            projected_yield=field_record.projected_yield,
            insurance_policy=policy,
            break_even_price=quantize_currency(
                safe_divide(total_cost_per_acre, field_record.projected_yield)
            ),
            total_cost_per_acre=quantize_currency(total_cost_per_acre),
            marketed_bu_per_acre=quantize_currency(marketed_bu_per_acre),
            marketed_avg_price=quantize_currency(marketed_avg_price),
            unmarketed_bu_per_acre=quantize_currency(unmarketed_bu_per_acre),
            yield_scenarios=yield_scenarios,
            price_scenarios=price_scenarios,
            matrix=matrix,
            cost_breakdown=breakdown,
            notes=notes,
        )

    # ------------------------------------------------------------------ #
    #  Inputs
    # ------------------------------------------------------------------ #

    def _marketed_position(self, field_record: Field, notes: List[str]) -> Tuple[Decimal, Decimal]:
        """Marketed bushels per acre and their weighted average price."""
        allocations: List[ContractAllocation] = self.allocations.get_allocations(
            field_record.id, field_record.year, field_record.commodity
        )

        marketed_bushels = ZERO
        marketed_value = ZERO
        for allocation in allocations:
            contract = allocation.contract
            if (
                not contract.is_active
                or contract.deleted
                or contract.year != field_record.year
                or contract.commodity != field_record.commodity
            ):
                continue

            if allocation.allocated_bushels > contract.total_bushels:
                message = (
                    f"Field {field_record.id} is allocated {allocation.allocated_bushels} bu of "
                    f"contract {contract.id}, which totals {contract.total_bushels} bu"
                )
                warnings.warn(message, DataQualityWarning, stacklevel=3)
                logger.warning(message)
                notes.append(message)

            marketed_bushels += allocation.allocated_bushels
            marketed_value += allocation.allocated_bushels * effective_price(contract)

        marketed_bu_per_acre = safe_divide(marketed_bushels, field_record.acres)
        marketed_avg_price = safe_divide(marketed_value, marketed_bushels)
        return marketed_bu_per_acre, marketed_avg_price

    def _policy(self, field_record: Field, notes: List[str]) -> Optional[InsurancePolicy]:
        try:
            return self.insurance.get_policy(field_record.id)
        except InsuranceDataUnavailable as exc:
            logger.warning("Insurance lookup failed for field %s; treating as uninsured: %s",
                           field_record.id, exc)
            notes.append("Insurance data unavailable; matrix computed without a policy")
            return None

    # ------------------------------------------------------------------ #
    #  Cells
    # ------------------------------------------------------------------ #

    def _cell(
        self,
        field_record: Field,
        policy: Optional[InsurancePolicy],
        scenario_yield: Decimal,
        scenario_price: Decimal,
        total_cost_per_acre: Decimal,
        marketed_bu_per_acre: Decimal,
        marketed_avg_price: Decimal,
        premium: Decimal,
    ) -> ProfitMatrixCell:
        actual_marketed = min(marketed_bu_per_acre, scenario_yield)
        actual_unmarketed = max(ZERO, scenario_yield - marketed_bu_per_acre)
        gross = quantize_currency(
            actual_marketed * marketed_avg_price + actual_unmarketed * scenario_price
        )
        cost = quantize_currency(total_cost_per_acre)
        profit_without_insurance = gross - cost

        if policy is not None:
            indemnity = self.insurance.calculate_indemnity(
                policy, field_record.aph, scenario_yield, scenario_price
            )
        else:
            indemnity = Indemnity()

        base = quantize_currency(indemnity.base)
        sco = quantize_currency(indemnity.sco)
        eco = quantize_currency(indemnity.eco)
        payout = base + sco + eco
        premium = quantize_currency(premium)
        net = profit_without_insurance - premium + payout

        return ProfitMatrixCell(
            yield_bu_acre=scenario_yield,
            price_bu=scenario_price,
            gross_revenue_per_acre=gross,
            total_cost_per_acre=cost,
            profit_without_insurance=profit_without_insurance,
            insurance_indemnity=base,
            sco_indemnity=sco,
            eco_indemnity=eco,
            total_insurance_payout=payout,
            insurance_premium_cost=premium,
            net_profit_per_acre=net,
        )
