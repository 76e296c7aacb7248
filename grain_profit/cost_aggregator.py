"""Per-acre production cost for one field-year.

Sums the input costs recorded against a field (fertilizer, chemical, seed,
flat other costs) plus the field's share of financing, and expresses the total
per acre. Insurance costs recorded as flat "other costs" are excluded because
the policy premium is charged separately in the profit matrix.

Financing data is optional. When the loan provider has nothing on file, or
reports that its data is unavailable, the loan cost is zero and the breakdown
records that the figure is missing rather than failing the computation.
"""

from dataclasses import dataclass
from decimal import Decimal
import logging
from typing import Dict, Tuple

from .decimal_utils import ZERO, safe_divide, sum_decimals
from .exceptions import FinancingDataUnavailable
from .models import CostType, Field
from .providers import LoanInterestProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CostBreakdown:
    """Field-year cost totals in dollars.

    Attributes:
        fertilizer_cost: Sum of fertilizer amount x unit price.
        chemical_cost: Sum of chemical amount x unit price.
        seed_cost: Sum of bags x price per bag.
        other_costs: Flat costs, per-acre items scaled by acres, insurance excluded.
        loan_cost: Financing cost; zero when no data was available.
        acres: Field acreage.
        financing_data_available: False when ``loan_cost`` is a zero default.
        financing_lookup_failed: True when the loan provider could not be read,
            as opposed to having no loans on file.
    """

    fertilizer_cost: Decimal
    chemical_cost: Decimal
    seed_cost: Decimal
    other_costs: Decimal
    loan_cost: Decimal
    acres: Decimal
    financing_data_available: bool = True
    financing_lookup_failed: bool = False

    @property
    def total_cost(self) -> Decimal:
        """All cost components summed."""
        return sum_decimals(
            self.fertilizer_cost,
            self.chemical_cost,
            self.seed_cost,
            self.other_costs,
            self.loan_cost,
        )

    @property
    def total_cost_per_acre(self) -> Decimal:
        """Total cost divided by acres, zero for a zero-acre field."""
        return safe_divide(self.total_cost, self.acres)

    def to_dict(self) -> Dict[str, object]:
        """Plain-dict view including the derived totals."""
        return {
            "fertilizer_cost": self.fertilizer_cost,
            "chemical_cost": self.chemical_cost,
            "seed_cost": self.seed_cost,
            "other_costs": self.other_costs,
            "loan_cost": self.loan_cost,
            "total_cost": self.total_cost,
            "acres": self.acres,
            "total_cost_per_acre": self.total_cost_per_acre,
            "financing_data_available": self.financing_data_available,
            "financing_lookup_failed": self.financing_lookup_failed,
        }


class CostAggregator:
    """Totals a field's production cost per acre.

    Args:
        loan_provider: Source of per-field financing cost.

    Examples:
        ::

            aggregator = CostAggregator(StaticLoanInterestProvider())
            aggregator.compute(field)       # Decimal cost per acre
            aggregator.breakdown(field)     # CostBreakdown
    """

    def __init__(self, loan_provider: LoanInterestProvider):
        self.loan_provider = loan_provider

    def compute(self, field: Field) -> Decimal:
        """Total cost per acre for the field, unrounded.

        A field with zero acres costs zero per acre.
        """
        if field.acres == ZERO:
            return ZERO
        return self.breakdown(field).total_cost_per_acre

    def breakdown(self, field: Field) -> CostBreakdown:
        """Compute every cost component for the field.

        Args:
            field: Field with its usage and cost records loaded.

        Returns:
            CostBreakdown with dollar totals.
        """
        fertilizer_cost = sum_decimals(
            *(usage.amount_used * usage.price_per_unit for usage in field.fertilizer_usage)
        )
        chemical_cost = sum_decimals(
            *(usage.amount_used * usage.price_per_unit for usage in field.chemical_usage)
        )
        seed_cost = sum_decimals(
            *((usage.bags_used or ZERO) * usage.price_per_bag for usage in field.seed_usage)
        )

        other_costs = ZERO
        for cost in field.other_costs:
            if cost.cost_type == CostType.INSURANCE:
                continue
            other_costs += cost.amount * field.acres if cost.is_per_acre else cost.amount

        loan_cost, financing_available, lookup_failed = self._loan_cost(field)

        return CostBreakdown(
            fertilizer_cost=fertilizer_cost,
            chemical_cost=chemical_cost,
            seed_cost=seed_cost,
            other_costs=other_costs,
            loan_cost=loan_cost,
            acres=field.acres,
            financing_data_available=financing_available,
            financing_lookup_failed=lookup_failed,
        )

    def _loan_cost(self, field: Field) -> Tuple[Decimal, bool, bool]:
        """Financing cost, whether it came from real data, and whether the lookup failed."""
        try:
            financing = self.loan_provider.get_field_financing_cost(field.id, field.year)
        except FinancingDataUnavailable as exc:
            logger.warning("Loan cost defaulted to 0 for field %s: %s", field.id, exc)
            return ZERO, False, True

        if financing is None:
            logger.info(
                "No loans on file for field %s in %d; loan cost is 0", field.id, field.year
            )
            return ZERO, False, False

        return financing.total_loan_cost, True, False
