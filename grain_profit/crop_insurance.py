"""Crop insurance indemnity calculations.

Per-acre indemnity for the three federal plan types and the two area-based
riders that stack on top of them:

    - **RP** (Revenue Protection): guarantee = APH x coverage x
      max(projected, harvest price); payout = guarantee - yield x harvest price.
    - **YP** (Yield Protection): guarantee = APH x coverage in bushels;
      payout = bushel shortfall x projected price.
    - **RP-HPE** (RP with Harvest Price Exclusion): like RP but the guarantee
      is fixed at the projected price.
    - **SCO** (Supplemental Coverage Option): band from the base coverage
      level up to 86%.
    - **ECO** (Enhanced Coverage Option): band from 86% up to the ECO level.

SCO and ECO are area-triggered. When county yields are supplied the payout
ratio follows the county loss; otherwise a simplified farm-level loss is used.

Examples:
    Indemnity for a short crop at a low price::

        service = CropInsuranceService({"f-1": policy})
        indemnity = service.calculate_indemnity(policy, aph=200, scenario_yield=120,
                                                scenario_price=3.50)
        indemnity.total
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional

from .decimal_utils import ZERO, Numeric, to_decimal
from .models import Indemnity, InsurancePlanType, InsurancePolicy
from .providers import InsuranceIndemnityProvider

# Upper edge of the SCO band and lower edge of the ECO band
SCO_TOP_PCT = Decimal("0.86")

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class CountyYield:
    """Expected and simulated county yields for area-based riders."""

    expected: Decimal
    simulated: Decimal


def _pct(level: Numeric) -> Decimal:
    return to_decimal(level) / HUNDRED


class CropInsuranceService(InsuranceIndemnityProvider):
    """Policy lookup over a mapping plus the indemnity formulas.

    Args:
        policies: Policies keyed by field id.
    """

    def __init__(self, policies: Optional[Dict[str, InsurancePolicy]] = None):
        self._policies: Dict[str, InsurancePolicy] = dict(policies or {})

    def add_policy(self, policy: InsurancePolicy) -> None:
        """Attach (or replace) the policy of a field."""
        self._policies[policy.field_id] = policy

    def get_policy(self, field_id: str) -> Optional[InsurancePolicy]:
        return self._policies.get(field_id)

    # ------------------------------------------------------------------ #
    #  Base plans
    # ------------------------------------------------------------------ #

    @staticmethod
    def calculate_rp_indemnity(
        aph: Numeric,
        coverage_level: Numeric,
        projected_price: Numeric,
        actual_yield: Numeric,
        harvest_price: Numeric,
    ) -> Decimal:
        """Revenue Protection indemnity per acre.

        Args:
            aph: Actual Production History yield (bu/acre).
            coverage_level: Coverage in percent.
            projected_price: Projected price ($/bu).
            actual_yield: Realized yield (bu/acre).
            harvest_price: Harvest price ($/bu).

        Returns:
            Indemnity in $/acre, never negative.
        """
        projected = to_decimal(projected_price)
        harvest = to_decimal(harvest_price)
        guaranteed = to_decimal(aph) * _pct(coverage_level) * max(projected, harvest)
        actual = to_decimal(actual_yield) * harvest
        return max(ZERO, guaranteed - actual)

    @staticmethod
    def calculate_yp_indemnity(
        aph: Numeric,
        coverage_level: Numeric,
        projected_price: Numeric,
        actual_yield: Numeric,
    ) -> Decimal:
        """Yield Protection indemnity per acre (bushel shortfall x projected price)."""
        guaranteed_yield = to_decimal(aph) * _pct(coverage_level)
        shortfall = max(ZERO, guaranteed_yield - to_decimal(actual_yield))
        return shortfall * to_decimal(projected_price)

    @staticmethod
    def calculate_rp_hpe_indemnity(
        aph: Numeric,
        coverage_level: Numeric,
        projected_price: Numeric,
        actual_yield: Numeric,
        harvest_price: Numeric,
    ) -> Decimal:
        """RP with Harvest Price Exclusion: guarantee fixed at projected price."""
        guaranteed = to_decimal(aph) * _pct(coverage_level) * to_decimal(projected_price)
        actual = to_decimal(actual_yield) * to_decimal(harvest_price)
        return max(ZERO, guaranteed - actual)

    # ------------------------------------------------------------------ #
    #  Area riders
    # ------------------------------------------------------------------ #

    @staticmethod
    def _band_indemnity(
        top_pct: Decimal,
        bottom_pct: Decimal,
        aph: Decimal,
        projected_price: Decimal,
        actual_yield: Decimal,
        harvest_price: Decimal,
        plan_type: InsurancePlanType,
        county_yield: Optional[CountyYield],
    ) -> Decimal:
        """Indemnity for a coverage band between ``bottom_pct`` and ``top_pct``.

        The band is valued at max(projected, harvest) for RP and at the
        projected price for RP-HPE and YP.
        """
        if top_pct <= bottom_pct:
            return ZERO

        is_rp = plan_type == InsurancePlanType.RP
        band_price = max(projected_price, harvest_price) if is_rp else projected_price
        band = aph * (top_pct - bottom_pct) * band_price
        actual_price = max(projected_price, harvest_price) if is_rp else harvest_price

        if county_yield is not None and county_yield.expected > ZERO:
            if plan_type == InsurancePlanType.YP:
                county_ratio = county_yield.simulated / county_yield.expected
            else:
                expected_revenue = county_yield.expected * projected_price
                if expected_revenue <= ZERO:
                    return ZERO
                actual_revenue = county_yield.simulated * actual_price
                county_ratio = actual_revenue / expected_revenue

            if county_ratio >= top_pct:
                return ZERO
            loss_pct = min(top_pct - county_ratio, top_pct - bottom_pct)
            return loss_pct / (top_pct - bottom_pct) * band

        # Farm-level fallback
        if aph <= ZERO:
            return ZERO
        top_revenue = aph * top_pct * band_price
        if plan_type == InsurancePlanType.YP:
            actual_revenue = actual_yield / aph * (aph * band_price)
        else:
            actual_revenue = actual_yield * actual_price
        loss = max(ZERO, top_revenue - actual_revenue)
        return min(loss, band)

    def calculate_sco_indemnity(
        self,
        aph: Numeric,
        base_coverage_level: Numeric,
        projected_price: Numeric,
        actual_yield: Numeric,
        harvest_price: Numeric,
        plan_type: InsurancePlanType,
        county_yield: Optional[CountyYield] = None,
    ) -> Decimal:
        """Supplemental Coverage Option: base coverage level up to 86%."""
        return self._band_indemnity(
            SCO_TOP_PCT,
            _pct(base_coverage_level),
            to_decimal(aph),
            to_decimal(projected_price),
            to_decimal(actual_yield),
            to_decimal(harvest_price),
            InsurancePlanType(plan_type),
            county_yield,
        )

    def calculate_eco_indemnity(
        self,
        aph: Numeric,
        eco_level: Numeric,
        projected_price: Numeric,
        actual_yield: Numeric,
        harvest_price: Numeric,
        plan_type: InsurancePlanType,
        county_yield: Optional[CountyYield] = None,
    ) -> Decimal:
        """Enhanced Coverage Option: 86% up to the ECO level."""
        return self._band_indemnity(
            _pct(eco_level),
            SCO_TOP_PCT,
            to_decimal(aph),
            to_decimal(projected_price),
            to_decimal(actual_yield),
            to_decimal(harvest_price),
            InsurancePlanType(plan_type),
            county_yield,
        )

    # ------------------------------------------------------------------ #
    #  Combined
    # ------------------------------------------------------------------ #

    def calculate_indemnity(
        self,
        policy: InsurancePolicy,
        aph: Numeric,
        scenario_yield: Numeric,
        scenario_price: Numeric,
        county_yield: Optional[CountyYield] = None,
    ) -> Indemnity:
        """Total indemnity for a policy under one yield/price outcome.

        Args:
            policy: The field's insurance policy.
            aph: Actual Production History yield (bu/acre).
            scenario_yield: Realized yield (bu/acre).
            scenario_price: Harvest price ($/bu).
            county_yield: Optional county yields for area-triggered riders.

        Returns:
            Base, SCO and ECO indemnity in $/acre.
        """
        coverage = policy.coverage_level
        projected = policy.projected_price

        if policy.plan_type == InsurancePlanType.RP:
            base = self.calculate_rp_indemnity(
                aph, coverage, projected, scenario_yield, scenario_price
            )
        elif policy.plan_type == InsurancePlanType.YP:
            base = self.calculate_yp_indemnity(aph, coverage, projected, scenario_yield)
        else:
            base = self.calculate_rp_hpe_indemnity(
                aph, coverage, projected, scenario_yield, scenario_price
            )

        sco = ZERO
        if policy.has_sco:
            sco = self.calculate_sco_indemnity(
                aph, coverage, projected, scenario_yield, scenario_price,
                policy.plan_type, county_yield,
            )

        eco = ZERO
        if policy.has_eco and policy.eco_level:
            eco = self.calculate_eco_indemnity(
                aph, policy.eco_level, projected, scenario_yield, scenario_price,
                policy.plan_type, county_yield,
            )

        return Indemnity(base=base, sco=sco, eco=eco)
