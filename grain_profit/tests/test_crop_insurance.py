"""Unit tests for CropInsuranceService."""

from decimal import Decimal

import pytest

from grain_profit.crop_insurance import CountyYield, CropInsuranceService
from grain_profit.models import InsurancePlanType, InsurancePolicy


@pytest.fixture
def service():
    """Service with no stored policies."""
    return CropInsuranceService()


class TestBasePlans:
    """Test RP, YP and RP-HPE indemnity."""

    def test_rp_low_yield_low_price(self):
        """RP guarantee uses the higher of projected and harvest price."""
        indemnity = CropInsuranceService.calculate_rp_indemnity(200, 80, "4.66", 120, "3.50")
        # 160 bu x 4.66 - 120 bu x 3.50
        assert indemnity == Decimal("325.60")

    def test_rp_harvest_price_increase(self):
        """A harvest price above projected raises the RP guarantee."""
        indemnity = CropInsuranceService.calculate_rp_indemnity(200, 80, "4.66", 120, "5.00")
        assert indemnity == Decimal("200.00")

    def test_rp_hpe_fixed_at_projected(self):
        """RP-HPE guarantee ignores a higher harvest price."""
        indemnity = CropInsuranceService.calculate_rp_hpe_indemnity(200, 80, "4.66", 120, "5.00")
        assert indemnity == Decimal("145.60")

    def test_yp_shortfall_at_projected_price(self):
        """YP pays bushel shortfall at projected price."""
        indemnity = CropInsuranceService.calculate_yp_indemnity(200, 80, "4.66", 120)
        assert indemnity == Decimal("186.40")

    @pytest.mark.parametrize(
        "method,args",
        [
            ("calculate_rp_indemnity", (200, 80, "4.66", 240, "4.66")),
            ("calculate_yp_indemnity", (200, 80, "4.66", 240)),
            ("calculate_rp_hpe_indemnity", (200, 80, "4.66", 240, "4.66")),
        ],
    )
    def test_no_loss_pays_nothing(self, method, args):
        """A good crop never produces a negative indemnity."""
        assert getattr(CropInsuranceService, method)(*args) == 0


class TestAreaRiders:
    """Test SCO and ECO bands."""

    def test_sco_farm_level_capped_at_band(self, service):
        """A deep farm loss pays the full SCO band."""
        sco = service.calculate_sco_indemnity(200, 80, "4.66", 120, "3.50", InsurancePlanType.RP)
        # 200 bu x 6% x 4.66
        assert sco == Decimal("55.92")

    def test_sco_no_loss(self, service):
        """No loss, no SCO payment."""
        sco = service.calculate_sco_indemnity(200, 80, "4.66", 200, "4.66", InsurancePlanType.RP)
        assert sco == 0

    def test_sco_county_yield_partial(self, service):
        """County loss inside the band pays proportionally."""
        county = CountyYield(expected=Decimal("180"), simulated=Decimal("149.4"))
        sco = service.calculate_sco_indemnity(
            200, 80, "4.66", 120, "4.66", InsurancePlanType.YP, county
        )
        # county ratio 0.83: half of the 80-86% band
        assert sco == Decimal("27.96")

    def test_sco_county_yield_above_trigger(self, service):
        """A county at or above 86% of expected pays nothing."""
        county = CountyYield(expected=Decimal("180"), simulated=Decimal("180"))
        sco = service.calculate_sco_indemnity(
            200, 80, "4.66", 100, "4.66", InsurancePlanType.YP, county
        )
        assert sco == 0

    def test_eco_band(self, service):
        """ECO covers 86% up to the ECO level."""
        eco = service.calculate_eco_indemnity(200, 95, "4.66", 120, "3.50", InsurancePlanType.RP)
        # 200 bu x 9% x 4.66
        assert eco == Decimal("83.88")

    def test_zero_aph_pays_nothing(self, service):
        """Without APH the farm-level fallback has no basis."""
        sco = service.calculate_sco_indemnity(0, 80, "4.66", 0, "3.50", InsurancePlanType.RP)
        assert sco == 0

    def test_county_revenue_without_projected_price(self, service):
        """A zero projected price gives no county revenue basis."""
        county = CountyYield(expected=Decimal("180"), simulated=Decimal("120"))
        sco = service.calculate_sco_indemnity(200, 80, 0, 120, "3.50", InsurancePlanType.RP, county)
        assert sco == 0


class TestCalculateIndemnity:
    """Test the combined indemnity for a policy."""

    def test_riders_only_when_held(self, service):
        """SCO and ECO are added only when the policy carries them."""
        policy = InsurancePolicy(
            field_id="f",
            plan_type="RP",
            coverage_level=80,
            projected_price="4.66",
            premium_per_acre=20,
            has_sco=True,
            has_eco=True,
            eco_level=None,
        )
        indemnity = service.calculate_indemnity(policy, 200, 120, "3.50")
        assert indemnity.base == Decimal("325.60")
        assert indemnity.sco == Decimal("55.92")
        assert indemnity.eco == 0
        assert indemnity.total == Decimal("381.52")

    def test_yp_policy_dispatch(self, service):
        """YP policies use the yield formula."""
        policy = InsurancePolicy(
            field_id="f", plan_type="YP", coverage_level=80, projected_price="4.66", premium_per_acre=15
        )
        assert service.calculate_indemnity(policy, 200, 120, "9.00").base == Decimal("186.40")

    def test_policy_lookup(self, service, rp_policy):
        """Policies are stored and looked up by field."""
        assert service.get_policy("field-1") is None
        service.add_policy(rp_policy)
        assert service.get_policy("field-1") is rp_policy
