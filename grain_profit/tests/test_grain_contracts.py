"""Unit tests for GrainContractService."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from grain_profit.exceptions import InvalidContractError, NotFoundError
from grain_profit.grain_contracts import (
    AccumulatorDetailsUpdate,
    GrainContractService,
    validate_contract,
)
from grain_profit.models import AccumulatorDetails, ContractType, GrainContract
from grain_profit.providers import InMemoryContractRepository


@pytest.fixture
def service(contract_repo, engine):
    """Service sharing the frozen-clock engine."""
    return GrainContractService(contract_repo, engine)


def _accumulator(**overrides):
    params = {
        "id": "acc-new",
        "business_id": "biz-1",
        "contract_type": ContractType.ACCUMULATOR,
        "year": 2024,
        "commodity": "CORN",
        "total_bushels": 20000,
        "accumulator": AccumulatorDetails(
            knockout_price="5.25", daily_bushels=500, start_date=date(2024, 6, 10)
        ),
    }
    params.update(overrides)
    return GrainContract(**params)


class TestReadPath:
    """Test contract reads with derived accumulator bushels."""

    def test_accumulator_delivered_is_derived(self, service):
        """Accumulator deliveries come from the accrual formula."""
        contract = service.get_contract("acc-1")
        assert contract.bushels_delivered == Decimal("15000")

    def test_as_of_override(self, service):
        """Reads can be evaluated at another date."""
        assert service.get_contract("acc-1", as_of=date(2024, 6, 2)).bushels_delivered == Decimal("2000")

    def test_stored_value_untouched(self, service, contract_repo):
        """Deriving the figure does not write it back."""
        service.get_contract("acc-1")
        assert contract_repo.get_contract("acc-1").bushels_delivered == 0

    def test_cash_contract_stored_value(self, service):
        """Other contracts report their stored deliveries."""
        assert service.get_contract("cash-1").bushels_delivered == Decimal("2500")

    def test_foreign_business_not_found(self, service):
        """Another business's contract is not visible."""
        with pytest.raises(NotFoundError):
            service.get_contract("acc-1", business_id="other")

    def test_list_filters_and_derives(self, service):
        """Listing filters by type and applies derived deliveries."""
        contracts = service.list_contracts("biz-1", contract_type=ContractType.ACCUMULATOR)
        assert [c.id for c in contracts] == ["acc-1"]
        assert contracts[0].bushels_delivered == Decimal("15000")

    def test_list_all(self, service):
        """Without filters every contract of the business is listed."""
        assert [c.id for c in service.list_contracts("biz-1")] == ["acc-1", "cash-1"]


class TestCreate:
    """Test contract creation and validation."""

    def test_valid_accumulator_stored(self, service, contract_repo):
        """A valid accumulator is saved."""
        created = service.create_contract(_accumulator())
        assert contract_repo.get_contract("acc-new") is not None
        # 2024-06-10 through 2024-06-15 at 500 bu/day
        assert created.bushels_delivered == Decimal("3000")

    def test_missing_terms_reported_together(self, service):
        """Every accumulator problem is reported at once."""
        bad = _accumulator(
            accumulator=AccumulatorDetails(knockout_price=0, daily_bushels=0, start_date=None)
        )
        with pytest.raises(InvalidContractError) as exc_info:
            service.create_contract(bad)

        issues = exc_info.value.issues
        assert len(issues) == 3
        assert any("knockout_price" in issue for issue in issues)
        assert any("daily_bushels" in issue for issue in issues)
        assert any("start_date" in issue for issue in issues)
        assert "3 issues" in str(exc_info.value)

    def test_accumulator_requires_details(self, service):
        """An accumulator without details is rejected."""
        with pytest.raises(InvalidContractError, match="require accumulator details"):
            service.create_contract(_accumulator(accumulator=None))

    def test_end_before_start(self):
        """An end date before the start date is an issue."""
        contract = _accumulator(
            accumulator=AccumulatorDetails(
                knockout_price=5, daily_bushels=500, start_date=date(2024, 6, 10), end_date=date(2024, 6, 1)
            )
        )
        assert any("before start_date" in issue for issue in validate_contract(contract))

    def test_cash_contract_with_details_rejected(self):
        """Only accumulators may carry accumulator details."""
        contract = _accumulator(contract_type=ContractType.CASH)
        assert validate_contract(contract) == ["CASH contracts cannot carry accumulator details"]

    def test_zero_total_rejected(self):
        """Contracts must cover some bushels."""
        contract = _accumulator(total_bushels=0)
        assert any("total_bushels" in issue for issue in validate_contract(contract))


class TestDelete:
    """Test soft deletion."""

    def test_deleted_contract_disappears(self, service):
        """A deleted contract is no longer readable."""
        service.delete_contract("cash-1", business_id="biz-1")
        with pytest.raises(NotFoundError):
            service.get_contract("cash-1")
        assert [c.id for c in service.list_contracts("biz-1")] == ["acc-1"]

    def test_delete_missing(self, service):
        """Deleting an unknown contract raises."""
        with pytest.raises(NotFoundError):
            service.delete_contract("nope")


class TestUpdateAccumulatorDetails:
    """Test partial updates and knockout immutability."""

    def test_flags_updated(self, service, contract_repo):
        """Flag updates are persisted."""
        details = service.update_accumulator_details(
            "acc-1", AccumulatorDetailsUpdate(is_daily_double=True, basis_locked=True)
        )
        assert details.is_daily_double
        stored = contract_repo.get_contract("acc-1").accumulator
        assert stored.is_daily_double
        assert stored.basis_locked
        assert not stored.is_currently_doubled

    def test_manual_knockout_defaults_to_now(self, service, fixed_clock):
        """Recording a knockout without a date uses the clock."""
        details = service.update_accumulator_details(
            "acc-1", AccumulatorDetailsUpdate(knockout_reached=True)
        )
        assert details.knockout_reached
        assert details.knockout_date == fixed_clock()

    def test_knockout_cannot_be_cleared(self, service, engine):
        """Un-knocking out is rejected."""
        engine.check_knockout("acc-1", "5.50")
        with pytest.raises(InvalidContractError, match="cannot be cleared"):
            service.update_accumulator_details("acc-1", AccumulatorDetailsUpdate(knockout_reached=False))

    def test_knockout_date_cannot_move(self, service, engine, contract_repo, fixed_clock):
        """A recorded knockout date is fixed."""
        engine.check_knockout("acc-1", "5.50")
        with pytest.raises(InvalidContractError, match="fixed"):
            service.update_accumulator_details(
                "acc-1", AccumulatorDetailsUpdate(knockout_date=datetime(2024, 7, 1))
            )
        assert contract_repo.get_contract("acc-1").accumulator.knockout_date == fixed_clock()

    def test_date_without_flag_rejected(self, service):
        """A knockout date alone is not a knockout."""
        with pytest.raises(InvalidContractError, match="together with knockout_reached"):
            service.update_accumulator_details(
                "acc-1", AccumulatorDetailsUpdate(knockout_date=datetime(2024, 7, 1))
            )

    def test_non_accumulator_not_found(self, service):
        """Cash contracts have no accumulator details to update."""
        with pytest.raises(NotFoundError):
            service.update_accumulator_details("cash-1", AccumulatorDetailsUpdate(basis_locked=True))

    def test_default_engine(self, accumulator_contract):
        """The service builds its own engine when none is given."""
        service = GrainContractService(InMemoryContractRepository([accumulator_contract]))
        assert service.get_contract("acc-1", as_of=date(2024, 6, 10)).bushels_delivered == Decimal("10000")
