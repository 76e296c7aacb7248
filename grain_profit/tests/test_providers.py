"""Unit tests for the in-memory collaborators."""

from decimal import Decimal

from grain_profit.models import ContractAllocation, ContractType, Field, GrainContract
from grain_profit.providers import (
    InMemoryAllocationProvider,
    InMemoryContractRepository,
    InMemoryFieldRepository,
    StaticLoanInterestProvider,
)


class TestInMemoryContractRepository:
    """Test contract storage semantics."""

    def test_reads_are_copies(self, contract_repo):
        """Mutating a read does not change the store until saved."""
        contract = contract_repo.get_contract("cash-1")
        contract.bushels_delivered = Decimal("9999")
        assert contract_repo.get_contract("cash-1").bushels_delivered == Decimal("2500")

        contract_repo.save_contract(contract)
        assert contract_repo.get_contract("cash-1").bushels_delivered == Decimal("9999")

    def test_business_scoping(self, contract_repo):
        """Business-scoped reads hide other businesses' contracts."""
        assert contract_repo.get_contract("cash-1", "biz-1") is not None
        assert contract_repo.get_contract("cash-1", "biz-2") is None

    def test_list_filters(self, contract_repo):
        """Listing honours every filter."""
        contract_repo.save_contract(
            GrainContract(
                id="old",
                business_id="biz-1",
                contract_type=ContractType.CASH,
                year=2023,
                commodity="SOYBEANS",
                total_bushels=100,
                is_active=False,
            )
        )
        assert [c.id for c in contract_repo.list_contracts("biz-1")] == ["acc-1", "cash-1", "old"]
        assert [c.id for c in contract_repo.list_contracts("biz-1", year=2023)] == ["old"]
        assert [c.id for c in contract_repo.list_contracts("biz-1", commodity="CORN")] == [
            "acc-1",
            "cash-1",
        ]
        assert [c.id for c in contract_repo.list_contracts("biz-1", is_active=False)] == ["old"]
        assert contract_repo.list_contracts("biz-2") == []


class TestOtherProviders:
    """Test field, allocation and loan lookups."""

    def test_field_visibility(self, corn_field):
        """Deleted and foreign fields are hidden."""
        repo = InMemoryFieldRepository([corn_field])
        assert repo.get_field("field-1", "biz-1") is corn_field
        assert repo.get_field("field-1", "biz-2") is None
        repo.add(Field(id="gone", business_id="biz-1", acres=1, commodity="CORN", year=2024, deleted=True))
        assert repo.get_field("gone", "biz-1") is None

    def test_allocations_filtered_by_contract(self, cash_contract):
        """Allocations match on field, year and commodity."""
        provider = InMemoryAllocationProvider([ContractAllocation(cash_contract, "field-1", 500)])
        provider.add(ContractAllocation(cash_contract, "field-2", 700))
        assert len(provider.get_allocations("field-1", 2024, "CORN")) == 1
        assert provider.get_allocations("field-1", 2023, "CORN") == []
        assert provider.get_allocations("field-1", 2024, "WHEAT") == []

    def test_static_loans(self):
        """Unknown field-years have no loans on file."""
        loans = StaticLoanInterestProvider({("field-1", 2024): "812.40"})
        assert loans.get_field_financing_cost("field-1", 2024).total_loan_cost == Decimal("812.40")
        assert loans.get_field_financing_cost("field-1", 2023) is None
