"""Collaborator interfaces consumed by the engines.

The engines never talk to a database, a loan book or an insurance system
directly. They receive implementations of the abstract classes below through
their constructors. The in-memory implementations in this module back the
command-line tool and the test suite; production callers supply adapters over
their own persistence layer.

Examples:
    Wiring the profit matrix generator with in-memory collaborators::

        fields = InMemoryFieldRepository([field])
        allocations = InMemoryAllocationProvider([allocation])
        loans = StaticLoanInterestProvider({(field.id, field.year): 1_250})
        insurance = CropInsuranceService({field.id: policy})

        generator = ProfitMatrixGenerator(
            fields, allocations, insurance, CostAggregator(loans)
        )
"""

from abc import ABC, abstractmethod
import copy
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .models import (
    ContractAllocation,
    ContractType,
    Field,
    FinancingCost,
    GrainContract,
    Indemnity,
    InsurancePolicy,
)


class FieldRepository(ABC):
    """Read access to fields."""

    @abstractmethod
    def get_field(self, field_id: str, business_id: str) -> Optional[Field]:
        """Return the field if it exists, is not deleted and belongs to the business."""


class ContractRepository(ABC):
    """Read/write access to grain contracts."""

    @abstractmethod
    def get_contract(
        self, contract_id: str, business_id: Optional[str] = None
    ) -> Optional[GrainContract]:
        """Return the contract, restricted to ``business_id`` when given."""

    @abstractmethod
    def save_contract(self, contract: GrainContract) -> None:
        """Insert or replace a contract, including its accumulator details."""

    @abstractmethod
    def list_contracts(
        self,
        business_id: str,
        year: Optional[int] = None,
        contract_type: Optional[ContractType] = None,
        commodity: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> List[GrainContract]:
        """Return the business's non-deleted contracts matching the filters."""


class ContractAllocationProvider(ABC):
    """Supplies the contract bushels assigned to a field."""

    @abstractmethod
    def get_allocations(self, field_id: str, year: int, commodity: str) -> List[ContractAllocation]:
        """Return the ``{contract, allocated_bushels}`` pairs for a field-year."""


class LoanInterestProvider(ABC):
    """Supplies financing cost charged to a field."""

    @abstractmethod
    def get_field_financing_cost(self, field_id: str, year: int) -> Optional[FinancingCost]:
        """Return the field-year financing cost, or ``None`` when no loans are on file.

        Raises:
            FinancingDataUnavailable: If the loan data could not be read.
        """


class InsuranceIndemnityProvider(ABC):
    """Policy lookup and indemnity calculation."""

    @abstractmethod
    def get_policy(self, field_id: str) -> Optional[InsurancePolicy]:
        """Return the field's policy, or ``None`` if uninsured.

        Raises:
            InsuranceDataUnavailable: If the policy store could not be read.
        """

    @abstractmethod
    def calculate_indemnity(
        self,
        policy: InsurancePolicy,
        aph: Decimal,
        scenario_yield: Decimal,
        scenario_price: Decimal,
    ) -> Indemnity:
        """Per-acre indemnity for one yield/price outcome."""


# ---------------------------------------------------------------------- #
#  In-memory implementations
# ---------------------------------------------------------------------- #


class InMemoryFieldRepository(FieldRepository):
    """Field repository over a dict, keyed by field id."""

    def __init__(self, fields: Iterable[Field] = ()):
        self._fields: Dict[str, Field] = {f.id: f for f in fields}

    def add(self, field: Field) -> None:
        """Add or replace a field."""
        self._fields[field.id] = field

    def get_field(self, field_id: str, business_id: str) -> Optional[Field]:
        field = self._fields.get(field_id)
        if field is None or field.deleted or field.business_id != business_id:
            return None
        return field


class InMemoryContractRepository(ContractRepository):
    """Contract repository over a dict.

    Reads return deep copies so that, as with a real store, changes are only
    visible to other readers after :meth:`save_contract`.
    """

    def __init__(self, contracts: Iterable[GrainContract] = ()):
        self._contracts: Dict[str, GrainContract] = {}
        for contract in contracts:
            self.save_contract(contract)

    def get_contract(
        self, contract_id: str, business_id: Optional[str] = None
    ) -> Optional[GrainContract]:
        contract = self._contracts.get(contract_id)
        if contract is None or contract.deleted:
            return None
        if business_id is not None and contract.business_id != business_id:
            return None
        return copy.deepcopy(contract)

    def save_contract(self, contract: GrainContract) -> None:
        self._contracts[contract.id] = copy.deepcopy(contract)

    def list_contracts(
        self,
        business_id: str,
        year: Optional[int] = None,
        contract_type: Optional[ContractType] = None,
        commodity: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> List[GrainContract]:
        matches = []
        for contract in self._contracts.values():
            if contract.deleted or contract.business_id != business_id:
                continue
            if year is not None and contract.year != year:
                continue
            if contract_type is not None and contract.contract_type != contract_type:
                continue
            if commodity is not None and contract.commodity != commodity:
                continue
            if is_active is not None and contract.is_active != is_active:
                continue
            matches.append(copy.deepcopy(contract))
        return sorted(matches, key=lambda c: (-c.year, c.id))


class InMemoryAllocationProvider(ContractAllocationProvider):
    """Allocations held in a list.

    Filtering by year and commodity happens on the contract, mirroring the
    query the application runs; the generator re-checks active/deleted flags.
    """

    def __init__(self, allocations: Iterable[ContractAllocation] = ()):
        self._allocations: List[ContractAllocation] = list(allocations)

    def add(self, allocation: ContractAllocation) -> None:
        """Record another allocation."""
        self._allocations.append(allocation)

    def get_allocations(self, field_id: str, year: int, commodity: str) -> List[ContractAllocation]:
        return [
            alloc
            for alloc in self._allocations
            if alloc.field_id == field_id
            and alloc.contract.year == year
            and alloc.contract.commodity == commodity
        ]


class StaticLoanInterestProvider(LoanInterestProvider):
    """Financing costs looked up from a ``(field_id, year)`` mapping.

    Field-years missing from the mapping have no loans on file.
    """

    def __init__(
        self,
        costs: Optional[Dict[Tuple[str, int], Union[Decimal, float, int, str]]] = None,
    ):
        self._costs = {key: FinancingCost(value) for key, value in (costs or {}).items()}

    def get_field_financing_cost(self, field_id: str, year: int) -> Optional[FinancingCost]:
        return self._costs.get((field_id, year))
