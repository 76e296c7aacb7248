"""Load a single-field scenario from YAML.

A scenario document describes one field together with everything the profit
matrix needs: the contracts allocated to it, the field-year's loan cost and the
crop insurance policy. Contracts inherit the field's business, year and
commodity unless they say otherwise.

Examples:
    A minimal document::

        business_id: farm-co
        field:
          id: north-80
          acres: 80
          commodity: CORN
          year: 2024
          aph: 200
          projected_yield: 195
        contracts:
          - id: elevator-1
            contract_type: CASH
            total_bushels: 8000
            cash_price: 4.85
            allocated_bushels: 8000
        loan_cost: 1200
        insurance_policy:
          plan_type: RP
          coverage_level: 80
          projected_price: 4.66
          premium_per_acre: 18.50
"""

from dataclasses import dataclass, field as dataclass_field
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .config import EngineConfig
from .cost_aggregator import CostAggregator
from .crop_insurance import CropInsuranceService
from .exceptions import ScenarioLoadError
from .models import (
    AccumulatorDailyEntry,
    AccumulatorDetails,
    ChemicalUsage,
    ContractAllocation,
    FertilizerUsage,
    Field,
    GrainContract,
    InsurancePolicy,
    OtherCost,
    SeedUsage,
)
from .profit_matrix import ProfitMatrixGenerator
from .providers import (
    InMemoryAllocationProvider,
    InMemoryFieldRepository,
    StaticLoanInterestProvider,
)

logger = logging.getLogger(__name__)


@dataclass
class Scenario:
    """Engine inputs for one field."""

    business_id: str
    field: Field
    contracts: List[GrainContract] = dataclass_field(default_factory=list)
    allocations: List[ContractAllocation] = dataclass_field(default_factory=list)
    loan_cost: Optional[Any] = None
    insurance_policy: Optional[InsurancePolicy] = None

    def build_generator(self, config: Optional[EngineConfig] = None) -> ProfitMatrixGenerator:
        """Wire a generator over in-memory collaborators holding this scenario."""
        loans = {}
        if self.loan_cost is not None:
            loans[(self.field.id, self.field.year)] = self.loan_cost
        policies = {}
        if self.insurance_policy is not None:
            policies[self.field.id] = self.insurance_policy
        return ProfitMatrixGenerator(
            InMemoryFieldRepository([self.field]),
            InMemoryAllocationProvider(self.allocations),
            CropInsuranceService(policies),
            CostAggregator(StaticLoanInterestProvider(loans)),
            config,
        )


def _build(cls, data: Any, where: str):
    if not isinstance(data, dict):
        raise ScenarioLoadError(f"{where}: expected a mapping, got {type(data).__name__}")
    try:
        return cls(**data)
    except (TypeError, ValueError) as e:
        raise ScenarioLoadError(f"{where}: {e}") from e


def _build_list(cls, items: Any, where: str) -> list:
    if items is None:
        return []
    if not isinstance(items, list):
        raise ScenarioLoadError(f"{where}: expected a list")
    return [_build(cls, item, f"{where}[{i}]") for i, item in enumerate(items)]


def _build_field(data: Any, business_id: str) -> Field:
    if not isinstance(data, dict):
        raise ScenarioLoadError("field: expected a mapping")
    data = dict(data)
    data.setdefault("business_id", business_id)
    data["fertilizer_usage"] = _build_list(
        FertilizerUsage, data.get("fertilizer_usage"), "field.fertilizer_usage"
    )
    data["chemical_usage"] = _build_list(
        ChemicalUsage, data.get("chemical_usage"), "field.chemical_usage"
    )
    data["seed_usage"] = _build_list(SeedUsage, data.get("seed_usage"), "field.seed_usage")
    data["other_costs"] = _build_list(OtherCost, data.get("other_costs"), "field.other_costs")
    return _build(Field, data, "field")


def _build_contract(data: Any, field_record: Field, where: str):
    if not isinstance(data, dict):
        raise ScenarioLoadError(f"{where}: expected a mapping")
    data = dict(data)
    allocated = data.pop("allocated_bushels", None)
    data.setdefault("business_id", field_record.business_id)
    data.setdefault("year", field_record.year)
    data.setdefault("commodity", field_record.commodity)

    accumulator = data.get("accumulator")
    if isinstance(accumulator, dict):
        accumulator = dict(accumulator)
        accumulator["daily_entries"] = _build_list(
            AccumulatorDailyEntry,
            accumulator.get("daily_entries"),
            f"{where}.accumulator.daily_entries",
        )
    if accumulator is not None:
        data["accumulator"] = _build(AccumulatorDetails, accumulator, f"{where}.accumulator")

    contract = _build(GrainContract, data, where)
    return contract, allocated


def parse_scenario(data: Dict[str, Any]) -> Scenario:
    """Build a :class:`Scenario` from an already-parsed document.

    Raises:
        ScenarioLoadError: If a section is missing or malformed.
    """
    if not isinstance(data, dict):
        raise ScenarioLoadError("Scenario document must be a mapping")
    if "field" not in data:
        raise ScenarioLoadError("Scenario document has no 'field' section")

    business_id = str(data.get("business_id", "default"))
    field_record = _build_field(data["field"], business_id)

    contracts: List[GrainContract] = []
    allocations: List[ContractAllocation] = []
    raw_contracts = data.get("contracts") or []
    if not isinstance(raw_contracts, list):
        raise ScenarioLoadError("contracts: expected a list")
    for i, raw in enumerate(raw_contracts):
        contract, allocated = _build_contract(raw, field_record, f"contracts[{i}]")
        contracts.append(contract)
        if allocated is not None:
            allocations.append(ContractAllocation(contract, field_record.id, allocated))

    policy = None
    if data.get("insurance_policy") is not None:
        raw_policy = data["insurance_policy"]
        if isinstance(raw_policy, dict):
            raw_policy = {"field_id": field_record.id, **raw_policy}
        policy = _build(InsurancePolicy, raw_policy, "insurance_policy")

    logger.debug(
        "Loaded scenario for field %s: %d contracts, %d allocations",
        field_record.id,
        len(contracts),
        len(allocations),
    )
    return Scenario(
        business_id=business_id,
        field=field_record,
        contracts=contracts,
        allocations=allocations,
        loan_cost=data.get("loan_cost"),
        insurance_policy=policy,
    )


def load_scenario(path: Path) -> Scenario:
    """Load a scenario from a YAML file.

    Args:
        path: Path to the scenario document.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ScenarioLoadError: If the document is malformed.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Scenario file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ScenarioLoadError(f"Invalid YAML in {path}: {e}") from e

    return parse_scenario(data or {})
