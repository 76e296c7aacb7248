"""Grain contract read and write paths.

Reads replace the stored ``bushels_delivered`` of accumulator contracts with
the value derived from the accrual formula, so what users see always reflects
today's date and any knockout. Writes validate accumulator terms up front and
keep a recorded knockout permanent.
"""

from dataclasses import replace
from datetime import date, datetime
import logging
from typing import List, Optional

from pydantic import BaseModel, Field

from .accumulator import AccumulatorAccrualEngine
from .decimal_utils import ZERO
from .exceptions import InvalidContractError, NotFoundError
from .models import AccumulatorDetails, ContractType, DateLike, GrainContract
from .providers import ContractRepository

logger = logging.getLogger(__name__)


class AccumulatorDetailsUpdate(BaseModel):
    """Partial update of an accumulator's state flags.

    Unset fields are left untouched.
    """

    is_daily_double: Optional[bool] = Field(default=None, description="Daily double feature")
    is_currently_doubled: Optional[bool] = Field(default=None, description="Doubling active")
    basis_locked: Optional[bool] = Field(default=None, description="Basis set on accrued bushels")
    knockout_reached: Optional[bool] = Field(default=None, description="Record a knockout")
    knockout_date: Optional[datetime] = Field(
        default=None, description="Knockout time; defaults to now when recording a knockout"
    )


def validate_contract(contract: GrainContract) -> List[str]:
    """Collect the problems that prevent a contract from being stored.

    Returns:
        Issue descriptions, empty when the contract is valid.
    """
    issues: List[str] = []
    if contract.total_bushels <= ZERO:
        issues.append(f"total_bushels must be positive, got {contract.total_bushels}")

    details = contract.accumulator
    if not contract.is_accumulator:
        if details is not None:
            issues.append(
                f"{contract.contract_type.value} contracts cannot carry accumulator details"
            )
        return issues

    if details is None:
        issues.append("Accumulator contracts require accumulator details")
        return issues
    if details.knockout_price is None or details.knockout_price <= ZERO:
        issues.append("Accumulator knockout_price must be positive")
    if details.daily_bushels is None or details.daily_bushels <= ZERO:
        issues.append("Accumulator daily_bushels must be positive")
    if details.start_date is None:
        issues.append("Accumulator start_date is required")
    elif details.end_date is not None and _day(details.end_date) < _day(details.start_date):
        issues.append(
            f"Accumulator end_date {details.end_date} is before start_date {details.start_date}"
        )
    if details.total_bushels_marketed > contract.total_bushels:
        issues.append(
            f"total_bushels_marketed {details.total_bushels_marketed} exceeds "
            f"total_bushels {contract.total_bushels}"
        )
    return issues


def _day(value: DateLike) -> date:
    return value.date() if isinstance(value, datetime) else value


class GrainContractService:
    """Contract CRUD on top of a :class:`ContractRepository`.

    Args:
        contracts: Contract store.
        engine: Accrual engine; built over ``contracts`` when omitted.
    """

    def __init__(
        self,
        contracts: ContractRepository,
        engine: Optional[AccumulatorAccrualEngine] = None,
    ):
        self.contracts = contracts
        self.engine = engine or AccumulatorAccrualEngine(contracts)

    def _with_derived_bushels(
        self, contract: GrainContract, as_of: Optional[DateLike]
    ) -> GrainContract:
        if not contract.is_accumulator or contract.accumulator is None:
            return contract
        return replace(
            contract, bushels_delivered=self.engine.delivered_bushels(contract, as_of)
        )

    def get_contract(
        self,
        contract_id: str,
        business_id: Optional[str] = None,
        as_of: Optional[DateLike] = None,
    ) -> GrainContract:
        """Fetch a contract as users see it.

        Args:
            contract_id: Contract to fetch.
            business_id: Restrict the lookup to this business.
            as_of: Evaluation time for accumulator accrual; defaults to now.

        Raises:
            NotFoundError: If the contract does not exist for the business.
        """
        contract = self.contracts.get_contract(contract_id, business_id)
        if contract is None:
            raise NotFoundError("contract", contract_id)
        return self._with_derived_bushels(contract, as_of)

    def list_contracts(
        self,
        business_id: str,
        year: Optional[int] = None,
        contract_type: Optional[ContractType] = None,
        commodity: Optional[str] = None,
        is_active: Optional[bool] = None,
        as_of: Optional[DateLike] = None,
    ) -> List[GrainContract]:
        """A business's contracts, filtered, with derived accumulator bushels."""
        return [
            self._with_derived_bushels(contract, as_of)
            for contract in self.contracts.list_contracts(
                business_id,
                year=year,
                contract_type=contract_type,
                commodity=commodity,
                is_active=is_active,
            )
        ]

    def create_contract(self, contract: GrainContract) -> GrainContract:
        """Validate and store a new contract.

        Raises:
            InvalidContractError: Listing every problem found.
        """
        issues = validate_contract(contract)
        if issues:
            raise InvalidContractError(issues)
        self.contracts.save_contract(contract)
        logger.debug("Created %s contract %s", contract.contract_type.value, contract.id)
        return self._with_derived_bushels(contract, None)

    def delete_contract(self, contract_id: str, business_id: Optional[str] = None) -> None:
        """Soft-delete a contract; it disappears from every read path.

        Raises:
            NotFoundError: If the contract does not exist for the business.
        """
        with self.engine.contract_lock(contract_id):
            contract = self.contracts.get_contract(contract_id, business_id)
            if contract is None:
                raise NotFoundError("contract", contract_id)
            contract.deleted = True
            self.contracts.save_contract(contract)

    def update_accumulator_details(
        self,
        contract_id: str,
        update: AccumulatorDetailsUpdate,
        business_id: Optional[str] = None,
    ) -> AccumulatorDetails:
        """Apply a partial update to an accumulator's flags.

        A knockout, once recorded, cannot be cleared and its date cannot move.

        Raises:
            NotFoundError: If the contract does not exist or is not an accumulator.
            InvalidContractError: If the update would undo or re-date a knockout.
        """
        with self.engine.contract_lock(contract_id):
            contract = self.contracts.get_contract(contract_id, business_id)
            if contract is None or contract.accumulator is None:
                raise NotFoundError("accumulator contract", contract_id)
            details = contract.accumulator

            if details.knockout_reached:
                issues = []
                if update.knockout_reached is False:
                    issues.append("knockout_reached cannot be cleared once a knockout is recorded")
                if update.knockout_date is not None and update.knockout_date != details.knockout_date:
                    issues.append(
                        f"knockout_date is fixed at {details.knockout_date} and cannot change"
                    )
                if issues:
                    raise InvalidContractError(issues)
            elif update.knockout_reached:
                details.knockout_reached = True
                details.knockout_date = update.knockout_date or self.engine.now()
                logger.info("Knockout recorded manually for accumulator %s", contract_id)
            elif update.knockout_date is not None:
                raise InvalidContractError(
                    ["knockout_date can only be set together with knockout_reached"]
                )

            if update.is_daily_double is not None:
                details.is_daily_double = update.is_daily_double
            if update.is_currently_doubled is not None:
                details.is_currently_doubled = update.is_currently_doubled
            if update.basis_locked is not None:
                details.basis_locked = update.basis_locked

            self.contracts.save_contract(contract)
        return details
