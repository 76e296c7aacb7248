"""Exceptions raised by the accrual and scenario engines.

Callers distinguish three outcomes: the record they asked about does not exist
for their business (:class:`NotFoundError`), the input was rejected before
anything was written (the ``ValueError`` subclasses), or a collaborator had no
data (:class:`FinancingDataUnavailable`, :class:`InsuranceDataUnavailable`),
which the engines turn into documented zero defaults rather than failures.
"""

from typing import List, Optional


class GrainProfitError(Exception):
    """Base class for all grain_profit errors."""


class NotFoundError(GrainProfitError, LookupError):
    """A contract or field does not exist or is not owned by the caller.

    Attributes:
        kind: Record kind, e.g. ``"contract"`` or ``"field"``.
        record_id: Identifier that was looked up.
    """

    def __init__(self, kind: str, record_id: str) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind.capitalize()} not found or access denied: {record_id}")


class InvalidContractError(GrainProfitError, ValueError):
    """A contract or its accumulator details failed validation.

    Attributes:
        issues: List of specific problems found.

    Examples:
        Catching and inspecting issues::

            try:
                service.create_contract(contract)
            except InvalidContractError as e:
                for issue in e.issues:
                    print(f"  - {issue}")
    """

    def __init__(self, issues: List[str]) -> None:
        self.issues = issues
        bullet_list = "\n".join(f"  - {issue}" for issue in issues)
        super().__init__(
            f"Contract has {len(issues)} "
            f"{'issue' if len(issues) == 1 else 'issues'}:\n{bullet_list}"
        )


class InvalidEntryError(GrainProfitError, ValueError):
    """A manual accumulator entry was rejected."""


class ScenarioConfigError(GrainProfitError, ValueError):
    """Scenario generation parameters are unusable (e.g. fewer than 2 steps)."""


class FinancingDataUnavailable(GrainProfitError):
    """The loan provider could not produce financing data for a field-year."""

    def __init__(self, field_id: str, year: int, reason: Optional[str] = None) -> None:
        self.field_id = field_id
        self.year = year
        message = f"No financing data for field {field_id} in {year}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class InsuranceDataUnavailable(GrainProfitError):
    """The insurance provider could not look up a policy."""


class ScenarioLoadError(GrainProfitError, ValueError):
    """A scenario document could not be turned into engine inputs."""
