"""Accrual of accumulator contracts.

An accumulator sells a fixed number of bushels every calendar day from its
start date until its end date, or until the market trades at or above the
knockout price, whichever comes first. Bushels marketed to date are therefore
a function of the calendar and are recomputed on every read instead of being
maintained by a background job:

    effective_end = knockout_date if knocked out else min(end_date, as_of)
    days_elapsed  = whole days from start_date to effective_end, inclusive
    marketed      = clamp(days_elapsed x daily_bushels, 0, total_bushels)

The double-up fields of :class:`~grain_profit.models.AccumulatorDetails` are
stored but never read by the formula.

Alongside the formula the engine keeps a manual, append-only ledger of daily
entries. The ledger adds to the contract's running totals and is not
reconciled against the formula.

Examples:
    Bushels marketed ten days into a 1,000 bu/day contract::

        details = AccumulatorDetails(knockout_price=5.10, daily_bushels=1_000,
                                     start_date=date(2024, 6, 1))
        compute_marketed_bushels(details, 50_000, date(2024, 6, 10))
        # Decimal('10000')
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
import logging
import threading
from typing import Callable, Optional
import weakref

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from .decimal_utils import ZERO, Numeric, clamp, safe_divide, to_decimal
from .exceptions import InvalidEntryError, NotFoundError
from .models import AccumulatorDailyEntry, AccumulatorDetails, DateLike, GrainContract
from .providers import ContractRepository

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


def _as_datetime(value: DateLike) -> datetime:
    """Dates count from midnight."""
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def compute_marketed_bushels(
    details: AccumulatorDetails,
    total_bushels: Numeric,
    as_of: DateLike,
) -> Decimal:
    """Bushels of an accumulator considered sold as of a point in time.

    Args:
        details: Accumulator terms and knockout state.
        total_bushels: Contracted bushels; the result never exceeds this.
        as_of: Evaluation date or datetime (naive).

    Returns:
        Marketed bushels in ``[0, total_bushels]``. Zero before the start date.
    """
    if details.knockout_reached and details.knockout_date is not None:
        effective_end = _as_datetime(details.knockout_date)
    elif details.end_date is not None:
        effective_end = min(_as_datetime(details.end_date), _as_datetime(as_of))
    else:
        effective_end = _as_datetime(as_of)

    start = _as_datetime(details.start_date)
    if effective_end < start:
        return ZERO

    days_elapsed = (effective_end - start) // ONE_DAY + 1
    marketed = days_elapsed * details.daily_bushels
    return clamp(marketed, ZERO, max(to_decimal(total_bushels), ZERO))


class DailyEntryRequest(BaseModel):
    """Manual accumulator entry as submitted by a user."""

    model_config = ConfigDict(populate_by_name=True)

    entry_date: date = Field(alias="date", description="Trading day the bushels were marketed")
    bushels_marketed: Decimal = Field(ge=0, description="Bushels marketed that day")
    market_price: Decimal = Field(ge=0, description="Market price that day ($/bu)")
    was_doubled_up: bool = Field(default=False, description="Whether the day was doubled")
    notes: Optional[str] = Field(default=None, description="Free-form notes")


@dataclass(frozen=True)
class AccumulatorPerformance:
    """Summary of an accumulator's manual ledger.

    Attributes:
        total_days: Number of ledger entries.
        days_doubled: Entries flagged as doubled.
        double_up_percentage: ``days_doubled / total_days`` in percent.
        total_bushels_marketed: Running total stored on the contract.
        average_daily_rate: Mean bushels per ledger entry.
        average_market_price: Mean logged market price.
    """

    contract_id: str
    total_days: int
    days_doubled: int
    double_up_percentage: Decimal
    total_bushels_marketed: Decimal
    average_daily_rate: Decimal
    average_market_price: Decimal
    knockout_reached: bool
    knockout_date: Optional[DateLike]
    start_date: DateLike
    end_date: Optional[DateLike]


class AccumulatorAccrualEngine:
    """Accrual, knockout detection and manual ledger for accumulator contracts.

    Knockout checks and ledger appends read a contract and conditionally write
    it back. Both are serialized per contract so that concurrent callers see
    each other's writes; the first knockout wins and its date is kept.

    Args:
        contracts: Contract store.
        clock: Returns the current time; defaults to :meth:`datetime.now`.
    """

    def __init__(
        self,
        contracts: ContractRepository,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.contracts = contracts
        self._clock = clock or datetime.now
        self._locks: "weakref.WeakValueDictionary[str, threading.Lock]" = (
            weakref.WeakValueDictionary()
        )
        self._locks_guard = threading.Lock()

    def now(self) -> datetime:
        """Current time according to the injected clock."""
        return self._clock()

    def contract_lock(self, contract_id: str) -> threading.Lock:
        """Lock guarding read-modify-write cycles on one contract.

        Locks are held weakly and dropped once no caller is using them.
        """
        with self._locks_guard:
            return self._locks.setdefault(contract_id, threading.Lock())

    def _load(self, contract_id: str, business_id: Optional[str]) -> GrainContract:
        contract = self.contracts.get_contract(contract_id, business_id)
        if contract is None:
            raise NotFoundError("contract", contract_id)
        return contract

    def _load_accumulator(self, contract_id: str, business_id: Optional[str]) -> GrainContract:
        contract = self._load(contract_id, business_id)
        if contract.accumulator is None:
            raise NotFoundError("accumulator contract", contract_id)
        return contract

    @staticmethod
    def compute_marketed_bushels(
        details: AccumulatorDetails, total_bushels: Numeric, as_of: DateLike
    ) -> Decimal:
        """See :func:`compute_marketed_bushels`."""
        return compute_marketed_bushels(details, total_bushels, as_of)

    def delivered_bushels(self, contract: GrainContract, as_of: Optional[DateLike] = None) -> Decimal:
        """Bushels delivered as shown to users.

        Accumulators report the accrual formula as of ``as_of`` (default now);
        every other contract reports its stored delivered bushels.
        """
        if not contract.is_accumulator or contract.accumulator is None:
            return contract.bushels_delivered
        when = as_of if as_of is not None else self._clock()
        return compute_marketed_bushels(contract.accumulator, contract.total_bushels, when)

    def check_knockout(
        self,
        contract_id: str,
        current_market_price: Numeric,
        business_id: Optional[str] = None,
    ) -> bool:
        """Detect and record a knockout.

        Args:
            contract_id: Contract to check.
            current_market_price: Latest market price ($/bu).
            business_id: Restrict the lookup to this business.

        Returns:
            True if the contract is (now or already) knocked out. False if the
            price is below the knockout price or the contract has no
            accumulator details.

        Raises:
            NotFoundError: If the contract does not exist for the business.
        """
        price = to_decimal(current_market_price)
        with self.contract_lock(contract_id):
            contract = self._load(contract_id, business_id)
            details = contract.accumulator
            if details is None:
                return False
            if details.knockout_reached:
                return True
            if price < details.knockout_price:
                return False

            details.knockout_reached = True
            details.knockout_date = self._clock()
            self.contracts.save_contract(contract)

        logger.info(
            "Accumulator %s knocked out at %s (knockout price %s)",
            contract_id,
            price,
            details.knockout_price,
        )
        return True

    def add_daily_entry(
        self,
        contract_id: str,
        request: DailyEntryRequest,
        business_id: Optional[str] = None,
    ) -> AccumulatorDailyEntry:
        """Append a manual ledger entry and bump the running totals.

        Increments both the accumulator's ``total_bushels_marketed`` and the
        contract's ``bushels_delivered``.

        Raises:
            NotFoundError: If the contract does not exist or is not an accumulator.
            InvalidEntryError: If the entry would take the marketed total past
                the contracted bushels.
        """
        with self.contract_lock(contract_id):
            contract = self._load_accumulator(contract_id, business_id)
            details = contract.accumulator
            assert details is not None

            new_total = details.total_bushels_marketed + request.bushels_marketed
            if new_total > contract.total_bushels:
                raise InvalidEntryError(
                    f"Entry of {request.bushels_marketed} bu would bring contract "
                    f"{contract_id} to {new_total} bu marketed, above its "
                    f"{contract.total_bushels} bu total"
                )

            entry = AccumulatorDailyEntry(
                date=request.entry_date,
                bushels_marketed=request.bushels_marketed,
                market_price=request.market_price,
                was_doubled_up=request.was_doubled_up,
                notes=request.notes,
                created_at=self._clock(),
            )
            details.daily_entries.append(entry)
            details.total_bushels_marketed = new_total
            contract.bushels_delivered += request.bushels_marketed
            self.contracts.save_contract(contract)

        logger.debug(
            "Logged %s bu for accumulator %s on %s", entry.bushels_marketed, contract_id, entry.date
        )
        return entry

    def entries_frame(self, contract_id: str, business_id: Optional[str] = None) -> pd.DataFrame:
        """The manual ledger as a DataFrame sorted by date."""
        contract = self._load_accumulator(contract_id, business_id)
        assert contract.accumulator is not None
        columns = ["date", "bushels_marketed", "market_price", "was_doubled_up", "notes"]
        rows = [
            {
                "date": entry.date,
                "bushels_marketed": entry.bushels_marketed,
                "market_price": entry.market_price,
                "was_doubled_up": entry.was_doubled_up,
                "notes": entry.notes,
            }
            for entry in contract.accumulator.daily_entries
        ]
        frame = pd.DataFrame(rows, columns=columns)
        return frame.sort_values("date", kind="stable").reset_index(drop=True)

    def performance(
        self, contract_id: str, business_id: Optional[str] = None
    ) -> AccumulatorPerformance:
        """Summarize the manual ledger of an accumulator.

        Raises:
            NotFoundError: If the contract does not exist or is not an accumulator.
        """
        contract = self._load_accumulator(contract_id, business_id)
        details = contract.accumulator
        assert details is not None

        entries = details.daily_entries
        total_days = len(entries)
        days_doubled = sum(1 for entry in entries if entry.was_doubled_up)
        logged_bushels = sum((entry.bushels_marketed for entry in entries), ZERO)
        logged_prices = sum((entry.market_price for entry in entries), ZERO)

        return AccumulatorPerformance(
            contract_id=contract_id,
            total_days=total_days,
            days_doubled=days_doubled,
            double_up_percentage=safe_divide(days_doubled * 100, total_days),
            total_bushels_marketed=details.total_bushels_marketed,
            average_daily_rate=safe_divide(logged_bushels, total_days),
            average_market_price=safe_divide(logged_prices, total_days),
            knockout_reached=details.knockout_reached,
            knockout_date=details.knockout_date,
            start_date=details.start_date,
            end_date=details.end_date,
        )
