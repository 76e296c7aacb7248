"""Grain marketing accrual and profitability scenarios"""

from ._version import __version__

# Use lazy imports so that importing the package does not pull in pandas/numpy
# Direct imports are defined but modules are imported only when accessed

__all__ = [
    "__version__",
    "AccumulatorAccrualEngine",
    "AccumulatorPerformance",
    "CostAggregator",
    "CostBreakdown",
    "CropInsuranceService",
    "DailyEntryRequest",
    "EngineConfig",
    "GrainContractService",
    "ProfitMatrixCell",
    "ProfitMatrixGenerator",
    "ProfitMatrixResult",
    "compute_marketed_bushels",
    "load_scenario",
]


def __getattr__(name):
    """Lazy import modules on first attribute access."""
    if name in [
        "AccumulatorAccrualEngine",
        "AccumulatorPerformance",
        "DailyEntryRequest",
        "compute_marketed_bushels",
    ]:
        from .accumulator import (
            AccumulatorAccrualEngine,
            AccumulatorPerformance,
            DailyEntryRequest,
            compute_marketed_bushels,
        )

        return locals()[name]
    elif name == "CostAggregator" or name == "CostBreakdown":
        from .cost_aggregator import CostAggregator, CostBreakdown

        return locals()[name]
    elif name == "CropInsuranceService":
        from .crop_insurance import CropInsuranceService

        return CropInsuranceService
    elif name == "EngineConfig":
        from .config import EngineConfig

        return EngineConfig
    elif name == "GrainContractService":
        from .grain_contracts import GrainContractService

        return GrainContractService
    elif name in ["ProfitMatrixCell", "ProfitMatrixGenerator", "ProfitMatrixResult"]:
        from .profit_matrix import ProfitMatrixCell, ProfitMatrixGenerator, ProfitMatrixResult

        return locals()[name]
    elif name == "load_scenario":
        from .scenario_loader import load_scenario

        return load_scenario
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
