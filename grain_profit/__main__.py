"""Print a field's profit matrix: python -m grain_profit scenario.yaml

Usage:
    python -m grain_profit scenario.yaml
    python -m grain_profit scenario.yaml --config engine.yaml --yield-steps 9
    python -m grain_profit scenario.yaml --metric gross_revenue_per_acre
"""

import argparse
from pathlib import Path
import sys
from typing import List, Optional

import pandas as pd

from .config import EngineConfig
from .exceptions import GrainProfitError
from .profit_matrix import CELL_METRICS
from .scenario_loader import load_scenario


def build_parser() -> argparse.ArgumentParser:
    """Command-line parser."""
    parser = argparse.ArgumentParser(
        prog="grain_profit",
        description="Generate the yield x price profit matrix for one field",
    )
    parser.add_argument("scenario", type=Path, help="Scenario YAML file")
    parser.add_argument("--config", type=Path, default=None, help="Engine configuration YAML")
    parser.add_argument("--yield-steps", type=int, default=None, help="Number of yield scenarios")
    parser.add_argument("--price-steps", type=int, default=None, help="Number of price scenarios")
    parser.add_argument(
        "--metric",
        choices=CELL_METRICS,
        default="net_profit_per_acre",
        help="Cell value to tabulate",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run the command line tool and return the exit status."""
    args = build_parser().parse_args(argv)

    try:
        config = EngineConfig.from_yaml(args.config) if args.config else EngineConfig()
        config.setup_logging()
        scenario = load_scenario(args.scenario)
        result = scenario.build_generator(config).generate(
            scenario.field.id,
            scenario.business_id,
            yield_steps=args.yield_steps,
            price_steps=args.price_steps,
        )
    except (FileNotFoundError, GrainProfitError) as e:
        print(f"[FAILED] {e}", file=sys.stderr)
        return 1

    title = result.field_name or result.field_id
    print(f"{title} ({result.commodity} {result.year}, {result.acres} acres)")
    print(f"Cost per acre:       ${result.total_cost_per_acre}")
    print(f"Break-even price:    ${result.break_even_price}")
    print(f"Marketed bu/acre:    {result.marketed_bu_per_acre} @ ${result.marketed_avg_price}")
    print(f"Unmarketed bu/acre:  {result.unmarketed_bu_per_acre}")
    for note in result.notes:
        print(f"[WARNING] {note}")
    print()
    print(f"{args.metric} (rows: yield bu/acre, columns: price $/bu)")
    with pd.option_context("display.width", 200, "display.float_format", "{:,.2f}".format):
        print(result.pivot(args.metric))
    return 0


if __name__ == "__main__":
    sys.exit(main())
