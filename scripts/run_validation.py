#!/usr/bin/env python3
"""
Validate dispatch policies against the augmented test scenario.

Usage:
    python -m scripts.run_validation --config configs/standard.yaml
    python -m scripts.run_validation --dispatcher SingleHeuristic --fleet-size 50

Options:
    --config PATH         Path to YAML scenario configuration (optional)
    --dispatcher NAME     Dispatcher to validate (repeatable; overrides config)
    --fleet-size INT      Override fleet size
    --agents INT          Override number of agents
    --zones INT           Override number of virtual-network zones
    --corridor-range INT  Override length of the injected transit corridor
    --seed INT            Override random seed
    --output PATH         Write the per-policy summary as CSV
    --verbose             Enable verbose logging

Exit status is 0 if every policy passes, 1 if any policy fails and 2 on
setup errors.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

import yaml

from src.dispatch import available_policies
from src.errors import SetupError
from src.harness import ScenarioConfig, ScenarioHarness, load_scenario_config

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Setup logging for the command line."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def build_config(args: argparse.Namespace) -> ScenarioConfig:
    """Load the scenario configuration and apply CLI overrides."""
    config = load_scenario_config(args.config) if args.config else ScenarioConfig()

    overrides = {
        "dispatchers": args.dispatcher,
        "fleet_size": args.fleet_size,
        "n_agents": args.agents,
        "n_zones": args.zones,
        "corridor_range": args.corridor_range,
        "random_seed": args.seed,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}

    return replace(config, **overrides) if overrides else config


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Validate AMoD dispatch policies on the augmented test scenario",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument("--config", type=Path, default=None, help="Path to YAML scenario config")
    parser.add_argument(
        "--dispatcher",
        action="append",
        default=None,
        help=f"Dispatcher to validate (available: {', '.join(available_policies())})",
    )
    parser.add_argument("--fleet-size", type=int, default=None, help="Override fleet size")
    parser.add_argument("--agents", type=int, default=None, help="Override number of agents")
    parser.add_argument("--zones", type=int, default=None, help="Override zone count")
    parser.add_argument(
        "--corridor-range",
        type=int,
        default=None,
        help="Override length of the injected transit corridor",
    )
    parser.add_argument("--seed", type=int, default=None, help="Override random seed")
    parser.add_argument("--output", type=Path, default=None, help="Write summary CSV here")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = build_config(args)
        report = ScenarioHarness(config).run()
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except yaml.YAMLError as e:
        print(f"Error parsing config: {e}", file=sys.stderr)
        return 2
    except SetupError as e:
        logger.error(f"Scenario setup failed: {e}")
        return 2

    print(report.format_summary())

    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        report.to_dataframe().to_csv(args.output, index=False)
        logger.info(f"Saved summary to {args.output}")

    if not report.passed:
        logger.error(f"Failed policies: {', '.join(report.failed_policies)}")

    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
