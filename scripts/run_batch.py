#!/usr/bin/env python3
"""
Batch Balance Simulation

Runs many seeded simulations per persona in parallel and prints victory
and stuck rates, so the effect of a parameter change can be read off a
single report.

Usage:
    # All personas, 50 runs each
    python scripts/run_batch.py --runs 50 --seed 42

    # Compare a tuning change
    python scripts/run_batch.py --overrides faster_pump.json --output results/
"""

import argparse
import sys

from balance_sim.config import SimulationConfig, configure_logging, get_workers
from balance_sim.errors import SimulationError
from balance_sim.models.overrides import OverrideSet, load_overrides
from balance_sim.models.persona import BUILTIN_PERSONAS
from balance_sim.testing.batch_runner import BatchRunner, print_results_summary


def main():
    parser = argparse.ArgumentParser(
        description="Run batch balance simulations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Available personas:
  speedrunner      Checks in every few minutes, day and night
  casual           A few sessions a day
  weekend_warrior  Barely plays on weekdays

Examples:
  python scripts/run_batch.py --runs 20                       # All personas
  python scripts/run_batch.py --personas casual --runs 100    # One persona
        """
    )
    parser.add_argument(
        "--personas",
        type=str,
        default=None,
        help="Comma-separated list of personas (default: all)"
    )
    parser.add_argument(
        "--runs",
        type=int,
        default=20,
        help="Runs per persona (default: 20)"
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Base random seed for reproducibility (default: 42)"
    )
    parser.add_argument(
        "--max-days",
        type=int,
        default=35,
        help="Simulated days per run (default: 35)"
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Parallel worker processes (default: BALANCE_SIM_WORKERS or CPU count)"
    )
    parser.add_argument(
        "--overrides",
        type=str,
        default=None,
        help="JSON file with parameter overrides"
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Directory to save batch_results.json"
    )
    args = parser.parse_args()

    configure_logging()

    if args.personas:
        persona_ids = [p.strip() for p in args.personas.split(",")]
        invalid = [p for p in persona_ids if p not in BUILTIN_PERSONAS]
        if invalid:
            print(f"Error: Unknown personas: {invalid}")
            print(f"Available: {list(BUILTIN_PERSONAS.keys())}")
            sys.exit(1)
    else:
        persona_ids = list(BUILTIN_PERSONAS.keys())

    try:
        overrides = load_overrides(args.overrides) if args.overrides else OverrideSet()
        # Fail fast on a bad override before spawning workers
        overrides.apply()
    except SimulationError as e:
        print(f"Error: {e}")
        sys.exit(1)

    config = SimulationConfig(overrides=overrides, max_days=args.max_days)
    workers = args.workers or get_workers()

    print(f"Running personas: {', '.join(persona_ids)}")
    print(f"Runs per persona: {args.runs}, workers: {workers}, seed: {args.seed}")
    print()

    runner = BatchRunner(config)
    results = runner.run_all_personas(
        persona_ids=persona_ids,
        num_runs=args.runs,
        seed=args.seed,
        max_workers=workers,
        output_dir=args.output,
    )
    print_results_summary(results)


if __name__ == "__main__":
    main()
