#!/usr/bin/env python3
"""
Single Simulation Run

Runs one seeded simulation and prints its outcome, optionally dumping the
decision log and the final state as JSON.

Usage:
    # Casual persona, seed 42
    python scripts/run_simulation.py --persona casual --seed 42

    # Apply parameter overrides and keep the decision trace
    python scripts/run_simulation.py --overrides overrides.json --decision-log trace.json

    # Resume from a saved state
    python scripts/run_simulation.py --initial-state final.json
"""

import argparse
import json
import sys
from pathlib import Path

from balance_sim.config import SimulationConfig, configure_logging, get_seed
from balance_sim.engine.simulation import create_simulation
from balance_sim.errors import SimulationError
from balance_sim.models.overrides import OverrideSet, load_overrides
from balance_sim.models.persona import BUILTIN_PERSONAS
from balance_sim.models.state import GameState


def main():
    parser = argparse.ArgumentParser(
        description="Run one balance simulation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--persona",
        type=str,
        default="casual",
        choices=sorted(BUILTIN_PERSONAS),
        help="Persona to simulate (default: casual)"
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed (default: BALANCE_SIM_SEED or unseeded)"
    )
    parser.add_argument(
        "--max-days",
        type=int,
        default=35,
        help="Simulated days before giving up (default: 35)"
    )
    parser.add_argument(
        "--speed",
        type=float,
        default=1.0,
        help="Simulated minutes per tick multiplier (default: 1.0)"
    )
    parser.add_argument(
        "--overrides",
        type=str,
        default=None,
        help="JSON file with parameter overrides"
    )
    parser.add_argument(
        "--initial-state",
        type=str,
        default=None,
        help="Start from a state saved with --final-state"
    )
    parser.add_argument(
        "--decision-log",
        type=str,
        default=None,
        help="Write the decision log to this JSON file"
    )
    parser.add_argument(
        "--final-state",
        type=str,
        default=None,
        help="Write the final state to this JSON file"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log at INFO level"
    )
    args = parser.parse_args()

    configure_logging("INFO" if args.verbose else None)

    try:
        overrides = load_overrides(args.overrides) if args.overrides else OverrideSet()
        initial_state = (
            GameState.from_json(Path(args.initial_state).read_text())
            if args.initial_state else None
        )
        config = SimulationConfig(
            seed=args.seed if args.seed is not None else get_seed(),
            persona=args.persona,
            overrides=overrides,
            max_days=args.max_days,
            speed=args.speed,
            initial_state=initial_state,
        )
        engine = create_simulation(config)
    except (SimulationError, OSError, ValueError) as e:
        print(f"Error: {e}")
        sys.exit(1)

    result = engine.run()

    print("=" * 60)
    print(f"Persona:     {engine.persona.persona_id}")
    print(f"Seed:        {config.seed}")
    print(f"Termination: {result.termination.value if result.termination else 'none'}")
    print(f"Days:        {result.days}")
    print(f"Ticks:       {result.ticks}")
    print("-" * 60)
    for key, value in result.stats.items():
        if key in ("persona", "termination", "days", "ticks", "event_counts"):
            continue
        print(f"  {key}: {value}")
    print("=" * 60)

    if args.decision_log:
        entries = [entry.model_dump(mode="json") for entry in result.decision_log]
        Path(args.decision_log).write_text(json.dumps(entries, indent=2))
        print(f"Decision log saved to: {args.decision_log}")
    if args.final_state:
        Path(args.final_state).write_text(result.final_state.to_json())
        print(f"Final state saved to: {args.final_state}")


if __name__ == "__main__":
    main()
