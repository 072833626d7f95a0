"""Batch simulation tooling for balance analysis.

Key classes:
- BatchRunner: Runs many seeded simulations per persona in parallel
- PersonaStats: Outcome statistics for one persona
- BatchResults: Aggregate results across personas

Usage:
    from balance_sim.testing import BatchRunner, print_results_summary

    runner = BatchRunner()
    results = runner.run_all_personas(num_runs=50, seed=42)
    print_results_summary(results)
"""

from .batch_runner import (
    BatchResults,
    BatchRunner,
    PersonaStats,
    print_results_summary,
)

__all__ = [
    "BatchResults",
    "BatchRunner",
    "PersonaStats",
    "print_results_summary",
]
