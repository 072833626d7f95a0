"""Simulation engine: atomic state changes and the tick driver.

The tick driver lives in ``balance_sim.engine.simulation`` and is imported
from there directly; process and system modules depend on the state-change
helpers below, so this package keeps its own imports light.
"""

from balance_sim.engine.state_changes import apply_state_changes, try_apply

__all__ = [
    "apply_state_changes",
    "try_apply",
]
