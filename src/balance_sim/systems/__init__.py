"""Game systems: one module per domain, all behind the GameSystem contract."""

from balance_sim.systems.adventure import AdventureSystem
from balance_sim.systems.base import (
    Emergency,
    EvaluationContext,
    GameSystem,
    SimulationContext,
    SystemTickResult,
    move_changes,
)
from balance_sim.systems.farm import FarmSystem
from balance_sim.systems.forge import ForgeSystem
from balance_sim.systems.helpers import HelperSystem
from balance_sim.systems.mine import MineSystem
from balance_sim.systems.progression import ProgressionSystem
from balance_sim.systems.tower import TowerSystem
from balance_sim.systems.town import TownSystem

DEFAULT_SYSTEMS: tuple[type[GameSystem], ...] = (
    FarmSystem,
    TowerSystem,
    TownSystem,
    ForgeSystem,
    MineSystem,
    AdventureSystem,
    HelperSystem,
    ProgressionSystem,
)
"""Registration order. Background ticks and candidate generation follow it."""


def create_default_systems(context: SimulationContext) -> list[GameSystem]:
    """Instantiate every built-in system for one run."""
    return [system_class(context) for system_class in DEFAULT_SYSTEMS]


__all__ = [
    # Contract
    "Emergency",
    "EvaluationContext",
    "GameSystem",
    "SimulationContext",
    "SystemTickResult",
    "move_changes",
    # Systems
    "AdventureSystem",
    "FarmSystem",
    "ForgeSystem",
    "HelperSystem",
    "MineSystem",
    "ProgressionSystem",
    "TowerSystem",
    "TownSystem",
    # Registration
    "DEFAULT_SYSTEMS",
    "create_default_systems",
]
