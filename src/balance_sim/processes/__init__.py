"""Multi-tick process lifecycle: handlers, registry and manager."""

from balance_sim.processes.base import (
    ProcessContext,
    ProcessHandler,
    ProcessUpdate,
    process_path,
)
from balance_sim.processes.handlers import (
    DEFAULT_HANDLERS,
    AdventureHandler,
    CraftingHandler,
    CropGrowthHandler,
    HelperTrainingHandler,
    MiningHandler,
    SeedCatchingHandler,
)
from balance_sim.processes.manager import (
    ProcessManager,
    ProcessStartResult,
    ProcessTickResult,
)
from balance_sim.processes.registry import ProcessRegistry

__all__ = [
    # Interface
    "ProcessContext",
    "ProcessHandler",
    "ProcessUpdate",
    "process_path",
    # Handlers
    "DEFAULT_HANDLERS",
    "AdventureHandler",
    "CraftingHandler",
    "CropGrowthHandler",
    "HelperTrainingHandler",
    "MiningHandler",
    "SeedCatchingHandler",
    # Manager
    "ProcessManager",
    "ProcessRegistry",
    "ProcessStartResult",
    "ProcessTickResult",
]
