"""Data models for the balance simulator."""

from balance_sim.models.actions import (
    ActionResult,
    ActionType,
    GameAction,
    Screen,
    SimEvent,
    StateChange,
    cost_changes,
)
from balance_sim.models.content import (
    ContentItem,
    ContentTable,
    default_content,
    load_content_csv,
    parse_material_list,
)
from balance_sim.models.overrides import (
    OverrideSet,
    ParameterOverride,
    load_overrides,
)
from balance_sim.models.persona import (
    BUILTIN_PERSONAS,
    CASUAL,
    SPEEDRUNNER,
    WEEKEND_WARRIOR,
    PersonaProfile,
    get_persona_profile,
)
from balance_sim.models.processes import (
    AdventureProcess,
    CraftingProcess,
    CropGrowthProcess,
    HelperTrainingProcess,
    MiningProcess,
    ProcessKind,
    ProcessState,
    ProcessStatus,
    SeedCatchingProcess,
)
from balance_sim.models.state import (
    GameState,
    GameTime,
    HelperRole,
    HelperState,
    PlotState,
    PlotStatus,
    check_invariants,
    new_game_state,
)
from balance_sim.models.tuning import SimulationParameters

__all__ = [
    # Actions
    "ActionResult",
    "ActionType",
    "GameAction",
    "Screen",
    "SimEvent",
    "StateChange",
    "cost_changes",
    # Content
    "ContentItem",
    "ContentTable",
    "default_content",
    "load_content_csv",
    "parse_material_list",
    # Overrides and parameters
    "OverrideSet",
    "ParameterOverride",
    "SimulationParameters",
    "load_overrides",
    # Personas
    "BUILTIN_PERSONAS",
    "CASUAL",
    "SPEEDRUNNER",
    "WEEKEND_WARRIOR",
    "PersonaProfile",
    "get_persona_profile",
    # Processes
    "AdventureProcess",
    "CraftingProcess",
    "CropGrowthProcess",
    "HelperTrainingProcess",
    "MiningProcess",
    "ProcessKind",
    "ProcessState",
    "ProcessStatus",
    "SeedCatchingProcess",
    # State
    "GameState",
    "GameTime",
    "HelperRole",
    "HelperState",
    "PlotState",
    "PlotStatus",
    "check_invariants",
    "new_game_state",
]
