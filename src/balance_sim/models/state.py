"""Game state models for the farming simulation.

``GameState`` is the aggregate root. It has a single owner (the tick driver)
and is only ever changed through ``balance_sim.engine.state_changes``, which
applies a batch of path-keyed changes to a copy and swaps it in once every
invariant holds.

Key invariant: resource pools (energy, gold, water, every seed and material
count) never go negative. Upper bounds (energy and water max) are enforced by
``cap_pools`` rather than by rejection, since over-filling is harmless.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator

from balance_sim.models.actions import Screen
from balance_sim.models.processes import ProcessKind, ProcessState
from balance_sim.models.tuning import SimulationParameters
from balance_sim.parameters import (
    MAX_ENERGY,
    MAX_WATER,
    MINUTES_PER_DAY,
    START_MINUTE,
    STARTING_ENERGY,
    STARTING_GOLD,
    STARTING_PLOTS,
    STARTING_WATER,
)


def clamp(value: float, min_val: float, max_val: float) -> float:
    """Clamp a value to the specified range."""
    return max(min_val, min(max_val, value))


def plot_id(index: int) -> str:
    """Return the id of the 1-based plot ``index``."""
    return f"plot_{index}"


class GameTime(BaseModel):
    """Simulated clock.

    ``total_minutes`` is authoritative; day/hour/minute are derived from it
    whenever the clock advances.
    """

    day: int = Field(default=1, ge=1)
    hour: int = Field(default=8, ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)
    total_minutes: float = Field(default=float(START_MINUTE), ge=0.0)
    speed: float = Field(default=1.0, gt=0.0)

    @classmethod
    def at(cls, total_minutes: float, speed: float = 1.0) -> GameTime:
        """Build a clock positioned at ``total_minutes``."""
        whole = int(total_minutes)
        return cls(
            day=whole // MINUTES_PER_DAY + 1,
            hour=(whole % MINUTES_PER_DAY) // 60,
            minute=whole % 60,
            total_minutes=total_minutes,
            speed=speed,
        )

    def advance(self, minutes: float) -> GameTime:
        """Return a new clock ``minutes`` later, rolling hours and days over."""
        return GameTime.at(self.total_minutes + minutes, self.speed)

    @property
    def is_weekend(self) -> bool:
        return self.day % 7 in (0, 6)

    @property
    def is_night(self) -> bool:
        return self.hour < 6 or self.hour >= 22


class EnergyPool(BaseModel):
    current: float = Field(default=STARTING_ENERGY, ge=0.0)
    max: float = Field(default=MAX_ENERGY, gt=0.0)
    regen_rate: float = Field(default=0.0, ge=0.0)


class WaterPool(BaseModel):
    current: float = Field(default=STARTING_WATER, ge=0.0)
    max: float = Field(default=MAX_WATER, gt=0.0)
    pump_rate: float = Field(default=20.0, ge=0.0)


class Resources(BaseModel):
    """Scalar and keyed resource pools.

    Attributes:
        energy: Hero energy, spent by most actions and refilled by harvests
        gold: Currency, earned on adventures and by selling materials
        water: Well water, spent watering plots and refilled by pumping
        seeds: Seed counts keyed by crop id
        materials: Material counts keyed by material name
    """

    energy: EnergyPool = Field(default_factory=EnergyPool)
    gold: float = Field(default=STARTING_GOLD, ge=0.0)
    water: WaterPool = Field(default_factory=WaterPool)
    seeds: dict[str, int] = Field(default_factory=dict)
    materials: dict[str, float] = Field(default_factory=dict)


class Progression(BaseModel):
    """Unlocks and milestones. Lists keep insertion order for snapshots."""

    hero_level: int = Field(default=1, ge=1)
    experience: float = Field(default=0.0, ge=0.0)
    farm_stage: int = Field(default=1, ge=1)
    farm_plots: int = Field(default=STARTING_PLOTS, ge=0)
    completed_adventures: list[str] = Field(default_factory=list)
    unlocked_upgrades: list[str] = Field(default_factory=list)
    unlocked_areas: list[str] = Field(default_factory=list)
    completed_cleanups: list[str] = Field(default_factory=list)
    built_structures: list[str] = Field(default_factory=list)


class Inventory(BaseModel):
    tools: list[str] = Field(default_factory=list)
    weapons: list[str] = Field(default_factory=list)
    blueprints: list[str] = Field(default_factory=list)


class PlotStatus(str, Enum):
    EMPTY = "empty"
    GROWING = "growing"
    READY = "ready"


class PlotState(BaseModel):
    """A single farm plot.

    Attributes:
        crop_id: Crop occupying the plot, None when empty
        status: empty, growing or ready
        water_level: Soil moisture from 0.0 (dry) to 1.0 (fully watered)
    """

    crop_id: str | None = Field(default=None)
    status: PlotStatus = Field(default=PlotStatus.EMPTY)
    water_level: float = Field(default=0.0)

    @field_validator("water_level", mode="before")
    @classmethod
    def clamp_water_level(cls, v: float) -> float:
        return clamp(v, 0.0, 1.0)


class FarmState(BaseModel):
    plots: dict[str, PlotState] = Field(default_factory=dict)


class HelperRole(str, Enum):
    IDLE = "idle"
    WATERER = "waterer"
    HARVESTER = "harvester"


class HelperState(BaseModel):
    name: str
    role: HelperRole = Field(default=HelperRole.IDLE)
    level: int = Field(default=1, ge=1)


class Location(BaseModel):
    """Where the hero is.

    ``screen_history`` keeps the last ten screens visited, oldest first.
    """

    current_screen: Screen = Field(default=Screen.FARM)
    time_on_screen: float = Field(default=0.0, ge=0.0)
    screen_history: list[Screen] = Field(default_factory=list)
    navigation_reason: str = Field(default="")


class GameState(BaseModel):
    """Complete simulation state.

    Attributes:
        time: Simulated clock
        resources: Resource pools
        progression: Unlocks, levels and milestones
        inventory: Owned tools, weapons and blueprints
        farm: Plot states keyed by plot id
        processes: Active process instances keyed by kind, then process id
        helpers: Hired helpers keyed by helper id
        location: Current screen and navigation history
        next_process_number: Counter used to mint process ids
    """

    time: GameTime = Field(default_factory=GameTime)
    resources: Resources = Field(default_factory=Resources)
    progression: Progression = Field(default_factory=Progression)
    inventory: Inventory = Field(default_factory=Inventory)
    farm: FarmState = Field(default_factory=FarmState)
    processes: dict[str, dict[str, ProcessState]] = Field(default_factory=dict)
    helpers: dict[str, HelperState] = Field(default_factory=dict)
    location: Location = Field(default_factory=Location)
    next_process_number: int = Field(default=1, ge=1)

    # -------------------------------------------------------------------------
    # Derived views
    # -------------------------------------------------------------------------

    @property
    def total_seeds(self) -> int:
        return sum(self.resources.seeds.values())

    @property
    def energy_fraction(self) -> float:
        return self.resources.energy.current / self.resources.energy.max

    @property
    def water_fraction(self) -> float:
        return self.resources.water.current / self.resources.water.max

    def plots_with_status(self, status: PlotStatus) -> list[str]:
        """Plot ids with the given status, in plot order."""
        return [pid for pid, plot in self.farm.plots.items() if plot.status == status]

    def empty_plots(self) -> list[str]:
        return self.plots_with_status(PlotStatus.EMPTY)

    def ready_plots(self) -> list[str]:
        return self.plots_with_status(PlotStatus.READY)

    def plot_utilization(self) -> float:
        """Fraction of plots that are growing or ready."""
        if not self.farm.plots:
            return 0.0
        return 1.0 - len(self.empty_plots()) / len(self.farm.plots)

    def active_processes(self, kind: ProcessKind | str) -> list[ProcessState]:
        """Active instances of ``kind``, in start order."""
        key = kind.value if isinstance(kind, ProcessKind) else kind
        return list(self.processes.get(key, {}).values())

    def process_count(self, kind: ProcessKind | str) -> int:
        key = kind.value if isinstance(kind, ProcessKind) else kind
        return len(self.processes.get(key, {}))

    def cap_pools(self) -> None:
        """Cap energy and water at their maximums."""
        energy = self.resources.energy
        energy.current = min(energy.current, energy.max)
        water = self.resources.water
        water.current = min(water.current, water.max)

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_json(self) -> str:
        """Serialize state to JSON string."""
        return self.model_dump_json(indent=2)

    @classmethod
    def from_json(cls, json_str: str) -> GameState:
        """Deserialize state from JSON string."""
        return cls.model_validate_json(json_str)

    def to_dict(self) -> dict:
        """Convert state to dictionary."""
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: dict) -> GameState:
        """Create state from dictionary."""
        return cls.model_validate(data)


def check_invariants(state: GameState) -> list[str]:
    """Return a description of every resource invariant the state violates.

    An empty list means the state is valid.
    """
    violations = []
    res = state.resources
    if res.energy.current < 0:
        violations.append(f"energy is negative ({res.energy.current:.2f})")
    if res.gold < 0:
        violations.append(f"gold is negative ({res.gold:.2f})")
    if res.water.current < 0:
        violations.append(f"water is negative ({res.water.current:.2f})")
    for seed, count in res.seeds.items():
        if count < 0:
            violations.append(f"seed '{seed}' is negative ({count})")
    for material, amount in res.materials.items():
        if amount < 0:
            violations.append(f"material '{material}' is negative ({amount:.2f})")
    if state.progression.farm_plots != len(state.farm.plots):
        violations.append(
            f"farm_plots ({state.progression.farm_plots}) does not match "
            f"plot table size ({len(state.farm.plots)})"
        )
    return violations


def new_game_state(params: SimulationParameters | None = None) -> GameState:
    """Create the starting state for a new run.

    Args:
        params: SimulationParameters to seed pools from (defaults if None)

    Returns:
        A fresh GameState at day 1, 08:00 with the farm and tower unlocked
    """
    if params is None:
        params = SimulationParameters()

    plots = params.farm.starting_plots
    state = GameState(
        time=GameTime.at(float(params.time.start_minute)),
        resources=Resources(
            energy=EnergyPool(
                current=params.energy.starting,
                max=params.energy.max,
                regen_rate=params.energy.regen_per_minute,
            ),
            gold=params.farm.starting_gold,
            water=WaterPool(
                current=params.water.starting,
                max=params.water.max,
                pump_rate=params.water.pump_rate,
            ),
            seeds=dict(params.farm.starting_seeds),
            materials=dict(params.farm.starting_materials),
        ),
        progression=Progression(
            farm_plots=plots,
            unlocked_areas=[Screen.FARM.value, Screen.TOWER.value],
        ),
        farm=FarmState(plots={plot_id(i): PlotState() for i in range(1, plots + 1)}),
    )
    return state
