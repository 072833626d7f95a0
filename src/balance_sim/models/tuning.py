"""Immutable parameter sets.

``SimulationParameters`` groups the constants from ``balance_sim.parameters``
into frozen pydantic models. Overrides never mutate an instance; they build a
new one (see ``balance_sim.models.overrides``), so a tick always sees one
consistent parameter set.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from balance_sim import parameters as p


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class TimeParameters(_Frozen):
    tick_minutes: float = Field(default=p.TICK_MINUTES, gt=0.0)
    min_speed: float = Field(default=p.MIN_SPEED, gt=0.0)
    max_speed: float = Field(default=p.MAX_SPEED, gt=0.0)
    start_minute: int = Field(default=p.START_MINUTE, ge=0)


class EnergyParameters(_Frozen):
    starting: float = Field(default=p.STARTING_ENERGY, ge=0.0)
    max: float = Field(default=p.MAX_ENERGY, gt=0.0)
    regen_per_minute: float = Field(default=p.ENERGY_REGEN_PER_MINUTE, ge=0.0)
    low_threshold: float = Field(default=p.LOW_ENERGY_THRESHOLD, ge=0.0)
    reserve: float = Field(default=p.ENERGY_RESERVE, ge=0.0)


class WaterParameters(_Frozen):
    starting: float = Field(default=p.STARTING_WATER, ge=0.0)
    max: float = Field(default=p.MAX_WATER, gt=0.0)
    pump_rate: float = Field(default=p.PUMP_RATE, ge=0.0)
    pump_energy_cost: float = Field(default=p.PUMP_ENERGY_COST, ge=0.0)
    per_plot: float = Field(default=p.WATER_PER_PLOT, ge=0.0)
    evaporation_per_minute: float = Field(default=p.EVAPORATION_PER_MINUTE, ge=0.0)
    watering_threshold: float = Field(default=p.WATERING_THRESHOLD, ge=0.0, le=1.0)
    dry_growth_rate: float = Field(default=p.DRY_GROWTH_RATE, ge=0.0, le=1.0)
    emergency_fraction: float = Field(default=p.WATER_EMERGENCY_FRACTION, ge=0.0, le=1.0)


class FarmParameters(_Frozen):
    starting_plots: int = Field(default=p.STARTING_PLOTS, ge=0)
    starting_gold: float = Field(default=p.STARTING_GOLD, ge=0.0)
    starting_seeds: dict[str, int] = Field(default_factory=lambda: dict(p.STARTING_SEEDS))
    starting_materials: dict[str, float] = Field(
        default_factory=lambda: dict(p.STARTING_MATERIALS)
    )
    plant_energy_cost: float = Field(default=p.PLANT_ENERGY_COST, ge=0.0)
    water_energy_cost: float = Field(default=p.WATER_ENERGY_COST, ge=0.0)
    plant_min_energy: float = Field(default=p.PLANT_MIN_ENERGY, ge=0.0)
    max_crop_plots: int = Field(default=p.MAX_CROP_PLOTS, ge=1)
    stage_plots: tuple[int, ...] = Field(default=p.FARM_STAGE_PLOTS)
    harvest_experience: float = Field(default=p.HARVEST_EXPERIENCE, ge=0.0)


class TowerParameters(_Frozen):
    catch_duration: float = Field(default=p.CATCH_DURATION_MINUTES, gt=0.0)
    seeds_per_run: int = Field(default=p.CATCH_SEEDS_PER_RUN, ge=1)
    seed_buffer_multiplier: int = Field(default=p.SEED_BUFFER_MULTIPLIER, ge=1)
    min_seed_buffer: int = Field(default=p.MIN_SEED_BUFFER, ge=0)
    low_seed_fraction: float = Field(default=p.LOW_SEED_FRACTION, ge=0.0, le=1.0)


class ProcessParameters(_Frozen):
    crafting_limit: int = Field(default=p.CRAFTING_LIMIT, ge=1)
    mining_limit: int = Field(default=p.MINING_LIMIT, ge=1)
    seed_catching_limit: int = Field(default=p.SEED_CATCHING_LIMIT, ge=1)
    adventure_limit: int = Field(default=p.ADVENTURE_LIMIT, ge=1)
    training_limit: int = Field(default=p.TRAINING_LIMIT, ge=1)
    mining_drain_per_minute: float = Field(default=p.MINING_DRAIN_PER_MINUTE, ge=0.0)
    mining_min_energy: float = Field(default=p.MINING_MIN_ENERGY, ge=0.0)
    mining_depth_per_minute: float = Field(default=p.MINING_DEPTH_PER_MINUTE, ge=0.0)
    mining_tier_depth: float = Field(default=p.MINING_TIER_DEPTH, gt=0.0)
    training_gold_cost: float = Field(default=p.TRAINING_GOLD_COST, ge=0.0)
    training_duration: float = Field(default=p.TRAINING_DURATION_MINUTES, gt=0.0)


class ProgressionParameters(_Frozen):
    experience_per_level: float = Field(default=p.EXPERIENCE_PER_LEVEL, gt=0.0)
    screen_unlock_levels: dict[str, int] = Field(
        default_factory=lambda: dict(p.SCREEN_UNLOCK_LEVELS)
    )
    helper_hire_gold: float = Field(default=p.HELPER_HIRE_GOLD, ge=0.0)


class TerminationParameters(_Frozen):
    victory_plots: int = Field(default=p.VICTORY_PLOTS, ge=1)
    victory_gold: float = Field(default=p.VICTORY_GOLD, ge=0.0)
    victory_gold_plots: int = Field(default=p.VICTORY_GOLD_PLOTS, ge=0)
    stuck_days: int = Field(default=p.STUCK_DAYS, ge=1)
    stuck_gold_delta: float = Field(default=p.STUCK_GOLD_DELTA, ge=0.0)


class SimulationParameters(_Frozen):
    """Every tunable value, grouped by concern.

    Override paths address fields by group, e.g. ``"water.pump_rate"`` or
    ``"termination.stuck_days"``.
    """

    time: TimeParameters = Field(default_factory=TimeParameters)
    energy: EnergyParameters = Field(default_factory=EnergyParameters)
    water: WaterParameters = Field(default_factory=WaterParameters)
    farm: FarmParameters = Field(default_factory=FarmParameters)
    tower: TowerParameters = Field(default_factory=TowerParameters)
    processes: ProcessParameters = Field(default_factory=ProcessParameters)
    progression: ProgressionParameters = Field(default_factory=ProgressionParameters)
    termination: TerminationParameters = Field(default_factory=TerminationParameters)
