"""Balance parameters for the farming simulation.

This module is the single source of truth for the tunable constants the
simulated game runs on. ``balance_sim.models.tuning.SimulationParameters``
groups these values into an immutable object that parameter overrides are
applied to, so every value here can be swept from an override file without
touching code.

Parameter Categories:
- Time: Tick length and speed bounds
- Energy: Hero energy pool and regeneration
- Water: Well capacity, pumping and evaporation
- Farm: Plots, planting and watering thresholds
- Tower: Seed catching reach and yields
- Processes: Concurrency limits per process kind
- Progression: Experience curve and screen unlocks
- Termination: Victory and stuck detection

Usage:
    from balance_sim.parameters import STARTING_GOLD, PUMP_RATE

Note: These parameters are NOT fixed constants. They exist to be tuned
through batch simulation (see balance_sim.testing.batch_runner).
"""

# =============================================================================
# TIME PARAMETERS
# =============================================================================

TICK_MINUTES = 1.0
"""Simulated minutes represented by one tick at speed 1.0."""

MIN_SPEED = 0.1
MAX_SPEED = 1000.0
"""Bounds the speed multiplier is clamped to.

Speed only rescales how many simulated minutes one tick covers. A speed of
1000 means a single tick spans most of a simulated day, which starves the
decision engine of check-ins; keep batch runs at 1-10.
"""

START_MINUTE = 480
"""Total minutes at game start (day 1, 08:00)."""

MINUTES_PER_DAY = 1440


# =============================================================================
# ENERGY PARAMETERS
# =============================================================================

STARTING_ENERGY = 100.0
MAX_ENERGY = 100.0

ENERGY_REGEN_PER_MINUTE = 0.02
"""Passive energy regeneration per simulated minute.

Current: 0.02 (~29 energy per day)

Analysis:
    Harvesting is the main energy source. Passive regen exists so a run
    that loses all its crops can still recover slowly instead of ending in
    an unrecoverable zero-energy state.

Tuning:
    - If stuck rate is high for casual personas: increase
    - If speedrunners never harvest: decrease
"""

LOW_ENERGY_THRESHOLD = 10.0
"""Energy below which ready crops trigger a harvest emergency."""

ENERGY_RESERVE = 20.0
"""Energy the scorer tries to keep in hand before spending on planting."""


# =============================================================================
# WATER PARAMETERS
# =============================================================================

STARTING_WATER = 100.0
MAX_WATER = 200.0

PUMP_RATE = 20.0
"""Water added by a single pump action."""

PUMP_ENERGY_COST = 2.0

WATER_PER_PLOT = 5.0
"""Water drawn from the well to fully water one plot."""

EVAPORATION_PER_MINUTE = 0.002
"""Plot water level lost per minute (plot water levels run 0..1).

Current: 0.002 (a fully watered plot dries out in a bit over 8 hours)
"""

WATERING_THRESHOLD = 0.3
"""Plot water level below which watering is offered and crops grow slowly."""

DRY_GROWTH_RATE = 0.25
"""Growth speed multiplier for crops on plots below the watering threshold."""

WATER_EMERGENCY_FRACTION = 0.1
"""Fraction of max water below which the pump becomes an emergency."""


# =============================================================================
# FARM PARAMETERS
# =============================================================================

STARTING_PLOTS = 3
STARTING_GOLD = 100.0

STARTING_SEEDS = {"turnip": 12, "beet": 8}
STARTING_MATERIALS = {"wood": 25.0, "stone": 18.0, "iron": 7.0}

PLANT_ENERGY_COST = 1.0
WATER_ENERGY_COST = 1.0

PLANT_MIN_ENERGY = 20.0
"""Planting is only offered while the hero has more than this much energy."""

MAX_CROP_PLOTS = 50
"""Hard cap on concurrent crop growth processes."""

FARM_STAGE_PLOTS = (10, 20, 40, 65, 90)
"""Plot counts at which the farm advances to stage 2, 3, 4, 5 and 6."""


# =============================================================================
# TOWER PARAMETERS
# =============================================================================

CATCH_DURATION_MINUTES = 5.0
CATCH_SEEDS_PER_RUN = 3
"""Seeds granted by one completed seed-catching run."""

SEED_BUFFER_MULTIPLIER = 2
MIN_SEED_BUFFER = 6
"""The seed buffer is max(SEED_BUFFER_MULTIPLIER x plots, MIN_SEED_BUFFER)."""

LOW_SEED_FRACTION = 0.7


# =============================================================================
# PROCESS PARAMETERS
# =============================================================================

CRAFTING_LIMIT = 2
MINING_LIMIT = 1
SEED_CATCHING_LIMIT = 1
ADVENTURE_LIMIT = 1
TRAINING_LIMIT = 1

MINING_DRAIN_PER_MINUTE = 0.5
"""Base energy drain of a mining run per minute, doubled per depth tier."""

MINING_MIN_ENERGY = 10.0

MINING_DEPTH_PER_MINUTE = 10.0
MINING_TIER_DEPTH = 500.0

TRAINING_GOLD_COST = 40.0
TRAINING_DURATION_MINUTES = 120.0


# =============================================================================
# PROGRESSION PARAMETERS
# =============================================================================

EXPERIENCE_PER_LEVEL = 50.0
"""Experience required per level: reaching level n+1 needs n x this value."""

HARVEST_EXPERIENCE = 2.0

SCREEN_UNLOCK_LEVELS = {
    "farm": 0,
    "tower": 1,
    "town": 2,
    "forge": 3,
    "adventure": 3,
    "mine": 4,
}
"""Hero level at which each screen becomes accessible.

Areas listed in ``progression.unlocked_areas`` are accessible regardless
of level.
"""

HELPER_HIRE_GOLD = 60.0


# =============================================================================
# TERMINATION PARAMETERS
# =============================================================================

VICTORY_PLOTS = 30
VICTORY_GOLD = 10000.0
VICTORY_GOLD_PLOTS = 20

STUCK_DAYS = 7
"""Simulated days without a plot, level or gold increase before a run is stuck.

A stuck run is an analytical result (a balance bottleneck), not an error.
"""

STUCK_GOLD_DELTA = 100.0
"""Gold gain inside the stuck window that still counts as progress."""

DEFAULT_MAX_DAYS = 35
