"""Concrete process handlers, one per process kind."""

from __future__ import annotations

from typing import ClassVar

from balance_sim.models.actions import StateChange
from balance_sim.models.processes import (
    AdventureProcess,
    CraftingProcess,
    CropGrowthProcess,
    HelperTrainingProcess,
    MiningProcess,
    ProcessKind,
    SeedCatchingProcess,
)
from balance_sim.models.state import GameState, PlotStatus
from balance_sim.models.tuning import SimulationParameters
from balance_sim.processes.base import (
    ProcessHandler,
    ProcessUpdate,
    process_path,
)

MATERIALS_BY_TIER: tuple[tuple[str, ...], ...] = (
    ("stone",),
    ("copper", "stone"),
    ("iron", "copper"),
    ("iron",),
    ("silver", "iron"),
    ("silver",),
    ("crystal", "silver"),
    ("crystal",),
)
"""Materials found at each mining depth tier (tier 1 first)."""

MINING_DROP_INTERVAL = 10.0
"""Minutes of mining between material drops."""


class CropGrowthHandler(ProcessHandler):
    """Grows a crop on one plot.

    Growth slows to ``dry_growth_rate`` while the plot is below the watering
    threshold. Completion marks the plot ready for harvest; the crop itself
    stays on the plot until a harvest action clears it.
    """

    kind: ClassVar[ProcessKind] = ProcessKind.CROP_GROWTH

    def max_concurrent(self, state: GameState, parameters: SimulationParameters) -> int:
        return min(state.progression.farm_plots, parameters.farm.max_crop_plots)

    def can_start(self, state, ctx, spec):
        plot = state.farm.plots.get(spec.get("plot_id", ""))
        if plot is None:
            return False, f"plot '{spec.get('plot_id')}' does not exist"
        if plot.status != PlotStatus.EMPTY:
            return False, f"plot '{spec['plot_id']}' is not empty"
        if ctx.content.get(spec.get("crop_id")) is None:
            return False, f"unknown crop '{spec.get('crop_id')}'"
        return True, ""

    def initialize(self, process_id, state, ctx, spec):
        crop = ctx.content.require(spec["crop_id"])
        process = CropGrowthProcess(
            process_id=process_id,
            started_at=state.time.total_minutes,
            duration=max(crop.time, 1.0),
            plot_id=spec["plot_id"],
            crop_id=crop.id,
        )
        plot_path = f"farm.plots.{spec['plot_id']}"
        changes = [
            StateChange.set(f"{plot_path}.crop_id", crop.id),
            StateChange.set(f"{plot_path}.status", PlotStatus.GROWING.value),
        ]
        return process, changes

    def update(self, process, delta, state, ctx):
        plot = state.farm.plots.get(process.plot_id)
        rate = 1.0
        if plot is not None and plot.water_level < ctx.parameters.water.watering_threshold:
            rate = ctx.parameters.water.dry_growth_rate
        return ProcessUpdate(progress=delta * rate)

    def complete(self, process, state, ctx):
        changes = [StateChange.set(f"farm.plots.{process.plot_id}.status", PlotStatus.READY.value)]
        return changes, {"plot_id": process.plot_id, "crop_id": process.crop_id}

    def cancel(self, process, state, ctx, reason):
        plot_path = f"farm.plots.{process.plot_id}"
        return [
            StateChange.set(f"{plot_path}.crop_id", None),
            StateChange.set(f"{plot_path}.status", PlotStatus.EMPTY.value),
        ]


class CraftingHandler(ProcessHandler):
    """Forges a tool or weapon.

    Materials are consumed on completion. If they are spent elsewhere while
    the recipe is in progress, the process starves and is cancelled.
    """

    kind: ClassVar[ProcessKind] = ProcessKind.CRAFTING

    def max_concurrent(self, state, parameters):
        return parameters.processes.crafting_limit

    def can_start(self, state, ctx, spec):
        recipe = ctx.content.get(spec.get("recipe_id"))
        if recipe is None or recipe.type != "recipe":
            return False, f"unknown recipe '{spec.get('recipe_id')}'"
        in_progress = {p.recipe_id for p in state.active_processes(self.kind)}
        if recipe.id in in_progress:
            return False, f"'{recipe.id}' is already being crafted"
        return True, ""

    def initialize(self, process_id, state, ctx, spec):
        recipe = ctx.content.require(spec["recipe_id"])
        output = ctx.content.get(recipe.recipe_output)
        category = "weapon" if output is not None and output.type == "weapon" else "tool"
        process = CraftingProcess(
            process_id=process_id,
            started_at=state.time.total_minutes,
            duration=max(recipe.time, 1.0),
            recipe_id=recipe.id,
            output_id=recipe.recipe_output,
            output_category=category,
            materials=dict(recipe.materials_cost),
        )
        return process, []

    def update(self, process, delta, state, ctx):
        materials = state.resources.materials
        for material, amount in process.materials.items():
            if materials.get(material, 0) < amount:
                return ProcessUpdate(
                    progress=0.0,
                    starved=True,
                    reason=f"not enough {material} to finish {process.recipe_id}",
                )
        return ProcessUpdate(progress=delta)

    def complete(self, process, state, ctx):
        changes = [
            StateChange.add(f"resources.materials.{material}", -amount)
            for material, amount in process.materials.items()
        ]
        owned_path = "inventory.tools" if process.output_category == "tool" else "inventory.weapons"
        owned = state.inventory.tools if process.output_category == "tool" else state.inventory.weapons
        if process.output_id not in owned:
            changes.append(StateChange.append(owned_path, process.output_id))
        return changes, {"output": process.output_id, "category": process.output_category}


class MiningHandler(ProcessHandler):
    """A timed mining run.

    Every minute drains ``drain_per_minute`` energy and digs deeper; every
    ``MINING_DROP_INTERVAL`` minutes a material from the current depth tier
    is found. Running out of energy cancels the run, but whatever was found
    so far is kept.
    """

    kind: ClassVar[ProcessKind] = ProcessKind.MINING

    def max_concurrent(self, state, parameters):
        return parameters.processes.mining_limit

    def can_start(self, state, ctx, spec):
        mine = ctx.content.get(spec.get("mine_id"))
        if mine is None or mine.type != "mine":
            return False, f"unknown mine '{spec.get('mine_id')}'"
        if state.resources.energy.current < ctx.parameters.processes.mining_min_energy:
            return False, "too tired to start mining"
        return True, ""

    def initialize(self, process_id, state, ctx, spec):
        mine = ctx.content.require(spec["mine_id"])
        params = ctx.parameters.processes
        tier = max(mine.level, 1)
        process = MiningProcess(
            process_id=process_id,
            started_at=state.time.total_minutes,
            duration=max(mine.time, 1.0),
            mine_id=mine.id,
            depth=(tier - 1) * params.mining_tier_depth,
            tier=tier,
            drain_per_minute=params.mining_drain_per_minute * 2 ** (tier - 1),
        )
        return process, []

    def update(self, process, delta, state, ctx):
        drain = process.drain_per_minute * delta
        if state.resources.energy.current < drain:
            return ProcessUpdate(progress=0.0, starved=True, reason="out of energy")

        params = ctx.parameters.processes
        path = process_path(process)
        depth = process.depth + params.mining_depth_per_minute * delta
        tier = int(depth // params.mining_tier_depth) + 1
        changes = [
            StateChange.add("resources.energy.current", -drain),
            StateChange.set(f"{path}.depth", depth),
            StateChange.set(f"{path}.tier", tier),
        ]

        drops_before = int(process.elapsed // MINING_DROP_INTERVAL)
        drops_after = int((process.elapsed + delta) // MINING_DROP_INTERVAL)
        materials = MATERIALS_BY_TIER[min(tier, len(MATERIALS_BY_TIER)) - 1]
        for _ in range(drops_after - drops_before):
            material = ctx.rng.choice(materials)
            quantity = ctx.rng.randint(1, 3) + tier // 2
            changes.append(StateChange.add(f"{path}.found.{material}", float(quantity)))
        return ProcessUpdate(progress=delta, state_changes=changes)

    def _grant_found(self, process: MiningProcess) -> list[StateChange]:
        return [
            StateChange.add(f"resources.materials.{material}", amount)
            for material, amount in sorted(process.found.items())
        ]

    def complete(self, process, state, ctx):
        return self._grant_found(process), {"found": dict(process.found), "depth": process.depth}

    def cancel(self, process, state, ctx, reason):
        return self._grant_found(process)


class SeedCatchingHandler(ProcessHandler):
    """Catches seeds from the wind at the tower."""

    kind: ClassVar[ProcessKind] = ProcessKind.SEED_CATCHING

    def max_concurrent(self, state, parameters):
        return parameters.processes.seed_catching_limit

    def can_start(self, state, ctx, spec):
        if not spec.get("seed_pool"):
            return False, "no seeds blow at this wind level"
        return True, ""

    def initialize(self, process_id, state, ctx, spec):
        process = SeedCatchingProcess(
            process_id=process_id,
            started_at=state.time.total_minutes,
            duration=ctx.parameters.tower.catch_duration,
            wind_level=spec.get("wind_level", 1),
            seed_pool=list(spec["seed_pool"]),
        )
        return process, []

    def complete(self, process, state, ctx):
        caught: dict[str, int] = {}
        for _ in range(ctx.parameters.tower.seeds_per_run):
            seed = ctx.rng.choice(process.seed_pool)
            caught[seed] = caught.get(seed, 0) + 1
        changes = [
            StateChange.add(f"resources.seeds.{seed}", count) for seed, count in sorted(caught.items())
        ]
        return changes, {"caught": caught, "wind_level": process.wind_level}


class AdventureHandler(ProcessHandler):
    """Runs an adventure route; success is rolled once on completion.

    A failed run still returns half the gold and experience.
    """

    kind: ClassVar[ProcessKind] = ProcessKind.ADVENTURE

    def max_concurrent(self, state, parameters):
        return parameters.processes.adventure_limit

    def can_start(self, state, ctx, spec):
        route = ctx.content.get(spec.get("route_id"))
        if route is None or route.type != "adventure":
            return False, f"unknown route '{spec.get('route_id')}'"
        return True, ""

    def initialize(self, process_id, state, ctx, spec):
        route = ctx.content.require(spec["route_id"])
        chance = 0.6 + 0.1 * (state.progression.hero_level - route.level)
        if state.inventory.weapons:
            chance += 0.2
        process = AdventureProcess(
            process_id=process_id,
            started_at=state.time.total_minutes,
            duration=max(route.time, 1.0),
            route_id=route.id,
            gold_reward=route.gold_gain,
            experience_reward=route.experience_gain,
            success_chance=max(0.1, min(0.95, chance)),
        )
        return process, []

    def complete(self, process, state, ctx):
        success = ctx.rng.random() < process.success_chance
        share = 1.0 if success else 0.5
        changes = [
            StateChange.add("resources.gold", process.gold_reward * share),
            StateChange.add("progression.experience", process.experience_reward * share),
        ]
        if success and process.route_id not in state.progression.completed_adventures:
            changes.append(StateChange.append("progression.completed_adventures", process.route_id))
        return changes, {"route_id": process.route_id, "success": success}


class HelperTrainingHandler(ProcessHandler):
    kind: ClassVar[ProcessKind] = ProcessKind.HELPER_TRAINING

    def max_concurrent(self, state, parameters):
        return parameters.processes.training_limit

    def can_start(self, state, ctx, spec):
        helper_id = spec.get("helper_id")
        if helper_id not in state.helpers:
            return False, f"no helper '{helper_id}'"
        if any(p.helper_id == helper_id for p in state.active_processes(self.kind)):
            return False, f"'{helper_id}' is already training"
        return True, ""

    def initialize(self, process_id, state, ctx, spec):
        process = HelperTrainingProcess(
            process_id=process_id,
            started_at=state.time.total_minutes,
            duration=ctx.parameters.processes.training_duration,
            helper_id=spec["helper_id"],
        )
        return process, []

    def complete(self, process, state, ctx):
        if process.helper_id not in state.helpers:
            return [], {"helper_id": process.helper_id, "trained": False}
        changes = [StateChange.add(f"helpers.{process.helper_id}.level", process.levels)]
        return changes, {"helper_id": process.helper_id, "trained": True}


DEFAULT_HANDLERS: tuple[type[ProcessHandler], ...] = (
    CropGrowthHandler,
    CraftingHandler,
    MiningHandler,
    SeedCatchingHandler,
    AdventureHandler,
    HelperTrainingHandler,
)

