"""Farm system: planting, watering, harvesting, pumping and cleanups.

Crops grow as ``crop_growth`` processes; the farm system only starts them
and clears the plot on harvest. Its background tick evaporates plot water
and regenerates hero energy.
"""

from __future__ import annotations

import logging

from balance_sim.models.actions import (
    ActionResult,
    ActionType,
    GameAction,
    Screen,
    StateChange,
    cost_changes,
)
from balance_sim.models.content import ContentTable
from balance_sim.models.processes import ProcessKind
from balance_sim.models.state import GameState, PlotState, PlotStatus, plot_id
from balance_sim.models.tuning import SimulationParameters
from balance_sim.systems.base import (
    Emergency,
    EvaluationContext,
    GameSystem,
    SystemTickResult,
    make_event,
)

logger = logging.getLogger(__name__)


def harvest_changes(
    state: GameState, plot: str, content: ContentTable, parameters: SimulationParameters
) -> list[StateChange]:
    """Changes that harvest the ready crop on ``plot`` and clear the plot."""
    crop = content.get(state.farm.plots[plot].crop_id)
    changes = []
    if crop is not None and crop.energy_gain:
        changes.append(StateChange.add("resources.energy.current", crop.energy_gain))
    if parameters.farm.harvest_experience:
        changes.append(StateChange.add("progression.experience", parameters.farm.harvest_experience))
    changes.append(StateChange.set(f"farm.plots.{plot}.crop_id", None))
    changes.append(StateChange.set(f"farm.plots.{plot}.status", PlotStatus.EMPTY.value))
    return changes


class FarmSystem(GameSystem):
    name = "farm"
    screen = Screen.FARM

    # -------------------------------------------------------------------------
    # Candidates
    # -------------------------------------------------------------------------

    def evaluate_actions(self, state: GameState, context: EvaluationContext) -> list[GameAction]:
        actions = self._plant_actions(state)
        actions.extend(self._water_actions(state))
        actions.extend(self._harvest_actions(state))
        pump = self._pump_action(state)
        if pump is not None:
            actions.append(pump)
        actions.extend(self._cleanup_actions(state))
        return actions

    def _plant_actions(self, state: GameState) -> list[GameAction]:
        empty = state.empty_plots()
        if not empty:
            return []
        target_plot = empty[0]
        farm = self.parameters.farm
        actions = []
        for crop_id, count in state.resources.seeds.items():
            crop = self.content.get(crop_id)
            if count <= 0 or crop is None or crop.type != "crop":
                continue
            actions.append(
                self.action(
                    f"plant:{crop_id}:{target_plot}",
                    ActionType.PLANT,
                    target=crop_id,
                    energy_cost=farm.plant_energy_cost,
                    seed_cost={crop_id: 1},
                    rewards={"energy": crop.energy_gain, "experience": farm.harvest_experience},
                    duration=crop.time,
                    metadata={"plot_id": target_plot, "crop_id": crop_id},
                )
            )
        return actions

    def _water_actions(self, state: GameState) -> list[GameAction]:
        water = self.parameters.water
        actions = []
        for pid, plot in state.farm.plots.items():
            if plot.status == PlotStatus.GROWING and plot.water_level < water.watering_threshold:
                actions.append(
                    self.action(
                        f"water:{pid}",
                        ActionType.WATER,
                        target=pid,
                        energy_cost=self.parameters.farm.water_energy_cost,
                        water_cost=water.per_plot,
                        metadata={"plot_id": pid},
                    )
                )
        return actions

    def _harvest_actions(self, state: GameState) -> list[GameAction]:
        actions = []
        for pid in state.ready_plots():
            crop = self.content.get(state.farm.plots[pid].crop_id)
            actions.append(
                self.action(
                    f"harvest:{pid}",
                    ActionType.HARVEST,
                    target=pid,
                    rewards={
                        "energy": crop.energy_gain if crop else 0.0,
                        "experience": self.parameters.farm.harvest_experience,
                    },
                    metadata={"plot_id": pid},
                )
            )
        return actions

    def _pump_action(self, state: GameState) -> GameAction | None:
        water = state.resources.water
        if water.current >= water.max:
            return None
        return self.action(
            "pump",
            ActionType.PUMP,
            target="well",
            energy_cost=self.parameters.water.pump_energy_cost,
            rewards={"water": min(water.pump_rate, water.max - water.current)},
        )

    def _cleanup_actions(self, state: GameState) -> list[GameAction]:
        done = set(state.progression.completed_cleanups)
        actions = []
        for item in self.content.by_type("cleanup"):
            if item.id in done and not item.repeatable:
                continue
            actions.append(
                self.action(
                    f"cleanup:{item.id}",
                    ActionType.CLEANUP,
                    target=item.id,
                    energy_cost=item.energy_cost,
                    gold_cost=item.gold_cost,
                    rewards={"plots": float(item.plots_added), "experience": item.experience_gain},
                    duration=item.time,
                )
            )
        return actions

    def emergency_actions(self, state: GameState, emergencies: list[Emergency]) -> list[GameAction]:
        kinds = {e.kind for e in emergencies}
        actions = []
        if "water_shortage" in kinds:
            pump = self._pump_action(state)
            if pump is not None:
                actions.append(pump)
        if "energy_crisis" in kinds:
            actions.extend(self._harvest_actions(state))
        return actions

    # -------------------------------------------------------------------------
    # Structure checks
    # -------------------------------------------------------------------------

    def check_structure(self, action: GameAction, state: GameState) -> list[str]:
        plot_key = action.metadata.get("plot_id")
        plot = state.farm.plots.get(plot_key) if plot_key else None

        if action.action_type == ActionType.PLANT:
            issues = []
            if state.resources.seeds.get(action.target, 0) <= 0:
                issues.append(f"no '{action.target}' seeds in inventory")
            if plot is None or plot.status != PlotStatus.EMPTY:
                issues.append(f"plot '{plot_key}' is not empty")
            if state.resources.energy.current < self.parameters.farm.plant_min_energy:
                issues.append("too tired to plant")
            if not issues:
                allowed, reason = self.processes.can_start(
                    ProcessKind.CROP_GROWTH, state, plot_id=plot_key, crop_id=action.target
                )
                if not allowed:
                    issues.append(reason)
            return issues
        if action.action_type == ActionType.WATER:
            if plot is None or plot.status != PlotStatus.GROWING:
                return [f"plot '{plot_key}' has nothing growing"]
            if plot.water_level >= self.parameters.water.watering_threshold:
                return [f"plot '{plot_key}' does not need water"]
            return []
        if action.action_type == ActionType.HARVEST:
            if plot is None or plot.status != PlotStatus.READY:
                return [f"plot '{plot_key}' has nothing to harvest"]
            return []
        if action.action_type == ActionType.PUMP:
            water = state.resources.water
            return ["well is full"] if water.current >= water.max else []
        if action.action_type == ActionType.CLEANUP:
            item = self.content.get(action.target)
            if item is None:
                return [f"unknown cleanup '{action.target}'"]
            if item.id in state.progression.completed_cleanups and not item.repeatable:
                return [f"'{item.id}' is already cleared"]
            return []
        return [f"farm cannot perform '{action.action_type.value}'"]

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def execute(self, action: GameAction, state: GameState) -> ActionResult:
        handlers = {
            ActionType.PLANT: self._plant,
            ActionType.WATER: self._water,
            ActionType.HARVEST: self._harvest,
            ActionType.PUMP: self._pump,
            ActionType.CLEANUP: self._cleanup,
        }
        handler = handlers.get(action.action_type)
        if handler is None:
            return ActionResult.failure(f"farm cannot perform '{action.action_type.value}'")
        return handler(action, state)

    def _plant(self, action: GameAction, state: GameState) -> ActionResult:
        plot = action.metadata["plot_id"]
        start = self.processes.start(
            ProcessKind.CROP_GROWTH, state, plot_id=plot, crop_id=action.target
        )
        if not start.started:
            return ActionResult.failure(start.reason)
        return ActionResult(
            success=True,
            description=f"Planted {action.target} on {plot}",
            state_changes=cost_changes(action) + start.state_changes,
            events=[
                make_event(
                    "crop_planted",
                    f"Planted {action.target} on {plot}",
                    state,
                    crop_id=action.target,
                    plot_id=plot,
                    process_id=start.process_id,
                )
            ],
        )

    def _water(self, action: GameAction, state: GameState) -> ActionResult:
        plot = action.metadata["plot_id"]
        return ActionResult(
            success=True,
            description=f"Watered {plot}",
            state_changes=cost_changes(action) + [StateChange.set(f"farm.plots.{plot}.water_level", 1.0)],
            events=[make_event("plot_watered", f"Watered {plot}", state, plot_id=plot)],
        )

    def _harvest(self, action: GameAction, state: GameState) -> ActionResult:
        plot = action.metadata["plot_id"]
        crop_id = state.farm.plots[plot].crop_id
        return ActionResult(
            success=True,
            description=f"Harvested {crop_id} from {plot}",
            state_changes=cost_changes(action)
            + harvest_changes(state, plot, self.content, self.parameters),
            events=[
                make_event(
                    "crop_harvested", f"Harvested {crop_id} from {plot}", state,
                    crop_id=crop_id, plot_id=plot,
                )
            ],
        )

    def _pump(self, action: GameAction, state: GameState) -> ActionResult:
        amount = state.resources.water.pump_rate
        return ActionResult(
            success=True,
            description=f"Pumped {amount:g} water",
            state_changes=cost_changes(action) + [StateChange.add("resources.water.current", amount)],
            events=[make_event("water_pumped", f"Pumped {amount:g} water", state, amount=amount)],
        )

    def _cleanup(self, action: GameAction, state: GameState) -> ActionResult:
        item = self.content.require(action.target)
        first = state.progression.farm_plots + 1
        changes = cost_changes(action)
        if item.id not in state.progression.completed_cleanups:
            changes.append(StateChange.append("progression.completed_cleanups", item.id))
        for index in range(first, first + item.plots_added):
            changes.append(StateChange.put(f"farm.plots.{plot_id(index)}", PlotState().model_dump()))
        changes.append(StateChange.add("progression.farm_plots", item.plots_added))
        if item.experience_gain:
            changes.append(StateChange.add("progression.experience", item.experience_gain))
        return ActionResult(
            success=True,
            description=f"Cleared {item.name or item.id} (+{item.plots_added} plots)",
            state_changes=changes,
            events=[
                make_event(
                    "cleanup_completed", f"Cleared {item.id}", state,
                    cleanup_id=item.id, plots_added=item.plots_added,
                )
            ],
        )

    # -------------------------------------------------------------------------
    # Background tick
    # -------------------------------------------------------------------------

    def tick(self, delta: float, state: GameState) -> SystemTickResult:
        changes = []
        evaporation = self.parameters.water.evaporation_per_minute * delta
        for pid, plot in state.farm.plots.items():
            if plot.water_level > 0:
                changes.append(
                    StateChange.set(
                        f"farm.plots.{pid}.water_level", max(0.0, plot.water_level - evaporation)
                    )
                )
        energy = state.resources.energy
        if energy.regen_rate and energy.current < energy.max:
            changes.append(StateChange.add("resources.energy.current", energy.regen_rate * delta))
        return SystemTickResult(state_changes=changes)
