"""Helper system: hiring, assigning and training farm helpers.

Helpers live in structures (each ``helper_slots:+N`` effect on a built
structure adds N slots). Working helpers act during the background tick:
a waterer waters up to ``level`` dry plots per tick and a harvester harvests
up to ``level`` ready plots per tick.
"""

from __future__ import annotations

from balance_sim.models.actions import (
    ActionResult,
    ActionType,
    GameAction,
    Screen,
    StateChange,
    cost_changes,
)
from balance_sim.models.processes import ProcessKind
from balance_sim.models.state import GameState, HelperRole, HelperState, PlotStatus
from balance_sim.systems.base import (
    EvaluationContext,
    GameSystem,
    SystemTickResult,
    make_event,
)
from balance_sim.systems.farm import harvest_changes

WORK_ROLES = (HelperRole.WATERER, HelperRole.HARVESTER)


class HelperSystem(GameSystem):
    name = "helpers"
    screen = Screen.FARM

    def helper_slots(self, state: GameState) -> int:
        slots = 0
        for structure_id in state.progression.built_structures:
            item = self.content.get(structure_id)
            if item is not None:
                slots += int(item.effects().get("helper_slots", 0))
        return slots

    def _next_helper_id(self, state: GameState, kind: str) -> str:
        number = len(state.helpers) + 1
        while f"{kind}_{number}" in state.helpers:
            number += 1
        return f"{kind}_{number}"

    def evaluate_actions(self, state: GameState, context: EvaluationContext) -> list[GameAction]:
        actions = []
        if len(state.helpers) < self.helper_slots(state):
            for item in self.content.by_type("helper"):
                actions.append(
                    self.action(
                        f"hire:{item.id}",
                        ActionType.HIRE_HELPER,
                        target=item.id,
                        gold_cost=item.gold_cost or self.parameters.progression.helper_hire_gold,
                    )
                )

        for helper_id, helper in state.helpers.items():
            if helper.role == HelperRole.IDLE:
                for role in WORK_ROLES:
                    actions.append(
                        self.action(
                            f"assign:{helper_id}:{role.value}",
                            ActionType.ASSIGN_ROLE,
                            target=helper_id,
                            metadata={"role": role.value},
                        )
                    )
            actions.append(
                self.action(
                    f"train:{helper_id}",
                    ActionType.TRAIN_HELPER,
                    target=helper_id,
                    gold_cost=self.parameters.processes.training_gold_cost,
                    duration=self.parameters.processes.training_duration,
                )
            )
        return actions

    def check_structure(self, action: GameAction, state: GameState) -> list[str]:
        if action.action_type == ActionType.HIRE_HELPER:
            if len(state.helpers) >= self.helper_slots(state):
                return ["no free helper slots"]
            return []
        if action.action_type == ActionType.ASSIGN_ROLE:
            helper = state.helpers.get(action.target)
            if helper is None:
                return [f"no helper '{action.target}'"]
            if helper.role.value == action.metadata.get("role"):
                return [f"'{action.target}' already has that role"]
            return []
        if action.action_type == ActionType.TRAIN_HELPER:
            allowed, reason = self.processes.can_start(
                ProcessKind.HELPER_TRAINING, state, helper_id=action.target
            )
            return [] if allowed else [reason]
        return [f"helpers cannot perform '{action.action_type.value}'"]

    def execute(self, action: GameAction, state: GameState) -> ActionResult:
        if action.action_type == ActionType.HIRE_HELPER:
            helper_id = self._next_helper_id(state, action.target)
            helper = HelperState(name=action.target)
            description = f"Hired {helper_id}"
            return ActionResult(
                success=True,
                description=description,
                state_changes=cost_changes(action)
                + [StateChange.put(f"helpers.{helper_id}", helper.model_dump())],
                events=[make_event("helper_hired", description, state, helper_id=helper_id)],
            )
        if action.action_type == ActionType.ASSIGN_ROLE:
            role = action.metadata["role"]
            description = f"Assigned {action.target} as {role}"
            return ActionResult(
                success=True,
                description=description,
                state_changes=[StateChange.set(f"helpers.{action.target}.role", role)],
                events=[
                    make_event("helper_assigned", description, state, helper_id=action.target, role=role)
                ],
            )
        if action.action_type == ActionType.TRAIN_HELPER:
            start = self.processes.start(ProcessKind.HELPER_TRAINING, state, helper_id=action.target)
            if not start.started:
                return ActionResult.failure(start.reason)
            description = f"Started training {action.target}"
            return ActionResult(
                success=True,
                description=description,
                state_changes=cost_changes(action) + start.state_changes,
                events=[
                    make_event(
                        "helper_training_started", description, state,
                        helper_id=action.target, process_id=start.process_id,
                    )
                ],
            )
        return ActionResult.failure(f"helpers cannot perform '{action.action_type.value}'")

    def tick(self, delta: float, state: GameState) -> SystemTickResult:
        if not state.helpers:
            return SystemTickResult()

        threshold = self.parameters.water.watering_threshold
        per_plot = self.parameters.water.per_plot
        water_left = state.resources.water.current
        dry = [
            pid for pid, plot in state.farm.plots.items()
            if plot.status == PlotStatus.GROWING and plot.water_level < threshold
        ]
        ready = state.ready_plots()

        changes: list[StateChange] = []
        events = []
        for helper_id, helper in state.helpers.items():
            if helper.role == HelperRole.WATERER:
                for _ in range(helper.level):
                    if not dry or water_left < per_plot:
                        break
                    pid = dry.pop(0)
                    water_left -= per_plot
                    changes.append(StateChange.add("resources.water.current", -per_plot))
                    changes.append(StateChange.set(f"farm.plots.{pid}.water_level", 1.0))
                    events.append(
                        make_event("plot_watered", f"{helper_id} watered {pid}", state,
                                   plot_id=pid, helper_id=helper_id)
                    )
            elif helper.role == HelperRole.HARVESTER:
                for _ in range(helper.level):
                    if not ready:
                        break
                    pid = ready.pop(0)
                    crop_id = state.farm.plots[pid].crop_id
                    changes.extend(harvest_changes(state, pid, self.content, self.parameters))
                    events.append(
                        make_event("crop_harvested", f"{helper_id} harvested {pid}", state,
                                   plot_id=pid, crop_id=crop_id, helper_id=helper_id)
                    )
        return SystemTickResult(state_changes=changes, events=events)
