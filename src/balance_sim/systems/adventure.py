"""Adventure system: sending the hero out on routes for gold and experience."""

from __future__ import annotations

from balance_sim.models.actions import (
    ActionResult,
    ActionType,
    GameAction,
    Screen,
    cost_changes,
)
from balance_sim.models.processes import ProcessKind
from balance_sim.models.state import GameState
from balance_sim.systems.base import EvaluationContext, GameSystem, make_event


class AdventureSystem(GameSystem):
    name = "adventure"
    screen = Screen.ADVENTURE

    def evaluate_actions(self, state: GameState, context: EvaluationContext) -> list[GameAction]:
        if state.process_count(ProcessKind.ADVENTURE):
            return []
        actions = []
        for route in self.content.by_type("adventure"):
            if route.id in state.progression.completed_adventures and not route.repeatable:
                continue
            actions.append(
                self.action(
                    f"adventure:{route.id}",
                    ActionType.START_ADVENTURE,
                    target=route.id,
                    energy_cost=route.energy_cost,
                    gold_cost=route.gold_cost,
                    duration=route.time,
                    rewards={"gold": route.gold_gain, "experience": route.experience_gain},
                    metadata={"level": route.level},
                )
            )
        return actions

    def check_structure(self, action: GameAction, state: GameState) -> list[str]:
        if action.action_type != ActionType.START_ADVENTURE:
            return [f"adventure cannot perform '{action.action_type.value}'"]
        allowed, reason = self.processes.can_start(ProcessKind.ADVENTURE, state, route_id=action.target)
        return [] if allowed else [reason]

    def execute(self, action: GameAction, state: GameState) -> ActionResult:
        if action.action_type != ActionType.START_ADVENTURE:
            return ActionResult.failure(f"adventure cannot perform '{action.action_type.value}'")
        start = self.processes.start(ProcessKind.ADVENTURE, state, route_id=action.target)
        if not start.started:
            return ActionResult.failure(start.reason)
        return ActionResult(
            success=True,
            description=f"Set out on {action.target}",
            state_changes=cost_changes(action) + start.state_changes,
            events=[
                make_event(
                    "adventure_started", f"Set out on {action.target}", state,
                    route_id=action.target, process_id=start.process_id,
                )
            ],
        )
