"""Tower system: moving to the tower and catching seeds from the wind.

Seed catching needs the hero to be at the tower. The tower's reach (the
highest ``tower_reach_N`` upgrade owned, at least 1) decides which crops'
seeds can be caught: a crop is catchable when its ``wind_level`` is within
reach.
"""

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
from balance_sim.systems.base import (
    Emergency,
    EvaluationContext,
    GameSystem,
    make_event,
    move_changes,
)

REACH_UPGRADE_PREFIX = "tower_reach_"


def tower_reach(state: GameState) -> int:
    """Highest tower reach unlocked by upgrades (1 with none)."""
    reach = 1
    for upgrade in state.progression.unlocked_upgrades:
        if upgrade.startswith(REACH_UPGRADE_PREFIX):
            suffix = upgrade[len(REACH_UPGRADE_PREFIX):]
            if suffix.isdigit():
                reach = max(reach, int(suffix))
    return reach


class TowerSystem(GameSystem):
    name = "tower"
    screen = Screen.TOWER

    def seed_pool(self, state: GameState) -> list[str]:
        """Crops whose seeds blow within the tower's reach, in content order."""
        reach = tower_reach(state)
        return [crop.id for crop in self.content.by_type("crop") if crop.wind_level <= reach]

    def _move_action(self, reason: str) -> GameAction:
        return self.action(
            "move:tower",
            ActionType.MOVE,
            target=Screen.TOWER.value,
            metadata={"reason": reason},
        )

    def _catch_action(self, state: GameState) -> GameAction:
        reach = tower_reach(state)
        return self.action(
            "catch_seeds",
            ActionType.CATCH_SEEDS,
            target=f"wind_{reach}",
            requires_presence=True,
            rewards={"seeds": float(self.parameters.tower.seeds_per_run)},
            duration=self.parameters.tower.catch_duration,
            metadata={"wind_level": reach, "seed_pool": self.seed_pool(state)},
        )

    def evaluate_actions(self, state: GameState, context: EvaluationContext) -> list[GameAction]:
        if state.location.current_screen != Screen.TOWER:
            return [self._move_action("seed run")]
        return [self._catch_action(state)]

    def emergency_actions(self, state: GameState, emergencies: list[Emergency]) -> list[GameAction]:
        if not any(e.kind == "seed_shortage" for e in emergencies):
            return []
        if state.location.current_screen != Screen.TOWER:
            return [self._move_action("seed shortage")]
        return [self._catch_action(state)]

    def check_structure(self, action: GameAction, state: GameState) -> list[str]:
        if action.action_type == ActionType.MOVE:
            if state.location.current_screen == Screen.TOWER:
                return ["already at the tower"]
            return []
        if action.action_type == ActionType.CATCH_SEEDS:
            allowed, reason = self.processes.can_start(
                ProcessKind.SEED_CATCHING, state, seed_pool=action.metadata.get("seed_pool")
            )
            return [] if allowed else [reason]
        return [f"tower cannot perform '{action.action_type.value}'"]

    def execute(self, action: GameAction, state: GameState) -> ActionResult:
        if action.action_type == ActionType.MOVE:
            reason = action.metadata.get("reason", "")
            return ActionResult(
                success=True,
                description="Walked to the tower",
                state_changes=move_changes(state, Screen.TOWER, reason),
                events=[make_event("moved", "Walked to the tower", state, screen="tower")],
            )
        if action.action_type == ActionType.CATCH_SEEDS:
            start = self.processes.start(
                ProcessKind.SEED_CATCHING,
                state,
                wind_level=action.metadata["wind_level"],
                seed_pool=action.metadata["seed_pool"],
            )
            if not start.started:
                return ActionResult.failure(start.reason)
            return ActionResult(
                success=True,
                description=f"Catching seeds at wind level {action.metadata['wind_level']}",
                state_changes=cost_changes(action) + start.state_changes,
                events=[
                    make_event(
                        "seed_catching_started", "Started catching seeds", state,
                        process_id=start.process_id, wind_level=action.metadata["wind_level"],
                    )
                ],
            )
        return ActionResult.failure(f"tower cannot perform '{action.action_type.value}'")
