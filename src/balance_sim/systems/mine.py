"""Mine system: starting and stopping mining runs.

A run needs the pickaxe (the mine's ``tool_required``) and drains energy
every minute while it lasts. When energy is about to run out the decision
engine flags a ``mining_starvation`` emergency and this system offers to
stop the run, which keeps everything found so far.
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
from balance_sim.systems.base import Emergency, EvaluationContext, GameSystem, make_event


class MineSystem(GameSystem):
    name = "mine"
    screen = Screen.MINE

    def _stop_action(self, process_id: str, reason: str) -> GameAction:
        return self.action(
            f"stop_mining:{process_id}",
            ActionType.STOP_MINING,
            target=process_id,
            metadata={"reason": reason},
        )

    def evaluate_actions(self, state: GameState, context: EvaluationContext) -> list[GameAction]:
        actions = []
        params = self.parameters.processes
        for mine in self.content.by_type("mine"):
            tier = max(mine.level, 1)
            drain = params.mining_drain_per_minute * 2 ** (tier - 1)
            actions.append(
                self.action(
                    f"mine:{mine.id}",
                    ActionType.START_MINING,
                    target=mine.id,
                    energy_cost=mine.energy_cost,
                    duration=mine.time,
                    rewards={"materials": mine.time / 10.0 * (1 + tier // 2)},
                    metadata={"drain_per_minute": drain, "tier": tier},
                )
            )
        if state.resources.energy.current < self.parameters.energy.low_threshold:
            for process in state.active_processes(ProcessKind.MINING):
                actions.append(self._stop_action(process.process_id, "low energy"))
        return actions

    def emergency_actions(self, state: GameState, emergencies: list[Emergency]) -> list[GameAction]:
        return [
            self._stop_action(e.data["process_id"], e.message)
            for e in emergencies
            if e.kind == "mining_starvation" and "process_id" in e.data
        ]

    def check_structure(self, action: GameAction, state: GameState) -> list[str]:
        if action.action_type == ActionType.START_MINING:
            allowed, reason = self.processes.can_start(ProcessKind.MINING, state, mine_id=action.target)
            return [] if allowed else [reason]
        if action.action_type == ActionType.STOP_MINING:
            active = {p.process_id for p in state.active_processes(ProcessKind.MINING)}
            return [] if action.target in active else [f"no mining run '{action.target}'"]
        return [f"mine cannot perform '{action.action_type.value}'"]

    def execute(self, action: GameAction, state: GameState) -> ActionResult:
        if action.action_type == ActionType.START_MINING:
            start = self.processes.start(ProcessKind.MINING, state, mine_id=action.target)
            if not start.started:
                return ActionResult.failure(start.reason)
            return ActionResult(
                success=True,
                description=f"Started mining {action.target}",
                state_changes=cost_changes(action) + start.state_changes,
                events=[
                    make_event(
                        "mining_started", f"Started mining {action.target}", state,
                        mine_id=action.target, process_id=start.process_id,
                    )
                ],
            )
        if action.action_type == ActionType.STOP_MINING:
            reason = action.metadata.get("reason", "stopped")
            changes, event = self.processes.cancel(action.target, state, reason)
            if event is None:
                return ActionResult.failure(f"no mining run '{action.target}'")
            return ActionResult(
                success=True,
                description=f"Stopped mining run {action.target}",
                state_changes=changes,
                events=[event],
            )
        return ActionResult.failure(f"mine cannot perform '{action.action_type.value}'")
