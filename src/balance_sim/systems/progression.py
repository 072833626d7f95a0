"""Progression system: hero levels, farm stages and screen unlocks.

Has no actions of its own. Each tick it converts experience into levels,
unlocks screens whose level threshold has been reached, recomputes the farm
stage from the plot count and accumulates time spent on the current screen.
"""

from __future__ import annotations

import logging

from balance_sim.models.actions import ActionResult, GameAction, Screen, StateChange
from balance_sim.models.state import GameState
from balance_sim.systems.base import EvaluationContext, GameSystem, SystemTickResult, make_event

logger = logging.getLogger(__name__)


class ProgressionSystem(GameSystem):
    name = "progression"
    screen = Screen.FARM

    def evaluate_actions(self, state: GameState, context: EvaluationContext) -> list[GameAction]:
        return []

    def execute(self, action: GameAction, state: GameState) -> ActionResult:
        return ActionResult.failure("progression has no actions")

    def farm_stage_for(self, plots: int) -> int:
        """Stage 1 plus one per stage threshold reached."""
        return 1 + sum(1 for threshold in self.parameters.farm.stage_plots if plots >= threshold)

    def tick(self, delta: float, state: GameState) -> SystemTickResult:
        progression = state.progression
        changes = [StateChange.add("location.time_on_screen", delta)]
        events = []

        per_level = self.parameters.progression.experience_per_level
        level = progression.hero_level
        experience = progression.experience
        while experience >= per_level * level:
            experience -= per_level * level
            level += 1
        if level != progression.hero_level:
            changes.append(StateChange.set("progression.hero_level", level))
            changes.append(StateChange.set("progression.experience", experience))
            events.append(make_event("level_up", f"Hero reached level {level}", state, level=level))
            logger.info(f"Hero reached level {level} on day {state.time.day}")

            unlocks = self.parameters.progression.screen_unlock_levels
            for screen in Screen:
                needed = unlocks.get(screen.value, 0)
                if needed <= level and screen.value not in progression.unlocked_areas:
                    changes.append(StateChange.append("progression.unlocked_areas", screen.value))
                    events.append(
                        make_event("area_unlocked", f"Unlocked {screen.value}", state, screen=screen.value)
                    )

        stage = self.farm_stage_for(progression.farm_plots)
        if stage != progression.farm_stage:
            changes.append(StateChange.set("progression.farm_stage", stage))
            events.append(make_event("farm_stage", f"Farm reached stage {stage}", state, stage=stage))

        return SystemTickResult(state_changes=changes, events=events)
