"""Action scoring.

Each admitted candidate gets a priority::

    total = (base * urgency + future_value) * persona_multiplier

floored at 1. ``base`` is a per-type heuristic, ``urgency`` spikes when a
tracked resource drops under its threshold, ``future_value`` estimates what
taking the action leads to, and the persona multiplier is applied last.

Ranking sorts by descending total, then ascending total cost, then id, so a
fixed state and persona always produce the same order.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Sequence

from balance_sim.models.actions import ActionType, GameAction, Screen
from balance_sim.models.state import GameState
from balance_sim.systems.base import SimulationContext

if TYPE_CHECKING:
    from balance_sim.ai.personas import PersonaStrategy

DEFAULT_BASE_SCORE = 10.0
MIN_SCORE = 1.0

# Seed buffer scores
SEED_CRITICAL_AT_TOWER = 9999.0
SEED_CRITICAL_AWAY = 999.0
SEED_LOW_AT_TOWER = 750.0
SEED_LOW_AWAY = 400.0
SEED_THIN = 200.0
SEED_COMFORTABLE = 25.0
SEEDS_PER_PLOT_COMFORT = 3
MOVE_CRITICAL = 998.0
MOVE_LOW = 700.0

# Future value weights
GOLD_VALUE = 0.1
ENERGY_VALUE = 0.5
EXPERIENCE_VALUE = 0.2
PLOT_VALUE = 15.0
UNLOCK_VALUE = 10.0


@dataclass(frozen=True)
class ScoreBreakdown:
    """How a candidate's priority was computed."""

    base: float
    urgency: float
    future_value: float
    persona_multiplier: float
    total: float

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class ScoredAction:
    action: GameAction
    breakdown: ScoreBreakdown


class ActionScorer:
    """Scores and ranks filtered candidates.

    Args:
        context: Per-run services (parameters and the prerequisite graph)
    """

    def __init__(self, context: SimulationContext):
        self.context = context

    # -------------------------------------------------------------------------
    # Seed buffer
    # -------------------------------------------------------------------------

    def seed_buffer(self, state: GameState) -> int:
        tower = self.context.parameters.tower
        return max(tower.seed_buffer_multiplier * state.progression.farm_plots, tower.min_seed_buffer)

    def seed_status(self, state: GameState) -> str:
        """Classify the seed stock as "critical", "low" or "ok"."""
        seeds = state.total_seeds
        if seeds < state.progression.farm_plots:
            return "critical"
        low_line = int(self.context.parameters.tower.low_seed_fraction * self.seed_buffer(state))
        if seeds < low_line:
            return "low"
        return "ok"

    # -------------------------------------------------------------------------
    # Components
    # -------------------------------------------------------------------------

    def base_score(self, action: GameAction, state: GameState) -> float:
        res = state.resources
        kind = action.action_type

        if kind == ActionType.HARVEST:
            return 100.0 + (20.0 if res.energy.current < 50 else 0.0)
        if kind == ActionType.WATER:
            return 60.0
        if kind == ActionType.PLANT:
            reserve = self.context.parameters.energy.reserve
            return 40.0 + (15.0 if res.energy.current > reserve + 20 else 0.0)
        if kind == ActionType.CLEANUP:
            score = 70.0 + action.rewards.get("plots", 0.0) * 20.0
            if state.progression.farm_plots < 10:
                score *= 1.5
            return score
        if kind == ActionType.PUMP:
            if state.water_fraction < 0.3:
                return 90.0
            if state.water_fraction < 0.5:
                return 70.0
            return 50.0
        if kind == ActionType.START_ADVENTURE:
            score = 30.0
            if res.energy.current > 60:
                score += 30.0
            score += 0.5 * action.rewards.get("gold", 0.0)
            if res.gold < 100:
                score += 20.0
            return score
        if kind == ActionType.BUILD:
            return 900.0
        if kind == ActionType.PURCHASE:
            score = 50.0
            if res.gold > 2 * action.gold_cost:
                score += 30.0
            if action.metadata.get("category") == "blueprint":
                score += 40.0
            return score
        if kind == ActionType.CRAFT:
            category = action.metadata.get("category")
            return 40.0 + (20.0 if category in ("tool", "weapon") else 0.0)
        if kind == ActionType.START_MINING:
            low_stock = any(res.materials.get(m, 0.0) < 10 for m in ("stone", "copper", "iron"))
            return 35.0 + (25.0 if low_stock else 0.0)
        if kind == ActionType.CATCH_SEEDS:
            return self._seed_score(state)
        if kind == ActionType.MOVE and action.screen == Screen.TOWER:
            status = self.seed_status(state)
            if status == "critical":
                return MOVE_CRITICAL
            if status == "low":
                return MOVE_LOW
        return DEFAULT_BASE_SCORE

    def _seed_score(self, state: GameState) -> float:
        at_tower = state.location.current_screen == Screen.TOWER
        status = self.seed_status(state)
        if status == "critical":
            return SEED_CRITICAL_AT_TOWER if at_tower else SEED_CRITICAL_AWAY
        if status == "low":
            return SEED_LOW_AT_TOWER if at_tower else SEED_LOW_AWAY
        plots = max(state.progression.farm_plots, 1)
        if state.total_seeds / plots < SEEDS_PER_PLOT_COMFORT:
            return SEED_THIN
        return SEED_COMFORTABLE

    def urgency(self, action: GameAction, state: GameState) -> float:
        kind = action.action_type
        if kind == ActionType.HARVEST and state.energy_fraction < 0.2:
            return 1.5
        if kind in (ActionType.PUMP, ActionType.WATER) and state.water_fraction < 0.3:
            return 1.3
        if kind == ActionType.START_ADVENTURE and state.resources.gold < 50:
            return 1.2
        if kind == ActionType.PLANT and state.plot_utilization() < 0.5:
            return 1.4
        return 1.0

    def future_value(self, action: GameAction, state: GameState) -> float:
        rewards = action.rewards
        value = (
            rewards.get("gold", 0.0) * GOLD_VALUE
            + rewards.get("energy", 0.0) * ENERGY_VALUE
            + rewards.get("experience", 0.0) * EXPERIENCE_VALUE
            + rewards.get("plots", 0.0) * PLOT_VALUE
        )
        if action.action_type in (ActionType.BUILD, ActionType.CLEANUP):
            value += 20.0
        if action.action_type == ActionType.PURCHASE and action.metadata.get("category") == "blueprint":
            value += 30.0
        if action.target in self.context.content:
            value += UNLOCK_VALUE * len(self.context.validation.graph.dependents(action.target))
        return value

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def score(self, action: GameAction, state: GameState, persona: PersonaStrategy | None = None) -> ScoreBreakdown:
        base = self.base_score(action, state)
        urgency = self.urgency(action, state)
        future = self.future_value(action, state)
        multiplier = persona.score_adjustment(action, state) if persona is not None else 1.0
        total = max(MIN_SCORE, (base * urgency + future) * multiplier)
        return ScoreBreakdown(
            base=base,
            urgency=urgency,
            future_value=future,
            persona_multiplier=multiplier,
            total=total,
        )

    def rank(
        self,
        candidates: Sequence[GameAction],
        state: GameState,
        persona: PersonaStrategy | None = None,
    ) -> list[ScoredAction]:
        """Score every candidate and sort best first.

        Returned actions are copies with ``priority`` set; the inputs are
        left untouched.
        """
        scored = []
        for action in candidates:
            breakdown = self.score(action, state, persona)
            scored.append(
                ScoredAction(action.model_copy(update={"priority": breakdown.total}), breakdown)
            )
        scored.sort(key=lambda s: (-s.breakdown.total, s.action.total_cost, s.action.id))
        return scored
