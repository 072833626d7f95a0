"""Decision engine: the per-tick choose-an-action pipeline.

On a tick where the persona wants to act:

1. Scan for emergencies. If any, ask every system for its emergency actions.
2. Otherwise (or if no emergency action survives filtering) union every
   system's ``evaluate_actions``.
3. Filter the candidates.
4. Rank the survivors with the persona-adjusted scorer.
5. Take the best candidates, up to the action budget, never two on the same
   target.
6. Append a ``DecisionLogEntry`` to the trace.

For a fixed state, parameters and persona the outcome is deterministic. The
only clock read is ``time.perf_counter`` for a debug log line.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Sequence

from pydantic import BaseModel, Field

from balance_sim.ai.filter import ActionFilter, FilterResult
from balance_sim.ai.personas import PersonaStrategy
from balance_sim.ai.scorer import ActionScorer, ScoredAction
from balance_sim.models.actions import GameAction, SimEvent
from balance_sim.models.processes import ProcessKind
from balance_sim.models.state import GameState
from balance_sim.systems.base import (
    Emergency,
    EvaluationContext,
    GameSystem,
    SimulationContext,
    make_event,
)

logger = logging.getLogger(__name__)

STARVATION_HORIZON_MINUTES = 5.0
"""A mining run that cannot pay this many minutes of drain is about to starve."""


class CandidateRecord(BaseModel):
    id: str
    action_type: str
    score: float


class RejectionRecord(BaseModel):
    id: str
    reason: str


class DecisionLogEntry(BaseModel):
    """One decision, as recorded in the trace.

    Attributes:
        tick: Tick number the decision was made on
        minute: Simulated total minutes
        day: Simulated day
        persona_id: Persona that made the decision
        emergencies: Emergency kinds detected
        candidates_considered: Every admitted candidate with its score, best first
        rejected: Every filtered-out candidate with the reason
        chosen_actions: Ids of the selected actions, in execution order
        score_breakdown: Score components per chosen action id
        persona_reason: Why the persona acted now
    """

    tick: int
    minute: float
    day: int
    persona_id: str
    emergencies: list[str] = Field(default_factory=list)
    candidates_considered: list[CandidateRecord] = Field(default_factory=list)
    rejected: list[RejectionRecord] = Field(default_factory=list)
    chosen_actions: list[str] = Field(default_factory=list)
    score_breakdown: dict[str, dict[str, float]] = Field(default_factory=dict)
    persona_reason: str = ""

    @property
    def chosen_action(self) -> str | None:
        return self.chosen_actions[0] if self.chosen_actions else None


@dataclass
class DecisionOutcome:
    """Result of one ``decide`` call.

    Attributes:
        acted: False when the persona did not check in this tick
        actions: Chosen actions (priority filled), in execution order
        log_entry: Trace entry, None when the persona did not act
        events: ``system_error`` events for systems that failed while
            proposing actions
    """

    acted: bool = False
    actions: list[GameAction] = field(default_factory=list)
    log_entry: DecisionLogEntry | None = None
    events: list[SimEvent] = field(default_factory=list)


def detect_emergencies(state: GameState, context: SimulationContext) -> list[Emergency]:
    """Critical shortages in ``state``, in a fixed order."""
    params = context.parameters
    emergencies = []

    seeds, plots = state.total_seeds, state.progression.farm_plots
    if seeds < plots:
        emergencies.append(
            Emergency("seed_shortage", f"{seeds} seeds for {plots} plots", {"seeds": seeds, "plots": plots})
        )
    if state.water_fraction < params.water.emergency_fraction:
        emergencies.append(
            Emergency(
                "water_shortage",
                f"water at {state.water_fraction:.0%}",
                {"water": state.resources.water.current},
            )
        )
    energy = state.resources.energy.current
    ready = state.ready_plots()
    if energy < params.energy.low_threshold and ready:
        emergencies.append(
            Emergency("energy_crisis", f"energy {energy:.1f} with {len(ready)} crops ready", {"ready": ready})
        )
    for process in state.active_processes(ProcessKind.MINING):
        if energy < process.drain_per_minute * STARVATION_HORIZON_MINUTES:
            emergencies.append(
                Emergency(
                    "mining_starvation",
                    f"mining run {process.process_id} is about to run out of energy",
                    {"process_id": process.process_id},
                )
            )
    return emergencies


class DecisionEngine:
    """Orchestrates emergency detection, generation, filtering, scoring and selection.

    Args:
        systems: Registered game systems, in registration order
        persona: Strategy of the simulated player
        context: Per-run services
        action_budget: Maximum actions chosen per decision
    """

    def __init__(
        self,
        systems: Sequence[GameSystem],
        persona: PersonaStrategy,
        context: SimulationContext,
        action_budget: int = 1,
    ):
        if action_budget < 1:
            raise ValueError(f"action_budget must be at least 1, got {action_budget}")
        self.systems = list(systems)
        self.persona = persona
        self.context = context
        self.action_budget = action_budget
        self.filter = ActionFilter(self.systems)
        self.scorer = ActionScorer(context)
        self.log: list[DecisionLogEntry] = []
        self.last_check_in: float | None = None

    def evaluation_context(self, state: GameState, emergencies: list[Emergency]) -> EvaluationContext:
        params = self.context.parameters
        return EvaluationContext(
            parameters=params,
            minute=state.time.total_minutes,
            available_energy=max(0.0, state.resources.energy.current - params.energy.reserve),
            emergencies=emergencies,
            urgency={
                "water": 1.0 - min(1.0, state.water_fraction / max(params.water.watering_threshold, 1e-9)),
                "energy": 1.0 - state.energy_fraction,
                "seeds": 1.0 if state.total_seeds < state.progression.farm_plots else 0.0,
            },
        )

    def _collect(self, state: GameState, propose, errors: list[SimEvent] | None) -> list[GameAction]:
        """Run ``propose(system)`` for every system; a failing system is skipped."""
        candidates = []
        for system in self.systems:
            try:
                candidates.extend(propose(system))
            except Exception as e:
                logger.exception(f"System {system.name} failed while proposing actions")
                if errors is not None:
                    errors.append(make_event("system_error", str(e), state, system=system.name))
        return candidates

    def generate(
        self,
        state: GameState,
        context: EvaluationContext,
        errors: list[SimEvent] | None = None,
    ) -> list[GameAction]:
        """Union of every system's candidates, in registration order.

        A system that raises contributes nothing; its failure is appended to
        ``errors`` as a ``system_error`` event.
        """
        return self._collect(state, lambda system: system.evaluate_actions(state, context), errors)

    def emergency_candidates(
        self,
        state: GameState,
        emergencies: list[Emergency],
        errors: list[SimEvent] | None = None,
    ) -> list[GameAction]:
        return self._collect(state, lambda system: system.emergency_actions(state, emergencies), errors)

    def select(self, ranked: list[ScoredAction]) -> list[ScoredAction]:
        """Best candidates up to the budget, at most one per target."""
        chosen: list[ScoredAction] = []
        targets: set[str] = set()
        for scored in ranked:
            if len(chosen) >= self.action_budget:
                break
            target = scored.action.target or scored.action.id
            if target in targets:
                continue
            targets.add(target)
            chosen.append(scored)
        return chosen

    def decide(self, state: GameState, tick: int) -> DecisionOutcome:
        """Run the pipeline if the persona wants to act on this tick."""
        if not self.persona.should_act_now(state, self.last_check_in):
            return DecisionOutcome()
        if not self.persona.in_session(state, self.last_check_in):
            self.last_check_in = state.time.total_minutes

        started = time.perf_counter()
        emergencies = detect_emergencies(state, self.context)
        context = self.evaluation_context(state, emergencies)

        rejected = []
        errors: list[SimEvent] = []
        filtered: FilterResult | None = None
        if emergencies:
            candidates = self.emergency_candidates(state, emergencies, errors)
            filtered = self.filter.filter(candidates, state)
            rejected.extend(filtered.rejected)
        if filtered is None or not filtered.admitted:
            filtered = self.filter.filter(self.generate(state, context, errors), state)
            rejected.extend(filtered.rejected)

        ranked = self.scorer.rank(filtered.admitted, state, self.persona)
        chosen = self.select(ranked)

        entry = DecisionLogEntry(
            tick=tick,
            minute=state.time.total_minutes,
            day=state.time.day,
            persona_id=self.persona.persona_id,
            emergencies=[e.kind for e in emergencies],
            candidates_considered=[
                CandidateRecord(
                    id=s.action.id, action_type=s.action.action_type.value, score=s.breakdown.total
                )
                for s in ranked
            ],
            rejected=[RejectionRecord(id=r.action.id, reason=r.reason) for r in rejected],
            chosen_actions=[s.action.id for s in chosen],
            score_breakdown={s.action.id: s.breakdown.to_dict() for s in chosen},
            persona_reason=self.persona.reason(state),
        )
        self.log.append(entry)

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.debug(
            f"Tick {tick}: {len(ranked)} admitted, {len(rejected)} rejected, "
            f"chose {entry.chosen_actions} in {elapsed_ms:.2f}ms"
        )
        return DecisionOutcome(
            acted=True, actions=[s.action for s in chosen], log_entry=entry, events=errors
        )
