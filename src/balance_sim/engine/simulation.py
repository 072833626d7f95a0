"""Tick driver for the balance simulation.

This module implements SimulationEngine, which owns the game state for one
run and advances it one tick at a time.

Tick Sequence:
1. OVERRIDES - Swap in a pending parameter set
2. CLOCK - Advance time by tick_minutes x speed
3. SYSTEMS - Background tick of every system, each applied atomically
4. PROCESSES - Advance, complete and cancel running processes
5. DECISION - Let the persona pick actions (if it checks in)
6. EXECUTION - Execute the chosen actions through their systems
7. TERMINATION - Victory, stuck, max days or an explicit stop
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from balance_sim.ai.decision import DecisionEngine, DecisionLogEntry, DecisionOutcome
from balance_sim.ai.personas import PersonaStrategy, create_persona_strategy
from balance_sim.config import SimulationConfig, get_content_dir
from balance_sim.engine.state_changes import try_apply
from balance_sim.errors import SimulationError
from balance_sim.models.actions import ActionType, GameAction, SimEvent
from balance_sim.models.content import ContentTable, default_content, load_content_csv
from balance_sim.models.overrides import OverrideSet
from balance_sim.models.state import GameState, new_game_state
from balance_sim.models.tuning import SimulationParameters
from balance_sim.systems import GameSystem, SimulationContext, create_default_systems
from balance_sim.systems.base import make_event, move_changes

logger = logging.getLogger(__name__)


class TerminationReason(str, Enum):
    """Why a run ended."""

    VICTORY = "victory"
    STUCK = "stuck"
    MAX_DAYS = "max_days"
    MANUAL = "manual"
    ERROR = "error"


@dataclass
class TickResult:
    """Result of one tick.

    Attributes:
        tick: Tick number (1-based)
        delta_minutes: Simulated minutes this tick covered
        state: State after the tick
        events: Every event emitted during the tick, in order
        executed_actions: Actions whose changes were applied
        decision: Decision outcome (acted is False when the persona skipped)
        termination: Set when this tick ended the run
    """

    tick: int
    delta_minutes: float
    state: GameState
    events: list[SimEvent] = field(default_factory=list)
    executed_actions: list[GameAction] = field(default_factory=list)
    decision: DecisionOutcome = field(default_factory=DecisionOutcome)
    termination: Optional[TerminationReason] = None


@dataclass
class SimulationResult:
    """Outcome of a complete run.

    Attributes:
        final_state: State when the run ended
        termination: Why the run ended (None if it hit max_ticks first)
        ticks: Ticks executed
        days: Simulated day the run ended on
        decision_log: Every decision, in order
        events: Every event, in order
        stats: Summary numbers for batch analysis
    """

    final_state: GameState
    termination: Optional[TerminationReason]
    ticks: int
    days: int
    decision_log: list[DecisionLogEntry] = field(default_factory=list)
    events: list[SimEvent] = field(default_factory=list)
    stats: dict[str, Any] = field(default_factory=dict)


class SimulationEngine:
    """Runs one simulation.

    The engine is single-threaded. It is the only owner of the state, and
    every mutation goes through ``apply_state_changes``.

    Args:
        config: Run configuration
        context: Per-run services
        systems: Registered game systems, in registration order
        persona: Strategy of the simulated player
        state: Starting state
    """

    def __init__(
        self,
        config: SimulationConfig,
        context: SimulationContext,
        systems: list[GameSystem],
        persona: PersonaStrategy,
        state: GameState,
    ):
        self.config = config
        self.context = context
        self.systems = systems
        self.persona = persona
        self.decision = DecisionEngine(systems, persona, context, action_budget=config.action_budget)

        self._state = state
        self._tick = 0
        self._speed = self._clamp_speed(config.speed)
        self._pending_parameters: SimulationParameters | None = None
        self._stop_requested = False
        self._termination: TerminationReason | None = None
        self._events: list[SimEvent] = []
        self._actions_executed = 0
        self._actions_failed = 0

        # Progress tracking for stuck detection
        self._best_plots = state.progression.farm_plots
        self._best_level = state.progression.hero_level
        self._best_gold = state.resources.gold
        self._last_progress_day = state.time.day

    # -------------------------------------------------------------------------
    # Properties and controls
    # -------------------------------------------------------------------------

    @property
    def state(self) -> GameState:
        return self._state

    @property
    def parameters(self) -> SimulationParameters:
        return self.context.parameters

    @property
    def tick_count(self) -> int:
        return self._tick

    @property
    def speed(self) -> float:
        return self._speed

    @property
    def termination(self) -> TerminationReason | None:
        return self._termination

    @property
    def is_finished(self) -> bool:
        return self._termination is not None

    @property
    def tick_minutes(self) -> float:
        return self.config.tick_minutes or self.parameters.time.tick_minutes

    def _clamp_speed(self, speed: float) -> float:
        time_params = self.parameters.time
        return max(time_params.min_speed, min(time_params.max_speed, speed))

    def set_speed(self, speed: float) -> float:
        """Change the speed multiplier; returns the clamped value in effect."""
        self._speed = self._clamp_speed(speed)
        return self._speed

    def stop(self) -> None:
        """Request termination at the end of the next tick."""
        self._stop_requested = True

    def set_overrides(self, overrides: OverrideSet) -> SimulationParameters:
        """Replace the active overrides, effective from the next tick.

        The new set is applied over the defaults immediately so a bad path
        or value fails here rather than mid-run.

        Raises:
            OverrideError: If an override path or value is invalid
        """
        parameters = overrides.apply()
        self._pending_parameters = parameters
        return parameters

    def snapshot(self) -> GameState:
        """Deep copy of the current state."""
        return self._state.model_copy(deep=True)

    # -------------------------------------------------------------------------
    # Tick
    # -------------------------------------------------------------------------

    def tick(self) -> TickResult:
        """Advance the simulation by one tick.

        Raises:
            RuntimeError: If the run has already terminated
        """
        if self._termination is not None:
            raise RuntimeError(f"Simulation already terminated ({self._termination.value})")

        self._tick += 1
        events: list[SimEvent] = []

        if self._pending_parameters is not None:
            self.context.set_parameters(self._pending_parameters)
            self._pending_parameters = None
            self._speed = self._clamp_speed(self._speed)
            logger.info(f"Tick {self._tick}: new parameter set in effect")

        delta = self.tick_minutes * self._speed
        state = self._state.model_copy(
            update={"time": self._state.time.advance(delta).model_copy(update={"speed": self._speed})}
        )

        state = self._tick_systems(delta, state, events)

        process_tick = self.context.processes.tick(delta, state)
        state = process_tick.state
        events.extend(process_tick.events)

        termination = None
        executed: list[GameAction] = []
        try:
            decision = self.decision.decide(state, self._tick)
            events.extend(decision.events)
            if decision.acted:
                state = self._execute_actions(decision.actions, state, events, executed)
        except Exception as e:
            logger.exception(f"Tick {self._tick}: decision step failed")
            events.append(make_event("simulation_error", str(e), state))
            decision = DecisionOutcome()
            termination = TerminationReason.ERROR

        self._state = state
        if termination is None:
            termination = self._check_termination(state)
        if termination is not None:
            self._termination = termination
            logger.info(
                f"Simulation ended at tick {self._tick} (day {state.time.day}): {termination.value}"
            )

        self._events.extend(events)
        return TickResult(
            tick=self._tick,
            delta_minutes=delta,
            state=state,
            events=events,
            executed_actions=executed,
            decision=decision,
            termination=termination,
        )

    def _tick_systems(self, delta: float, state: GameState, events: list[SimEvent]) -> GameState:
        """Background tick of every system; a failing system is skipped."""
        for system in self.systems:
            try:
                result = system.tick(delta, state)
            except Exception as e:
                logger.exception(f"System {system.name} failed during tick {self._tick}")
                events.append(make_event("system_error", str(e), state, system=system.name))
                continue
            state, error = try_apply(state, result.state_changes)
            if error is not None:
                events.append(make_event("system_error", error, state, system=system.name))
                continue
            events.extend(result.events)
        return state

    def _execute_actions(
        self,
        actions: list[GameAction],
        state: GameState,
        events: list[SimEvent],
        executed: list[GameAction],
    ) -> GameState:
        for action in actions:
            system = self.decision.filter.owner(action)
            if system is None:
                events.append(self._failure(action, f"no system named '{action.system}'", state))
                continue

            # An earlier action this tick may have spent what this one needs
            validation = self.decision.filter.check(action, state)
            if not validation.satisfied:
                events.append(self._failure(action, validation.summary, state))
                continue

            try:
                result = system.execute(action, state)
            except Exception as e:
                logger.exception(f"System {system.name} failed executing {action.id}")
                events.append(self._failure(action, f"execution raised: {e}", state))
                continue
            if not result.success:
                events.append(self._failure(action, result.error or "execution failed", state))
                continue

            changes = list(result.state_changes)
            if action.action_type != ActionType.MOVE:
                changes = move_changes(state, action.screen, action.id) + changes
            state, error = try_apply(state, changes)
            if error is not None:
                events.append(self._failure(action, error, state))
                continue

            events.extend(result.events)
            executed.append(action)
            self._actions_executed += 1
        return state

    def _failure(self, action: GameAction, reason: str, state: GameState) -> SimEvent:
        self._actions_failed += 1
        logger.warning(f"Tick {self._tick}: action {action.id} failed: {reason}")
        return make_event("action_failed", reason, state, action_id=action.id, system=action.system)

    # -------------------------------------------------------------------------
    # Termination
    # -------------------------------------------------------------------------

    def _check_termination(self, state: GameState) -> TerminationReason | None:
        params = self.parameters.termination
        plots = state.progression.farm_plots
        gold = state.resources.gold
        level = state.progression.hero_level
        day = state.time.day

        if plots >= params.victory_plots or (
            gold >= params.victory_gold and plots >= params.victory_gold_plots
        ):
            return TerminationReason.VICTORY

        progressed = False
        if plots > self._best_plots:
            self._best_plots = plots
            progressed = True
        if level > self._best_level:
            self._best_level = level
            progressed = True
        if gold >= self._best_gold + params.stuck_gold_delta:
            self._best_gold = gold
            progressed = True
        if progressed:
            self._last_progress_day = day
        elif day - self._last_progress_day >= params.stuck_days:
            return TerminationReason.STUCK

        if day > self.config.max_days:
            return TerminationReason.MAX_DAYS
        if self._stop_requested:
            return TerminationReason.MANUAL
        return None

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def run(self, max_ticks: int | None = None) -> SimulationResult:
        """Tick until the run terminates or ``max_ticks`` ticks have run."""
        ticks_run = 0
        while self._termination is None and (max_ticks is None or ticks_run < max_ticks):
            self.tick()
            ticks_run += 1
        return self.result()

    def result(self) -> SimulationResult:
        """Summary of the run so far."""
        state = self._state
        return SimulationResult(
            final_state=state,
            termination=self._termination,
            ticks=self._tick,
            days=state.time.day,
            decision_log=list(self.decision.log),
            events=list(self._events),
            stats=self.stats(),
        )

    def stats(self) -> dict[str, Any]:
        state = self._state
        return {
            "persona": self.persona.persona_id,
            "termination": self._termination.value if self._termination else None,
            "ticks": self._tick,
            "days": state.time.day,
            "total_minutes": state.time.total_minutes,
            "decisions": len(self.decision.log),
            "actions_executed": self._actions_executed,
            "actions_failed": self._actions_failed,
            "farm_plots": state.progression.farm_plots,
            "hero_level": state.progression.hero_level,
            "gold": state.resources.gold,
            "seeds": state.total_seeds,
            "event_counts": dict(Counter(event.kind for event in self._events)),
        }


# =============================================================================
# Factory function
# =============================================================================


def load_content(config: SimulationConfig) -> ContentTable:
    """Load the content table a config points at (bundled content by default)."""
    directory = config.content_dir or get_content_dir()
    if directory:
        return load_content_csv(directory)
    return default_content()


def create_simulation(
    config: SimulationConfig | None = None,
    content: ContentTable | None = None,
) -> SimulationEngine:
    """Create a simulation ready to tick.

    Args:
        config: Run configuration (defaults if None)
        content: Content table (loaded from the config if None)

    Returns:
        Configured SimulationEngine

    Raises:
        ContentError: If the content is malformed or a required progression
            item can never be satisfied
        OverrideError: If an override path or value is invalid
        SimulationError: If the initial state breaks an invariant
    """
    config = config or SimulationConfig()
    if content is None:
        content = load_content(config)
    content.validate()

    parameters = config.overrides.apply()
    context = SimulationContext.create(content, parameters, seed=config.seed)
    context.validation.graph.check_required(item.id for item in content.by_type("cleanup"))

    if config.initial_state is not None:
        state = config.initial_state.model_copy(deep=True)
    else:
        state = new_game_state(parameters)
    violations = context.validation.validate_state(
        state, context.processes.registry.limits(state, parameters)
    )
    if violations:
        raise SimulationError("Initial state is invalid: " + "; ".join(violations))

    persona = create_persona_strategy(config.persona)
    systems = create_default_systems(context)
    logger.info(
        f"Created simulation: persona={persona.persona_id}, seed={config.seed}, "
        f"{len(content)} content items, {len(config.overrides)} overrides"
    )
    return SimulationEngine(config, context, systems, persona, state)


__all__ = [
    "SimulationEngine",
    "SimulationResult",
    "TerminationReason",
    "TickResult",
    "create_simulation",
    "load_content",
]
