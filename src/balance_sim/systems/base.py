"""GameSystem contract and the per-run simulation context.

Every domain module (farm, tower, town, ...) is one ``GameSystem``. The
decision engine and tick driver only ever talk to systems through this
interface: they collect candidates with ``evaluate_actions``, route each
candidate back to its owner by ``action.system``, and run ``tick`` for
background simulation. No code outside a system branches on its action
types.

Systems never mutate state. ``execute`` and ``tick`` describe what should
change as ``StateChange`` lists; the tick driver applies them atomically.
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar

from balance_sim.models.actions import (
    ActionResult,
    GameAction,
    Screen,
    SimEvent,
    StateChange,
)
from balance_sim.models.content import ContentTable
from balance_sim.models.state import GameState
from balance_sim.models.tuning import SimulationParameters
from balance_sim.processes.manager import ProcessManager
from balance_sim.processes.registry import ProcessRegistry
from balance_sim.validation.graph import GraphCache
from balance_sim.validation.service import ValidationResult, ValidationService

SCREEN_HISTORY_LENGTH = 10


@dataclass
class SimulationContext:
    """Services shared by every system in one run.

    Constructed once per simulation and passed explicitly; nothing here is
    global, so several simulations can run side by side in one process.

    Attributes:
        content: Static content table
        parameters: Active parameter set (swapped only between ticks)
        validation: Validation service for this run
        processes: Process manager for this run
        rng: Run-scoped random generator
    """

    content: ContentTable
    parameters: SimulationParameters
    validation: ValidationService
    processes: ProcessManager
    rng: random.Random

    @classmethod
    def create(
        cls,
        content: ContentTable,
        parameters: SimulationParameters | None = None,
        seed: int | None = None,
        graph_cache: GraphCache | None = None,
    ) -> SimulationContext:
        parameters = parameters or SimulationParameters()
        rng = random.Random(seed)
        return cls(
            content=content,
            parameters=parameters,
            validation=ValidationService(content, parameters, graph_cache=graph_cache),
            processes=ProcessManager(ProcessRegistry(), content, parameters, rng),
            rng=rng,
        )

    def set_parameters(self, parameters: SimulationParameters) -> None:
        """Swap in a new parameter set for every service."""
        self.parameters = parameters
        self.validation.set_parameters(parameters)
        self.processes.set_parameters(parameters)


@dataclass
class Emergency:
    """A critical shortage found by the decision engine.

    Attributes:
        kind: "seed_shortage", "water_shortage", "energy_crisis" or "mining_starvation"
        message: Human-readable description for the decision log
        data: Details (e.g. the process id about to starve)
    """

    kind: str
    message: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class EvaluationContext:
    """Per-decision inputs for candidate generation.

    Attributes:
        parameters: Active parameter set
        minute: Simulated total minutes
        available_energy: Energy the agent is willing to spend (current minus reserve)
        emergencies: Shortages detected this decision
        urgency: Resource name to urgency level (0 calm, 1 critical)
    """

    parameters: SimulationParameters
    minute: float
    available_energy: float
    emergencies: list[Emergency] = field(default_factory=list)
    urgency: dict[str, float] = field(default_factory=dict)


@dataclass
class SystemTickResult:
    """Background changes and events from one system tick."""

    state_changes: list[StateChange] = field(default_factory=list)
    events: list[SimEvent] = field(default_factory=list)


def make_event(kind: str, message: str, state: GameState, **data: Any) -> SimEvent:
    return SimEvent(kind=kind, message=message, data=data, minute=state.time.total_minutes)


def move_changes(state: GameState, screen: Screen, reason: str) -> list[StateChange]:
    """Changes that move the hero to ``screen``. Empty if already there."""
    location = state.location
    if location.current_screen == screen:
        return []
    history = [*location.screen_history, location.current_screen][-SCREEN_HISTORY_LENGTH:]
    return [
        StateChange.set("location.current_screen", screen.value),
        StateChange.set("location.time_on_screen", 0.0),
        StateChange.set("location.screen_history", [s.value for s in history]),
        StateChange.set("location.navigation_reason", reason),
    ]


class GameSystem(ABC):
    """One domain module of the game.

    Subclasses set ``name`` (used to route actions back to their owner) and
    ``screen`` (the default screen of their actions).
    """

    name: ClassVar[str]
    screen: ClassVar[Screen]

    def __init__(self, context: SimulationContext):
        self.context = context

    @property
    def content(self) -> ContentTable:
        return self.context.content

    @property
    def parameters(self) -> SimulationParameters:
        return self.context.parameters

    @property
    def processes(self) -> ProcessManager:
        return self.context.processes

    @abstractmethod
    def evaluate_actions(self, state: GameState, context: EvaluationContext) -> list[GameAction]:
        """Candidate actions this system offers in ``state``."""

    @abstractmethod
    def execute(self, action: GameAction, state: GameState) -> ActionResult:
        """Describe the effect of ``action`` without mutating ``state``."""

    def tick(self, delta: float, state: GameState) -> SystemTickResult:
        """Background simulation for ``delta`` minutes. Default: nothing happens."""
        return SystemTickResult()

    def can_execute(self, action: GameAction, state: GameState) -> ValidationResult:
        """Shared validation check plus this system's structural checks.

        The action filter calls exactly this method, so the pre-check and
        the filter always agree.
        """
        result = self.context.validation.check(action, state)
        return result.merge(ValidationResult.structural(*self.check_structure(action, state)))

    def check_structure(self, action: GameAction, state: GameState) -> list[str]:
        """Action-specific checks the validation service cannot know about."""
        return []

    def emergency_actions(self, state: GameState, emergencies: list[Emergency]) -> list[GameAction]:
        """Narrow candidate set for the given emergencies. Default: none."""
        return []

    def action(self, action_id: str, action_type, **fields: Any) -> GameAction:
        """Build a candidate owned by this system."""
        fields.setdefault("screen", self.screen)
        return GameAction(id=action_id, action_type=action_type, system=self.name, **fields)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
