"""Persona strategies: when a simulated player acts, and what they favor.

Each archetype is one ``PersonaStrategy`` subclass. A strategy is picked
once, when the simulation is configured (``create_persona_strategy``); the
scorer then calls ``score_adjustment`` without knowing which archetype is
playing.

Cadence model: a player checks in, plays for ``session_minutes``, then waits
``check_in_interval`` minutes before the next session. Shortages shorten the
wait (see ``emergency_interval``).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar

from balance_sim.models.actions import ActionType, GameAction
from balance_sim.models.persona import PersonaProfile, get_persona_profile
from balance_sim.models.state import GameState

WAKING_MINUTES = 960
"""Minutes in a 16-hour waking day, split evenly between check-ins."""

INVESTMENT_ACTIONS = frozenset({ActionType.PLANT, ActionType.BUILD})
RISKY_ACTIONS = frozenset({ActionType.START_ADVENTURE, ActionType.START_MINING})
HELPER_ACTIONS = frozenset({ActionType.HIRE_HELPER, ActionType.ASSIGN_ROLE, ActionType.TRAIN_HELPER})


class PersonaStrategy(ABC):
    """Behavioral policy for one persona archetype.

    Args:
        profile: Persona parameters
    """

    archetype: ClassVar[str]
    plays_at_night: ClassVar[bool] = False

    def __init__(self, profile: PersonaProfile):
        self.profile = profile

    @property
    def persona_id(self) -> str:
        return self.profile.id

    # -------------------------------------------------------------------------
    # Cadence
    # -------------------------------------------------------------------------

    @abstractmethod
    def check_in_interval(self, state: GameState) -> float:
        """Minutes between the starts of two regular sessions."""

    def session_minutes(self, state: GameState) -> float:
        return self.profile.session_minutes

    def emergency_interval(self, state: GameState) -> float | None:
        """Shortened wait when something needs attention, None when calm."""
        if state.total_seeds < state.progression.farm_plots:
            return 2.0
        if state.water_fraction < 0.2:
            return 5.0
        if state.energy_fraction > 0.85:
            return 10.0
        if state.ready_plots():
            return 8.0
        return None

    def effective_interval(self, state: GameState) -> float:
        interval = self.check_in_interval(state)
        emergency = self.emergency_interval(state)
        if emergency is not None:
            interval = min(interval, emergency)
        return interval

    def in_session(self, state: GameState, last_check_in: float | None) -> bool:
        """Whether the session that started at ``last_check_in`` is still running."""
        if last_check_in is None:
            return False
        return state.time.total_minutes - last_check_in < self.session_minutes(state)

    def should_act_now(self, state: GameState, last_check_in: float | None) -> bool:
        """Gate the decision engine.

        Args:
            state: Current state
            last_check_in: Simulated minute the latest session started (None if never)

        Returns:
            True while inside a session or once the check-in interval has elapsed
        """
        if state.time.is_night and not self.plays_at_night:
            return False
        if last_check_in is None or self.in_session(state, last_check_in):
            return True
        return state.time.total_minutes - last_check_in >= self.effective_interval(state)

    # -------------------------------------------------------------------------
    # Scoring
    # -------------------------------------------------------------------------

    def base_adjustment(self, action: GameAction) -> float:
        """Profile-driven multiplier shared by every archetype."""
        multiplier = self.profile.efficiency
        if action.action_type in INVESTMENT_ACTIONS:
            multiplier *= 0.5 + 0.5 * self.profile.optimization
        if action.action_type in RISKY_ACTIONS:
            multiplier *= 0.3 + 0.7 * self.profile.risk_tolerance
        if action.action_type in HELPER_ACTIONS:
            multiplier *= 0.8 + 0.2 * self.profile.learning_rate
        return multiplier

    @abstractmethod
    def score_adjustment(self, action: GameAction, state: GameState) -> float:
        """Multiplier applied last by the scorer."""

    def reason(self, state: GameState) -> str:
        """One line explaining why the persona is acting now."""
        interval = self.effective_interval(state)
        day_kind = "weekend" if state.time.is_weekend else "weekday"
        text = f"{self.profile.name} check-in ({day_kind}, every {interval:g} min)"
        if self.emergency_interval(state) is not None:
            text += ", attending to a shortage"
        return text

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.profile.id!r})"


class SpeedrunnerStrategy(PersonaStrategy):
    """Checks in every few minutes, day and night, and invests aggressively."""

    archetype = "speedrunner"
    plays_at_night = True

    CHECK_IN_MINUTES = 5.0
    SESSION_MINUTES = 30.0

    def check_in_interval(self, state: GameState) -> float:
        return self.CHECK_IN_MINUTES

    def session_minutes(self, state: GameState) -> float:
        return self.SESSION_MINUTES

    def score_adjustment(self, action: GameAction, state: GameState) -> float:
        multiplier = self.base_adjustment(action)
        if action.action_type == ActionType.PURCHASE and action.metadata.get("category") == "blueprint":
            multiplier *= 1.5
        elif action.action_type in (ActionType.BUILD, ActionType.PURCHASE):
            multiplier *= 1.3
        elif action.action_type in (ActionType.ASSIGN_ROLE, ActionType.PUMP):
            multiplier *= 1.2
        return multiplier


class CasualStrategy(PersonaStrategy):
    """A few short sessions a day; tends the crops and skips the shop."""

    archetype = "casual"

    EMERGENCY_SLOWDOWN = 1.5

    def check_in_interval(self, state: GameState) -> float:
        check_ins = (
            self.profile.weekend_check_ins if state.time.is_weekend else self.profile.weekday_check_ins
        )
        return WAKING_MINUTES / check_ins

    def emergency_interval(self, state: GameState) -> float | None:
        interval = super().emergency_interval(state)
        return interval * self.EMERGENCY_SLOWDOWN if interval is not None else None

    def score_adjustment(self, action: GameAction, state: GameState) -> float:
        multiplier = self.base_adjustment(action)
        if action.action_type in (ActionType.HARVEST, ActionType.PLANT):
            multiplier *= 1.1
        elif action.action_type in (ActionType.ASSIGN_ROLE, ActionType.PURCHASE):
            multiplier *= 0.8
        elif action.action_type == ActionType.START_ADVENTURE:
            multiplier *= 1.2
        return multiplier


class WeekendWarriorStrategy(PersonaStrategy):
    """Barely plays on weekdays, then binges on weekends."""

    archetype = "weekend_warrior"

    WEEKDAY_ACTIONS = frozenset({ActionType.HARVEST, ActionType.WATER})
    WEEKEND_FAVORITES = frozenset(
        {ActionType.BUILD, ActionType.START_ADVENTURE, ActionType.START_MINING}
    )

    def check_in_interval(self, state: GameState) -> float:
        if state.time.is_weekend:
            return WAKING_MINUTES / self.profile.weekend_check_ins
        return WAKING_MINUTES / self.profile.weekday_check_ins

    def score_adjustment(self, action: GameAction, state: GameState) -> float:
        multiplier = self.base_adjustment(action)
        if state.time.is_weekend:
            multiplier *= 1.2
            if action.action_type in self.WEEKEND_FAVORITES:
                multiplier *= 1.3
        else:
            multiplier *= 0.7
            if action.action_type not in self.WEEKDAY_ACTIONS:
                multiplier *= 0.5
        return multiplier


STRATEGIES: dict[str, type[PersonaStrategy]] = {
    SpeedrunnerStrategy.archetype: SpeedrunnerStrategy,
    CasualStrategy.archetype: CasualStrategy,
    WeekendWarriorStrategy.archetype: WeekendWarriorStrategy,
}


def create_persona_strategy(profile: PersonaProfile | str) -> PersonaStrategy:
    """Create the strategy for a persona.

    Args:
        profile: A PersonaProfile, or the id of a built-in persona

    Returns:
        Strategy instance for the profile's archetype

    Raises:
        ValueError: If the persona or archetype is unknown
    """
    if isinstance(profile, str):
        profile = get_persona_profile(profile)
    strategy_class = STRATEGIES.get(profile.archetype)
    if strategy_class is None:
        raise ValueError(
            f"Unknown archetype: {profile.archetype}. Valid archetypes: {list(STRATEGIES.keys())}"
        )
    return strategy_class(profile)
