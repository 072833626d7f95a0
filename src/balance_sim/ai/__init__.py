"""Decision pipeline: filter, scorer, persona strategies and the decision engine."""

from balance_sim.ai.decision import (
    DecisionEngine,
    DecisionLogEntry,
    DecisionOutcome,
    detect_emergencies,
)
from balance_sim.ai.filter import ActionFilter, FilterResult, Rejection
from balance_sim.ai.personas import (
    STRATEGIES,
    CasualStrategy,
    PersonaStrategy,
    SpeedrunnerStrategy,
    WeekendWarriorStrategy,
    create_persona_strategy,
)
from balance_sim.ai.scorer import ActionScorer, ScoreBreakdown, ScoredAction

__all__ = [
    # Decision engine
    "DecisionEngine",
    "DecisionLogEntry",
    "DecisionOutcome",
    "detect_emergencies",
    # Filter
    "ActionFilter",
    "FilterResult",
    "Rejection",
    # Personas
    "STRATEGIES",
    "CasualStrategy",
    "PersonaStrategy",
    "SpeedrunnerStrategy",
    "WeekendWarriorStrategy",
    "create_persona_strategy",
    # Scorer
    "ActionScorer",
    "ScoreBreakdown",
    "ScoredAction",
]
