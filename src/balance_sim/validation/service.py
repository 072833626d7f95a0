"""Centralized action validation.

``ValidationService.check`` answers "could this action be performed right
now?" by evaluating prerequisites, resource sufficiency and location. It is
the one place those rules live: every game system's ``can_execute`` and the
action filter go through it.

Results are memoized per (action cache key, state digest). The digest covers
every field the check reads (see ``validation.prerequisites``); the memo also
expires on a monotonic timer and is cleared when parameters change.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from balance_sim.models.actions import GameAction, Screen
from balance_sim.models.content import ContentTable
from balance_sim.models.state import GameState, check_invariants
from balance_sim.models.tuning import SimulationParameters
from balance_sim.validation.graph import GRAPH_CACHE_SECONDS, GraphCache, PrerequisiteGraph
from balance_sim.validation.prerequisites import (
    PrerequisiteRules,
    TrackedStateReader,
    state_digest,
)

logger = logging.getLogger(__name__)

MAX_CACHE_ENTRIES = 20000


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validation check.

    Attributes:
        satisfied: True when no issue was found
        reasons: Every issue as a human-readable string, in discovery order
        missing_prerequisites: Prerequisite ids that are not satisfied
        resource_issues: Resource types that are insufficient
        location_issues: Screen access or presence problems
        structural_issues: Action-specific problems raised by the owning system
    """

    satisfied: bool = True
    reasons: tuple[str, ...] = ()
    missing_prerequisites: tuple[str, ...] = ()
    resource_issues: tuple[str, ...] = ()
    location_issues: tuple[str, ...] = ()
    structural_issues: tuple[str, ...] = ()

    @classmethod
    def ok(cls) -> ValidationResult:
        return cls()

    @classmethod
    def structural(cls, *issues: str) -> ValidationResult:
        """Result carrying structural issues (satisfied if there are none)."""
        return cls(satisfied=not issues, reasons=issues, structural_issues=issues)

    def merge(self, other: ValidationResult) -> ValidationResult:
        return ValidationResult(
            satisfied=self.satisfied and other.satisfied,
            reasons=self.reasons + other.reasons,
            missing_prerequisites=self.missing_prerequisites + other.missing_prerequisites,
            resource_issues=self.resource_issues + other.resource_issues,
            location_issues=self.location_issues + other.location_issues,
            structural_issues=self.structural_issues + other.structural_issues,
        )

    @property
    def summary(self) -> str:
        return "; ".join(self.reasons) if self.reasons else "ok"


@dataclass
class _Issues:
    reasons: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    resources: list[str] = field(default_factory=list)
    location: list[str] = field(default_factory=list)

    def freeze(self) -> ValidationResult:
        return ValidationResult(
            satisfied=not self.reasons,
            reasons=tuple(self.reasons),
            missing_prerequisites=tuple(self.missing),
            resource_issues=tuple(self.resources),
            location_issues=tuple(self.location),
        )


class ValidationService:
    """Per-run validation context.

    Args:
        content: Static content table
        parameters: Active simulation parameters (screen unlock levels)
        graph_cache: Optional shared graph cache (a private one is made if None)
        cache_seconds: Lifetime of memoized results
    """

    def __init__(
        self,
        content: ContentTable,
        parameters: SimulationParameters | None = None,
        graph_cache: GraphCache | None = None,
        cache_seconds: float = GRAPH_CACHE_SECONDS,
    ):
        self.content = content
        self.parameters = parameters or SimulationParameters()
        self.graph_cache = graph_cache or GraphCache(cache_seconds)
        self.cache_seconds = cache_seconds
        self._cache: dict[tuple[str, str], tuple[float, ValidationResult]] = {}
        self._digest_state: GameState | None = None
        self._digest = ""
        self.hits = 0
        self.misses = 0

    @property
    def graph(self) -> PrerequisiteGraph:
        return self.graph_cache.get(self.content)

    @property
    def rules(self) -> PrerequisiteRules:
        return PrerequisiteRules(self.content, self.graph)

    def set_parameters(self, parameters: SimulationParameters) -> None:
        """Swap parameters (between ticks) and drop memoized results."""
        self.parameters = parameters
        self.reset()

    def reset(self) -> None:
        """Drop memoized results and the cached graph."""
        self._cache.clear()
        self._digest_state = None
        self.graph_cache.reset()

    def digest(self, state: GameState) -> str:
        """State digest, recomputed only when a different state object is seen."""
        if state is not self._digest_state:
            self._digest_state = state
            self._digest = state_digest(state)
        return self._digest

    # -------------------------------------------------------------------------
    # Checks
    # -------------------------------------------------------------------------

    def check(self, action: GameAction, state: GameState) -> ValidationResult:
        """Validate prerequisites, resources and location for ``action``."""
        key = (action.cache_key(), self.digest(state))
        now = time.monotonic()
        cached = self._cache.get(key)
        if cached is not None and now - cached[0] < self.cache_seconds:
            self.hits += 1
            return cached[1]

        self.misses += 1
        result = self.evaluate(action, TrackedStateReader(state))
        if len(self._cache) >= MAX_CACHE_ENTRIES:
            self._cache.clear()
        self._cache[key] = (now, result)
        return result

    def evaluate(self, action: GameAction, reader: TrackedStateReader) -> ValidationResult:
        """Uncached check. Reads state only through ``reader``."""
        issues = _Issues()
        self._check_prerequisites(action, reader, issues)
        self._check_resources(action, reader, issues)
        self._check_location(action, reader, issues)
        return issues.freeze()

    def prerequisite_ids(self, action: GameAction) -> list[str]:
        """The action's own prerequisites plus those of its target content item."""
        ids = list(action.prerequisites)
        item = self.content.get(action.target)
        if item is not None:
            ids.extend(p for p in item.required_ids if p not in ids)
        return ids

    def _check_prerequisites(
        self, action: GameAction, reader: TrackedStateReader, issues: _Issues
    ) -> None:
        rules = self.rules
        for prereq_id in self.prerequisite_ids(action):
            satisfied, reason = rules.is_satisfied(prereq_id, reader)
            if not satisfied:
                issues.missing.append(prereq_id)
                issues.reasons.append(reason)

    def _check_resources(
        self, action: GameAction, reader: TrackedStateReader, issues: _Issues
    ) -> None:
        def short(resource: str, need: float, have: float) -> None:
            issues.resources.append(resource)
            issues.reasons.append(f"insufficient {resource}: need {need:g}, have {have:g}")

        if action.energy_cost > 0:
            energy = reader.get("resources.energy.current")
            if energy < action.energy_cost:
                short("energy", action.energy_cost, energy)
        if action.gold_cost > 0:
            gold = reader.get("resources.gold")
            if gold < action.gold_cost:
                short("gold", action.gold_cost, gold)
        if action.water_cost > 0:
            water = reader.get("resources.water.current")
            if water < action.water_cost:
                short("water", action.water_cost, water)
        if action.seed_cost:
            seeds = reader.get("resources.seeds")
            for seed, count in action.seed_cost.items():
                if seeds.get(seed, 0) < count:
                    short(f"seed:{seed}", count, seeds.get(seed, 0))
        if action.material_cost:
            materials = reader.get("resources.materials")
            for material, amount in action.material_cost.items():
                if materials.get(material, 0) < amount:
                    short(f"material:{material}", amount, materials.get(material, 0))

    def _check_location(
        self, action: GameAction, reader: TrackedStateReader, issues: _Issues
    ) -> None:
        if not self.screen_accessible(action.screen, reader):
            issues.location.append(action.screen.value)
            issues.reasons.append(f"screen '{action.screen.value}' is locked")
            return
        if action.requires_presence:
            current = reader.get("location.current_screen")
            if current != action.screen:
                issues.location.append(action.screen.value)
                issues.reasons.append(
                    f"must be on '{action.screen.value}' (currently on '{Screen(current).value}')"
                )

    def screen_accessible(self, screen: Screen, reader: TrackedStateReader) -> bool:
        if screen.value in reader.get("progression.unlocked_areas"):
            return True
        needed = self.parameters.progression.screen_unlock_levels.get(screen.value, 0)
        return reader.get("progression.hero_level") >= needed

    # -------------------------------------------------------------------------
    # Whole-state validation
    # -------------------------------------------------------------------------

    def validate_state(self, state: GameState, limits: dict[str, int] | None = None) -> list[str]:
        """List every invariant the state breaks.

        Args:
            state: State to inspect
            limits: Concurrency limit per process kind, if known

        Returns:
            Human-readable violations (empty when the state is valid)
        """
        violations = check_invariants(state)
        for kind, instances in state.processes.items():
            limit = (limits or {}).get(kind)
            if limit is not None and len(instances) > limit:
                violations.append(f"{len(instances)} {kind} processes exceed limit {limit}")
        occupied = {
            p.plot_id for p in state.active_processes("crop_growth")
        }
        for plot in occupied - set(state.farm.plots):
            violations.append(f"crop process references missing plot '{plot}'")
        return violations
