"""Action filter: the validity gate between candidate generation and scoring.

Every candidate is judged by its owning system's ``can_execute``, which is
the shared validation check plus that system's structural checks. The filter
only partitions candidates; it never mutates state and never scores.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from balance_sim.models.actions import GameAction
from balance_sim.models.state import GameState
from balance_sim.systems.base import GameSystem
from balance_sim.validation.service import ValidationResult

logger = logging.getLogger(__name__)


@dataclass
class Rejection:
    """A candidate the filter refused, with the reasons."""

    action: GameAction
    reasons: tuple[str, ...]

    @property
    def reason(self) -> str:
        return "; ".join(self.reasons) if self.reasons else "rejected"


@dataclass
class FilterResult:
    """Admitted candidates (in input order) and rejections with reasons."""

    admitted: list[GameAction] = field(default_factory=list)
    rejected: list[Rejection] = field(default_factory=list)

    def rejection_reasons(self) -> dict[str, str]:
        return {r.action.id: r.reason for r in self.rejected}


class ActionFilter:
    """Routes each candidate to its owning system for validation.

    Args:
        systems: Registered game systems
    """

    def __init__(self, systems: Sequence[GameSystem]):
        self._systems = {system.name: system for system in systems}

    def owner(self, action: GameAction) -> GameSystem | None:
        return self._systems.get(action.system)

    def check(self, action: GameAction, state: GameState) -> ValidationResult:
        """Validation result for one candidate.

        A system whose check raises rejects the candidate instead of
        propagating the error.
        """
        system = self.owner(action)
        if system is None:
            return ValidationResult.structural(f"no system named '{action.system}'")
        try:
            return system.can_execute(action, state)
        except Exception as e:
            logger.exception(f"System {system.name} failed to validate {action.id}")
            return ValidationResult.structural(f"validation failed in {system.name}: {e}")

    def filter(self, candidates: Sequence[GameAction], state: GameState) -> FilterResult:
        result = FilterResult()
        seen: set[str] = set()
        for action in candidates:
            if action.id in seen:
                result.rejected.append(Rejection(action, ("duplicate candidate id",)))
                continue
            seen.add(action.id)
            validation = self.check(action, state)
            if validation.satisfied:
                result.admitted.append(action)
            else:
                result.rejected.append(Rejection(action, validation.reasons))
        return result
