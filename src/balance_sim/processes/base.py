"""Process handler interface.

Each process kind has one handler implementing the lifecycle hooks
``can_start``, ``initialize``, ``update``, ``complete`` and ``cancel``.
Handlers are pure with respect to game state: they read it and describe
their effects as ``StateChange`` lists. The process manager owns applying
those changes and removing finished instances.
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar

from balance_sim.models.actions import StateChange
from balance_sim.models.content import ContentTable
from balance_sim.models.processes import ProcessKind, ProcessState
from balance_sim.models.state import GameState
from balance_sim.models.tuning import SimulationParameters


@dataclass
class ProcessContext:
    """Read-only collaborators handed to every handler call.

    Attributes:
        content: Static content table
        parameters: Active simulation parameters
        rng: Run-scoped random generator (seeded, so runs are reproducible)
    """

    content: ContentTable
    parameters: SimulationParameters
    rng: random.Random


@dataclass
class ProcessUpdate:
    """Result of advancing one process by one tick.

    Attributes:
        progress: Minutes of progress to add to ``elapsed``
        state_changes: Side effects of this tick (drains, partial yields)
        starved: True if resources ran out and the process must be cancelled
        reason: Why the process starved
    """

    progress: float
    state_changes: list[StateChange] = field(default_factory=list)
    starved: bool = False
    reason: str = ""


def process_path(process: ProcessState) -> str:
    """State path of a process instance."""
    return f"processes.{process.kind}.{process.process_id}"


class ProcessHandler(ABC):
    """Lifecycle hooks for one process kind."""

    kind: ClassVar[ProcessKind]

    @abstractmethod
    def max_concurrent(self, state: GameState, parameters: SimulationParameters) -> int:
        """Concurrency limit for this kind in ``state``."""

    def can_start(self, state: GameState, ctx: ProcessContext, spec: dict[str, Any]) -> tuple[bool, str]:
        """Kind-specific start check beyond the concurrency limit."""
        return True, ""

    @abstractmethod
    def initialize(
        self, process_id: str, state: GameState, ctx: ProcessContext, spec: dict[str, Any]
    ) -> tuple[ProcessState, list[StateChange]]:
        """Build the new instance and any changes made at start."""

    def update(
        self, process: ProcessState, delta: float, state: GameState, ctx: ProcessContext
    ) -> ProcessUpdate:
        """Advance by ``delta`` minutes. Default: linear progress, no side effects."""
        return ProcessUpdate(progress=delta)

    @abstractmethod
    def complete(
        self, process: ProcessState, state: GameState, ctx: ProcessContext
    ) -> tuple[list[StateChange], dict[str, Any]]:
        """Grant outputs and consume inputs.

        Returns:
            Tuple of (state changes, event payload describing the outcome)
        """

    def cancel(
        self, process: ProcessState, state: GameState, ctx: ProcessContext, reason: str
    ) -> list[StateChange]:
        """Undo or settle a process that stops early. Default: nothing to settle."""
        return []
