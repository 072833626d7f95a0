"""Registry of process handlers and concurrency limits.

Active instances live in ``GameState.processes`` (so snapshots carry them);
the registry answers which handler owns a kind, what the limit is, and which
instances of a kind are active in a given state.
"""

from __future__ import annotations

from typing import Iterable

from balance_sim.models.processes import ProcessKind, ProcessState
from balance_sim.models.state import GameState
from balance_sim.models.tuning import SimulationParameters
from balance_sim.processes.base import ProcessHandler
from balance_sim.processes.handlers import DEFAULT_HANDLERS


class ProcessRegistry:
    """Maps each process kind to its handler."""

    def __init__(self, handlers: Iterable[ProcessHandler] | None = None):
        self._handlers: dict[str, ProcessHandler] = {}
        for handler in handlers if handlers is not None else (cls() for cls in DEFAULT_HANDLERS):
            self.register(handler)

    def register(self, handler: ProcessHandler) -> None:
        """Register ``handler`` for its kind, replacing any previous handler."""
        self._handlers[ProcessKind(handler.kind).value] = handler

    def kinds(self) -> list[str]:
        """Registered kinds, in registration order."""
        return list(self._handlers.keys())

    def handler(self, kind: ProcessKind | str) -> ProcessHandler:
        key = ProcessKind(kind).value
        if key not in self._handlers:
            raise KeyError(f"No handler registered for process kind '{key}'")
        return self._handlers[key]

    def limit(self, kind: ProcessKind | str, state: GameState, parameters: SimulationParameters) -> int:
        return self.handler(kind).max_concurrent(state, parameters)

    def limits(self, state: GameState, parameters: SimulationParameters) -> dict[str, int]:
        return {kind: self.limit(kind, state, parameters) for kind in self._handlers}

    def active(self, state: GameState, kind: ProcessKind | str) -> list[ProcessState]:
        """Instances of ``kind`` currently held in ``state``."""
        return state.active_processes(ProcessKind(kind))
