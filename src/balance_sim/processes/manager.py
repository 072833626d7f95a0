"""Process manager: starts, advances, completes and cancels processes.

The manager is the only component that creates or removes process
instances. Starting a process at its kind's concurrency limit is rejected
outright; nothing is queued and no running instance is replaced.

``tick`` advances every active instance and applies the resulting changes,
returning the new state together with one aggregated list of events for the
whole tick.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any

from balance_sim.engine.state_changes import apply_state_changes
from balance_sim.errors import StateChangeError
from balance_sim.models.actions import SimEvent, StateChange
from balance_sim.models.content import ContentTable
from balance_sim.models.processes import ProcessKind, ProcessState
from balance_sim.models.state import GameState
from balance_sim.models.tuning import SimulationParameters
from balance_sim.processes.base import ProcessContext, process_path
from balance_sim.processes.registry import ProcessRegistry

logger = logging.getLogger(__name__)

COMPLETION_EPSILON = 1e-9
"""Tolerance for float accumulation when comparing elapsed to duration."""


@dataclass
class ProcessStartResult:
    """Outcome of a start request.

    Attributes:
        started: Whether the process can start
        process_id: Id of the new instance (None if rejected)
        state_changes: Changes that create the instance; the caller applies
            them together with its own action costs
        reason: Why the start was rejected
    """

    started: bool
    process_id: str | None = None
    state_changes: list[StateChange] = field(default_factory=list)
    reason: str = ""


@dataclass
class ProcessTickResult:
    """Aggregated outcome of one process tick.

    Attributes:
        state: State after every process update was applied
        events: Events from every process, in processing order
        completed: Ids of processes that completed this tick
        cancelled: Ids of processes cancelled this tick
        failed: Ids of processes whose handler raised or whose changes were rejected
    """

    state: GameState
    events: list[SimEvent] = field(default_factory=list)
    completed: list[str] = field(default_factory=list)
    cancelled: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


@dataclass
class _Step:
    process: ProcessState
    changes: list[StateChange]
    event: SimEvent | None
    outcome: str  # "running", "completed" or "cancelled"


class ProcessManager:
    """Per-run process authority.

    Args:
        registry: Handler registry
        content: Static content table
        parameters: Active simulation parameters
        rng: Run-scoped random generator
    """

    def __init__(
        self,
        registry: ProcessRegistry,
        content: ContentTable,
        parameters: SimulationParameters,
        rng: random.Random,
    ):
        self.registry = registry
        self.context = ProcessContext(content=content, parameters=parameters, rng=rng)

    @property
    def parameters(self) -> SimulationParameters:
        return self.context.parameters

    def set_parameters(self, parameters: SimulationParameters) -> None:
        self.context.parameters = parameters

    # -------------------------------------------------------------------------
    # Starting and stopping
    # -------------------------------------------------------------------------

    def can_start(self, kind: ProcessKind | str, state: GameState, **spec: Any) -> tuple[bool, str]:
        """Check the concurrency limit and the handler's own start rules."""
        handler = self.registry.handler(kind)
        active = state.process_count(handler.kind)
        limit = handler.max_concurrent(state, self.parameters)
        if active >= limit:
            return False, f"{handler.kind.value} limit reached ({active}/{limit})"
        return handler.can_start(state, self.context, spec)

    def start(self, kind: ProcessKind | str, state: GameState, **spec: Any) -> ProcessStartResult:
        """Prepare a new process instance.

        The returned changes create the instance; nothing is applied here.

        Returns:
            ProcessStartResult with started=False and a reason when rejected
        """
        allowed, reason = self.can_start(kind, state, **spec)
        if not allowed:
            logger.debug(f"Rejected {ProcessKind(kind).value} start: {reason}")
            return ProcessStartResult(started=False, reason=reason)

        handler = self.registry.handler(kind)
        process_id = f"p{state.next_process_number:05d}"
        process, changes = handler.initialize(process_id, state, self.context, spec)

        key = handler.kind.value
        creation = []
        if key not in state.processes:
            creation.append(StateChange.put(f"processes.{key}", {}))
        creation.append(StateChange.put(process_path(process), process.model_dump()))
        creation.append(StateChange.add("next_process_number", 1))
        return ProcessStartResult(
            started=True,
            process_id=process_id,
            state_changes=changes + creation,
        )

    def find(self, state: GameState, process_id: str) -> ProcessState | None:
        for instances in state.processes.values():
            if process_id in instances:
                return instances[process_id]
        return None

    def cancel(self, process_id: str, state: GameState, reason: str) -> tuple[list[StateChange], SimEvent | None]:
        """Changes that cancel ``process_id``, plus the cancellation event.

        Returns an empty change list and no event if the process is not active.
        """
        process = self.find(state, process_id)
        if process is None:
            return [], None
        handler = self.registry.handler(process.kind)
        changes = handler.cancel(process, state, self.context, reason)
        changes.append(StateChange.delete(process_path(process)))
        event = self._event("process_cancelled", process, state, reason, {"reason": reason})
        return changes, event

    # -------------------------------------------------------------------------
    # Tick
    # -------------------------------------------------------------------------

    def tick(self, delta: float, state: GameState) -> ProcessTickResult:
        """Advance every active process by ``delta`` minutes.

        A handler that raises is logged, reported as ``process_error`` and
        skipped for this tick; the other processes still advance.
        """
        result = ProcessTickResult(state=state)
        steps: list[_Step] = []

        for kind in self.registry.kinds():
            handler = self.registry.handler(kind)
            for process in self.registry.active(state, kind):
                try:
                    steps.append(self._advance(handler, process, delta, state))
                except Exception as e:
                    logger.exception(f"Process {process.process_id} ({kind}) failed to update")
                    result.failed.append(process.process_id)
                    result.events.append(
                        self._event("process_error", process, state, str(e), {"error": str(e)})
                    )

        if not steps:
            return result

        try:
            result.state = apply_state_changes(state, [c for step in steps for c in step.changes])
            accepted = steps
        except StateChangeError:
            # Combined batch failed; apply process by process so one bad
            # instance cannot hold back the rest.
            accepted = []
            current = state
            for step in steps:
                try:
                    current = apply_state_changes(current, step.changes)
                    accepted.append(step)
                except StateChangeError as e:
                    logger.warning(f"Process {step.process.process_id} changes rejected: {e}")
                    result.failed.append(step.process.process_id)
                    result.events.append(
                        self._event("process_failed", step.process, state, str(e), {"error": str(e)})
                    )
            result.state = current

        for step in accepted:
            if step.outcome == "completed":
                result.completed.append(step.process.process_id)
            elif step.outcome == "cancelled":
                result.cancelled.append(step.process.process_id)
            if step.event is not None:
                result.events.append(step.event)
        return result

    def _advance(self, handler, process: ProcessState, delta: float, state: GameState) -> _Step:
        path = process_path(process)
        update = handler.update(process, delta, state, self.context)

        if update.starved:
            changes = handler.cancel(process, state, self.context, update.reason)
            changes.append(StateChange.delete(path))
            event = self._event(
                "process_cancelled", process, state, update.reason, {"reason": update.reason}
            )
            return _Step(process, changes, event, "cancelled")

        elapsed = process.elapsed + update.progress
        if elapsed + COMPLETION_EPSILON >= process.duration:
            outputs, payload = handler.complete(process, state, self.context)
            changes = update.state_changes + outputs + [StateChange.delete(path)]
            event = self._event("process_completed", process, state, "completed", payload)
            logger.info(f"{process.kind} {process.process_id} completed")
            return _Step(process, changes, event, "completed")

        changes = update.state_changes + [StateChange.set(f"{path}.elapsed", elapsed)]
        return _Step(process, changes, None, "running")

    def _event(
        self, kind: str, process: ProcessState, state: GameState, message: str, data: dict
    ) -> SimEvent:
        return SimEvent(
            kind=kind,
            message=f"{process.kind} {process.process_id}: {message}",
            data={"process_id": process.process_id, "process_kind": process.kind, **data},
            minute=state.time.total_minutes,
        )
