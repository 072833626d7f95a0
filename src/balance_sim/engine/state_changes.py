"""Atomic application of path-keyed state changes.

Every mutation of ``GameState`` goes through ``apply_state_changes``:

1. The state is dumped to a plain nested dict (a private copy).
2. Each ``StateChange`` is applied to the copy in order.
3. The copy is validated back into a ``GameState`` and invariants are checked.
4. Only then is the new state returned; the input state is never touched.

A failing change (bad path, wrong type, negative resource pool) raises
``StateChangeError`` and the caller keeps the previous state, so a batch is
applied entirely or not at all.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from pydantic import ValidationError

from balance_sim.errors import StateChangeError
from balance_sim.models.actions import StateChange
from balance_sim.models.state import GameState, check_invariants

logger = logging.getLogger(__name__)


def _resolve_parent(root: dict, path: str) -> tuple[Any, str]:
    """Walk to the container holding the last segment of ``path``."""
    segments = path.split(".")
    node: Any = root
    for segment in segments[:-1]:
        if isinstance(node, dict):
            if segment not in node:
                raise StateChangeError(f"Path '{path}' does not exist (missing '{segment}')")
            node = node[segment]
        elif isinstance(node, list):
            try:
                node = node[int(segment)]
            except (ValueError, IndexError) as e:
                raise StateChangeError(f"Path '{path}' has bad list index '{segment}'") from e
        else:
            raise StateChangeError(f"Path '{path}' descends into a scalar at '{segment}'")
    if not isinstance(node, dict):
        raise StateChangeError(f"Path '{path}' does not end in a mapping")
    return node, segments[-1]


def _apply_one(root: dict, change: StateChange) -> None:
    parent, key = _resolve_parent(root, change.path)
    op = change.op

    if op == "add":
        current = parent.get(key, 0)
        if not isinstance(current, (int, float)) or isinstance(current, bool):
            raise StateChangeError(f"Cannot add to non-numeric value at '{change.path}'")
        parent[key] = current + change.value
    elif op == "set":
        if key not in parent:
            raise StateChangeError(f"Cannot set missing field '{change.path}'")
        parent[key] = change.value
    elif op == "put":
        parent[key] = change.value
    elif op == "delete":
        if key not in parent:
            raise StateChangeError(f"Cannot delete missing key '{change.path}'")
        del parent[key]
    elif op in ("append", "discard"):
        target = parent.get(key)
        if not isinstance(target, list):
            raise StateChangeError(f"'{change.path}' is not a list")
        if op == "append":
            target.append(change.value)
        elif change.value in target:
            target.remove(change.value)
    else:
        raise StateChangeError(f"Unknown change op '{op}'")


def apply_state_changes(state: GameState, changes: Iterable[StateChange]) -> GameState:
    """Apply a batch of changes atomically.

    Args:
        state: Current state (not modified)
        changes: Changes to apply in order

    Returns:
        New GameState with every change applied and pools capped at their max

    Raises:
        StateChangeError: If any change fails or the result violates an invariant
    """
    batch = list(changes)
    if not batch:
        return state

    data = state.model_dump()
    for change in batch:
        _apply_one(data, change)

    try:
        new_state = GameState.model_validate(data)
    except ValidationError as e:
        raise StateChangeError(f"State change produced an invalid state: {e}") from e

    violations = check_invariants(new_state)
    if violations:
        raise StateChangeError(
            "State change violates invariants: " + "; ".join(violations),
            violations=violations,
        )

    new_state.cap_pools()
    return new_state


def try_apply(state: GameState, changes: Iterable[StateChange]) -> tuple[GameState, str | None]:
    """Apply a batch, returning the previous state and the error on failure."""
    try:
        return apply_state_changes(state, changes), None
    except StateChangeError as e:
        logger.warning(f"Rejected state change batch: {e}")
        return state, str(e)
