"""Prerequisite rules and the tracked-field state digest.

The validation check reads game state only through ``TrackedStateReader``,
which refuses any path outside ``TRACKED_FIELDS``. ``state_digest`` hashes
exactly the values at ``TRACKED_FIELDS``. Together these guarantee that two
states with equal digests give equal check results, so memoizing checks on
the digest can never serve a stale answer.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Callable

from pydantic import BaseModel

from balance_sim.models.content import SYNTHETIC_PREREQUISITE, ContentItem, ContentTable
from balance_sim.models.state import GameState
from balance_sim.validation.graph import PrerequisiteGraph

TRACKED_FIELDS: tuple[str, ...] = (
    "progression.hero_level",
    "progression.farm_stage",
    "progression.farm_plots",
    "progression.completed_adventures",
    "progression.unlocked_upgrades",
    "progression.unlocked_areas",
    "progression.completed_cleanups",
    "progression.built_structures",
    "inventory.tools",
    "inventory.weapons",
    "inventory.blueprints",
    "helpers",
    "resources.energy.current",
    "resources.gold",
    "resources.water.current",
    "resources.seeds",
    "resources.materials",
    "location.current_screen",
)
"""Every state path the validation check is allowed to read."""


class UntrackedFieldError(KeyError):
    """Raised when a check reads a path that the digest does not cover."""


def read_path(state: GameState, path: str) -> Any:
    """Fetch the value at a dotted attribute path."""
    node: Any = state
    for segment in path.split("."):
        node = node[segment] if isinstance(node, dict) else getattr(node, segment)
    return node


class TrackedStateReader:
    """Read-only state accessor limited to ``TRACKED_FIELDS``.

    Attributes:
        reads: Paths read so far, for coverage assertions
    """

    def __init__(self, state: GameState, tracked: tuple[str, ...] = TRACKED_FIELDS):
        self._state = state
        self._tracked = frozenset(tracked)
        self.reads: set[str] = set()

    def get(self, path: str) -> Any:
        if path not in self._tracked:
            raise UntrackedFieldError(path)
        self.reads.add(path)
        return read_path(self._state, path)


def _normalize(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {str(k): _normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    if hasattr(value, "value"):
        return value.value
    return value


def state_digest(state: GameState, tracked: tuple[str, ...] = TRACKED_FIELDS) -> str:
    """Hash of the values at every tracked path."""
    payload = [[path, _normalize(read_path(state, path))] for path in tracked]
    raw = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()


# =============================================================================
# Prerequisite rules
# =============================================================================


def _owned_in(path: str) -> Callable[[ContentItem, TrackedStateReader], bool]:
    def check(item: ContentItem, reader: TrackedStateReader) -> bool:
        return item.id in reader.get(path)

    return check


def _farm_stage_reached(item: ContentItem, reader: TrackedStateReader) -> bool:
    return reader.get("progression.farm_plots") >= item.total_plots


def _recipe_output_owned(item: ContentItem, reader: TrackedStateReader) -> bool:
    output = item.recipe_output
    return output in reader.get("inventory.tools") or output in reader.get("inventory.weapons")


def _helper_hired(item: ContentItem, reader: TrackedStateReader) -> bool:
    return any(helper.name == item.id for helper in reader.get("helpers").values())


def _seed_owned(item: ContentItem, reader: TrackedStateReader) -> bool:
    return reader.get("resources.seeds").get(item.id, 0) > 0


def _material_owned(item: ContentItem, reader: TrackedStateReader) -> bool:
    return reader.get("resources.materials").get(item.id, 0) > 0


TYPE_RULES: dict[str, Callable[[ContentItem, TrackedStateReader], bool]] = {
    "cleanup": _owned_in("progression.completed_cleanups"),
    "upgrade": _owned_in("progression.unlocked_upgrades"),
    "blueprint": _owned_in("inventory.blueprints"),
    "tool": _owned_in("inventory.tools"),
    "weapon": _owned_in("inventory.weapons"),
    "structure": _owned_in("progression.built_structures"),
    "adventure": _owned_in("progression.completed_adventures"),
    "farm_stage": _farm_stage_reached,
    "recipe": _recipe_output_owned,
    "helper": _helper_hired,
    "crop": _seed_owned,
    "material": _material_owned,
}
"""How owning an item of each type is decided."""


class PrerequisiteRules:
    """Decides whether a single prerequisite id is satisfied.

    Rules are applied in order: synthetic level/stage tokens, unknown ids,
    cyclic or blocked items, then the per-type ownership rule.
    """

    def __init__(self, content: ContentTable, graph: PrerequisiteGraph):
        self.content = content
        self.graph = graph

    def is_satisfied(self, prereq_id: str, reader: TrackedStateReader) -> tuple[bool, str]:
        """Return (satisfied, reason). The reason is empty when satisfied."""
        match = SYNTHETIC_PREREQUISITE.match(prereq_id)
        if match is not None:
            kind, amount = match.group(1), int(match.group(2))
            path = "progression.hero_level" if kind == "hero_level" else "progression.farm_stage"
            current = reader.get(path)
            if current >= amount:
                return True, ""
            return False, f"requires {kind.replace('_', ' ')} {amount} (have {current})"

        item = self.content.get(prereq_id)
        if item is None:
            return False, f"unknown prerequisite '{prereq_id}'"
        if prereq_id in self.graph.cyclic:
            return False, f"'{prereq_id}' is on a prerequisite cycle"
        if prereq_id in self.graph.blocked:
            return False, f"'{prereq_id}' depends on a prerequisite cycle"

        rule = TYPE_RULES.get(item.type)
        if rule is None:
            return False, f"'{prereq_id}' ({item.type}) cannot be owned"
        if rule(item, reader):
            return True, ""
        return False, f"missing {item.type} '{prereq_id}'"
