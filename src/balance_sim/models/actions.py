"""Action, state-change and event models.

A ``GameAction`` is a candidate produced by a game system. It carries
everything the validation service needs to judge it (costs, prerequisites,
screen) plus hints the scorer uses (expected rewards). ``priority`` stays
None until the scorer ranks the action, which only happens after filtering.

Executing an action never mutates state directly: a system returns an
``ActionResult`` whose ``state_changes`` describe the mutation as a batch of
path-keyed ``StateChange`` operations, applied atomically by the engine.
"""

from __future__ import annotations

import hashlib
import json
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator


class Screen(str, Enum):
    """Game screens. Actions belong to exactly one screen.

    Inherits from str for proper JSON serialization.
    """

    FARM = "farm"
    TOWER = "tower"
    TOWN = "town"
    FORGE = "forge"
    MINE = "mine"
    ADVENTURE = "adventure"


class ActionType(str, Enum):
    """Type tag of a candidate action."""

    MOVE = "move"
    PLANT = "plant"
    WATER = "water"
    HARVEST = "harvest"
    PUMP = "pump"
    CLEANUP = "cleanup"
    CATCH_SEEDS = "catch_seeds"
    PURCHASE = "purchase"
    BUILD = "build"
    SELL_MATERIAL = "sell_material"
    CRAFT = "craft"
    START_MINING = "start_mining"
    STOP_MINING = "stop_mining"
    START_ADVENTURE = "start_adventure"
    HIRE_HELPER = "hire_helper"
    ASSIGN_ROLE = "assign_role"
    TRAIN_HELPER = "train_helper"


class GameAction(BaseModel):
    """A candidate action.

    Attributes:
        id: Deterministic unique id, e.g. "plant:turnip:plot_2"
        action_type: Type tag used by the scorer and personas
        system: Name of the game system that owns and executes the action
        target: Content id or entity the action applies to
        screen: Screen the action is performed on
        energy_cost: Energy spent on execution
        gold_cost: Gold spent on execution
        water_cost: Well water spent on execution
        seed_cost: Seeds spent, keyed by crop id
        material_cost: Materials spent, keyed by material name
        prerequisites: Ids that must be satisfied before the action is valid
        rewards: Expected-reward hints (gold, energy, experience, plots, water)
        duration: Minutes the action keeps running (0 for instant actions)
        requires_presence: Whether the hero must already be on ``screen``
        metadata: Free-form system-specific data (e.g. plot id, seed type)
        priority: Score assigned by the scorer, None before scoring
    """

    id: str = Field(..., min_length=1)
    action_type: ActionType
    system: str = Field(..., min_length=1)
    target: str | None = Field(default=None)
    screen: Screen = Field(default=Screen.FARM)
    energy_cost: float = Field(default=0.0, ge=0.0)
    gold_cost: float = Field(default=0.0, ge=0.0)
    water_cost: float = Field(default=0.0, ge=0.0)
    seed_cost: dict[str, int] = Field(default_factory=dict)
    material_cost: dict[str, float] = Field(default_factory=dict)
    prerequisites: list[str] = Field(default_factory=list)
    rewards: dict[str, float] = Field(default_factory=dict)
    duration: float = Field(default=0.0, ge=0.0)
    requires_presence: bool = Field(default=False)
    metadata: dict[str, Any] = Field(default_factory=dict)
    priority: float | None = Field(default=None)

    @field_validator("seed_cost", "material_cost")
    @classmethod
    def validate_costs(cls, v: dict) -> dict:
        """Reject negative per-item costs."""
        for key, amount in v.items():
            if amount < 0:
                raise ValueError(f"Cost for '{key}' cannot be negative")
        return v

    @property
    def total_cost(self) -> float:
        """Sum of every cost field. Lower cost wins score ties."""
        return (
            self.energy_cost
            + self.gold_cost
            + self.water_cost
            + sum(self.seed_cost.values())
            + sum(self.material_cost.values())
        )

    def cache_key(self) -> str:
        """Digest of every action field the validation check reads."""
        payload = {
            "id": self.id,
            "type": self.action_type.value,
            "target": self.target,
            "screen": self.screen.value,
            "energy": self.energy_cost,
            "gold": self.gold_cost,
            "water": self.water_cost,
            "seeds": sorted(self.seed_cost.items()),
            "materials": sorted(self.material_cost.items()),
            "prerequisites": self.prerequisites,
            "presence": self.requires_presence,
        }
        raw = json.dumps(payload, sort_keys=True, default=str)
        return hashlib.sha1(raw.encode("utf-8")).hexdigest()


ChangeOp = Literal["add", "set", "append", "discard", "put", "delete"]


class StateChange(BaseModel):
    """One path-keyed mutation.

    Operations:
        add: numeric increment of the value at ``path`` (missing keys count as 0)
        set: replace the value at ``path``
        append: append ``value`` to the list at ``path``
        discard: remove ``value`` from the list at ``path`` if present
        put: insert ``value`` at the mapping key named by the last path segment
        delete: remove the mapping key named by the last path segment
    """

    op: ChangeOp
    path: str = Field(..., min_length=1)
    value: Any = None

    @classmethod
    def add(cls, path: str, amount: float) -> StateChange:
        return cls(op="add", path=path, value=amount)

    @classmethod
    def set(cls, path: str, value: Any) -> StateChange:
        return cls(op="set", path=path, value=value)

    @classmethod
    def append(cls, path: str, value: Any) -> StateChange:
        return cls(op="append", path=path, value=value)

    @classmethod
    def discard(cls, path: str, value: Any) -> StateChange:
        return cls(op="discard", path=path, value=value)

    @classmethod
    def put(cls, path: str, value: Any) -> StateChange:
        return cls(op="put", path=path, value=value)

    @classmethod
    def delete(cls, path: str) -> StateChange:
        return cls(op="delete", path=path)


def cost_changes(action: GameAction) -> list[StateChange]:
    """Changes that pay every cost declared on ``action``."""
    changes = []
    if action.energy_cost:
        changes.append(StateChange.add("resources.energy.current", -action.energy_cost))
    if action.gold_cost:
        changes.append(StateChange.add("resources.gold", -action.gold_cost))
    if action.water_cost:
        changes.append(StateChange.add("resources.water.current", -action.water_cost))
    for seed, count in action.seed_cost.items():
        changes.append(StateChange.add(f"resources.seeds.{seed}", -count))
    for material, amount in action.material_cost.items():
        changes.append(StateChange.add(f"resources.materials.{material}", -amount))
    return changes


class SimEvent(BaseModel):
    """Something notable that happened during a tick.

    Attributes:
        kind: Event tag, e.g. "crop_planted", "process_completed", "system_error"
        message: Human-readable description
        data: Structured payload for analysis tooling
        minute: Simulated total minutes when the event happened
    """

    kind: str
    message: str = ""
    data: dict[str, Any] = Field(default_factory=dict)
    minute: float = 0.0


class ActionResult(BaseModel):
    """Outcome of executing an action.

    Attributes:
        success: Whether the action can be applied
        description: What the action did
        state_changes: Batch to apply atomically on success
        events: Events emitted by the action
        error: Error message if success is False
    """

    success: bool
    description: str = ""
    state_changes: list[StateChange] = Field(default_factory=list)
    events: list[SimEvent] = Field(default_factory=list)
    error: str | None = None

    @classmethod
    def failure(cls, error: str) -> ActionResult:
        return cls(success=False, error=error)
