"""Town system: blueprint and upgrade purchases, structures, material sales."""

from __future__ import annotations

from balance_sim.models.actions import (
    ActionResult,
    ActionType,
    GameAction,
    Screen,
    StateChange,
    cost_changes,
)
from balance_sim.models.state import GameState
from balance_sim.systems.base import EvaluationContext, GameSystem, make_event

SELL_BATCH = 10.0
"""Units sold per sell action."""

SELL_KEEP = 10.0
"""Units of each material kept back for crafting and building."""

EFFECT_PATHS = {
    "max_water": "resources.water.max",
    "max_energy": "resources.energy.max",
    "pump_rate": "resources.water.pump_rate",
    "energy_regen": "resources.energy.regen_rate",
}
"""Upgrade effect keys and the state paths they raise."""

PURCHASABLE = {"blueprint": "inventory.blueprints", "upgrade": "progression.unlocked_upgrades"}


def _owned(state: GameState, item_type: str) -> list[str]:
    if item_type == "blueprint":
        return state.inventory.blueprints
    return state.progression.unlocked_upgrades


class TownSystem(GameSystem):
    name = "town"
    screen = Screen.TOWN

    def evaluate_actions(self, state: GameState, context: EvaluationContext) -> list[GameAction]:
        actions = []
        for item_type in PURCHASABLE:
            owned = set(_owned(state, item_type))
            for item in self.content.by_type(item_type):
                if item.id in owned:
                    continue
                actions.append(
                    self.action(
                        f"purchase:{item.id}",
                        ActionType.PURCHASE,
                        target=item.id,
                        gold_cost=item.gold_cost,
                        metadata={"category": item_type},
                    )
                )

        built = set(state.progression.built_structures)
        for item in self.content.by_type("structure"):
            if item.id in built:
                continue
            actions.append(
                self.action(
                    f"build:{item.id}",
                    ActionType.BUILD,
                    target=item.id,
                    gold_cost=item.gold_cost,
                    material_cost=dict(item.materials_cost),
                )
            )

        for material, amount in state.resources.materials.items():
            item = self.content.get(material)
            if item is None or item.sell_price <= 0 or amount < SELL_KEEP + SELL_BATCH:
                continue
            actions.append(
                self.action(
                    f"sell:{material}",
                    ActionType.SELL_MATERIAL,
                    target=material,
                    material_cost={material: SELL_BATCH},
                    rewards={"gold": SELL_BATCH * item.sell_price},
                )
            )
        return actions

    def check_structure(self, action: GameAction, state: GameState) -> list[str]:
        item = self.content.get(action.target)
        if item is None:
            return [f"unknown item '{action.target}'"]
        if action.action_type == ActionType.PURCHASE:
            if item.type not in PURCHASABLE:
                return [f"'{item.id}' cannot be purchased"]
            return [f"'{item.id}' is already owned"] if item.id in _owned(state, item.type) else []
        if action.action_type == ActionType.BUILD:
            if item.type != "structure":
                return [f"'{item.id}' is not a structure"]
            if item.id in state.progression.built_structures:
                return [f"'{item.id}' is already built"]
            return []
        if action.action_type == ActionType.SELL_MATERIAL:
            return [] if item.sell_price > 0 else [f"'{item.id}' cannot be sold"]
        return [f"town cannot perform '{action.action_type.value}'"]

    def execute(self, action: GameAction, state: GameState) -> ActionResult:
        item = self.content.get(action.target)
        if item is None:
            return ActionResult.failure(f"unknown item '{action.target}'")
        changes = cost_changes(action)

        if action.action_type == ActionType.PURCHASE:
            changes.append(StateChange.append(PURCHASABLE[item.type], item.id))
            changes.extend(self._effect_changes(item.effects()))
            kind, description = "item_purchased", f"Bought {item.name or item.id}"
        elif action.action_type == ActionType.BUILD:
            changes.append(StateChange.append("progression.built_structures", item.id))
            changes.extend(self._effect_changes(item.effects()))
            kind, description = "structure_built", f"Built {item.name or item.id}"
        elif action.action_type == ActionType.SELL_MATERIAL:
            gold = action.rewards.get("gold", 0.0)
            changes.append(StateChange.add("resources.gold", gold))
            kind, description = "material_sold", f"Sold {item.id} for {gold:g} gold"
        else:
            return ActionResult.failure(f"town cannot perform '{action.action_type.value}'")

        return ActionResult(
            success=True,
            description=description,
            state_changes=changes,
            events=[make_event(kind, description, state, item_id=item.id)],
        )

    def _effect_changes(self, effects: dict[str, float]) -> list[StateChange]:
        return [
            StateChange.add(EFFECT_PATHS[key], amount)
            for key, amount in effects.items()
            if key in EFFECT_PATHS
        ]
