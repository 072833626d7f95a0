"""Forge system: crafting tools and weapons from recipes.

A recipe needs its blueprint (a content prerequisite) and its materials.
Crafting runs as a ``crafting`` process; energy is paid up front and the
materials are consumed when the process completes.
"""

from __future__ import annotations

from balance_sim.models.actions import (
    ActionResult,
    ActionType,
    GameAction,
    Screen,
    StateChange,
)
from balance_sim.models.processes import ProcessKind
from balance_sim.models.state import GameState
from balance_sim.systems.base import EvaluationContext, GameSystem, make_event


class ForgeSystem(GameSystem):
    name = "forge"
    screen = Screen.FORGE

    def _owned(self, state: GameState) -> set[str]:
        return set(state.inventory.tools) | set(state.inventory.weapons)

    def evaluate_actions(self, state: GameState, context: EvaluationContext) -> list[GameAction]:
        owned = self._owned(state)
        in_progress = {p.recipe_id for p in state.active_processes(ProcessKind.CRAFTING)}
        actions = []
        for recipe in self.content.by_type("recipe"):
            output = recipe.recipe_output
            if output in owned or recipe.id in in_progress:
                continue
            output_item = self.content.get(output)
            actions.append(
                self.action(
                    f"craft:{output}",
                    ActionType.CRAFT,
                    target=recipe.id,
                    energy_cost=recipe.energy_cost,
                    material_cost=dict(recipe.materials_cost),
                    duration=recipe.time,
                    metadata={
                        "output": output,
                        "category": output_item.type if output_item is not None else "tool",
                    },
                )
            )
        return actions

    def check_structure(self, action: GameAction, state: GameState) -> list[str]:
        if action.action_type != ActionType.CRAFT:
            return [f"forge cannot perform '{action.action_type.value}'"]
        recipe = self.content.get(action.target)
        if recipe is None or recipe.type != "recipe":
            return [f"unknown recipe '{action.target}'"]
        if recipe.recipe_output in self._owned(state):
            return [f"'{recipe.recipe_output}' is already owned"]
        allowed, reason = self.processes.can_start(ProcessKind.CRAFTING, state, recipe_id=recipe.id)
        return [] if allowed else [reason]

    def execute(self, action: GameAction, state: GameState) -> ActionResult:
        if action.action_type != ActionType.CRAFT:
            return ActionResult.failure(f"forge cannot perform '{action.action_type.value}'")
        start = self.processes.start(ProcessKind.CRAFTING, state, recipe_id=action.target)
        if not start.started:
            return ActionResult.failure(start.reason)

        # Materials are held by the process and consumed on completion.
        changes = []
        if action.energy_cost:
            changes.append(StateChange.add("resources.energy.current", -action.energy_cost))
        output = action.metadata.get("output", action.target)
        return ActionResult(
            success=True,
            description=f"Started forging {output}",
            state_changes=changes + start.state_changes,
            events=[
                make_event(
                    "crafting_started", f"Started forging {output}", state,
                    recipe_id=action.target, process_id=start.process_id,
                )
            ],
        )
