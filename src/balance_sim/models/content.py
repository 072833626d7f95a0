"""Static content: the ID-keyed table of crops, tools, unlocks and routes.

The content table is loaded once before a run starts and is never mutated by
the engine. Rows come either from CSV files (one row per item, prerequisites
``;``-separated, material lists in ``"Stone x5;Wood x10"`` form) or from the
bundled ``default_content()`` table.

Prerequisite ids are either content ids or synthetic tokens:
- ``hero_level_N``: hero level at least N
- ``farm_stage_N``: farm stage at least N
"""

from __future__ import annotations

import csv
import logging
import re
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Literal, Mapping

from pydantic import BaseModel, Field, ValidationError, field_validator

from balance_sim.errors import ContentError
from balance_sim.models.actions import Screen

logger = logging.getLogger(__name__)

ItemType = Literal[
    "crop",
    "cleanup",
    "tool",
    "weapon",
    "blueprint",
    "upgrade",
    "structure",
    "recipe",
    "adventure",
    "mine",
    "farm_stage",
    "helper",
    "material",
]

SYNTHETIC_PREREQUISITE = re.compile(r"^(hero_level|farm_stage)_(\d+)$")
MATERIAL_ENTRY = re.compile(r"^\s*(.+?)\s+x\s*(\d+(?:\.\d+)?)\s*$", re.IGNORECASE)

RECIPE_PREFIX = "craft_"
"""Recipe ids are the output item id with this prefix."""


def is_synthetic_prerequisite(prereq_id: str) -> bool:
    return SYNTHETIC_PREREQUISITE.match(prereq_id) is not None


def parse_material_list(text: str) -> dict[str, float]:
    """Parse ``"Stone x5;Wood x10"`` into ``{"stone": 5.0, "wood": 10.0}``.

    Raises:
        ContentError: If an entry does not match the ``Name xN`` form
    """
    materials: dict[str, float] = {}
    for entry in text.split(";"):
        if not entry.strip():
            continue
        match = MATERIAL_ENTRY.match(entry)
        if match is None:
            raise ContentError(f"Malformed material entry '{entry.strip()}'")
        name = match.group(1).strip().lower().replace(" ", "_")
        materials[name] = materials.get(name, 0.0) + float(match.group(2))
    return materials


class ContentItem(BaseModel):
    """One row of the static content table.

    Attributes:
        id: Unique item id
        name: Display name
        type: Item category; decides how the prerequisite rules treat it
        screen: Screen the item is used from
        prerequisites: Ids that must be satisfied before the item can be used
        gold_cost: Gold to buy, build or start the item
        energy_cost: Energy to use the item
        time: Duration in minutes (growth, crafting, route or mining length)
        materials_cost: Materials consumed
        materials_gain: Materials produced
        gold_gain: Gold granted on completion
        energy_gain: Energy granted (crops: on harvest)
        experience_gain: Experience granted on completion
        level: Difficulty level for adventures and mines
        wind_level: Tower wind level a crop's seeds are caught at
        total_plots: Plot count a farm stage requires
        plots_added: Plots a cleanup adds
        tool_required: Tool id needed to perform the item
        sell_price: Gold per unit when selling a material
        repeatable: Whether the item can be performed more than once
        effect: Free-form effect text, e.g. "max_water:+100"
    """

    id: str = Field(..., min_length=1)
    name: str = Field(default="")
    type: ItemType
    screen: Screen = Field(default=Screen.FARM)
    prerequisites: list[str] = Field(default_factory=list)
    gold_cost: float = Field(default=0.0, ge=0.0)
    energy_cost: float = Field(default=0.0, ge=0.0)
    time: float = Field(default=0.0, ge=0.0)
    materials_cost: dict[str, float] = Field(default_factory=dict)
    materials_gain: dict[str, float] = Field(default_factory=dict)
    gold_gain: float = Field(default=0.0, ge=0.0)
    energy_gain: float = Field(default=0.0, ge=0.0)
    experience_gain: float = Field(default=0.0, ge=0.0)
    level: int = Field(default=0, ge=0)
    wind_level: int = Field(default=0, ge=0)
    total_plots: int = Field(default=0, ge=0)
    plots_added: int = Field(default=0, ge=0)
    tool_required: str | None = Field(default=None)
    sell_price: float = Field(default=0.0, ge=0.0)
    repeatable: bool = Field(default=False)
    effect: str = Field(default="")

    @field_validator("prerequisites", mode="before")
    @classmethod
    def split_prerequisites(cls, v):
        """Accept a ``;``-separated string as well as a list."""
        if v is None:
            return []
        if isinstance(v, str):
            return [part.strip() for part in v.split(";") if part.strip()]
        return v

    @field_validator("materials_cost", "materials_gain", mode="before")
    @classmethod
    def parse_materials(cls, v):
        if v is None:
            return {}
        if isinstance(v, str):
            return parse_material_list(v)
        return v

    @field_validator("tool_required", mode="before")
    @classmethod
    def blank_tool_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def required_ids(self) -> list[str]:
        """Prerequisites plus the required tool, if any."""
        if self.tool_required and self.tool_required not in self.prerequisites:
            return [*self.prerequisites, self.tool_required]
        return list(self.prerequisites)

    @property
    def recipe_output(self) -> str | None:
        """Output item id for recipes, None for every other type."""
        if self.type != "recipe":
            return None
        return self.id.removeprefix(RECIPE_PREFIX)

    def effects(self) -> dict[str, float]:
        """Parse ``effect`` text of the form ``"max_water:+100;max_energy:+50"``."""
        parsed: dict[str, float] = {}
        for part in self.effect.split(";"):
            if ":" not in part:
                continue
            key, _, amount = part.partition(":")
            try:
                parsed[key.strip()] = float(amount)
            except ValueError:
                logger.warning(f"Ignoring unparseable effect '{part}' on {self.id}")
        return parsed


class ContentTable:
    """Read-only, ID-keyed view over content items."""

    def __init__(self, items: Iterable[ContentItem]):
        table: dict[str, ContentItem] = {}
        for item in items:
            if item.id in table:
                raise ContentError(f"Duplicate content id '{item.id}'")
            table[item.id] = item
        self._items: Mapping[str, ContentItem] = MappingProxyType(table)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self._items.values())

    @property
    def items(self) -> Mapping[str, ContentItem]:
        return self._items

    def ids(self) -> list[str]:
        return list(self._items.keys())

    def get(self, item_id: str | None) -> ContentItem | None:
        if item_id is None:
            return None
        return self._items.get(item_id)

    def require(self, item_id: str) -> ContentItem:
        """Return the item or raise ContentError if it does not exist."""
        item = self._items.get(item_id)
        if item is None:
            raise ContentError(f"Content item '{item_id}' not found")
        return item

    def by_type(self, item_type: str) -> list[ContentItem]:
        """Items of one type, in table order."""
        return [item for item in self._items.values() if item.type == item_type]

    def validate(self, required_types: Iterable[str] = ("crop", "cleanup")) -> None:
        """Check the table is usable for a simulation.

        Raises:
            ContentError: If the table is empty, lacks a required item type,
                or references a prerequisite that is neither a content id nor
                a synthetic token
        """
        if not self._items:
            raise ContentError("Content table is empty")
        for item_type in required_types:
            if not self.by_type(item_type):
                raise ContentError(f"Content table has no '{item_type}' items")
        for item in self._items.values():
            for prereq in item.required_ids:
                if prereq not in self._items and not is_synthetic_prerequisite(prereq):
                    raise ContentError(
                        f"Item '{item.id}' requires unknown prerequisite '{prereq}'"
                    )


def load_content_csv(directory: str | Path) -> ContentTable:
    """Load every ``*.csv`` file in ``directory`` into one content table.

    Blank cells fall back to field defaults. Files are read in name order.

    Raises:
        ContentError: If the directory has no CSV files or a row is malformed
    """
    root = Path(directory)
    files = sorted(root.glob("*.csv"))
    if not files:
        raise ContentError(f"No content CSV files found in {root}")

    items = []
    for csv_path in files:
        with csv_path.open(newline="", encoding="utf-8") as handle:
            for line_number, row in enumerate(csv.DictReader(handle), start=2):
                cleaned = {
                    key.strip(): value.strip()
                    for key, value in row.items()
                    if key and value is not None and value.strip() != ""
                }
                if "repeatable" in cleaned:
                    cleaned["repeatable"] = cleaned["repeatable"].upper() == "TRUE"
                try:
                    items.append(ContentItem.model_validate(cleaned))
                except ValidationError as e:
                    raise ContentError(
                        f"{csv_path.name}:{line_number}: invalid content row: {e}"
                    ) from e
        logger.debug(f"Loaded content file {csv_path.name}")

    table = ContentTable(items)
    logger.info(f"Loaded {len(table)} content items from {root}")
    return table


# =============================================================================
# Bundled content
# =============================================================================

_DEFAULT_ROWS: list[dict] = [
    # Crops
    {"id": "turnip", "name": "Turnip", "type": "crop", "time": 10, "energy_gain": 2, "wind_level": 1},
    {"id": "beet", "name": "Beet", "type": "crop", "time": 15, "energy_gain": 4, "wind_level": 1},
    {"id": "carrot", "name": "Carrot", "type": "crop", "time": 30, "energy_gain": 8, "wind_level": 2},
    {"id": "potato", "name": "Potato", "type": "crop", "time": 60, "energy_gain": 15, "wind_level": 3},
    # Farm cleanups
    {"id": "clear_weeds", "name": "Clear Weeds", "type": "cleanup", "energy_cost": 15, "plots_added": 2},
    {"id": "clear_rocks", "name": "Clear Rocks", "type": "cleanup", "energy_cost": 25, "plots_added": 3,
     "prerequisites": "clear_weeds", "tool_required": "hoe"},
    {"id": "clear_brush", "name": "Clear Brush", "type": "cleanup", "energy_cost": 35, "plots_added": 4,
     "prerequisites": "clear_rocks", "tool_required": "hoe"},
    {"id": "clear_stumps", "name": "Clear Stumps", "type": "cleanup", "energy_cost": 45, "plots_added": 6,
     "prerequisites": "clear_brush", "tool_required": "axe"},
    {"id": "clear_boulders", "name": "Clear Boulders", "type": "cleanup", "energy_cost": 60, "plots_added": 8,
     "prerequisites": "clear_stumps", "tool_required": "pickaxe"},
    {"id": "clear_thicket", "name": "Clear Thicket", "type": "cleanup", "energy_cost": 70, "plots_added": 10,
     "prerequisites": "clear_boulders;homestead", "tool_required": "axe"},
    # Farm stages
    {"id": "small_hold", "name": "Small Hold", "type": "farm_stage", "total_plots": 10},
    {"id": "homestead", "name": "Homestead", "type": "farm_stage", "total_plots": 20},
    {"id": "manor_grounds", "name": "Manor Grounds", "type": "farm_stage", "total_plots": 40},
    # Tools and weapons
    {"id": "hoe", "name": "Hoe", "type": "tool", "screen": "forge"},
    {"id": "axe", "name": "Axe", "type": "tool", "screen": "forge"},
    {"id": "pickaxe", "name": "Pickaxe", "type": "tool", "screen": "forge"},
    {"id": "sword", "name": "Sword", "type": "weapon", "screen": "forge"},
    # Blueprints (town)
    {"id": "blueprint_hoe", "name": "Hoe Blueprint", "type": "blueprint", "screen": "town", "gold_cost": 40},
    {"id": "blueprint_axe", "name": "Axe Blueprint", "type": "blueprint", "screen": "town", "gold_cost": 120,
     "prerequisites": "hero_level_3"},
    {"id": "blueprint_pickaxe", "name": "Pickaxe Blueprint", "type": "blueprint", "screen": "town",
     "gold_cost": 200, "prerequisites": "blueprint_axe"},
    {"id": "blueprint_sword", "name": "Sword Blueprint", "type": "blueprint", "screen": "town",
     "gold_cost": 150, "prerequisites": "hero_level_3"},
    # Recipes (forge)
    {"id": "craft_hoe", "name": "Forge Hoe", "type": "recipe", "screen": "forge", "energy_cost": 10,
     "time": 30, "materials_cost": "Wood x5;Stone x3", "prerequisites": "blueprint_hoe"},
    {"id": "craft_axe", "name": "Forge Axe", "type": "recipe", "screen": "forge", "energy_cost": 15,
     "time": 45, "materials_cost": "Wood x8;Iron x3", "prerequisites": "blueprint_axe"},
    {"id": "craft_pickaxe", "name": "Forge Pickaxe", "type": "recipe", "screen": "forge", "energy_cost": 20,
     "time": 60, "materials_cost": "Wood x5;Iron x6", "prerequisites": "blueprint_pickaxe"},
    {"id": "craft_sword", "name": "Forge Sword", "type": "recipe", "screen": "forge", "energy_cost": 20,
     "time": 60, "materials_cost": "Wood x3;Iron x8", "prerequisites": "blueprint_sword"},
    # Upgrades (town)
    {"id": "tower_reach_2", "name": "Tower Reach II", "type": "upgrade", "screen": "town", "gold_cost": 80,
     "prerequisites": "hero_level_2"},
    {"id": "tower_reach_3", "name": "Tower Reach III", "type": "upgrade", "screen": "town", "gold_cost": 250,
     "prerequisites": "tower_reach_2"},
    {"id": "water_tank", "name": "Water Tank", "type": "upgrade", "screen": "town", "gold_cost": 100,
     "effect": "max_water:+100"},
    {"id": "energy_well", "name": "Energy Well", "type": "upgrade", "screen": "town", "gold_cost": 150,
     "effect": "max_energy:+50", "prerequisites": "hero_level_3"},
    # Structures (town carpenter)
    {"id": "gnome_hut", "name": "Gnome Hut", "type": "structure", "screen": "town", "gold_cost": 150,
     "materials_cost": "Wood x20;Stone x10", "prerequisites": "hero_level_2", "effect": "helper_slots:+2"},
    {"id": "storage_shed", "name": "Storage Shed", "type": "structure", "screen": "town", "gold_cost": 80,
     "materials_cost": "Wood x10"},
    # Helpers
    {"id": "gnome", "name": "Gnome", "type": "helper", "screen": "farm", "gold_cost": 60,
     "prerequisites": "gnome_hut", "repeatable": True},
    # Adventures
    {"id": "meadow_path", "name": "Meadow Path", "type": "adventure", "screen": "adventure",
     "energy_cost": 20, "time": 30, "gold_gain": 40, "experience_gain": 25, "level": 1, "repeatable": True},
    {"id": "forest_trail", "name": "Forest Trail", "type": "adventure", "screen": "adventure",
     "energy_cost": 35, "time": 60, "gold_gain": 90, "experience_gain": 50, "level": 3,
     "prerequisites": "meadow_path", "repeatable": True},
    {"id": "mountain_pass", "name": "Mountain Pass", "type": "adventure", "screen": "adventure",
     "energy_cost": 60, "time": 120, "gold_gain": 200, "experience_gain": 100, "level": 5,
     "prerequisites": "forest_trail;sword", "repeatable": True},
    # Mines
    {"id": "shallow_mine", "name": "Shallow Mine", "type": "mine", "screen": "mine", "time": 60, "level": 1,
     "tool_required": "pickaxe", "repeatable": True},
    {"id": "deep_mine", "name": "Deep Mine", "type": "mine", "screen": "mine", "time": 120, "level": 3,
     "tool_required": "pickaxe", "prerequisites": "hero_level_6", "repeatable": True},
    # Materials (sell prices)
    {"id": "wood", "name": "Wood", "type": "material", "screen": "town", "sell_price": 1},
    {"id": "stone", "name": "Stone", "type": "material", "screen": "town", "sell_price": 2},
    {"id": "copper", "name": "Copper", "type": "material", "screen": "town", "sell_price": 3},
    {"id": "iron", "name": "Iron", "type": "material", "screen": "town", "sell_price": 5},
    {"id": "silver", "name": "Silver", "type": "material", "screen": "town", "sell_price": 10},
    {"id": "crystal", "name": "Crystal", "type": "material", "screen": "town", "sell_price": 20},
]


def default_content() -> ContentTable:
    """Build the bundled content table."""
    return ContentTable(ContentItem.model_validate(row) for row in _DEFAULT_ROWS)
