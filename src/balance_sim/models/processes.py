"""Process state models.

A process is a multi-tick activity (crop growth, crafting, mining, seed
catching, adventures, helper training). Each kind is a pydantic model with a
``kind`` literal tag; ``ProcessState`` is the discriminated union of all of
them, so instances round-trip through ``GameState.model_validate`` with their
concrete type intact.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class ProcessKind(str, Enum):
    """Kinds of multi-tick processes. Inherits from str for JSON keys."""

    CROP_GROWTH = "crop_growth"
    CRAFTING = "crafting"
    MINING = "mining"
    SEED_CATCHING = "seed_catching"
    ADVENTURE = "adventure"
    HELPER_TRAINING = "helper_training"


class ProcessStatus(str, Enum):
    """Lifecycle status of a process instance."""

    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class BaseProcess(BaseModel):
    """Fields shared by every process kind.

    Attributes:
        process_id: Unique id within a run (e.g. "p0007")
        started_at: Simulated total minutes when the process started
        duration: Minutes of progress required to complete
        elapsed: Minutes of progress accumulated so far
        status: Lifecycle status
    """

    process_id: str
    started_at: float = Field(default=0.0, ge=0.0)
    duration: float = Field(..., gt=0.0)
    elapsed: float = Field(default=0.0, ge=0.0)
    status: ProcessStatus = Field(default=ProcessStatus.RUNNING)

    @property
    def progress(self) -> float:
        """Fraction complete, capped at 1.0."""
        return min(1.0, self.elapsed / self.duration)

    @property
    def remaining(self) -> float:
        return max(0.0, self.duration - self.elapsed)


class CropGrowthProcess(BaseProcess):
    kind: Literal["crop_growth"] = "crop_growth"
    plot_id: str
    crop_id: str


class CraftingProcess(BaseProcess):
    """A forge recipe in progress. Materials are consumed on completion."""

    kind: Literal["crafting"] = "crafting"
    recipe_id: str
    output_id: str
    output_category: Literal["tool", "weapon"] = "tool"
    materials: dict[str, float] = Field(default_factory=dict)


class MiningProcess(BaseProcess):
    """A mining run. Drains energy every minute and collects materials."""

    kind: Literal["mining"] = "mining"
    mine_id: str
    depth: float = Field(default=0.0, ge=0.0)
    tier: int = Field(default=1, ge=1)
    drain_per_minute: float = Field(default=0.0, ge=0.0)
    found: dict[str, float] = Field(default_factory=dict)


class SeedCatchingProcess(BaseProcess):
    kind: Literal["seed_catching"] = "seed_catching"
    wind_level: int = Field(default=1, ge=1)
    seed_pool: list[str] = Field(default_factory=list)


class AdventureProcess(BaseProcess):
    kind: Literal["adventure"] = "adventure"
    route_id: str
    gold_reward: float = Field(default=0.0, ge=0.0)
    experience_reward: float = Field(default=0.0, ge=0.0)
    success_chance: float = Field(default=1.0, ge=0.0, le=1.0)


class HelperTrainingProcess(BaseProcess):
    kind: Literal["helper_training"] = "helper_training"
    helper_id: str
    levels: int = Field(default=1, ge=1)


ProcessState = Annotated[
    Union[
        CropGrowthProcess,
        CraftingProcess,
        MiningProcess,
        SeedCatchingProcess,
        AdventureProcess,
        HelperTrainingProcess,
    ],
    Field(discriminator="kind"),
]
"""Tagged union over every process kind."""
