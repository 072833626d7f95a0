"""Path-keyed parameter overrides.

An override names a parameter by dotted path (``"water.pump_rate"``) and
gives it a new value. Overrides are applied over the defaults to produce a
new frozen ``SimulationParameters``; the previous instance is never touched.
When several overrides name the same path the one with the latest timestamp
wins, and ties go to the one listed last.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from balance_sim.errors import OverrideError
from balance_sim.models.tuning import SimulationParameters

logger = logging.getLogger(__name__)


def _epoch() -> datetime:
    return datetime.fromtimestamp(0, tz=timezone.utc)


class ParameterOverride(BaseModel):
    """A single override.

    Attributes:
        path: Dotted parameter path, e.g. "termination.stuck_days"
        value: New value (validated against the parameter's type on apply)
        timestamp: When the override was authored
        description: Optional note for reports
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., min_length=1)
    value: Any
    timestamp: datetime = Field(default_factory=_epoch)
    description: str = Field(default="")


class OverrideSet(BaseModel):
    """Immutable ordered collection of overrides."""

    model_config = ConfigDict(frozen=True)

    overrides: tuple[ParameterOverride, ...] = Field(default=())

    def __len__(self) -> int:
        return len(self.overrides)

    def effective(self) -> dict[str, Any]:
        """Latest value per path, in the order paths first appear."""
        chosen: dict[str, tuple[datetime, int, Any]] = {}
        for index, override in enumerate(self.overrides):
            current = chosen.get(override.path)
            candidate = (override.timestamp, index, override.value)
            if current is None or candidate[:2] >= current[:2]:
                chosen[override.path] = candidate
        return {path: value for path, (_, _, value) in chosen.items()}

    def apply(self, base: SimulationParameters | None = None) -> SimulationParameters:
        """Return a new parameter set with every effective override applied.

        Args:
            base: Parameters to start from (defaults if None)

        Returns:
            New frozen SimulationParameters

        Raises:
            OverrideError: If a path does not exist or a value fails validation
        """
        data = (base or SimulationParameters()).model_dump()
        for path, value in self.effective().items():
            set_parameter_by_path(data, path, value)
        try:
            return SimulationParameters.model_validate(data)
        except ValidationError as e:
            raise OverrideError(f"Override produced invalid parameters: {e}") from e

    def with_override(self, override: ParameterOverride) -> OverrideSet:
        """Return a new set with ``override`` appended."""
        return OverrideSet(overrides=self.overrides + (override,))


def set_parameter_by_path(data: dict, path: str, value: Any) -> None:
    """Set ``value`` at a dotted ``path`` inside a nested parameter dict.

    Raises:
        OverrideError: If any segment of the path does not exist
    """
    segments = path.split(".")
    node = data
    for segment in segments[:-1]:
        if not isinstance(node, dict) or segment not in node:
            raise OverrideError(f"Unknown parameter path: {path}")
        node = node[segment]
    leaf = segments[-1]
    if not isinstance(node, dict) or leaf not in node:
        raise OverrideError(f"Unknown parameter path: {path}")
    node[leaf] = value


def load_overrides(path: str | Path) -> OverrideSet:
    """Load an override set from a JSON file holding a list of overrides.

    Raises:
        OverrideError: If the file is not a JSON list of override objects
    """
    file_path = Path(path)
    try:
        raw = json.loads(file_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise OverrideError(f"Cannot read overrides from {file_path}: {e}") from e
    if not isinstance(raw, list):
        raise OverrideError(f"Overrides file {file_path} must contain a JSON list")
    try:
        overrides = tuple(ParameterOverride.model_validate(item) for item in raw)
    except ValidationError as e:
        raise OverrideError(f"Malformed override in {file_path}: {e}") from e
    logger.info(f"Loaded {len(overrides)} overrides from {file_path}")
    return OverrideSet(overrides=overrides)
