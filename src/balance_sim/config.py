"""Run configuration and environment settings.

Environment variables (all optional):
    BALANCE_SIM_LOG_LEVEL: Root log level (default WARNING)
    BALANCE_SIM_CONTENT_DIR: Directory of content CSV files (default: bundled content)
    BALANCE_SIM_WORKERS: Worker processes for batch runs (default: CPU count)
    BALANCE_SIM_SEED: Default random seed (default: unseeded)
"""

from __future__ import annotations

import logging
import os

from pydantic import BaseModel, Field, field_validator

from balance_sim.models.overrides import OverrideSet
from balance_sim.models.persona import PersonaProfile
from balance_sim.models.state import GameState
from balance_sim.parameters import DEFAULT_MAX_DAYS, MAX_SPEED, MIN_SPEED

DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_SNAPSHOT_EVERY = 60
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_log_level() -> str:
    """Get configured log level name from environment."""
    return os.environ.get("BALANCE_SIM_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()


def get_content_dir() -> str | None:
    """Get configured content directory from environment (None for bundled content)."""
    return os.environ.get("BALANCE_SIM_CONTENT_DIR") or None


def get_workers() -> int:
    """Get configured batch worker count from environment."""
    raw = os.environ.get("BALANCE_SIM_WORKERS")
    if raw:
        try:
            return max(1, int(raw))
        except ValueError:
            logging.getLogger(__name__).warning(f"Ignoring invalid BALANCE_SIM_WORKERS={raw!r}")
    return os.cpu_count() or 1


def get_seed() -> int | None:
    """Get configured default seed from environment."""
    raw = os.environ.get("BALANCE_SIM_SEED")
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        logging.getLogger(__name__).warning(f"Ignoring invalid BALANCE_SIM_SEED={raw!r}")
        return None


def configure_logging(level: str | int | None = None) -> None:
    """Configure root logging for scripts and workers.

    Args:
        level: Level name or number; defaults to BALANCE_SIM_LOG_LEVEL
    """
    if level is None:
        level = get_log_level()
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)


class SimulationConfig(BaseModel):
    """Everything needed to start one simulation run.

    Attributes:
        seed: Random seed; two runs with the same config and seed are identical
        persona: Built-in persona id or a full persona profile
        overrides: Parameter overrides applied over the defaults before start
        max_days: Simulated days before the run ends as max_days
        speed: Multiplier on simulated minutes per tick
        tick_minutes: Simulated minutes per tick at speed 1 (parameter default if None)
        action_budget: Maximum actions chosen per decision
        snapshot_every: Ticks between snapshots sent to a host
        initial_state: Starting state (a fresh game if None)
        content_dir: Directory of content CSV files (bundled content if None)
    """

    seed: int | None = Field(default=None)
    persona: str | PersonaProfile = Field(default="casual")
    overrides: OverrideSet = Field(default_factory=OverrideSet)
    max_days: int = Field(default=DEFAULT_MAX_DAYS, ge=1)
    speed: float = Field(default=1.0)
    tick_minutes: float | None = Field(default=None, gt=0.0)
    action_budget: int = Field(default=1, ge=1)
    snapshot_every: int = Field(default=DEFAULT_SNAPSHOT_EVERY, ge=1)
    initial_state: GameState | None = Field(default=None)
    content_dir: str | None = Field(default=None)

    @field_validator("speed", mode="before")
    @classmethod
    def clamp_speed(cls, v: float) -> float:
        return max(MIN_SPEED, min(MAX_SPEED, float(v)))

    @property
    def persona_id(self) -> str:
        return self.persona if isinstance(self.persona, str) else self.persona.id
