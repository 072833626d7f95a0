"""Persona profiles.

A profile is plain data describing a simulated player archetype. The
behavior itself lives in ``balance_sim.ai.personas``; the profile's
``archetype`` selects which strategy class runs it.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, model_validator

Archetype = Literal["speedrunner", "casual", "weekend_warrior"]


class PersonaProfile(BaseModel):
    """Named player policy parameters.

    Attributes:
        id: Unique persona id
        name: Display name
        archetype: Which strategy variant drives this persona
        efficiency: Overall score multiplier (0-1)
        risk_tolerance: Appetite for adventures and mining (0-1)
        optimization: Appetite for long-term investments like planting and building (0-1)
        learning_rate: Willingness to hand work to helpers (0-1)
        weekday_check_ins: Check-in sessions per weekday
        weekend_check_ins: Check-in sessions per weekend day
        session_minutes: Length of one check-in session in simulated minutes
    """

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    archetype: Archetype
    efficiency: float = Field(default=0.8, ge=0.0, le=1.0)
    risk_tolerance: float = Field(default=0.5, ge=0.0, le=1.0)
    optimization: float = Field(default=0.5, ge=0.0, le=1.0)
    learning_rate: float = Field(default=0.5, ge=0.0, le=1.0)
    weekday_check_ins: int = Field(default=3, ge=1)
    weekend_check_ins: int = Field(default=3, ge=1)
    session_minutes: float = Field(default=15.0, gt=0.0)

    @model_validator(mode="after")
    def validate_cadence(self) -> PersonaProfile:
        """Reject profiles that check in more often than a session lasts."""
        busiest = max(self.weekday_check_ins, self.weekend_check_ins)
        if busiest * self.session_minutes > 960:
            raise ValueError(
                f"{busiest} sessions of {self.session_minutes} minutes do not fit "
                "into a 16-hour waking day"
            )
        return self


SPEEDRUNNER = PersonaProfile(
    id="speedrunner",
    name="Speedrunner",
    archetype="speedrunner",
    efficiency=0.95,
    risk_tolerance=0.8,
    optimization=0.9,
    learning_rate=0.8,
    weekday_check_ins=10,
    weekend_check_ins=10,
    session_minutes=30.0,
)

CASUAL = PersonaProfile(
    id="casual",
    name="Casual Player",
    archetype="casual",
    efficiency=0.7,
    risk_tolerance=0.4,
    optimization=0.5,
    learning_rate=0.4,
    weekday_check_ins=3,
    weekend_check_ins=4,
    session_minutes=15.0,
)

WEEKEND_WARRIOR = PersonaProfile(
    id="weekend_warrior",
    name="Weekend Warrior",
    archetype="weekend_warrior",
    efficiency=0.8,
    risk_tolerance=0.6,
    optimization=0.6,
    learning_rate=0.5,
    weekday_check_ins=1,
    weekend_check_ins=8,
    session_minutes=45.0,
)

BUILTIN_PERSONAS: dict[str, PersonaProfile] = {
    SPEEDRUNNER.id: SPEEDRUNNER,
    CASUAL.id: CASUAL,
    WEEKEND_WARRIOR.id: WEEKEND_WARRIOR,
}


def get_persona_profile(name: str) -> PersonaProfile:
    """Look up a built-in persona profile by id.

    Args:
        name: Persona id; case and hyphens are normalized

    Returns:
        The matching PersonaProfile

    Raises:
        ValueError: If no built-in persona matches
    """
    normalized = name.lower().replace("-", "_")
    if normalized not in BUILTIN_PERSONAS:
        valid_names = ", ".join(BUILTIN_PERSONAS.keys())
        raise ValueError(f"Unknown persona '{name}'. Valid personas: {valid_names}")
    return BUILTIN_PERSONAS[normalized]
