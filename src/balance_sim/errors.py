"""Exception hierarchy for the simulator.

Only fatal or programming errors are raised. Rejected actions, failed
validations and refused process starts are returned as result objects.
"""


class SimulationError(Exception):
    """Base class for simulator errors."""


class ContentError(SimulationError):
    """Static content is malformed and the simulation cannot start."""


class OverrideError(SimulationError):
    """A parameter override names an unknown path or carries a bad value."""


class StateChangeError(SimulationError):
    """A batch of state changes could not be applied.

    Attributes:
        violations: Invariant violations found after applying the batch
    """

    def __init__(self, message: str, violations: list[str] | None = None):
        super().__init__(message)
        self.violations = violations or []


class ProtocolError(SimulationError):
    """A host message is malformed or uses an unsupported protocol version."""
