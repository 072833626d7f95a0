"""Prerequisite graph and action validation."""

from balance_sim.validation.graph import GraphCache, GraphNode, PrerequisiteGraph
from balance_sim.validation.prerequisites import (
    TRACKED_FIELDS,
    PrerequisiteRules,
    TrackedStateReader,
    UntrackedFieldError,
    state_digest,
)
from balance_sim.validation.service import ValidationResult, ValidationService

__all__ = [
    # Graph
    "GraphCache",
    "GraphNode",
    "PrerequisiteGraph",
    # Rules and digest
    "TRACKED_FIELDS",
    "PrerequisiteRules",
    "TrackedStateReader",
    "UntrackedFieldError",
    "state_digest",
    # Service
    "ValidationResult",
    "ValidationService",
]
