"""Shared pytest fixtures and markers for all tests."""

import pytest


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests that run whole simulations"
    )


@pytest.fixture
def content():
    """Provide the bundled content table."""
    from balance_sim.models.content import default_content
    return default_content()


@pytest.fixture
def parameters():
    """Provide the default parameter set."""
    from balance_sim.models.tuning import SimulationParameters
    return SimulationParameters()


@pytest.fixture
def game_state(parameters):
    """Provide a fresh starting state."""
    from balance_sim.models.state import new_game_state
    return new_game_state(parameters)


@pytest.fixture
def sim_context(content, parameters):
    """Provide a seeded per-run context."""
    from balance_sim.systems.base import SimulationContext
    return SimulationContext.create(content, parameters, seed=7)


@pytest.fixture
def systems(sim_context):
    """Provide every built-in system bound to the shared context."""
    from balance_sim.systems import create_default_systems
    return create_default_systems(sim_context)
