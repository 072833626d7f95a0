"""Autonomous balance simulator for a farming game.

Submodules are imported directly, e.g.
``from balance_sim.engine.simulation import create_simulation``.
"""

__version__ = "0.1.0"
