"""Integration tests for the simulation engine.

Covers:
1. Determinism for a fixed seed, persona and parameters
2. The casual farming day: planting and tending with a short seed supply
3. Termination: victory, stuck, max days, manual stop, errors
4. Speed, live overrides and failing systems
"""

import pytest

from balance_sim.config import SimulationConfig
from balance_sim.engine.simulation import TerminationReason, create_simulation
from balance_sim.engine.state_changes import apply_state_changes
from balance_sim.errors import ContentError, OverrideError, SimulationError
from balance_sim.models.actions import StateChange
from balance_sim.models.content import ContentItem, ContentTable
from balance_sim.models.overrides import OverrideSet, ParameterOverride
from balance_sim.models.state import GameState, check_invariants, new_game_state

pytestmark = pytest.mark.integration


def _overrides(**paths):
    return OverrideSet(
        overrides=tuple(
            ParameterOverride(path=path.replace("__", "."), value=value) for path, value in paths.items()
        )
    )


def _casual_farm_state():
    """Three plots, six turnip seeds, an empty well and only the farm open."""
    return apply_state_changes(
        new_game_state(),
        [
            StateChange.set("resources.seeds", {"turnip": 6}),
            StateChange.set("resources.water.current", 0.0),
            StateChange.set("progression.unlocked_areas", ["farm"]),
        ],
    )


# =============================================================================
# Determinism
# =============================================================================


class TestDeterminism:
    """Same seed, persona and parameters give the same run."""

    def test_identical_runs(self) -> None:
        config = SimulationConfig(seed=11, persona="speedrunner", tick_minutes=5.0)
        first = create_simulation(config).run(max_ticks=400)
        second = create_simulation(config).run(max_ticks=400)

        assert first.final_state == second.final_state
        assert first.decision_log == second.decision_log
        assert [e.kind for e in first.events] == [e.kind for e in second.events]

    def test_personas_play_differently(self) -> None:
        casual = create_simulation(SimulationConfig(seed=2, persona="casual")).run(max_ticks=600)
        speedrunner = create_simulation(SimulationConfig(seed=2, persona="speedrunner")).run(max_ticks=600)
        assert len(speedrunner.decision_log) > len(casual.decision_log)

    def test_invariants_hold_every_tick(self) -> None:
        engine = create_simulation(SimulationConfig(seed=4, persona="speedrunner", tick_minutes=5.0))
        for _ in range(600):
            result = engine.tick()
            assert check_invariants(result.state) == []
            if result.termination is not None:
                break


# =============================================================================
# Casual farming day
# =============================================================================


class TestCasualFarmingDay:
    """One simulated day of a casual player with six seeds and no water."""

    @pytest.fixture
    def result(self):
        config = SimulationConfig(
            seed=1,
            persona="casual",
            initial_state=_casual_farm_state(),
            overrides=_overrides(progression__screen_unlock_levels__tower=99),
        )
        engine = create_simulation(config)
        while engine.state.time.day < 2 and not engine.is_finished:
            engine.tick()
        return engine.result()

    def test_plants_and_tends_crops(self, result) -> None:
        chosen = [entry.chosen_action for entry in result.decision_log if entry.chosen_action]
        assert any(action.startswith("plant:turnip:") for action in chosen)
        assert any(action.startswith(("water:", "harvest:")) for action in chosen)

    def test_seed_count_drops_by_plantings(self, result) -> None:
        planted = result.stats["event_counts"].get("crop_planted", 0)
        assert planted >= 1
        assert result.final_state.resources.seeds.get("turnip", 0) == 6 - planted

    def test_empty_well_is_handled_first(self, result) -> None:
        first = result.decision_log[0]
        assert first.emergencies[0] == "water_shortage"
        assert first.chosen_actions == ["pump"]

    def test_day_ends_without_termination(self, result) -> None:
        assert result.termination is None
        assert result.days == 2


# =============================================================================
# Termination
# =============================================================================


class TestTermination:
    """Tests for the termination conditions."""

    def test_victory(self) -> None:
        config = SimulationConfig(seed=1, overrides=_overrides(termination__victory_plots=5))
        result = create_simulation(config).run(max_ticks=500)
        assert result.termination == TerminationReason.VICTORY
        assert result.final_state.progression.farm_plots >= 5

    def test_max_days(self) -> None:
        result = create_simulation(SimulationConfig(seed=1, max_days=1, tick_minutes=10.0)).run()
        assert result.termination == TerminationReason.MAX_DAYS
        assert result.days == 2
        assert result.stats["termination"] == "max_days"

    def test_stuck_without_energy(self) -> None:
        state = apply_state_changes(
            new_game_state(),
            [
                StateChange.set("resources.energy.current", 0.0),
                StateChange.set("resources.energy.regen_rate", 0.0),
            ],
        )
        config = SimulationConfig(
            seed=1,
            tick_minutes=10.0,
            initial_state=state,
            overrides=_overrides(termination__stuck_days=1),
        )
        result = create_simulation(config).run()
        assert result.termination == TerminationReason.STUCK
        assert result.days == 2

    def test_manual_stop(self) -> None:
        engine = create_simulation(SimulationConfig(seed=1))
        engine.tick()
        engine.stop()
        result = engine.tick()
        assert result.termination == TerminationReason.MANUAL
        with pytest.raises(RuntimeError, match="already terminated"):
            engine.tick()

    def test_max_ticks_leaves_run_open(self) -> None:
        result = create_simulation(SimulationConfig(seed=1)).run(max_ticks=5)
        assert result.termination is None
        assert result.ticks == 5

    def test_scorer_failure_ends_run_with_error(self, monkeypatch) -> None:
        engine = create_simulation(SimulationConfig(seed=1, persona="speedrunner"))

        def boom(candidates, state, persona):
            raise RuntimeError("scorer blew up")

        monkeypatch.setattr(engine.decision.scorer, "rank", boom)
        result = engine.tick()
        assert result.termination == TerminationReason.ERROR
        assert [e.kind for e in result.events][-1] == "simulation_error"


# =============================================================================
# System isolation
# =============================================================================


def _system(engine, name):
    return next(system for system in engine.systems if system.name == name)


class TestSystemIsolation:
    """A system that raises is skipped; the run keeps going."""

    def test_failing_candidate_generation(self, monkeypatch) -> None:
        engine = create_simulation(SimulationConfig(seed=1, persona="speedrunner"))

        def broken(state, context):
            raise RuntimeError("shop catalogue missing")

        monkeypatch.setattr(_system(engine, "town"), "evaluate_actions", broken)
        result = engine.tick()

        assert result.termination is None
        errors = [e for e in result.events if e.kind == "system_error"]
        assert [e.data["system"] for e in errors] == ["town"]
        assert result.decision.acted
        assert result.decision.actions
        assert all(action.system != "town" for action in result.decision.actions)
        engine.run(max_ticks=20)
        assert engine.termination is None

    def test_failing_emergency_actions(self, monkeypatch) -> None:
        state = apply_state_changes(
            new_game_state(), [StateChange.set("resources.water.current", 0.0)]
        )
        engine = create_simulation(SimulationConfig(seed=1, persona="speedrunner", initial_state=state))

        def broken(state, emergencies):
            raise RuntimeError("pump handle snapped")

        monkeypatch.setattr(_system(engine, "farm"), "emergency_actions", broken)
        result = engine.tick()

        assert result.termination is None
        assert any(e.kind == "system_error" and e.data["system"] == "farm" for e in result.events)
        assert result.decision.log_entry.emergencies == ["water_shortage"]

    def test_failing_validation_rejects_candidates(self, monkeypatch) -> None:
        engine = create_simulation(SimulationConfig(seed=1, persona="speedrunner"))
        farm = _system(engine, "farm")

        def broken(action, state):
            raise RuntimeError("rulebook unreadable")

        monkeypatch.setattr(farm, "can_execute", broken)
        result = engine.tick()

        assert result.termination is None
        entry = result.decision.log_entry
        farm_rejections = [r for r in entry.rejected if r.reason.startswith("validation failed in farm")]
        assert farm_rejections
        assert all(not action_id.startswith(("plant:", "pump")) for action_id in entry.chosen_actions)

    def test_failing_execute_becomes_action_failure(self, monkeypatch) -> None:
        engine = create_simulation(SimulationConfig(seed=1, persona="speedrunner"))

        def broken(action, state):
            raise RuntimeError("tool broke mid-swing")

        for system in engine.systems:
            monkeypatch.setattr(system, "execute", broken)
        result = engine.tick()

        assert result.termination is None
        failures = [e for e in result.events if e.kind == "action_failed"]
        assert failures
        assert "tool broke mid-swing" in failures[0].message
        assert result.executed_actions == []
        assert engine.stats()["actions_executed"] == 0


# =============================================================================
# Controls
# =============================================================================


class TestControls:
    """Tests for speed, overrides and fault isolation."""

    def test_speed_scales_simulated_time(self) -> None:
        engine = create_simulation(SimulationConfig(seed=1))
        start = engine.state.time.total_minutes
        assert engine.set_speed(10.0) == 10.0
        result = engine.tick()
        assert result.delta_minutes == 10.0
        assert engine.state.time.total_minutes == start + 10.0
        assert engine.state.time.speed == 10.0

    def test_speed_is_clamped(self) -> None:
        engine = create_simulation(SimulationConfig(seed=1))
        assert engine.set_speed(0.0) == 0.1
        assert engine.set_speed(1e9) == 1000.0

    def test_overrides_apply_on_next_tick(self) -> None:
        engine = create_simulation(SimulationConfig(seed=1))
        engine.set_overrides(_overrides(water__evaporation_per_minute=0.05))
        assert engine.parameters.water.evaporation_per_minute != 0.05

        engine.tick()
        assert engine.parameters.water.evaporation_per_minute == 0.05
        assert engine.context.validation.parameters is engine.parameters

    def test_bad_override_is_rejected_immediately(self) -> None:
        engine = create_simulation(SimulationConfig(seed=1))
        before = engine.parameters
        with pytest.raises(OverrideError):
            engine.set_overrides(_overrides(water__no_such_knob=1))
        engine.tick()
        assert engine.parameters is before

    def test_failing_system_is_isolated(self, monkeypatch) -> None:
        engine = create_simulation(SimulationConfig(seed=1))
        farm = engine.systems[0]

        def broken_tick(delta, state):
            raise ValueError("sprinkler jammed")

        monkeypatch.setattr(farm, "tick", broken_tick)
        result = engine.tick()
        errors = [e for e in result.events if e.kind == "system_error"]
        assert errors[0].data["system"] == "farm"
        assert result.termination is None
        engine.tick()

    def test_snapshot_is_a_copy(self) -> None:
        engine = create_simulation(SimulationConfig(seed=1))
        snapshot = engine.snapshot()
        snapshot.resources.gold = 0.0
        assert engine.state.resources.gold != 0.0

    def test_stats_keys(self) -> None:
        stats = create_simulation(SimulationConfig(seed=1)).run(max_ticks=30).stats
        assert set(stats) == {
            "persona",
            "termination",
            "ticks",
            "days",
            "total_minutes",
            "decisions",
            "actions_executed",
            "actions_failed",
            "farm_plots",
            "hero_level",
            "gold",
            "seeds",
            "event_counts",
        }


# =============================================================================
# Factory
# =============================================================================


class TestCreateSimulation:
    """Tests for create_simulation."""

    def test_invalid_initial_state_is_rejected(self) -> None:
        state = new_game_state()
        state.progression.farm_plots = 4
        with pytest.raises(SimulationError, match="Initial state is invalid"):
            create_simulation(SimulationConfig(initial_state=state))

    def test_cyclic_cleanup_chain_is_rejected(self) -> None:
        content = ContentTable(
            ContentItem.model_validate(row)
            for row in [
                {"id": "turnip", "type": "crop", "time": 10},
                {"id": "clear_a", "type": "cleanup", "prerequisites": "clear_b"},
                {"id": "clear_b", "type": "cleanup", "prerequisites": "clear_a"},
            ]
        )
        with pytest.raises(ContentError, match="cycle"):
            create_simulation(SimulationConfig(), content=content)

    def test_unknown_persona_is_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown persona"):
            create_simulation(SimulationConfig(persona="grinder"))

    def test_saved_state_resumes(self, tmp_path) -> None:
        first = create_simulation(SimulationConfig(seed=5, persona="speedrunner")).run(max_ticks=40)
        saved = tmp_path / "state.json"
        saved.write_text(first.final_state.to_json())

        restored = GameState.from_json(saved.read_text())
        assert restored == first.final_state
        engine = create_simulation(SimulationConfig(seed=5, persona="speedrunner", initial_state=restored))
        assert engine.state.time.total_minutes == first.final_state.time.total_minutes
        engine.run(max_ticks=10)
        assert engine.state.time.total_minutes > first.final_state.time.total_minutes

    def test_content_dir_is_loaded(self, tmp_path) -> None:
        (tmp_path / "content.csv").write_text(
            "id,type,time,energy_cost,plots_added\n"
            "turnip,crop,10,,\n"
            "clear_weeds,cleanup,,15,2\n"
        )
        engine = create_simulation(SimulationConfig(seed=1, content_dir=str(tmp_path)))
        assert len(engine.context.content) == 2
        engine.run(max_ticks=10)
