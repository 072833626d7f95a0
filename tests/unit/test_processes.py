"""Tests for the process manager.

Covers:
1. Concurrency limits: a start at the limit is rejected, nothing is queued
2. Completion fires exactly once, including with float accumulation
3. Starvation, cancellation and handler failures
"""

import pytest

from balance_sim.engine.state_changes import apply_state_changes
from balance_sim.models.actions import StateChange
from balance_sim.models.state import PlotStatus


@pytest.fixture
def manager(sim_context):
    return sim_context.processes


def _start(manager, state, kind, **spec):
    result = manager.start(kind, state, **spec)
    assert result.started, result.reason
    return apply_state_changes(state, result.state_changes), result.process_id


def _watered(state, *plots):
    return apply_state_changes(
        state, [StateChange.set(f"farm.plots.{plot}.water_level", 1.0) for plot in plots]
    )


def _events(result, kind):
    return [e for e in result.events if e.kind == kind]


# =============================================================================
# Starting
# =============================================================================


class TestStart:
    """Tests for starting processes."""

    def test_process_ids_are_sequential(self, manager, game_state) -> None:
        state, first = _start(manager, game_state, "crop_growth", plot_id="plot_1", crop_id="turnip")
        state, second = _start(manager, state, "crop_growth", plot_id="plot_2", crop_id="beet")
        assert (first, second) == ("p00001", "p00002")
        assert state.next_process_number == 3

    def test_start_marks_plot_growing(self, manager, game_state) -> None:
        state, pid = _start(manager, game_state, "crop_growth", plot_id="plot_1", crop_id="turnip")
        assert state.farm.plots["plot_1"].status == PlotStatus.GROWING
        assert state.farm.plots["plot_1"].crop_id == "turnip"
        assert manager.find(state, pid).duration == 10.0

    def test_start_applies_nothing_by_itself(self, manager, game_state) -> None:
        manager.start("crop_growth", game_state, plot_id="plot_1", crop_id="turnip")
        assert game_state.processes == {}

    def test_start_at_limit_is_rejected(self, manager, game_state) -> None:
        state, _ = _start(manager, game_state, "crafting", recipe_id="craft_hoe")
        state, _ = _start(manager, state, "crafting", recipe_id="craft_axe")

        result = manager.start("crafting", state, recipe_id="craft_pickaxe")

        assert not result.started
        assert result.reason == "crafting limit reached (2/2)"
        assert result.state_changes == []
        assert state.process_count("crafting") == 2

    def test_crop_limit_follows_plot_count(self, manager, game_state) -> None:
        state = game_state
        for plot in ("plot_1", "plot_2", "plot_3"):
            state, _ = _start(manager, state, "crop_growth", plot_id=plot, crop_id="turnip")
        allowed, reason = manager.can_start("crop_growth", state, plot_id="plot_1", crop_id="turnip")
        assert not allowed
        assert reason == "crop_growth limit reached (3/3)"

    def test_busy_plot_is_rejected(self, manager, game_state) -> None:
        state, _ = _start(manager, game_state, "crop_growth", plot_id="plot_1", crop_id="turnip")
        allowed, reason = manager.can_start("crop_growth", state, plot_id="plot_1", crop_id="beet")
        assert not allowed
        assert "not empty" in reason

    def test_same_recipe_twice_is_rejected(self, manager, game_state) -> None:
        state, _ = _start(manager, game_state, "crafting", recipe_id="craft_hoe")
        allowed, reason = manager.can_start("crafting", state, recipe_id="craft_hoe")
        assert not allowed
        assert "already being crafted" in reason

    def test_limits_cover_every_kind(self, manager, game_state) -> None:
        limits = manager.registry.limits(game_state, manager.parameters)
        assert limits["crafting"] == 2
        assert limits["mining"] == 1
        assert limits["crop_growth"] == 3

    def test_active_lists_one_kind(self, manager, game_state) -> None:
        state, pid = _start(manager, game_state, "crafting", recipe_id="craft_hoe")
        assert [p.process_id for p in manager.registry.active(state, "crafting")] == [pid]
        assert manager.registry.active(state, "mining") == []


# =============================================================================
# Completion
# =============================================================================


class TestCompletion:
    """Tests for process completion."""

    def test_completes_exactly_once_with_fractional_ticks(self, manager, game_state) -> None:
        state = _watered(game_state, "plot_1")
        state, pid = _start(manager, state, "crop_growth", plot_id="plot_1", crop_id="turnip")

        completions = []
        for tick in range(1, 151):
            result = manager.tick(0.1, state)
            state = result.state
            if pid in result.completed:
                completions.append(tick)

        assert completions == [100]
        assert state.farm.plots["plot_1"].status == PlotStatus.READY
        assert state.process_count("crop_growth") == 0

    def test_completion_event_carries_payload(self, manager, game_state) -> None:
        state = _watered(game_state, "plot_1")
        state, pid = _start(manager, state, "crop_growth", plot_id="plot_1", crop_id="turnip")
        result = manager.tick(10.0, state)
        [event] = _events(result, "process_completed")
        assert event.data["process_id"] == pid
        assert event.data["crop_id"] == "turnip"

    def test_dry_plot_grows_slowly(self, manager, game_state) -> None:
        state, pid = _start(manager, game_state, "crop_growth", plot_id="plot_1", crop_id="turnip")
        state = manager.tick(10.0, state).state
        assert manager.find(state, pid).elapsed == pytest.approx(2.5)

    def test_crafting_consumes_materials_on_completion(self, manager, game_state) -> None:
        state, _ = _start(manager, game_state, "crafting", recipe_id="craft_hoe")
        assert state.resources.materials["wood"] == 25

        state = manager.tick(30.0, state).state

        assert "hoe" in state.inventory.tools
        assert state.resources.materials["wood"] == 20
        assert state.resources.materials["stone"] == 15

    def test_seed_catching_adds_seeds(self, manager, game_state) -> None:
        state, _ = _start(manager, game_state, "seed_catching", wind_level=1, seed_pool=["turnip"])
        result = manager.tick(5.0, state)
        assert result.state.resources.seeds["turnip"] == game_state.resources.seeds["turnip"] + 3


# =============================================================================
# Cancellation and failure
# =============================================================================


class TestCancellation:
    """Tests for cancelled, starved and failing processes."""

    def test_cancel_frees_the_plot(self, manager, game_state) -> None:
        state, pid = _start(manager, game_state, "crop_growth", plot_id="plot_1", crop_id="turnip")
        changes, event = manager.cancel(pid, state, "changed my mind")
        state = apply_state_changes(state, changes)

        assert state.farm.plots["plot_1"].status == PlotStatus.EMPTY
        assert manager.find(state, pid) is None
        assert event.kind == "process_cancelled"
        assert event.data["reason"] == "changed my mind"

    def test_cancel_unknown_process_is_a_no_op(self, manager, game_state) -> None:
        assert manager.cancel("p99999", game_state, "nothing") == ([], None)

    def test_mining_starves_and_keeps_findings(self, manager, game_state) -> None:
        state, pid = _start(manager, game_state, "mining", mine_id="shallow_mine")
        state = manager.tick(10.0, state).state
        found = sum(manager.find(state, pid).found.values())
        assert found >= 1

        state = apply_state_changes(state, [StateChange.set("resources.energy.current", 1.0)])
        result = manager.tick(10.0, state)

        assert result.cancelled == [pid]
        assert _events(result, "process_cancelled")[0].data["reason"] == "out of energy"
        assert result.state.process_count("mining") == 0
        assert result.state.resources.materials["stone"] == game_state.resources.materials["stone"] + found

    def test_crafting_starves_when_materials_are_spent(self, manager, game_state) -> None:
        state, pid = _start(manager, game_state, "crafting", recipe_id="craft_hoe")
        state = apply_state_changes(state, [StateChange.set("resources.materials.wood", 0.0)])
        result = manager.tick(1.0, state)
        assert result.cancelled == [pid]
        assert "hoe" not in result.state.inventory.tools

    def test_failing_handler_does_not_stop_others(self, manager, game_state, monkeypatch) -> None:
        state = _watered(game_state, "plot_1")
        state, crop_pid = _start(manager, state, "crop_growth", plot_id="plot_1", crop_id="turnip")
        state, craft_pid = _start(manager, state, "crafting", recipe_id="craft_hoe")

        def boom(*args, **kwargs):
            raise RuntimeError("forge exploded")

        monkeypatch.setattr(manager.registry.handler("crafting"), "update", boom)
        result = manager.tick(10.0, state)

        assert result.failed == [craft_pid]
        assert result.completed == [crop_pid]
        [error] = _events(result, "process_error")
        assert error.data["error"] == "forge exploded"
        assert manager.find(result.state, craft_pid) is not None
