"""Tests for the decision pipeline.

Covers:
1. The filter and can_execute always agree
2. Emergencies narrow the candidate set
3. Scoring order, persona differences and selection
4. Candidates with unowned prerequisites are never chosen
"""

import random

import pytest

from balance_sim.ai.decision import DecisionEngine, detect_emergencies
from balance_sim.ai.filter import ActionFilter
from balance_sim.ai.personas import create_persona_strategy
from balance_sim.ai.scorer import MIN_SCORE, ActionScorer
from balance_sim.engine.state_changes import apply_state_changes, try_apply
from balance_sim.models.actions import ActionType, GameAction, StateChange
from balance_sim.models.persona import get_persona_profile
from balance_sim.models.state import GameTime


def _engine(systems, sim_context, persona="casual", budget=1):
    return DecisionEngine(systems, create_persona_strategy(persona), sim_context, action_budget=budget)


def _with(state, *changes):
    return apply_state_changes(state, list(changes))


def _at_minute(state, minute):
    return state.model_copy(update={"time": GameTime.at(float(minute))})


# =============================================================================
# Filter
# =============================================================================


class TestFilterAgreement:
    """The filter admits exactly what can_execute accepts."""

    def test_filter_matches_can_execute_over_random_play(self, systems, sim_context, game_state) -> None:
        rng = random.Random(3)
        engine = _engine(systems, sim_context)
        action_filter = ActionFilter(systems)
        state = _with(game_state, StateChange.append("progression.unlocked_areas", "town"))

        for _ in range(100):
            context = engine.evaluation_context(state, [])
            candidates = engine.generate(state, context)
            result = action_filter.filter(candidates, state)
            admitted = {a.id for a in result.admitted}
            for action in candidates:
                owner = action_filter.owner(action)
                assert (action.id in admitted) == owner.can_execute(action, state).satisfied
            if result.admitted:
                action = rng.choice(result.admitted)
                outcome = action_filter.owner(action).execute(action, state)
                if outcome.success:
                    state, _ = try_apply(state, outcome.state_changes)
            state = sim_context.processes.tick(5.0, state).state

    def test_duplicate_ids_are_rejected(self, systems, game_state) -> None:
        pump = GameAction(id="pump", action_type=ActionType.PUMP, system="farm", target="well")
        result = ActionFilter(systems).filter([pump, pump], game_state)
        assert [a.id for a in result.admitted] == ["pump"]
        assert result.rejection_reasons() == {"pump": "duplicate candidate id"}

    def test_unknown_system_is_rejected(self, systems, game_state) -> None:
        stray = GameAction(id="x", action_type=ActionType.PUMP, system="nowhere")
        result = ActionFilter(systems).filter([stray], game_state)
        assert result.rejected[0].reason == "no system named 'nowhere'"

    def test_raising_check_becomes_rejection(self, systems, game_state, monkeypatch) -> None:
        farm = next(s for s in systems if s.name == "farm")

        def broken(action, state):
            raise KeyError("plot_9")

        monkeypatch.setattr(farm, "can_execute", broken)
        pump = GameAction(id="pump", action_type=ActionType.PUMP, system="farm", target="well")
        result = ActionFilter(systems).filter([pump], game_state)

        assert result.admitted == []
        assert result.rejected[0].reason.startswith("validation failed in farm")


# =============================================================================
# Emergencies
# =============================================================================


class TestEmergencies:
    """Tests for emergency detection and handling."""

    def test_fresh_state_has_no_emergencies(self, sim_context, game_state) -> None:
        assert detect_emergencies(game_state, sim_context) == []

    def test_water_shortage_chooses_pump(self, systems, sim_context, game_state) -> None:
        state = _with(game_state, StateChange.set("resources.water.current", 10.0))
        outcome = _engine(systems, sim_context).decide(state, tick=1)

        assert outcome.log_entry.emergencies == ["water_shortage"]
        assert [a.id for a in outcome.actions] == ["pump"]

    def test_seed_shortage_heads_for_tower(self, systems, sim_context, game_state) -> None:
        state = _with(game_state, StateChange.set("resources.seeds", {}))
        outcome = _engine(systems, sim_context).decide(state, tick=1)

        assert outcome.log_entry.emergencies == ["seed_shortage"]
        assert outcome.log_entry.chosen_actions == ["move:tower"]

    def test_mining_starvation_detected(self, sim_context, game_state) -> None:
        start = sim_context.processes.start("mining", game_state, mine_id="shallow_mine")
        state = _with(game_state, *start.state_changes)
        state = _with(state, StateChange.set("resources.energy.current", 1.0))
        kinds = [e.kind for e in detect_emergencies(state, sim_context)]
        assert "mining_starvation" in kinds


# =============================================================================
# Scoring
# =============================================================================


class TestScoring:
    """Tests for the scorer and personas."""

    def test_ties_break_on_cost_then_id(self, sim_context, game_state) -> None:
        actions = [
            GameAction(id="b", action_type=ActionType.ASSIGN_ROLE, system="helpers", energy_cost=1),
            GameAction(id="c", action_type=ActionType.ASSIGN_ROLE, system="helpers"),
            GameAction(id="a", action_type=ActionType.ASSIGN_ROLE, system="helpers", energy_cost=1),
        ]
        ranked = ActionScorer(sim_context).rank(actions, game_state)
        assert [s.action.id for s in ranked] == ["c", "a", "b"]
        assert all(s.action.priority == s.breakdown.total for s in ranked)
        assert actions[0].priority is None

    def test_score_never_below_floor(self, sim_context, game_state) -> None:
        idle = GameAction(id="idle", action_type=ActionType.ASSIGN_ROLE, system="helpers")
        weekend = create_persona_strategy("weekend_warrior")
        breakdown = ActionScorer(sim_context).score(idle, game_state, weekend)
        assert breakdown.total >= 1.0

    def test_zero_efficiency_still_scores_the_floor(self, sim_context, game_state) -> None:
        idle = GameAction(id="idle", action_type=ActionType.ASSIGN_ROLE, system="helpers")
        listless = get_persona_profile("casual").model_copy(update={"efficiency": 0.0})
        breakdown = ActionScorer(sim_context).score(idle, game_state, create_persona_strategy(listless))
        assert breakdown.total == MIN_SCORE == 1.0

    def test_learning_rate_weights_helper_actions(self) -> None:
        casual = get_persona_profile("casual")
        eager = create_persona_strategy(casual.model_copy(update={"learning_rate": 1.0}))
        reluctant = create_persona_strategy(casual.model_copy(update={"learning_rate": 0.0}))
        hire = GameAction(id="hire_helper", action_type=ActionType.HIRE_HELPER, system="helpers")
        harvest = GameAction(id="harvest:p0", action_type=ActionType.HARVEST, system="farm")
        assert eager.base_adjustment(hire) == pytest.approx(reluctant.base_adjustment(hire) / 0.8)
        assert eager.base_adjustment(harvest) == reluctant.base_adjustment(harvest)

    def test_personas_weigh_purchases_differently(self, game_state) -> None:
        purchase = GameAction(
            id="purchase:blueprint_hoe",
            action_type=ActionType.PURCHASE,
            system="town",
            target="blueprint_hoe",
            metadata={"category": "blueprint"},
        )
        casual = create_persona_strategy("casual").score_adjustment(purchase, game_state)
        speedrunner = create_persona_strategy("speedrunner").score_adjustment(purchase, game_state)
        assert speedrunner > casual

    def test_only_speedrunner_plays_at_night(self, game_state) -> None:
        night = _at_minute(game_state, 23 * 60)
        assert create_persona_strategy("speedrunner").should_act_now(night, None)
        assert not create_persona_strategy("casual").should_act_now(night, None)

    def test_casual_waits_between_sessions(self, game_state) -> None:
        casual = create_persona_strategy("casual")
        calm = _with(game_state, StateChange.set("resources.energy.current", 50.0))
        start = calm.time.total_minutes
        assert casual.should_act_now(_at_minute(calm, start + 10), start)
        assert not casual.should_act_now(_at_minute(calm, start + 60), start)
        assert casual.should_act_now(_at_minute(calm, start + 320), start)

    def test_full_energy_shortens_the_wait(self, game_state) -> None:
        casual = create_persona_strategy("casual")
        assert casual.effective_interval(game_state) == 15.0

    def test_unknown_persona_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown persona"):
            create_persona_strategy("grinder")


# =============================================================================
# Decisions
# =============================================================================


class TestDecide:
    """Tests for the full pipeline."""

    def test_persona_asleep_does_not_act(self, systems, sim_context, game_state) -> None:
        engine = _engine(systems, sim_context)
        outcome = engine.decide(_at_minute(game_state, 2 * 60), tick=1)
        assert not outcome.acted
        assert engine.log == []

    def test_decisions_are_deterministic(self, systems, sim_context, game_state) -> None:
        first = _engine(systems, sim_context).decide(game_state, tick=1).log_entry
        second = _engine(systems, sim_context).decide(game_state, tick=1).log_entry
        assert first == second

    def test_log_records_candidates_and_rejections(self, systems, sim_context, game_state) -> None:
        entry = _engine(systems, sim_context).decide(game_state, tick=4).log_entry

        scores = [c.score for c in entry.candidates_considered]
        assert scores == sorted(scores, reverse=True)
        assert entry.chosen_actions == [entry.candidates_considered[0].id]
        assert entry.tick == 4
        assert entry.persona_id == "casual"
        rejected = {r.id: r.reason for r in entry.rejected}
        assert "missing cleanup 'clear_weeds'" in rejected["cleanup:clear_rocks"]
        assert set(entry.score_breakdown) == set(entry.chosen_actions)

    def test_budget_picks_distinct_targets(self, systems, sim_context, game_state) -> None:
        outcome = _engine(systems, sim_context, budget=3).decide(game_state, tick=1)
        targets = [a.target or a.id for a in outcome.actions]
        assert len(outcome.actions) == 3
        assert len(set(targets)) == 3

    def test_invalid_budget_raises(self, systems, sim_context) -> None:
        with pytest.raises(ValueError, match="action_budget"):
            _engine(systems, sim_context, budget=0)

    def test_unowned_prerequisite_is_never_chosen(self, systems, sim_context, game_state) -> None:
        state = _with(
            game_state,
            StateChange.append("progression.unlocked_areas", "town"),
            StateChange.set("resources.gold", 500.0),
        )
        engine = _engine(systems, sim_context)

        entry = engine.decide(state, tick=1).log_entry
        rejected = {r.id: r.reason for r in entry.rejected}
        assert "requires hero level 2" in rejected["build:gnome_hut"]
        assert "build:gnome_hut" not in entry.chosen_actions
        assert "build:gnome_hut" not in {c.id for c in entry.candidates_considered}

        leveled = _with(state, StateChange.set("progression.hero_level", 2))
        entry = _engine(systems, sim_context).decide(leveled, tick=2).log_entry
        assert entry.chosen_actions == ["build:gnome_hut"]

    def test_failing_system_is_left_out(self, systems, sim_context, game_state, monkeypatch) -> None:
        tower = next(s for s in systems if s.name == "tower")

        def broken(state, context):
            raise RuntimeError("ladder missing")

        monkeypatch.setattr(tower, "evaluate_actions", broken)
        engine = DecisionEngine(systems, create_persona_strategy("speedrunner"), sim_context)
        outcome = engine.decide(game_state, tick=1)

        assert outcome.acted
        assert [(e.kind, e.data["system"]) for e in outcome.events] == [("system_error", "tower")]
        assert not any(c.id.startswith("move:tower") for c in outcome.log_entry.candidates_considered)
