"""Integration tests for the background simulation worker.

The worker runs on its own thread and only speaks JSON through its queues,
so every test here drives it exactly as a host would.
"""

import json

import pytest

from balance_sim import __version__
from balance_sim.config import SimulationConfig
from balance_sim.engine.simulation import SimulationEngine, create_simulation
from balance_sim.host.protocol import (
    CompletedResponse,
    ErrorResponse,
    GetStateRequest,
    InitializedResponse,
    InitRequest,
    PauseRequest,
    SetSpeedRequest,
    StartRequest,
    StateResponse,
    StopRequest,
    TickResponse,
)
from balance_sim.host.wire import decode_snapshot
from balance_sim.host.worker import SimulationWorker
from balance_sim.models.state import new_game_state

pytestmark = pytest.mark.integration

TIMEOUT = 10.0


def receive_until(worker, response_type, timeout=TIMEOUT):
    """Read responses until one of ``response_type`` arrives; returns it and the skipped ones."""
    skipped = []
    while True:
        response = worker.receive(timeout=timeout)
        if isinstance(response, response_type):
            return response, skipped
        skipped.append(response)


@pytest.fixture
def worker():
    worker = SimulationWorker(name="test-worker")
    worker.start()
    yield worker
    if worker.is_alive:
        worker.send(StopRequest())
        worker.join(timeout=TIMEOUT)


def _init(worker, **config):
    worker.send(InitRequest(config=SimulationConfig(seed=3, **config)))
    response = worker.receive(timeout=TIMEOUT)
    assert isinstance(response, InitializedResponse)
    return response


# =============================================================================
# Lifecycle
# =============================================================================


class TestLifecycle:
    """Tests for init, start, pause and stop."""

    def test_init_reports_engine_version(self, worker) -> None:
        response = _init(worker)
        assert response.engine_version == __version__
        assert response.version == 1

    def test_initial_state_round_trips(self, worker) -> None:
        _init(worker)
        worker.send(GetStateRequest())
        response, _ = receive_until(worker, StateResponse)
        assert response.tick == 0
        assert decode_snapshot(response.snapshot) == new_game_state()

    def test_start_streams_ticks(self, worker) -> None:
        _init(worker, snapshot_every=5)
        worker.send(StartRequest())
        first, _ = receive_until(worker, TickResponse)
        second, _ = receive_until(worker, TickResponse)

        assert first.tick % 5 == 0
        assert second.tick == first.tick + 5
        assert decode_snapshot(second.snapshot).time.total_minutes > 480
        assert second.metrics["tick"] == float(second.tick)
        assert "avg_tick_ms" in second.metrics

    def test_pause_freezes_the_run(self, worker) -> None:
        _init(worker, snapshot_every=5)
        worker.send(StartRequest())
        receive_until(worker, TickResponse)

        worker.send(PauseRequest())
        worker.send(GetStateRequest())
        paused, _ = receive_until(worker, StateResponse)
        worker.send(GetStateRequest())
        again, skipped = receive_until(worker, StateResponse)

        assert again.tick == paused.tick
        assert skipped == []

    def test_stop_reports_manual_completion(self, worker) -> None:
        _init(worker)
        worker.send(StartRequest())
        worker.send(StopRequest())
        completed, _ = receive_until(worker, CompletedResponse)

        assert completed.reason == "manual"
        assert completed.stats["persona"] == "casual"
        worker.join(timeout=TIMEOUT)
        assert not worker.is_alive

    def test_stop_before_init_exits_quietly(self, worker) -> None:
        worker.send(StopRequest())
        worker.join(timeout=TIMEOUT)
        assert not worker.is_alive
        assert worker.responses.empty()

    def test_run_to_completion(self, worker) -> None:
        _init(worker, max_days=1, tick_minutes=30.0, snapshot_every=1000)
        worker.send(StartRequest())
        completed, skipped = receive_until(worker, CompletedResponse)

        assert completed.reason == "max_days"
        assert decode_snapshot(completed.snapshot).time.day == 2
        assert not any(isinstance(r, ErrorResponse) for r in skipped)

    def test_host_receives_every_event(self, worker) -> None:
        config = SimulationConfig(
            seed=1, persona="speedrunner", max_days=1, tick_minutes=10.0, snapshot_every=7
        )
        expected = create_simulation(config).run()

        worker.send(InitRequest(config=config))
        assert isinstance(worker.receive(timeout=TIMEOUT), InitializedResponse)
        worker.send(StartRequest())
        completed, skipped = receive_until(worker, CompletedResponse)

        received = [e for r in skipped if isinstance(r, TickResponse) for e in r.events]
        received += completed.events
        assert completed.reason == expected.termination.value
        assert len(received) == len(expected.events)
        assert [(e.kind, e.message, e.minute) for e in received] == [
            (e.kind, e.message, e.minute) for e in expected.events
        ]

    def test_stop_flushes_buffered_events(self, worker) -> None:
        _init(worker, persona="speedrunner", snapshot_every=1000)
        worker.send(StartRequest())
        worker.send(PauseRequest())
        worker.send(GetStateRequest())
        paused, skipped = receive_until(worker, StateResponse)
        assert not any(isinstance(r, TickResponse) for r in skipped)

        worker.send(StopRequest())
        completed, _ = receive_until(worker, CompletedResponse)
        assert completed.reason == "manual"
        direct = create_simulation(SimulationConfig(seed=3, persona="speedrunner", snapshot_every=1000))
        expected = direct.run(max_ticks=paused.tick).events
        assert [e.kind for e in completed.events] == [e.kind for e in expected]

    def test_worker_cannot_start_twice(self, worker) -> None:
        with pytest.raises(RuntimeError, match="already started"):
            worker.start()


# =============================================================================
# Speed
# =============================================================================


class TestSpeed:
    """Tests for speed requests."""

    def test_set_speed_rescales_snapshots(self, worker) -> None:
        _init(worker, snapshot_every=60)
        worker.send(SetSpeedRequest(speed=10.0))
        worker.send(StartRequest())
        first, _ = receive_until(worker, TickResponse)
        second, _ = receive_until(worker, TickResponse)

        assert second.tick - first.tick == 6
        assert second.metrics["speed"] == 10.0

    def test_start_with_speed_is_clamped(self, worker) -> None:
        _init(worker, snapshot_every=1)
        worker.send(StartRequest(speed=50000.0))
        tick, _ = receive_until(worker, TickResponse)
        assert tick.metrics["speed"] == 1000.0


# =============================================================================
# Errors
# =============================================================================


class TestErrors:
    """Tests for rejected and failing requests."""

    def test_request_before_init(self, worker) -> None:
        worker.send(StartRequest())
        response = worker.receive(timeout=TIMEOUT)
        assert isinstance(response, ErrorResponse)
        assert "before init" in response.detail
        assert not response.fatal

    def test_wrong_protocol_version(self, worker) -> None:
        worker.send(json.dumps({"version": 2, "type": "get_state"}))
        response = worker.receive(timeout=TIMEOUT)
        assert isinstance(response, ErrorResponse)
        assert "Unsupported protocol version" in response.detail

    def test_garbage_message_keeps_worker_alive(self, worker) -> None:
        worker.send("not json at all")
        assert isinstance(worker.receive(timeout=TIMEOUT), ErrorResponse)
        _init(worker)

    def test_failed_init(self, worker, tmp_path) -> None:
        worker.send(InitRequest(config=SimulationConfig(content_dir=str(tmp_path))))
        response = worker.receive(timeout=TIMEOUT)
        assert isinstance(response, ErrorResponse)
        assert response.detail.startswith("Initialization failed")

        worker.send(GetStateRequest())
        assert isinstance(worker.receive(timeout=TIMEOUT), ErrorResponse)

    def test_crash_is_fatal(self, worker, monkeypatch) -> None:
        def boom(self):
            raise RuntimeError("engine exploded")

        monkeypatch.setattr(SimulationEngine, "tick", boom)
        _init(worker)
        worker.send(StartRequest())
        response, _ = receive_until(worker, ErrorResponse)

        assert response.fatal
        assert response.detail == "engine exploded"
        worker.join(timeout=TIMEOUT)
        assert not worker.is_alive
