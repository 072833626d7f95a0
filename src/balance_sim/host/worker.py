"""Background simulation worker.

A ``SimulationWorker`` runs one engine on its own thread. The host talks to
it only through two queues of JSON strings, so no object is ever shared
between the threads:

    host --commands--> worker --responses--> host

Every tick's events reach the host: tick responses carry all events since
the previous response, and the completed response carries the rest.

Commands are handled between ticks. While paused (or before ``start``) the
worker thread blocks on the command queue; that is its only suspension
point, which keeps pause and stop cooperative.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections import deque

from balance_sim.engine.simulation import SimulationEngine, create_simulation
from balance_sim.errors import ProtocolError, SimulationError
from balance_sim.host.protocol import (
    CompletedResponse,
    ErrorResponse,
    GetStateRequest,
    InitializedResponse,
    InitRequest,
    Message,
    PauseRequest,
    SetSpeedRequest,
    StartRequest,
    StateResponse,
    StopRequest,
    TickResponse,
    parse_request,
    parse_response,
    serialize,
)
from balance_sim.host.wire import encode_snapshot
from balance_sim.models.actions import SimEvent

logger = logging.getLogger(__name__)

TICK_TIME_WINDOW = 100
"""Recent tick durations kept for the average in tick metrics."""


class SimulationWorker:
    """Runs a simulation on a dedicated thread, driven by JSON messages."""

    def __init__(self, name: str = "simulation-worker"):
        self.name = name
        self.commands: queue.Queue[str] = queue.Queue()
        self.responses: queue.Queue[str] = queue.Queue()
        self._thread: threading.Thread | None = None

        # Owned by the worker thread once started
        self._engine: SimulationEngine | None = None
        self._running = False
        self._snapshot_every = 1
        self._tick_times: deque[float] = deque(maxlen=TICK_TIME_WINDOW)
        # Events since the last tick or completed response
        self._pending_events: list[SimEvent] = []

    # -------------------------------------------------------------------------
    # Host side
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start the worker thread."""
        if self._thread is not None:
            raise RuntimeError("Worker already started")
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def send(self, message: Message | str) -> None:
        """Queue a request (a protocol message or its JSON text)."""
        self.commands.put(message if isinstance(message, str) else serialize(message))

    def receive(self, timeout: float | None = None):
        """Next response from the worker.

        Raises:
            queue.Empty: If nothing arrives within ``timeout`` seconds
        """
        return parse_response(self.responses.get(timeout=timeout))

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Worker thread
    # -------------------------------------------------------------------------

    def _emit(self, message: Message) -> None:
        self.responses.put(serialize(message))

    def _run(self) -> None:
        logger.info(f"Worker {self.name} started")
        alive = True
        while alive:
            if self._running:
                alive = self._drain_commands()
                if alive and self._running:
                    alive = self._step()
            else:
                alive = self._handle(self.commands.get())
        logger.info(f"Worker {self.name} exited")

    def _drain_commands(self) -> bool:
        while True:
            try:
                text = self.commands.get_nowait()
            except queue.Empty:
                return True
            if not self._handle(text):
                return False

    def _handle(self, text: str) -> bool:
        """Handle one request; returns False when the thread should exit."""
        try:
            request = parse_request(text)
        except ProtocolError as e:
            logger.warning(f"Worker {self.name} rejected message: {e}")
            self._emit(ErrorResponse(detail=str(e)))
            return True

        if isinstance(request, InitRequest):
            self._init(request)
        elif isinstance(request, StopRequest):
            self._running = False
            if self._engine is not None:
                self._engine.stop()
                self._emit(self._completed("manual"))
            return False
        elif self._engine is None:
            self._emit(ErrorResponse(detail=f"Cannot handle '{request.type}' before init"))
        elif isinstance(request, StartRequest):
            if request.speed is not None:
                self._set_speed(request.speed)
            self._running = not self._engine.is_finished
        elif isinstance(request, PauseRequest):
            self._running = False
        elif isinstance(request, SetSpeedRequest):
            self._set_speed(request.speed)
        elif isinstance(request, GetStateRequest):
            self._emit(
                StateResponse(
                    tick=self._engine.tick_count,
                    snapshot=encode_snapshot(self._engine.state),
                )
            )
        return True

    def _init(self, request: InitRequest) -> None:
        try:
            self._engine = create_simulation(request.config)
        except (SimulationError, ValueError) as e:
            logger.warning(f"Worker {self.name} failed to initialize: {e}")
            self._engine = None
            self._emit(ErrorResponse(detail=f"Initialization failed: {e}"))
            return
        self._running = False
        self._tick_times.clear()
        self._pending_events = []
        self._set_speed(request.config.speed)
        self._emit(InitializedResponse())

    def _set_speed(self, speed: float) -> None:
        """Apply ``speed`` and rescale the snapshot interval to match."""
        speed = self._engine.set_speed(speed)
        self._snapshot_every = max(1, round(self._engine.config.snapshot_every / speed))

    def _step(self) -> bool:
        engine = self._engine
        started = time.perf_counter()
        try:
            result = engine.tick()
        except Exception as e:
            logger.exception(f"Worker {self.name} crashed at tick {engine.tick_count}")
            self._running = False
            self._emit(ErrorResponse(detail=str(e), fatal=True))
            return False
        self._tick_times.append((time.perf_counter() - started) * 1000)
        self._pending_events.extend(result.events)

        if result.termination is not None:
            self._running = False
            self._emit(self._completed(result.termination.value))
        elif result.tick % self._snapshot_every == 0:
            self._emit(
                TickResponse(
                    tick=result.tick,
                    snapshot=encode_snapshot(result.state),
                    events=self._take_events(),
                    metrics=self._metrics(),
                )
            )
        return True

    def _metrics(self) -> dict[str, float]:
        engine = self._engine
        average = sum(self._tick_times) / len(self._tick_times) if self._tick_times else 0.0
        return {
            "tick": float(engine.tick_count),
            "day": float(engine.state.time.day),
            "speed": engine.speed,
            "avg_tick_ms": average,
            "decisions": float(len(engine.decision.log)),
        }

    def _take_events(self) -> list[SimEvent]:
        events, self._pending_events = self._pending_events, []
        return events

    def _completed(self, reason: str) -> CompletedResponse:
        engine = self._engine
        return CompletedResponse(
            reason=reason,
            snapshot=encode_snapshot(engine.state),
            events=self._take_events(),
            stats=engine.stats(),
        )
