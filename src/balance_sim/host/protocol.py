"""Typed, versioned messages between a host and a simulation worker.

Every message is a JSON object carrying ``version`` and ``type``. Requests
flow host -> worker, responses worker -> host. Snapshots inside responses
use the lossless map encoding from ``balance_sim.host.wire``.

Requests:
    init(config), start(speed?), pause, set_speed(speed), get_state, stop

Responses:
    initialized(engine_version), tick(snapshot, events, metrics),
    state(snapshot), completed(reason, snapshot, events, stats), error(detail, fatal)
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from balance_sim import __version__
from balance_sim.config import SimulationConfig
from balance_sim.errors import ProtocolError
from balance_sim.models.actions import SimEvent

PROTOCOL_VERSION = 1


class Message(BaseModel):
    version: int = Field(default=PROTOCOL_VERSION)


# =============================================================================
# Requests
# =============================================================================


class InitRequest(Message):
    type: Literal["init"] = "init"
    config: SimulationConfig = Field(default_factory=SimulationConfig)


class StartRequest(Message):
    type: Literal["start"] = "start"
    speed: float | None = None


class PauseRequest(Message):
    type: Literal["pause"] = "pause"


class SetSpeedRequest(Message):
    type: Literal["set_speed"] = "set_speed"
    speed: float = Field(..., gt=0.0)


class GetStateRequest(Message):
    type: Literal["get_state"] = "get_state"


class StopRequest(Message):
    type: Literal["stop"] = "stop"


Request = Annotated[
    Union[InitRequest, StartRequest, PauseRequest, SetSpeedRequest, GetStateRequest, StopRequest],
    Field(discriminator="type"),
]


# =============================================================================
# Responses
# =============================================================================


class InitializedResponse(Message):
    type: Literal["initialized"] = "initialized"
    engine_version: str = __version__


class TickResponse(Message):
    """Periodic progress report, sent every ``snapshot_every`` ticks.

    ``events`` holds every event since the previous response, so a host that
    concatenates them sees the full event stream.
    """

    type: Literal["tick"] = "tick"
    tick: int
    snapshot: Any
    events: list[SimEvent] = Field(default_factory=list)
    metrics: dict[str, float] = Field(default_factory=dict)


class StateResponse(Message):
    type: Literal["state"] = "state"
    tick: int = 0
    snapshot: Any


class CompletedResponse(Message):
    """The run ended. ``events`` holds every event not yet sent in a tick response."""

    type: Literal["completed"] = "completed"
    reason: str
    snapshot: Any
    events: list[SimEvent] = Field(default_factory=list)
    stats: dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(Message):
    """A request failed. ``fatal`` means the worker has stopped."""

    type: Literal["error"] = "error"
    detail: str
    fatal: bool = False


Response = Annotated[
    Union[InitializedResponse, TickResponse, StateResponse, CompletedResponse, ErrorResponse],
    Field(discriminator="type"),
]

_request_adapter: TypeAdapter = TypeAdapter(Request)
_response_adapter: TypeAdapter = TypeAdapter(Response)


# =============================================================================
# Parsing
# =============================================================================


def _load(text: str | bytes) -> dict:
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise ProtocolError(f"Message is not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise ProtocolError("Message must be a JSON object")
    version = raw.get("version")
    if version != PROTOCOL_VERSION:
        raise ProtocolError(
            f"Unsupported protocol version {version!r} (expected {PROTOCOL_VERSION})"
        )
    return raw


def parse_request(text: str | bytes):
    """Parse and validate a request.

    Raises:
        ProtocolError: On malformed JSON, a version mismatch or an unknown type
    """
    raw = _load(text)
    try:
        return _request_adapter.validate_python(raw)
    except ValidationError as e:
        raise ProtocolError(f"Invalid request: {e}") from e


def parse_response(text: str | bytes):
    """Parse and validate a response.

    Raises:
        ProtocolError: On malformed JSON, a version mismatch or an unknown type
    """
    raw = _load(text)
    try:
        return _response_adapter.validate_python(raw)
    except ValidationError as e:
        raise ProtocolError(f"Invalid response: {e}") from e


def serialize(message: Message) -> str:
    return message.model_dump_json()
