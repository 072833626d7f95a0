"""Host boundary: versioned protocol, lossless wire form and the threaded worker."""

from balance_sim.host.protocol import (
    PROTOCOL_VERSION,
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
    parse_request,
    parse_response,
    serialize,
)
from balance_sim.host.wire import decode, decode_snapshot, encode, encode_snapshot
from balance_sim.host.worker import SimulationWorker

__all__ = [
    # Protocol
    "PROTOCOL_VERSION",
    "CompletedResponse",
    "ErrorResponse",
    "GetStateRequest",
    "InitializedResponse",
    "InitRequest",
    "PauseRequest",
    "SetSpeedRequest",
    "StartRequest",
    "StateResponse",
    "StopRequest",
    "TickResponse",
    "parse_request",
    "parse_response",
    "serialize",
    # Wire form
    "decode",
    "decode_snapshot",
    "encode",
    "encode_snapshot",
    # Worker
    "SimulationWorker",
]
