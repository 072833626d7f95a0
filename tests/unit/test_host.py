"""Tests for the host wire format and message protocol.

Covers:
1. Lossless map encoding (key types and order survive JSON)
2. Snapshot round-trips of rich states
3. Request/response parsing and protocol version checks
"""

import json

import pytest

from balance_sim.config import SimulationConfig
from balance_sim.engine.state_changes import apply_state_changes
from balance_sim.errors import ProtocolError
from balance_sim.host.protocol import (
    PROTOCOL_VERSION,
    CompletedResponse,
    ErrorResponse,
    InitRequest,
    SetSpeedRequest,
    StartRequest,
    TickResponse,
    parse_request,
    parse_response,
    serialize,
)
from balance_sim.host.wire import (
    MAP_MARKER,
    decode,
    decode_snapshot,
    dumps,
    encode,
    encode_snapshot,
    loads,
)
from balance_sim.models.actions import SimEvent, StateChange
from balance_sim.models.processes import MiningProcess


@pytest.fixture
def rich_state(sim_context, game_state):
    """A state with processes of several kinds, a helper and odd floats."""
    manager = sim_context.processes
    state = game_state
    for kind, spec in [
        ("crop_growth", {"plot_id": "plot_2", "crop_id": "beet"}),
        ("crafting", {"recipe_id": "craft_hoe"}),
        ("mining", {"mine_id": "shallow_mine"}),
        ("adventure", {"route_id": "meadow_path"}),
    ]:
        result = manager.start(kind, state, **spec)
        assert result.started, result.reason
        state = apply_state_changes(state, result.state_changes)
    state = manager.tick(13.0, state).state
    return apply_state_changes(
        state,
        [
            StateChange.put("helpers.gnome_1", {"name": "gnome", "role": "waterer", "level": 2}),
            StateChange.set("resources.energy.current", 100 / 3),
            StateChange.set("location.current_screen", "tower"),
            StateChange.set("location.screen_history", ["farm", "town", "farm"]),
            StateChange.append("progression.unlocked_areas", "town"),
        ],
    )


# =============================================================================
# Wire encoding
# =============================================================================


class TestWireEncoding:
    """Tests for encode/decode."""

    def test_maps_become_ordered_entry_lists(self) -> None:
        assert encode({2: "b", 1: "a"}) == {MAP_MARKER: True, "entries": [[2, "b"], [1, "a"]]}

    def test_int_keys_and_order_survive_json(self) -> None:
        value = {3: {"z": [1, 2]}, 1: {"a": None}, "k": 1.5}
        restored = loads(dumps(value))
        assert restored == value
        assert list(restored) == [3, 1, "k"]

    def test_tuple_keys_come_back_as_tuples(self) -> None:
        assert decode(json.loads(json.dumps(encode({(1, 2): "pair"})))) == {(1, 2): "pair"}

    def test_plain_object_is_rejected(self) -> None:
        with pytest.raises(ProtocolError, match="Expected an encoded map"):
            decode({"a": 1})

    def test_malformed_entry_is_rejected(self) -> None:
        with pytest.raises(ProtocolError, match="Malformed map entry"):
            decode({MAP_MARKER: True, "entries": [["only-key"]]})

    def test_invalid_json_is_rejected(self) -> None:
        with pytest.raises(ProtocolError):
            loads("{not json")


class TestSnapshots:
    """Snapshots are lossless."""

    def test_fresh_state_round_trips(self, game_state) -> None:
        text = json.dumps(encode_snapshot(game_state))
        assert decode_snapshot(json.loads(text)) == game_state

    def test_rich_state_round_trips(self, rich_state) -> None:
        text = json.dumps(encode_snapshot(rich_state))
        restored = decode_snapshot(json.loads(text))

        assert restored == rich_state
        assert list(restored.processes) == list(rich_state.processes)
        assert list(restored.farm.plots) == list(rich_state.farm.plots)
        mining = restored.active_processes("mining")[0]
        assert isinstance(mining, MiningProcess)
        assert mining.found == rich_state.active_processes("mining")[0].found

    def test_invalid_snapshot_is_rejected(self, game_state) -> None:
        payload = encode_snapshot(game_state)
        payload["entries"] = [e for e in payload["entries"] if e[0] != "time"] + [["time", 5]]
        with pytest.raises(ProtocolError, match="Invalid snapshot"):
            decode_snapshot(payload)


# =============================================================================
# Protocol
# =============================================================================


class TestProtocol:
    """Tests for request and response parsing."""

    def test_init_request_round_trips(self) -> None:
        config = SimulationConfig(seed=3, persona="speedrunner", max_days=5)
        request = parse_request(serialize(InitRequest(config=config)))
        assert isinstance(request, InitRequest)
        assert request.config == config

    def test_messages_carry_version(self) -> None:
        raw = json.loads(serialize(StartRequest()))
        assert raw["version"] == PROTOCOL_VERSION
        assert raw["type"] == "start"

    def test_other_version_is_rejected(self) -> None:
        raw = json.loads(serialize(StartRequest()))
        raw["version"] = PROTOCOL_VERSION + 1
        with pytest.raises(ProtocolError, match="Unsupported protocol version"):
            parse_request(json.dumps(raw))

    def test_missing_version_is_rejected(self) -> None:
        with pytest.raises(ProtocolError, match="Unsupported protocol version None"):
            parse_request(json.dumps({"type": "pause"}))

    def test_unknown_type_is_rejected(self) -> None:
        with pytest.raises(ProtocolError, match="Invalid request"):
            parse_request(json.dumps({"version": PROTOCOL_VERSION, "type": "rewind"}))

    def test_non_object_is_rejected(self) -> None:
        with pytest.raises(ProtocolError, match="JSON object"):
            parse_request("[1, 2]")

    def test_speed_must_be_positive(self) -> None:
        with pytest.raises(ProtocolError):
            parse_request(json.dumps({"version": PROTOCOL_VERSION, "type": "set_speed", "speed": 0}))
        assert parse_request(serialize(SetSpeedRequest(speed=4.0))).speed == 4.0

    def test_tick_response_keeps_snapshot_and_events(self, rich_state) -> None:
        message = TickResponse(
            tick=12,
            snapshot=encode_snapshot(rich_state),
            events=[SimEvent(kind="crop_planted", message="Planted beet", data={"plot_id": "plot_2"})],
            metrics={"avg_tick_ms": 0.5},
        )
        parsed = parse_response(serialize(message))
        assert isinstance(parsed, TickResponse)
        assert decode_snapshot(parsed.snapshot) == rich_state
        assert parsed.events[0].data == {"plot_id": "plot_2"}

    def test_response_types_are_discriminated(self, game_state) -> None:
        completed = CompletedResponse(reason="victory", snapshot=encode_snapshot(game_state))
        assert isinstance(parse_response(serialize(completed)), CompletedResponse)
        error = parse_response(serialize(ErrorResponse(detail="boom", fatal=True)))
        assert isinstance(error, ErrorResponse) and error.fatal
