"""Lossless wire form for values crossing the host boundary.

JSON objects only allow string keys, and some hosts do not preserve key
order. Every mapping is therefore written as an ordered list of pairs::

    {"__map__": true, "entries": [[key, value], ...]}

Keys keep their JSON type (an int key stays an int) and their order.
Lists are encoded element by element; scalars pass through unchanged.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from balance_sim.errors import ProtocolError
from balance_sim.models.state import GameState

MAP_MARKER = "__map__"


def encode(value: Any) -> Any:
    """Convert ``value`` to its wire form."""
    if isinstance(value, dict):
        return {
            MAP_MARKER: True,
            "entries": [[encode(k), encode(v)] for k, v in value.items()],
        }
    if isinstance(value, (list, tuple)):
        return [encode(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    return value


def _key(raw: Any) -> Any:
    key = decode(raw)
    if isinstance(key, list):
        return tuple(key)
    return key


def decode(value: Any) -> Any:
    """Reverse ``encode``.

    Raises:
        ProtocolError: If an object is not a well-formed map entry list
    """
    if isinstance(value, dict):
        if value.get(MAP_MARKER) is not True or not isinstance(value.get("entries"), list):
            raise ProtocolError(f"Expected an encoded map, got object with keys {sorted(value)}")
        result = {}
        for entry in value["entries"]:
            if not isinstance(entry, list) or len(entry) != 2:
                raise ProtocolError(f"Malformed map entry: {entry!r}")
            result[_key(entry[0])] = decode(entry[1])
        return result
    if isinstance(value, list):
        return [decode(item) for item in value]
    return value


def encode_snapshot(state: GameState) -> Any:
    """Wire form of a full state snapshot."""
    return encode(state.to_dict())


def decode_snapshot(data: Any) -> GameState:
    """Rebuild a GameState from ``encode_snapshot`` output.

    Raises:
        ProtocolError: If the payload is not a valid snapshot
    """
    try:
        return GameState.from_dict(decode(data))
    except ValueError as e:
        raise ProtocolError(f"Invalid snapshot: {e}") from e


def dumps(value: Any) -> str:
    """Encode and serialize to a JSON string."""
    return json.dumps(encode(value))


def loads(text: str) -> Any:
    """Parse a JSON string and decode it."""
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise ProtocolError(f"Message is not valid JSON: {e}") from e
    return decode(raw)
