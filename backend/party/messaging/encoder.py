"""
MessagePack codec for WebSocket frames.

Outgoing messages are plain dicts (usually a pydantic ``model_dump()``);
incoming frames must decode to a map and stay within the size limits below.
"""

from typing import Any

import msgpack


def _normalize(obj: object) -> object:
    """Turn tuples into lists and non-string map keys into strings, recursively."""
    if isinstance(obj, dict):
        return {k if isinstance(k, str) else str(k): _normalize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_normalize(item) for item in obj]
    return obj


def encode(data: dict[str, Any]) -> bytes:
    return msgpack.packb(_normalize(data))


class DecodeError(Exception):
    """Frame is not valid MessagePack, not a map, or over a size limit."""


# Client frames are small commands; anything near these limits is hostile.
MAX_BUFFER_LEN = 64 * 1024
MAX_STR_LEN = 4 * 1024
MAX_BIN_LEN = 1024
MAX_ARRAY_LEN = 256
MAX_MAP_LEN = 64
MAX_EXT_LEN = 0


def decode(data: bytes) -> dict[str, Any]:
    """
    Decode one client frame.

    Raises DecodeError if data is invalid, not a map, or exceeds size limits.
    """
    if len(data) > MAX_BUFFER_LEN:
        raise DecodeError(f"payload too large: {len(data)} bytes (max {MAX_BUFFER_LEN})")
    try:
        result = msgpack.unpackb(
            data,
            raw=False,
            max_str_len=MAX_STR_LEN,
            max_bin_len=MAX_BIN_LEN,
            max_array_len=MAX_ARRAY_LEN,
            max_map_len=MAX_MAP_LEN,
            max_ext_len=MAX_EXT_LEN,
        )
    except (msgpack.UnpackException, ValueError) as e:
        raise DecodeError(f"failed to decode MessagePack data: {e}") from e

    if not isinstance(result, dict):
        raise DecodeError(f"expected map, got {type(result).__name__}")

    return result
