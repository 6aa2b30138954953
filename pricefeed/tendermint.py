"""Reading block heights from NewBlock websocket events."""

from __future__ import annotations

import json
from typing import Any

_MAX_UINT64 = 2**64 - 1


def _object(value: Any, field: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"field {field!r} must be an object")
    return value


def _parse_uint64(text: str) -> int:
    if not (text.isascii() and text.isdigit()):
        raise ValueError(f"invalid block height: {text!r}")
    value = int(text)
    if value > _MAX_UINT64:
        raise ValueError(f"block height out of range: {text!r}")
    return value


def get_block_height(msg: bytes | str) -> int:
    """Return the block height in a NewBlock event, or 0 if it carries none.

    Raises ValueError if the message is not valid JSON of the expected shape
    or the height is not an unsigned 64-bit integer.
    """
    document = json.loads(msg)
    root = _object(document, "message")
    if "id" in root and root["id"] is not None:
        if not isinstance(root["id"], int) or isinstance(root["id"], bool):
            raise ValueError("field 'id' must be an integer")

    node = root
    for field in ("result", "data", "value", "block", "header"):
        node = _object(node.get(field), field)

    height = node.get("height")
    if height is None or height == "":
        return 0
    if not isinstance(height, str):
        raise ValueError("field 'height' must be a string")
    return _parse_uint64(height)