"""
Deterministic byte encoding of a Snapshot.

The receiver parses the payload without any schema exchange, so the output
must be stable: keys follow record field order, absent fields are written as
null rather than dropped, and the same Snapshot always yields the same bytes.
"""

from __future__ import annotations

import json
import math
from dataclasses import fields, is_dataclass
from datetime import datetime
from typing import Any

from sysnap.records import Snapshot


class SerializationError(Exception):
    """Raised when a snapshot cannot be encoded."""

    pass


def _encode_value(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, datetime):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _encode_value(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, (tuple, list)):
        return [_encode_value(item) for item in value]
    raise SerializationError(f"Cannot serialize value of type {type(value).__name__}")


def to_dict(snapshot: Snapshot) -> dict[str, Any]:
    """Convert a snapshot to an ordered, JSON-ready dictionary."""
    return _encode_value(snapshot)


def serialize(snapshot: Snapshot) -> bytes:
    """
    Encode a snapshot as UTF-8 JSON.

    Args:
        snapshot: The snapshot to encode.

    Returns:
        The encoded bytes.

    Raises:
        SerializationError: If the snapshot holds a value outside the data model.
    """
    try:
        text = json.dumps(to_dict(snapshot), indent=2, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Cannot serialize snapshot: {e}") from e
    return text.encode("utf-8")
