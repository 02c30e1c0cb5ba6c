from __future__ import annotations

import json
from typing import Any, Iterable, Mapping


def canonical_json(payload: Any) -> str:
    """
    Serialize payload using deterministic ordering and formatting.
    """
    return json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def join_csv(value: str | Iterable[str] | None) -> str | None:
    """Accept a scalar or a sequence of ids and return the comma-joined form."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return ",".join(str(v) for v in value)


def cache_key(endpoint: str, params: Mapping[str, Any] | None = None) -> str:
    """
    Build a cache key from an endpoint name and its effective arguments.

    None-valued params are dropped and the rest is serialized with sorted
    keys, so two calls carrying the same options in a different order land on
    the same entry.
    """
    if not params:
        return endpoint
    effective = {k: v for k, v in params.items() if v is not None}
    if not effective:
        return endpoint
    return f"{endpoint}:{canonical_json(effective)}"
