"""Structural hashing of pipeline snapshots.

Analyses are pure functions of the snapshot, so a deterministic hash of its
content is a safe memoization key. Cached display stamps (``has_error``,
``error_message``, ``is_valid``) are excluded: re-stamping a snapshot must not
invalidate its cached analyses.
"""

import hashlib
import json
from typing import TYPE_CHECKING, Any, Dict, Iterable

if TYPE_CHECKING:
    from pipesim.config import Component, Connection

_STAMP_FIELDS = {"has_error", "error_message", "is_valid"}


def _stamp_free_payload(model: Any) -> Dict[str, Any]:
    payload = model.model_dump(mode="json")
    for key in _STAMP_FIELDS:
        payload.pop(key, None)
    return payload


def compute_snapshot_hash(
    components: Iterable["Component"],
    connections: Iterable["Connection"],
) -> str:
    """Compute a deterministic SHA256 hash of a snapshot's structure.

    Array order is part of the hash: it drives tie-breaking in the
    topological order and the per-component sample index.

    Args:
        components: Components in their original order
        connections: Connections in their original order

    Returns:
        SHA256 hex digest string (64 characters)

    Example:
        >>> h1 = compute_snapshot_hash(snapshot.components, snapshot.connections)
        >>> h2 = compute_snapshot_hash(snapshot.components, snapshot.connections)
        >>> assert h1 == h2
    """
    document = {
        "components": [_stamp_free_payload(c) for c in components],
        "connections": [_stamp_free_payload(c) for c in connections],
    }
    encoded = json.dumps(document, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def compute_params_hash(params: Any) -> str:
    """Hash analysis parameters (pydantic model, mapping or scalar)."""
    if hasattr(params, "model_dump"):
        params = params.model_dump(mode="json")
    encoded = json.dumps(params, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()
