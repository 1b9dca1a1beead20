"""Upstream/downstream closure for a selected component."""

from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Set

from pipesim.config import Connection
from pipesim.graph import PipelineGraph
from pipesim.utils.logging import get_logger


@dataclass
class Reachability:
    """Transitive closure around ``selected``.

    ``upstream`` and ``downstream`` never contain ``selected`` itself.
    ``connections`` holds the ids of resolved connections lying on a
    highlighted path (both endpoints in the closure or the selection).
    """

    selected: str
    upstream: List[str] = field(default_factory=list)
    downstream: List[str] = field(default_factory=list)
    connections: List[str] = field(default_factory=list)


def _closure(start: str, index: Dict[str, List[Connection]], forward: bool) -> List[str]:
    visited: Set[str] = {start}
    found: List[str] = []
    queue = deque([start])

    while queue:
        current = queue.popleft()
        for connection in index.get(current, []):
            neighbor = connection.target if forward else connection.source
            if neighbor not in visited:
                visited.add(neighbor)
                found.append(neighbor)
                queue.append(neighbor)

    return found


def reachability(graph: PipelineGraph, selected_id: str) -> Reachability:
    """Compute the upstream and downstream closure of ``selected_id``.

    Terminates on cyclic graphs. Dangling connections are not part of the
    indices and are therefore never followed.

    Raises:
        ComponentNotFoundError: If ``selected_id`` is not in the graph
    """
    graph.get(selected_id)

    upstream = _closure(selected_id, graph.incoming, forward=False)
    downstream = _closure(selected_id, graph.outgoing, forward=True)

    # An edge is highlighted when it runs inside the upstream side (into the
    # selection) or inside the downstream side (out of it).
    up_side = set(upstream) | {selected_id}
    down_side = set(downstream) | {selected_id}
    highlighted = [
        c.id
        for c in graph.resolved_connections
        if (c.source in up_side and c.target in up_side and c.source in upstream)
        or (c.source in down_side and c.target in down_side and c.target in downstream)
    ]

    get_logger().debug(
        "Reachability computed",
        selected=selected_id,
        upstream=len(upstream),
        downstream=len(downstream),
    )
    return Reachability(
        selected=selected_id,
        upstream=upstream,
        downstream=downstream,
        connections=highlighted,
    )
