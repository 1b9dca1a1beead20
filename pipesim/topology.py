"""Deterministic topological evaluation."""

import heapq
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from pipesim.graph import PipelineGraph
from pipesim.utils.logging import get_logger


@dataclass
class TopologicalOrder:
    """Result of Kahn's algorithm.

    When the graph has a cycle, ``order`` is the acyclic prefix,
    ``incomplete`` is True and ``unresolved`` lists the remaining
    components in input order.
    """

    order: List[str] = field(default_factory=list)
    incomplete: bool = False
    unresolved: List[str] = field(default_factory=list)

    def position(self) -> Dict[str, int]:
        return {component_id: i for i, component_id in enumerate(self.order)}


def _in_degrees(graph: PipelineGraph) -> Dict[str, int]:
    in_degree = {component_id: 0 for component_id in graph.components}
    for connection in graph.resolved_connections:
        in_degree[connection.target] += 1
    return in_degree


def topological_order(graph: PipelineGraph) -> TopologicalOrder:
    """Return components in topological order (sources first).

    Uses Kahn's algorithm over resolved connections. When several
    components are ready at once, the one earliest in the input array goes
    first, so an unchanged graph always yields the same order.

    Returns:
        TopologicalOrder with the emitted order and cycle flag
    """
    in_degree = _in_degrees(graph)

    ready: List[Tuple[int, str]] = [
        (graph.index_of[component_id], component_id)
        for component_id, degree in in_degree.items()
        if degree == 0
    ]
    heapq.heapify(ready)
    order: List[str] = []

    while ready:
        _, component_id = heapq.heappop(ready)
        order.append(component_id)

        for connection in graph.outgoing.get(component_id, []):
            in_degree[connection.target] -= 1
            if in_degree[connection.target] == 0:
                heapq.heappush(ready, (graph.index_of[connection.target], connection.target))

    if len(order) != len(graph.components):
        emitted = set(order)
        unresolved = [c for c in graph.components if c not in emitted]
        get_logger().debug(
            "Topological order incomplete (cycle present)",
            emitted=len(order),
            unresolved=len(unresolved),
        )
        return TopologicalOrder(order=order, incomplete=True, unresolved=unresolved)

    return TopologicalOrder(order=order)


def execution_layers(graph: PipelineGraph) -> Tuple[List[List[str]], List[str]]:
    """Group components into layers that could run in parallel.

    Components in the same layer have no dependencies on each other. Each
    layer keeps input order.

    Returns:
        Tuple of (layers, unresolved ids left over by a cycle)
    """
    in_degree = _in_degrees(graph)
    remaining = list(graph.components)
    layers: List[List[str]] = []

    while remaining:
        current_layer = [c for c in remaining if in_degree[c] == 0]
        if not current_layer:
            break

        layers.append(current_layer)
        layer_set = set(current_layer)
        remaining = [c for c in remaining if c not in layer_set]

        for component_id in current_layer:
            for connection in graph.outgoing.get(component_id, []):
                in_degree[connection.target] -= 1

    return layers, remaining
