"""Pipeline graph model and lookup indices."""

from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from pipesim.config import Component, Connection, PipelineSnapshot, Platform
from pipesim.exceptions import ComponentNotFoundError, ConfigValidationError, GraphContractError
from pipesim.utils.logging import get_logger


class PipelineGraph:
    """Read-only view over a snapshot with O(1) lookup indices.

    Construction is pure: the components and connections are never
    modified, and connections with a missing endpoint are kept aside in
    ``dangling`` instead of being rejected.
    """

    def __init__(
        self,
        components: Iterable[Component],
        connections: Iterable[Connection],
        name: str = "pipeline",
        platform: Platform = Platform.MIXED,
    ):
        """Initialize the graph.

        Args:
            components: Components in their original (stable) order
            connections: Connections in their original order
            name: Pipeline name, used in generated artifacts
            platform: Platform the snapshot was authored for
        """
        self.name = name
        self.platform = platform
        self.components: Dict[str, Component] = {}
        self.index_of: Dict[str, int] = {}
        self.connections: List[Connection] = list(connections)

        self.outgoing: Dict[str, List[Connection]] = defaultdict(list)
        self.outgoing_by_handle: Dict[Tuple[str, str], List[Connection]] = defaultdict(list)
        self.incoming: Dict[str, List[Connection]] = defaultdict(list)
        self.dangling: List[Connection] = []
        self.resolved_connections: List[Connection] = []

        self._build_indices(components)

    def _build_indices(self, components: Iterable[Component]) -> None:
        for component in components:
            if component.id in self.components:
                get_logger().warning("Duplicate component id ignored", component_id=component.id)
                continue
            self.index_of[component.id] = len(self.components)
            self.components[component.id] = component

        for connection in self.connections:
            if connection.source in self.components and connection.target in self.components:
                self.resolved_connections.append(connection)
                self.outgoing[connection.source].append(connection)
                self.outgoing_by_handle[(connection.source, connection.role)].append(connection)
                self.incoming[connection.target].append(connection)
            else:
                self.dangling.append(connection)

    @classmethod
    def from_snapshot(cls, snapshot: PipelineSnapshot) -> "PipelineGraph":
        return cls(
            snapshot.components,
            snapshot.connections,
            name=snapshot.name,
            platform=snapshot.platform,
        )

    @classmethod
    def coerce(cls, graph: Any) -> "PipelineGraph":
        """Accept a graph, a snapshot or a raw mapping.

        Raises:
            GraphContractError: If ``graph`` is None or of an unsupported type
            ConfigValidationError: If a mapping does not describe a snapshot
        """
        if isinstance(graph, PipelineGraph):
            return graph
        if isinstance(graph, PipelineSnapshot):
            return cls.from_snapshot(graph)
        if isinstance(graph, dict):
            try:
                return cls.from_snapshot(PipelineSnapshot.model_validate(graph))
            except ValidationError as e:
                raise ConfigValidationError(str(e)) from e
        raise GraphContractError(graph)

    @property
    def component_list(self) -> List[Component]:
        """Components in original order."""
        return list(self.components.values())

    @property
    def snapshot(self) -> PipelineSnapshot:
        return PipelineSnapshot(
            name=self.name,
            platform=self.platform,
            components=self.component_list,
            connections=self.connections,
        )

    def __len__(self) -> int:
        return len(self.components)

    def __contains__(self, component_id: object) -> bool:
        return component_id in self.components

    def get(self, component_id: str) -> Component:
        """Look up a component.

        Raises:
            ComponentNotFoundError: If the id is unknown
        """
        if component_id not in self.components:
            raise ComponentNotFoundError(component_id, list(self.components.keys()))
        return self.components[component_id]

    def predecessors(self, component_id: str) -> List[str]:
        """Direct upstream ids via resolved connections, in connection order."""
        return [c.source for c in self.incoming.get(component_id, [])]

    def successors(self, component_id: str) -> List[str]:
        """Direct downstream ids via resolved connections, in connection order."""
        return [c.target for c in self.outgoing.get(component_id, [])]

    def first_upstream(self, component_id: str) -> Optional[str]:
        incoming = self.incoming.get(component_id)
        return incoming[0].source if incoming else None

    def by_category(self, *categories: str) -> List[Component]:
        return [c for c in self.components.values() if c.category in categories]

    def by_kind(self, *kinds: str) -> List[Component]:
        wanted = {str(getattr(k, "value", k)) for k in kinds}
        return [c for c in self.components.values() if c.kind in wanted]

    def without_component(self, component_id: str) -> PipelineSnapshot:
        """New snapshot without the component and every incident connection."""
        self.get(component_id)
        return PipelineSnapshot(
            name=self.name,
            platform=self.platform,
            components=[c for c in self.components.values() if c.id != component_id],
            connections=[
                c
                for c in self.connections
                if c.source != component_id and c.target != component_id
            ],
        )

    def with_component(self, component: Component) -> PipelineSnapshot:
        """New snapshot with ``component`` appended."""
        return PipelineSnapshot(
            name=self.name,
            platform=self.platform,
            components=self.component_list + [component],
            connections=self.connections,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Nodes and edges for export or external rendering."""
        dangling_ids = {c.id for c in self.dangling}
        return {
            "name": self.name,
            "platform": self.platform.value,
            "nodes": [
                {
                    "id": c.id,
                    "name": c.name,
                    "kind": c.kind,
                    "category": c.category,
                }
                for c in self.components.values()
            ],
            "edges": [
                {
                    "id": c.id,
                    "source": c.source,
                    "target": c.target,
                    "role": c.role,
                    "resolved": c.id not in dangling_ids,
                }
                for c in self.connections
            ],
        }

    def visualize(self) -> str:
        """Generate a text visualization of the graph.

        Returns:
            String representation of the execution layers
        """
        from pipesim.topology import execution_layers

        lines = [f"Pipeline Graph: {self.name}", ""]

        layers, unresolved = execution_layers(self)
        for i, layer in enumerate(layers):
            lines.append(f"Layer {i + 1}:")
            for component_id in layer:
                component = self.components[component_id]
                preds = self.predecessors(component_id)
                deps = f" (depends on: {', '.join(preds)})" if preds else ""
                lines.append(f"  - {component_id} [{component.category}]{deps}")
            lines.append("")

        if unresolved:
            lines.append(f"Unresolved (cycle): {', '.join(unresolved)}")
            lines.append("")
        if self.dangling:
            lines.append(f"Dangling connections: {', '.join(c.id for c in self.dangling)}")
            lines.append("")

        return "\n".join(lines)
