"""Shared state for artifact renderers."""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from pipesim.config import Component
from pipesim.graph import PipelineGraph
from pipesim.topology import TopologicalOrder, topological_order

_NON_WORD = re.compile(r"[^0-9a-zA-Z]+")


def slugify(value: str, default: str = "component") -> str:
    """Lowercase identifier-safe form of ``value``."""
    slug = _NON_WORD.sub("_", value).strip("_").lower()
    return slug or default


def unique_slugs(values: List[str]) -> Dict[str, str]:
    """Map each value to a slug, suffixing collisions in list order."""
    slugs: Dict[str, str] = {}
    taken: Set[str] = set()
    for value in values:
        base = slugify(value)
        slug = base
        n = 2
        while slug in taken:
            slug = f"{base}_{n}"
            n += 1
        taken.add(slug)
        slugs[value] = slug
    return slugs


@dataclass
class ArtifactContext:
    """Graph plus the ordering and naming every renderer shares.

    Slugs are assigned in input order, so a component keeps its variable
    name as long as the components before it keep their ids.
    """

    graph: PipelineGraph
    topo: TopologicalOrder
    slugs: Dict[str, str] = field(default_factory=dict)
    defined: Set[str] = field(default_factory=set)

    @classmethod
    def build(cls, graph: PipelineGraph) -> "ArtifactContext":
        return cls(
            graph=graph,
            topo=topological_order(graph),
            slugs=unique_slugs(list(graph.components)),
        )

    @property
    def ordered(self) -> List[Component]:
        """Components in topological order; cyclic ones are left out."""
        return [self.graph.components[c] for c in self.topo.order]

    @property
    def pipeline_slug(self) -> str:
        return slugify(self.graph.name, default="pipeline")

    def variable(self, component_id: str) -> str:
        return f"df_{self.slugs[component_id]}"

    def upstream(self, component_id: str) -> Optional[Component]:
        """First resolved upstream component, if any."""
        source = self.graph.first_upstream(component_id)
        return self.graph.components[source] if source is not None else None

    def upstream_variable(self, component_id: str) -> Optional[str]:
        """Variable of the first upstream component, once it has been defined."""
        source = self.graph.first_upstream(component_id)
        if source is None or source not in self.defined:
            return None
        return self.variable(source)

    def incomplete_note(self) -> Optional[str]:
        if not self.topo.incomplete:
            return None
        return (
            "INCOMPLETE: cycle detected, components not emitted: "
            + ", ".join(self.topo.unresolved)
        )


def prop(component: Component, key: str, default: Any) -> Any:
    """Property value, falling back to ``default`` when missing or blank."""
    value = component.properties.get(key)
    if value is None or value == "" or value == []:
        return default
    return value


def string_list(component: Component, key: str) -> List[str]:
    value = component.properties.get(key)
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    if isinstance(value, list):
        return [str(v) for v in value]
    return []
