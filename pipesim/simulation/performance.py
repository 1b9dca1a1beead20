"""Execution-time, memory and bottleneck estimation."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from pipesim.graph import PipelineGraph
from pipesim.simulation.data import propagate
from pipesim.simulation.tables import (
    DEFAULT_BASE_ROWS,
    DEFAULT_RULE,
    MEMORY_CAP_MB,
    category_rule,
)
from pipesim.topology import topological_order
from pipesim.utils.logging import get_logger


@dataclass
class ComponentMetric:
    """Per-component estimate; times in seconds, memory in MB."""

    component_id: str
    component_name: str
    category: str
    row_count: int
    execution_time: float
    memory_footprint: float
    memory_impact: str
    finish_time: float
    is_bottleneck: bool = False


@dataclass
class SimulationResult:
    """Pipeline-level performance estimate."""

    components: List[ComponentMetric] = field(default_factory=list)
    total_duration: float = 0.0
    throughput: float = 0.0
    memory_usage: float = 0.0
    bottleneck_id: Optional[str] = None
    incomplete: bool = False
    notes: List[str] = field(default_factory=list)

    @property
    def bottleneck(self) -> Optional[ComponentMetric]:
        for metric in self.components:
            if metric.is_bottleneck:
                return metric
        return None


def simulate_performance(
    graph: PipelineGraph, base_row_count: int = DEFAULT_BASE_ROWS
) -> SimulationResult:
    """Estimate execution time along the critical path.

    Each component costs ``rows x cost_per_row + overhead`` and finishes
    after its slowest predecessor, so branches merging at a join take the
    max of their path durations. Only blocking categories hold memory.

    Args:
        graph: Graph to simulate
        base_row_count: Rows emitted by a source with row factor 1.0

    Returns:
        SimulationResult (zero-valued for an empty graph)
    """
    logger = get_logger()
    topo = topological_order(graph)
    states = propagate(graph, topo.order, base_row_count)

    notes: List[str] = []
    metrics: List[ComponentMetric] = []
    finish: Dict[str, float] = {}

    for component_id in topo.order:
        component = graph.components[component_id]
        rule = category_rule(component.category)
        if rule is None:
            notes.append(
                f"Unknown category '{component.category}' on {component_id}: using default rule"
            )
            logger.warning(
                "Unknown category, using default rule",
                component_id=component_id,
                category=component.category,
            )
            rule = DEFAULT_RULE

        rows = states[component_id].input_rows
        execution_time = rows * rule.cost_per_row(rows) + rule.overhead
        memory = 0.0
        if rule.blocking:
            memory = rows * rule.memory_per_row_mb + rule.fixed_memory_mb

        upstream_finish = max(
            (finish[p] for p in graph.predecessors(component_id) if p in finish),
            default=0.0,
        )
        finish[component_id] = upstream_finish + execution_time

        metrics.append(
            ComponentMetric(
                component_id=component_id,
                component_name=component.name,
                category=component.category,
                row_count=states[component_id].row_count,
                execution_time=execution_time,
                memory_footprint=memory,
                memory_impact=rule.memory_impact,
                finish_time=finish[component_id],
            )
        )

    bottleneck: Optional[ComponentMetric] = None
    for metric in metrics:
        # strict comparison keeps the earliest component on ties
        if bottleneck is None or metric.execution_time > bottleneck.execution_time:
            bottleneck = metric
    if bottleneck is not None:
        bottleneck.is_bottleneck = True

    if topo.incomplete:
        notes.append(
            f"{len(topo.unresolved)} component(s) skipped because of a cycle: "
            f"{', '.join(topo.unresolved)}"
        )

    total_duration = max(finish.values(), default=0.0)
    result = SimulationResult(
        components=metrics,
        total_duration=total_duration,
        throughput=base_row_count / total_duration if total_duration > 0 else 0.0,
        memory_usage=min(max((m.memory_footprint for m in metrics), default=0.0), MEMORY_CAP_MB),
        bottleneck_id=bottleneck.component_id if bottleneck else None,
        incomplete=topo.incomplete,
        notes=notes,
    )

    logger.debug(
        "Performance simulated",
        components=len(metrics),
        total_duration=round(total_duration, 3),
        bottleneck=result.bottleneck_id,
    )
    return result
