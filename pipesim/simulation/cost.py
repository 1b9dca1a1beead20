"""Databricks cost estimation from static rate tables."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from pipesim.config import Component, ComponentKind, CostParams, CostPeriod
from pipesim.graph import PipelineGraph
from pipesim.simulation.tables import (
    DAYS_PER_MONTH,
    DBU_RATES,
    DEFAULT_CLUSTER_RATE,
    DEFAULT_NODE_TYPE,
    DEFAULT_NUM_WORKERS,
    DEFAULT_WAREHOUSE_RATE,
    DEFAULT_WAREHOUSE_SIZE,
    STORAGE_MONTHLY_COST,
    STREAMING_CATEGORIES,
    STREAMING_HOURLY_RATE,
)
from pipesim.utils.logging import get_logger


@dataclass
class CostBreakdown:
    """Estimated spend for one period, in dollars."""

    clusters: float = 0.0
    sql_warehouses: float = 0.0
    streaming: float = 0.0
    jobs: float = 0.0
    storage: float = 0.0
    total: float = 0.0
    per_component: Dict[str, float] = field(default_factory=dict)
    period: CostPeriod = CostPeriod.MONTHLY
    suggestions: List[str] = field(default_factory=list)


def _number(value, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value)


def cluster_hourly_cost(cluster: Component) -> float:
    """``DBU rate x (driver + workers)``; a missing worker count means 2."""
    props = cluster.properties
    node_type = props.get("nodeType") or DEFAULT_NODE_TYPE
    rate = DEFAULT_CLUSTER_RATE
    if isinstance(node_type, str):
        rate = DBU_RATES.get(node_type, DEFAULT_CLUSTER_RATE)
    workers = max(_number(props.get("numWorkers"), DEFAULT_NUM_WORKERS), 0.0)
    return rate * (1 + workers)


def warehouse_hourly_cost(warehouse: Component) -> float:
    size = warehouse.properties.get("clusterSize") or DEFAULT_WAREHOUSE_SIZE
    if not isinstance(size, str):
        return DEFAULT_WAREHOUSE_RATE
    return DBU_RATES.get(size, DEFAULT_WAREHOUSE_RATE)


def is_streaming(component: Component) -> bool:
    return component.category in STREAMING_CATEGORIES or component.properties.get("streaming") is True


def _suggestions(clusters: List[Component], streaming: List[Component]) -> List[str]:
    suggestions = []
    for cluster in clusters:
        props = cluster.properties
        workers = _number(props.get("numWorkers"), 0)
        if not props.get("autoscaling") and workers > 2:
            suggestions.append(f"Enable autoscaling on {cluster.name} to reduce costs during low usage")
        if _number(props.get("autoterminationMinutes"), 0) > 60:
            suggestions.append(f"Reduce auto-termination time on {cluster.name} to save costs")
    if streaming:
        suggestions.append(
            "Consider batch processing instead of streaming for non-real-time requirements"
        )
    return suggestions


def estimate_cost(graph: PipelineGraph, params: Optional[CostParams] = None) -> CostBreakdown:
    """Estimate compute and storage cost for a period.

    Daily figures: clusters run ``cluster_uptime_hours``; each cluster also
    serves ``job_runs_per_day`` runs of ``job_duration_hours``; warehouses
    bill their size rate over the uptime; any streaming component adds a
    24/7 flat rate. Monthly figures are daily x 30 plus monthly storage.
    Storage is only charged when the pipeline reads or writes tables.

    Args:
        graph: Graph to price
        params: Usage assumptions (defaults to CostParams())

    Returns:
        CostBreakdown with per-component contributions for the period
    """
    params = params or CostParams()
    components = list(graph.components.values())
    clusters = [
        c
        for c in components
        if c.kind == ComponentKind.CLUSTER.value and c.category != "SQLWarehouse"
    ]
    warehouses = [c for c in components if c.category == "SQLWarehouse"]
    streaming = [c for c in components if is_streaming(c)]
    stores_data = any(
        c.kind in (ComponentKind.DATA_SOURCE.value, ComponentKind.OUTPUT.value) for c in components
    )

    per_component_daily: Dict[str, float] = {}
    cluster_daily = 0.0
    job_daily = 0.0
    for cluster in clusters:
        hourly = cluster_hourly_cost(cluster)
        uptime_cost = hourly * params.cluster_uptime_hours
        job_cost = hourly * params.job_duration_hours * params.job_runs_per_day
        cluster_daily += uptime_cost
        job_daily += job_cost
        per_component_daily[cluster.id] = uptime_cost + job_cost

    warehouse_daily = 0.0
    for warehouse in warehouses:
        cost = warehouse_hourly_cost(warehouse) * params.cluster_uptime_hours
        warehouse_daily += cost
        per_component_daily[warehouse.id] = cost

    streaming_daily = STREAMING_HOURLY_RATE * 24 if streaming else 0.0
    storage_monthly = STORAGE_MONTHLY_COST if stores_data else 0.0

    if params.period == CostPeriod.DAILY:
        scale = 1.0
        storage = storage_monthly / DAYS_PER_MONTH
    else:
        scale = float(DAYS_PER_MONTH)
        storage = storage_monthly

    breakdown = CostBreakdown(
        clusters=cluster_daily * scale,
        sql_warehouses=warehouse_daily * scale,
        streaming=streaming_daily * scale,
        jobs=job_daily * scale,
        storage=storage,
        per_component={k: v * scale for k, v in per_component_daily.items()},
        period=params.period,
        suggestions=_suggestions(clusters, streaming),
    )
    breakdown.total = (
        breakdown.clusters
        + breakdown.sql_warehouses
        + breakdown.streaming
        + breakdown.jobs
        + breakdown.storage
    )

    get_logger().debug(
        "Cost estimated",
        period=params.period.value,
        clusters=len(clusters),
        warehouses=len(warehouses),
        streaming=len(streaming),
        total=round(breakdown.total, 2),
    )
    return breakdown
