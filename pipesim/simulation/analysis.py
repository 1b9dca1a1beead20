"""Databricks performance tuning analysis."""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List

from pipesim.config import Component, ComponentKind, Platform, Severity
from pipesim.graph import PipelineGraph
from pipesim.registry import PLATFORM_CATEGORIES
from pipesim.utils.logging import get_logger

_SHUFFLE_KEYWORDS = ("groupBy", "join", "orderBy", "distinct", "repartition", "coalesce")


@dataclass
class PerformanceIssue:
    """A tuning finding with its estimated benefit."""

    id: str
    severity: Severity
    component_id: str
    component_name: str
    issue: str
    impact: str
    recommendation: str
    estimated_improvement: str = ""


@dataclass
class PerformanceAnalysis:
    """Score from 0 (poor) to 100 (no findings)."""

    score: int = 100
    issues: List[PerformanceIssue] = field(default_factory=list)
    summary: Dict[str, Any] = field(
        default_factory=lambda: {
            "shuffle_operations": 0,
            "data_skew": False,
            "caching_opportunities": 0,
            "broadcast_join_opportunities": 0,
            "z_ordering_opportunities": 0,
        }
    )


def _non_empty_list(value: Any) -> bool:
    return isinstance(value, list) and len(value) > 0


def _code(component: Component) -> str:
    code = component.properties.get("code")
    return code if isinstance(code, str) else ""


def count_shuffle_operations(components: List[Component]) -> int:
    count = 0
    for component in components:
        code = _code(component)
        for keyword in _SHUFFLE_KEYWORDS:
            count += len(re.findall(keyword, code, flags=re.IGNORECASE))
        if component.category == "DataFrameTransform":
            if _non_empty_list(component.properties.get("groupByColumns")):
                count += 1
            if component.properties.get("joinType"):
                count += 1
    return count


def analyze_performance(graph: PipelineGraph) -> PerformanceAnalysis:
    """Score a Databricks pipeline against common Spark tuning rules.

    Starts at 100 and deducts per finding: excessive shuffles, data skew,
    caching and broadcast-join opportunities, missing Z-ordering, AQE,
    Photon and partitioning, and Python UDFs. Pipelines without Databricks
    components score 100.
    """
    categories = PLATFORM_CATEGORIES[Platform.DATABRICKS]
    components = [c for c in graph.components.values() if c.category in categories]
    analysis = PerformanceAnalysis()
    if not components:
        return analysis

    issues = analysis.issues
    score = 100

    def pipeline_issue(issue_id, severity, issue, impact, recommendation, improvement):
        issues.append(
            PerformanceIssue(
                id=issue_id,
                severity=severity,
                component_id="",
                component_name="Pipeline",
                issue=issue,
                impact=impact,
                recommendation=recommendation,
                estimated_improvement=improvement,
            )
        )

    shuffles = count_shuffle_operations(components)
    if shuffles > 5:
        score -= 10
        pipeline_issue(
            "shuffle-excessive",
            Severity.WARNING,
            f"Excessive shuffle operations detected ({shuffles})",
            "High network overhead and slower execution",
            "Reduce joins and groupBy operations; consider bucketing frequently joined tables",
            "20-30% faster execution",
        )

    transforms = [c for c in components if c.category == "DataFrameTransform"]
    group_bys = [t for t in transforms if _non_empty_list(t.properties.get("groupByColumns"))]
    data_skew = len(group_bys) > 2
    if data_skew:
        score -= 15
        pipeline_issue(
            "data-skew",
            Severity.WARNING,
            "Potential data skew detected in groupBy operations",
            "Uneven workload distribution; some tasks take much longer",
            "Consider salting keys or a different partitioning strategy",
            "30-50% faster execution",
        )

    caching = sum(
        1
        for c in components
        if c.kind == ComponentKind.TRANSFORMATION.value and len(graph.outgoing.get(c.id, [])) > 1
    )
    if caching:
        score -= 5 * min(caching, 3)
        pipeline_issue(
            "caching-opportunity",
            Severity.INFO,
            f"{caching} DataFrame(s) reused multiple times without caching",
            "Repeated computation of the same data",
            "Cache reused DataFrames with df.cache() or df.persist()",
            "10-20% faster execution",
        )

    broadcast = sum(
        1
        for t in transforms
        if t.properties.get("joinType") and t.properties.get("joinType") != "broadcast"
    )
    if broadcast:
        score -= 5
        pipeline_issue(
            "broadcast-join",
            Severity.INFO,
            f"{broadcast} join(s) could use broadcast for small tables",
            "Unnecessary shuffles for small lookup tables",
            'Use broadcast joins for tables < 2GB with .hint("broadcast")',
            "15-25% faster execution",
        )

    sinks = [c for c in components if c.category == "DeltaTableSink"]
    z_order = sum(1 for s in sinks if not _non_empty_list(s.properties.get("zOrderColumns")))
    if z_order:
        score -= 5
        pipeline_issue(
            "z-ordering",
            Severity.INFO,
            f"{z_order} Delta table(s) missing Z-ordering on filtered columns",
            "Slower queries on filtered columns",
            "Add Z-ordering with OPTIMIZE ... ZORDER BY",
            "20-40% faster queries",
        )

    for cluster in (c for c in components if c.kind == ComponentKind.CLUSTER.value):
        runtime = cluster.properties.get("runtimeVersion") or ""
        spark_config = cluster.properties.get("sparkConfig") or {}
        aqe_enabled = isinstance(spark_config, dict) and (
            str(spark_config.get("spark.sql.adaptive.enabled")).lower() == "true"
        )
        if isinstance(runtime, str) and "13." in runtime and not aqe_enabled:
            score -= 10
            issues.append(
                PerformanceIssue(
                    id="aqe-missing",
                    severity=Severity.WARNING,
                    component_id=cluster.id,
                    component_name=cluster.name,
                    issue="Adaptive Query Execution (AQE) not enabled",
                    impact="Missing automatic query optimization",
                    recommendation="Set spark.sql.adaptive.enabled=true in the Spark config",
                    estimated_improvement="10-30% faster execution",
                )
            )

    for warehouse in (c for c in components if c.category == "SQLWarehouse"):
        if not warehouse.properties.get("enablePhoton"):
            score -= 15
            issues.append(
                PerformanceIssue(
                    id="photon-missing",
                    severity=Severity.WARNING,
                    component_id=warehouse.id,
                    component_name=warehouse.name,
                    issue="Photon engine not enabled for SQL warehouse",
                    impact="Missing 2-3x speedup for SQL workloads",
                    recommendation="Enable Photon in the SQL warehouse settings",
                    estimated_improvement="2-3x faster SQL queries",
                )
            )

    for sink in sinks:
        if not _non_empty_list(sink.properties.get("partitionBy")):
            score -= 5
            issues.append(
                PerformanceIssue(
                    id="partitioning-missing",
                    severity=Severity.INFO,
                    component_id=sink.id,
                    component_name=sink.name,
                    issue="Delta table missing partitioning strategy",
                    impact="Full table scans on filtered queries",
                    recommendation="Partition on columns used in WHERE clauses",
                    estimated_improvement="30-50% faster queries",
                )
            )

    with_udfs = [c for c in components if "udf" in _code(c)]
    if with_udfs:
        score -= 10
        issues.append(
            PerformanceIssue(
                id="udf-inefficient",
                severity=Severity.WARNING,
                component_id=with_udfs[0].id,
                component_name=with_udfs[0].name,
                issue="Inefficient UDFs detected",
                impact="UDFs are slower than built-in Spark functions",
                recommendation="Use built-in Spark functions or pandas UDFs",
                estimated_improvement="20-40% faster execution",
            )
        )

    analysis.score = max(0, score)
    analysis.summary = {
        "shuffle_operations": shuffles,
        "data_skew": data_skew,
        "caching_opportunities": caching,
        "broadcast_join_opportunities": broadcast,
        "z_ordering_opportunities": z_order,
    }
    get_logger().debug("Performance analyzed", score=analysis.score, issues=len(issues))
    return analysis
