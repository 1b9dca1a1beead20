"""Advisory optimization and best-practice suggestions.

Suggestions never block a pipeline; correctness findings belong to
:mod:`pipesim.validation`. Each check is registered with
:func:`suggestion_check` and runs against any snapshot, selecting its own
components by category.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional

from pipesim.config import Component, ComponentKind
from pipesim.graph import PipelineGraph
from pipesim.utils.logging import get_logger


class SuggestionSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    SUGGESTION = "suggestion"


class SuggestionCategory(str, Enum):
    PERFORMANCE = "Performance"
    BEST_PRACTICE = "Best Practice"
    ALTERNATIVE_METHOD = "Alternative Method"
    DATA_QUALITY = "Data Quality"


@dataclass
class OptimizationSuggestion:
    """One advisory finding.

    ``learn_from`` names a reference pattern (for example ``merge-join``)
    that shows the recommended layout.
    """

    id: str
    title: str
    description: str
    severity: SuggestionSeverity
    category: SuggestionCategory
    recommendation: str
    affected_components: List[str] = field(default_factory=list)
    estimated_impact: str = ""
    learn_from: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "severity": self.severity.value,
            "category": self.category.value,
            "recommendation": self.recommendation,
            "affected_components": list(self.affected_components),
            "estimated_impact": self.estimated_impact,
            "learn_from": self.learn_from,
        }


Check = Callable[[PipelineGraph], Iterator[OptimizationSuggestion]]
CHECKS: Dict[str, Check] = {}

# SSIS data-flow kinds; control-flow tasks are ignored by the global checks
_DATA_FLOW_KINDS = (
    ComponentKind.SOURCE.value,
    ComponentKind.TRANSFORMATION.value,
    ComponentKind.DESTINATION.value,
)
_GLOBAL_CHECK_MINIMUM = 3
_GENERIC_SOURCE_NAMES = frozenset(
    {"OLE DB Source", "Flat File Source", "Excel Source", "JSON Source", "XML Source"}
)
_ERROR_OUTPUT_CATEGORIES = (
    "Lookup",
    "OLEDBSource",
    "OLEDBDestination",
    "FlatFileSource",
    "FlatFileDestination",
)
_CLEANSING_FUNCTIONS = ("trim", "upper", "lower", "replace")


def suggestion_check(check_id: str) -> Callable[[Check], Check]:
    """Register a check under ``check_id``.

    Raises:
        ValueError: If the id is already taken by a different function
    """

    def decorator(func: Check) -> Check:
        existing = CHECKS.get(check_id)
        if existing is not None and existing is not func:
            raise ValueError(f"Suggestion check '{check_id}' is already registered")
        CHECKS[check_id] = func
        return func

    return decorator


def _text(value) -> str:
    return value if isinstance(value, str) else ""


def _set(value) -> bool:
    """True when a property is present and not blank or false."""
    if isinstance(value, str):
        return bool(value.strip())
    return bool(value)


def _sources(graph: PipelineGraph, component_id: str) -> List[Component]:
    return [graph.components[s] for s in graph.predecessors(component_id)]


def _targets(graph: PipelineGraph, component_id: str) -> List[Component]:
    return [graph.components[t] for t in graph.successors(component_id)]


def _sorted(component: Component) -> bool:
    return component.category == "Sort" or component.is_sorted


def _converted_between(graph: PipelineGraph, source: Component, target: Component) -> bool:
    return any(
        c.category == "DataConversion" and target.id in graph.successors(c.id)
        for c in _targets(graph, source.id)
    )


def _data_flow(graph: PipelineGraph) -> List[Component]:
    return [c for c in graph.component_list if c.kind in _DATA_FLOW_KINDS]


# --- SSIS patterns ---


@suggestion_check("separate-queries")
def separate_queries(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    splits = graph.by_category("ConditionalSplit")
    if not splits or len(graph.by_category("ExcelDestination")) < 2:
        return
    if any(s.category == "OLEDBSource" for split in splits for s in _sources(graph, split.id)):
        yield OptimizationSuggestion(
            id="suggest-separate-queries",
            title="Consider using separate SQL queries for better performance",
            description=(
                "Conditional Split routes data to multiple Excel destinations. For large "
                "datasets, separate source queries are significantly faster."
            ),
            severity=SuggestionSeverity.SUGGESTION,
            category=SuggestionCategory.PERFORMANCE,
            recommendation=(
                "Replace the Conditional Split with separate OLE DB Sources using WHERE "
                "clauses so the database does the filtering"
            ),
            affected_components=[s.id for s in splits],
            estimated_impact="2-3x faster for datasets > 100K rows",
            learn_from="sql-to-excel-method2",
        )


@suggestion_check("sort-before-merge-join")
def sort_before_merge_join(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    for merge in graph.by_category("MergeJoin"):
        for source in _sources(graph, merge.id):
            if _sorted(source):
                continue
            yield OptimizationSuggestion(
                id=f"suggest-sort-before-{merge.id}-{source.id}",
                title="Merge Join requires sorted inputs",
                description=f'Input from "{source.name or source.id}" to Merge Join is not sorted',
                severity=SuggestionSeverity.WARNING,
                category=SuggestionCategory.BEST_PRACTICE,
                recommendation=(
                    "Add a Sort transformation before the Merge Join, or make the source "
                    "query ORDER BY the join key"
                ),
                affected_components=[merge.id, source.id],
                estimated_impact="Required for Merge Join to work",
                learn_from="merge-join",
            )


@suggestion_check("flat-file-conversion")
def flat_file_conversion(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    for source in graph.by_category("FlatFileSource"):
        for target in _targets(graph, source.id):
            if target.category != "OLEDBDestination" or _converted_between(graph, source, target):
                continue
            yield OptimizationSuggestion(
                id=f"suggest-dataconv-{source.id}-{target.id}",
                title="Add Data Conversion between CSV and Database",
                description=(
                    "Flat File sources produce text data while database destinations "
                    "expect typed columns"
                ),
                severity=SuggestionSeverity.WARNING,
                category=SuggestionCategory.BEST_PRACTICE,
                recommendation=(
                    "Insert a Data Conversion to convert text columns to database types "
                    "(e.g. DT_STR to DT_I4)"
                ),
                affected_components=[source.id, target.id],
                estimated_impact="Prevents runtime type mismatch errors",
                learn_from="basic-etl",
            )


@suggestion_check("excel-conversion")
def excel_conversion(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    for source in graph.by_category("ExcelSource"):
        for target in _targets(graph, source.id):
            if target.category != "OLEDBDestination" or _converted_between(graph, source, target):
                continue
            yield OptimizationSuggestion(
                id=f"suggest-dataconv-excel-{source.id}-{target.id}",
                title="Excel to Database may need Data Conversion",
                description="Excel sources can have mixed data types in one column",
                severity=SuggestionSeverity.SUGGESTION,
                category=SuggestionCategory.DATA_QUALITY,
                recommendation="Add a Data Conversion to define column types explicitly",
                affected_components=[source.id, target.id],
                estimated_impact="Improves reliability",
                learn_from="basic-etl",
            )


@suggestion_check("multicast-fan-out")
def multicast_fan_out(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    for multicast in graph.by_category("Multicast"):
        outputs = len(graph.outgoing.get(multicast.id, []))
        if outputs <= 3:
            continue
        yield OptimizationSuggestion(
            id=f"suggest-reduce-multicast-{multicast.id}",
            title="Multicast broadcasting to many destinations",
            description=(
                f"Multicast is sending data to {outputs} destinations, duplicating every "
                "buffer in memory"
            ),
            severity=SuggestionSeverity.INFO,
            category=SuggestionCategory.PERFORMANCE,
            recommendation="Review whether all outputs are needed or can run serially",
            affected_components=[multicast.id],
            estimated_impact=f"Uses {outputs}x memory",
        )


@suggestion_check("error-handling")
def error_handling(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    if not graph.by_kind(ComponentKind.SOURCE) or not graph.by_kind(ComponentKind.DESTINATION):
        return
    for destination in graph.by_category("FlatFileDestination"):
        name = destination.name.lower()
        if "error" in name or "log" in name:
            return
    yield OptimizationSuggestion(
        id="suggest-error-handling",
        title="Consider adding error handling",
        description="The pipeline has no error logging destination",
        severity=SuggestionSeverity.INFO,
        category=SuggestionCategory.BEST_PRACTICE,
        recommendation=(
            "Separate valid and invalid records with a Conditional Split and route errors "
            "to a Flat File destination"
        ),
        estimated_impact="Improves troubleshooting and reliability",
        learn_from="error-handling",
    )


@suggestion_check("row-count-audit")
def row_count_audit(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    if graph.by_category("RowCount"):
        return
    if graph.by_category("Lookup") or len(_data_flow(graph)) >= _GLOBAL_CHECK_MINIMUM:
        yield OptimizationSuggestion(
            id="suggest-row-count-audit",
            title="Add Row Count for auditing",
            description="Row Count tracks how many records were processed",
            severity=SuggestionSeverity.INFO,
            category=SuggestionCategory.BEST_PRACTICE,
            recommendation="Add a Row Count and log its variable for audit purposes",
            estimated_impact="Enables better monitoring and troubleshooting",
            learn_from="row-count",
        )


@suggestion_check("scd-type2")
def scd_type2(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    dimensions = [
        c for c in graph.by_category("OLEDBDestination") if "dim" in c.name.lower()
    ]
    if not dimensions or any(c.reference_input for c in graph.by_category("Lookup")):
        return
    yield OptimizationSuggestion(
        id="suggest-scd-type2",
        title="Loading dimension table? Consider SCD Type 2 pattern",
        description="Tracking history in dimension data needs a Slowly Changing Dimension pattern",
        severity=SuggestionSeverity.INFO,
        category=SuggestionCategory.ALTERNATIVE_METHOD,
        recommendation=(
            "Look up existing records, split new from changed rows and keep start and end "
            "dates per version"
        ),
        affected_components=[c.id for c in dimensions],
        estimated_impact="Enables historical data tracking",
        learn_from="scd-type2",
    )


@suggestion_check("union-many-inputs")
def union_many_inputs(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    for union in graph.by_category("UnionAll"):
        inputs = len(graph.incoming.get(union.id, []))
        if inputs < 3:
            continue
        yield OptimizationSuggestion(
            id=f"suggest-union-performance-{union.id}",
            title="Union All with many inputs",
            description=f"Union All is combining {inputs} sources",
            severity=SuggestionSeverity.INFO,
            category=SuggestionCategory.DATA_QUALITY,
            recommendation=(
                "Verify that all inputs share column names, types and order; standardize "
                "with Data Conversion if needed"
            ),
            affected_components=[union.id],
            estimated_impact="Prevents schema mismatch errors",
        )


@suggestion_check("sort-before-aggregate")
def sort_before_aggregate(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    for aggregate in graph.by_category("Aggregate"):
        sources = _sources(graph, aggregate.id)
        if not sources or any(_sorted(s) for s in sources):
            continue
        yield OptimizationSuggestion(
            id=f"suggest-sort-before-agg-{aggregate.id}",
            title="Consider sorting before Aggregate",
            description="Aggregating sorted data is faster on large datasets",
            severity=SuggestionSeverity.INFO,
            category=SuggestionCategory.PERFORMANCE,
            recommendation="Add a Sort on the GROUP BY columns before the Aggregate",
            affected_components=[aggregate.id],
            estimated_impact="Potential performance improvement for large datasets",
        )


@suggestion_check("aggregate-group-by")
def aggregate_group_by(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    for aggregate in graph.by_category("Aggregate"):
        props = aggregate.properties
        if _set(props.get("groupBy")) or _set(props.get("groupByColumns")):
            continue
        yield OptimizationSuggestion(
            id=f"suggest-group-by-{aggregate.id}",
            title="Aggregate has no GROUP BY columns",
            description="Without GROUP BY columns the Aggregate collapses all rows into one",
            severity=SuggestionSeverity.INFO,
            category=SuggestionCategory.BEST_PRACTICE,
            recommendation="Configure GROUP BY columns in the Aggregate properties",
            affected_components=[aggregate.id],
        )


@suggestion_check("conditional-split-outputs")
def conditional_split_outputs(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    for split in graph.by_category("ConditionalSplit"):
        if graph.outgoing.get(split.id):
            continue
        yield OptimizationSuggestion(
            id=f"suggest-split-outputs-{split.id}",
            title="Conditional Split has no outputs",
            description="Rows routed by the Conditional Split go nowhere",
            severity=SuggestionSeverity.WARNING,
            category=SuggestionCategory.BEST_PRACTICE,
            recommendation="Connect at least one output condition",
            affected_components=[split.id],
        )


@suggestion_check("generic-source-name")
def generic_source_name(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    for source in graph.by_kind(ComponentKind.SOURCE):
        if source.name not in _GENERIC_SOURCE_NAMES:
            continue
        yield OptimizationSuggestion(
            id=f"suggest-rename-{source.id}",
            title="Give the source a descriptive name",
            description=f'"{source.name}" does not say what data it reads',
            severity=SuggestionSeverity.INFO,
            category=SuggestionCategory.BEST_PRACTICE,
            recommendation='Rename it after the data, e.g. "Customer Master Table"',
            affected_components=[source.id],
        )


@suggestion_check("sequential-lookups")
def sequential_lookups(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    for lookup in graph.by_category("Lookup"):
        if not any(s.category == "Lookup" for s in _sources(graph, lookup.id)):
            continue
        yield OptimizationSuggestion(
            id=f"suggest-sequential-lookups-{lookup.id}",
            title="Multiple lookups in sequence",
            description="Chained Lookups each cache their reference data",
            severity=SuggestionSeverity.WARNING,
            category=SuggestionCategory.PERFORMANCE,
            recommendation="Replace sequential lookups with a Merge Join when both inputs are large",
            affected_components=[lookup.id],
        )


@suggestion_check("unnecessary-conversion")
def unnecessary_conversion(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    for conversion in graph.by_category("DataConversion"):
        source_id = graph.first_upstream(conversion.id)
        targets = graph.successors(conversion.id)
        if source_id is None or not targets:
            continue
        source, target = graph.components[source_id], graph.components[targets[0]]
        declared = "data_type" in source.model_fields_set and "data_type" in target.model_fields_set
        if declared and source.data_type == target.data_type:
            yield OptimizationSuggestion(
                id=f"suggest-unneeded-conversion-{conversion.id}",
                title="Data Conversion may be unnecessary",
                description=(
                    f"Source and destination already share the '{source.data_type}' data type"
                ),
                severity=SuggestionSeverity.WARNING,
                category=SuggestionCategory.PERFORMANCE,
                recommendation="Verify whether the conversion is required",
                affected_components=[conversion.id],
            )


@suggestion_check("hardcoded-connection-string")
def hardcoded_connection_string(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    for component in graph.by_kind(ComponentKind.SOURCE, ComponentKind.DESTINATION):
        if "Data Source=" not in _text(component.properties.get("connectionString")):
            continue
        yield OptimizationSuggestion(
            id=f"suggest-connection-manager-{component.id}",
            title="Connection string appears to be hardcoded",
            description="Hardcoded connection strings must be edited for every environment",
            severity=SuggestionSeverity.WARNING,
            category=SuggestionCategory.BEST_PRACTICE,
            recommendation="Use connection managers or configuration files instead",
            affected_components=[component.id],
        )


@suggestion_check("derived-column-expressions")
def derived_column_expressions(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    for derived in graph.by_category("DerivedColumn"):
        expression = _text(derived.properties.get("expression")).lower()
        if not expression:
            continue
        handles_null = any(k in expression for k in ("isnull", "coalesce", "??"))
        if not handles_null and any(op in expression for op in "+/*"):
            yield OptimizationSuggestion(
                id=f"suggest-null-handling-{derived.id}",
                title="Derived Column expression may produce NULL",
                description="Arithmetic on a NULL column yields NULL",
                severity=SuggestionSeverity.WARNING,
                category=SuggestionCategory.DATA_QUALITY,
                recommendation="Wrap inputs in ISNULL([Column], default) or COALESCE",
                affected_components=[derived.id],
            )
        if any(k in expression for k in ("date", "convert")):
            yield OptimizationSuggestion(
                id=f"suggest-date-format-{derived.id}",
                title="Date format conversion detected",
                description="Inconsistent date formats across sources cause parsing errors",
                severity=SuggestionSeverity.INFO,
                category=SuggestionCategory.DATA_QUALITY,
                recommendation="Standardize date formats with CONVERT or FORMAT",
                affected_components=[derived.id],
            )


# --- SSIS whole-pipeline checks ---


@suggestion_check("data-validation-step")
def data_validation_step(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    components = _data_flow(graph)
    if len(components) < _GLOBAL_CHECK_MINIMUM:
        return
    for c in components:
        expression = _text(c.properties.get("expression"))
        if c.category in ("ConditionalSplit", "Lookup") or (
            c.category == "DerivedColumn" and "ISNULL" in expression
        ):
            return
    yield OptimizationSuggestion(
        id="suggest-data-validation",
        title="Consider adding data validation steps",
        description="No Conditional Split, Lookup or validating Derived Column checks the data",
        severity=SuggestionSeverity.INFO,
        category=SuggestionCategory.DATA_QUALITY,
        recommendation="Add validation transformations before loading",
    )


@suggestion_check("incremental-load")
def incremental_load(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    components = _data_flow(graph)
    if len(components) < _GLOBAL_CHECK_MINIMUM:
        return
    for c in components:
        if c.properties.get("incrementalLoad") is True:
            return
        if c.category == "Lookup" and "last-load" in (c.reference_input or ""):
            return
        query = _text(c.properties.get("query"))
        if "WHERE" in query and ("Date" in query or "Modified" in query):
            return
    yield OptimizationSuggestion(
        id="suggest-incremental-load",
        title="Consider an incremental load strategy",
        description="Every run reloads the full dataset",
        severity=SuggestionSeverity.INFO,
        category=SuggestionCategory.PERFORMANCE,
        recommendation="Filter on a modified date or use change data capture",
    )


@suggestion_check("flat-file-cleansing")
def flat_file_cleansing(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    components = _data_flow(graph)
    if len(components) < _GLOBAL_CHECK_MINIMUM or not graph.by_category("FlatFileSource"):
        return
    for c in graph.by_category("DerivedColumn"):
        expression = _text(c.properties.get("expression")).lower()
        if any(f in expression for f in _CLEANSING_FUNCTIONS):
            return
    yield OptimizationSuggestion(
        id="suggest-flat-file-cleansing",
        title="Cleanse flat file data",
        description="Flat File sources often contain inconsistent spacing and casing",
        severity=SuggestionSeverity.INFO,
        category=SuggestionCategory.DATA_QUALITY,
        recommendation="Add a Derived Column with TRIM, UPPER or LOWER expressions",
        affected_components=[c.id for c in graph.by_category("FlatFileSource")],
    )


@suggestion_check("duplicate-detection")
def duplicate_detection(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    if len(_data_flow(graph)) < _GLOBAL_CHECK_MINIMUM:
        return
    for sort in graph.by_category("Sort"):
        if any(t.category == "Aggregate" for t in _targets(graph, sort.id)):
            return
    yield OptimizationSuggestion(
        id="suggest-duplicate-detection",
        title="Consider duplicate detection",
        description="Nothing removes duplicate business keys",
        severity=SuggestionSeverity.INFO,
        category=SuggestionCategory.DATA_QUALITY,
        recommendation="Add a Sort followed by an Aggregate on the business key",
    )


@suggestion_check("sort-prefilter")
def sort_prefilter(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    if len(_data_flow(graph)) < _GLOBAL_CHECK_MINIMUM:
        return
    unfiltered = [
        s.id
        for s in graph.by_category("Sort")
        if _sources(graph, s.id)
        and not any(p.category == "ConditionalSplit" for p in _sources(graph, s.id))
    ]
    if unfiltered:
        yield OptimizationSuggestion(
            id="suggest-sort-prefilter",
            title="Filter before sorting",
            description=f"{len(unfiltered)} Sort component(s) run without pre-filtering",
            severity=SuggestionSeverity.WARNING,
            category=SuggestionCategory.PERFORMANCE,
            recommendation="Filter in the source query or with a Conditional Split before Sort",
            affected_components=unfiltered,
        )


@suggestion_check("memory-intensive-inputs")
def memory_intensive_inputs(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    if len(_data_flow(graph)) < _GLOBAL_CHECK_MINIMUM:
        return
    heavy = [
        c
        for c in graph.by_category("Aggregate", "MergeJoin")
        if len(graph.incoming.get(c.id, [])) > 1
    ]
    if heavy:
        yield OptimizationSuggestion(
            id="suggest-buffer-memory",
            title="Memory-intensive components with several inputs",
            description=", ".join(c.category for c in heavy) + " buffer all of their inputs",
            severity=SuggestionSeverity.WARNING,
            category=SuggestionCategory.PERFORMANCE,
            recommendation="Increase buffer memory or process data in smaller batches",
            affected_components=[c.id for c in heavy],
        )


@suggestion_check("error-output")
def error_output(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    if len(_data_flow(graph)) < _GLOBAL_CHECK_MINIMUM:
        return
    missing = [
        c.id
        for c in graph.by_category(*_ERROR_OUTPUT_CATEGORIES)
        if len(graph.outgoing.get(c.id, [])) <= 1
    ]
    if missing:
        yield OptimizationSuggestion(
            id="suggest-error-output",
            title="Error output not configured",
            description=f"{len(missing)} component(s) support an error output that is unused",
            severity=SuggestionSeverity.WARNING,
            category=SuggestionCategory.BEST_PRACTICE,
            recommendation="Route failed rows to an error output for logging",
            affected_components=missing,
        )


# --- Azure Data Factory ---


@suggestion_check("adf-linked-service")
def adf_linked_service(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    for copy in graph.by_category("CopyData"):
        if _set(copy.properties.get("linkedService")):
            continue
        yield OptimizationSuggestion(
            id=f"suggest-linked-service-{copy.id}",
            title="Linked Service should be defined",
            description="The Copy activity has no linked service to connect with",
            severity=SuggestionSeverity.WARNING,
            category=SuggestionCategory.BEST_PRACTICE,
            recommendation="Set linkedService on the Copy activity",
            affected_components=[copy.id],
        )


# --- Databricks ---


@suggestion_check("databricks-libraries")
def databricks_libraries(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    notebooks = [
        c.id
        for c in graph.by_kind(ComponentKind.NOTEBOOK)
        if c.properties.get("notebookLanguage") == "python"
        and not _set(c.properties.get("libraries"))
    ]
    if notebooks:
        yield OptimizationSuggestion(
            id="suggest-libraries",
            title="Specify notebook libraries",
            description="Python notebooks declare no libraries",
            severity=SuggestionSeverity.INFO,
            category=SuggestionCategory.BEST_PRACTICE,
            recommendation="List required packages in libraries if the notebook needs any",
            affected_components=notebooks,
        )


@suggestion_check("databricks-catalog-permissions")
def databricks_catalog_permissions(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    affected = [
        c.id
        for c in graph.component_list
        if _set(c.properties.get("catalog")) and c.properties.get("catalog") != "main"
    ]
    if affected:
        yield OptimizationSuggestion(
            id="suggest-catalog-permissions",
            title="Check Unity Catalog permissions",
            description="Components use catalogs other than main",
            severity=SuggestionSeverity.INFO,
            category=SuggestionCategory.BEST_PRACTICE,
            recommendation="Grant the job principal access to every catalog it reads or writes",
            affected_components=affected,
        )


@suggestion_check("databricks-secret-scopes")
def databricks_secret_scopes(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    affected = []
    for c in graph.component_list:
        text = json.dumps(c.properties, default=str)
        if "secret(" in text or "dbutils.secrets" in text:
            affected.append(c.id)
    if affected:
        yield OptimizationSuggestion(
            id="suggest-secret-scopes",
            title="Secret scopes referenced",
            description="Components read secrets at runtime",
            severity=SuggestionSeverity.INFO,
            category=SuggestionCategory.BEST_PRACTICE,
            recommendation="Ensure the secret scopes exist in the Databricks workspace",
            affected_components=affected,
        )


@suggestion_check("databricks-mount-point")
def databricks_mount_point(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    for storage in graph.by_category("AzureBlobStorage", "ADLSGen2"):
        path = _text(storage.properties.get("path"))
        if not path.startswith("/mnt/") or _set(storage.properties.get("mountPoint")):
            continue
        yield OptimizationSuggestion(
            id=f"suggest-mount-{storage.id}",
            title="Mount point detected",
            description=f"{path} must be mounted before the job runs",
            severity=SuggestionSeverity.WARNING,
            category=SuggestionCategory.BEST_PRACTICE,
            recommendation="Configure the mount, or read through abfss:// with Unity Catalog",
            affected_components=[storage.id],
        )


@suggestion_check("databricks-cross-join")
def databricks_cross_join(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    joins = [
        c.id
        for c in graph.by_category("DataFrameTransform")
        if c.properties.get("joinType") == "cross"
    ]
    if joins:
        yield OptimizationSuggestion(
            id="suggest-cartesian-join",
            title="Cartesian join detected",
            description="Cross joins multiply row counts",
            severity=SuggestionSeverity.WARNING,
            category=SuggestionCategory.PERFORMANCE,
            recommendation="Use an explicit join condition",
            affected_components=joins,
        )


@suggestion_check("databricks-columnar-format")
def databricks_columnar_format(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    sinks = [
        c.id
        for c in graph.by_kind(ComponentKind.OUTPUT)
        if _text(c.properties.get("format")).lower() == "csv"
    ]
    if sinks:
        yield OptimizationSuggestion(
            id="suggest-columnar-format",
            title="Write a columnar format",
            description="CSV is row-based and uncompressed",
            severity=SuggestionSeverity.WARNING,
            category=SuggestionCategory.PERFORMANCE,
            recommendation="Write Parquet or Delta instead of CSV",
            affected_components=sinks,
        )


@suggestion_check("databricks-delta-maintenance")
def databricks_delta_maintenance(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    for sink in graph.by_category("DeltaTableSink"):
        props = sink.properties
        if not _set(props.get("autoOptimize")) and not _set(props.get("autoCompact")):
            yield OptimizationSuggestion(
                id=f"suggest-auto-optimize-{sink.id}",
                title="Enable Auto Optimize",
                description="Frequent writes leave small files behind",
                severity=SuggestionSeverity.WARNING,
                category=SuggestionCategory.PERFORMANCE,
                recommendation="Set delta.autoOptimize.optimizeWrite and autoCompact on the table",
                affected_components=[sink.id],
            )
        if not _set(props.get("vacuumSchedule")):
            yield OptimizationSuggestion(
                id=f"suggest-vacuum-{sink.id}",
                title="Schedule VACUUM",
                description="Old table versions accumulate in storage",
                severity=SuggestionSeverity.INFO,
                category=SuggestionCategory.BEST_PRACTICE,
                recommendation="Run VACUUM on a schedule (default retention is 7 days)",
                affected_components=[sink.id],
                estimated_impact="Reduces storage costs",
            )
        if not _set(props.get("schemaEnforcement")):
            yield OptimizationSuggestion(
                id=f"suggest-schema-enforcement-{sink.id}",
                title="Enable schema enforcement",
                description="Writes with unexpected columns are accepted silently",
                severity=SuggestionSeverity.WARNING,
                category=SuggestionCategory.DATA_QUALITY,
                recommendation="Enable schema enforcement on the Delta table",
                affected_components=[sink.id],
            )


@suggestion_check("databricks-jdbc-partitions")
def databricks_jdbc_partitions(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    for source in graph.by_category("AzureSQLDatabase", "SnowflakeConnector"):
        if _set(source.properties.get("numPartitions")):
            continue
        yield OptimizationSuggestion(
            id=f"suggest-jdbc-partitions-{source.id}",
            title="Configure numPartitions for parallel reads",
            description="A JDBC read without partitions runs on a single task",
            severity=SuggestionSeverity.INFO,
            category=SuggestionCategory.PERFORMANCE,
            recommendation="Set numPartitions with an evenly distributed partition column",
            affected_components=[source.id],
        )


@suggestion_check("databricks-dlt-expectations")
def databricks_dlt_expectations(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    for dlt in graph.by_category("DeltaLiveTables"):
        expectations = dlt.properties.get("expectations")
        if isinstance(expectations, list) and expectations:
            continue
        yield OptimizationSuggestion(
            id=f"suggest-expectations-{dlt.id}",
            title="Add data quality expectations",
            description="The Delta Live Tables pipeline declares no expectations",
            severity=SuggestionSeverity.WARNING,
            category=SuggestionCategory.DATA_QUALITY,
            recommendation="Declare @dlt.expect rules for critical columns",
            affected_components=[dlt.id],
        )


@suggestion_check("databricks-job-retries")
def databricks_job_retries(graph: PipelineGraph) -> Iterator[OptimizationSuggestion]:
    for job in graph.by_kind(ComponentKind.ORCHESTRATION):
        retries = job.properties.get("retries")
        if isinstance(retries, int) and not isinstance(retries, bool) and retries > 0:
            continue
        yield OptimizationSuggestion(
            id=f"suggest-retries-{job.id}",
            title="Configure task retries",
            description="Transient failures fail the whole run",
            severity=SuggestionSeverity.WARNING,
            category=SuggestionCategory.BEST_PRACTICE,
            recommendation="Set retries (and a retry interval) on the task",
            affected_components=[job.id],
        )


def suggest_optimizations(graph: PipelineGraph) -> List[OptimizationSuggestion]:
    """Run every registered check; suggestions come out in check order.

    Args:
        graph: Graph to inspect

    Returns:
        Suggestions, empty for an empty graph
    """
    suggestions: List[OptimizationSuggestion] = []
    for check_id, check in CHECKS.items():
        found = list(check(graph))
        if found:
            get_logger().debug("Suggestion check matched", check=check_id, count=len(found))
        suggestions.extend(found)
    return suggestions
