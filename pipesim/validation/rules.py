"""Platform validation rules for SSIS, Azure Data Factory and Databricks.

Each rule selects its own components by category, so every rule can run
against a mixed snapshot.
"""

from collections import deque
from typing import Iterator, List

from pipesim.config import Component, ComponentKind, HandleRole, Platform, Severity
from pipesim.graph import PipelineGraph
from pipesim.registry import PLATFORM_CATEGORIES, rule
from pipesim.validation.engine import ValidationIssue


def _platform_components(graph: PipelineGraph, platform: Platform) -> List[Component]:
    categories = PLATFORM_CATEGORIES[platform]
    return [c for c in graph.components.values() if c.category in categories]


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _issue(severity: Severity, message: str, component_ids, suggestion=None, connection_id=None):
    return ValidationIssue(
        severity=severity,
        message=message,
        suggestion=suggestion,
        affected_components=list(component_ids),
        connection_id=connection_id,
    )


# --- SSIS data flow ---


@rule("ssis-merge-join-inputs", platform=Platform.SSIS)
def merge_join_inputs(graph: PipelineGraph) -> Iterator[ValidationIssue]:
    """Merge Join needs exactly two sorted inputs."""
    for component in graph.by_category("MergeJoin"):
        sources = [graph.components[s] for s in graph.predecessors(component.id)]
        if len(sources) != 2:
            yield _issue(
                Severity.ERROR,
                "Merge Join requires exactly 2 input connections",
                [component.id],
            )
        elif not all(s.category == "Sort" or s.is_sorted for s in sources):
            yield _issue(
                Severity.ERROR,
                "Merge Join inputs must be sorted",
                [component.id],
                suggestion="Add a Sort transformation before each input",
            )


@rule("ssis-lookup-reference", platform=Platform.SSIS)
def lookup_reference(graph: PipelineGraph) -> Iterator[ValidationIssue]:
    """Lookup needs a reference input."""
    for component in graph.by_category("Lookup"):
        if not component.reference_input:
            yield _issue(
                Severity.ERROR,
                "Lookup requires a reference input",
                [component.id],
                suggestion="Configure the reference dataset for the lookup",
            )


@rule("ssis-multiple-inputs", platform=Platform.SSIS)
def multiple_inputs(graph: PipelineGraph) -> Iterator[ValidationIssue]:
    """Only Union All, Merge Join and Lookup accept several inputs."""
    allowed = {"UnionAll", "MergeJoin", "Lookup"}
    for component in _platform_components(graph, Platform.SSIS):
        if component.kind != ComponentKind.TRANSFORMATION.value or component.category in allowed:
            continue
        if len(graph.incoming.get(component.id, [])) > 1:
            yield _issue(
                Severity.ERROR,
                f"{component.category} cannot accept multiple inputs. "
                "Only Union All, Merge Join, and Lookup support multiple inputs.",
                [component.id],
            )


@rule("ssis-single-output", platform=Platform.SSIS)
def single_output(graph: PipelineGraph) -> Iterator[ValidationIssue]:
    """Transformations other than Multicast and Conditional Split have one data output."""
    allowed = {"Multicast", "ConditionalSplit"}
    for component in _platform_components(graph, Platform.SSIS):
        if component.kind != ComponentKind.TRANSFORMATION.value or component.category in allowed:
            continue
        data_outputs = graph.outgoing_by_handle.get((component.id, HandleRole.OUTPUT.value), [])
        if len(data_outputs) > 1:
            yield _issue(
                Severity.ERROR,
                f"{component.category} can only have one output connection",
                [component.id],
                suggestion="Use Multicast to send data to multiple destinations",
            )


@rule("ssis-union-all-types", platform=Platform.SSIS)
def union_all_types(graph: PipelineGraph) -> Iterator[ValidationIssue]:
    """Union All inputs must share one data type."""
    for component in graph.by_category("UnionAll"):
        types = {graph.components[s].data_type for s in graph.predecessors(component.id)}
        if len(types) > 1:
            yield _issue(
                Severity.ERROR,
                "Union All requires all inputs to have the same column structure "
                f"(found {', '.join(sorted(types))})",
                [component.id],
            )


_CONVERSION_ERRORS = {
    ("FlatFileSource", "OLEDBDestination"): (
        "Cannot connect CSV directly to OLE DB Destination: CSV outputs text, "
        "OLE DB expects typed columns",
        "Add a Data Conversion transformation between them",
    ),
    ("ExcelSource", "OLEDBDestination"): (
        "Excel columns may have mixed types",
        "Add a Data Conversion to ensure type consistency",
    ),
    ("JSONSource", "OLEDBDestination"): (
        "JSON has nested structures",
        "Add a Derived Column to flatten the data first",
    ),
}


@rule("ssis-type-conversion", platform=Platform.SSIS)
def type_conversion(graph: PipelineGraph) -> Iterator[ValidationIssue]:
    """Text, Excel and JSON sources need a conversion before an OLE DB destination."""
    for connection in graph.resolved_connections:
        source = graph.components[connection.source]
        target = graph.components[connection.target]
        found = _CONVERSION_ERRORS.get((source.category, target.category))
        if found:
            message, suggestion = found
            yield _issue(
                Severity.ERROR,
                message,
                [source.id, target.id],
                suggestion=suggestion,
                connection_id=connection.id,
            )


@rule("ssis-excel-row-limit", platform=Platform.SSIS)
def excel_row_limit(graph: PipelineGraph) -> Iterator[ValidationIssue]:
    """Database to Excel loads can hit the 65,536 row limit."""
    for connection in graph.resolved_connections:
        source = graph.components[connection.source]
        target = graph.components[connection.target]
        if source.category == "OLEDBSource" and target.category == "ExcelDestination":
            yield _issue(
                Severity.WARNING,
                "Excel has a 65,536 row limit; data may be truncated",
                [source.id, target.id],
                suggestion="Consider a flat file destination instead",
                connection_id=connection.id,
            )


@rule("ssis-path-to-destination", platform=Platform.SSIS)
def path_to_destination(graph: PipelineGraph) -> Iterator[ValidationIssue]:
    """Every data flow component should reach a destination."""
    data_kinds = {ComponentKind.SOURCE.value, ComponentKind.TRANSFORMATION.value}
    for component in _platform_components(graph, Platform.SSIS):
        if component.kind not in data_kinds:
            continue
        seen = {component.id}
        queue = deque([component.id])
        reached = False
        while queue and not reached:
            for target in graph.successors(queue.popleft()):
                if graph.components[target].kind == ComponentKind.DESTINATION.value:
                    reached = True
                    break
                if target not in seen:
                    seen.add(target)
                    queue.append(target)
        if not reached:
            yield _issue(
                Severity.WARNING,
                f"{component.name} has no path to a destination; data will not be loaded anywhere",
                [component.id],
            )


# --- Azure Data Factory ---


@rule("adf-activity-name", platform=Platform.ADF)
def activity_name(graph: PipelineGraph) -> Iterator[ValidationIssue]:
    """Activities need a name."""
    for component in _platform_components(graph, Platform.ADF):
        if _blank(component.name):
            yield _issue(Severity.ERROR, "Activity name is required", [component.id])


# (category, property, severity, message)
_ADF_REQUIRED_PROPERTIES = [
    ("WebActivity", "url", Severity.ERROR, "URL is required for Web Activity"),
    ("WebActivity", "method", Severity.ERROR, "HTTP method is required for Web Activity"),
    ("ForEach", "items", Severity.ERROR, "Items property is required for ForEach activity"),
    ("IfCondition", "expression", Severity.ERROR, "Expression is required for If Condition"),
    ("Switch", "on", Severity.ERROR, "On property (expression) is required for Switch activity"),
    (
        "ExecutePipeline",
        "pipelineReference",
        Severity.WARNING,
        "Pipeline reference is required for Execute Pipeline activity",
    ),
    ("SetVariable", "variableName", Severity.WARNING, "Variable name is required"),
]


@rule("adf-required-properties", platform=Platform.ADF)
def required_properties(graph: PipelineGraph) -> Iterator[ValidationIssue]:
    """Activity specific required settings."""
    for category, key, severity, message in _ADF_REQUIRED_PROPERTIES:
        for component in graph.by_category(category):
            if _blank(component.properties.get(key)):
                yield _issue(severity, message, [component.id])


@rule("adf-wait-negative", platform=Platform.ADF)
def wait_negative(graph: PipelineGraph) -> Iterator[ValidationIssue]:
    """Wait time cannot be negative."""
    for component in graph.by_category("Wait"):
        wait_time = component.properties.get("waitTimeInSeconds")
        if isinstance(wait_time, (int, float)) and not isinstance(wait_time, bool) and wait_time < 0:
            yield _issue(Severity.ERROR, "Wait time cannot be negative", [component.id])


@rule("adf-isolated-activity", platform=Platform.ADF)
def isolated_activity(graph: PipelineGraph) -> Iterator[ValidationIssue]:
    """Activities without any connection in a multi-activity pipeline."""
    activities = _platform_components(graph, Platform.ADF)
    if len(graph.components) < 2:
        return
    for component in activities:
        if not graph.incoming.get(component.id) and not graph.outgoing.get(component.id):
            yield _issue(
                Severity.WARNING,
                "Activity is isolated (no inputs or outputs)",
                [component.id],
            )


# --- Databricks ---

_COMPUTE_KINDS = {
    ComponentKind.NOTEBOOK.value,
    ComponentKind.DATA_SOURCE.value,
    ComponentKind.TRANSFORMATION.value,
    ComponentKind.OUTPUT.value,
}
_NOTEBOOK_LANGUAGES = {"python", "scala", "sql", "r", "markdown"}
_CREDENTIAL_KEYS = ("password", "connectionString", "apiKey")


@rule("databricks-cluster-assignment", platform=Platform.DATABRICKS)
def cluster_assignment(graph: PipelineGraph) -> Iterator[ValidationIssue]:
    """Compute components need a cluster."""
    unassigned = [
        c.id
        for c in _platform_components(graph, Platform.DATABRICKS)
        if c.kind in _COMPUTE_KINDS and _blank(c.properties.get("clusterId"))
    ]
    if unassigned:
        yield _issue(
            Severity.ERROR,
            f"{len(unassigned)} component(s) need cluster configuration",
            unassigned,
            suggestion="Set clusterId to a cluster for execution",
        )


@rule("databricks-runtime-lts", platform=Platform.DATABRICKS)
def runtime_lts(graph: PipelineGraph) -> Iterator[ValidationIssue]:
    """Prefer Long-Term Support runtimes."""
    for cluster in graph.by_kind(ComponentKind.CLUSTER):
        runtime = cluster.properties.get("runtimeVersion")
        if not isinstance(runtime, str) or not runtime:
            continue
        if "LTS" not in runtime and "13.3" not in runtime and "14.3" not in runtime:
            yield _issue(
                Severity.WARNING,
                "Non-LTS runtime version detected",
                [cluster.id],
                suggestion="Use an LTS runtime (13.3 LTS, 14.3 LTS) for production workloads",
            )


@rule("databricks-delta-naming", platform=Platform.DATABRICKS)
def delta_naming(graph: PipelineGraph) -> Iterator[ValidationIssue]:
    """Delta tables need catalog, schema and table."""
    for component in graph.by_category("DeltaTableSource", "DeltaTableSink"):
        props = component.properties
        if any(_blank(props.get(key)) for key in ("catalog", "schema", "table")):
            yield _issue(
                Severity.ERROR,
                "Delta table components must specify catalog, schema, and table name",
                [component.id],
            )


@rule("databricks-notebook-language", platform=Platform.DATABRICKS)
def notebook_language(graph: PipelineGraph) -> Iterator[ValidationIssue]:
    """Notebooks need a supported language."""
    for notebook in graph.by_kind(ComponentKind.NOTEBOOK):
        if notebook.properties.get("notebookLanguage") not in _NOTEBOOK_LANGUAGES:
            yield _issue(
                Severity.ERROR,
                "Notebook must specify a valid language (python, scala, sql, r, or markdown)",
                [notebook.id],
            )


@rule("databricks-streaming-checkpoint", platform=Platform.DATABRICKS)
def streaming_checkpoint(graph: PipelineGraph) -> Iterator[ValidationIssue]:
    """Streaming components need a checkpoint location."""
    for component in graph.components.values():
        streaming = component.category in ("KafkaStream", "AutoLoader") or (
            component.properties.get("streaming") is True
        )
        if streaming and _blank(component.properties.get("checkpointLocation")):
            yield _issue(
                Severity.ERROR,
                "Streaming components must specify a checkpoint location for fault tolerance",
                [component.id],
            )


@rule("databricks-all-purpose-cluster", platform=Platform.DATABRICKS)
def all_purpose_cluster(graph: PipelineGraph) -> Iterator[ValidationIssue]:
    """Production jobs should run on job clusters."""
    clusters = graph.by_category("AllPurposeCluster")
    if clusters:
        yield _issue(
            Severity.WARNING,
            "Use Job Clusters for production workloads instead of All-Purpose clusters",
            [c.id for c in clusters],
        )


@rule("databricks-hardcoded-credentials", platform=Platform.DATABRICKS)
def hardcoded_credentials(graph: PipelineGraph) -> Iterator[ValidationIssue]:
    """Credentials belong in secret scopes."""
    offenders = [
        c.id
        for c in graph.components.values()
        if any(c.properties.get(key) for key in _CREDENTIAL_KEYS)
    ]
    if offenders:
        yield _issue(
            Severity.ERROR,
            "Never hardcode credentials",
            offenders,
            suggestion="Use Databricks Secrets for sensitive information",
        )


@rule("databricks-warehouse-photon", platform=Platform.DATABRICKS)
def warehouse_photon(graph: PipelineGraph) -> Iterator[ValidationIssue]:
    """SQL warehouses should enable Photon."""
    for warehouse in graph.by_category("SQLWarehouse"):
        if not warehouse.properties.get("enablePhoton"):
            yield _issue(
                Severity.WARNING,
                "Enable Photon for better SQL query performance",
                [warehouse.id],
            )
