"""PySpark script, Jupyter notebook and Delta Live Tables renderers."""

import json
import keyword
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from pipesim.artifacts.context import ArtifactContext, prop, string_list
from pipesim.config import Component, ComponentKind
from pipesim.registry import platform_of

EMPTY_FRAME = 'spark.createDataFrame([], "value STRING")'


def q(value) -> str:
    """Python string literal."""
    return json.dumps(str(value))


def chain(prefix: str, parts: List[str]) -> List[str]:
    """Render a method chain, wrapped in parentheses when it spans lines."""
    if len(parts) == 1:
        return [f"{prefix}{parts[0]}"]
    return [f"{prefix}(", *[f"    {p}" for p in parts], ")"]


@dataclass
class Fragment:
    lines: List[str] = field(default_factory=list)
    defines: bool = False


Template = Callable[[ArtifactContext, Component], Fragment]
TEMPLATES: Dict[str, Template] = {}


def template(*categories: str) -> Callable[[Template], Template]:
    def decorator(func: Template) -> Template:
        for category in categories:
            TEMPLATES[category] = func
        return func

    return decorator


def table_name(component: Component, default_table: str = "table_name") -> str:
    return ".".join(
        [
            str(prop(component, "catalog", "main")),
            str(prop(component, "schema", "default")),
            str(prop(component, "table", default_table)),
        ]
    )


def storage_url(component: Component, scheme: str) -> str:
    account = prop(component, "storageAccount", "storageaccount")
    container = prop(component, "container", "container")
    path = prop(component, "path", "/path/to/data")
    host = "blob" if scheme == "wasbs" else "dfs"
    return f"{scheme}://{container}@{account}.{host}.core.windows.net{path}"


def _secret(component: Component, key: str) -> str:
    scope = prop(component, "secretScope", "keyvault")
    return f"dbutils.secrets.get(scope={q(scope)}, key={q(key)})"


# Read expressions are shared by the script and DLT renderers.


def read_parts(component: Component) -> Optional[List[str]]:
    """Method chain reading a source category, or None if not a reader."""
    category = component.category
    if category == "DeltaTableSource":
        return [f"spark.read.table({q(table_name(component))})"]
    if category == "AzureBlobStorage":
        return [
            f"spark.read.format({q(prop(component, 'format', 'parquet'))})",
            '.option("header", "true")',
            f".load({q(storage_url(component, 'wasbs'))})",
        ]
    if category == "ADLSGen2":
        return [
            f"spark.read.format({q(prop(component, 'format', 'delta'))})",
            f".load({q(storage_url(component, 'abfss'))})",
        ]
    if category == "AzureSQLDatabase":
        server = prop(component, "server", "server.database.windows.net")
        database = prop(component, "database", "database")
        return [
            'spark.read.format("jdbc")',
            f'.option("url", {q(f"jdbc:sqlserver://{server}:1433;database={database}")})',
            f'.option("dbtable", {q(prop(component, "table", "table"))})',
            f'.option("user", {_secret(component, "sql-user")})',
            f'.option("password", {_secret(component, "sql-password")})',
            ".load()",
        ]
    if category == "SnowflakeConnector":
        return [
            'spark.read.format("snowflake")',
            f'.option("sfUrl", {q(prop(component, "account", "account.snowflakecomputing.com"))})',
            f'.option("sfDatabase", {q(prop(component, "database", "database"))})',
            f'.option("sfSchema", {q(prop(component, "schema", "PUBLIC"))})',
            f'.option("sfWarehouse", {q(prop(component, "warehouse", "COMPUTE_WH"))})',
            f'.option("sfUser", {_secret(component, "snowflake-user")})',
            f'.option("sfPassword", {_secret(component, "snowflake-password")})',
            f'.option("dbtable", {q(prop(component, "table", "table"))})',
            ".load()",
        ]
    if category == "KafkaStream":
        return [
            'spark.readStream.format("kafka")',
            f'.option("kafka.bootstrap.servers", '
            f'{q(prop(component, "bootstrapServers", "kafka-broker:9092"))})',
            f'.option("subscribe", {q(prop(component, "topic", "topic"))})',
            f'.option("startingOffsets", {q(prop(component, "startingOffsets", "latest"))})',
            ".load()",
        ]
    if category == "AutoLoader":
        return [
            'spark.readStream.format("cloudFiles")',
            f'.option("cloudFiles.format", {q(prop(component, "format", "json"))})',
            f'.option("cloudFiles.schemaLocation", '
            f'{q(prop(component, "checkpointLocation", "/tmp/checkpoints/autoloader"))})',
            f'.load({q(prop(component, "path", "/mnt/landing"))})',
        ]
    if category == "DeltaLakeTimeTravel":
        version = component.properties.get("version")
        timestamp = component.properties.get("timestamp")
        parts = ["spark.read"]
        if timestamp:
            parts.append(f'.option("timestampAsOf", {q(timestamp)})')
        else:
            parts.append(f'.option("versionAsOf", {as_int(version, 0)})')
        parts.append(f".table({q(table_name(component))})")
        return parts
    return None


def transform_parts(component: Component, source: str) -> List[str]:
    """DataFrameTransform operations applied to ``source``."""
    parts = [source]
    operations = string_list(component, "operations")
    condition = component.properties.get("filterCondition")
    if "filter" in operations and condition:
        parts.append(f".filter({q(condition)})")
    if "select" in operations:
        columns = string_list(component, "selectColumns") or ["*"]
        if "*" in columns:
            parts.append('.select("*")')
        else:
            parts.append(".select(" + ", ".join(f"F.col({q(c)})" for c in columns) + ")")
    group_by = string_list(component, "groupByColumns")
    if "groupBy" in operations and group_by:
        aggregations = string_list(component, "aggregations")
        aggs = ", ".join(f"F.expr({q(a)})" for a in aggregations) or 'F.count("*").alias("count")'
        parts.append(".groupBy(" + ", ".join(q(c) for c in group_by) + f").agg({aggs})")
    return parts


def as_int(value, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _input(ctx: ArtifactContext, component: Component) -> str:
    return ctx.upstream_variable(component.id) or EMPTY_FRAME


@template(
    "DeltaTableSource",
    "AzureBlobStorage",
    "ADLSGen2",
    "AzureSQLDatabase",
    "SnowflakeConnector",
    "KafkaStream",
    "AutoLoader",
    "DeltaLakeTimeTravel",
)
def _reader(ctx, component):
    return Fragment(chain(f"{ctx.variable(component.id)} = ", read_parts(component)), True)


@template("DataFrameTransform")
def _dataframe_transform(ctx, component):
    parts = transform_parts(component, _input(ctx, component))
    return Fragment(chain(f"{ctx.variable(component.id)} = ", parts), True)


@template("SparkSQLQuery")
def _sql_query(ctx, component):
    var = ctx.variable(component.id)
    lines = []
    upstream = ctx.upstream_variable(component.id)
    default_query = "SELECT 1 AS value"
    if upstream:
        lines.append(f"{upstream}.createOrReplaceTempView({q(upstream)})")
        default_query = f"SELECT * FROM {upstream}"
    lines.append(f"{var} = spark.sql({q(prop(component, 'query', default_query))})")
    return Fragment(lines, True)


@template("DeltaLakeMerge")
def _merge(ctx, component):
    target = prop(component, "targetTable", "target_table")
    condition = prop(component, "mergeCondition", "target.id = source.id")
    source = ctx.upstream_variable(component.id)
    if source is None:
        source = f"spark.table({q(prop(component, 'sourceTable', 'source_table'))})"
    return Fragment(
        [
            "from delta.tables import DeltaTable",
            "",
            f"DeltaTable.forName(spark, {q(target)}).alias(\"target\").merge(",
            f"    {source}.alias(\"source\"), {q(condition)}",
            ").whenMatchedUpdateAll().whenNotMatchedInsertAll().execute()",
            f"{ctx.variable(component.id)} = spark.read.table({q(target)})",
        ],
        True,
    )


@template("MLflowModelTraining")
def _training(ctx, component):
    source = _input(ctx, component)
    return Fragment(
        [
            "import mlflow",
            "",
            "mlflow.autolog()",
            f"with mlflow.start_run(run_name={q(component.name)}):",
            f"    mlflow.log_param(\"training_rows\", {source}.count())",
            f"{ctx.variable(component.id)} = {source}",
        ],
        True,
    )


@template("MLflowModelServing")
def _serving(ctx, component):
    source = _input(ctx, component)
    model = prop(component, "modelName", "model")
    stage = prop(component, "stage", "Production")
    udf = f"predict_{ctx.slugs[component.id]}"
    return Fragment(
        [
            "import mlflow",
            "",
            f"{udf} = mlflow.pyfunc.spark_udf(spark, {q(f'models:/{model}/{stage}')})",
            f"{ctx.variable(component.id)} = {source}.withColumn("
            f"\"prediction\", {udf}(*{source}.columns))",
        ],
        True,
    )


@template("FeatureStoreIntegration")
def _feature_store(ctx, component):
    return Fragment(
        [
            "from databricks.feature_store import FeatureStoreClient",
            "",
            f"{ctx.variable(component.id)} = FeatureStoreClient().read_table("
            f"{q(prop(component, 'featureTable', 'main.default.features'))})",
        ],
        True,
    )


def _write(ctx, component, parts_after_source: List[str]) -> Fragment:
    source = ctx.upstream_variable(component.id)
    if source is None:
        return Fragment(["# No upstream input connected; nothing written"])
    return Fragment(chain("", [f"{source}.write", *parts_after_source]))


@template("DeltaTableSink", "PowerBIDataset")
def _delta_sink(ctx, component):
    table = table_name(component, "output_table")
    mode = prop(component, "mode", "append")
    parts = ['.format("delta")', f".mode({q(mode)})"]
    if mode == "overwrite":
        parts.append('.option("overwriteSchema", "true")')
    partition_by = string_list(component, "partitionBy")
    if partition_by:
        parts.append(".partitionBy(" + ", ".join(q(p) for p in partition_by) + ")")
    parts.append(f".saveAsTable({q(table)})")
    fragment = _write(ctx, component, parts)
    z_order = string_list(component, "zOrderColumns")
    if z_order and len(fragment.lines) > 1:
        optimize = f"OPTIMIZE {table} ZORDER BY ({', '.join(z_order)})"
        fragment.lines.append(f"spark.sql({q(optimize)})")
    return fragment


@template("AzureBlobStorageSink", "ADLSGen2Sink")
def _file_sink(ctx, component):
    scheme = "wasbs" if component.category == "AzureBlobStorageSink" else "abfss"
    return _write(
        ctx,
        component,
        [
            f".format({q(prop(component, 'format', 'delta'))})",
            f".mode({q(prop(component, 'mode', 'append'))})",
            f".save({q(storage_url(component, scheme))})",
        ],
    )


@template("AzureSQLDatabaseSink")
def _sql_sink(ctx, component):
    server = prop(component, "server", "server.database.windows.net")
    database = prop(component, "database", "database")
    return _write(
        ctx,
        component,
        [
            '.format("jdbc")',
            f'.option("url", {q(f"jdbc:sqlserver://{server}:1433;database={database}")})',
            f'.option("dbtable", {q(prop(component, "table", "table"))})',
            f'.option("user", {_secret(component, "sql-user")})',
            f'.option("password", {_secret(component, "sql-password")})',
            f".mode({q(prop(component, 'mode', 'append'))})",
            ".save()",
        ],
    )


@template("PythonNotebook", "SQLNotebook", "ScalaNotebook", "RNotebook")
def _notebook(ctx, component):
    var = ctx.variable(component.id)
    code = prop(component, "code", "")
    if component.category == "SQLNotebook" and code:
        return Fragment([f"{var} = spark.sql({q(code)})"], True)
    if component.category == "PythonNotebook" and code:
        lines = str(code).splitlines()
    else:
        default_path = f"/Workspace/notebooks/{ctx.slugs[component.id]}"
        path = prop(component, "notebookPath", default_path)
        timeout = as_int(component.properties.get("timeout"), 3600)
        lines = [f"dbutils.notebook.run({q(path)}, {timeout})"]
    upstream = ctx.upstream_variable(component.id)
    if upstream:
        lines.append(f"{var} = {upstream}")
    return Fragment(lines, upstream is not None)


@template("MarkdownNotebook")
def _markdown(ctx, component):
    text = str(prop(component, "code", component.name))
    return Fragment([f"# {line}" for line in text.splitlines()])


@template("NotebookTask")
def _notebook_task(ctx, component):
    path = prop(component, "notebookPath", "/path/to/notebook")
    parameters = component.properties.get("parameters")
    args = "{}"
    if isinstance(parameters, dict):
        args = repr({str(k): str(v) for k, v in sorted(parameters.items())})
    timeout = as_int(component.properties.get("timeout"), 3600)
    return Fragment([f"dbutils.notebook.run({q(path)}, {timeout}, {args})"])


@template("MLflowModelRegistry")
def _registry(ctx, component):
    run_id = prop(component, "runId", "<run_id>")
    return Fragment(
        [
            "import mlflow",
            "",
            f"mlflow.register_model({q(f'runs:/{run_id}/model')}, "
            f"{q(prop(component, 'modelName', 'model'))})",
        ]
    )


@template("JobTask", "JARTask", "PythonWheelTask", "DeltaLiveTables")
def _job_only(ctx, component):
    return Fragment(["# Runs as a Databricks job task; see the job artifact"])


@template("AllPurposeCluster", "JobCluster", "SQLWarehouse")
def _cluster(ctx, component):
    props = component.properties
    details = [
        str(props[key])
        for key in ("runtimeVersion", "nodeType", "clusterSize")
        if props.get(key)
    ]
    if "numWorkers" in props:
        details.append(f"{props['numWorkers']} workers")
    suffix = f": {', '.join(details)}" if details else ""
    return Fragment([f"# Compute{suffix}"])


def placeholder(ctx: ArtifactContext, component: Component, comment: str, label: str) -> Fragment:
    """Marked stand-in for a category without a template.

    Data components pass their input through so downstream references
    still resolve.
    """
    lines = [f"{comment} PLACEHOLDER: no {label} template for category '{component.category}'"]
    upstream = ctx.upstream_variable(component.id)
    if upstream and component.kind not in (ComponentKind.DESTINATION.value, ComponentKind.OUTPUT.value):
        lines.append(f"{ctx.variable(component.id)} = {upstream}")
        return Fragment(lines, True)
    return Fragment(lines)


def header_lines(ctx: ArtifactContext, title: str, comment: str = "#") -> List[str]:
    lines = [f"{comment} {title}: {ctx.graph.name}"]
    note = ctx.incomplete_note()
    if note:
        lines.append(f"{comment} {note}")
    return lines


class PySparkRenderer:
    """Renders the pipeline as a PySpark script, one fragment per component."""

    preamble = [
        "from pyspark.sql import SparkSession",
        "from pyspark.sql import functions as F",
    ]

    def fragments(self, ctx: ArtifactContext) -> List[List[str]]:
        """Per-component fragments in topological order."""
        rendered = []
        for component in ctx.ordered:
            func = TEMPLATES.get(component.category)
            if func is None:
                fragment = placeholder(ctx, component, "#", "PySpark")
            else:
                fragment = func(ctx, component)
            if fragment.defines:
                ctx.defined.add(component.id)
            rendered.append([f"# {component.name} ({component.category})", *fragment.lines])
        return rendered

    def setup_lines(self, ctx: ArtifactContext) -> List[str]:
        return [
            *self.preamble,
            "",
            f"spark = SparkSession.builder.appName({q(ctx.graph.name)}).getOrCreate()",
        ]

    def render(self, ctx: ArtifactContext) -> str:
        lines = header_lines(ctx, "PySpark pipeline")
        lines.append("")
        lines.extend(self.setup_lines(ctx))
        for fragment in self.fragments(ctx):
            lines.append("")
            lines.extend(fragment)
        return "\n".join(lines) + "\n"


def _cell(cell_type: str, lines: List[str]) -> Dict:
    source = [line + "\n" for line in lines]
    if source:
        source[-1] = source[-1].rstrip("\n")
    cell = {"cell_type": cell_type, "metadata": {}, "source": source}
    if cell_type == "code":
        cell["execution_count"] = None
        cell["outputs"] = []
    return cell


class NotebookRenderer:
    """Renders the PySpark script as an ``.ipynb`` document, one cell per component."""

    def render(self, ctx: ArtifactContext) -> str:
        script = PySparkRenderer()
        title = [f"# {ctx.graph.name}"]
        note = ctx.incomplete_note()
        if note:
            title.extend(["", f"**{note}**"])
        cells = [_cell("markdown", title), _cell("code", script.setup_lines(ctx))]
        cells.extend(_cell("code", fragment) for fragment in script.fragments(ctx))
        notebook = {
            "cells": cells,
            "metadata": {
                "kernelspec": {"display_name": "Python 3", "language": "python", "name": "python3"},
                "language_info": {"name": "python"},
            },
            "nbformat": 4,
            "nbformat_minor": 4,
        }
        return json.dumps(notebook, indent=2) + "\n"


_DLT_OUTPUTS = (ComponentKind.DESTINATION.value, ComponentKind.OUTPUT.value)
# module-level names a table function must not shadow
_DLT_NAMES_IN_USE = ("dlt", "spark")
_DLT_KINDS = (
    ComponentKind.SOURCE.value,
    ComponentKind.DATA_SOURCE.value,
    ComponentKind.TRANSFORMATION.value,
    *_DLT_OUTPUTS,
)


class DLTRenderer:
    """Renders data components as Delta Live Tables definitions.

    Sources, transformations and sinks each become a ``@dlt.table``;
    notebooks, tasks and compute are configured outside the DLT source.
    """

    def render(self, ctx: ArtifactContext) -> str:
        lines = header_lines(ctx, "Delta Live Tables pipeline")
        lines.extend(["", "import dlt", "from pyspark.sql import functions as F"])

        for component in ctx.ordered:
            if component.kind not in _DLT_KINDS:
                if platform_of(component.category) is None:
                    lines.extend(["", *placeholder(ctx, component, "#", "DLT").lines[:1]])
                continue

            slug = ctx.slugs[component.id]
            upstream = ctx.upstream(component.id)
            source = (
                f"dlt.read({q(ctx.slugs[upstream.id])})"
                if upstream is not None and upstream.id in ctx.defined
                else EMPTY_FRAME
            )
            parts = read_parts(component)
            comment = f"{component.name} ({component.category})"
            if parts is None and component.category == "DataFrameTransform":
                parts = transform_parts(component, source)
            elif parts is None:
                if platform_of(component.category) is None:
                    comment += f" PLACEHOLDER: no DLT template for category '{component.category}'"
                parts = [source]

            func = slug
            if not slug[0].isalpha() or keyword.iskeyword(slug) or slug in _DLT_NAMES_IN_USE:
                func = f"t_{slug}"
            name = slug
            if component.kind in _DLT_OUTPUTS and component.properties.get("table"):
                name = table_name(component)
            lines.extend(
                [
                    "",
                    "",
                    f"@dlt.table(name={q(name)}, comment={q(comment)})",
                    f"def {func}():",
                    *["    " + line for line in chain("return ", parts)],
                ]
            )
            ctx.defined.add(component.id)

        return "\n".join(lines) + "\n"
