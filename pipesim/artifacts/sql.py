"""Spark SQL renderer: one temporary view or statement per component."""

from typing import List, Optional

from pipesim.artifacts.context import ArtifactContext, prop, string_list
from pipesim.artifacts.pyspark import as_int, header_lines, storage_url, table_name
from pipesim.config import Component, ComponentKind

_NON_DATA = (
    ComponentKind.CLUSTER.value,
    ComponentKind.ORCHESTRATION.value,
    ComponentKind.CONTROL_FLOW.value,
    ComponentKind.CONTROL_FLOW_TASK.value,
)


def _literal(value: str) -> str:
    return "'" + str(value).replace("'", "''") + "'"


def _select(ctx: ArtifactContext, component: Component) -> Optional[str]:
    """SELECT producing the component's output, or None if it has no template."""
    category = component.category
    upstream = ctx.upstream_variable(component.id)
    source = upstream or "(SELECT NULL AS value WHERE 1 = 0)"

    if category == "DeltaTableSource":
        return f"SELECT * FROM {table_name(component)}"
    if category in ("AzureBlobStorage", "ADLSGen2"):
        scheme = "wasbs" if category == "AzureBlobStorage" else "abfss"
        fmt = prop(component, "format", "parquet" if scheme == "wasbs" else "delta")
        return f"SELECT * FROM {fmt}.`{storage_url(component, scheme)}`"
    if category == "DeltaLakeTimeTravel":
        timestamp = component.properties.get("timestamp")
        if timestamp:
            return f"SELECT * FROM {table_name(component)} TIMESTAMP AS OF {_literal(timestamp)}"
        version = as_int(component.properties.get("version"), 0)
        return f"SELECT * FROM {table_name(component)} VERSION AS OF {version}"
    if category == "SparkSQLQuery":
        return prop(component, "query", f"SELECT * FROM {source}")
    if category == "DataFrameTransform":
        operations = string_list(component, "operations")
        columns = ["*"]
        if "select" in operations:
            columns = string_list(component, "selectColumns") or ["*"]
        group_by = string_list(component, "groupByColumns") if "groupBy" in operations else []
        if group_by:
            columns = group_by + (string_list(component, "aggregations") or ["COUNT(*) AS count"])
        statement = f"SELECT {', '.join(columns)} FROM {source}"
        condition = component.properties.get("filterCondition")
        if "filter" in operations and condition:
            statement += f" WHERE {condition}"
        if group_by:
            statement += f" GROUP BY {', '.join(group_by)}"
        return statement
    if category in ("PythonNotebook", "SQLNotebook", "ScalaNotebook", "RNotebook"):
        code = component.properties.get("code")
        if category == "SQLNotebook" and code:
            return str(code).strip().rstrip(";")
        return f"SELECT * FROM {upstream}" if upstream else None
    return None


def _statements(ctx: ArtifactContext, component: Component) -> Optional[List[str]]:
    category = component.category
    upstream = ctx.upstream_variable(component.id)

    if category in ("DeltaTableSink", "PowerBIDataset"):
        if upstream is None:
            return ["-- No upstream input connected; nothing written"]
        table = table_name(component, "output_table")
        statements = []
        if prop(component, "mode", "append") == "overwrite":
            statements.append(f"INSERT OVERWRITE {table} SELECT * FROM {upstream};")
        else:
            statements.append(f"INSERT INTO {table} SELECT * FROM {upstream};")
        z_order = string_list(component, "zOrderColumns")
        if z_order:
            statements.append(f"OPTIMIZE {table} ZORDER BY ({', '.join(z_order)});")
        return statements

    if category == "DeltaLakeMerge":
        target = prop(component, "targetTable", "target_table")
        source = upstream or prop(component, "sourceTable", "source_table")
        condition = prop(component, "mergeCondition", "target.id = source.id")
        ctx.defined.add(component.id)
        return [
            f"MERGE INTO {target} AS target",
            f"USING {source} AS source",
            f"ON {condition}",
            "WHEN MATCHED THEN UPDATE SET *",
            "WHEN NOT MATCHED THEN INSERT *;",
            f"CREATE OR REPLACE TEMP VIEW {ctx.variable(component.id)} AS SELECT * FROM {target};",
        ]

    select = _select(ctx, component)
    if select is None:
        return None
    ctx.defined.add(component.id)
    return [f"CREATE OR REPLACE TEMP VIEW {ctx.variable(component.id)} AS", f"{select};"]


class SparkSQLRenderer:
    """Renders data components as Spark SQL.

    Each producing component becomes a temporary view named after its
    variable, so downstream statements read from their first upstream's
    view. Compute and task components are not expressed in SQL.
    """

    def render(self, ctx: ArtifactContext) -> str:
        lines = header_lines(ctx, "Spark SQL pipeline", comment="--")
        for component in ctx.ordered:
            if component.kind in _NON_DATA:
                continue
            statements = _statements(ctx, component)
            lines.append("")
            lines.append(f"-- {component.name} ({component.category})")
            if statements is None:
                lines.append(
                    f"-- PLACEHOLDER: no Spark SQL template for category '{component.category}'"
                )
                continue
            lines.extend(statements)
        return "\n".join(lines) + "\n"
