"""Row and schema propagation for data previews."""

import zlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from pipesim.config import Component, Platform
from pipesim.graph import PipelineGraph
from pipesim.registry import platform_of
from pipesim.simulation.tables import (
    DATA_KINDS,
    DATABRICKS_DEFAULT_SCHEMA,
    DEFAULT_BASE_ROWS,
    DEFAULT_RULE,
    DEFAULT_SCHEMA,
    ROOT_KINDS,
    SOURCE_SCHEMAS,
    CategoryRule,
    Column,
    category_rule,
)
from pipesim.topology import topological_order
from pipesim.utils.logging import get_logger

Row = Dict[str, Any]


@dataclass
class ComponentPreview:
    """Illustrative output of one component."""

    component_id: str
    component_name: str
    category: str
    index: int
    schema: List[Dict[str, str]] = field(default_factory=list)
    rows: List[Row] = field(default_factory=list)
    row_count: int = 0
    incomplete: bool = False
    notes: List[str] = field(default_factory=list)


@dataclass
class FlowState:
    """What a component emits downstream."""

    columns: Tuple[Column, ...] = ()
    rows: List[Row] = field(default_factory=list)
    row_count: int = 0
    input_rows: int = 0


def sample_value(column: Column, component_index: int, row: int) -> Any:
    """Deterministic illustrative value for one cell.

    Depends only on the column, the component's position in the input
    array and the row number.
    """
    i = row + 1
    seed = zlib.crc32(column.name.encode("utf-8")) % 100
    if column.choices:
        return column.choices[(row + component_index) % len(column.choices)]
    if column.template:
        return column.template.format(i=i, c=component_index)
    if column.dtype == "int":
        return (component_index + 1) * 1000 + seed * 10 + i
    if column.dtype == "decimal":
        return round(seed + i * 10.25 + component_index * 0.5, 2)
    if column.dtype == "datetime":
        return f"2024-{seed % 12 + 1:02d}-{row % 28 + 1:02d}"
    if column.dtype == "boolean":
        return (seed + row + component_index) % 2 == 0
    return f"Sample {column.name} {i}"


def source_schema(category: str) -> Tuple[Column, ...]:
    if category in SOURCE_SCHEMAS:
        return SOURCE_SCHEMAS[category]
    if platform_of(category) == Platform.DATABRICKS:
        return DATABRICKS_DEFAULT_SCHEMA
    return DEFAULT_SCHEMA


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _first_numeric(columns: Tuple[Column, ...]) -> Optional[str]:
    for column in columns:
        if column.dtype in ("int", "decimal"):
            return column.name
    return None


def _numeric(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _sort_key(value: Any):
    return (0, float(value), "") if _is_number(value) else (1, 0.0, str(value))


def _add_column(columns: Tuple[Column, ...], column: Column) -> Tuple[Column, ...]:
    if any(c.name == column.name for c in columns):
        return columns
    return columns + (column,)


def _derive(columns, rows):
    names = {c.name for c in columns}
    if {"FirstName", "LastName"} <= names:
        new = Column("FullName")
        return _add_column(columns, new), [
            {**r, new.name: f"{r.get('FirstName')} {r.get('LastName')}"} for r in rows
        ]
    if {"Quantity", "UnitPrice"} <= names:
        new = Column("Total", "decimal")
        return _add_column(columns, new), [
            {**r, new.name: round(_numeric(r.get("Quantity")) * _numeric(r.get("UnitPrice")), 2)}
            for r in rows
        ]
    new = Column("CalculatedValue", "decimal")
    key = _first_numeric(columns) or (columns[0].name if columns else None)
    return _add_column(columns, new), [
        {**r, new.name: round(_numeric(r.get(key)) * 1.1, 2)} for r in rows
    ]


def _aggregate(columns, rows, row_count: int):
    if any(c.name == "Department" for c in columns):
        grouped: Dict[str, Row] = {}
        for r in rows:
            department = str(r.get("Department") or "Unknown")
            group = grouped.setdefault(
                department, {"Department": department, "Count": 0, "TotalSalary": 0.0}
            )
            group["Count"] += 1
            group["TotalSalary"] += _numeric(r.get("Salary"))
        return (
            (Column("Department"), Column("Count", "int"), Column("TotalSalary", "decimal")),
            list(grouped.values()),
        )

    key = _first_numeric(columns)
    values = [_numeric(r.get(key)) for r in rows] if key else []
    total = round(sum(values), 2)
    summary = {
        "TotalRecords": row_count,
        "Sum": total,
        "Average": round(total / len(values), 2) if values else 0.0,
    }
    return (
        (Column("TotalRecords", "int"), Column("Sum", "decimal"), Column("Average", "decimal")),
        [summary] if rows else [],
    )


def _convert(rows):
    converted = []
    for r in rows:
        out = dict(r)
        for key, value in r.items():
            if isinstance(value, str) and value.strip():
                try:
                    out[key] = float(value)
                except ValueError:
                    pass
        converted.append(out)
    return converted


def _join(columns, rows, others: List[FlowState]):
    for other in others:
        for column in other.columns:
            if all(c.name != column.name for c in columns):
                columns = columns + (column,)
                rows = [
                    {**r, column.name: other.rows[n].get(column.name) if n < len(other.rows) else None}
                    for n, r in enumerate(rows)
                ]
    key = columns[0].name if columns else None
    joined = Column("JoinedValue")
    return _add_column(columns, joined), [{**r, joined.name: f"Joined-{r.get(key)}"} for r in rows]


def name_list(value) -> List[str]:
    """Comma-separated string or list of names; anything else is empty."""
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple)):
        return [str(part) for part in value]
    return []


def _dataframe(component: Component, columns, rows, factor: float):
    """DataFrameTransform is driven by its ``operations`` property."""
    props = component.properties
    operations = name_list(props.get("operations"))

    if "filter" in operations and props.get("filterCondition"):
        factor *= 0.7
        rows = [r for n, r in enumerate(rows) if n % 3 != 0]

    group_by = name_list(props.get("groupByColumns"))
    if "groupBy" in operations and group_by:
        factor *= 0.1
        kept = tuple(c for c in columns if c.name in group_by)
        columns = kept + (Column("count", "int"),)
        grouped: Dict[Tuple, Row] = {}
        for r in rows:
            key = tuple(r.get(c.name) for c in kept)
            entry = grouped.setdefault(key, {**{c.name: r.get(c.name) for c in kept}, "count": 0})
            entry["count"] += 1
        rows = list(grouped.values())

    select = name_list(props.get("selectColumns"))
    if "select" in operations and select and "*" not in select:
        columns = tuple(c for c in columns if c.name in select)
        rows = [{c.name: r.get(c.name) for c in columns} for r in rows]

    return columns, rows, factor


def _apply(
    component: Component,
    rule: CategoryRule,
    inputs: List[FlowState],
    sample_size: int,
) -> FlowState:
    first = inputs[0]
    if rule.combine == "sum":
        input_rows = sum(s.row_count for s in inputs)
        rows = [dict(r) for s in inputs for r in s.rows]
    else:
        input_rows = max(s.row_count for s in inputs)
        rows = [dict(r) for r in first.rows]
    columns = first.columns
    factor = rule.row_factor
    op = rule.schema_op

    if op == "derive":
        columns, rows = _derive(columns, rows)
    elif op == "filter":
        rows = [r for n, r in enumerate(rows) if n % 2 == 0]
    elif op == "sort":
        key = _first_numeric(columns) or (columns[0].name if columns else None)
        rows = sorted(rows, key=lambda r: _sort_key(r.get(key)))
    elif op == "aggregate":
        columns, rows = _aggregate(columns, rows, int(round(input_rows * factor)))
    elif op == "lookup":
        key = columns[0].name if columns else None
        columns = _add_column(_add_column(columns, Column("LookupValue")), Column("LookupStatus"))
        rows = [{**r, "LookupValue": f"Lookup-{r.get(key)}", "LookupStatus": "Found"} for r in rows]
    elif op == "join":
        columns, rows = _join(columns, rows, inputs[1:])
    elif op == "convert":
        rows = _convert(rows)
    elif op == "score":
        columns = _add_column(columns, Column("prediction", "decimal"))
        rows = [{**r, "prediction": round(0.5 + (n % 5) * 0.1, 2)} for n, r in enumerate(rows)]
    elif op == "dataframe":
        columns, rows, factor = _dataframe(component, columns, rows, factor)

    row_count = int(round(input_rows * factor))
    return FlowState(
        columns=columns,
        rows=rows[: min(sample_size, row_count)],
        row_count=row_count,
        input_rows=input_rows,
    )


def propagate(
    graph: PipelineGraph,
    order: List[str],
    base_row_count: int,
    sample_size: int = 0,
) -> Dict[str, FlowState]:
    """Push rows and schemas along ``order``.

    Each component's state depends only on the states of its resolved
    upstream components, which ``order`` guarantees are computed first.
    """
    states: Dict[str, FlowState] = {}

    for component_id in order:
        component = graph.components[component_id]
        rule = category_rule(component.category) or DEFAULT_RULE

        if component.kind not in DATA_KINDS:
            states[component_id] = FlowState()
            continue

        inputs = [
            states[p]
            for p in graph.predecessors(component_id)
            if p in states and graph.components[p].kind in DATA_KINDS
        ]
        if inputs:
            states[component_id] = _apply(component, rule, inputs, sample_size)
        elif component.kind in ROOT_KINDS:
            row_count = int(round(base_row_count * rule.row_factor))
            columns = source_schema(component.category)
            index = graph.index_of[component_id]
            rows = [
                {c.name: sample_value(c, index, n) for c in columns}
                for n in range(min(sample_size, row_count))
            ]
            states[component_id] = FlowState(columns, rows, row_count, row_count)
        else:
            states[component_id] = FlowState()

    return states


def simulate_data(
    graph: PipelineGraph,
    base_row_count: int = DEFAULT_BASE_ROWS,
    sample_size: int = 5,
) -> List[ComponentPreview]:
    """Per-component data preview in topological order.

    Components left unresolved by a cycle are appended with
    ``incomplete=True`` and no rows. Data components of an unknown category are simulated with the
    default pass-through rule and carry a note saying so.

    Args:
        graph: Graph to simulate
        base_row_count: Rows emitted by a source with row factor 1.0
        sample_size: Maximum sample rows per component

    Returns:
        One ComponentPreview per component
    """
    logger = get_logger()
    topo = topological_order(graph)
    states = propagate(graph, topo.order, base_row_count, sample_size)

    previews = []
    for component_id in topo.order:
        component = graph.components[component_id]
        state = states[component_id]
        notes = []
        if component.kind in DATA_KINDS and category_rule(component.category) is None:
            notes.append(f"Unknown category '{component.category}': rows passed through unchanged")
            logger.warning(
                "Unknown category, using default rule",
                component_id=component_id,
                category=component.category,
            )
        previews.append(
            ComponentPreview(
                component_id=component_id,
                component_name=component.name,
                category=component.category,
                index=graph.index_of[component_id],
                schema=[{"name": c.name, "type": c.dtype} for c in state.columns],
                rows=state.rows,
                row_count=state.row_count,
                notes=notes,
            )
        )

    for component_id in topo.unresolved:
        component = graph.components[component_id]
        previews.append(
            ComponentPreview(
                component_id=component_id,
                component_name=component.name,
                category=component.category,
                index=graph.index_of[component_id],
                incomplete=True,
            )
        )

    logger.debug(
        "Data preview simulated",
        components=len(previews),
        base_row_count=base_row_count,
        incomplete=topo.incomplete,
    )
    return previews
