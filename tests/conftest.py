import logging

import pytest

from pipesim.config import Component, Connection, Platform
from pipesim.graph import PipelineGraph
from pipesim.utils.logging import configure_logging


def build_graph(components, connections=(), name="pipeline", platform=Platform.MIXED):
    """
    Build a PipelineGraph from compact tuples.

    components: (id, kind, category) or (id, kind, category, properties)
    connections: (source, target) or (source, target, handle); ids are
    "source->target" (plus ":handle" when a handle is given).
    """
    built_components = []
    for spec in components:
        if isinstance(spec, Component):
            built_components.append(spec)
            continue
        component_id, kind, category = spec[:3]
        properties = spec[3] if len(spec) > 3 else {}
        built_components.append(
            Component(id=component_id, type=kind, category=category, properties=properties)
        )

    built_connections = []
    for spec in connections:
        if isinstance(spec, Connection):
            built_connections.append(spec)
            continue
        source, target = spec[:2]
        handle = spec[2] if len(spec) > 2 else None
        connection_id = f"{source}->{target}" + (f":{handle}" if handle else "")
        built_connections.append(
            Connection(id=connection_id, source=source, target=target, sourceHandle=handle)
        )

    return PipelineGraph(built_components, built_connections, name=name, platform=platform)


@pytest.fixture(autouse=True)
def quiet_logging():
    """Keep the pipesim logger at WARNING and off the root handlers between tests."""
    configure_logging(structured=False, level="WARNING")
    yield
    for handler in logging.getLogger("pipesim").handlers[:]:
        logging.getLogger("pipesim").removeHandler(handler)
    configure_logging(structured=False, level="WARNING")


@pytest.fixture
def make_graph():
    """Factory fixture wrapping :func:`build_graph`."""
    return build_graph


@pytest.fixture
def empty_graph():
    return build_graph([])


@pytest.fixture
def ssis_pipeline():
    """OLE DB source -> Derived Column -> Sort -> Aggregate -> OLE DB destination."""
    return build_graph(
        [
            ("src", "source", "OLEDBSource"),
            ("derive", "transformation", "DerivedColumn"),
            ("sort", "transformation", "Sort"),
            ("agg", "transformation", "Aggregate"),
            ("dest", "destination", "OLEDBDestination"),
        ],
        [("src", "derive"), ("derive", "sort"), ("sort", "agg"), ("agg", "dest")],
        name="customer_load",
        platform=Platform.SSIS,
    )


@pytest.fixture
def diamond():
    """A fans out to B and C, which merge into D."""
    return build_graph(
        [
            ("A", "source", "OLEDBSource"),
            ("B", "transformation", "DerivedColumn"),
            ("C", "transformation", "DataConversion"),
            ("D", "transformation", "UnionAll"),
        ],
        [("A", "B"), ("A", "C"), ("B", "D"), ("C", "D")],
    )


@pytest.fixture
def ring():
    """Three transformations in a loop."""
    return build_graph(
        [
            ("A", "transformation", "DerivedColumn"),
            ("B", "transformation", "DataConversion"),
            ("C", "transformation", "RowCount"),
        ],
        [("A", "B"), ("B", "C"), ("C", "A")],
    )


@pytest.fixture
def databricks_pipeline():
    """Job cluster plus a Delta source -> DataFrame transform -> Delta sink flow."""
    return build_graph(
        [
            (
                "cluster",
                "cluster",
                "JobCluster",
                {"runtimeVersion": "13.3.x-scala2.12", "nodeType": "Standard_DS3_v2", "numWorkers": 2},
            ),
            (
                "orders",
                "data-source",
                "DeltaTableSource",
                {"catalog": "main", "schema": "sales", "table": "orders", "clusterId": "cluster"},
            ),
            (
                "clean",
                "transformation",
                "DataFrameTransform",
                {
                    "operations": ["filter", "select"],
                    "filterCondition": "amount > 0",
                    "selectColumns": ["id", "amount"],
                    "clusterId": "cluster",
                },
            ),
            (
                "gold",
                "output",
                "DeltaTableSink",
                {
                    "catalog": "main",
                    "schema": "gold",
                    "table": "orders_clean",
                    "mode": "overwrite",
                    "partitionBy": ["id"],
                    "zOrderColumns": ["amount"],
                    "clusterId": "cluster",
                },
            ),
        ],
        [("orders", "clean"), ("clean", "gold")],
        name="orders_gold",
        platform=Platform.DATABRICKS,
    )
