"""Artifact generation entry point."""

from typing import Dict, Type

from pipesim.artifacts.adf import ADFRenderer
from pipesim.artifacts.context import ArtifactContext
from pipesim.artifacts.jobs import CLIRenderer, JobRenderer, TerraformRenderer
from pipesim.artifacts.pyspark import DLTRenderer, NotebookRenderer, PySparkRenderer
from pipesim.artifacts.sql import SparkSQLRenderer
from pipesim.exceptions import UnsupportedFormatError
from pipesim.graph import PipelineGraph
from pipesim.utils.logging import get_logger

RENDERERS: Dict[str, Type] = {
    "pyspark": PySparkRenderer,
    "sql": SparkSQLRenderer,
    "notebook": NotebookRenderer,
    "job": JobRenderer,
    "dlt": DLTRenderer,
    "adf": ADFRenderer,
    "terraform": TerraformRenderer,
    "cli": CLIRenderer,
}

SUPPORTED_FORMATS = list(RENDERERS.keys())


def get_renderer(target_format: str):
    """
    Get renderer for specified format.

    Args:
        target_format: One of SUPPORTED_FORMATS (case-insensitive)

    Returns:
        Renderer instance

    Raises:
        UnsupportedFormatError: If format is not supported
    """
    renderer_class = RENDERERS.get(str(target_format).lower())
    if renderer_class is None:
        raise UnsupportedFormatError(str(target_format), SUPPORTED_FORMATS)
    return renderer_class()


def generate_artifacts(graph: PipelineGraph, target_format: str) -> str:
    """Render the graph in ``target_format``.

    Output is a pure function of the graph: fragments follow the
    topological order, identifiers derive from component ids, and nothing
    time-dependent is emitted. A cyclic graph yields the acyclic prefix
    marked as incomplete.
    """
    renderer = get_renderer(target_format)
    ctx = ArtifactContext.build(graph)
    text = renderer.render(ctx)
    get_logger().debug(
        "Artifacts generated",
        format=target_format,
        components=len(ctx.topo.order),
        incomplete=ctx.topo.incomplete,
    )
    return text
