"""pipesim - static analysis and simulation of SSIS, ADF and Databricks pipelines."""

__version__ = "0.1.0"

from pipesim.config import (
    Component,
    Connection,
    CostParams,
    PipelineSnapshot,
    ProjectConfig,
    SimulationConfig,
    ValidationConfig,
)
from pipesim.graph import PipelineGraph
from pipesim.pipeline import (
    PipelineAnalyzer,
    analyze_performance,
    estimate_cost,
    generate_artifacts,
    load_project,
    reachability,
    simulate_data,
    simulate_execution,
    simulate_performance,
    suggest_optimizations,
    topological_order,
    validate,
)
from pipesim.validation import stamp_components, stamp_connections

__all__ = [
    "Component",
    "Connection",
    "CostParams",
    "PipelineAnalyzer",
    "PipelineGraph",
    "PipelineSnapshot",
    "ProjectConfig",
    "SimulationConfig",
    "ValidationConfig",
    "analyze_performance",
    "estimate_cost",
    "generate_artifacts",
    "load_project",
    "reachability",
    "simulate_data",
    "simulate_execution",
    "simulate_performance",
    "stamp_components",
    "stamp_connections",
    "suggest_optimizations",
    "topological_order",
    "validate",
    "__version__",
]
