"""Public analysis API and the memoizing PipelineAnalyzer."""

from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from pipesim.artifacts import generate_artifacts as _generate_artifacts
from pipesim.config import (
    CostParams,
    PipelineSnapshot,
    ProjectConfig,
    SimulationConfig,
    ValidationConfig,
)
from pipesim.exceptions import ConfigValidationError
from pipesim.graph import PipelineGraph
from pipesim.reachability import Reachability
from pipesim.reachability import reachability as _reachability
from pipesim.simulation import (
    ComponentPreview,
    CostBreakdown,
    ExecutionEstimate,
    OptimizationSuggestion,
    PerformanceAnalysis,
    SimulationResult,
)
from pipesim.simulation import analyze_performance as _analyze_performance
from pipesim.simulation import estimate_cost as _estimate_cost
from pipesim.simulation import simulate_data as _simulate_data
from pipesim.simulation import simulate_execution as _simulate_execution
from pipesim.simulation import simulate_performance as _simulate_performance
from pipesim.simulation import suggest_optimizations as _suggest_optimizations
from pipesim.simulation.tables import DEFAULT_BASE_ROWS
from pipesim.topology import TopologicalOrder
from pipesim.topology import topological_order as _topological_order
from pipesim.utils.config_loader import load_yaml_with_env
from pipesim.utils.hashing import compute_params_hash, compute_snapshot_hash
from pipesim.utils.logging import get_logger
from pipesim.validation import ValidationReport, Validator

GraphLike = Union[PipelineGraph, PipelineSnapshot, Dict[str, Any]]

DEFAULT_CACHE_ENTRIES = 128


def load_project(path: str, env: Optional[str] = None) -> ProjectConfig:
    """Load and validate a YAML snapshot file.

    Raises:
        FileNotFoundError: If the file (or an import) does not exist
        ConfigValidationError: If the document does not describe a project
    """
    data = load_yaml_with_env(path, env=env)
    try:
        return ProjectConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigValidationError(str(e), file=path) from e


def validate(graph: GraphLike, config: Optional[ValidationConfig] = None) -> ValidationReport:
    return Validator(config).validate(PipelineGraph.coerce(graph))


def reachability(graph: GraphLike, selected_id: str) -> Reachability:
    return _reachability(PipelineGraph.coerce(graph), selected_id)


def topological_order(graph: GraphLike) -> TopologicalOrder:
    return _topological_order(PipelineGraph.coerce(graph))


def simulate_data(
    graph: GraphLike, base_row_count: int = DEFAULT_BASE_ROWS, sample_size: int = 5
) -> List[ComponentPreview]:
    return _simulate_data(PipelineGraph.coerce(graph), base_row_count, sample_size)


def simulate_performance(graph: GraphLike, base_row_count: int = DEFAULT_BASE_ROWS) -> SimulationResult:
    return _simulate_performance(PipelineGraph.coerce(graph), base_row_count)


def estimate_cost(graph: GraphLike, params: Optional[CostParams] = None) -> CostBreakdown:
    return _estimate_cost(PipelineGraph.coerce(graph), params)


def generate_artifacts(graph: GraphLike, target_format: str) -> str:
    return _generate_artifacts(PipelineGraph.coerce(graph), target_format)


def analyze_performance(graph: GraphLike) -> PerformanceAnalysis:
    return _analyze_performance(PipelineGraph.coerce(graph))


def suggest_optimizations(graph: GraphLike) -> List[OptimizationSuggestion]:
    return _suggest_optimizations(PipelineGraph.coerce(graph))


def simulate_execution(
    graph: GraphLike, base_row_count: int = DEFAULT_BASE_ROWS
) -> ExecutionEstimate:
    return _simulate_execution(PipelineGraph.coerce(graph), base_row_count)


class PipelineAnalyzer:
    """Runs analyses with project settings, memoizing each result.

    Results are keyed by a structural hash of the snapshot plus the
    analysis parameters, so an unchanged snapshot is never re-analyzed even
    when it arrives as a new object. Cached results are shared between
    callers and must be treated as read-only. At most ``max_entries``
    results are kept; the least recently used one is evicted first.

    Example:
        >>> analyzer = PipelineAnalyzer.from_project(load_project("pipeline.yaml"))
        >>> report = analyzer.validate(snapshot)
        >>> report is analyzer.validate(snapshot)
        True
    """

    def __init__(
        self,
        validation: Optional[ValidationConfig] = None,
        simulation: Optional[SimulationConfig] = None,
        cost: Optional[CostParams] = None,
        max_entries: int = DEFAULT_CACHE_ENTRIES,
    ):
        if max_entries < 1:
            raise ValueError(f"max_entries must be at least 1, got {max_entries}")
        self.validation_config = validation or ValidationConfig()
        self.simulation_config = simulation or SimulationConfig()
        self.cost_params = cost or CostParams()
        self.max_entries = max_entries
        self._cache: "OrderedDict[Tuple[str, str, str], Any]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    @classmethod
    def from_project(cls, project: ProjectConfig) -> "PipelineAnalyzer":
        return cls(validation=project.validation, simulation=project.simulation, cost=project.cost)

    def _memoize(self, analysis: str, graph: PipelineGraph, params: Any, compute: Callable) -> Any:
        if hasattr(params, "model_dump"):
            params = params.model_dump(mode="json")
        snapshot_hash = compute_snapshot_hash(graph.component_list, graph.connections)
        key = (
            analysis,
            snapshot_hash,
            compute_params_hash({"name": graph.name, "platform": graph.platform, "params": params}),
        )
        if key in self._cache:
            self.hits += 1
            self._cache.move_to_end(key)
            return self._cache[key]

        self.misses += 1
        get_logger().debug("Computing analysis", analysis=analysis, snapshot=snapshot_hash[:12])
        result = compute()
        self._cache[key] = result
        if len(self._cache) > self.max_entries:
            self._cache.popitem(last=False)
        return result

    def clear_cache(self) -> None:
        self._cache.clear()
        self.hits = 0
        self.misses = 0

    def validate(self, graph: GraphLike) -> ValidationReport:
        graph = PipelineGraph.coerce(graph)
        config = self.validation_config
        return self._memoize(
            "validate", graph, config, lambda: Validator(config).validate(graph)
        )

    def reachability(self, graph: GraphLike, selected_id: str) -> Reachability:
        graph = PipelineGraph.coerce(graph)
        return self._memoize(
            "reachability", graph, selected_id, lambda: _reachability(graph, selected_id)
        )

    def topological_order(self, graph: GraphLike) -> TopologicalOrder:
        graph = PipelineGraph.coerce(graph)
        return self._memoize("topological_order", graph, None, lambda: _topological_order(graph))

    def simulate_data(
        self,
        graph: GraphLike,
        base_row_count: Optional[int] = None,
        sample_size: Optional[int] = None,
    ) -> List[ComponentPreview]:
        graph = PipelineGraph.coerce(graph)
        rows = self.simulation_config.base_row_count if base_row_count is None else base_row_count
        sample = self.simulation_config.sample_size if sample_size is None else sample_size
        return self._memoize(
            "simulate_data", graph, [rows, sample], lambda: _simulate_data(graph, rows, sample)
        )

    def simulate_performance(
        self, graph: GraphLike, base_row_count: Optional[int] = None
    ) -> SimulationResult:
        graph = PipelineGraph.coerce(graph)
        rows = self.simulation_config.base_row_count if base_row_count is None else base_row_count
        return self._memoize(
            "simulate_performance", graph, rows, lambda: _simulate_performance(graph, rows)
        )

    def estimate_cost(self, graph: GraphLike, params: Optional[CostParams] = None) -> CostBreakdown:
        graph = PipelineGraph.coerce(graph)
        params = params or self.cost_params
        return self._memoize("estimate_cost", graph, params, lambda: _estimate_cost(graph, params))

    def generate_artifacts(self, graph: GraphLike, target_format: str) -> str:
        graph = PipelineGraph.coerce(graph)
        return self._memoize(
            "generate_artifacts",
            graph,
            target_format,
            lambda: _generate_artifacts(graph, target_format),
        )

    def analyze_performance(self, graph: GraphLike) -> PerformanceAnalysis:
        graph = PipelineGraph.coerce(graph)
        return self._memoize(
            "analyze_performance", graph, None, lambda: _analyze_performance(graph)
        )

    def suggest_optimizations(self, graph: GraphLike) -> List[OptimizationSuggestion]:
        graph = PipelineGraph.coerce(graph)
        return self._memoize(
            "suggest_optimizations", graph, None, lambda: _suggest_optimizations(graph)
        )

    def simulate_execution(
        self, graph: GraphLike, base_row_count: Optional[int] = None
    ) -> ExecutionEstimate:
        graph = PipelineGraph.coerce(graph)
        rows = self.simulation_config.base_row_count if base_row_count is None else base_row_count
        return self._memoize(
            "simulate_execution", graph, rows, lambda: _simulate_execution(graph, rows)
        )
