import pytest

import pipesim
from pipesim.config import CostParams, CostPeriod, ProjectConfig, SimulationConfig
from pipesim.exceptions import ConfigValidationError, GraphContractError
from pipesim.graph import PipelineGraph
from pipesim.pipeline import PipelineAnalyzer, load_project
from pipesim.validation import stamp_components, stamp_connections


class TestModuleFunctions:
    def test_accepts_mapping(self):
        snapshot = {
            "name": "raw",
            "components": [
                {"id": "a", "type": "source", "category": "OLEDBSource"},
                {"id": "b", "type": "destination", "category": "OLEDBDestination"},
            ],
            "connections": [{"id": "c1", "source": "a", "target": "b"}],
        }
        assert pipesim.validate(snapshot).is_valid
        assert pipesim.topological_order(snapshot).order == ["a", "b"]
        assert pipesim.reachability(snapshot, "a").downstream == ["b"]
        assert len(pipesim.simulate_data(snapshot)) == 2
        assert pipesim.simulate_performance(snapshot).bottleneck_id is not None
        assert pipesim.estimate_cost(snapshot).total == 0.0
        assert pipesim.analyze_performance(snapshot).score == 100
        assert pipesim.generate_artifacts(snapshot, "pyspark").startswith("# PySpark pipeline: raw")

    def test_accepts_snapshot(self, diamond):
        assert pipesim.topological_order(diamond.snapshot).order == ["A", "B", "C", "D"]

    def test_rejects_non_graph(self):
        with pytest.raises(GraphContractError):
            pipesim.validate(None)
        with pytest.raises(GraphContractError):
            pipesim.simulate_performance("not a graph")


class TestPipelineAnalyzer:
    def test_memoizes_by_content(self, diamond):
        """A structurally identical graph hits the cache even as a new object."""
        analyzer = PipelineAnalyzer()
        first = analyzer.validate(diamond)
        second = analyzer.validate(PipelineGraph.from_snapshot(diamond.snapshot))
        assert second is first
        assert analyzer.misses == 1
        assert analyzer.hits == 1

    def test_restamping_keeps_cache(self, make_graph):
        graph = make_graph(
            [("a", "source", "OLEDBSource"), ("b", "destination", "OLEDBDestination")],
            [("a", "b"), ("a", "gone")],
        )
        analyzer = PipelineAnalyzer()
        report = analyzer.validate(graph)
        stamped = PipelineGraph(
            stamp_components(graph.component_list, report),
            stamp_connections(graph.connections, report),
        )
        assert analyzer.validate(stamped) is report

    def test_structural_change_misses(self, diamond):
        analyzer = PipelineAnalyzer()
        before = analyzer.topological_order(diamond)
        edited = PipelineGraph.from_snapshot(diamond.without_component("B"))
        after = analyzer.topological_order(edited)
        assert after is not before
        assert after.order == ["A", "C", "D"]
        assert analyzer.misses == 2

    def test_params_are_part_of_the_key(self, ssis_pipeline):
        analyzer = PipelineAnalyzer()
        small = analyzer.simulate_performance(ssis_pipeline, 100)
        large = analyzer.simulate_performance(ssis_pipeline, 100000)
        assert small is not large
        assert analyzer.simulate_performance(ssis_pipeline, 100) is small

    def test_analyses_cached_separately(self, databricks_pipeline):
        analyzer = PipelineAnalyzer()
        analyzer.estimate_cost(databricks_pipeline)
        analyzer.estimate_cost(databricks_pipeline, CostParams(period=CostPeriod.DAILY))
        analyzer.analyze_performance(databricks_pipeline)
        analyzer.generate_artifacts(databricks_pipeline, "job")
        analyzer.generate_artifacts(databricks_pipeline, "sql")
        assert analyzer.misses == 5
        analyzer.generate_artifacts(databricks_pipeline, "job")
        assert analyzer.hits == 1

    def test_defaults_from_project(self, ssis_pipeline):
        project = ProjectConfig(simulation=SimulationConfig(base_row_count=10, sample_size=1))
        analyzer = PipelineAnalyzer.from_project(project)
        previews = analyzer.simulate_data(ssis_pipeline)
        assert previews[0].row_count == 10
        assert len(previews[0].rows) == 1
        assert analyzer.simulate_data(ssis_pipeline, 10, 1) is previews

    def test_clear_cache(self, diamond):
        analyzer = PipelineAnalyzer()
        analyzer.reachability(diamond, "A")
        analyzer.clear_cache()
        assert analyzer.hits == 0
        assert analyzer.misses == 0
        analyzer.reachability(diamond, "A")
        assert analyzer.misses == 1

    def test_least_recently_used_evicted(self, diamond):
        analyzer = PipelineAnalyzer(max_entries=2)
        order = analyzer.topological_order(diamond)
        analyzer.validate(diamond)
        analyzer.topological_order(diamond)
        analyzer.reachability(diamond, "A")
        assert len(analyzer._cache) == 2
        # validate was least recently used
        assert analyzer.topological_order(diamond) is order
        analyzer.validate(diamond)
        assert analyzer.misses == 4
        assert analyzer.hits == 2

    def test_max_entries_must_be_positive(self):
        with pytest.raises(ValueError, match="max_entries must be at least 1, got 0"):
            PipelineAnalyzer(max_entries=0)

    def test_suggestions_and_execution_memoized(self, databricks_pipeline):
        project = ProjectConfig(simulation=SimulationConfig(base_row_count=0))
        analyzer = PipelineAnalyzer.from_project(project)
        suggestions = analyzer.suggest_optimizations(databricks_pipeline)
        estimate = analyzer.simulate_execution(databricks_pipeline)
        assert estimate.total_execution_time_ms == 300.0
        assert analyzer.suggest_optimizations(databricks_pipeline) is suggestions
        assert analyzer.simulate_execution(databricks_pipeline, 0) is estimate
        assert analyzer.simulate_execution(databricks_pipeline, 10) is not estimate


class TestLoadProject:
    def test_load(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text(
            """
pipeline:
  name: sales
  platform: ssis
  components:
    - {id: src, type: source, category: OLEDBSource}
    - {id: dst, type: destination, category: OLEDBDestination}
  connections:
    - {id: c1, source: src, target: dst}
cost:
  period: daily
"""
        )
        project = load_project(str(path))
        assert project.pipeline.name == "sales"
        assert len(project.pipeline.components) == 2
        assert project.cost.period == CostPeriod.DAILY

    def test_invalid_document(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("components:\n  - {id: a}\n")
        with pytest.raises(ConfigValidationError) as exc_info:
            load_project(str(path))
        assert exc_info.value.file == str(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_project(str(tmp_path / "missing.yaml"))
