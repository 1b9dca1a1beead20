import pytest

from pipesim.config import CostParams, CostPeriod
from pipesim.simulation import estimate_cost
from pipesim.simulation.cost import cluster_hourly_cost, warehouse_hourly_cost


def cluster_graph(make_graph, **properties):
    return make_graph([("c", "cluster", "JobCluster", properties)])


class TestClusterHourlyCost:
    def test_driver_plus_workers(self, make_graph):
        graph = cluster_graph(make_graph, nodeType="Standard_DS4_v2", numWorkers=3)
        assert cluster_hourly_cost(graph.get("c")) == pytest.approx(0.30 * 4)

    def test_defaults(self, make_graph):
        """Missing node type and worker count fall back to DS3_v2 with 2 workers."""
        graph = cluster_graph(make_graph)
        assert cluster_hourly_cost(graph.get("c")) == pytest.approx(0.15 * 3)

    def test_zero_workers_respected(self, make_graph):
        graph = cluster_graph(make_graph, numWorkers=0)
        assert cluster_hourly_cost(graph.get("c")) == pytest.approx(0.15)

    @pytest.mark.parametrize("node_type", [["Standard_DS4_v2"], {"size": "large"}, 4])
    def test_non_string_node_type_uses_default_rate(self, make_graph, node_type):
        graph = cluster_graph(make_graph, nodeType=node_type, numWorkers=1)
        assert cluster_hourly_cost(graph.get("c")) == pytest.approx(0.15 * 2)


class TestEstimateCost:
    def test_empty_graph(self, empty_graph):
        breakdown = estimate_cost(empty_graph)
        assert breakdown.total == 0.0
        assert breakdown.per_component == {}
        assert breakdown.suggestions == []
        assert breakdown.period == CostPeriod.MONTHLY

    def test_monthly_breakdown(self, databricks_pipeline):
        breakdown = estimate_cost(databricks_pipeline)
        hourly = 0.15 * 3
        assert breakdown.clusters == pytest.approx(hourly * 8 * 30)
        assert breakdown.jobs == pytest.approx(hourly * 1 * 1 * 30)
        assert breakdown.storage == pytest.approx(0.023)
        assert breakdown.streaming == 0.0
        assert breakdown.total == pytest.approx(
            breakdown.clusters + breakdown.jobs + breakdown.storage
        )
        assert breakdown.per_component == {"cluster": pytest.approx(hourly * 9 * 30)}

    def test_daily_period(self, databricks_pipeline):
        params = CostParams(period=CostPeriod.DAILY)
        daily = estimate_cost(databricks_pipeline, params)
        monthly = estimate_cost(databricks_pipeline)
        assert daily.period == CostPeriod.DAILY
        assert daily.clusters * 30 == pytest.approx(monthly.clusters)
        assert daily.storage == pytest.approx(0.023 / 30)

    def test_strictly_increasing_with_workers(self, make_graph):
        totals = [
            estimate_cost(cluster_graph(make_graph, numWorkers=n)).total for n in (0, 1, 2, 4, 8)
        ]
        assert all(a < b for a, b in zip(totals, totals[1:]))

    def test_usage_params_scale_cost(self, make_graph):
        graph = cluster_graph(make_graph, numWorkers=2)
        light = estimate_cost(graph, CostParams(cluster_uptime_hours=2, job_runs_per_day=0))
        heavy = estimate_cost(graph, CostParams(cluster_uptime_hours=12, job_runs_per_day=4))
        assert light.jobs == 0.0
        assert light.total < heavy.total

    def test_sql_warehouse(self, make_graph):
        graph = make_graph([("wh", "cluster", "SQLWarehouse", {"clusterSize": "Medium"})])
        breakdown = estimate_cost(graph, CostParams(period=CostPeriod.DAILY))
        assert breakdown.clusters == 0.0
        assert breakdown.sql_warehouses == pytest.approx(0.40 * 8)
        assert breakdown.per_component == {"wh": pytest.approx(3.2)}

    def test_non_string_warehouse_size_uses_default_rate(self, make_graph):
        graph = make_graph([("wh", "cluster", "SQLWarehouse", {"clusterSize": ["Medium"]})])
        assert warehouse_hourly_cost(graph.get("wh")) == pytest.approx(0.20)
        breakdown = estimate_cost(graph, CostParams(period=CostPeriod.DAILY))
        assert breakdown.sql_warehouses == pytest.approx(0.20 * 8)

    def test_streaming_flat_rate(self, make_graph):
        graph = make_graph([("kafka", "data-source", "KafkaStream")])
        breakdown = estimate_cost(graph, CostParams(period=CostPeriod.DAILY))
        assert breakdown.streaming == pytest.approx(5.0 * 24)
        assert (
            "Consider batch processing instead of streaming for non-real-time requirements"
            in breakdown.suggestions
        )

    def test_no_storage_without_tables(self, make_graph):
        graph = make_graph([("nb", "notebook", "PythonNotebook")])
        assert estimate_cost(graph).storage == 0.0

    def test_autoscaling_suggestion(self, make_graph):
        graph = make_graph(
            [
                (
                    "shared",
                    "cluster",
                    "AllPurposeCluster",
                    {"numWorkers": 6, "autoterminationMinutes": 120},
                )
            ]
        )
        suggestions = estimate_cost(graph).suggestions
        assert suggestions == [
            "Enable autoscaling on AllPurposeCluster to reduce costs during low usage",
            "Reduce auto-termination time on AllPurposeCluster to save costs",
        ]
