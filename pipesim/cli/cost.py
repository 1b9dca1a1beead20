"""Cost command: Databricks cost estimate."""

from pipesim.config import CostParams
from pipesim.graph import PipelineGraph
from pipesim.pipeline import PipelineAnalyzer, load_project


def cost_command(args):
    """Print a cost breakdown; CLI flags override the file's ``cost`` section."""
    try:
        project = load_project(args.config, env=args.env)
        overrides = {
            "cluster_uptime_hours": args.uptime,
            "job_runs_per_day": args.runs,
            "job_duration_hours": args.duration,
            "period": args.period,
        }
        params = CostParams.model_validate(
            {
                **project.cost.model_dump(),
                **{k: v for k, v in overrides.items() if v is not None},
            }
        )
    except Exception as e:
        print(f"❌ Error loading snapshot: {e}")
        return 1

    graph = PipelineGraph.from_snapshot(project.pipeline)
    breakdown = PipelineAnalyzer.from_project(project).estimate_cost(graph, params)

    print(f"Estimated {breakdown.period.value} cost for {graph.name}")
    print(f"  Clusters:        ${breakdown.clusters:,.2f}")
    print(f"  SQL warehouses:  ${breakdown.sql_warehouses:,.2f}")
    print(f"  Streaming:       ${breakdown.streaming:,.2f}")
    print(f"  Jobs:            ${breakdown.jobs:,.2f}")
    print(f"  Storage:         ${breakdown.storage:,.2f}")
    print(f"  Total:           ${breakdown.total:,.2f}")

    if breakdown.per_component:
        print("")
        for component_id, amount in breakdown.per_component.items():
            print(f"  {graph.components[component_id].name:<30} ${amount:,.2f}")
    if breakdown.suggestions:
        print("")
        for suggestion in breakdown.suggestions:
            print(f"💡 {suggestion}")
    return 0
