"""Simulate command: data preview, performance, execution estimate or tuning analysis."""

import json
from dataclasses import asdict

from pipesim.graph import PipelineGraph
from pipesim.pipeline import PipelineAnalyzer, load_project


def simulate_command(args):
    """
    Handle simulate subcommand.

    Args:
        args: Parsed arguments with config, mode, rows, sample and json

    Returns:
        Exit code
    """
    try:
        project = load_project(args.config, env=args.env)
    except Exception as e:
        print(f"❌ Error loading snapshot: {e}")
        return 1

    graph = PipelineGraph.from_snapshot(project.pipeline)
    analyzer = PipelineAnalyzer.from_project(project)

    if args.mode == "data":
        previews = analyzer.simulate_data(graph, args.rows, args.sample)
        if args.json:
            print(json.dumps([asdict(p) for p in previews], indent=2, default=str))
            return 0
        for preview in previews:
            status = " (incomplete: cycle)" if preview.incomplete else ""
            print(f"{preview.component_name} [{preview.category}]: {preview.row_count:,} rows{status}")
            if preview.schema:
                print("  columns: " + ", ".join(f"{c['name']}:{c['type']}" for c in preview.schema))
            for row in preview.rows:
                print(f"  {row}")
            for note in preview.notes:
                print(f"  note: {note}")
        return 0

    if args.mode == "analysis":
        analysis = analyzer.analyze_performance(graph)
        if args.json:
            print(json.dumps(asdict(analysis), indent=2, default=str))
            return 0
        print(f"Performance score: {analysis.score}/100")
        for issue in analysis.issues:
            print(f"  [{issue.severity.value}] {issue.component_name}: {issue.issue}")
            print(f"      -> {issue.recommendation} ({issue.estimated_improvement})")
        return 0

    if args.mode == "execution":
        estimate = analyzer.simulate_execution(graph, args.rows)
        if args.json:
            print(json.dumps(asdict(estimate), indent=2, default=str))
            return 0 if estimate.success else 1
        for step in estimate.steps:
            print(
                f"{step.component_name:<30} {step.row_count:>10,} rows "
                f"{step.execution_time_ms:>10.1f} ms  {step.dbu_cost:.2f} DBU"
            )
        print("")
        print(f"Total time: {estimate.total_execution_time_ms:,.1f} ms")
        print(f"Total DBU:  {estimate.total_dbu_cost:.2f}")
        for error in estimate.errors:
            print(f"❌ {error}")
        return 0 if estimate.success else 1

    result = analyzer.simulate_performance(graph, args.rows)
    if args.json:
        print(json.dumps(asdict(result), indent=2, default=str))
        return 0
    for metric in result.components:
        marker = "  <- bottleneck" if metric.is_bottleneck else ""
        print(
            f"{metric.component_name:<30} {metric.row_count:>10,} rows "
            f"{metric.execution_time:>9.3f}s  {metric.memory_footprint:>8.1f} MB{marker}"
        )
    print("")
    print(f"Total duration: {result.total_duration:.3f}s")
    print(f"Throughput:     {result.throughput:,.0f} rows/s")
    print(f"Peak memory:    {result.memory_usage:.1f} MB")
    for note in result.notes:
        print(f"Note: {note}")
    return 0
