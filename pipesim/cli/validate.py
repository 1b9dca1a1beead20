"""Validate command implementation."""

import json

from pipesim.config import Severity
from pipesim.graph import PipelineGraph
from pipesim.pipeline import PipelineAnalyzer, load_project

_ICONS = {Severity.ERROR: "❌", Severity.WARNING: "⚠️ ", Severity.INFO: "ℹ️ "}


def validate_command(args):
    """Validate a snapshot file.

    Returns:
        Exit code (0 when no error-severity issues, 1 otherwise)
    """
    try:
        project = load_project(args.config, env=args.env)
    except Exception as e:
        print(f"Config validation failed: {e}")
        return 1

    graph = PipelineGraph.from_snapshot(project.pipeline)
    report = PipelineAnalyzer.from_project(project).validate(graph)

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
        return 0 if report.is_valid else 1

    if not report.issues:
        print(f"✅ {graph.name}: no issues ({len(graph)} components)")
        return 0

    for issue in report.issues:
        affected = f" [{', '.join(issue.affected_components)}]" if issue.affected_components else ""
        print(f"{_ICONS[issue.severity]} {issue.rule}: {issue.message}{affected}")
        if issue.suggestion:
            print(f"   -> {issue.suggestion}")

    print("")
    print(
        f"{len(report.errors)} error(s), {len(report.warnings)} warning(s), "
        f"{len(report.infos)} info"
    )
    return 0 if report.is_valid else 1
