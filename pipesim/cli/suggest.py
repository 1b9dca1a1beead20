"""Suggest command: advisory optimization and best-practice hints."""

import json

from pipesim.graph import PipelineGraph
from pipesim.pipeline import PipelineAnalyzer, load_project
from pipesim.simulation import SuggestionSeverity

_ICONS = {
    SuggestionSeverity.WARNING: "⚠️ ",
    SuggestionSeverity.SUGGESTION: "💡",
    SuggestionSeverity.INFO: "ℹ️ ",
}


def suggest_command(args):
    """Print optimization suggestions for a snapshot.

    Suggestions are advisory, so the exit code is 0 whenever the snapshot
    loads.
    """
    try:
        project = load_project(args.config, env=args.env)
    except Exception as e:
        print(f"❌ Error loading snapshot: {e}")
        return 1

    graph = PipelineGraph.from_snapshot(project.pipeline)
    suggestions = PipelineAnalyzer.from_project(project).suggest_optimizations(graph)

    if args.json:
        print(json.dumps([s.to_dict() for s in suggestions], indent=2))
        return 0

    if not suggestions:
        print(f"✅ {graph.name}: no suggestions")
        return 0

    for suggestion in suggestions:
        print(f"{_ICONS[suggestion.severity]} [{suggestion.category.value}] {suggestion.title}")
        print(f"   {suggestion.description}")
        print(f"   -> {suggestion.recommendation}")
        if suggestion.estimated_impact:
            print(f"   impact: {suggestion.estimated_impact}")
    print("")
    print(f"{len(suggestions)} suggestion(s)")
    return 0
