"""
Graph CLI Command
=================

Visualizes the pipeline graph, optionally highlighting the upstream and
downstream paths of one component.
"""

from typing import Optional

from pipesim.graph import PipelineGraph
from pipesim.pipeline import load_project
from pipesim.reachability import Reachability, reachability


def graph_command(args):
    """
    Handle graph subcommand.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code
    """
    try:
        project = load_project(args.config, env=args.env)
        graph = PipelineGraph.from_snapshot(project.pipeline)
        selection = reachability(graph, args.select) if args.select else None

        if args.format == "ascii":
            print(graph.visualize())
            if selection is not None:
                print(_describe_selection(selection))
        elif args.format == "dot":
            print(generate_dot(graph, selection))
        elif args.format == "mermaid":
            print(generate_mermaid(graph, selection))

        return 0

    except Exception as e:
        print(f"❌ Error generating graph: {e}")
        if args.verbose:
            import traceback

            traceback.print_exc()
        return 1


def _describe_selection(selection: Reachability) -> str:
    upstream = ", ".join(selection.upstream) or "(none)"
    downstream = ", ".join(selection.downstream) or "(none)"
    return f"Selected: {selection.selected}\n  Upstream: {upstream}\n  Downstream: {downstream}"


def _fill(component_id: str, selection: Optional[Reachability]) -> str:
    if selection is None:
        return "white"
    if component_id == selection.selected:
        return "gold"
    if component_id in selection.upstream:
        return "lightblue"
    if component_id in selection.downstream:
        return "lightgreen"
    return "white"


def generate_dot(graph: PipelineGraph, selection: Optional[Reachability] = None) -> str:
    """Generate DOT (Graphviz) representation."""
    highlighted = set(selection.connections) if selection else set()
    lines = []
    lines.append(f'digraph "{graph.name}" {{')
    lines.append("    rankdir=LR;")
    lines.append('    node [shape=box, style=rounded, fontname="Helvetica"];')
    lines.append('    edge [fontname="Helvetica"];')
    lines.append("")

    for component in graph.component_list:
        label = f"{component.name}\\n({component.category})"
        color = _fill(component.id, selection)
        lines.append(
            f'    "{component.id}" [label="{label}", style="filled", fillcolor="{color}"];'
        )

    for connection in graph.resolved_connections:
        attrs = []
        if connection.role != "output":
            attrs.append(f'label="{connection.role}"')
        if connection.id in highlighted:
            attrs.append("penwidth=2")
        suffix = f" [{', '.join(attrs)}]" if attrs else ""
        lines.append(f'    "{connection.source}" -> "{connection.target}"{suffix};')

    lines.append("}")
    return "\n".join(lines)


def _mermaid_id(graph: PipelineGraph, component_id: str) -> str:
    return f"n{graph.index_of[component_id]}"


def generate_mermaid(graph: PipelineGraph, selection: Optional[Reachability] = None) -> str:
    """Generate Mermaid diagram."""
    lines = []
    lines.append("graph LR")

    for component in graph.component_list:
        node = _mermaid_id(graph, component.id)
        label = f"{component.name} ({component.category})".replace('"', "'")
        if component.kind in ("source", "data-source"):
            lines.append(f'    {node}(("{label}"))')
        elif component.kind in ("destination", "output"):
            lines.append(f'    {node}[/"{label}"/]')
        else:
            lines.append(f'    {node}["{label}"]')

    for connection in graph.resolved_connections:
        source = _mermaid_id(graph, connection.source)
        target = _mermaid_id(graph, connection.target)
        if connection.role != "output":
            lines.append(f"    {source} -->|{connection.role}| {target}")
        else:
            lines.append(f"    {source} --> {target}")

    if selection is not None:
        lines.append("    classDef selected fill:gold")
        lines.append("    classDef upstream fill:lightblue")
        lines.append("    classDef downstream fill:lightgreen")
        lines.append(f"    class {_mermaid_id(graph, selection.selected)} selected")
        for name, ids in (("upstream", selection.upstream), ("downstream", selection.downstream)):
            if ids:
                lines.append(f"    class {','.join(_mermaid_id(graph, i) for i in ids)} {name}")

    return "\n".join(lines)
