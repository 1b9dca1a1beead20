"""Order command: print the topological order and execution layers."""

from pipesim.graph import PipelineGraph
from pipesim.pipeline import load_project
from pipesim.topology import execution_layers, topological_order


def order_command(args):
    """Print components in evaluation order.

    Returns:
        Exit code (1 when a cycle leaves components unordered)
    """
    try:
        project = load_project(args.config, env=args.env)
    except Exception as e:
        print(f"❌ Error loading snapshot: {e}")
        return 1

    graph = PipelineGraph.from_snapshot(project.pipeline)
    topo = topological_order(graph)

    for position, component_id in enumerate(topo.order, start=1):
        component = graph.components[component_id]
        print(f"{position:>3}. {component_id} [{component.category}]")

    if args.layers:
        layers, _ = execution_layers(graph)
        print("")
        for i, layer in enumerate(layers, start=1):
            print(f"Layer {i}: {', '.join(layer)}")

    if topo.incomplete:
        print("")
        print(f"⚠️  Cycle detected, unordered: {', '.join(topo.unresolved)}")
        return 1
    return 0
