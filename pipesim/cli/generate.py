"""Generate command: write platform artifacts."""

from pathlib import Path

from pipesim.graph import PipelineGraph
from pipesim.pipeline import generate_artifacts, load_project


def generate_command(args):
    """Render the snapshot in the target format to stdout or ``--output``."""
    try:
        project = load_project(args.config, env=args.env)
        graph = PipelineGraph.from_snapshot(project.pipeline)
        text = generate_artifacts(graph, args.target)
    except Exception as e:
        print(f"❌ Error generating artifacts: {e}")
        return 1

    if args.output:
        output_file = Path(args.output)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        with open(output_file, "w", encoding="utf-8") as f:
            f.write(text)
        print(f"✅ Wrote {args.target} artifact to {output_file}")
    else:
        print(text, end="")
    return 0
