"""Main CLI entry point."""

import sys
import argparse

from pipesim.artifacts import SUPPORTED_FORMATS
from pipesim.cli.cost import cost_command
from pipesim.cli.generate import generate_command
from pipesim.cli.graph import graph_command
from pipesim.cli.order import order_command
from pipesim.cli.simulate import simulate_command
from pipesim.cli.suggest import suggest_command
from pipesim.cli.validate import validate_command
from pipesim.utils.logging import configure_logging


def _add_snapshot_args(parser):
    parser.add_argument("config", help="Path to YAML snapshot file")
    parser.add_argument("--env", default=None, help="Environment overrides to apply")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pipesim",
        description="Static analysis and simulation of SSIS, ADF and Databricks pipelines",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pipesim validate pipeline.yaml                  Validate a snapshot
  pipesim graph pipeline.yaml --format mermaid    Visualize the graph
  pipesim order pipeline.yaml --layers            Show evaluation order
  pipesim simulate pipeline.yaml --rows 50000     Estimate performance
  pipesim suggest pipeline.yaml                   List optimization suggestions
  pipesim cost pipeline.yaml --period daily       Estimate Databricks cost
  pipesim generate pipeline.yaml --target job     Emit a Databricks job spec
        """,
    )

    # Global arguments
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Set logging verbosity (default: WARNING)",
    )
    parser.add_argument(
        "--structured-logs", action="store_true", help="Emit logs as JSON lines"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # pipesim validate
    validate_parser = subparsers.add_parser("validate", help="Validate a snapshot")
    _add_snapshot_args(validate_parser)
    validate_parser.add_argument("--json", action="store_true", help="Print the report as JSON")

    # pipesim graph
    graph_parser = subparsers.add_parser("graph", help="Visualize the pipeline graph")
    _add_snapshot_args(graph_parser)
    graph_parser.add_argument(
        "--format",
        choices=["ascii", "dot", "mermaid"],
        default="ascii",
        help="Output format (default: ascii)",
    )
    graph_parser.add_argument("--select", help="Highlight upstream/downstream of a component")
    graph_parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    # pipesim order
    order_parser = subparsers.add_parser("order", help="Print the topological order")
    _add_snapshot_args(order_parser)
    order_parser.add_argument("--layers", action="store_true", help="Also print execution layers")

    # pipesim simulate
    simulate_parser = subparsers.add_parser("simulate", help="Run a static simulation")
    _add_snapshot_args(simulate_parser)
    simulate_parser.add_argument(
        "--mode",
        choices=["performance", "data", "analysis", "execution"],
        default="performance",
        help="What to simulate (default: performance)",
    )
    simulate_parser.add_argument("--rows", type=int, default=None, help="Base row count")
    simulate_parser.add_argument("--sample", type=int, default=None, help="Sample rows per component")
    simulate_parser.add_argument("--json", action="store_true", help="Print results as JSON")

    # pipesim suggest
    suggest_parser = subparsers.add_parser("suggest", help="List optimization suggestions")
    _add_snapshot_args(suggest_parser)
    suggest_parser.add_argument("--json", action="store_true", help="Print suggestions as JSON")

    # pipesim cost
    cost_parser = subparsers.add_parser("cost", help="Estimate Databricks cost")
    _add_snapshot_args(cost_parser)
    cost_parser.add_argument("--uptime", type=float, default=None, help="Cluster hours per day")
    cost_parser.add_argument("--runs", type=int, default=None, help="Job runs per day")
    cost_parser.add_argument("--duration", type=float, default=None, help="Hours per job run")
    cost_parser.add_argument("--period", choices=["daily", "monthly"], default=None)

    # pipesim generate
    generate_parser = subparsers.add_parser("generate", help="Generate platform artifacts")
    _add_snapshot_args(generate_parser)
    generate_parser.add_argument(
        "--target", required=True, choices=SUPPORTED_FORMATS, help="Artifact format"
    )
    generate_parser.add_argument("-o", "--output", help="Write to a file instead of stdout")

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(structured=args.structured_logs, level=args.log_level)

    if args.command == "validate":
        return validate_command(args)
    elif args.command == "graph":
        return graph_command(args)
    elif args.command == "order":
        return order_command(args)
    elif args.command == "simulate":
        return simulate_command(args)
    elif args.command == "suggest":
        return suggest_command(args)
    elif args.command == "cost":
        return cost_command(args)
    elif args.command == "generate":
        return generate_command(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
