"""Tests for the pipesim command line."""

import json
import sys
from unittest.mock import patch

import pytest

from pipesim.cli.main import build_parser, main

SSIS_YAML = """
pipeline:
  name: sales
  platform: ssis
  components:
    - {id: src, type: source, category: OLEDBSource}
    - {id: dst, type: destination, category: OLEDBDestination}
  connections:
    - {id: c1, source: src, target: dst}
"""

CYCLE_YAML = """
name: loop
components:
  - {id: a, type: transformation, category: DerivedColumn}
  - {id: b, type: transformation, category: Sort}
connections:
  - {id: c1, source: a, target: b}
  - {id: c2, source: b, target: a}
"""

DATABRICKS_YAML = """
pipeline:
  name: lakehouse
  platform: databricks
  components:
    - id: cluster
      type: cluster
      category: JobCluster
      properties: {numWorkers: 2, runtimeVersion: 14.3.x-scala2.12}
    - id: bronze
      type: data-source
      category: DeltaTableSource
      properties: {catalog: main, schema: raw, table: events, clusterId: cluster}
    - id: silver
      type: output
      category: DeltaTableSink
      properties: {catalog: main, schema: clean, table: events, clusterId: cluster}
  connections:
    - {id: c1, source: bronze, target: silver}
cost:
  cluster_uptime_hours: 4
"""


@pytest.fixture
def write_snapshot(tmp_path):
    def _write(content, name="pipeline.yaml"):
        path = tmp_path / name
        path.write_text(content)
        return str(path)

    return _write


class TestCLIMain:
    """Test CLI main entry point."""

    def test_no_args_shows_help(self, capsys):
        """CLI should show help and fail when no command is given."""
        with patch.object(sys, "argv", ["pipesim"]):
            assert main() == 1
        assert "usage:" in capsys.readouterr().out.lower()

    def test_help_flag(self, capsys):
        with patch.object(sys, "argv", ["pipesim", "--help"]):
            with pytest.raises(SystemExit) as exc_info:
                main()
            assert exc_info.value.code == 0
        output = capsys.readouterr().out
        for command in ("validate", "graph", "order", "simulate", "suggest", "cost", "generate"):
            assert command in output

    def test_invalid_command(self):
        with pytest.raises(SystemExit):
            main(["explode"])

    def test_parser_defaults(self):
        args = build_parser().parse_args(["simulate", "p.yaml"])
        assert args.mode == "performance"
        assert args.rows is None
        assert args.log_level == "WARNING"


class TestValidateCommand:
    def test_clean_snapshot(self, write_snapshot, capsys):
        assert main(["validate", write_snapshot(SSIS_YAML)]) == 0
        assert "✅ sales: no issues (2 components)" in capsys.readouterr().out

    def test_cycle_fails(self, write_snapshot, capsys):
        assert main(["validate", write_snapshot(CYCLE_YAML)]) == 1
        output = capsys.readouterr().out
        assert "cycle: Circular dependency detected: a -> b -> a" in output
        assert "error(s)" in output

    def test_json_report(self, write_snapshot, capsys):
        assert main(["--log-level", "ERROR", "validate", write_snapshot(CYCLE_YAML), "--json"]) == 1
        report = json.loads(capsys.readouterr().out)
        assert report["cycles"] == [["a", "b"]]
        assert report["connection_validity"] == {"c1": False, "c2": False}

    def test_missing_file(self, tmp_path, capsys):
        assert main(["validate", str(tmp_path / "missing.yaml")]) == 1
        assert "Config validation failed" in capsys.readouterr().out

    def test_environment_override(self, write_snapshot, capsys):
        content = SSIS_YAML + """
environments:
  prod:
    pipeline:
      name: sales_prod
"""
        path = write_snapshot(content)
        assert main(["validate", path, "--env", "prod"]) == 0
        assert "✅ sales_prod: no issues (2 components)" in capsys.readouterr().out


class TestGraphCommand:
    def test_ascii(self, write_snapshot, capsys):
        assert main(["graph", write_snapshot(SSIS_YAML), "--select", "src"]) == 0
        output = capsys.readouterr().out
        assert "Pipeline Graph: sales" in output
        assert "Selected: src" in output
        assert "Downstream: dst" in output

    def test_dot(self, write_snapshot, capsys):
        assert main(["graph", write_snapshot(SSIS_YAML), "--format", "dot"]) == 0
        output = capsys.readouterr().out
        assert 'digraph "sales" {' in output
        assert '"src" -> "dst";' in output

    def test_mermaid_selection(self, write_snapshot, capsys):
        path = write_snapshot(SSIS_YAML)
        assert main(["graph", path, "--format", "mermaid", "--select", "dst"]) == 0
        output = capsys.readouterr().out
        assert "graph LR" in output
        assert "    n0 --> n1" in output
        assert "    class n1 selected" in output
        assert "    class n0 upstream" in output

    def test_unknown_selection(self, write_snapshot, capsys):
        assert main(["graph", write_snapshot(SSIS_YAML), "--select", "nope"]) == 1
        assert "❌ Error generating graph" in capsys.readouterr().out


class TestOrderCommand:
    def test_order_and_layers(self, write_snapshot, capsys):
        assert main(["order", write_snapshot(SSIS_YAML), "--layers"]) == 0
        output = capsys.readouterr().out
        assert "  1. src [OLEDBSource]" in output
        assert "  2. dst [OLEDBDestination]" in output
        assert "Layer 2: dst" in output

    def test_cycle(self, write_snapshot, capsys):
        assert main(["order", write_snapshot(CYCLE_YAML)]) == 1
        assert "Cycle detected, unordered: a, b" in capsys.readouterr().out


class TestSimulateCommand:
    def test_performance(self, write_snapshot, capsys):
        assert main(["simulate", write_snapshot(SSIS_YAML), "--rows", "5000"]) == 0
        output = capsys.readouterr().out
        assert "<- bottleneck" in output
        assert "Total duration:" in output

    def test_data_json(self, write_snapshot, capsys):
        path = write_snapshot(SSIS_YAML)
        args = ["--log-level", "ERROR", "simulate", path, "--mode", "data", "--rows", "10"]
        assert main(args + ["--sample", "2", "--json"]) == 0
        previews = json.loads(capsys.readouterr().out)
        assert [p["component_id"] for p in previews] == ["src", "dst"]
        assert previews[0]["row_count"] == 10
        assert len(previews[0]["rows"]) == 2

    def test_analysis(self, write_snapshot, capsys):
        assert main(["simulate", write_snapshot(DATABRICKS_YAML), "--mode", "analysis"]) == 0
        output = capsys.readouterr().out
        assert "Performance score: 90/100" in output
        assert "missing Z-ordering" in output

    def test_execution(self, write_snapshot, capsys):
        path = write_snapshot(DATABRICKS_YAML)
        assert main(["simulate", path, "--mode", "execution", "--rows", "0"]) == 0
        output = capsys.readouterr().out
        assert "Total time: 200.0 ms" in output
        assert "Total DBU:  0.20" in output

    def test_execution_json_without_databricks(self, write_snapshot, capsys):
        path = write_snapshot(SSIS_YAML)
        assert main(["simulate", path, "--mode", "execution", "--json"]) == 1
        estimate = json.loads(capsys.readouterr().out)
        assert estimate["success"] is False
        assert estimate["errors"] == ["No Databricks components found"]

    def test_data_notes_unknown_category(self, write_snapshot, capsys):
        snapshot = """
components:
  - {id: src, type: source, category: OLEDBSource}
  - {id: m, type: transformation, category: MysteryTransform}
connections:
  - {id: c1, source: src, target: m}
"""
        args = ["--log-level", "ERROR", "simulate", write_snapshot(snapshot), "--mode", "data"]
        assert main(args) == 0
        assert "note: Unknown category 'MysteryTransform'" in capsys.readouterr().out


class TestSuggestCommand:
    def test_text(self, write_snapshot, capsys):
        assert main(["suggest", write_snapshot(SSIS_YAML)]) == 0
        output = capsys.readouterr().out
        assert "[Best Practice] Consider adding error handling" in output
        assert "1 suggestion(s)" in output

    def test_json(self, write_snapshot, capsys):
        assert main(["suggest", write_snapshot(DATABRICKS_YAML), "--json"]) == 0
        suggestions = json.loads(capsys.readouterr().out)
        assert [s["id"] for s in suggestions] == [
            "suggest-auto-optimize-silver",
            "suggest-vacuum-silver",
            "suggest-schema-enforcement-silver",
        ]

    def test_no_suggestions(self, write_snapshot, capsys):
        assert main(["suggest", write_snapshot(CYCLE_YAML)]) == 0
        assert "✅ loop: no suggestions" in capsys.readouterr().out

    def test_missing_file(self, tmp_path, capsys):
        assert main(["suggest", str(tmp_path / "nope.yaml")]) == 1
        assert "❌ Error loading snapshot" in capsys.readouterr().out


class TestCostCommand:
    def test_monthly(self, write_snapshot, capsys):
        assert main(["cost", write_snapshot(DATABRICKS_YAML)]) == 0
        output = capsys.readouterr().out
        assert "Estimated monthly cost for lakehouse" in output
        # 0.15 x 3 x (4 h uptime) x 30 days
        assert "Clusters:        $54.00" in output

    def test_flag_overrides(self, write_snapshot, capsys):
        path = write_snapshot(DATABRICKS_YAML)
        assert main(["cost", path, "--period", "daily", "--uptime", "10", "--runs", "0"]) == 0
        output = capsys.readouterr().out
        assert "Estimated daily cost for lakehouse" in output
        assert "Clusters:        $4.50" in output
        assert "Jobs:            $0.00" in output

    def test_invalid_override(self, write_snapshot, capsys):
        assert main(["cost", write_snapshot(DATABRICKS_YAML), "--uptime", "30"]) == 1
        assert "❌ Error loading snapshot" in capsys.readouterr().out


class TestGenerateCommand:
    def test_stdout(self, write_snapshot, capsys):
        assert main(["generate", write_snapshot(DATABRICKS_YAML), "--target", "sql"]) == 0
        output = capsys.readouterr().out
        assert output.startswith("-- Spark SQL pipeline: lakehouse")
        assert "INSERT INTO main.clean.events SELECT * FROM df_bronze;" in output

    def test_output_file(self, write_snapshot, tmp_path, capsys):
        target = tmp_path / "out" / "job.json"
        path = write_snapshot(DATABRICKS_YAML)
        assert main(["generate", path, "--target", "job", "-o", str(target)]) == 0
        assert "✅ Wrote job artifact to" in capsys.readouterr().out
        job = json.loads(target.read_text(encoding="utf-8"))
        assert job["name"] == "lakehouse"

    def test_unknown_target_rejected(self, write_snapshot):
        with pytest.raises(SystemExit):
            main(["generate", write_snapshot(SSIS_YAML), "--target", "yaml"])


class TestStructuredLogs:
    def test_json_log_lines(self, write_snapshot, capsys):
        path = write_snapshot(SSIS_YAML)
        assert main(["--structured-logs", "--log-level", "DEBUG", "order", path]) == 0
        entries = []
        for line in capsys.readouterr().out.splitlines():
            if line.startswith("{"):
                entries.append(json.loads(line))
        assert any(e["message"] == "Loading YAML snapshot" for e in entries)
        assert all(e["level"] == "DEBUG" for e in entries)
