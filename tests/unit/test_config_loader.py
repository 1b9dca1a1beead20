import pytest
import yaml

from pipesim.utils.config_loader import load_yaml_with_env


class TestConfigLoader:
    def test_env_substitution(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PIPESIM_CATALOG", "prod_catalog")
        path = tmp_path / "pipeline.yaml"
        path.write_text(
            """
components:
  - id: src
    type: data-source
    category: DeltaTableSource
    properties:
      catalog: ${PIPESIM_CATALOG}
      schema: ${env:PIPESIM_CATALOG}
"""
        )
        data = load_yaml_with_env(str(path))
        properties = data["components"][0]["properties"]
        assert properties["catalog"] == "prod_catalog"
        assert properties["schema"] == "prod_catalog"

    def test_missing_env_var(self, tmp_path, monkeypatch):
        monkeypatch.delenv("PIPESIM_UNSET_VAR", raising=False)
        path = tmp_path / "pipeline.yaml"
        path.write_text("name: ${PIPESIM_UNSET_VAR}\n")
        with pytest.raises(ValueError, match="Missing environment variable: PIPESIM_UNSET_VAR"):
            load_yaml_with_env(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_yaml_with_env(str(tmp_path / "nope.yaml"))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("components: [\n")
        with pytest.raises(yaml.YAMLError):
            load_yaml_with_env(str(path))

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="mapping at the top level"):
            load_yaml_with_env(str(path))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_yaml_with_env(str(path)) == {}

    def test_imports_append_components(self, tmp_path):
        (tmp_path / "sources.yaml").write_text(
            """
components:
  - {id: src, type: source, category: OLEDBSource}
"""
        )
        main = tmp_path / "main.yaml"
        main.write_text(
            """
imports:
  - sources.yaml
name: combined
components:
  - {id: dst, type: destination, category: OLEDBDestination}
connections:
  - {id: c1, source: src, target: dst}
"""
        )
        data = load_yaml_with_env(str(main))
        assert "imports" not in data
        assert data["name"] == "combined"
        assert [c["id"] for c in data["components"]] == ["src", "dst"]
        assert len(data["connections"]) == 1

    def test_importing_file_overrides_imports(self, tmp_path):
        (tmp_path / "base.yaml").write_text(
            "name: base\nplatform: ssis\nsimulation: {base_row_count: 10, sample_size: 2}\n"
        )
        main = tmp_path / "main.yaml"
        main.write_text(
            """
imports: [base.yaml]
name: main
simulation:
  base_row_count: 500
"""
        )
        data = load_yaml_with_env(str(main))
        assert data["name"] == "main"
        assert data["platform"] == "ssis"
        assert data["simulation"] == {"base_row_count": 500, "sample_size": 2}

    def test_later_import_overrides_earlier(self, tmp_path):
        (tmp_path / "base.yaml").write_text("name: base\n")
        (tmp_path / "extra.yaml").write_text("name: extra\n")
        main = tmp_path / "main.yaml"
        main.write_text("imports: [base.yaml, extra.yaml]\n")
        assert load_yaml_with_env(str(main))["name"] == "extra"

    def test_missing_import(self, tmp_path):
        main = tmp_path / "main.yaml"
        main.write_text("imports: [missing.yaml]\n")
        with pytest.raises(FileNotFoundError, match="Imported YAML file not found"):
            load_yaml_with_env(str(main))

    def test_environment_overrides(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text(
            """
name: sales
cost:
  cluster_uptime_hours: 8
  job_runs_per_day: 1
environments:
  prod:
    cost:
      cluster_uptime_hours: 24
"""
        )
        prod = load_yaml_with_env(str(path), env="prod")
        assert prod["cost"] == {"cluster_uptime_hours": 24, "job_runs_per_day": 1}
        assert "environments" not in prod

        default = load_yaml_with_env(str(path))
        assert default["cost"]["cluster_uptime_hours"] == 8

        unknown = load_yaml_with_env(str(path), env="staging")
        assert unknown["cost"]["cluster_uptime_hours"] == 8
