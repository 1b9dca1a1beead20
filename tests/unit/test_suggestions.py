import pytest

from pipesim.config import Component
from pipesim.simulation import (
    SuggestionCategory,
    SuggestionSeverity,
    suggest_optimizations,
)
from pipesim.simulation.suggestions import CHECKS, suggestion_check


def ids(graph):
    return [s.id for s in suggest_optimizations(graph)]


def by_id(graph, suggestion_id):
    matches = [s for s in suggest_optimizations(graph) if s.id == suggestion_id]
    assert matches, f"{suggestion_id} not suggested"
    return matches[0]


def named(component_id, kind, category, name, **fields):
    return Component(id=component_id, type=kind, category=category, name=name, **fields)


class TestSuggestOptimizations:
    def test_empty_graph(self, empty_graph):
        assert suggest_optimizations(empty_graph) == []

    def test_ssis_pipeline(self, ssis_pipeline):
        assert ids(ssis_pipeline) == [
            "suggest-error-handling",
            "suggest-row-count-audit",
            "suggest-group-by-agg",
            "suggest-data-validation",
            "suggest-incremental-load",
            "suggest-sort-prefilter",
            "suggest-error-output",
        ]

    def test_databricks_pipeline(self, databricks_pipeline):
        assert ids(databricks_pipeline) == [
            "suggest-auto-optimize-gold",
            "suggest-vacuum-gold",
            "suggest-schema-enforcement-gold",
        ]

    def test_to_dict(self, ssis_pipeline):
        data = by_id(ssis_pipeline, "suggest-error-output").to_dict()
        assert data["severity"] == "warning"
        assert data["category"] == "Best Practice"
        assert data["affected_components"] == ["src", "dest"]

    def test_does_not_mutate_graph(self, ssis_pipeline):
        before = ssis_pipeline.to_dict()
        suggest_optimizations(ssis_pipeline)
        assert ssis_pipeline.to_dict() == before


class TestSSISPatterns:
    def test_separate_queries_for_split_to_excel(self, make_graph):
        graph = make_graph(
            [
                ("src", "source", "OLEDBSource"),
                ("split", "transformation", "ConditionalSplit"),
                ("x1", "destination", "ExcelDestination"),
                ("x2", "destination", "ExcelDestination"),
            ],
            [("src", "split"), ("split", "x1"), ("split", "x2")],
        )
        suggestion = by_id(graph, "suggest-separate-queries")
        assert suggestion.severity == SuggestionSeverity.SUGGESTION
        assert suggestion.category == SuggestionCategory.PERFORMANCE
        assert suggestion.learn_from == "sql-to-excel-method2"
        assert suggestion.estimated_impact == "2-3x faster for datasets > 100K rows"

    def test_merge_join_unsorted_input(self, make_graph):
        graph = make_graph(
            [
                ("a", "source", "OLEDBSource"),
                Component(id="b", type="source", category="OLEDBSource", isSorted=True),
                ("m", "transformation", "MergeJoin"),
            ],
            [("a", "m"), ("b", "m")],
        )
        merge_ids = [i for i in ids(graph) if i.startswith("suggest-sort-before-m")]
        assert merge_ids == ["suggest-sort-before-m-a"]

    def test_sorted_merge_inputs(self, make_graph):
        graph = make_graph(
            [
                ("a", "source", "OLEDBSource"),
                ("s", "transformation", "Sort"),
                ("m", "transformation", "MergeJoin"),
            ],
            [("a", "s"), ("s", "m")],
        )
        assert not any(i.startswith("suggest-sort-before-m") for i in ids(graph))

    def test_flat_file_to_database_needs_conversion(self, make_graph):
        graph = make_graph(
            [("f", "source", "FlatFileSource"), ("d", "destination", "OLEDBDestination")],
            [("f", "d")],
        )
        assert by_id(graph, "suggest-dataconv-f-d").severity == SuggestionSeverity.WARNING

    def test_flat_file_with_conversion(self, make_graph):
        graph = make_graph(
            [
                ("f", "source", "FlatFileSource"),
                ("conv", "transformation", "DataConversion"),
                ("d", "destination", "OLEDBDestination"),
            ],
            [("f", "conv"), ("conv", "d")],
        )
        assert "suggest-dataconv-f-d" not in ids(graph)

    def test_excel_to_database(self, make_graph):
        graph = make_graph(
            [("x", "source", "ExcelSource"), ("d", "destination", "OLEDBDestination")],
            [("x", "d")],
        )
        suggestion = by_id(graph, "suggest-dataconv-excel-x-d")
        assert suggestion.category == SuggestionCategory.DATA_QUALITY

    @pytest.mark.parametrize("outputs,expected", [(3, False), (4, True)])
    def test_multicast_fan_out(self, make_graph, outputs, expected):
        targets = [(f"d{n}", "destination", "OLEDBDestination") for n in range(outputs)]
        graph = make_graph(
            [("src", "source", "OLEDBSource"), ("mc", "transformation", "Multicast")] + targets,
            [("src", "mc")] + [("mc", t[0]) for t in targets],
        )
        assert ("suggest-reduce-multicast-mc" in ids(graph)) is expected
        if expected:
            assert by_id(graph, "suggest-reduce-multicast-mc").estimated_impact == "Uses 4x memory"

    def test_error_log_destination_suppresses_error_handling(self, make_graph):
        graph = make_graph(
            [
                ("src", "source", "OLEDBSource"),
                named("log", "destination", "FlatFileDestination", "Error Log"),
            ],
            [("src", "log")],
        )
        assert "suggest-error-handling" not in ids(graph)

    def test_row_count_present(self, make_graph):
        graph = make_graph(
            [
                ("src", "source", "OLEDBSource"),
                ("rc", "transformation", "RowCount"),
                ("dst", "destination", "OLEDBDestination"),
            ],
            [("src", "rc"), ("rc", "dst")],
        )
        assert "suggest-row-count-audit" not in ids(graph)

    def test_row_count_suggested_for_lookups(self, make_graph):
        graph = make_graph([("lk", "transformation", "Lookup")])
        assert "suggest-row-count-audit" in ids(graph)

    def test_dimension_load_suggests_scd(self, make_graph):
        graph = make_graph([named("dim", "destination", "OLEDBDestination", "DimCustomer")])
        suggestion = by_id(graph, "suggest-scd-type2")
        assert suggestion.category == SuggestionCategory.ALTERNATIVE_METHOD
        assert suggestion.affected_components == ["dim"]

    def test_scd_lookup_present(self, make_graph):
        graph = make_graph(
            [
                named("dim", "destination", "OLEDBDestination", "DimCustomer"),
                Component(
                    id="lk", type="transformation", category="Lookup", referenceInput="dim_ref"
                ),
            ]
        )
        assert "suggest-scd-type2" not in ids(graph)

    def test_union_with_three_inputs(self, make_graph):
        graph = make_graph(
            [
                ("a", "source", "OLEDBSource"),
                ("b", "source", "OLEDBSource"),
                ("c", "source", "OLEDBSource"),
                ("u", "transformation", "UnionAll"),
            ],
            [("a", "u"), ("b", "u"), ("c", "u")],
        )
        assert "suggest-union-performance-u" in ids(graph)

    def test_unsorted_aggregate(self, make_graph):
        graph = make_graph(
            [("src", "source", "OLEDBSource"), ("agg", "transformation", "Aggregate")],
            [("src", "agg")],
        )
        assert "suggest-sort-before-agg-agg" in ids(graph)

    @pytest.mark.parametrize("group_by", ["Region", ["Region"], 5])
    def test_group_by_configured(self, make_graph, group_by):
        graph = make_graph([("agg", "transformation", "Aggregate", {"groupByColumns": group_by})])
        assert "suggest-group-by-agg" not in ids(graph)


class TestSSISBestPractices:
    def test_conditional_split_without_outputs(self, make_graph):
        graph = make_graph(
            [("src", "source", "OLEDBSource"), ("split", "transformation", "ConditionalSplit")],
            [("src", "split")],
        )
        suggestion = by_id(graph, "suggest-split-outputs-split")
        assert suggestion.severity == SuggestionSeverity.WARNING

    def test_generic_source_name(self, make_graph):
        graph = make_graph(
            [
                named("a", "source", "OLEDBSource", "OLE DB Source"),
                named("b", "source", "OLEDBSource", "Customer Master"),
            ]
        )
        assert "suggest-rename-a" in ids(graph)
        assert "suggest-rename-b" not in ids(graph)

    def test_sequential_lookups(self, make_graph):
        graph = make_graph(
            [
                ("src", "source", "OLEDBSource"),
                ("l1", "transformation", "Lookup"),
                ("l2", "transformation", "Lookup"),
            ],
            [("src", "l1"), ("l1", "l2")],
        )
        found = [i for i in ids(graph) if i.startswith("suggest-sequential-lookups")]
        assert found == ["suggest-sequential-lookups-l2"]

    def test_unnecessary_conversion(self, make_graph):
        graph = make_graph(
            [
                Component(id="src", type="source", category="OLEDBSource", dataType="text"),
                ("conv", "transformation", "DataConversion"),
                Component(id="dst", type="destination", category="OLEDBDestination", dataType="text"),
            ],
            [("src", "conv"), ("conv", "dst")],
        )
        assert "suggest-unneeded-conversion-conv" in ids(graph)

    def test_conversion_with_default_types(self, make_graph):
        graph = make_graph(
            [
                ("src", "source", "OLEDBSource"),
                ("conv", "transformation", "DataConversion"),
                ("dst", "destination", "OLEDBDestination"),
            ],
            [("src", "conv"), ("conv", "dst")],
        )
        assert "suggest-unneeded-conversion-conv" not in ids(graph)

    @pytest.mark.parametrize(
        "value,expected",
        [("Data Source=prod;Initial Catalog=sales", True), ("$(ConnectionManager)", False), (5, False)],
    )
    def test_hardcoded_connection_string(self, make_graph, value, expected):
        graph = make_graph([("src", "source", "OLEDBSource", {"connectionString": value})])
        assert ("suggest-connection-manager-src" in ids(graph)) is expected

    def test_derived_column_without_null_handling(self, make_graph):
        graph = make_graph(
            [("d", "transformation", "DerivedColumn", {"expression": "[Qty] * [Price]"})]
        )
        suggestion = by_id(graph, "suggest-null-handling-d")
        assert suggestion.category == SuggestionCategory.DATA_QUALITY
        assert "suggest-date-format-d" not in ids(graph)

    def test_derived_column_with_null_handling(self, make_graph):
        graph = make_graph(
            [
                (
                    "d",
                    "transformation",
                    "DerivedColumn",
                    {"expression": "ISNULL([Qty]) ? 0 : [Qty] * 2"},
                )
            ]
        )
        assert "suggest-null-handling-d" not in ids(graph)

    def test_derived_column_date_conversion(self, make_graph):
        graph = make_graph(
            [("d", "transformation", "DerivedColumn", {"expression": "(DT_DATE)[OrderDate]"})]
        )
        assert "suggest-date-format-d" in ids(graph)

    def test_incremental_query(self, make_graph):
        query = "SELECT * FROM orders WHERE ModifiedDate > ?"
        graph = make_graph(
            [
                ("src", "source", "OLEDBSource", {"query": query}),
                ("d", "transformation", "DerivedColumn"),
                ("dst", "destination", "OLEDBDestination"),
            ],
            [("src", "d"), ("d", "dst")],
        )
        assert "suggest-incremental-load" not in ids(graph)

    def test_global_checks_need_three_components(self, make_graph):
        graph = make_graph(
            [("src", "source", "OLEDBSource"), ("dst", "destination", "OLEDBDestination")],
            [("src", "dst")],
        )
        found = ids(graph)
        assert "suggest-data-validation" not in found
        assert "suggest-incremental-load" not in found
        assert "suggest-error-output" not in found

    def test_flat_file_cleansing(self, make_graph):
        graph = make_graph(
            [
                ("f", "source", "FlatFileSource"),
                ("d", "transformation", "DerivedColumn", {"expression": "[Qty] + 1"}),
                ("dst", "destination", "OLEDBDestination"),
            ],
            [("f", "d"), ("d", "dst")],
        )
        assert "suggest-flat-file-cleansing" in ids(graph)

        cleansed = make_graph(
            [
                ("f", "source", "FlatFileSource"),
                ("d", "transformation", "DerivedColumn", {"expression": "TRIM([Name])"}),
                ("dst", "destination", "OLEDBDestination"),
            ],
            [("f", "d"), ("d", "dst")],
        )
        assert "suggest-flat-file-cleansing" not in ids(cleansed)

    def test_memory_intensive_merge(self, make_graph):
        graph = make_graph(
            [
                ("a", "source", "OLEDBSource"),
                ("b", "source", "OLEDBSource"),
                ("m", "transformation", "MergeJoin"),
            ],
            [("a", "m"), ("b", "m")],
        )
        assert by_id(graph, "suggest-buffer-memory").affected_components == ["m"]


class TestADF:
    def test_copy_without_linked_service(self, make_graph):
        graph = make_graph(
            [
                ("copy", "data-movement", "CopyData"),
                ("linked", "data-movement", "CopyData", {"linkedService": "AzureSqlLS"}),
            ]
        )
        found = ids(graph)
        assert "suggest-linked-service-copy" in found
        assert "suggest-linked-service-linked" not in found


class TestDatabricks:
    def test_maintained_delta_sink(self, make_graph):
        properties = {
            "autoOptimize": True,
            "vacuumSchedule": "0 3 * * 0",
            "schemaEnforcement": True,
        }
        graph = make_graph([("gold", "output", "DeltaTableSink", properties)])
        assert ids(graph) == []

    def test_python_notebook_libraries(self, make_graph):
        graph = make_graph(
            [
                ("nb", "notebook", "PythonNotebook", {"notebookLanguage": "python"}),
                (
                    "nb2",
                    "notebook",
                    "PythonNotebook",
                    {"notebookLanguage": "python", "libraries": ["pandas"]},
                ),
            ]
        )
        assert by_id(graph, "suggest-libraries").affected_components == ["nb"]

    @pytest.mark.parametrize("catalog,expected", [("main", False), ("finance", True), (2024, True)])
    def test_unity_catalog_permissions(self, make_graph, catalog, expected):
        graph = make_graph([("src", "data-source", "DeltaTableSource", {"catalog": catalog})])
        assert ("suggest-catalog-permissions" in ids(graph)) is expected

    def test_secret_references(self, make_graph):
        graph = make_graph(
            [
                (
                    "sql",
                    "data-source",
                    "AzureSQLDatabase",
                    {"password": "dbutils.secrets.get('kv', 'pw')", "numPartitions": 8},
                )
            ]
        )
        assert ids(graph) == ["suggest-secret-scopes"]

    def test_mount_point(self, make_graph):
        graph = make_graph(
            [
                ("raw", "data-source", "ADLSGen2", {"path": "/mnt/raw/events"}),
                ("ok", "data-source", "ADLSGen2", {"path": "/mnt/raw", "mountPoint": "/mnt/raw"}),
                ("abfss", "data-source", "AzureBlobStorage", {"path": "abfss://c@a/raw"}),
            ]
        )
        assert [i for i in ids(graph) if i.startswith("suggest-mount")] == ["suggest-mount-raw"]

    def test_cross_join(self, make_graph):
        graph = make_graph([("t", "transformation", "DataFrameTransform", {"joinType": "cross"})])
        assert by_id(graph, "suggest-cartesian-join").affected_components == ["t"]

    def test_csv_output(self, make_graph):
        graph = make_graph([("out", "output", "ADLSGen2Sink", {"format": "CSV"})])
        assert "suggest-columnar-format" in ids(graph)

    def test_jdbc_partitions(self, make_graph):
        graph = make_graph([("sf", "data-source", "SnowflakeConnector")])
        assert "suggest-jdbc-partitions-sf" in ids(graph)

    @pytest.mark.parametrize(
        "expectations,expected", [(None, True), ([], True), ("valid_id", True), (["id IS NOT NULL"], False)]
    )
    def test_dlt_expectations(self, make_graph, expectations, expected):
        properties = {"expectations": expectations} if expectations is not None else {}
        graph = make_graph([("dlt", "orchestration", "DeltaLiveTables", properties)])
        assert ("suggest-expectations-dlt" in ids(graph)) is expected

    @pytest.mark.parametrize("retries,expected", [(None, True), (0, True), (True, True), (3, False)])
    def test_job_retries(self, make_graph, retries, expected):
        properties = {"retries": retries} if retries is not None else {}
        graph = make_graph([("job", "orchestration", "JobTask", properties)])
        assert ("suggest-retries-job" in ids(graph)) is expected


class TestRegistry:
    def test_duplicate_check_id_rejected(self):
        with pytest.raises(ValueError, match="already registered"):

            @suggestion_check("separate-queries")
            def other(graph):
                return iter(())

    def test_reregistering_same_function(self):
        check = CHECKS["separate-queries"]
        assert suggestion_check("separate-queries")(check) is check
