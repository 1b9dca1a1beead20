"""Static rule tables for simulation and cost estimation.

All values are illustrative estimates, not measurements.
"""

import math
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from pipesim.config import ComponentKind

DEFAULT_BASE_ROWS = 1000
PER_COMPONENT_OVERHEAD = 0.1  # seconds
MEMORY_CAP_MB = 16000.0

# Base processing speeds (rows per second)
SPEEDS = {
    "SOURCE_DB": 15000,
    "SOURCE_FILE": 25000,
    "TRANSFORM_SIMPLE": 100000,
    "TRANSFORM_COMPLEX": 40000,
    "TRANSFORM_BLOCKING": 5000,
    "DESTINATION_DB": 8000,
    "DESTINATION_FILE": 15000,
    "MULTICAST": 80000,
    "UNION": 90000,
    "MERGE_JOIN": 20000,
}


@dataclass(frozen=True)
class Column:
    """A column in a simulated schema.

    ``choices`` cycles through fixed values; ``template`` is formatted with
    ``i`` (1-based row number) and ``c`` (component index).
    """

    name: str
    dtype: str = "string"
    template: Optional[str] = None
    choices: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CategoryRule:
    """Simulation behaviour of one component category."""

    speed: float = SPEEDS["TRANSFORM_SIMPLE"]
    row_factor: float = 1.0
    schema_op: str = "passthrough"
    memory_per_row_mb: float = 0.0
    fixed_memory_mb: float = 0.0
    memory_impact: str = "Low"
    volume_sensitive: bool = False
    combine: str = "max"
    overhead: float = PER_COMPONENT_OVERHEAD

    @property
    def blocking(self) -> bool:
        return self.memory_per_row_mb > 0 or self.fixed_memory_mb > 0

    def cost_per_row(self, rows: float) -> float:
        """Seconds per row; sort-like categories slow down with volume."""
        speed = self.speed
        if self.volume_sensitive and rows > 1:
            speed = max(1000.0, speed - math.log(rows) * 100)
        return 1.0 / speed


DEFAULT_RULE = CategoryRule()

_DB_SOURCE = CategoryRule(speed=SPEEDS["SOURCE_DB"])
_FILE_SOURCE = CategoryRule(speed=SPEEDS["SOURCE_FILE"])
_DB_DESTINATION = CategoryRule(speed=SPEEDS["DESTINATION_DB"])
_FILE_DESTINATION = CategoryRule(speed=SPEEDS["DESTINATION_FILE"])
_TASK = CategoryRule(speed=SPEEDS["TRANSFORM_SIMPLE"], row_factor=0.0)

CATEGORY_RULES: Dict[str, CategoryRule] = {
    # SSIS sources
    "OLEDBSource": _DB_SOURCE,
    "FlatFileSource": _FILE_SOURCE,
    "ExcelSource": _DB_SOURCE,
    "JSONSource": _DB_SOURCE,
    "XMLSource": _DB_SOURCE,
    # SSIS transformations
    "DataConversion": CategoryRule(schema_op="convert"),
    "DerivedColumn": CategoryRule(schema_op="derive"),
    "RowCount": CategoryRule(),
    "Lookup": CategoryRule(
        speed=SPEEDS["TRANSFORM_COMPLEX"],
        schema_op="lookup",
        fixed_memory_mb=50.0,
        memory_impact="Medium",
    ),
    "ConditionalSplit": CategoryRule(
        speed=SPEEDS["TRANSFORM_COMPLEX"], row_factor=0.5, schema_op="filter"
    ),
    "Sort": CategoryRule(
        speed=SPEEDS["TRANSFORM_BLOCKING"],
        schema_op="sort",
        memory_per_row_mb=0.001,
        memory_impact="High",
        volume_sensitive=True,
    ),
    "Aggregate": CategoryRule(
        speed=SPEEDS["TRANSFORM_BLOCKING"],
        row_factor=0.1,
        schema_op="aggregate",
        memory_per_row_mb=0.0005,
        memory_impact="Medium",
    ),
    "CacheTransform": CategoryRule(
        speed=SPEEDS["TRANSFORM_COMPLEX"], memory_per_row_mb=0.001, memory_impact="High"
    ),
    "MergeJoin": CategoryRule(
        speed=SPEEDS["MERGE_JOIN"], schema_op="join", memory_impact="Medium"
    ),
    "UnionAll": CategoryRule(speed=SPEEDS["UNION"], combine="sum"),
    "Multicast": CategoryRule(speed=SPEEDS["MULTICAST"]),
    # SSIS destinations
    "OLEDBDestination": _DB_DESTINATION,
    "SQLServerDestination": _DB_DESTINATION,
    "ExcelDestination": _DB_DESTINATION,
    "FlatFileDestination": _FILE_DESTINATION,
    # SSIS control flow
    "DataFlowTask": _TASK,
    "ExecuteSQLTask": _TASK,
    "FileSystemTask": _TASK,
    "ScriptTask": _TASK,
    "ForLoopContainer": _TASK,
    "ForeachLoopContainer": _TASK,
    "SequenceContainer": _TASK,
    # ADF activities
    "CopyData": CategoryRule(speed=SPEEDS["SOURCE_DB"]),
    "MappingDataFlow": CategoryRule(speed=SPEEDS["TRANSFORM_COMPLEX"]),
    "DatabricksNotebook": CategoryRule(speed=SPEEDS["TRANSFORM_COMPLEX"]),
    "ForEach": _TASK,
    "IfCondition": _TASK,
    "Switch": _TASK,
    "ExecutePipeline": _TASK,
    "WebActivity": _TASK,
    "Wait": _TASK,
    "SetVariable": _TASK,
    "Validation": _TASK,
    "GetMetadata": _TASK,
    "Filter": _TASK,
    # Databricks notebooks
    "PythonNotebook": CategoryRule(speed=SPEEDS["TRANSFORM_COMPLEX"]),
    "ScalaNotebook": CategoryRule(speed=SPEEDS["TRANSFORM_COMPLEX"]),
    "SQLNotebook": CategoryRule(speed=SPEEDS["TRANSFORM_COMPLEX"]),
    "RNotebook": CategoryRule(speed=SPEEDS["TRANSFORM_COMPLEX"]),
    "MarkdownNotebook": _TASK,
    # Databricks sources
    "DeltaTableSource": _FILE_SOURCE,
    "AzureBlobStorage": _FILE_SOURCE,
    "ADLSGen2": _FILE_SOURCE,
    "AzureSQLDatabase": _DB_SOURCE,
    "SnowflakeConnector": _DB_SOURCE,
    "KafkaStream": CategoryRule(speed=SPEEDS["SOURCE_DB"], row_factor=0.1),
    # Databricks transformations
    "DataFrameTransform": CategoryRule(schema_op="dataframe"),
    "DeltaLakeMerge": CategoryRule(
        speed=SPEEDS["MERGE_JOIN"], schema_op="join", memory_impact="Medium"
    ),
    "DeltaLakeTimeTravel": CategoryRule(speed=SPEEDS["SOURCE_FILE"]),
    "SparkSQLQuery": CategoryRule(speed=SPEEDS["TRANSFORM_COMPLEX"]),
    "MLflowModelTraining": CategoryRule(
        speed=SPEEDS["TRANSFORM_BLOCKING"],
        row_factor=0.0,
        memory_per_row_mb=0.001,
        memory_impact="High",
    ),
    "MLflowModelServing": CategoryRule(speed=SPEEDS["TRANSFORM_COMPLEX"], schema_op="score"),
    "FeatureStoreIntegration": CategoryRule(
        speed=SPEEDS["TRANSFORM_COMPLEX"], schema_op="lookup", memory_impact="Medium"
    ),
    "AutoLoader": CategoryRule(speed=SPEEDS["SOURCE_FILE"]),
    # Databricks outputs
    "DeltaTableSink": _FILE_DESTINATION,
    "AzureBlobStorageSink": _FILE_DESTINATION,
    "ADLSGen2Sink": _FILE_DESTINATION,
    "AzureSQLDatabaseSink": _DB_DESTINATION,
    "PowerBIDataset": _DB_DESTINATION,
    "MLflowModelRegistry": _TASK,
    # Databricks orchestration and compute
    "JobTask": _TASK,
    "NotebookTask": _TASK,
    "JARTask": _TASK,
    "PythonWheelTask": _TASK,
    "DeltaLiveTables": CategoryRule(speed=SPEEDS["TRANSFORM_COMPLEX"]),
    "AllPurposeCluster": _TASK,
    "JobCluster": _TASK,
    "SQLWarehouse": _TASK,
}


def category_rule(category: str) -> Optional[CategoryRule]:
    """Rule for a category, or None when the category is unknown."""
    return CATEGORY_RULES.get(category)


# Kinds that carry rows. Everything else is a task that only orders work.
DATA_KINDS = frozenset(
    {
        ComponentKind.SOURCE.value,
        ComponentKind.DATA_SOURCE.value,
        ComponentKind.TRANSFORMATION.value,
        ComponentKind.DESTINATION.value,
        ComponentKind.OUTPUT.value,
        ComponentKind.NOTEBOOK.value,
        ComponentKind.DATA_MOVEMENT.value,
    }
)

# Kinds that emit base rows when nothing data-bearing feeds them.
ROOT_KINDS = frozenset(
    {
        ComponentKind.SOURCE.value,
        ComponentKind.DATA_SOURCE.value,
        ComponentKind.NOTEBOOK.value,
        ComponentKind.DATA_MOVEMENT.value,
    }
)

_DEPARTMENTS = ("Sales", "IT", "HR", "Finance", "Marketing")
_PRODUCT_CATEGORIES = ("Electronics", "Clothing", "Food", "Books", "Toys")

SOURCE_SCHEMAS: Dict[str, Tuple[Column, ...]] = {
    "OLEDBSource": (
        Column("CustomerID", "int"),
        Column("FirstName", template="John{i}"),
        Column("LastName", template="Doe{i}"),
        Column("Email", template="john{i}.doe@example.com"),
        Column("Phone", template="555-000{i}"),
        Column("CreatedDate", "datetime"),
        Column("IsActive", "boolean"),
        Column("Balance", "decimal"),
    ),
    "FlatFileSource": (
        Column("OrderID", template="ORD-{i:04d}"),
        Column("ProductName", template="Product {i}"),
        Column("Quantity", "int"),
        Column("UnitPrice", "decimal"),
        Column("OrderDate", "datetime"),
    ),
    "ExcelSource": (
        Column("EmployeeID", template="EMP{i}"),
        Column("Name", template="Employee {i}"),
        Column("Department", choices=_DEPARTMENTS),
        Column("Salary", "int"),
        Column("HireDate", "datetime"),
    ),
    "JSONSource": (
        Column("id", "int"),
        Column("name", template="Item {i}"),
        Column("category", choices=_PRODUCT_CATEGORIES),
        Column("price", "decimal"),
        Column("inStock", "boolean"),
    ),
    "XMLSource": (
        Column("TransactionID", template="TXN-{i}"),
        Column("Amount", "decimal"),
        Column("Currency", choices=("USD",)),
        Column("Timestamp", "datetime"),
    ),
    "DeltaTableSource": (
        Column("id", "int"),
        Column("name"),
        Column("amount", "decimal"),
        Column("created_date", "datetime"),
    ),
    "AzureSQLDatabase": (
        Column("customer_id", "int"),
        Column("order_id", "int"),
        Column("order_date", "datetime"),
        Column("total_amount", "decimal"),
    ),
    "KafkaStream": (
        Column("key"),
        Column("value"),
        Column("timestamp", "datetime"),
    ),
    "CopyData": (
        Column("Source", choices=("Blob Storage",)),
        Column("Destination", choices=("SQL Database",)),
        Column("RowsCopied", "int"),
        Column("Status", choices=("Succeeded",)),
    ),
}

DATABRICKS_DEFAULT_SCHEMA: Tuple[Column, ...] = (
    Column("col1"),
    Column("col2", "int"),
    Column("col3", "decimal"),
)

DEFAULT_SCHEMA: Tuple[Column, ...] = (
    Column("ID", "int"),
    Column("Name", template="Record {i}"),
    Column("Value", "int"),
    Column("Status", choices=("Active", "Inactive")),
)

# --- Cost ---

DBU_RATES: Dict[str, float] = {
    "Standard_DS3_v2": 0.15,
    "Standard_DS4_v2": 0.30,
    "Standard_DS5_v2": 0.60,
    "Standard_D8s_v3": 0.40,
    "Standard_D16s_v3": 0.80,
    "Standard_D32s_v3": 1.60,
    "Small": 0.20,
    "Medium": 0.40,
    "Large": 0.80,
    "X-Large": 1.60,
}
DEFAULT_NODE_TYPE = "Standard_DS3_v2"
DEFAULT_CLUSTER_RATE = 0.15
DEFAULT_WAREHOUSE_SIZE = "Small"
DEFAULT_WAREHOUSE_RATE = 0.20
DEFAULT_NUM_WORKERS = 2
STREAMING_HOURLY_RATE = 5.0
STORAGE_MONTHLY_COST = 0.023  # per GB-month
DAYS_PER_MONTH = 30
STREAMING_CATEGORIES = frozenset({"KafkaStream", "AutoLoader"})

# DBUs billed per executed step
EXECUTION_DBU: Dict[str, float] = {
    "DeltaTableSource": 0.1,
    "AzureBlobStorage": 0.1,
    "ADLSGen2": 0.1,
    "AzureSQLDatabase": 0.1,
    "KafkaStream": 0.05,
    "DataFrameTransform": 0.15,
    "DeltaLakeMerge": 0.2,
    "DeltaTableSink": 0.1,
    "AzureBlobStorageSink": 0.1,
    "ADLSGen2Sink": 0.1,
    "PythonNotebook": 0.3,
    "ScalaNotebook": 0.3,
    "SQLNotebook": 0.3,
}
DEFAULT_EXECUTION_DBU = 0.1
