"""Per-kind semantic rules and the platform rule registry."""

from dataclasses import dataclass
from functools import wraps
from typing import Callable, Dict, FrozenSet, List, Optional

from pipesim.config import ComponentKind, HandleRole, Platform

DATA_ROLES: FrozenSet[str] = frozenset({HandleRole.OUTPUT.value, HandleRole.ERROR.value})
PRECEDENCE_ROLES: FrozenSet[str] = frozenset(
    {HandleRole.SUCCESS.value, HandleRole.FAILURE.value, HandleRole.COMPLETION.value}
)


@dataclass(frozen=True)
class KindRule:
    """How a component kind participates in connections."""

    accepts_input: bool
    produces_output: bool
    output_roles: FrozenSet[str]
    requires_input: bool = False


_TASK_RULE = KindRule(
    accepts_input=True,
    produces_output=True,
    # an untagged connection between tasks means "on success"
    output_roles=PRECEDENCE_ROLES | {HandleRole.OUTPUT.value},
)

KIND_RULES: Dict[ComponentKind, KindRule] = {
    ComponentKind.SOURCE: KindRule(False, True, DATA_ROLES),
    ComponentKind.DATA_SOURCE: KindRule(False, True, DATA_ROLES),
    ComponentKind.TRANSFORMATION: KindRule(True, True, DATA_ROLES, requires_input=True),
    ComponentKind.DESTINATION: KindRule(True, False, frozenset(), requires_input=True),
    ComponentKind.OUTPUT: KindRule(True, False, frozenset(), requires_input=True),
    ComponentKind.CONTROL_FLOW_TASK: _TASK_RULE,
    ComponentKind.DATA_MOVEMENT: _TASK_RULE,
    ComponentKind.CONTROL_FLOW: _TASK_RULE,
    ComponentKind.OTHER: _TASK_RULE,
    ComponentKind.ORCHESTRATION: _TASK_RULE,
    ComponentKind.NOTEBOOK: KindRule(True, True, DATA_ROLES | PRECEDENCE_ROLES),
    ComponentKind.CLUSTER: KindRule(False, False, frozenset()),
}


# fmt: off
PLATFORM_CATEGORIES: Dict[Platform, FrozenSet[str]] = {
    Platform.SSIS: frozenset(
        {
            "OLEDBSource", "FlatFileSource", "ExcelSource", "JSONSource", "XMLSource",
            "DataConversion", "DerivedColumn", "Lookup", "ConditionalSplit", "Sort",
            "Aggregate", "MergeJoin", "UnionAll", "Multicast", "RowCount",
            "OLEDBDestination", "FlatFileDestination", "ExcelDestination",
            "SQLServerDestination", "DataFlowTask", "ExecuteSQLTask", "FileSystemTask",
            "ScriptTask", "ForLoopContainer", "ForeachLoopContainer", "SequenceContainer",
        }
    ),
    Platform.ADF: frozenset(
        {
            "CopyData", "MappingDataFlow", "DatabricksNotebook", "ForEach", "IfCondition",
            "Switch", "ExecutePipeline", "WebActivity", "Wait", "SetVariable",
            "Validation", "GetMetadata", "Filter",
        }
    ),
    Platform.DATABRICKS: frozenset(
        {
            "PythonNotebook", "ScalaNotebook", "SQLNotebook", "RNotebook",
            "MarkdownNotebook", "DeltaTableSource", "AzureBlobStorage", "ADLSGen2",
            "AzureSQLDatabase", "SnowflakeConnector", "KafkaStream", "DataFrameTransform",
            "DeltaLakeMerge", "DeltaLakeTimeTravel", "SparkSQLQuery", "MLflowModelTraining",
            "MLflowModelServing", "FeatureStoreIntegration", "AutoLoader", "DeltaTableSink",
            "AzureBlobStorageSink", "ADLSGen2Sink", "AzureSQLDatabaseSink", "PowerBIDataset",
            "MLflowModelRegistry", "JobTask", "NotebookTask", "JARTask", "PythonWheelTask",
            "DeltaLiveTables", "AllPurposeCluster", "JobCluster", "SQLWarehouse",
        }
    ),
}
# fmt: on


def platform_of(category: str) -> Optional[Platform]:
    """Platform owning a category, or None for unknown categories."""
    for platform, categories in PLATFORM_CATEGORIES.items():
        if category in categories:
            return platform
    return None


def kind_rule(kind: Optional[ComponentKind]) -> Optional[KindRule]:
    """Return the rule for a kind, or None for unknown kinds."""
    if kind is None:
        return None
    return KIND_RULES.get(kind)


@dataclass(frozen=True)
class RegisteredRule:
    """A platform rule function plus its metadata."""

    rule_id: str
    platform: Platform
    func: Callable
    description: str = ""


class RuleRegistry:
    """Global registry of platform validation rules.

    Rule functions take a :class:`pipesim.graph.PipelineGraph` and return an
    iterable of :class:`pipesim.validation.ValidationIssue`.
    """

    _rules: Dict[str, RegisteredRule] = {}

    @classmethod
    def register(cls, rule_id: str, platform: Platform, func: Callable) -> Callable:
        """Register a rule function under ``rule_id``.

        Raises:
            ValueError: If the id is already taken by a different function
        """
        existing = cls._rules.get(rule_id)
        if existing is not None and existing.func is not func:
            raise ValueError(f"Rule '{rule_id}' is already registered")
        description = (func.__doc__ or "").strip().splitlines()
        cls._rules[rule_id] = RegisteredRule(
            rule_id=rule_id,
            platform=platform,
            func=func,
            description=description[0] if description else "",
        )
        return func

    @classmethod
    def get(cls, rule_id: str) -> RegisteredRule:
        """Retrieve a registered rule.

        Raises:
            ValueError: If rule not found
        """
        if rule_id not in cls._rules:
            available = ", ".join(cls._rules.keys()) if cls._rules else "none"
            raise ValueError(f"Rule '{rule_id}' not registered. Available rules: {available}")
        return cls._rules[rule_id]

    @classmethod
    def rules_for(cls, platform: Platform = Platform.MIXED) -> List[RegisteredRule]:
        """Rules applicable to a platform, in registration order.

        A mixed snapshot gets every rule; each rule selects its own
        components by kind and category.
        """
        if platform == Platform.MIXED:
            return list(cls._rules.values())
        return [r for r in cls._rules.values() if r.platform == platform]

    @classmethod
    def list_rules(cls) -> List[str]:
        return list(cls._rules.keys())


def rule(rule_id: str, platform: Platform) -> Callable[[Callable], Callable]:
    """Decorator to register a platform validation rule.

    Usage:
        @rule("ssis-lookup-reference", platform=Platform.SSIS)
        def lookup_reference(graph):
            '''Lookup needs a reference input.'''
            for component in graph.by_category("Lookup"):
                ...
                yield ValidationIssue(...)
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            return list(func(*args, **kwargs))

        RuleRegistry.register(rule_id, platform, wrapper)
        return wrapper

    return decorator
