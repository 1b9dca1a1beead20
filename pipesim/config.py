"""Configuration and snapshot models for pipesim."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ComponentKind(str, Enum):
    """Known component kinds.

    SSIS: source, transformation, destination, control-flow-task.
    ADF: data-movement, transformation, control-flow, other.
    Databricks: notebook, data-source, transformation, output, orchestration, cluster.
    """

    SOURCE = "source"
    TRANSFORMATION = "transformation"
    DESTINATION = "destination"
    CONTROL_FLOW_TASK = "control-flow-task"
    DATA_MOVEMENT = "data-movement"
    CONTROL_FLOW = "control-flow"
    OTHER = "other"
    NOTEBOOK = "notebook"
    DATA_SOURCE = "data-source"
    OUTPUT = "output"
    ORCHESTRATION = "orchestration"
    CLUSTER = "cluster"


_KIND_ALIASES = {
    "datasource": ComponentKind.DATA_SOURCE.value,
    "controlflowtask": ComponentKind.CONTROL_FLOW_TASK.value,
    "datamovement": ComponentKind.DATA_MOVEMENT.value,
    "controlflow": ComponentKind.CONTROL_FLOW.value,
}


def normalize_kind(value: Any) -> str:
    """Map spelling variants (``dataSource``, ``control_flow``) onto enum values.

    Unknown kinds are returned stripped but otherwise untouched.
    """
    text = str(value).strip()
    candidate = text.lower().replace("_", "-")
    if candidate in {k.value for k in ComponentKind}:
        return candidate
    squashed = candidate.replace("-", "")
    return _KIND_ALIASES.get(squashed, text)


class HandleRole(str, Enum):
    """Outgoing port roles.

    ``output`` and ``error`` carry rows; the other three are precedence
    constraints between tasks.
    """

    OUTPUT = "output"
    ERROR = "error"
    SUCCESS = "success"
    FAILURE = "failure"
    COMPLETION = "completion"


class Severity(str, Enum):
    """Validation issue severity."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class Platform(str, Enum):
    """Platform a snapshot was authored for."""

    SSIS = "ssis"
    ADF = "adf"
    DATABRICKS = "databricks"
    MIXED = "mixed"


class CostPeriod(str, Enum):
    """Aggregation window for cost estimates."""

    DAILY = "daily"
    MONTHLY = "monthly"


class Component(BaseModel):
    """A pipeline node.

    The engine treats instances as immutable. ``has_error`` and
    ``error_message`` are display stamps; use
    :func:`pipesim.validation.stamp_components` to get stamped copies.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(description="Opaque unique identifier")
    kind: str = Field(alias="type", description="Component kind (see ComponentKind)")
    category: str = Field(description="Concrete rule selector, e.g. 'DeltaTableSource'")
    name: str = Field(default="", description="Display name")
    properties: Dict[str, Any] = Field(default_factory=dict)
    data_type: str = Field(default="structured", alias="dataType")
    is_sorted: bool = Field(default=False, alias="isSorted")
    reference_input: Optional[str] = Field(default=None, alias="referenceInput")
    has_error: bool = Field(default=False, alias="hasError")
    error_message: Optional[str] = Field(default=None, alias="errorMessage")

    @model_validator(mode="before")
    @classmethod
    def default_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("name"):
            data = dict(data)
            data["name"] = data.get("category", "")
        return data

    @field_validator("kind", mode="before")
    @classmethod
    def normalize(cls, v: Any) -> str:
        return normalize_kind(v)

    @field_validator("properties", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return {} if v is None else v

    @property
    def resolved_kind(self) -> Optional[ComponentKind]:
        """The kind as an enum member, or None when the kind is unknown."""
        try:
            return ComponentKind(self.kind)
        except ValueError:
            return None


class Connection(BaseModel):
    """A directed, optionally role-tagged edge between two components."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str
    source: str
    target: str
    source_handle: Optional[str] = Field(default=None, alias="sourceHandle")
    target_handle: Optional[str] = Field(default=None, alias="targetHandle")
    is_valid: bool = Field(default=True, alias="isValid")

    @property
    def role(self) -> str:
        """Handle role, defaulting to the plain data output."""
        return self.source_handle or HandleRole.OUTPUT.value


class PipelineSnapshot(BaseModel):
    """Immutable (components, connections) pair owned by the caller."""

    model_config = ConfigDict(frozen=True)

    name: str = "pipeline"
    platform: Platform = Platform.MIXED
    components: List[Component] = Field(default_factory=list)
    connections: List[Connection] = Field(default_factory=list)

    @field_validator("components", "connections", mode="before")
    @classmethod
    def none_to_list(cls, v: Any) -> Any:
        return [] if v is None else v


class ValidationConfig(BaseModel):
    """Controls which platform rules run during validation."""

    include_platform_rules: bool = Field(
        default=True,
        description="Run SSIS/ADF/Databricks rules on top of the structural checks",
    )
    disabled_rules: List[str] = Field(
        default_factory=list,
        description="Rule ids to skip, e.g. ['ssis-excel-row-limit']",
    )


class SimulationConfig(BaseModel):
    """Parameters for data preview and performance simulation."""

    base_row_count: int = Field(default=1000, ge=0, description="Rows emitted by a default source")
    sample_size: int = Field(default=5, ge=0, le=100, description="Sample rows kept per preview")


class CostParams(BaseModel):
    """Usage assumptions for cost estimation."""

    cluster_uptime_hours: float = Field(default=8.0, ge=0, le=24, description="Hours per day")
    job_runs_per_day: int = Field(default=1, ge=0)
    job_duration_hours: float = Field(default=1.0, ge=0, description="Hours per job run")
    period: CostPeriod = CostPeriod.MONTHLY


class ProjectConfig(BaseModel):
    """Top-level snapshot file.

    Example:
    ```yaml
    pipeline:
      name: sales_ingest
      platform: databricks
      components:
        - {id: src, type: data-source, category: DeltaTableSource}
        - {id: out, type: output, category: DeltaTableSink}
      connections:
        - {id: c1, source: src, target: out}
    simulation:
      base_row_count: 50000
    cost:
      cluster_uptime_hours: 4
    ```

    A flat document (``components`` / ``connections`` at the top level) is
    accepted as shorthand for the ``pipeline`` block.
    """

    pipeline: PipelineSnapshot = Field(default_factory=PipelineSnapshot)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    cost: CostParams = Field(default_factory=CostParams)

    @model_validator(mode="before")
    @classmethod
    def wrap_flat_snapshot(cls, data: Any) -> Any:
        if isinstance(data, dict) and "pipeline" not in data:
            snapshot_keys = {"name", "platform", "components", "connections"}
            if snapshot_keys & set(data):
                data = dict(data)
                data["pipeline"] = {k: data.pop(k) for k in list(data) if k in snapshot_keys}
        return data
