"""Azure Data Factory ARM template renderer."""

import json
from typing import Any, Dict, List

from pipesim.artifacts.context import ArtifactContext, prop
from pipesim.artifacts.pyspark import as_int
from pipesim.config import Component, HandleRole

ARM_SCHEMA = "https://schema.management.azure.com/schemas/2019-04-01/deploymentTemplate.json#"

ACTIVITY_TYPES = {
    "CopyData": "Copy",
    "MappingDataFlow": "ExecuteDataFlow",
    "DatabricksNotebook": "DatabricksNotebook",
    "WebActivity": "WebActivity",
    "Wait": "Wait",
    "SetVariable": "SetVariable",
    "Filter": "Filter",
    "ForEach": "ForEach",
    "IfCondition": "IfCondition",
    "Switch": "Switch",
    "ExecutePipeline": "ExecutePipeline",
    "Validation": "Validation",
    "GetMetadata": "GetMetadata",
}

DEPENDENCY_CONDITIONS = {
    HandleRole.SUCCESS.value: "Succeeded",
    HandleRole.FAILURE.value: "Failed",
    HandleRole.COMPLETION.value: "Completed",
}


def _expression(value: str) -> Dict[str, str]:
    return {"value": value, "type": "Expression"}


def type_properties(component: Component) -> Dict[str, Any]:
    """``typeProperties`` for an activity; empty for categories without settings."""
    props = component.properties
    category = component.category

    if category == "CopyData":
        return {
            "source": {"type": prop(component, "sourceType", "BlobSource"), "recursive": True},
            "sink": {"type": prop(component, "sinkType", "SqlSink"), "writeBatchSize": 10000},
            "enableStaging": False,
        }
    if category == "MappingDataFlow":
        return {
            "dataflow": {
                "referenceName": prop(component, "dataFlowName", component.name),
                "type": "DataFlowReference",
            }
        }
    if category == "DatabricksNotebook":
        return {"notebookPath": prop(component, "notebookPath", "/path/to/notebook")}
    if category == "WebActivity":
        return {
            "url": prop(component, "url", "https://example.com"),
            "method": prop(component, "method", "GET"),
            "headers": {"Content-Type": "application/json"},
            "body": props.get("body") or "",
        }
    if category == "Wait":
        return {"waitTimeInSeconds": as_int(props.get("waitTimeInSeconds"), 1)}
    if category == "SetVariable":
        return {
            "variableName": prop(component, "variableName", "myVar"),
            "value": props.get("value") if props.get("value") is not None else "value",
        }
    if category == "ExecutePipeline":
        return {
            "pipeline": {
                "referenceName": prop(component, "pipelineReference", "ChildPipeline"),
                "type": "PipelineReference",
            },
            "waitOnCompletion": str(props.get("waitOnCompletion")).lower() == "true",
        }
    if category == "ForEach":
        return {
            "items": _expression(prop(component, "items", "@pipeline().parameters.items")),
            "isSequential": bool(props.get("isSequential")),
            "activities": [],
        }
    if category == "IfCondition":
        return {
            "expression": _expression(prop(component, "expression", "@bool(true)")),
            "ifTrueActivities": [],
            "ifFalseActivities": [],
        }
    if category == "Switch":
        return {"on": _expression(prop(component, "on", "@pipeline().parameters.case")), "cases": []}
    if category == "Filter":
        return {
            "items": _expression(prop(component, "items", "@pipeline().parameters.items")),
            "condition": _expression(prop(component, "condition", "@bool(true)")),
        }
    if category in ("GetMetadata", "Validation"):
        return {
            "dataset": {
                "referenceName": prop(component, "dataset", "Dataset"),
                "type": "DatasetReference",
            }
        }
    return {}


def _depends_on(ctx: ArtifactContext, component: Component, names: Dict[str, str]) -> List[Dict]:
    """One entry per upstream activity; roles on parallel connections merge."""
    entries: Dict[str, List[str]] = {}
    for connection in ctx.graph.incoming.get(component.id, []):
        if connection.source not in names:
            continue
        condition = DEPENDENCY_CONDITIONS.get(connection.role, "Succeeded")
        conditions = entries.setdefault(names[connection.source], [])
        if condition not in conditions:
            conditions.append(condition)
    return [{"activity": name, "dependencyConditions": c} for name, c in entries.items()]


class ADFRenderer:
    """Renders the pipeline as an ARM template with one ADF pipeline resource."""

    def render(self, ctx: ArtifactContext) -> str:
        ordered = ctx.ordered
        # ADF activity names must be unique within a pipeline
        names: Dict[str, str] = {}
        taken = set()
        for component in ordered:
            name = component.name
            n = 2
            while name in taken:
                name = f"{component.name}_{n}"
                n += 1
            taken.add(name)
            names[component.id] = name

        activities = []
        for component in ordered:
            activity: Dict[str, Any] = {
                "name": names[component.id],
                "type": ACTIVITY_TYPES.get(component.category, "Wait"),
                "dependsOn": _depends_on(ctx, component, names),
                "userProperties": [],
                "typeProperties": type_properties(component),
            }
            if component.category not in ACTIVITY_TYPES:
                activity["description"] = (
                    f"PLACEHOLDER: no ADF activity template for category '{component.category}'"
                )
                activity["typeProperties"] = {"waitTimeInSeconds": 1}
            activities.append(activity)

        pipeline_name = ctx.graph.name
        note = ctx.incomplete_note()
        annotations = [note] if note else []
        template = {
            "$schema": ARM_SCHEMA,
            "contentVersion": "1.0.0.0",
            "parameters": {
                "factoryName": {
                    "type": "string",
                    "metadata": {"description": "The name of the Data Factory"},
                }
            },
            "variables": {},
            "resources": [
                {
                    "name": f"[concat(parameters('factoryName'), '/{pipeline_name}')]",
                    "type": "Microsoft.DataFactory/factories/pipelines",
                    "apiVersion": "2018-06-01",
                    "properties": {"activities": activities, "annotations": annotations},
                    "dependsOn": [],
                }
            ],
        }
        return json.dumps(template, indent=4) + "\n"
