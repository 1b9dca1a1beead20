"""Databricks Jobs JSON, Terraform and CLI renderers."""

import json
import shlex
from typing import Any, Callable, Dict, List, Optional

from pipesim.artifacts.context import ArtifactContext, prop
from pipesim.artifacts.pyspark import as_int
from pipesim.config import Component, ComponentKind
from pipesim.simulation.tables import DEFAULT_NODE_TYPE, DEFAULT_NUM_WORKERS

DEFAULT_RUNTIME = "13.3.x-scala2.12"
JOB_TIMEOUT_SECONDS = 3600

_TASK_KINDS = (ComponentKind.NOTEBOOK.value, ComponentKind.ORCHESTRATION.value)
_NOTEBOOKS = ("PythonNotebook", "SQLNotebook", "ScalaNotebook", "RNotebook", "NotebookTask")


def cluster_spec(component: Component) -> Dict[str, Any]:
    """``new_cluster`` block for a cluster component."""
    props = component.properties
    spec: Dict[str, Any] = {
        "spark_version": prop(component, "runtimeVersion", DEFAULT_RUNTIME),
        "node_type_id": prop(component, "nodeType", DEFAULT_NODE_TYPE),
    }
    if props.get("autoscaling"):
        spec["autoscale"] = {
            "min_workers": as_int(props.get("minWorkers"), 1),
            "max_workers": as_int(props.get("maxWorkers"), 8),
        }
    else:
        spec["num_workers"] = as_int(props.get("numWorkers"), DEFAULT_NUM_WORKERS)
    if isinstance(props.get("sparkConfig"), dict):
        spec["spark_conf"] = {str(k): str(v) for k, v in props["sparkConfig"].items()}
    return spec


def _task_body(ctx: ArtifactContext, component: Component) -> Optional[Dict[str, Any]]:
    props = component.properties
    category = component.category
    slug = ctx.slugs[component.id]
    parameters = props.get("parameters")

    if category in _NOTEBOOKS:
        body: Dict[str, Any] = {
            "notebook_path": prop(component, "notebookPath", f"/Workspace/notebooks/{slug}")
        }
        if isinstance(parameters, dict):
            body["base_parameters"] = {str(k): str(v) for k, v in parameters.items()}
        return {"notebook_task": body}
    if category == "JARTask":
        return {
            "spark_jar_task": {
                "main_class_name": prop(component, "mainClassName", "Main"),
                "parameters": [str(p) for p in parameters] if isinstance(parameters, list) else [],
            }
        }
    if category == "PythonWheelTask":
        body = {
            "package_name": prop(component, "packageName", prop(component, "packagePath", "package")),
            "entry_point": prop(component, "entryPoint", "main"),
        }
        if isinstance(parameters, dict):
            body["named_parameters"] = {str(k): str(v) for k, v in parameters.items()}
        elif isinstance(parameters, list):
            body["parameters"] = [str(p) for p in parameters]
        return {"python_wheel_task": body}
    if category == "JobTask":
        return {"run_job_task": {"job_id": prop(component, "jobId", slug)}}
    if category == "DeltaLiveTables":
        return {"pipeline_task": {"pipeline_id": prop(component, "pipelineId", slug)}}
    return None


ClusterRef = Callable[[Component], str]


def job_tasks(ctx: ArtifactContext, existing_cluster: ClusterRef) -> List[Dict[str, Any]]:
    """Task list in topological order with ``depends_on`` from resolved connections.

    ``existing_cluster`` maps an all-purpose cluster component to the value
    used for ``existing_cluster_id``.
    """
    graph = ctx.graph
    tasks = []
    emitted = set()
    for component in ctx.ordered:
        if component.kind not in _TASK_KINDS:
            continue
        task: Dict[str, Any] = {"task_key": ctx.slugs[component.id], "description": component.name}

        depends_on = []
        for upstream in graph.predecessors(component.id):
            key = ctx.slugs[upstream]
            if upstream in emitted and {"task_key": key} not in depends_on:
                depends_on.append({"task_key": key})
        if depends_on:
            task["depends_on"] = depends_on

        cluster_id = component.properties.get("clusterId")
        if isinstance(cluster_id, str) and cluster_id:
            cluster = graph.components.get(cluster_id)
            if cluster is not None and cluster.category == "JobCluster":
                task["job_cluster_key"] = ctx.slugs[cluster.id]
            elif cluster is not None:
                task["existing_cluster_id"] = existing_cluster(cluster)
            else:
                task["existing_cluster_id"] = cluster_id

        body = _task_body(ctx, component)
        if body is None:
            task["description"] = (
                f"{component.name} PLACEHOLDER: no job task template "
                f"for category '{component.category}'"
            )
        else:
            task.update(body)
        tasks.append(task)
        emitted.add(component.id)

    if not tasks and any(c.kind != ComponentKind.CLUSTER.value for c in ctx.ordered):
        # data-flow-only graphs run as the generated notebook
        tasks.append(
            {
                "task_key": f"run_{ctx.pipeline_slug}",
                "description": ctx.graph.name,
                "notebook_task": {"notebook_path": f"/Workspace/pipesim/{ctx.pipeline_slug}"},
            }
        )
    return tasks


def _job_clusters(ctx: ArtifactContext) -> List[Dict[str, Any]]:
    return [
        {"job_cluster_key": ctx.slugs[c.id], "new_cluster": cluster_spec(c)}
        for c in ctx.ordered
        if c.category == "JobCluster"
    ]


def _existing_cluster_id(cluster: Component) -> str:
    return str(prop(cluster, "clusterId", cluster.id))


def _mark_incomplete(ctx: ArtifactContext, document: Dict[str, Any]) -> None:
    if ctx.topo.incomplete:
        document["incomplete"] = True
        document["unresolved_components"] = list(ctx.topo.unresolved)


def job_document(ctx: ArtifactContext) -> Dict[str, Any]:
    job: Dict[str, Any] = {
        "name": ctx.graph.name,
        "format": "MULTI_TASK",
        "tasks": job_tasks(ctx, _existing_cluster_id),
    }
    job_clusters = _job_clusters(ctx)
    if job_clusters:
        job["job_clusters"] = job_clusters
    job["timeout_seconds"] = JOB_TIMEOUT_SECONDS
    job["max_concurrent_runs"] = 1
    return job


class JobRenderer:
    """Renders task components as a Databricks Jobs API 2.1 definition."""

    def render(self, ctx: ArtifactContext) -> str:
        job = job_document(ctx)
        _mark_incomplete(ctx, job)
        return json.dumps(job, indent=2) + "\n"


class TerraformRenderer:
    """Renders compute and the job as Terraform JSON for the databricks provider."""

    def render(self, ctx: ArtifactContext) -> str:
        clusters: Dict[str, Any] = {}
        warehouses: Dict[str, Any] = {}
        for component in ctx.ordered:
            slug = ctx.slugs[component.id]
            if component.category == "AllPurposeCluster":
                clusters[slug] = {
                    "cluster_name": component.name,
                    **cluster_spec(component),
                    "autotermination_minutes": as_int(
                        component.properties.get("autoterminationMinutes"), 30
                    ),
                }
            elif component.category == "SQLWarehouse":
                warehouses[slug] = {
                    "name": component.name,
                    "cluster_size": prop(component, "clusterSize", "Small"),
                    "enable_photon": bool(component.properties.get("enablePhoton")),
                }

        def cluster_reference(cluster: Component) -> str:
            if ctx.slugs[cluster.id] in clusters:
                return "${databricks_cluster." + ctx.slugs[cluster.id] + ".id}"
            return _existing_cluster_id(cluster)

        resources: Dict[str, Any] = {}
        if clusters:
            resources["databricks_cluster"] = clusters
        if warehouses:
            resources["databricks_sql_endpoint"] = warehouses
        tasks = job_tasks(ctx, cluster_reference)
        if tasks:
            job: Dict[str, Any] = {"name": ctx.graph.name, "task": tasks}
            job_clusters = _job_clusters(ctx)
            if job_clusters:
                job["job_cluster"] = job_clusters
            job["timeout_seconds"] = JOB_TIMEOUT_SECONDS
            job["max_concurrent_runs"] = 1
            resources["databricks_job"] = {ctx.pipeline_slug: job}

        config: Dict[str, Any] = {
            "terraform": {
                "required_providers": {
                    "databricks": {"source": "databricks/databricks", "version": "~> 1.0"}
                }
            },
            "variable": {
                "databricks_host": {"type": "string"},
                "databricks_token": {"type": "string", "sensitive": True},
            },
            "provider": {
                "databricks": {
                    "host": "${var.databricks_host}",
                    "token": "${var.databricks_token}",
                }
            },
            "resource": resources,
        }
        if ctx.topo.incomplete:
            config["//"] = ctx.incomplete_note()
        return json.dumps(config, indent=2) + "\n"


class CLIRenderer:
    """Renders a shell script of ``databricks`` CLI commands.

    All-purpose clusters are created one by one; the job (with its job
    clusters) is created from the same document :class:`JobRenderer` emits.
    """

    def render(self, ctx: ArtifactContext) -> str:
        lines = [
            "#!/usr/bin/env bash",
            f"# Databricks CLI commands: {ctx.graph.name}",
        ]
        note = ctx.incomplete_note()
        if note:
            lines.append(f"# {note}")
        lines += [
            "set -euo pipefail",
            "",
            'export DATABRICKS_HOST="${DATABRICKS_HOST:-https://your-workspace.cloud.databricks.com}"',
            'export DATABRICKS_TOKEN="${DATABRICKS_TOKEN:?set DATABRICKS_TOKEN}"',
        ]

        for component in ctx.ordered:
            if component.category != "AllPurposeCluster":
                continue
            cluster = {
                "cluster_name": component.name,
                **cluster_spec(component),
                "autotermination_minutes": as_int(
                    component.properties.get("autoterminationMinutes"), 30
                ),
            }
            lines += [
                "",
                f"# Create cluster: {component.name}",
                f"databricks clusters create --json {shlex.quote(json.dumps(cluster, indent=2))}",
            ]

        job = job_document(ctx)
        if job["tasks"]:
            lines += [
                "",
                f"# Create job: {ctx.graph.name}",
                f"databricks jobs create --json {shlex.quote(json.dumps(job, indent=2))}",
            ]
        return "\n".join(lines) + "\n"
