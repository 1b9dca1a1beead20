from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from pipesim.config import Component, Connection, Severity, ValidationConfig
from pipesim.graph import PipelineGraph
from pipesim.registry import RuleRegistry, kind_rule
from pipesim.utils.logging import get_logger

_SEVERITY_RANK = {Severity.ERROR: 0, Severity.WARNING: 1, Severity.INFO: 2}


@dataclass
class ValidationIssue:
    """A single finding produced by validation."""

    severity: Severity
    message: str
    suggestion: Optional[str] = None
    affected_components: List[str] = field(default_factory=list)
    rule: str = ""
    connection_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["severity"] = self.severity.value
        return data


@dataclass
class ValidationReport:
    """Issues plus per-id side tables for the presentation layer."""

    issues: List[ValidationIssue] = field(default_factory=list)
    component_errors: Dict[str, bool] = field(default_factory=dict)
    component_messages: Dict[str, str] = field(default_factory=dict)
    connection_validity: Dict[str, bool] = field(default_factory=dict)
    cycles: List[List[str]] = field(default_factory=list)

    def _by_severity(self, severity: Severity) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == severity]

    @property
    def errors(self) -> List[ValidationIssue]:
        return self._by_severity(Severity.ERROR)

    @property
    def warnings(self) -> List[ValidationIssue]:
        return self._by_severity(Severity.WARNING)

    @property
    def infos(self) -> List[ValidationIssue]:
        return self._by_severity(Severity.INFO)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "issues": [i.to_dict() for i in self.issues],
            "component_errors": dict(self.component_errors),
            "component_messages": dict(self.component_messages),
            "connection_validity": dict(self.connection_validity),
            "cycles": [list(c) for c in self.cycles],
        }


def find_cycles(graph: PipelineGraph) -> List[List[str]]:
    """Find distinct cycles with an iterative DFS over resolved connections.

    Every component is used as a start point (in input order) so disconnected
    subgraphs are covered. A back-edge to a component on the current path
    closes a cycle; cycles with the same member set are reported once.

    Returns:
        Cycles as member lists in traversal order
    """
    visited: Set[str] = set()
    on_stack: Set[str] = set()
    seen: Set[frozenset] = set()
    cycles: List[List[str]] = []

    for start in graph.components:
        if start in visited:
            continue

        visited.add(start)
        on_stack.add(start)
        path = [start]
        stack = [(start, iter(graph.successors(start)))]

        while stack:
            node, neighbors = stack[-1]
            descended = False
            for neighbor in neighbors:
                if neighbor in on_stack:
                    cycle = path[path.index(neighbor) :]
                    key = frozenset(cycle)
                    if key not in seen:
                        seen.add(key)
                        cycles.append(cycle)
                elif neighbor not in visited:
                    visited.add(neighbor)
                    on_stack.add(neighbor)
                    path.append(neighbor)
                    stack.append((neighbor, iter(graph.successors(neighbor))))
                    descended = True
                    break
            if not descended:
                stack.pop()
                on_stack.discard(node)
                path.pop()

    return cycles


class Validator:
    """
    Structural validation plus registered platform rules.

    Never raises for problems inside the snapshot: every finding becomes a
    :class:`ValidationIssue`.
    """

    def __init__(self, config: Optional[ValidationConfig] = None):
        self.config = config or ValidationConfig()

    def validate(self, graph: PipelineGraph) -> ValidationReport:
        """
        Run all checks against a graph.

        Args:
            graph: Graph to validate

        Returns:
            ValidationReport with issues ordered error, warning, info
        """
        logger = get_logger()
        logger.debug(
            "Starting validation",
            components=len(graph.components),
            connections=len(graph.connections),
        )

        issues: List[ValidationIssue] = []
        invalid_connections: Set[str] = set()

        issues.extend(self._check_dangling(graph, invalid_connections))
        issues.extend(self._check_compatibility(graph, invalid_connections))
        issues.extend(self._check_components(graph))

        cycles = find_cycles(graph)
        issues.extend(self._cycle_issues(graph, cycles, invalid_connections))

        if self.config.include_platform_rules:
            issues.extend(self._run_platform_rules(graph))

        issues.sort(key=lambda i: _SEVERITY_RANK[i.severity])
        report = self._build_report(graph, issues, invalid_connections, cycles)

        logger.debug(
            "Validation complete",
            errors=len(report.errors),
            warnings=len(report.warnings),
            infos=len(report.infos),
        )
        return report

    def _check_dangling(
        self, graph: PipelineGraph, invalid: Set[str]
    ) -> Iterable[ValidationIssue]:
        for connection in graph.dangling:
            invalid.add(connection.id)
            missing = [
                endpoint
                for endpoint in (connection.source, connection.target)
                if endpoint not in graph.components
            ]
            yield ValidationIssue(
                severity=Severity.ERROR,
                message=(
                    f"Orphaned connection '{connection.id}': "
                    f"missing component(s) {', '.join(missing)}"
                ),
                suggestion="Delete the connection or restore the missing component",
                affected_components=[
                    e for e in (connection.source, connection.target) if e in graph.components
                ],
                rule="orphaned-connection",
                connection_id=connection.id,
            )

    def _check_compatibility(
        self, graph: PipelineGraph, invalid: Set[str]
    ) -> Iterable[ValidationIssue]:
        for connection in graph.resolved_connections:
            source = graph.components[connection.source]
            target = graph.components[connection.target]
            source_rule = kind_rule(source.resolved_kind)
            target_rule = kind_rule(target.resolved_kind)
            if source_rule is None or target_rule is None:
                continue

            reason = None
            if not source_rule.produces_output:
                reason = f"{source.kind} components cannot send output connections"
            elif connection.role not in source_rule.output_roles:
                reason = f"'{connection.role}' is not a valid output of a {source.kind} component"
            elif not target_rule.accepts_input:
                reason = f"{target.kind} components cannot receive input connections"

            if reason:
                invalid.add(connection.id)
                yield ValidationIssue(
                    severity=Severity.ERROR,
                    message=f"Incompatible connection '{connection.id}': {reason}",
                    suggestion="Remove the connection or connect compatible components",
                    affected_components=[source.id, target.id],
                    rule="incompatible-connection",
                    connection_id=connection.id,
                )

    def _check_components(self, graph: PipelineGraph) -> Iterable[ValidationIssue]:
        missing_input = []
        dead_ends = []
        for component in graph.components.values():
            rule = kind_rule(component.resolved_kind)
            if rule is None:
                yield ValidationIssue(
                    severity=Severity.WARNING,
                    message=f"Unknown component type '{component.kind}'",
                    suggestion="Use one of the supported component kinds",
                    affected_components=[component.id],
                    rule="unknown-kind",
                )
                continue
            if rule.requires_input and not graph.incoming.get(component.id):
                missing_input.append(component)
            if rule.produces_output and not graph.outgoing.get(component.id):
                dead_ends.append(component)

        for component in missing_input:
            yield ValidationIssue(
                severity=Severity.WARNING,
                message=f"{component.name} has no input connection",
                suggestion="Connect an upstream component",
                affected_components=[component.id],
                rule="missing-input",
            )
        for component in dead_ends:
            yield ValidationIssue(
                severity=Severity.INFO,
                message=f"{component.name} has no outgoing connection; the pipeline may be incomplete",
                affected_components=[component.id],
                rule="dead-end",
            )

    def _cycle_issues(
        self, graph: PipelineGraph, cycles: List[List[str]], invalid: Set[str]
    ) -> Iterable[ValidationIssue]:
        for cycle in cycles:
            edges: Set[Tuple[str, str]] = set(zip(cycle, cycle[1:] + cycle[:1]))
            for connection in graph.resolved_connections:
                if (connection.source, connection.target) in edges:
                    invalid.add(connection.id)
            loop = " -> ".join(cycle + [cycle[0]])
            yield ValidationIssue(
                severity=Severity.ERROR,
                message=f"Circular dependency detected: {loop}. Data flow must be acyclic.",
                suggestion="Remove one of the connections that closes the loop",
                affected_components=list(cycle),
                rule="cycle",
            )

    def _run_platform_rules(self, graph: PipelineGraph) -> List[ValidationIssue]:
        logger = get_logger()
        disabled = set(self.config.disabled_rules)
        issues: List[ValidationIssue] = []

        for registered in RuleRegistry.rules_for(graph.platform):
            if registered.rule_id in disabled:
                continue
            try:
                found = registered.func(graph)
            except Exception as e:
                logger.warning("Validation rule failed", rule=registered.rule_id, error=str(e))
                issues.append(
                    ValidationIssue(
                        severity=Severity.WARNING,
                        message=f"Rule '{registered.rule_id}' could not be evaluated: {e}",
                        rule=registered.rule_id,
                    )
                )
                continue
            for issue in found:
                if not issue.rule:
                    issue.rule = registered.rule_id
                issues.append(issue)

        return issues

    def _build_report(
        self,
        graph: PipelineGraph,
        issues: List[ValidationIssue],
        invalid: Set[str],
        cycles: List[List[str]],
    ) -> ValidationReport:
        component_errors = {component_id: False for component_id in graph.components}
        component_messages: Dict[str, str] = {}

        for issue in issues:
            if issue.severity != Severity.ERROR:
                continue
            if issue.connection_id:
                invalid.add(issue.connection_id)
            for component_id in issue.affected_components:
                if component_id in component_errors:
                    component_errors[component_id] = True
                    component_messages.setdefault(component_id, issue.message)

        connection_validity = {c.id: c.id not in invalid for c in graph.connections}
        return ValidationReport(
            issues=issues,
            component_errors=component_errors,
            component_messages=component_messages,
            connection_validity=connection_validity,
            cycles=cycles,
        )


def stamp_components(
    components: Iterable[Component], report: ValidationReport
) -> List[Component]:
    """Return copies of ``components`` carrying the report's error stamps."""
    return [
        c.model_copy(
            update={
                "has_error": report.component_errors.get(c.id, False),
                "error_message": report.component_messages.get(c.id),
            }
        )
        for c in components
    ]


def stamp_connections(
    connections: Iterable[Connection], report: ValidationReport
) -> List[Connection]:
    """Return copies of ``connections`` carrying the report's validity stamps."""
    return [
        c.model_copy(update={"is_valid": report.connection_validity.get(c.id, True)})
        for c in connections
    ]
