from dataclasses import dataclass, field
from typing import Callable, Dict, List

import networkx as nx

from .plans import ClassPlan, DiagramKind, ErPlan, FlowchartPlan, SequencePlan, ValidatedPlan


@dataclass(frozen=True)
class LintFinding:
    severity: str
    rule_id: str
    message: str
    target: str = ""


@dataclass
class LintReport:
    diagram_kind: str
    findings: List[LintFinding] = field(default_factory=list)

    @property
    def errors(self) -> List[LintFinding]:
        return [item for item in self.findings if item.severity == "error"]

    @property
    def warnings(self) -> List[LintFinding]:
        return [item for item in self.findings if item.severity == "warning"]

    @property
    def clean(self) -> bool:
        return not self.findings

    def short_reason(self) -> str:
        if self.clean:
            return "ok"
        if self.errors:
            return "; ".join(item.message for item in self.errors[:3])
        return "; ".join(item.message for item in self.warnings[:3])


def lint_plan(plan: ValidatedPlan) -> LintReport:
    """Advisory checks on a validated plan. Findings never block compilation."""
    findings = _LINTERS[plan.diagram_kind](plan)
    return LintReport(diagram_kind=plan.diagram_kind.value, findings=findings)


def _lint_flowchart(plan: FlowchartPlan) -> List[LintFinding]:
    findings: List[LintFinding] = []
    graph = nx.DiGraph()
    graph.add_nodes_from(node.id for node in plan.nodes)
    for edge in plan.edges:
        if edge.source in graph and edge.target in graph:
            graph.add_edge(edge.source, edge.target)

    isolated = set(nx.isolates(graph)) if len(plan.nodes) > 1 else set()
    for node in plan.nodes:
        if node.id in isolated:
            findings.append(
                LintFinding("warning", "isolated_node", f"Node '{node.id}' has no edges.", target=node.id)
            )

    roots = [node.id for node in plan.nodes if node.kind == "startEnd" and graph.in_degree(node.id) == 0]
    if roots:
        reachable = set(roots)
        for root in roots:
            reachable |= nx.descendants(graph, root)
        for node in plan.nodes:
            if node.id not in reachable and node.id not in isolated:
                findings.append(
                    LintFinding(
                        "warning",
                        "unreachable_node",
                        f"Node '{node.id}' cannot be reached from a start node.",
                        target=node.id,
                    )
                )

    for node in plan.nodes:
        if node.kind != "decision":
            continue
        unlabeled = [
            edge for edge in plan.edges if edge.source == node.id and not (edge.label or "").strip()
        ]
        if unlabeled:
            findings.append(
                LintFinding(
                    "warning",
                    "decision_branch_unlabeled",
                    f"Decision '{node.id}' has {len(unlabeled)} unlabeled branch(es).",
                    target=node.id,
                )
            )
    return findings


def _lint_sequence(plan: SequencePlan) -> List[LintFinding]:
    if not plan.steps:
        return [LintFinding("warning", "no_interaction", "No sequence interaction steps found.")]

    graph = nx.MultiDiGraph()
    graph.add_nodes_from(participant.alias for participant in plan.participants)
    for step in plan.steps:
        if step.source in graph and step.target in graph:
            graph.add_edge(step.source, step.target)

    return [
        LintFinding(
            "warning",
            "unused_participant",
            f"Participant '{participant.alias}' takes part in no step.",
            target=participant.alias,
        )
        for participant in plan.participants
        if graph.degree(participant.alias) == 0
    ]


def _lint_class(plan: ClassPlan) -> List[LintFinding]:
    findings: List[LintFinding] = []
    inheritance = nx.DiGraph()
    for rel in plan.relationships:
        if rel.kind != "inheritance":
            continue
        if rel.source == rel.target:
            findings.append(
                LintFinding(
                    "error",
                    "self_inheritance",
                    f"Class '{rel.source}' cannot inherit from itself.",
                    target=rel.source,
                )
            )
            continue
        inheritance.add_edge(rel.source, rel.target)

    try:
        cycle = nx.find_cycle(inheritance)
    except nx.NetworkXNoCycle:
        cycle = []
    if cycle:
        path = " -> ".join([edge[0] for edge in cycle] + [cycle[0][0]])
        findings.append(
            LintFinding("error", "inheritance_cycle", f"Inheritance cycle: {path}.", target=cycle[0][0])
        )
    return findings


def _lint_er(plan: ErPlan) -> List[LintFinding]:
    findings: List[LintFinding] = []
    graph = nx.Graph()
    graph.add_nodes_from(entity.name for entity in plan.entities)
    for rel in plan.relationships:
        if rel.source in graph and rel.target in graph:
            graph.add_edge(rel.source, rel.target)

    if len(plan.entities) > 1:
        if not plan.relationships:
            findings.append(LintFinding("warning", "no_relationship", "No ER relationships found."))
        else:
            isolated = set(nx.isolates(graph))
            findings.extend(
                LintFinding(
                    "warning",
                    "isolated_entity",
                    f"Entity '{entity.name}' is not related to any other entity.",
                    target=entity.name,
                )
                for entity in plan.entities
                if entity.name in isolated
            )

    for entity in plan.entities:
        if entity.columns and not any("PK" in column.keys for column in entity.columns):
            findings.append(
                LintFinding(
                    "warning",
                    "missing_primary_key",
                    f"Entity '{entity.name}' has no primary key column.",
                    target=entity.name,
                )
            )
    return findings


_LINTERS: Dict[DiagramKind, Callable[..., List[LintFinding]]] = {
    DiagramKind.FLOWCHART: _lint_flowchart,
    DiagramKind.SEQUENCE: _lint_sequence,
    DiagramKind.CLASS: _lint_class,
    DiagramKind.ER: _lint_er,
}
