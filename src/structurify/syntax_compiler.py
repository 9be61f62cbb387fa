import re
from typing import Callable, Dict, List

from .plans import (
    ClassPlan,
    DiagramKind,
    ErPlan,
    FlowchartPlan,
    SequencePlan,
    ValidatedPlan,
    attribute_token,
)

MERMAID_HEADERS = {
    DiagramKind.FLOWCHART: "graph TD",
    DiagramKind.SEQUENCE: "sequenceDiagram",
    DiagramKind.CLASS: "classDiagram",
    DiagramKind.ER: "erDiagram",
}

PLACEHOLDER_TEXT = "Could not generate a valid diagram from the code."

FLOWCHART_STYLES = [
    "classDef startEnd fill:#2ecc71,stroke:#27ae60,color:#fff,font-weight:bold;",
    "classDef process fill:#3498db,stroke:#2980b9,color:#fff;",
    "classDef decision fill:#e67e22,stroke:#d35400,color:#fff;",
    "classDef data fill:#9b59b6,stroke:#8e44ad,color:#fff;",
]

NODE_SHAPES = {
    "startEnd": '{id}(["{label}"]):::startEnd;',
    "process": '{id}["{label}"]:::process;',
    "decision": '{id}{{"{label}"}}:::decision;',
    "data": '{id}[/"{label}"/]:::data;',
}

STEP_ARROWS = {
    "sync": "->>",
    "async": "-)",
    "reply": "-->>",
}

RELATIONSHIP_ARROWS = {
    "inheritance": "<|--",
    "composition": "*--",
    "aggregation": "o--",
    "association": "-->",
}

INDENT = "    "


def compile_plan(plan: ValidatedPlan) -> str:
    compiler = _COMPILERS[plan.diagram_kind]
    return compiler(plan)


def escape_text(text: str) -> str:
    """Makes free text safe to embed in a single Mermaid line or quoted token."""
    flattened = re.sub(r"[\r\n\t]+", " ", text or "").strip()
    return flattened.replace('"', "&quot;").replace("<", "#lt;").replace(">", "#gt;")


def compile_flowchart(plan: FlowchartPlan) -> str:
    lines = [MERMAID_HEADERS[DiagramKind.FLOWCHART]]
    lines.extend(INDENT + style for style in FLOWCHART_STYLES)

    if not plan.nodes:
        lines.append(INDENT + NODE_SHAPES["process"].format(id="error", label=PLACEHOLDER_TEXT))
        return "\n".join(lines)

    declared = set()
    for node in plan.nodes:
        lines.append(INDENT + NODE_SHAPES[node.kind].format(id=node.id, label=escape_text(node.label)))
        declared.add(node.id)

    for edge in plan.edges:
        if edge.source not in declared or edge.target not in declared:
            continue
        label = escape_text(edge.label or "")
        if label:
            lines.append(f'{INDENT}{edge.source} -- "{label}" --> {edge.target};')
        else:
            lines.append(f"{INDENT}{edge.source} --> {edge.target};")

    return "\n".join(lines)


def compile_sequence(plan: SequencePlan) -> str:
    lines = [MERMAID_HEADERS[DiagramKind.SEQUENCE]]

    if not plan.participants:
        lines.append(f"{INDENT}participant Notice as {PLACEHOLDER_TEXT}")
        return "\n".join(lines)

    declared = set()
    for participant in plan.participants:
        description = _sequence_text(participant.description) or participant.alias
        lines.append(f"{INDENT}participant {participant.alias} as {description}")
        declared.add(participant.alias)

    for step in plan.steps:
        if step.source not in declared or step.target not in declared:
            continue
        label = _sequence_text(step.label) or step.kind
        lines.append(f"{INDENT}{step.source}{STEP_ARROWS[step.kind]}{step.target}: {label}")

    return "\n".join(lines)


def compile_class(plan: ClassPlan) -> str:
    lines = [MERMAID_HEADERS[DiagramKind.CLASS]]

    if not plan.classes:
        lines.append(f'{INDENT}note "{PLACEHOLDER_TEXT}"')
        return "\n".join(lines)

    declared = set()
    for item in plan.classes:
        members = [_member_text(prop) for prop in item.properties]
        members.extend(_method_text(method) for method in item.methods)
        members = [member for member in members if member]
        declared.add(item.id)
        if not members:
            lines.append(f"{INDENT}class {item.id}")
            continue
        lines.append(f"{INDENT}class {item.id} {{")
        lines.extend(f"{INDENT * 2}{member}" for member in members)
        lines.append(f"{INDENT}}}")

    for rel in plan.relationships:
        if rel.source not in declared or rel.target not in declared:
            continue
        line = f"{INDENT}{rel.source} {RELATIONSHIP_ARROWS[rel.kind]} {rel.target}"
        label = escape_text(rel.label or "")
        if label:
            line += f" : {label}"
        lines.append(line)

    return "\n".join(lines)


def compile_er(plan: ErPlan) -> str:
    lines = [MERMAID_HEADERS[DiagramKind.ER]]

    if not plan.entities:
        lines.append(f"{INDENT}NoEntities {{")
        lines.append(f'{INDENT * 2}string reason "{PLACEHOLDER_TEXT}"')
        lines.append(f"{INDENT}}}")
        return "\n".join(lines)

    declared = set()
    for entity in plan.entities:
        declared.add(entity.name)
        columns: List[str] = []
        for column in entity.columns:
            name = attribute_token(column.name)
            if not name:
                continue
            parts = [attribute_token(column.type, "string"), name]
            if column.keys:
                parts.append(", ".join(column.keys))
            columns.append(" ".join(parts))
        if not columns:
            lines.append(f"{INDENT}{entity.name}")
            continue
        lines.append(f"{INDENT}{entity.name} {{")
        lines.extend(f"{INDENT * 2}{column}" for column in columns)
        lines.append(f"{INDENT}}}")

    for rel in plan.relationships:
        if rel.source not in declared or rel.target not in declared:
            continue
        lines.append(
            f'{INDENT}{rel.source} {rel.cardinality} {rel.target} : "{escape_text(rel.label)}"'
        )

    return "\n".join(lines)


def _sequence_text(text: str) -> str:
    # Unquoted text where ";" ends a statement, so Mermaid entity codes are used.
    flattened = re.sub(r"[\r\n\t]+", " ", text or "").strip()
    flattened = flattened.replace(";", "#59;").replace('"', "#quot;")
    return flattened.replace("<", "#lt;").replace(">", "#gt;")


def _member_text(text: str) -> str:
    # Generic brackets use the ~T~ notation inside class bodies.
    member = re.sub(r"<([^<>]*)>", r"~\1~", text or "")
    return re.sub(r"[{}]", "", escape_text(member)).strip()


def _method_text(text: str) -> str:
    member = _member_text(text)
    if member and "(" not in member:
        member += "()"
    return member


_COMPILERS: Dict[DiagramKind, Callable] = {
    DiagramKind.FLOWCHART: compile_flowchart,
    DiagramKind.SEQUENCE: compile_sequence,
    DiagramKind.CLASS: compile_class,
    DiagramKind.ER: compile_er,
}
