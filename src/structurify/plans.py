import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple, Union


class DiagramKind(str, Enum):
    FLOWCHART = "Flowchart"
    SEQUENCE = "Sequence"
    CLASS = "Class"
    ER = "ER"


DIAGRAM_KINDS = [kind.value for kind in DiagramKind]

IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9_]+$")

# Lowercase keywords that Mermaid's case-insensitive lexers read as statements.
RESERVED_IDS: Dict[DiagramKind, FrozenSet[str]] = {
    DiagramKind.FLOWCHART: frozenset(
        {
            "end",
            "graph",
            "flowchart",
            "subgraph",
            "direction",
            "style",
            "class",
            "classdef",
            "click",
            "call",
            "href",
            "linkstyle",
        }
    ),
    DiagramKind.SEQUENCE: frozenset(
        {
            "end",
            "participant",
            "actor",
            "create",
            "destroy",
            "box",
            "loop",
            "alt",
            "else",
            "opt",
            "par",
            "and",
            "rect",
            "critical",
            "option",
            "break",
            "note",
            "activate",
            "deactivate",
            "autonumber",
            "title",
            "link",
            "links",
            "properties",
            "details",
        }
    ),
    DiagramKind.CLASS: frozenset(
        {
            "class",
            "namespace",
            "note",
            "link",
            "callback",
            "click",
            "style",
            "cssclass",
            "classdef",
            "direction",
        }
    ),
    DiagramKind.ER: frozenset({"direction", "style", "classdef", "class"}),
}

# Entity and class tokens must start with a letter or underscore.
LETTER_FIRST_KINDS = frozenset({DiagramKind.CLASS, DiagramKind.ER})

NODE_KINDS = ("startEnd", "process", "decision", "data")
STEP_KINDS = ("sync", "async", "reply")
RELATIONSHIP_KINDS = ("inheritance", "composition", "aggregation", "association")
KEY_KINDS = ("PK", "FK")

CARDINALITY_RE = re.compile(r"^(\|o|\|\||\}o|\}\|)(--|\.\.)(o\||\|\||o\{|\|\{)$")


def parse_diagram_kind(value: Union[str, DiagramKind]) -> DiagramKind:
    if isinstance(value, DiagramKind):
        return value
    text = str(value or "").strip().lower()
    for suffix in (" diagram", "diagram"):
        if text.endswith(suffix) and text != suffix.strip():
            text = text[: -len(suffix)].strip()
    aliases = {
        "flowchart": DiagramKind.FLOWCHART,
        "flow": DiagramKind.FLOWCHART,
        "sequence": DiagramKind.SEQUENCE,
        "class": DiagramKind.CLASS,
        "er": DiagramKind.ER,
        "entity-relation": DiagramKind.ER,
        "entity relation": DiagramKind.ER,
        "entityrelation": DiagramKind.ER,
    }
    if text not in aliases:
        raise ValueError(f"Unknown diagram type: {value}")
    return aliases[text]


def is_identifier(value: str) -> bool:
    return bool(IDENTIFIER_RE.match(value or ""))


@dataclass(frozen=True)
class DiagramRequest:
    source_text: str
    diagram_kind: DiagramKind


@dataclass(frozen=True)
class FlowchartNode:
    id: str
    label: str
    kind: str


@dataclass(frozen=True)
class FlowchartEdge:
    source: str
    target: str
    label: Optional[str] = None


@dataclass(frozen=True)
class FlowchartPlan:
    nodes: Tuple[FlowchartNode, ...]
    edges: Tuple[FlowchartEdge, ...]

    diagram_kind = DiagramKind.FLOWCHART


@dataclass(frozen=True)
class SequenceParticipant:
    alias: str
    description: str


@dataclass(frozen=True)
class SequenceStep:
    source: str
    target: str
    label: str
    kind: str


@dataclass(frozen=True)
class SequencePlan:
    participants: Tuple[SequenceParticipant, ...]
    steps: Tuple[SequenceStep, ...]

    diagram_kind = DiagramKind.SEQUENCE


@dataclass(frozen=True)
class ClassDefinition:
    id: str
    properties: Tuple[str, ...]
    methods: Tuple[str, ...]


@dataclass(frozen=True)
class ClassRelationship:
    source: str
    target: str
    kind: str
    label: Optional[str] = None


@dataclass(frozen=True)
class ClassPlan:
    classes: Tuple[ClassDefinition, ...]
    relationships: Tuple[ClassRelationship, ...]

    diagram_kind = DiagramKind.CLASS


@dataclass(frozen=True)
class ErColumn:
    name: str
    type: str
    keys: Tuple[str, ...]


@dataclass(frozen=True)
class ErEntity:
    name: str
    columns: Tuple[ErColumn, ...]


@dataclass(frozen=True)
class ErRelationship:
    source: str
    target: str
    cardinality: str
    label: str


@dataclass(frozen=True)
class ErPlan:
    entities: Tuple[ErEntity, ...]
    relationships: Tuple[ErRelationship, ...]

    diagram_kind = DiagramKind.ER


ValidatedPlan = Union[FlowchartPlan, SequencePlan, ClassPlan, ErPlan]


def strip_identifier(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9_]", "", value or "")


def attribute_token(value: str, fallback: str = "") -> str:
    token = re.sub(r"\s+", "_", (value or "").strip())
    token = re.sub(r"[^A-Za-z0-9_()\[\]\-]", "", token)
    if token and not re.match(r"^[A-Za-z_]", token):
        token = f"_{token}"
    return token or fallback
