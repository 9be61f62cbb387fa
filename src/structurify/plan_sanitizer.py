import logging
import re
from typing import AbstractSet, Any, Callable, Dict, List, Optional, Set, Union

from .plans import (
    CARDINALITY_RE,
    KEY_KINDS,
    LETTER_FIRST_KINDS,
    NODE_KINDS,
    RELATIONSHIP_KINDS,
    RESERVED_IDS,
    STEP_KINDS,
    DiagramKind,
    attribute_token,
    parse_diagram_kind,
    strip_identifier,
)

logger = logging.getLogger(__name__)

RawPlan = Any

NODE_KIND_SYNONYMS = {
    "start": "startEnd",
    "end": "startEnd",
    "begin": "startEnd",
    "stop": "startEnd",
    "terminal": "startEnd",
    "terminator": "startEnd",
    "action": "process",
    "step": "process",
    "task": "process",
    "operation": "process",
    "default": "process",
    "condition": "decision",
    "branch": "decision",
    "if": "decision",
    "choice": "decision",
    "io": "data",
    "input": "data",
    "output": "data",
    "inputoutput": "data",
    "database": "data",
}

STEP_KIND_SYNONYMS = {
    "call": "sync",
    "request": "sync",
    "synchronous": "sync",
    "asynchronous": "async",
    "event": "async",
    "message": "async",
    "signal": "async",
    "return": "reply",
    "response": "reply",
    "result": "reply",
}

RELATIONSHIP_KIND_SYNONYMS = {
    "extends": "inheritance",
    "inherits": "inheritance",
    "inherit": "inheritance",
    "generalization": "inheritance",
    "realization": "inheritance",
    "implements": "inheritance",
    "composed": "composition",
    "composite": "composition",
    "aggregate": "aggregation",
    "aggregates": "aggregation",
    "uses": "association",
    "dependency": "association",
    "depends": "association",
    "link": "association",
    "associated": "association",
}

KEY_SYNONYMS = {
    "primarykey": "PK",
    "primary": "PK",
    "foreignkey": "FK",
    "foreign": "FK",
}

CARDINALITY_SYNONYMS = {
    "onetoone": "||--||",
    "onetomany": "||--o{",
    "manytoone": "}o--||",
    "manytomany": "}o--o{",
}


class IdentifierTable:
    """Sanitized identifiers of one plan, keyed by their original text.

    Each plan gets its own table, so fallback counters and the original-to-
    sanitized mapping never leak between requests.
    """

    def __init__(
        self,
        prefix: str,
        reserved: Optional[AbstractSet[str]] = None,
        letter_first: bool = False,
    ) -> None:
        self.prefix = prefix
        self.reserved = reserved or frozenset()
        self.letter_first = letter_first
        self.mapping: Dict[str, str] = {}
        self.known: Set[str] = set()

    def assign(self, originals: List[str]) -> List[Optional[str]]:
        """Returns one sanitized id per original, or None for duplicates."""
        bases = [self.clean(original) for original in originals]
        taken = {base for base in bases if base}
        counter = 0
        assigned: List[Optional[str]] = []
        for original, base in zip(originals, bases):
            if not base:
                while f"{self.prefix}{counter}" in taken:
                    counter += 1
                base = f"{self.prefix}{counter}"
                taken.add(base)
            if base in self.known:
                assigned.append(None)
                continue
            self.known.add(base)
            if original:
                self.mapping.setdefault(original, base)
            assigned.append(base)
        return assigned

    def resolve(self, raw: Any) -> str:
        if not isinstance(raw, str):
            return ""
        original = raw.strip()
        if not original:
            return ""
        if original in self.mapping:
            return self.mapping[original]
        candidate = self.clean(original)
        return candidate if candidate in self.known else ""

    def clean(self, original: str) -> str:
        base = strip_identifier(original)
        if self.letter_first and base[:1].isdigit():
            base = f"_{base}"
        if base.lower() in self.reserved:
            base = f"{base}_"
        return base


def sanitize_plan(diagram_kind: Union[str, DiagramKind], candidate: RawPlan) -> RawPlan:
    sanitizer = _SANITIZERS[parse_diagram_kind(diagram_kind)]
    return sanitizer(candidate)


def sanitize_flowchart_plan(candidate: RawPlan) -> RawPlan:
    if not _has_arrays(candidate, "nodes", "edges"):
        return candidate

    table = _identifier_table(DiagramKind.FLOWCHART, "node_")
    survivors = []
    for index, node in enumerate(candidate["nodes"]):
        if not isinstance(node, dict) or not isinstance(node.get("id"), str):
            logger.debug("Dropped flowchart node %d: missing string id", index)
            continue
        kind = normalize_enum(node.get("type"), NODE_KINDS, NODE_KIND_SYNONYMS)
        if kind is None:
            logger.debug("Dropped flowchart node %d: unknown type", index)
            continue
        survivors.append((node, node["id"].strip(), kind))

    nodes = []
    ids = table.assign([original for _, original, _ in survivors])
    for (node, original, kind), node_id in zip(survivors, ids):
        if node_id is None:
            logger.debug("Dropped duplicate flowchart node id")
            continue
        label = _required_text(node.get("label")) or original or node_id
        nodes.append({"id": node_id, "label": label, "type": kind})

    edges = []
    for index, edge in enumerate(candidate["edges"]):
        if not isinstance(edge, dict):
            continue
        source = table.resolve(edge.get("from"))
        target = table.resolve(edge.get("to"))
        if not source or not target:
            logger.debug("Dropped flowchart edge %d: dangling reference", index)
            continue
        item = {"from": source, "to": target}
        label = _optional_text(edge.get("label"))
        if label is not None:
            item["label"] = label
        edges.append(item)

    return {"nodes": nodes, "edges": edges}


def sanitize_sequence_plan(candidate: RawPlan) -> RawPlan:
    if not _has_arrays(candidate, "participants", "steps"):
        return candidate

    table = _identifier_table(DiagramKind.SEQUENCE, "member_")
    survivors = [
        (participant, participant["alias"].strip())
        for participant in candidate["participants"]
        if isinstance(participant, dict) and isinstance(participant.get("alias"), str)
    ]

    participants = []
    aliases = table.assign([original for _, original in survivors])
    for (participant, original), alias in zip(survivors, aliases):
        if alias is None:
            continue
        description = _required_text(participant.get("description")) or original or alias
        participants.append({"alias": alias, "description": description})

    steps = []
    for index, step in enumerate(candidate["steps"]):
        if not isinstance(step, dict):
            continue
        source = table.resolve(step.get("from"))
        target = table.resolve(step.get("to"))
        kind = normalize_enum(step.get("type"), STEP_KINDS, STEP_KIND_SYNONYMS)
        if not source or not target or kind is None:
            logger.debug("Dropped sequence step %d", index)
            continue
        label = _required_text(step.get("label")) or kind
        steps.append({"from": source, "to": target, "label": label, "type": kind})

    return {"participants": participants, "steps": steps}


def sanitize_class_plan(candidate: RawPlan) -> RawPlan:
    if not _has_arrays(candidate, "classes", "relationships"):
        return candidate

    table = _identifier_table(DiagramKind.CLASS, "class_")
    survivors = [
        (item, item["id"].strip())
        for item in candidate["classes"]
        if isinstance(item, dict) and isinstance(item.get("id"), str)
    ]

    classes = []
    class_ids = table.assign([original for _, original in survivors])
    for (item, _), class_id in zip(survivors, class_ids):
        if class_id is None:
            continue
        classes.append(
            {
                "id": class_id,
                "properties": _string_list(item.get("properties")),
                "methods": _string_list(item.get("methods")),
            }
        )

    relationships = []
    for index, rel in enumerate(candidate["relationships"]):
        if not isinstance(rel, dict):
            continue
        source = table.resolve(rel.get("from"))
        target = table.resolve(rel.get("to"))
        kind = normalize_enum(rel.get("type"), RELATIONSHIP_KINDS, RELATIONSHIP_KIND_SYNONYMS)
        if not source or not target or kind is None:
            logger.debug("Dropped class relationship %d", index)
            continue
        item = {"from": source, "to": target, "type": kind}
        label = _optional_text(rel.get("label"))
        if label is not None:
            item["label"] = label
        relationships.append(item)

    return {"classes": classes, "relationships": relationships}


def sanitize_er_plan(candidate: RawPlan) -> RawPlan:
    if not _has_arrays(candidate, "entities", "relationships"):
        return candidate

    table = _identifier_table(DiagramKind.ER, "entity_")
    survivors = [
        (entity, entity["name"].strip())
        for entity in candidate["entities"]
        if isinstance(entity, dict) and isinstance(entity.get("name"), str)
    ]

    entities = []
    names = table.assign([original for _, original in survivors])
    for (entity, _), name in zip(survivors, names):
        if name is None:
            continue
        entities.append({"name": name, "columns": _sanitize_columns(entity.get("columns"))})

    relationships = []
    for index, rel in enumerate(candidate["relationships"]):
        if not isinstance(rel, dict):
            continue
        source = table.resolve(rel.get("from"))
        target = table.resolve(rel.get("to"))
        cardinality = normalize_cardinality(rel.get("cardinality"))
        if not source or not target or cardinality is None:
            logger.debug("Dropped ER relationship %d", index)
            continue
        label = _optional_text(rel.get("label")) or ""
        relationships.append(
            {"from": source, "to": target, "cardinality": cardinality, "label": label}
        )

    return {"entities": entities, "relationships": relationships}


def normalize_enum(value: Any, canonical: tuple, synonyms: Dict[str, str]) -> Optional[str]:
    if not isinstance(value, str):
        return None
    folded = _fold(value)
    for option in canonical:
        if _fold(option) == folded:
            return option
    return synonyms.get(folded)


def normalize_cardinality(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    compact = re.sub(r"\s+", "", value)
    if CARDINALITY_RE.match(compact):
        return compact
    return CARDINALITY_SYNONYMS.get(_fold(value))


def _sanitize_columns(raw_columns: Any) -> List[Dict[str, Any]]:
    if not isinstance(raw_columns, list):
        return []
    columns = []
    for column in raw_columns:
        if not isinstance(column, dict) or not isinstance(column.get("name"), str):
            continue
        name = attribute_token(column["name"])
        if not name:
            continue
        raw_type = column.get("type")
        column_type = attribute_token(raw_type if isinstance(raw_type, str) else "", "string")
        columns.append({"name": name, "type": column_type, "keys": _sanitize_keys(column.get("keys"))})
    return columns


def _sanitize_keys(raw_keys: Any) -> List[str]:
    if isinstance(raw_keys, str):
        raw_keys = re.split(r"[,;]", raw_keys)
    if not isinstance(raw_keys, list):
        return []
    found = {normalize_enum(key, KEY_KINDS, KEY_SYNONYMS) for key in raw_keys}
    return [key for key in KEY_KINDS if key in found]


def _identifier_table(diagram_kind: DiagramKind, prefix: str) -> IdentifierTable:
    return IdentifierTable(
        prefix,
        RESERVED_IDS[diagram_kind],
        letter_first=diagram_kind in LETTER_FIRST_KINDS,
    )


def _has_arrays(candidate: RawPlan, first: str, second: str) -> bool:
    return (
        isinstance(candidate, dict)
        and isinstance(candidate.get(first), list)
        and isinstance(candidate.get(second), list)
    )


def _fold(value: str) -> str:
    return re.sub(r"[\s_\-/]+", "", value.strip().lower())


def _required_text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    return ""


def _optional_text(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


_SANITIZERS: Dict[DiagramKind, Callable[[RawPlan], RawPlan]] = {
    DiagramKind.FLOWCHART: sanitize_flowchart_plan,
    DiagramKind.SEQUENCE: sanitize_sequence_plan,
    DiagramKind.CLASS: sanitize_class_plan,
    DiagramKind.ER: sanitize_er_plan,
}
