from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from .errors import ValidationError
from .plans import (
    CARDINALITY_RE,
    KEY_KINDS,
    LETTER_FIRST_KINDS,
    NODE_KINDS,
    RELATIONSHIP_KINDS,
    RESERVED_IDS,
    STEP_KINDS,
    ClassDefinition,
    ClassPlan,
    ClassRelationship,
    DiagramKind,
    ErColumn,
    ErEntity,
    ErPlan,
    ErRelationship,
    FlowchartEdge,
    FlowchartNode,
    FlowchartPlan,
    SequenceParticipant,
    SequencePlan,
    SequenceStep,
    ValidatedPlan,
    is_identifier,
    parse_diagram_kind,
)


def validate_plan(diagram_kind: Union[str, DiagramKind], candidate: Any) -> ValidatedPlan:
    """Checks a parsed JSON value against the schema of ``diagram_kind``.

    Raises ValidationError describing the first defect found. The checks run
    in a fixed order: top-level object, required arrays, then each element.
    """
    validator = _VALIDATORS[parse_diagram_kind(diagram_kind)]
    return validator(candidate)


def validate_flowchart_plan(candidate: Any) -> FlowchartPlan:
    raw_nodes, raw_edges = _require_arrays(candidate, "nodes", "edges")

    nodes: List[FlowchartNode] = []
    for number, raw in enumerate(raw_nodes, start=1):
        where = f"Node {number}"
        item = _require_element(raw, where)
        nodes.append(
            FlowchartNode(
                id=_require_identifier(item, "id", where, DiagramKind.FLOWCHART),
                label=_require_string(item, "label", where),
                kind=_require_enum(item, "type", NODE_KINDS, where),
            )
        )

    edges: List[FlowchartEdge] = []
    for number, raw in enumerate(raw_edges, start=1):
        where = f"Edge {number}"
        item = _require_element(raw, where)
        edges.append(
            FlowchartEdge(
                source=_require_identifier(item, "from", where, DiagramKind.FLOWCHART),
                target=_require_identifier(item, "to", where, DiagramKind.FLOWCHART),
                label=_optional_string(item, "label", where),
            )
        )

    return FlowchartPlan(nodes=tuple(nodes), edges=tuple(edges))


def validate_sequence_plan(candidate: Any) -> SequencePlan:
    raw_participants, raw_steps = _require_arrays(candidate, "participants", "steps")

    participants: List[SequenceParticipant] = []
    for number, raw in enumerate(raw_participants, start=1):
        where = f"Participant {number}"
        item = _require_element(raw, where)
        participants.append(
            SequenceParticipant(
                alias=_require_identifier(item, "alias", where, DiagramKind.SEQUENCE),
                description=_require_string(item, "description", where),
            )
        )

    steps: List[SequenceStep] = []
    for number, raw in enumerate(raw_steps, start=1):
        where = f"Step {number}"
        item = _require_element(raw, where)
        steps.append(
            SequenceStep(
                source=_require_identifier(item, "from", where, DiagramKind.SEQUENCE),
                target=_require_identifier(item, "to", where, DiagramKind.SEQUENCE),
                label=_require_string(item, "label", where),
                kind=_require_enum(item, "type", STEP_KINDS, where),
            )
        )

    return SequencePlan(participants=tuple(participants), steps=tuple(steps))


def validate_class_plan(candidate: Any) -> ClassPlan:
    raw_classes, raw_relationships = _require_arrays(candidate, "classes", "relationships")

    classes: List[ClassDefinition] = []
    for number, raw in enumerate(raw_classes, start=1):
        where = f"Class {number}"
        item = _require_element(raw, where)
        classes.append(
            ClassDefinition(
                id=_require_identifier(item, "id", where, DiagramKind.CLASS),
                properties=_require_string_list(item, "properties", where),
                methods=_require_string_list(item, "methods", where),
            )
        )

    relationships: List[ClassRelationship] = []
    for number, raw in enumerate(raw_relationships, start=1):
        where = f"Relationship {number}"
        item = _require_element(raw, where)
        relationships.append(
            ClassRelationship(
                source=_require_identifier(item, "from", where, DiagramKind.CLASS),
                target=_require_identifier(item, "to", where, DiagramKind.CLASS),
                kind=_require_enum(item, "type", RELATIONSHIP_KINDS, where),
                label=_optional_string(item, "label", where),
            )
        )

    return ClassPlan(classes=tuple(classes), relationships=tuple(relationships))


def validate_er_plan(candidate: Any) -> ErPlan:
    raw_entities, raw_relationships = _require_arrays(candidate, "entities", "relationships")

    entities: List[ErEntity] = []
    for number, raw in enumerate(raw_entities, start=1):
        where = f"Entity {number}"
        item = _require_element(raw, where)
        name = _require_identifier(item, "name", where, DiagramKind.ER)
        raw_columns = item.get("columns")
        if not isinstance(raw_columns, list):
            raise ValidationError(f'{where} must have a "columns" array.')
        columns = [
            _validate_column(column, f"{where} column {column_number}")
            for column_number, column in enumerate(raw_columns, start=1)
        ]
        entities.append(ErEntity(name=name, columns=tuple(columns)))

    relationships: List[ErRelationship] = []
    for number, raw in enumerate(raw_relationships, start=1):
        where = f"Relationship {number}"
        item = _require_element(raw, where)
        source = _require_identifier(item, "from", where, DiagramKind.ER)
        target = _require_identifier(item, "to", where, DiagramKind.ER)
        cardinality = _require_string(item, "cardinality", where)
        if not CARDINALITY_RE.match(cardinality):
            raise ValidationError(
                f'{where} has an invalid "cardinality" {cardinality!r}; '
                "expected a Mermaid token such as ||--o{."
            )
        relationships.append(
            ErRelationship(
                source=source,
                target=target,
                cardinality=cardinality,
                label=_require_string(item, "label", where),
            )
        )

    return ErPlan(entities=tuple(entities), relationships=tuple(relationships))


def _validate_column(raw: Any, where: str) -> ErColumn:
    item = _require_element(raw, where)
    name = _require_string(item, "name", where)
    column_type = _require_string(item, "type", where)
    raw_keys = item.get("keys")
    if not isinstance(raw_keys, list):
        raise ValidationError(f'{where} must have a "keys" array.')
    for key in raw_keys:
        if key not in KEY_KINDS:
            raise ValidationError(
                f'{where} has an invalid key {key!r}; expected one of {", ".join(KEY_KINDS)}.'
            )
    keys = tuple(key for key in KEY_KINDS if key in raw_keys)
    return ErColumn(name=name, type=column_type, keys=keys)


def _require_arrays(candidate: Any, first: str, second: str) -> Tuple[list, list]:
    if not isinstance(candidate, dict):
        raise ValidationError("The model response is not a JSON object.")
    if not isinstance(candidate.get(first), list) or not isinstance(candidate.get(second), list):
        raise ValidationError(f'The model response must contain "{first}" and "{second}" arrays.')
    return candidate[first], candidate[second]


def _require_element(raw: Any, where: str) -> Dict[str, Any]:
    if not isinstance(raw, dict):
        raise ValidationError(f"{where} is not a JSON object.")
    return raw


def _require_string(item: Dict[str, Any], key: str, where: str) -> str:
    value = item.get(key)
    if not isinstance(value, str):
        raise ValidationError(f'{where} is missing a string "{key}".')
    return value


def _optional_string(item: Dict[str, Any], key: str, where: str) -> Optional[str]:
    if key not in item:
        return None
    value = item[key]
    if not isinstance(value, str):
        raise ValidationError(f'{where} has a "{key}" that is not a string.')
    return value


def _require_identifier(
    item: Dict[str, Any],
    key: str,
    where: str,
    diagram_kind: DiagramKind,
) -> str:
    value = _require_string(item, key, where)
    if not is_identifier(value):
        raise ValidationError(
            f'{where} has an invalid "{key}" {value!r}; identifiers must match [A-Za-z0-9_]+.'
        )
    if diagram_kind in LETTER_FIRST_KINDS and value[0].isdigit():
        raise ValidationError(f'{where} has an invalid "{key}" {value!r}; it must not start with a digit.')
    if value.lower() in RESERVED_IDS[diagram_kind]:
        raise ValidationError(f'{where} uses the reserved word {value!r} as "{key}".')
    return value


def _require_enum(item: Dict[str, Any], key: str, allowed: Sequence[str], where: str) -> str:
    value = item.get(key)
    if not isinstance(value, str) or value not in allowed:
        raise ValidationError(
            f'{where} has an invalid "{key}" {value!r}; expected one of {", ".join(allowed)}.'
        )
    return value


def _require_string_list(item: Dict[str, Any], key: str, where: str) -> Tuple[str, ...]:
    value = item.get(key)
    if not isinstance(value, list):
        raise ValidationError(f'{where} must have a "{key}" array.')
    if any(not isinstance(entry, str) for entry in value):
        raise ValidationError(f'{where} "{key}" must be an array of strings.')
    return tuple(value)


_VALIDATORS: Dict[DiagramKind, Callable[[Any], ValidatedPlan]] = {
    DiagramKind.FLOWCHART: validate_flowchart_plan,
    DiagramKind.SEQUENCE: validate_sequence_plan,
    DiagramKind.CLASS: validate_class_plan,
    DiagramKind.ER: validate_er_plan,
}
