import pytest

from src.structurify.errors import ValidationError
from src.structurify.plan_validator import validate_plan
from src.structurify.plans import ClassPlan, ErPlan, FlowchartPlan, SequencePlan


def test_valid_plans_become_typed_values():
    flowchart = validate_plan(
        "Flowchart",
        {
            "nodes": [{"id": "A", "label": "Start", "type": "startEnd"}],
            "edges": [{"from": "A", "to": "A", "label": "loop"}],
        },
    )
    assert isinstance(flowchart, FlowchartPlan)
    assert flowchart.edges[0].label == "loop"

    sequence = validate_plan("Sequence", {"participants": [], "steps": []})
    assert isinstance(sequence, SequencePlan)

    classes = validate_plan(
        "Class",
        {
            "classes": [{"id": "A", "properties": ["x"], "methods": []}],
            "relationships": [{"from": "A", "to": "A", "type": "association"}],
        },
    )
    assert isinstance(classes, ClassPlan)
    assert classes.relationships[0].label is None

    er = validate_plan(
        "ER",
        {
            "entities": [{"name": "A", "columns": [{"name": "id", "type": "int", "keys": ["FK", "PK"]}]}],
            "relationships": [{"from": "A", "to": "A", "cardinality": "}|..|{", "label": ""}],
        },
    )
    assert isinstance(er, ErPlan)
    assert er.entities[0].columns[0].keys == ("PK", "FK")


def test_rejects_non_object_and_missing_arrays():
    with pytest.raises(ValidationError, match="not a JSON object"):
        validate_plan("Flowchart", ["nodes"])
    with pytest.raises(ValidationError, match='"nodes" and "edges" arrays'):
        validate_plan("Flowchart", {"nodes": []})


def test_reports_first_defect_with_position():
    candidate = {
        "nodes": [
            {"id": "A", "label": "ok", "type": "process"},
            {"id": "B", "type": "circle"},
        ],
        "edges": [{"from": 1, "to": "A"}],
    }
    with pytest.raises(ValidationError) as excinfo:
        validate_plan("Flowchart", candidate)
    assert str(excinfo.value) == 'Node 2 is missing a string "label".'


def test_rejects_unknown_enum_values():
    with pytest.raises(ValidationError, match='Step 1 has an invalid "type"'):
        validate_plan(
            "Sequence",
            {
                "participants": [{"alias": "A", "description": "a"}],
                "steps": [{"from": "A", "to": "A", "label": "x", "type": "Sync"}],
            },
        )


def test_rejects_bad_identifiers_and_reserved_words():
    with pytest.raises(ValidationError, match="identifiers must match"):
        validate_plan("Flowchart", {"nodes": [{"id": "a b", "label": "x", "type": "process"}], "edges": []})
    with pytest.raises(ValidationError, match="reserved word"):
        validate_plan("Flowchart", {"nodes": [{"id": "End", "label": "x", "type": "process"}], "edges": []})


def test_optional_label_must_be_string_when_present():
    with pytest.raises(ValidationError, match='Edge 1 has a "label" that is not a string.'):
        validate_plan(
            "Flowchart",
            {
                "nodes": [{"id": "A", "label": "a", "type": "process"}],
                "edges": [{"from": "A", "to": "A", "label": 5}],
            },
        )


def test_class_members_must_be_string_arrays():
    with pytest.raises(ValidationError, match='Class 1 must have a "methods" array.'):
        validate_plan("Class", {"classes": [{"id": "A", "properties": []}], "relationships": []})
    with pytest.raises(ValidationError, match="array of strings"):
        validate_plan(
            "Class",
            {"classes": [{"id": "A", "properties": [1], "methods": []}], "relationships": []},
        )


def test_er_columns_keys_and_cardinality_are_checked():
    with pytest.raises(ValidationError, match='Entity 1 column 1 has an invalid key'):
        validate_plan(
            "ER",
            {
                "entities": [{"name": "A", "columns": [{"name": "id", "type": "int", "keys": ["UK"]}]}],
                "relationships": [],
            },
        )
    with pytest.raises(ValidationError, match='invalid "cardinality"'):
        validate_plan(
            "ER",
            {
                "entities": [{"name": "A", "columns": []}],
                "relationships": [{"from": "A", "to": "A", "cardinality": "1:n", "label": "x"}],
            },
        )


def test_rejects_mermaid_keywords_for_each_kind():
    with pytest.raises(ValidationError, match="reserved word 'Loop'"):
        validate_plan("Sequence", {"participants": [{"alias": "Loop", "description": "x"}], "steps": []})
    with pytest.raises(ValidationError, match="reserved word 'style'"):
        validate_plan("Flowchart", {"nodes": [{"id": "style", "label": "x", "type": "process"}], "edges": []})
    with pytest.raises(ValidationError, match="reserved word 'note'"):
        validate_plan("Class", {"classes": [{"id": "note", "properties": [], "methods": []}], "relationships": []})

    plan = validate_plan("Sequence", {"participants": [{"alias": "Loopback", "description": "x"}], "steps": []})
    assert plan.participants[0].alias == "Loopback"


def test_entity_names_must_not_start_with_a_digit():
    with pytest.raises(ValidationError, match="must not start with a digit"):
        validate_plan("ER", {"entities": [{"name": "2fatokens", "columns": []}], "relationships": []})
    with pytest.raises(ValidationError, match="must not start with a digit"):
        validate_plan("Class", {"classes": [{"id": "3D", "properties": [], "methods": []}], "relationships": []})

    plan = validate_plan("Flowchart", {"nodes": [{"id": "2fa", "label": "x", "type": "process"}], "edges": []})
    assert plan.nodes[0].id == "2fa"
