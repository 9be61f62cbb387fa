import json
from copy import deepcopy
from typing import Any, Dict, List, Union

from .plans import DiagramKind, parse_diagram_kind
from .source_text import truncate_source

JSON_ONLY_RULE = (
    "CRITICAL: Your entire response MUST be a single, valid JSON object. "
    "Do NOT add any explanations, markdown formatting, or other text."
)

INSTRUCTION_TEMPLATES: Dict[DiagramKind, Dict[str, Any]] = {
    DiagramKind.FLOWCHART: {
        "id": "flowchart",
        "name": "Logic Flowchart",
        "description": "Control flow of a function: steps, branches, inputs and outputs.",
        "rules": [
            'The JSON object must conform to this structure: { "nodes": [], "edges": [] }.',
            'Each node must have an "id", a "label" (a short description), and a "type".',
            'Node "id" MUST be a unique, single word (e.g., "process1", "check_user"). '
            "It cannot contain spaces.",
            "Node \"type\" MUST be one of: 'startEnd', 'process', 'decision', or 'data'.",
            'Each edge must have a "from" and "to" property, linking two node ids.',
            'Edges from a \'decision\' node must have a "label" (e.g., "Yes", "No").',
        ],
        "example_plan": {
            "nodes": [
                {"id": "start", "label": "Start", "type": "startEnd"},
                {"id": "read_input", "label": "Read order", "type": "data"},
                {"id": "is_valid", "label": "Order valid?", "type": "decision"},
                {"id": "charge", "label": "Charge card", "type": "process"},
                {"id": "done", "label": "Done", "type": "startEnd"},
            ],
            "edges": [
                {"from": "start", "to": "read_input"},
                {"from": "read_input", "to": "is_valid"},
                {"from": "is_valid", "to": "charge", "label": "Yes"},
                {"from": "is_valid", "to": "done", "label": "No"},
                {"from": "charge", "to": "done"},
            ],
        },
    },
    DiagramKind.SEQUENCE: {
        "id": "sequence",
        "name": "Sequence Diagram",
        "description": "Calls and replies exchanged between components.",
        "rules": [
            'The JSON must have "participants" (actors or components) and "steps" (interactions).',
            'Each participant needs an "alias" (a single word, e.g., "API") and a "description".',
            'Each step must have "from" and "to" aliases, a "label" for the action, '
            "and a \"type\" ('sync', 'async', 'reply').",
        ],
        "example_plan": {
            "participants": [
                {"alias": "Client", "description": "Web client"},
                {"alias": "API", "description": "Order API"},
                {"alias": "Queue", "description": "Event queue"},
            ],
            "steps": [
                {"from": "Client", "to": "API", "label": "POST /orders", "type": "sync"},
                {"from": "API", "to": "Queue", "label": "publish OrderCreated", "type": "async"},
                {"from": "API", "to": "Client", "label": "201 Created", "type": "reply"},
            ],
        },
    },
    DiagramKind.CLASS: {
        "id": "class",
        "name": "Class Diagram",
        "description": "Classes, their members and how they relate.",
        "rules": [
            'The JSON must have "classes" and "relationships".',
            'Each class needs an "id" (a single word), a "properties" array, and a "methods" array.',
            'Each relationship must have "from", "to", "type" '
            "('inheritance', 'composition', 'aggregation', 'association'), and an optional \"label\".",
            'For inheritance "from" is the parent class; for composition and aggregation '
            '"from" is the owning class.',
        ],
        "example_plan": {
            "classes": [
                {"id": "Animal", "properties": ["+name: str"], "methods": ["+speak()"]},
                {"id": "Dog", "properties": [], "methods": ["+fetch(item)"]},
                {"id": "Owner", "properties": ["+pets: list"], "methods": []},
            ],
            "relationships": [
                {"from": "Animal", "to": "Dog", "type": "inheritance"},
                {"from": "Owner", "to": "Dog", "type": "aggregation", "label": "owns"},
            ],
        },
    },
    DiagramKind.ER: {
        "id": "er",
        "name": "ER Diagram",
        "description": "Tables or ORM models, their columns and relationships.",
        "rules": [
            'The JSON must have "entities" and "relationships".',
            'Each entity "name" MUST be a single word (e.g., "Users", "OrderItems").',
            'Each entity has a "columns" array of { "name", "type", "keys" } where '
            "keys is an array containing 'PK' and/or 'FK' (or empty).",
            'Each relationship must have "from", "to", "cardinality" (e.g., "||--o{"), and a "label".',
            "Entity names must not contain spaces or special characters.",
        ],
        "example_plan": {
            "entities": [
                {
                    "name": "Users",
                    "columns": [
                        {"name": "id", "type": "int", "keys": ["PK"]},
                        {"name": "email", "type": "varchar", "keys": []},
                    ],
                },
                {
                    "name": "Orders",
                    "columns": [
                        {"name": "id", "type": "int", "keys": ["PK"]},
                        {"name": "user_id", "type": "int", "keys": ["FK"]},
                    ],
                },
            ],
            "relationships": [
                {"from": "Users", "to": "Orders", "cardinality": "||--o{", "label": "places"},
            ],
        },
    },
}


def list_instruction_templates() -> List[Dict[str, str]]:
    return [
        {"id": template["id"], "name": template["name"], "description": template["description"]}
        for template in INSTRUCTION_TEMPLATES.values()
    ]


def get_example_plan(diagram_kind: Union[str, DiagramKind]) -> Dict[str, Any]:
    template = INSTRUCTION_TEMPLATES[parse_diagram_kind(diagram_kind)]
    return deepcopy(template["example_plan"])


def get_instruction_template(diagram_kind: Union[str, DiagramKind]) -> str:
    kind = parse_diagram_kind(diagram_kind)
    template = INSTRUCTION_TEMPLATES[kind]
    rules = "\n".join(f"- {rule}" for rule in template["rules"])
    example = json.dumps(template["example_plan"], ensure_ascii=False)
    return (
        "You are a code analysis engine. Your only task is to analyze the user's code "
        f"and convert it into a JSON object describing a {template['name']}.\n\n"
        f"{rules}\n\n"
        f"Example of the expected shape:\n{example}\n\n"
        f"{JSON_ONLY_RULE}"
    )


def build_user_prompt(source_text: str, max_chars: int = 12000) -> str:
    code = truncate_source(source_text, max_chars=max_chars)
    return f"Code snippet to analyze:\n```\n{code}\n```"
