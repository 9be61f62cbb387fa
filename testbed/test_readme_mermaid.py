from pathlib import Path
import re

from src.structurify.plans import RESERVED_IDS
from src.structurify.syntax_compiler import MERMAID_HEADERS


def _extract_mermaid_blocks(text: str) -> list[str]:
    pattern = re.compile(r"```mermaid\s*\n(.*?)```", re.DOTALL | re.IGNORECASE)
    return [match.group(1) for match in pattern.finditer(text)]


def test_readme_mermaid_blocks_use_known_headers_and_safe_ids():
    readme = Path(__file__).resolve().parents[1] / "README.md"
    blocks = _extract_mermaid_blocks(readme.read_text(encoding="utf-8"))
    assert blocks, "README.md must contain at least one Mermaid block"

    headers = set(MERMAID_HEADERS.values())
    node_decl_pattern = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\s*[\[({]")
    kinds_by_header = {header: kind for kind, header in MERMAID_HEADERS.items()}
    offending: set[str] = set()
    declared_ids: list[str] = []
    for block in blocks:
        lines = [line.strip() for line in block.splitlines() if line.strip()]
        assert lines[0] in headers
        reserved = RESERVED_IDS[kinds_by_header[lines[0]]]
        for line in lines[1:]:
            match = node_decl_pattern.match(line)
            if match:
                declared_ids.append(match.group(1))
                if match.group(1).lower() in reserved:
                    offending.add(match.group(1))

    assert declared_ids
    assert not offending, f"Reserved Mermaid node IDs found in README: {sorted(offending)}"
