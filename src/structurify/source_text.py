from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# Extension -> Markdown code-fence language tag.
SOURCE_LANGUAGES = {
    ".py": "python",
    ".pyi": "python",
    ".js": "javascript",
    ".mjs": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".java": "java",
    ".kt": "kotlin",
    ".go": "go",
    ".rs": "rust",
    ".rb": "ruby",
    ".php": "php",
    ".cs": "csharp",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".swift": "swift",
    ".scala": "scala",
    ".sql": "sql",
    ".prisma": "prisma",
}

MAX_SOURCE_BYTES = 512 * 1024
TRUNCATION_MARKER = "\n...(truncated)"


class SourceFileError(ValueError):
    """An uploaded file cannot be sent to the model as source code."""


@dataclass(frozen=True)
class SourceFile:
    filename: str
    language: str
    text: str


def detect_language(filename: str) -> Optional[str]:
    return SOURCE_LANGUAGES.get(Path((filename or "").strip()).suffix.lower())


def read_source_file(filename: str, content_bytes: bytes) -> SourceFile:
    name = Path((filename or "").strip()).name or "upload"
    language = detect_language(name)
    if language is None:
        raise SourceFileError(f"{name} is not a supported source file.")
    if len(content_bytes or b"") > MAX_SOURCE_BYTES:
        raise SourceFileError(f"{name} is larger than {MAX_SOURCE_BYTES // 1024} KiB.")
    if b"\x00" in (content_bytes or b""):
        raise SourceFileError(f"{name} looks like a binary file, not source code.")

    text = _decode_source(content_bytes or b"").replace("\r\n", "\n").strip()
    if not text:
        raise SourceFileError(f"{name} contains no code.")
    return SourceFile(filename=name, language=language, text=text)


def truncate_source(source_text: str, max_chars: int = 12000) -> str:
    """Bounds the code sent to the model, cutting at a line break when one is available."""
    text = (source_text or "").strip()
    if len(text) <= max_chars:
        return text
    head = text[:max_chars]
    line_end = head.rfind("\n")
    if line_end > 0:
        head = head[:line_end]
    return head.rstrip() + TRUNCATION_MARKER


def _decode_source(content_bytes: bytes) -> str:
    try:
        return content_bytes.decode("utf-8-sig")
    except UnicodeDecodeError:
        # Stray bytes in comments or literals should not block the whole file.
        return content_bytes.decode("utf-8", errors="replace")
