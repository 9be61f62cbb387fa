import pytest

from src.structurify.source_text import (
    MAX_SOURCE_BYTES,
    SourceFileError,
    detect_language,
    read_source_file,
    truncate_source,
)


def test_read_source_file_reports_language_and_normalizes_newlines():
    source = read_source_file("src/app.py", b"def main():\r\n    return 1\r\n")
    assert source.filename == "app.py"
    assert source.language == "python"
    assert source.text == "def main():\n    return 1"


def test_read_source_file_strips_bom_and_keeps_bad_bytes_readable():
    assert read_source_file("Main.java", b"\xef\xbb\xbfclass Main {}").text == "class Main {}"
    text = read_source_file("schema.SQL", b"-- caf\xe9\nCREATE TABLE t (id int);").text
    assert text.endswith("CREATE TABLE t (id int);")
    assert "\ufffd" in text


def test_detect_language_is_keyed_by_code_extensions():
    assert detect_language("component.tsx") == "typescript"
    assert detect_language("schema.prisma") == "prisma"
    assert detect_language("notes.txt") is None
    assert detect_language("Makefile") is None


def test_read_source_file_rejects_non_code_files():
    with pytest.raises(SourceFileError, match="not a supported source file"):
        read_source_file("notes.txt", b"just prose")
    with pytest.raises(SourceFileError, match="binary"):
        read_source_file("module.py", b"import os\x00\x01\x02")
    with pytest.raises(SourceFileError, match="larger than"):
        read_source_file("big.js", b"x" * (MAX_SOURCE_BYTES + 1))


def test_read_source_file_rejects_blank_files():
    with pytest.raises(SourceFileError, match="contains no code"):
        read_source_file("empty.ts", b"")
    with pytest.raises(SourceFileError, match="contains no code"):
        read_source_file("blank.go", b"  \n\t")


def test_truncate_source_cuts_at_line_break():
    assert truncate_source("  short  ") == "short"
    code = "line_one = 1\nline_two = 2\nline_three = 3"
    assert truncate_source(code, max_chars=20) == "line_one = 1\n...(truncated)"
    assert truncate_source("x" * 50, max_chars=10) == "x" * 10 + "\n...(truncated)"
