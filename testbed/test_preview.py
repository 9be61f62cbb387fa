import pytest

from src.structurify.preview import MERMAID_CDN_URL, build_preview_html, get_export_filename


def test_export_filename_per_kind_and_format():
    assert get_export_filename("Flowchart") == "flowchart_diagram.mmd"
    assert get_export_filename("ER", ".SVG") == "er_diagram.svg"
    assert get_export_filename("sequence diagram", "png") == "sequence_diagram.png"


def test_export_filename_rejects_unknown_format():
    with pytest.raises(ValueError):
        get_export_filename("Class", "pdf")


def test_preview_html_escapes_code_and_basename():
    html = build_preview_html('graph TD\n    A["<script>x</script>"]:::process;', "x</script>")
    assert "<script>x</script>" not in html
    assert "&lt;script&gt;" in html
    assert '"x<\\/script>"' in html
    assert MERMAID_CDN_URL in html
    assert 'securityLevel: "strict"' in html
    assert "Export SVG" in html and "Export PNG" in html
