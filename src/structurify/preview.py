import html
import json
from typing import Union

from .plans import DiagramKind, parse_diagram_kind

EXPORT_FORMATS = ("mmd", "svg", "png")

MERMAID_CDN_URL = "https://cdn.jsdelivr.net/npm/mermaid@10/dist/mermaid.min.js"


def get_export_filename(diagram_kind: Union[str, DiagramKind], export_format: str = "mmd") -> str:
    fmt = (export_format or "").strip().lower().lstrip(".")
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {export_format}")
    base = parse_diagram_kind(diagram_kind).value.strip().lower().replace(" ", "_")
    return f"{base}_diagram.{fmt}"


def build_preview_html(mermaid_code: str, export_basename: str = "diagram") -> str:
    """Self-contained page that renders the diagram and offers SVG/PNG export."""
    escaped = html.escape(mermaid_code or "")
    basename = json.dumps(export_basename or "diagram").replace("</", "<\\/")
    return f"""
<div style="padding: 8px;">
  <div style="margin-bottom: 8px;">
    <button id="export_svg" type="button">Export SVG</button>
    <button id="export_png" type="button">Export PNG</button>
  </div>
  <pre class="mermaid">{escaped}</pre>
  <div id="render_error" style="color:#b91c1c;font-family:monospace;"></div>
  <canvas id="export_canvas" style="display:none;"></canvas>
</div>
<script>
  const exportBasename = {basename};

  function formatMermaidError(err) {{
    if (!err) return "unknown error";
    if (typeof err === "string") return err;
    if (err.message) return err.message;
    if (err.str) return err.str;
    try {{
      return JSON.stringify(err, null, 2);
    }} catch (_) {{
      return String(err);
    }}
  }}

  function downloadUrl(url, filename) {{
    const link = document.createElement("a");
    link.href = url;
    link.download = filename;
    document.body.appendChild(link);
    link.click();
    link.remove();
  }}

  function currentSvg() {{
    return document.querySelector(".mermaid > svg");
  }}

  function exportSvg() {{
    const svg = currentSvg();
    if (!svg) return;
    const data = new XMLSerializer().serializeToString(svg);
    const blob = new Blob([data], {{ type: "image/svg+xml;charset=utf-8" }});
    downloadUrl(URL.createObjectURL(blob), exportBasename + ".svg");
  }}

  function exportPng() {{
    const svg = currentSvg();
    if (!svg) return;
    const box = svg.getBoundingClientRect();
    const canvas = document.getElementById("export_canvas");
    canvas.width = Math.ceil(box.width * 2);
    canvas.height = Math.ceil(box.height * 2);
    const ctx = canvas.getContext("2d");
    const data = new XMLSerializer().serializeToString(svg);
    const image = new Image();
    image.onload = function() {{
      ctx.fillStyle = "#ffffff";
      ctx.fillRect(0, 0, canvas.width, canvas.height);
      ctx.drawImage(image, 0, 0, canvas.width, canvas.height);
      downloadUrl(canvas.toDataURL("image/png"), exportBasename + ".png");
    }};
    image.src = "data:image/svg+xml;charset=utf-8," + encodeURIComponent(data);
  }}

  function renderMermaid() {{
    try {{
      mermaid.initialize({{
        startOnLoad: false,
        securityLevel: "strict",
        theme: "base",
        flowchart: {{ useMaxWidth: false, htmlLabels: true, curve: "basis" }},
      }});
      const nodes = document.querySelectorAll(".mermaid");
      mermaid.run({{ nodes }}).catch((err) => {{
        document.getElementById("render_error").textContent =
          "Mermaid render error: " + formatMermaidError(err);
      }});
    }} catch (err) {{
      document.getElementById("render_error").textContent =
        "Mermaid init error: " + formatMermaidError(err);
    }}
  }}

  document.getElementById("export_svg").addEventListener("click", exportSvg);
  document.getElementById("export_png").addEventListener("click", exportPng);

  if (window.mermaid) {{
    renderMermaid();
  }} else {{
    const script = document.createElement("script");
    script.src = "{MERMAID_CDN_URL}";
    script.onload = renderMermaid;
    script.onerror = function() {{
      document.getElementById("render_error").textContent = "Failed to load Mermaid runtime.";
    }};
    document.head.appendChild(script);
  }}
</script>
"""
